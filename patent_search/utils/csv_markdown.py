"""
Markdown rendering for CSV artifacts referenced from chat answers.
"""
import re
from typing import List, Optional, Sequence

CSV_REFERENCE_PATTERN = re.compile(r"!?\[([^\]]*)\]\(csv:([a-f0-9-]+)\)", re.IGNORECASE)


def escape_csv_cell(cell) -> str:
    """Escape pipes and flatten newlines so a cell stays inside its table column."""
    if cell is None or cell == "":
        return ""
    escaped = str(cell).replace("|", "\\|")
    return escaped.replace("\n", "<br/>")


def csv_to_markdown_table(
    headers: Sequence[str],
    rows: Sequence[Sequence],
    title: Optional[str] = None,
    description: Optional[str] = None,
) -> str:
    lines: List[str] = []
    if title:
        lines.extend([f"**{title}**", ""])
    if description:
        lines.extend([description, ""])

    lines.append("| " + " | ".join(escape_csv_cell(h) for h in headers) + " |")
    lines.append("| " + " | ".join("---" for _ in headers) + " |")
    for row in rows:
        lines.append("| " + " | ".join(escape_csv_cell(cell) for cell in row) + " |")
    return "\n".join(lines)


def generate_csv_reference(csv_id: str, label: Optional[str] = None) -> str:
    return f"[{label or 'CSV'}](csv:{csv_id})"


def parse_csv_reference(text: str) -> Optional[dict]:
    """Find the first ``[label](csv:<id>)`` link in ``text``."""
    match = CSV_REFERENCE_PATTERN.search(text or "")
    if not match:
        return None
    return {"csv_id": match.group(2), "label": match.group(1) or None}
