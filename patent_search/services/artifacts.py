"""
Chart and CSV artifacts created during a chat and fetched by id for rendering.
"""
import json
import logging
import uuid
from typing import List, Optional

from sqlalchemy.orm import Session

from patent_search.core.errors import NotFoundError
from patent_search.models.artifact import Chart, CsvArtifact
from patent_search.utils.csv_markdown import csv_to_markdown_table, generate_csv_reference

logger = logging.getLogger(__name__)


def parse_chart_data(raw) -> dict:
    """chart_data is JSON; legacy rows stored it as a JSON string."""
    if isinstance(raw, str):
        try:
            raw = json.loads(raw)
        except ValueError:
            logger.warning("[ARTIFACTS] Chart data is not valid JSON")
            return {}
    return raw if isinstance(raw, dict) else {}


def normalize_chart_config(chart_data: dict) -> dict:
    return {
        "chartType": chart_data.get("chartType") or chart_data.get("type"),
        "title": chart_data.get("title"),
        "xAxisLabel": chart_data.get("xAxisLabel"),
        "yAxisLabel": chart_data.get("yAxisLabel"),
        "dataSeries": chart_data.get("dataSeries"),
        "description": chart_data.get("description"),
        "metadata": chart_data.get("metadata"),
    }


def create_chart(
    db: Session,
    chart_data: dict,
    user_id: Optional[str] = None,
    anonymous_id: Optional[str] = None,
    session_id: Optional[str] = None,
) -> Chart:
    chart = Chart(
        id=str(uuid.uuid4()),
        user_id=user_id,
        anonymous_id=anonymous_id,
        session_id=session_id,
        chart_data=chart_data,
    )
    db.add(chart)
    db.commit()
    db.refresh(chart)
    return chart


def get_chart_config(db: Session, chart_id: str) -> dict:
    chart = db.query(Chart).filter(Chart.id == chart_id).first()
    if chart is None:
        raise NotFoundError("Chart not found")
    return normalize_chart_config(parse_chart_data(chart.chart_data))


def create_csv(
    db: Session,
    title: str,
    headers: List[str],
    rows: List[List[str]],
    description: Optional[str] = None,
    user_id: Optional[str] = None,
    anonymous_id: Optional[str] = None,
    session_id: Optional[str] = None,
) -> CsvArtifact:
    csv = CsvArtifact(
        id=str(uuid.uuid4()),
        user_id=user_id,
        anonymous_id=anonymous_id,
        session_id=session_id,
        title=title,
        description=description,
        headers=headers,
        rows=rows,
    )
    db.add(csv)
    db.commit()
    db.refresh(csv)
    return csv


def get_csv(db: Session, csv_id: str) -> dict:
    csv = db.query(CsvArtifact).filter(CsvArtifact.id == csv_id).first()
    if csv is None:
        raise NotFoundError("CSV not found")
    headers = csv.headers or []
    rows = csv.rows or []
    return {
        "id": csv.id,
        "title": csv.title,
        "description": csv.description,
        "headers": headers,
        "rows": rows,
        "markdown": csv_to_markdown_table(headers, rows, title=csv.title, description=csv.description),
        "reference": generate_csv_reference(csv.id, csv.title),
    }
