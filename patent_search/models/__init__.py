from patent_search.models.user import User
from patent_search.models.usage_ledger import UsageLedger
from patent_search.models.chat import ChatSession, ChatMessage
from patent_search.models.artifact import Chart, CsvArtifact
from patent_search.models.patent_cache import CachedPatent

__all__ = [
    "User",
    "UsageLedger",
    "ChatSession",
    "ChatMessage",
    "Chart",
    "CsvArtifact",
    "CachedPatent",
]
