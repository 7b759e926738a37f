"""
Full patent content cached per chat session so follow-up questions can read
claims and descriptions without another search. Rows expire after one hour
and are removed by the cron sweep.
"""
from sqlalchemy import Column, Integer, String, Text, DateTime, JSON, UniqueConstraint
from patent_search.db.base import Base
from patent_search.utils.datetime import utc_now


class CachedPatent(Base):
    __tablename__ = "patent_cache"
    __table_args__ = (
        UniqueConstraint("session_id", "patent_number", name="uq_patent_cache_session_patent"),
    )

    id = Column(Integer, primary_key=True, index=True)
    session_id = Column(String(36), nullable=False, index=True)
    patent_number = Column(String(64), nullable=False)
    patent_index = Column(Integer, nullable=True)
    title = Column(String, nullable=True)
    url = Column(String, nullable=True)
    abstract = Column(Text, nullable=True)
    full_content = Column(Text, nullable=True)
    patent_metadata = Column("metadata", JSON, nullable=True)
    cached_at = Column(DateTime, default=utc_now, nullable=False)
    expires_at = Column(DateTime, nullable=False, index=True)
