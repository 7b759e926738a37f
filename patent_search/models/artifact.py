"""
Chart and CSV artifacts produced by the chat assistant.
Owned either by a user or, before sign-in, by an anonymous browser token.
"""
from sqlalchemy import Column, String, Text, DateTime, JSON
from patent_search.db.base import Base
from patent_search.utils.datetime import utc_now


class Chart(Base):
    __tablename__ = "charts"

    id = Column(String(36), primary_key=True, index=True)
    user_id = Column(String(36), nullable=True, index=True)
    anonymous_id = Column(String(255), nullable=True)
    session_id = Column(String(36), nullable=True)
    chart_data = Column(JSON, nullable=False)  # legacy rows hold a JSON string
    created_at = Column(DateTime, default=utc_now, nullable=False)
    updated_at = Column(DateTime, default=utc_now, onupdate=utc_now, nullable=False)


class CsvArtifact(Base):
    __tablename__ = "csvs"

    id = Column(String(36), primary_key=True, index=True)
    user_id = Column(String(36), nullable=True, index=True)
    anonymous_id = Column(String(255), nullable=True)
    session_id = Column(String(36), nullable=True)
    title = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    headers = Column(JSON, nullable=False)
    rows = Column(JSON, nullable=False)
    created_at = Column(DateTime, default=utc_now, nullable=False)
    updated_at = Column(DateTime, default=utc_now, onupdate=utc_now, nullable=False)
