"""
Per-identity request counter for the rolling daily rate limit.
One row per anonymous browser token or authenticated user.
"""
from sqlalchemy import Column, Integer, String, DateTime, UniqueConstraint
from patent_search.db.base import Base
from patent_search.utils.datetime import utc_now


class UsageLedger(Base):
    __tablename__ = "usage_ledgers"
    __table_args__ = (
        UniqueConstraint("identity_type", "identity_id", name="uq_usage_ledgers_identity"),
    )

    id = Column(Integer, primary_key=True, index=True)
    identity_type = Column(String(16), nullable=False)  # "anonymous" or "user"
    identity_id = Column(String(255), nullable=False)
    usage_count = Column(Integer, default=0, nullable=False)
    window_started_at = Column(DateTime, nullable=False)
    reset_at = Column(DateTime, nullable=False, index=True)
    last_request_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=utc_now, nullable=False)
    updated_at = Column(DateTime, default=utc_now, onupdate=utc_now, nullable=False)

    def __repr__(self):
        return (
            f"<UsageLedger({self.identity_type}:{self.identity_id}, "
            f"count={self.usage_count}, reset_at={self.reset_at})>"
        )
