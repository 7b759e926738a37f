from sqlalchemy import Column, String, DateTime
from sqlalchemy.sql import func
from patent_search.db.base import Base


class User(Base):
    __tablename__ = "users"

    id = Column(String(36), primary_key=True, index=True)  # Supabase auth user id
    email = Column(String, unique=True, index=True, nullable=False)
    full_name = Column(String, nullable=True)
    avatar_url = Column(String, nullable=True)
    subscription_tier = Column(String, default="free", nullable=False)  # free / pay_per_use / unlimited
    valyu_sub = Column(String, index=True, nullable=True)  # Subject id at the Valyu identity provider
    valyu_user_type = Column(String, nullable=True)
    valyu_organisation_id = Column(String, nullable=True)
    valyu_organisation_name = Column(String, nullable=True)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    def __repr__(self):
        return f"<User(id={self.id}, email={self.email}, tier={self.subscription_tier})>"
