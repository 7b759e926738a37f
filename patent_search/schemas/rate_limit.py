from pydantic import BaseModel
from typing import Optional


class RateLimitStatus(BaseModel):
    tier: str
    limit: int  # -1 means unlimited
    used: int
    remaining: int  # -1 means unlimited
    resetTime: Optional[str] = None
    isUnlimited: bool


class RateLimitTransferResponse(BaseModel):
    success: bool
    transferred: bool
    transferredCount: int
    rateLimit: RateLimitStatus
