"""
Domain exceptions. Route handlers let these propagate; the handlers registered
in main.py turn them into {"error", "error_description"} JSON bodies.
"""
from datetime import datetime
from typing import Optional

from fastapi import status

from patent_search.utils.datetime import isoformat_utc


class ServiceError(Exception):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    error = "server_error"
    description = "An unexpected error occurred"

    def __init__(
        self,
        description: Optional[str] = None,
        *,
        error: Optional[str] = None,
        status_code: Optional[int] = None,
    ):
        if description is not None:
            self.description = description
        if error is not None:
            self.error = error
        if status_code is not None:
            self.status_code = status_code
        super().__init__(self.description)

    def to_dict(self) -> dict:
        return {"error": self.error, "error_description": self.description}


class ValidationError(ServiceError):
    status_code = status.HTTP_400_BAD_REQUEST
    error = "invalid_request"
    description = "Invalid request"


class AuthError(ServiceError):
    status_code = status.HTTP_401_UNAUTHORIZED
    error = "unauthorized"
    description = "Unauthorized"


class NotFoundError(ServiceError):
    status_code = status.HTTP_404_NOT_FOUND
    error = "not_found"
    description = "Not found"


class UpstreamError(ServiceError):
    """An identity/search provider call failed. Description is always a safe message."""

    status_code = status.HTTP_502_BAD_GATEWAY
    error = "upstream_error"
    description = "Upstream service request failed"


class ConfigurationError(ServiceError):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    error = "server_error"
    description = "Server is not configured"


class RateLimitExceeded(ServiceError):
    status_code = status.HTTP_429_TOO_MANY_REQUESTS
    error = "rate_limit_exceeded"
    description = "Daily limit reached"

    def __init__(self, reset_at: datetime, limit: int, tier: str):
        self.reset_at = reset_at
        self.limit = limit
        self.tier = tier
        super().__init__(f"Daily limit of {limit} requests reached")

    def to_dict(self) -> dict:
        payload = super().to_dict()
        payload.update(
            {
                "limit": self.limit,
                "remaining": 0,
                "tier": self.tier,
                "resetTime": isoformat_utc(self.reset_at),
            }
        )
        return payload
