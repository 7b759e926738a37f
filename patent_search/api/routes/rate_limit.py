import logging
import secrets
from typing import Optional, Tuple

from fastapi import APIRouter, Depends, Request, Response
from sqlalchemy.orm import Session

from patent_search.core.config import Settings, get_settings
from patent_search.core.errors import AuthError
from patent_search.db.session import get_db
from patent_search.dependencies.auth import AuthenticatedUser, get_optional_user, sync_user_profile
from patent_search.schemas.rate_limit import RateLimitStatus, RateLimitTransferResponse
from patent_search.services.usage_ledger import (
    LedgerIdentity,
    consume,
    get_usage_status,
    transfer_anonymous_usage,
)
from patent_search.services.users import get_user_tier

logger = logging.getLogger(__name__)

router = APIRouter()

ANONYMOUS_TIER = "anonymous"


def _set_anonymous_cookie(response: Response, settings: Settings, token: str) -> None:
    response.set_cookie(
        settings.ANONYMOUS_COOKIE_NAME,
        token,
        max_age=settings.ANONYMOUS_COOKIE_MAX_AGE,
        httponly=True,
        samesite="lax",
        secure=not settings.is_development,
        path="/",
    )


def _resolve_identity(
    request: Request,
    response: Response,
    db: Session,
    settings: Settings,
    user: Optional[AuthenticatedUser],
) -> Tuple[LedgerIdentity, str]:
    if user is not None:
        sync_user_profile(db, user)
        return LedgerIdentity.user(user.id), get_user_tier(db, user.id)

    token = request.cookies.get(settings.ANONYMOUS_COOKIE_NAME)
    if not token:
        token = secrets.token_urlsafe(24)
        _set_anonymous_cookie(response, settings, token)
    return LedgerIdentity.anonymous(token), ANONYMOUS_TIER


@router.get("", response_model=RateLimitStatus)
def rate_limit_status(
    request: Request,
    response: Response,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
    user: Optional[AuthenticatedUser] = Depends(get_optional_user),
):
    """Current usage for the caller (signed-in user or anonymous browser)."""
    identity, tier = _resolve_identity(request, response, db, settings, user)
    return get_usage_status(db, identity, tier).to_dict()


@router.post("")
def rate_limit_consume_or_transfer(
    request: Request,
    response: Response,
    transfer: bool = False,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
    user: Optional[AuthenticatedUser] = Depends(get_optional_user),
):
    """
    Charge one request to the caller, or with ?transfer=true merge the
    anonymous cookie's usage into the signed-in user's ledger.
    """
    if transfer:
        return _transfer(request, response, db, settings, user)

    identity, tier = _resolve_identity(request, response, db, settings, user)
    status = consume(db, identity, tier)
    return RateLimitStatus(**status.to_dict())


def _transfer(
    request: Request,
    response: Response,
    db: Session,
    settings: Settings,
    user: Optional[AuthenticatedUser],
) -> RateLimitTransferResponse:
    if user is None:
        raise AuthError("Sign in before transferring usage")
    sync_user_profile(db, user)
    tier = get_user_tier(db, user.id)

    anonymous_id = request.cookies.get(settings.ANONYMOUS_COOKIE_NAME)
    if not anonymous_id:
        status = get_usage_status(db, LedgerIdentity.user(user.id), tier)
        return RateLimitTransferResponse(
            success=True,
            transferred=False,
            transferredCount=0,
            rateLimit=RateLimitStatus(**status.to_dict()),
        )

    result = transfer_anonymous_usage(db, anonymous_id, user.id, tier)
    response.delete_cookie(settings.ANONYMOUS_COOKIE_NAME, path="/")
    return RateLimitTransferResponse(
        success=True,
        transferred=result.transferred,
        transferredCount=result.transferred_count,
        rateLimit=RateLimitStatus(**result.status.to_dict()),
    )
