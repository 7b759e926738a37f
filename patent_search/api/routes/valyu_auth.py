import logging
from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from patent_search.core.config import Settings, get_settings
from patent_search.core.errors import ConfigurationError, ValidationError
from patent_search.db.session import get_db
from patent_search.schemas.auth import SessionBridgeRequest, SessionBridgeResponse, TokenExchangeRequest
from patent_search.services.session_bridge import bridge_session
from patent_search.services.supabase_admin import SupabaseAdminClient, get_supabase_admin
from patent_search.services.valyu_oauth import exchange_code_for_tokens

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/token")
def exchange_token(
    request: TokenExchangeRequest,
    settings: Settings = Depends(get_settings),
):
    """
    Exchange a Valyu authorization code for tokens.
    The client secret is only ever used here, server-side.
    """
    return exchange_code_for_tokens(
        settings,
        code=request.code,
        redirect_uri=request.redirect_uri,
        code_verifier=request.code_verifier,
    )


@router.post("/session", response_model=SessionBridgeResponse)
def create_session(
    request: SessionBridgeRequest,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
    admin: Optional[SupabaseAdminClient] = Depends(get_supabase_admin),
):
    """
    Sign a Valyu user into Supabase.
    Returns a magic-link token hash for the browser to redeem.
    """
    if not request.valyu_access_token:
        raise ValidationError("Missing Valyu access token", error="missing_token")
    if admin is None:
        logger.error("[SESSION] SUPABASE_URL or SUPABASE_SERVICE_ROLE_KEY is not set")
        raise ConfigurationError("Supabase is not configured on the server")
    return bridge_session(db, settings, admin, request.valyu_access_token)
