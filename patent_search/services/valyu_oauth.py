"""
Authorization-code exchange against the Valyu OAuth server.

The client secret never leaves the server. Upstream error bodies are only
inspected for a known error code; descriptions come from SAFE_ERROR_MESSAGES.
"""
import logging
from typing import Optional

import requests

from patent_search.core.config import Settings
from patent_search.core.errors import ConfigurationError, ValidationError

logger = logging.getLogger(__name__)

SAFE_ERROR_MESSAGES = {
    "invalid_grant": "Authorization code is invalid or expired. Please try again.",
    "invalid_client": "OAuth configuration error. Please contact support.",
    "invalid_request": "Invalid request. Please try again.",
}
GENERIC_EXCHANGE_ERROR = "Failed to exchange authorization code. Please try again."
MISSING_PARAMETERS_MESSAGE = "Missing required parameters: code, redirect_uri, code_verifier"


def token_endpoint(settings: Settings) -> str:
    return f"{settings.VALYU_SUPABASE_URL.rstrip('/')}/auth/v1/oauth/token"


def _exchange_failed(upstream_error: Optional[str]) -> ValidationError:
    if upstream_error in SAFE_ERROR_MESSAGES:
        return ValidationError(SAFE_ERROR_MESSAGES[upstream_error], error=upstream_error)
    return ValidationError(GENERIC_EXCHANGE_ERROR, error="token_exchange_failed")


def exchange_code_for_tokens(
    settings: Settings,
    code: Optional[str],
    redirect_uri: Optional[str],
    code_verifier: Optional[str],
) -> dict:
    """
    Swap an authorization code (PKCE) for provider tokens.
    Returns the upstream token JSON unchanged.
    """
    if not code or not redirect_uri or not code_verifier:
        raise ValidationError(MISSING_PARAMETERS_MESSAGE, error="missing_parameters")

    # Exact match only, no prefix or normalisation
    if redirect_uri not in settings.allowed_redirect_uris:
        logger.warning("[OAUTH] Rejected redirect_uri not on the allowlist")
        raise ValidationError("Invalid redirect URI", error="invalid_redirect_uri")

    if not settings.oauth_configured:
        logger.error("[OAUTH] VALYU_SUPABASE_URL, VALYU_CLIENT_ID or VALYU_CLIENT_SECRET is not set")
        raise ConfigurationError("OAuth is not configured on the server")

    form = {
        "grant_type": "authorization_code",
        "client_id": settings.VALYU_CLIENT_ID,
        "client_secret": settings.VALYU_CLIENT_SECRET,
        "code": code,
        "redirect_uri": redirect_uri,
        "code_verifier": code_verifier,
    }

    try:
        response = requests.post(
            token_endpoint(settings),
            data=form,
            headers={"Accept": "application/json"},
            timeout=settings.OUTBOUND_TIMEOUT_SECONDS,
        )
    except requests.RequestException as e:
        logger.error("[OAUTH] Token endpoint unreachable: %s", type(e).__name__)
        raise _exchange_failed(None)

    if not response.ok:
        upstream_error = None
        try:
            body = response.json()
            if isinstance(body, dict):
                upstream_error = body.get("error")
        except ValueError:
            pass
        logger.warning(
            "[OAUTH] Token exchange failed: status=%s error=%s",
            response.status_code,
            upstream_error,
        )
        raise _exchange_failed(upstream_error)

    try:
        tokens = response.json()
    except ValueError:
        logger.error("[OAUTH] Token endpoint returned a non-JSON body")
        raise _exchange_failed(None)

    logger.info("[OAUTH] Authorization code exchanged")
    return tokens
