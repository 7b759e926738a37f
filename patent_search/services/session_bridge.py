"""
Turns a Valyu access token into a Supabase session.

Steps: fetch the Valyu profile, find or create the matching Supabase auth
user, sync the local profile, and mint a magic-link token the browser
redeems with Supabase. Every step converges when re-run.
"""
import logging

import requests
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.orm import Session

from patent_search.core.config import Settings
from patent_search.core.errors import AuthError, ServiceError, ValidationError
from patent_search.schemas.auth import SessionBridgeResponse, ValyuUserInfo, ValyuUserSummary
from patent_search.services.supabase_admin import SupabaseAdminClient, SupabaseAdminError
from patent_search.services.users import upsert_profile

logger = logging.getLogger(__name__)


def userinfo_endpoint(settings: Settings) -> str:
    return f"{settings.VALYU_APP_URL.rstrip('/')}/api/oauth/userinfo"


def fetch_userinfo(settings: Settings, access_token: str) -> ValyuUserInfo:
    try:
        response = requests.get(
            userinfo_endpoint(settings),
            headers={"Authorization": f"Bearer {access_token}"},
            timeout=settings.OUTBOUND_TIMEOUT_SECONDS,
        )
    except requests.RequestException as e:
        logger.error("[SESSION] Userinfo request failed: %s", type(e).__name__)
        raise AuthError("Failed to get user info from Valyu", error="userinfo_failed")

    if not response.ok:
        logger.warning("[SESSION] Userinfo returned %s", response.status_code)
        raise AuthError("Failed to get user info from Valyu", error="userinfo_failed")

    try:
        return ValyuUserInfo.model_validate(response.json())
    except (ValueError, PydanticValidationError):
        logger.warning("[SESSION] Userinfo returned a malformed profile")
        raise AuthError("Failed to get user info from Valyu", error="userinfo_failed")


def bridge_session(
    db: Session,
    settings: Settings,
    admin: SupabaseAdminClient,
    valyu_access_token: str,
) -> SessionBridgeResponse:
    if not valyu_access_token:
        raise ValidationError("Missing Valyu access token", error="missing_token")

    valyu_user = fetch_userinfo(settings, valyu_access_token)
    if not valyu_user.email:
        raise ValidationError("Valyu account has no email address", error="missing_email")

    email = valyu_user.email.lower()
    metadata = valyu_user.user_metadata()

    try:
        existing = admin.find_user_by_email(email)
    except SupabaseAdminError as e:
        logger.error("[SESSION] User lookup failed: %s", e)
        raise ServiceError("Failed to look up user", error="lookup_user_failed")

    if existing:
        user_id = existing["id"]
        try:
            admin.update_user_metadata(user_id, metadata)
        except SupabaseAdminError as e:
            logger.error("[SESSION] Updating user %s failed: %s", user_id, e)
            raise ServiceError("Failed to update user", error="update_user_failed")
    else:
        try:
            created = admin.create_user(email, metadata)
        except SupabaseAdminError as e:
            logger.error("[SESSION] Creating user failed: %s", e)
            raise ServiceError("Failed to create user", error="create_user_failed")
        # GoTrue returns the user object itself, some versions wrap it in {"user": ...}
        user_id = (created.get("user") or created).get("id")
        if not user_id:
            logger.error("[SESSION] Create user response has no id")
            raise ServiceError("Failed to create user", error="create_user_failed")
        logger.info("[SESSION] Created Supabase user %s", user_id)

    try:
        upsert_profile(
            db,
            user_id,
            email,
            full_name=valyu_user.display_name,
            avatar_url=valyu_user.picture,
            valyu_sub=valyu_user.sub,
            valyu_user_type=valyu_user.valyu_user_type,
            valyu_organisation_id=valyu_user.valyu_organisation_id,
            valyu_organisation_name=valyu_user.valyu_organisation_name,
        )
    except Exception as e:
        logger.error("[SESSION] Profile sync for %s failed: %s", user_id, e)
        raise ServiceError("Failed to sync user profile", error="profile_sync_failed")

    try:
        token_hash = admin.generate_magic_link(email)
    except SupabaseAdminError as e:
        logger.error("[SESSION] Magic link generation failed: %s", e)
        raise ServiceError("Failed to create session", error="session_failed")

    logger.info("[SESSION] Bridged Valyu user %s to Supabase user %s", valyu_user.sub, user_id)
    return SessionBridgeResponse(
        user_id=user_id,
        email=email,
        token_hash=token_hash,
        valyu_user=ValyuUserSummary(
            sub=valyu_user.sub,
            name=valyu_user.display_name,
            email=email,
            picture=valyu_user.picture,
            valyu_user_type=valyu_user.valyu_user_type,
            valyu_organisation_id=valyu_user.valyu_organisation_id,
        ),
    )
