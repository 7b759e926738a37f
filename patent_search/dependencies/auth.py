"""
Request authentication.

The provider is picked once from APP_MODE: development uses a fixed mock user
(no Supabase needed), production verifies Supabase session JWTs.
"""
import logging
from dataclasses import dataclass
from typing import Dict, Optional

import jwt  # PyJWT
from fastapi import Depends, Header
from sqlalchemy.orm import Session

from patent_search.core.config import Settings, get_settings
from patent_search.core.errors import AuthError, ConfigurationError
from patent_search.db.session import get_db
from patent_search.services.users import ensure_profile

logger = logging.getLogger(__name__)

DEV_USER_ID = "00000000-0000-0000-0000-000000000001"
DEV_USER_EMAIL = "dev@localhost"
MOCK_USER_TIER = "unlimited"

SUPABASE_AUDIENCE = "authenticated"

# One JWKS client per Supabase project; PyJWKClient caches the fetched keys itself
_jwks_clients: Dict[str, jwt.PyJWKClient] = {}


@dataclass(frozen=True)
class AuthenticatedUser:
    id: str
    email: str
    access_token: Optional[str] = None
    is_mock: bool = False


class AuthProvider:
    def authenticate(self, authorization: Optional[str]) -> Optional[AuthenticatedUser]:
        """Return the caller, None when no credentials were sent, or raise AuthError."""
        raise NotImplementedError


class MockAuthProvider(AuthProvider):
    """Development mode: every request is the local dev user."""

    def authenticate(self, authorization: Optional[str]) -> Optional[AuthenticatedUser]:
        return AuthenticatedUser(
            id=DEV_USER_ID,
            email=DEV_USER_EMAIL,
            access_token="dev-access-token",
            is_mock=True,
        )


def _get_jwks_client(supabase_url: str) -> jwt.PyJWKClient:
    jwks_url = f"{supabase_url.rstrip('/')}/auth/v1/.well-known/jwks.json"
    client = _jwks_clients.get(jwks_url)
    if client is None:
        client = jwt.PyJWKClient(jwks_url, cache_keys=True, lifespan=3600)
        _jwks_clients[jwks_url] = client
    return client


def extract_bearer_token(authorization: Optional[str]) -> Optional[str]:
    if not authorization:
        return None
    if not authorization.startswith("Bearer "):
        raise AuthError("Invalid header format. Expected 'Bearer <token>'", error="invalid_token")
    token = authorization[len("Bearer "):].strip()
    # Browsers sometimes send the literal string of an unset variable
    if not token or token.lower() in ("null", "undefined", "none"):
        raise AuthError("Missing token", error="invalid_token")
    return token


class SupabaseAuthProvider(AuthProvider):
    """
    Verifies Supabase session JWTs.
    HS256 (legacy shared secret) uses SUPABASE_JWT_SECRET; ES256/RS256 use the project JWKS.
    """

    def __init__(self, supabase_url: str, jwt_secret: str):
        self.supabase_url = supabase_url
        self.jwt_secret = jwt_secret

    def authenticate(self, authorization: Optional[str]) -> Optional[AuthenticatedUser]:
        token = extract_bearer_token(authorization)
        if token is None:
            return None

        payload = self.verify(token)
        user_id = payload.get("sub")
        email = payload.get("email")
        if not user_id or not email:
            raise AuthError("Token missing user claims", error="invalid_token")
        return AuthenticatedUser(id=user_id, email=email.lower(), access_token=token)

    def verify(self, token: str) -> dict:
        try:
            algo = jwt.get_unverified_header(token).get("alg")
        except jwt.DecodeError:
            raise AuthError("Invalid token header", error="invalid_token")

        if algo == "HS256":
            if not self.jwt_secret:
                logger.error("[AUTH] SUPABASE_JWT_SECRET is missing for HS256 verification")
                raise ConfigurationError("Server misconfiguration: JWT secret not set")
            key = self.jwt_secret
        elif algo in ("ES256", "RS256"):
            if not self.supabase_url:
                logger.error("[AUTH] SUPABASE_URL is missing for %s verification", algo)
                raise ConfigurationError("Server misconfiguration: SUPABASE_URL not set")
            try:
                key = _get_jwks_client(self.supabase_url).get_signing_key_from_jwt(token).key
            except jwt.PyJWKClientError as e:
                logger.warning("[AUTH] Could not resolve signing key: %s", e)
                raise AuthError("Invalid token signature", error="invalid_token")
        else:
            raise AuthError(f"Unsupported token algorithm: {algo}", error="invalid_token")

        try:
            return jwt.decode(token, key, algorithms=[algo], audience=SUPABASE_AUDIENCE)
        except jwt.ExpiredSignatureError:
            raise AuthError("Session expired", error="invalid_token")
        except jwt.InvalidTokenError as e:
            logger.info("[AUTH] %s verification failed: %s", algo, e)
            raise AuthError("Invalid token signature", error="invalid_token")


def build_auth_provider(settings: Settings) -> AuthProvider:
    if settings.is_development:
        return MockAuthProvider()
    return SupabaseAuthProvider(settings.SUPABASE_URL, settings.SUPABASE_JWT_SECRET)


def get_auth_provider(settings: Settings = Depends(get_settings)) -> AuthProvider:
    return build_auth_provider(settings)


def get_optional_user(
    authorization: Optional[str] = Header(None),
    provider: AuthProvider = Depends(get_auth_provider),
) -> Optional[AuthenticatedUser]:
    """The caller if credentials were sent; invalid credentials still fail with 401."""
    return provider.authenticate(authorization)


def sync_user_profile(db: Session, user: AuthenticatedUser) -> None:
    """Rows owned by the user reference the local profile, so make sure it exists."""
    ensure_profile(db, user.id, user.email, tier=MOCK_USER_TIER if user.is_mock else None)


def get_current_user(
    user: Optional[AuthenticatedUser] = Depends(get_optional_user),
    db: Session = Depends(get_db),
) -> AuthenticatedUser:
    if user is None:
        raise AuthError("Unauthorized")
    sync_user_profile(db, user)
    return user
