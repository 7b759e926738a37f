"""
Runtime configuration loaded from environment variables (and .env).
"""
import logging
from dataclasses import dataclass, field
from functools import lru_cache
from typing import List, Literal, Optional

from dotenv import load_dotenv
from pydantic_settings import BaseSettings, SettingsConfigDict

load_dotenv()

logger = logging.getLogger(__name__)

VALYU_CALLBACK_PATH = "/auth/valyu/callback"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # "development" enables mock auth and local model probing
    APP_MODE: Literal["development", "production"] = "production"
    DATABASE_URL: str = "sqlite:///./patent_search.db"
    CORS_ORIGINS: str = "http://localhost:3000,http://127.0.0.1:3000"

    APP_URL: str = ""
    ALLOWED_REDIRECT_URIS: str = ""

    # Valyu OAuth authorization server (a Supabase project) and platform
    VALYU_SUPABASE_URL: str = ""
    VALYU_CLIENT_ID: str = ""
    VALYU_CLIENT_SECRET: str = ""
    VALYU_APP_URL: str = "https://platform.valyu.ai"
    VALYU_OAUTH_PROXY_URL: Optional[str] = None

    # Application Supabase project
    SUPABASE_URL: str = ""
    SUPABASE_SERVICE_ROLE_KEY: str = ""
    SUPABASE_JWT_SECRET: str = ""

    CRON_SECRET: str = ""
    LMSTUDIO_BASE_URL: str = "http://localhost:1234"

    # Platform keys only checked at startup
    VALYU_API_KEY: str = ""
    DAYTONA_API_KEY: str = ""
    OPENAI_API_KEY: str = ""

    OUTBOUND_TIMEOUT_SECONDS: float = 10.0
    MODEL_STATUS_TIMEOUT_SECONDS: float = 5.0
    PATENT_CACHE_TTL_SECONDS: int = 3600
    ANONYMOUS_COOKIE_NAME: str = "rl_anon_id"
    ANONYMOUS_COOKIE_MAX_AGE: int = 60 * 60 * 24 * 30

    @property
    def is_development(self) -> bool:
        return self.APP_MODE == "development"

    @property
    def cors_origins(self) -> List[str]:
        return [o.strip().rstrip("/") for o in self.CORS_ORIGINS.split(",") if o.strip()]

    @property
    def allowed_redirect_uris(self) -> List[str]:
        """Redirect URIs accepted by the token exchange. Matched exactly."""
        uris = []
        app_url = self.APP_URL.strip().rstrip("/")
        if app_url:
            uris.append(f"{app_url}{VALYU_CALLBACK_PATH}")
        uris.append(f"http://localhost:3000{VALYU_CALLBACK_PATH}")
        uris.append(f"http://127.0.0.1:3000{VALYU_CALLBACK_PATH}")
        for extra in self.ALLOWED_REDIRECT_URIS.split(","):
            extra = extra.strip()
            if extra and extra not in uris:
                uris.append(extra)
        return uris

    @property
    def valyu_proxy_url(self) -> str:
        if self.VALYU_OAUTH_PROXY_URL:
            return self.VALYU_OAUTH_PROXY_URL
        return f"{self.VALYU_APP_URL.rstrip('/')}/api/oauth/proxy"

    @property
    def oauth_configured(self) -> bool:
        return bool(self.VALYU_SUPABASE_URL and self.VALYU_CLIENT_ID and self.VALYU_CLIENT_SECRET)

    @property
    def supabase_admin_configured(self) -> bool:
        return bool(self.SUPABASE_URL and self.SUPABASE_SERVICE_ROLE_KEY)


@dataclass
class EnvValidationResult:
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    @property
    def valid(self) -> bool:
        return not self.errors


def validate_environment(settings: Settings) -> EnvValidationResult:
    result = EnvValidationResult()
    if settings.is_development:
        return result

    if not settings.VALYU_API_KEY:
        result.warnings.append("VALYU_API_KEY missing - patent/web search will fail")
    if not settings.DAYTONA_API_KEY:
        result.warnings.append("DAYTONA_API_KEY missing - code execution will fail")
    if not settings.OPENAI_API_KEY:
        result.warnings.append("OPENAI_API_KEY missing - will use Vercel AI Gateway")
    if not settings.CRON_SECRET:
        result.warnings.append("CRON_SECRET missing - patent cache cleanup endpoint is disabled")
    if not settings.SUPABASE_JWT_SECRET and not settings.SUPABASE_URL:
        result.errors.append("SUPABASE_URL or SUPABASE_JWT_SECRET is required to verify sessions")
    return result


def log_environment_status(settings: Settings) -> EnvValidationResult:
    validation = validate_environment(settings)
    for error in validation.errors:
        logger.error("[ENV] %s", error)
    for warning in validation.warnings:
        logger.warning("[ENV] %s", warning)
    return validation


@lru_cache
def get_settings() -> Settings:
    return Settings()


settings = get_settings()
