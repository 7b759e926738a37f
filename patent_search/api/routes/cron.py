import hmac
import logging
import time
from typing import Optional

from fastapi import APIRouter, Depends, Header
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from patent_search.core.config import Settings, get_settings
from patent_search.core.errors import AuthError, ConfigurationError
from patent_search.db.session import get_db
from patent_search.services.patent_cache import cleanup_expired_patents
from patent_search.utils.datetime import isoformat_utc, utc_now

logger = logging.getLogger(__name__)

router = APIRouter()


def verify_cron_secret(
    authorization: Optional[str] = Header(None),
    settings: Settings = Depends(get_settings),
) -> None:
    if not settings.CRON_SECRET:
        logger.error("[CRON] CRON_SECRET not configured")
        raise ConfigurationError("Cron secret not configured")
    expected = f"Bearer {settings.CRON_SECRET}"
    if not hmac.compare_digest((authorization or "").encode(), expected.encode()):
        logger.warning("[CRON] Unauthorized cleanup attempt")
        raise AuthError("Unauthorized")


@router.get("/cleanup-patents", dependencies=[Depends(verify_cron_secret)])
def cleanup_patents(db: Session = Depends(get_db)):
    """
    Hourly sweep of the patent cache (triggered by the platform scheduler).
    Deletes entries past their TTL; safe to run any number of times.
    """
    logger.info("[CRON] Starting patent cache cleanup...")
    started = time.monotonic()
    try:
        deleted = cleanup_expired_patents(db)
    except SQLAlchemyError as e:
        duration_ms = int((time.monotonic() - started) * 1000)
        logger.error("[CRON] Cleanup failed: %s", e)
        return JSONResponse(
            status_code=500,
            content={
                "success": False,
                "error": "Failed to clean up patent cache",
                "timestamp": isoformat_utc(utc_now()),
                "durationMs": duration_ms,
            },
        )

    duration_ms = int((time.monotonic() - started) * 1000)
    logger.info("[CRON] Cleanup completed: %s patents deleted in %sms", deleted, duration_ms)
    return {
        "success": True,
        "deletedCount": deleted,
        "timestamp": isoformat_utc(utc_now()),
        "durationMs": duration_ms,
    }
