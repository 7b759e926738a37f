"""
Per-session cache of full patent text.

Search results are returned truncated to their abstract; the full content is
cached here so follow-up reads don't need another search. Entries live for
PATENT_CACHE_TTL_SECONDS and are swept by the cron endpoint.
"""
import logging
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy import delete, update
from sqlalchemy.orm import Session

from patent_search.core.config import settings
from patent_search.db.upsert import insert_ignore
from patent_search.models.patent_cache import CachedPatent
from patent_search.utils.datetime import utc_now

logger = logging.getLogger(__name__)


def cache_patent(
    db: Session,
    session_id: str,
    patent_number: str,
    patent_index: Optional[int] = None,
    title: Optional[str] = None,
    url: Optional[str] = None,
    abstract: Optional[str] = None,
    full_content: Optional[str] = None,
    metadata: Optional[dict] = None,
    now: Optional[datetime] = None,
    ttl_seconds: Optional[int] = None,
) -> None:
    """Insert or refresh a cached patent. Re-caching extends expires_at."""
    now = now or utc_now()
    expires_at = now + timedelta(seconds=ttl_seconds or settings.PATENT_CACHE_TTL_SECONDS)
    fields = {
        "patent_index": patent_index,
        "title": title,
        "url": url,
        "abstract": abstract,
        "full_content": full_content,
        "patent_metadata": metadata,
        "cached_at": now,
        "expires_at": expires_at,
    }
    try:
        inserted = insert_ignore(
            db,
            CachedPatent,
            {"session_id": session_id, "patent_number": patent_number, **fields},
            index_elements=["session_id", "patent_number"],
        )
        if not inserted:
            db.execute(
                update(CachedPatent)
                .where(CachedPatent.session_id == session_id, CachedPatent.patent_number == patent_number)
                .values(**fields)
                .execution_options(synchronize_session=False)
            )
        db.commit()
    except Exception:
        db.rollback()
        raise


def clear_patent_indices(db: Session, session_id: str) -> None:
    """Detach cached patents from their position in the previous result list."""
    db.execute(
        update(CachedPatent)
        .where(CachedPatent.session_id == session_id)
        .values(patent_index=None)
        .execution_options(synchronize_session=False)
    )
    db.commit()


def get_cached_patent(
    db: Session,
    session_id: str,
    patent_index: Optional[int] = None,
    patent_number: Optional[str] = None,
    now: Optional[datetime] = None,
) -> Optional[CachedPatent]:
    now = now or utc_now()
    query = db.query(CachedPatent).filter(
        CachedPatent.session_id == session_id,
        CachedPatent.expires_at >= now,
    )
    if patent_number is not None:
        query = query.filter(CachedPatent.patent_number == patent_number)
    elif patent_index is not None:
        query = query.filter(CachedPatent.patent_index == patent_index)
    else:
        return None
    return query.first()


def cleanup_expired_patents(db: Session, now: Optional[datetime] = None) -> int:
    """Delete every cached patent older than its TTL. A row exactly at its TTL is kept. Returns the number removed."""
    now = now or utc_now()
    try:
        result = db.execute(
            delete(CachedPatent)
            .where(CachedPatent.expires_at < now)
            .execution_options(synchronize_session=False)
        )
        db.commit()
    except Exception:
        db.rollback()
        raise
    deleted = result.rowcount or 0
    logger.info("[CRON] Removed %s expired cached patents", deleted)
    return deleted
