"""
Rolling daily usage ledger.

Each identity (anonymous browser token or user id) owns one row. The window
opens on first use and lasts RATE_LIMIT_WINDOW_HOURS; the first consume after
it closes starts a new one. Every mutation is a single conditional statement
so concurrent requests against the same row cannot lose updates.
"""
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy import and_, case, delete, select, update
from sqlalchemy.orm import Session

from patent_search.core.errors import RateLimitExceeded
from patent_search.core.plan_limits import RATE_LIMIT_WINDOW_HOURS, UNLIMITED, get_plan_limit
from patent_search.db.upsert import insert_ignore
from patent_search.models.usage_ledger import UsageLedger
from patent_search.utils.datetime import isoformat_utc, utc_now

logger = logging.getLogger(__name__)

ANONYMOUS = "anonymous"
USER = "user"

WINDOW = timedelta(hours=RATE_LIMIT_WINDOW_HOURS)

# Bulk statements below leave the identity map alone; reads use populate_existing
_NO_SYNC = {"synchronize_session": False}


@dataclass(frozen=True)
class LedgerIdentity:
    identity_type: str
    identity_id: str

    @classmethod
    def anonymous(cls, token: str) -> "LedgerIdentity":
        return cls(ANONYMOUS, token)

    @classmethod
    def user(cls, user_id: str) -> "LedgerIdentity":
        return cls(USER, user_id)

    def clause(self):
        return and_(
            UsageLedger.identity_type == self.identity_type,
            UsageLedger.identity_id == self.identity_id,
        )


@dataclass
class UsageStatus:
    tier: str
    limit: int
    used: int
    reset_at: Optional[datetime]

    @property
    def is_unlimited(self) -> bool:
        return self.limit == UNLIMITED

    @property
    def remaining(self) -> int:
        if self.is_unlimited:
            return UNLIMITED
        return max(0, self.limit - self.used)

    def to_dict(self) -> dict:
        return {
            "tier": self.tier,
            "limit": self.limit,
            "used": self.used,
            "remaining": self.remaining,
            "resetTime": isoformat_utc(self.reset_at),
            "isUnlimited": self.is_unlimited,
        }


@dataclass
class TransferResult:
    transferred: bool
    transferred_count: int
    status: UsageStatus


def _load(db: Session, identity: LedgerIdentity) -> Optional[UsageLedger]:
    stmt = select(UsageLedger).where(identity.clause()).execution_options(populate_existing=True)
    return db.execute(stmt).scalar_one_or_none()


def _ensure_row(
    db: Session,
    identity: LedgerIdentity,
    now: datetime,
    window_started_at: Optional[datetime] = None,
    reset_at: Optional[datetime] = None,
) -> None:
    window_started_at = window_started_at or now
    insert_ignore(
        db,
        UsageLedger,
        {
            "identity_type": identity.identity_type,
            "identity_id": identity.identity_id,
            "usage_count": 0,
            "window_started_at": window_started_at,
            "reset_at": reset_at or window_started_at + WINDOW,
            "created_at": now,
            "updated_at": now,
        },
        index_elements=["identity_type", "identity_id"],
    )


def _reset_expired_window(db: Session, identity: LedgerIdentity, now: datetime) -> None:
    db.execute(
        update(UsageLedger)
        .where(identity.clause(), UsageLedger.reset_at <= now)
        .values(usage_count=0, window_started_at=now, reset_at=now + WINDOW, updated_at=now)
        .execution_options(**_NO_SYNC)
    )


def get_usage_status(
    db: Session,
    identity: LedgerIdentity,
    tier: str,
    now: Optional[datetime] = None,
) -> UsageStatus:
    """Read-only view of the current window. An expired window reads as unused."""
    now = now or utc_now()
    limit = get_plan_limit(tier)
    row = _load(db, identity)
    if row is None or row.reset_at <= now:
        return UsageStatus(tier=tier, limit=limit, used=0, reset_at=None)
    return UsageStatus(tier=tier, limit=limit, used=row.usage_count, reset_at=row.reset_at)


def consume(
    db: Session,
    identity: LedgerIdentity,
    tier: str,
    now: Optional[datetime] = None,
) -> UsageStatus:
    """
    Charge one request to ``identity``.
    Raises RateLimitExceeded, without incrementing, when the window is exhausted.
    """
    now = now or utc_now()
    limit = get_plan_limit(tier)

    try:
        _ensure_row(db, identity, now)
        _reset_expired_window(db, identity, now)

        stmt = update(UsageLedger).where(identity.clause(), UsageLedger.reset_at > now)
        if limit != UNLIMITED:
            stmt = stmt.where(UsageLedger.usage_count < limit)
        result = db.execute(
            stmt.values(
                usage_count=UsageLedger.usage_count + 1,
                last_request_at=now,
                updated_at=now,
            ).execution_options(**_NO_SYNC)
        )
        db.commit()
    except Exception:
        db.rollback()
        raise

    if result.rowcount == 0:
        row = _load(db, identity)
        reset_at = row.reset_at if row is not None else now + WINDOW
        logger.info(
            "[RATE_LIMIT] %s %s exhausted %s requests (tier=%s)",
            identity.identity_type,
            identity.identity_id,
            limit,
            tier,
        )
        raise RateLimitExceeded(reset_at=reset_at, limit=limit, tier=tier)

    return get_usage_status(db, identity, tier, now=now)


def transfer_anonymous_usage(
    db: Session,
    anonymous_id: str,
    user_id: str,
    tier: str,
    now: Optional[datetime] = None,
) -> TransferResult:
    """
    Merge an anonymous identity's in-window usage into a user's ledger.

    The anonymous row is claimed and removed by one DELETE ... RETURNING, so
    only one caller ever sees its count. The merge is one UPDATE capped at
    the tier limit. Replays find no anonymous row and change nothing.
    """
    now = now or utc_now()
    limit = get_plan_limit(tier)
    source = LedgerIdentity.anonymous(anonymous_id)
    target = LedgerIdentity.user(user_id)

    try:
        claimed = db.execute(
            delete(UsageLedger)
            .where(source.clause())
            .returning(UsageLedger.usage_count, UsageLedger.window_started_at, UsageLedger.reset_at)
            .execution_options(**_NO_SYNC)
        ).first()

        if claimed is None:
            db.commit()
            return TransferResult(
                transferred=False,
                transferred_count=0,
                status=get_usage_status(db, target, tier, now=now),
            )

        window_live = claimed.reset_at > now
        count = claimed.usage_count if window_live else 0

        if window_live:
            # A first-time user inherits the anonymous window instead of opening a fresh one
            _ensure_row(db, target, now, claimed.window_started_at, claimed.reset_at)
        else:
            _ensure_row(db, target, now)
        _reset_expired_window(db, target, now)

        if count > 0:
            merged = UsageLedger.usage_count + count
            if limit != UNLIMITED:
                merged = case((merged > limit, limit), else_=merged)
            db.execute(
                update(UsageLedger)
                .where(target.clause())
                .values(usage_count=merged, updated_at=now)
                .execution_options(**_NO_SYNC)
            )
        db.commit()
    except Exception:
        db.rollback()
        raise

    logger.info(
        "[RATE_LIMIT] Transferred %s anonymous requests to user %s (tier=%s)",
        count,
        user_id,
        tier,
    )
    return TransferResult(
        transferred=True,
        transferred_count=count,
        status=get_usage_status(db, target, tier, now=now),
    )
