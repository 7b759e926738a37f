"""
Local user profiles mirrored from Supabase auth users.
"""
import logging
from typing import Optional

from sqlalchemy import delete, select, update
from sqlalchemy.orm import Session

from patent_search.core.plan_limits import DEFAULT_SUBSCRIPTION_TIER
from patent_search.db.upsert import insert_ignore
from patent_search.models.chat import ChatSession
from patent_search.models.user import User

logger = logging.getLogger(__name__)


def _released_email(user_id: str) -> str:
    return f"released+{user_id}@invalid"


def _adopt_stale_profile(db: Session, user_id: str, email: str) -> None:
    """
    Supabase can recreate an auth user under a new id with the same email.
    The profile still holding that email is re-keyed onto user_id: the new row
    inherits its tier, its chat sessions move across and the stale row is dropped.
    Runs inside the caller's transaction.
    """
    stale = db.execute(
        select(User.id, User.subscription_tier).where(User.email == email, User.id != user_id)
    ).first()
    if stale is None:
        return

    logger.warning("[USERS] Email for %s was held by stale profile %s, re-keying", user_id, stale.id)
    # Free the unique email before the new row claims it
    db.execute(
        update(User)
        .where(User.id == stale.id)
        .values(email=_released_email(stale.id))
        .execution_options(synchronize_session=False)
    )
    inserted = insert_ignore(
        db,
        User,
        {"id": user_id, "email": email, "subscription_tier": stale.subscription_tier},
        index_elements=["id"],
    )
    if not inserted:
        db.execute(
            update(User)
            .where(User.id == user_id)
            .values(email=email)
            .execution_options(synchronize_session=False)
        )
    db.execute(
        update(ChatSession)
        .where(ChatSession.user_id == stale.id)
        .values(user_id=user_id)
        .execution_options(synchronize_session=False)
    )
    db.execute(delete(User).where(User.id == stale.id).execution_options(synchronize_session=False))


def ensure_profile(db: Session, user_id: str, email: str, tier: Optional[str] = None) -> None:
    """Create the profile row if it is missing. Existing rows are left alone."""
    email = email.lower()
    try:
        _adopt_stale_profile(db, user_id, email)
        inserted = insert_ignore(
            db,
            User,
            {
                "id": user_id,
                "email": email,
                "subscription_tier": tier or DEFAULT_SUBSCRIPTION_TIER,
            },
            index_elements=["id"],
        )
        db.commit()
    except Exception:
        db.rollback()
        raise
    if inserted:
        logger.info("[USERS] Created profile for %s", user_id)


def upsert_profile(
    db: Session,
    user_id: str,
    email: str,
    full_name: Optional[str] = None,
    avatar_url: Optional[str] = None,
    valyu_sub: Optional[str] = None,
    valyu_user_type: Optional[str] = None,
    valyu_organisation_id: Optional[str] = None,
    valyu_organisation_name: Optional[str] = None,
) -> User:
    """
    Insert or refresh a profile on sign-in.
    New rows start on the free tier; subscription_tier is never overwritten here.
    """
    fields = {
        "email": email.lower(),
        "full_name": full_name,
        "avatar_url": avatar_url,
        "valyu_sub": valyu_sub,
        "valyu_user_type": valyu_user_type,
        "valyu_organisation_id": valyu_organisation_id,
        "valyu_organisation_name": valyu_organisation_name,
    }
    try:
        _adopt_stale_profile(db, user_id, fields["email"])
        inserted = insert_ignore(
            db,
            User,
            {"id": user_id, "subscription_tier": DEFAULT_SUBSCRIPTION_TIER, **fields},
            index_elements=["id"],
        )
        if not inserted:
            db.execute(update(User).where(User.id == user_id).values(**fields))
        db.commit()
    except Exception:
        db.rollback()
        raise

    return db.get(User, user_id, populate_existing=True)


def get_user(db: Session, user_id: str) -> Optional[User]:
    return db.query(User).filter(User.id == user_id).first()


def get_user_tier(db: Session, user_id: str) -> str:
    tier = db.query(User.subscription_tier).filter(User.id == user_id).scalar()
    return tier or DEFAULT_SUBSCRIPTION_TIER
