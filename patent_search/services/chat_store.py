"""
Chat session persistence. Every query is scoped to the owning user; rows
belonging to someone else behave exactly like missing rows.
"""
import json
import logging
import uuid
from datetime import timedelta
from typing import Any, List, Optional

from sqlalchemy.orm import Session

from patent_search.core.errors import NotFoundError
from patent_search.models.chat import ChatMessage, ChatSession
from patent_search.schemas.chat import ChatMessageIn
from patent_search.utils.datetime import isoformat_utc, utc_now

logger = logging.getLogger(__name__)

DEFAULT_TITLE = "New Chat"


def serialize_session(session: ChatSession) -> dict:
    return {
        "id": session.id,
        "user_id": session.user_id,
        "title": session.title,
        "created_at": isoformat_utc(session.created_at),
        "updated_at": isoformat_utc(session.updated_at),
        "last_message_at": isoformat_utc(session.last_message_at),
    }


def parse_message_parts(content: Any) -> list:
    """Stored content is a list of parts; older rows hold it as a JSON string."""
    if isinstance(content, str):
        try:
            content = json.loads(content)
        except ValueError:
            return []
    if isinstance(content, list):
        return content
    return []


def serialize_message(message: ChatMessage) -> dict:
    return {
        "id": message.id,
        "role": message.role,
        "parts": parse_message_parts(message.content),
        "createdAt": isoformat_utc(message.created_at),
        "processing_time_ms": message.processing_time_ms,
    }


def list_sessions(db: Session, user_id: str) -> List[ChatSession]:
    return (
        db.query(ChatSession)
        .filter(ChatSession.user_id == user_id)
        .order_by(ChatSession.updated_at.desc())
        .all()
    )


def get_session(db: Session, user_id: str, session_id: str) -> ChatSession:
    session = (
        db.query(ChatSession)
        .filter(ChatSession.id == session_id, ChatSession.user_id == user_id)
        .first()
    )
    if session is None:
        raise NotFoundError("Session not found")
    return session


def create_session(
    db: Session,
    user_id: str,
    session_id: Optional[str] = None,
    title: Optional[str] = None,
) -> ChatSession:
    now = utc_now()
    session = ChatSession(
        id=session_id or str(uuid.uuid4()),
        user_id=user_id,
        title=title or DEFAULT_TITLE,
        created_at=now,
        updated_at=now,
        last_message_at=now,
    )
    db.add(session)
    try:
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(session)
    logger.info("[CHAT] Created session %s for user %s", session.id, user_id)
    return session


def rename_session(db: Session, user_id: str, session_id: str, title: str) -> ChatSession:
    session = get_session(db, user_id, session_id)
    session.title = title
    session.updated_at = utc_now()
    db.commit()
    return session


def delete_session(db: Session, user_id: str, session_id: str) -> None:
    session = get_session(db, user_id, session_id)
    # ORM delete so messages cascade on SQLite too
    db.delete(session)
    db.commit()
    logger.info("[CHAT] Deleted session %s", session_id)


def get_session_messages(db: Session, user_id: str, session_id: str) -> List[ChatMessage]:
    return list(get_session(db, user_id, session_id).messages)


def save_messages(
    db: Session,
    user_id: str,
    session_id: str,
    messages: List[ChatMessageIn],
) -> int:
    """Replace the stored message list for a session."""
    session = get_session(db, user_id, session_id)
    now = utc_now()

    session.messages.clear()
    db.flush()
    for offset, message in enumerate(messages):
        session.messages.append(
            ChatMessage(
                id=message.id,
                role=message.role,
                content=message.content,
                processing_time_ms=message.processing_time_ms,
                # Keep the caller's order when timestamps collide
                created_at=now + timedelta(microseconds=offset),
            )
        )
    session.last_message_at = now
    session.updated_at = now
    try:
        db.commit()
    except Exception:
        db.rollback()
        raise
    return len(messages)
