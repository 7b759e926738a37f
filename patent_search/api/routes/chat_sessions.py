from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from patent_search.core.errors import ValidationError
from patent_search.db.session import get_db
from patent_search.dependencies.auth import AuthenticatedUser, get_current_user
from patent_search.schemas.chat import ChatSessionCreate, ChatSessionUpdate, SaveMessagesRequest
from patent_search.services import chat_store

router = APIRouter()


@router.get("")
def list_sessions(
    db: Session = Depends(get_db),
    user: AuthenticatedUser = Depends(get_current_user),
):
    """List the user's chat sessions, most recently updated first"""
    sessions = chat_store.list_sessions(db, user.id)
    return {"sessions": [chat_store.serialize_session(s) for s in sessions]}


@router.post("", status_code=status.HTTP_201_CREATED)
def create_session(
    payload: ChatSessionCreate,
    db: Session = Depends(get_db),
    user: AuthenticatedUser = Depends(get_current_user),
):
    session = chat_store.create_session(db, user.id, session_id=payload.id, title=payload.title)
    return {"session": chat_store.serialize_session(session)}


@router.get("/{session_id}")
def get_session(
    session_id: str,
    db: Session = Depends(get_db),
    user: AuthenticatedUser = Depends(get_current_user),
):
    """Session with its messages in the shape the chat UI renders"""
    session = chat_store.get_session(db, user.id, session_id)
    return {
        "session": chat_store.serialize_session(session),
        "messages": [chat_store.serialize_message(m) for m in session.messages],
    }


@router.patch("/{session_id}")
def update_session(
    session_id: str,
    payload: ChatSessionUpdate,
    db: Session = Depends(get_db),
    user: AuthenticatedUser = Depends(get_current_user),
):
    if not payload.title or not payload.title.strip():
        raise ValidationError("title is required")
    chat_store.rename_session(db, user.id, session_id, payload.title.strip())
    return {"success": True}


@router.delete("/{session_id}")
def delete_session(
    session_id: str,
    db: Session = Depends(get_db),
    user: AuthenticatedUser = Depends(get_current_user),
):
    chat_store.delete_session(db, user.id, session_id)
    return {"success": True}


@router.put("/{session_id}/messages")
def save_messages(
    session_id: str,
    payload: SaveMessagesRequest,
    db: Session = Depends(get_db),
    user: AuthenticatedUser = Depends(get_current_user),
):
    """Replace the session's stored messages"""
    saved = chat_store.save_messages(db, user.id, session_id, payload.messages)
    return {"success": True, "saved": saved}
