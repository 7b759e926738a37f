from pydantic import BaseModel, Field
from typing import Any, List, Optional


class ChatSessionCreate(BaseModel):
    id: Optional[str] = None
    title: Optional[str] = None


class ChatSessionUpdate(BaseModel):
    title: Optional[str] = Field(default=None, max_length=200)


class ChatMessageIn(BaseModel):
    id: str
    role: str = Field(pattern="^(user|assistant|system)$")
    content: Any
    processing_time_ms: Optional[int] = None


class SaveMessagesRequest(BaseModel):
    messages: List[ChatMessageIn]


class ProxyRequest(BaseModel):
    path: Optional[str] = None
    method: str = "POST"
    body: Any = None
