"""Pydantic schemas for the chat API and the cached chat history."""
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from newsrag.schemas.common import CamelModel


class ChatRequest(CamelModel):
    session_id: str = Field(..., min_length=1)
    message: str = Field(..., min_length=1)


class ChatResponse(CamelModel):
    session_id: str
    message: str
    sources: list[str] = Field(default_factory=list)


class ChatMessageOut(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)

    id: int | None = None
    session_id: str
    content: str
    is_user: bool
    sources: list[str] | None = None
    created_at: datetime | None = None


class ChatHistoryResponse(CamelModel):
    session_id: str
    messages: list[ChatMessageOut]


class ClearChatResponse(CamelModel):
    session_id: str
    success: bool


class ChatTurn(BaseModel):
    """One query/answer interaction as kept in the ``chat:<sessionId>`` log."""

    query: str
    response: str
    sources: list[str] = Field(default_factory=list)
    timestamp: datetime
