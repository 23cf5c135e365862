"""
Chat Models - Request/response structures for conversational turns.
"""

from datetime import datetime, timezone
from typing import Literal, Optional
from pydantic import BaseModel, ConfigDict, Field


class ChatMessage(BaseModel):
    """One entry of a session's chat history. Immutable once appended."""
    model_config = ConfigDict(frozen=True)

    role: Literal["user", "assistant", "system"]
    content: str
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class AgentRequest(BaseModel):
    """Non-streaming turn request."""
    text: str = Field(..., min_length=1)


class StreamRequest(BaseModel):
    """Streaming turn request."""
    model_config = ConfigDict(populate_by_name=True)

    text: str = Field(..., min_length=1)
    language: str = "en-US"
    model_override: Optional[str] = Field(None, alias="modelOverride")


class AgentResponse(BaseModel):
    """Non-streaming turn response."""
    intent: str
    transcript: str
    reply: str
    provider: str
    model: str
    calendar_url: Optional[str] = None
    image: Optional[str] = None


class ModelSelection(BaseModel):
    """Session-scoped model override."""
    model: str = Field(..., min_length=1)
