"""
Session Models - Snapshot of a conversational session for API responses.
"""

from typing import List
from pydantic import BaseModel

from .chat import ChatMessage
from .calendar import CalendarEvent


class SessionSnapshot(BaseModel):
    """Read-only view of one session's state."""
    session_id: str
    selected_model: str
    history: List[ChatMessage]
    calendar_events: List[CalendarEvent]
    authenticated: bool = False
