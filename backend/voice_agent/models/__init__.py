"""Models module."""

from .chat import ChatMessage, AgentRequest, StreamRequest, AgentResponse, ModelSelection
from .calendar import (
    MeetingRequest, CalendarEvent, RemoteEvent, OAuthTokens, MockCalendarRequest
)
from .session import SessionSnapshot

__all__ = [
    'ChatMessage', 'AgentRequest', 'StreamRequest', 'AgentResponse', 'ModelSelection',
    'MeetingRequest', 'CalendarEvent', 'RemoteEvent', 'OAuthTokens', 'MockCalendarRequest',
    'SessionSnapshot',
]
