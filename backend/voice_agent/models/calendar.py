"""
Calendar Models - Meeting requests, booked events and OAuth credentials.
"""

from datetime import datetime, timezone
from typing import Optional
from pydantic import BaseModel, Field


class MeetingRequest(BaseModel):
    """Meeting details extracted from free text. Not persisted on its own."""
    title: str = "Meeting"
    date: str  # ISO-8601 calendar date, YYYY-MM-DD
    time: str  # 24-hour HH:MM
    notes: str = ""


class CalendarEvent(BaseModel):
    """A booked event. Append-only within a session."""
    id: str
    title: str
    date: str
    time: str
    notes: str = ""
    created: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    link: Optional[str] = None
    remote_id: Optional[str] = None
    html_link: Optional[str] = None
    meet_link: Optional[str] = None


class RemoteEvent(BaseModel):
    """Result of creating an event through the authorized calendar API."""
    id: str
    html_link: Optional[str] = None
    meet_link: Optional[str] = None


class OAuthTokens(BaseModel):
    """Access/refresh token pair from the authorization-code flow."""
    access_token: str
    refresh_token: Optional[str] = None
    token_type: str = "Bearer"
    scope: Optional[str] = None
    expires_at: Optional[datetime] = None

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        if self.expires_at is None:
            return False
        now = now or datetime.now(timezone.utc)
        return now >= self.expires_at


class MockCalendarRequest(BaseModel):
    """Body of the offline calendar booking endpoint."""
    title: Optional[str] = None
    date: Optional[str] = None
    time: Optional[str] = None
    notes: Optional[str] = None
