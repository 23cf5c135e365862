"""
Calendar API endpoints - Offline booking and the session's event list.
"""

import logging
from datetime import date
from typing import List

from fastapi import APIRouter, Depends, HTTPException, status

from ..core.meeting_parser import DEFAULT_TIME, DEFAULT_TITLE, extract_time
from ..core.session_store import SessionStore, get_session_store
from ..models import CalendarEvent, MeetingRequest, MockCalendarRequest
from ..services import ConversationService, get_conversation_service
from ..utils.session import SessionContext, get_session

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["calendar"])


def _normalize_time(raw: str) -> str:
    resolved = extract_time(raw)
    if resolved is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Unrecognized time: {raw}"
        )
    return f"{resolved[0]:02d}:{resolved[1]:02d}"


@router.post("/mock-calendar")
async def mock_calendar(
    body: MockCalendarRequest,
    session: SessionContext = Depends(get_session),
    service: ConversationService = Depends(get_conversation_service),
):
    """
    Book an event without going through the conversation.

    Missing fields default to a "Meeting" today at 17:00.

    Raises:
        HTTPException: 400 for an unparseable date or time
    """
    if body.date:
        try:
            event_date = date.fromisoformat(body.date).isoformat()
        except ValueError:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"Invalid date: {body.date}"
            )
    else:
        event_date = service.clock().date().isoformat()

    event_time = _normalize_time(body.time) if body.time else "%02d:%02d" % DEFAULT_TIME

    meeting = MeetingRequest(
        title=(body.title or "").strip() or DEFAULT_TITLE,
        date=event_date,
        time=event_time,
        notes=body.notes or "",
    )
    booking = await service.book_meeting(session.session_id, meeting)

    return {
        "status": "success",
        "message": f"Event '{meeting.title}' scheduled for {meeting.date} at {meeting.time}",
        "event": booking.event,
        "url": booking.link,
        "reauthorize": booking.reauthorize,
    }


@router.get("/calendar/events", response_model=List[CalendarEvent])
async def list_events(
    session: SessionContext = Depends(get_session),
    store: SessionStore = Depends(get_session_store),
):
    """Events booked in this session, oldest first."""
    return list(store.get(session.session_id).calendar_events)
