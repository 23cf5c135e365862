"""Services module - conversation orchestration and external collaborators."""

from typing import Optional

from ..config import settings
from ..core.session_store import get_session_store
from ..llm.factory import build_provider_chain
from .calendar import GoogleCalendarClient, build_external_link
from .conversation import ConversationService, TurnPlan, TurnResult
from .image import ImageGenerator
from .stream_relay import StreamRelay, StreamSink
from .transcription import TranscriptionService, get_transcription_service

_conversation_service: Optional[ConversationService] = None
_calendar_client: Optional[GoogleCalendarClient] = None


def get_calendar_client() -> GoogleCalendarClient:
    """Get the process-wide Google Calendar client."""
    global _calendar_client
    if _calendar_client is None:
        _calendar_client = GoogleCalendarClient(
            client_id=settings.google_client_id,
            client_secret=settings.google_client_secret,
            redirect_uri=settings.google_redirect_uri,
            calendar_id=settings.google_calendar_id,
            time_zone=settings.calendar_timezone,
        )
    return _calendar_client


def get_conversation_service() -> ConversationService:
    """Get the process-wide conversation service, built from settings on first use."""
    global _conversation_service
    if _conversation_service is None:
        _conversation_service = ConversationService(
            store=get_session_store(),
            chain=build_provider_chain(settings),
            calendar_client=get_calendar_client(),
            image_generator=ImageGenerator(settings.image_endpoint_template, settings.image_timeout),
            link_base=settings.calendar_link_base,
        )
    return _conversation_service


__all__ = [
    'ConversationService', 'TurnPlan', 'TurnResult',
    'GoogleCalendarClient', 'build_external_link',
    'ImageGenerator', 'StreamRelay', 'StreamSink',
    'TranscriptionService', 'get_transcription_service',
    'get_calendar_client', 'get_conversation_service',
]
