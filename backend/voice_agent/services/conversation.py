"""
Conversation Service - Runs one chat turn end to end.

A turn classifies the utterance, handles the meeting or image side path,
builds the provider context from session history, generates (buffered or
streamed) a reply and records exactly one user/assistant pair.
"""

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, List, Optional

from ..core.exceptions import (
    CalendarCreateFailed,
    CalendarUnauthorized,
    ProviderUnavailable,
    StreamError,
    StreamInterrupted,
)
from ..core.intent import Intent, IntentClassifier
from ..core.meeting_parser import parse_meeting
from ..core.session_store import SessionStore
from ..core.token_repair import normalize_newlines
from ..llm.base import LLMMessage
from ..llm.chain import ProviderChain
from ..models.calendar import CalendarEvent, MeetingRequest
from ..models.chat import ChatMessage
from .calendar import DEFAULT_LINK_BASE, GoogleCalendarClient, build_external_link
from .image import ImageGenerator, extract_image_prompt
from .stream_relay import StreamRelay, StreamSink

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = (
    "You are a friendly voice assistant. Answer in short, natural sentences "
    "that read well aloud. Reply in the language of the locale {language}."
)

INTERRUPTED_NOTICE = " [The response was interrupted. Please try again.]"


@dataclass
class Booking:
    """Outcome of the meeting path of a turn."""
    meeting: MeetingRequest
    event: CalendarEvent
    link: str
    reauthorize: bool = False
    remote_error: Optional[str] = None

    def to_frame(self) -> dict:
        """SSE payload announcing the calendar link."""
        return {
            "type": "calendar",
            "url": self.link,
            "task": {
                "id": self.event.id,
                "title": self.meeting.title,
                "date": self.meeting.date,
                "time": self.meeting.time,
                "notes": self.meeting.notes,
                "htmlLink": self.event.html_link,
                "meetLink": self.event.meet_link,
            },
            "reauthorize": self.reauthorize,
        }


@dataclass
class TurnPlan:
    """Work decided before generation starts."""
    text: str
    intent: Intent
    booking: Optional[Booking] = None


@dataclass
class TurnResult:
    """Outcome of a buffered turn."""
    intent: str
    transcript: str
    reply: str
    provider: str
    model: str
    calendar_url: Optional[str] = None
    image: Optional[str] = None


class ConversationService:
    """
    Coordinates classifier, meeting parser, calendar, image generation,
    provider chain and session memory for one session at a time.
    """

    def __init__(
        self,
        store: SessionStore,
        chain: ProviderChain,
        calendar_client: Optional[GoogleCalendarClient] = None,
        image_generator: Optional[ImageGenerator] = None,
        classifier: Optional[IntentClassifier] = None,
        link_base: str = DEFAULT_LINK_BASE,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.store = store
        self.chain = chain
        self.calendar_client = calendar_client
        self.image_generator = image_generator
        self.classifier = classifier or IntentClassifier()
        self.link_base = link_base
        self.clock = clock or datetime.now

    # ------------------------------------------------------------------
    # Meeting path
    # ------------------------------------------------------------------

    async def book_meeting(self, session_id: str, meeting: MeetingRequest) -> Booking:
        """
        Record a calendar event for ``meeting``.

        The deep link is always produced. When the session holds calendar
        credentials the event is also created remotely, refreshing an expired
        access token first when a refresh token is stored. Credentials that
        cannot be used are cleared and ``reauthorize`` is set.
        """
        link = build_external_link(meeting, self.link_base)
        event = CalendarEvent(
            id=f"evt_{uuid.uuid4().hex[:12]}",
            title=meeting.title,
            date=meeting.date,
            time=meeting.time,
            notes=meeting.notes,
            link=link,
        )
        booking = Booking(meeting=meeting, event=event, link=link)

        tokens = self.store.get(session_id).auth_tokens
        if self.calendar_client is not None and tokens is not None:
            try:
                if tokens.is_expired() and tokens.refresh_token:
                    tokens = await self.calendar_client.refresh(tokens)
                    self.store.set_tokens(session_id, tokens)
                remote = await self.calendar_client.create_remote_event(event, tokens)
                booking.event = event.model_copy(update={
                    "remote_id": remote.id,
                    "html_link": remote.html_link,
                    "meet_link": remote.meet_link,
                })
            except CalendarUnauthorized as e:
                logger.warning(f"Calendar credentials rejected for session {session_id}: {e}")
                self.store.set_tokens(session_id, None)
                booking.reauthorize = True
            except CalendarCreateFailed as e:
                logger.error(f"Remote calendar event failed: {e}")
                booking.remote_error = e.upstream

        self.store.add_event(session_id, booking.event)
        logger.info(
            f"Meeting booked: {meeting.title} on {meeting.date} {meeting.time}",
            extra={"extra_fields": {
                "event_id": booking.event.id,
                "remote": booking.event.remote_id is not None,
            }}
        )
        return booking

    async def plan_turn(self, session_id: str, text: str) -> TurnPlan:
        """Classify ``text`` and run the meeting path before any generation."""
        intent = self.classifier.classify(text)
        booking = None
        if intent is Intent.CREATE_CALENDAR_EVENT:
            booking = await self.book_meeting(session_id, parse_meeting(text, now=self.clock()))
        return TurnPlan(text=text, intent=intent, booking=booking)

    # ------------------------------------------------------------------
    # Context
    # ------------------------------------------------------------------

    def build_messages(
        self,
        history: List[ChatMessage],
        text: str,
        language: Optional[str] = None,
        turn_context: Optional[str] = None,
    ) -> List[LLMMessage]:
        """System prompt, the session history verbatim, then the new user message."""
        messages = [LLMMessage.text("system", SYSTEM_PROMPT.format(language=language or "en-US"))]
        if turn_context:
            messages.append(LLMMessage.text("system", turn_context))
        messages.extend(LLMMessage.text(m.role, m.content) for m in history)
        messages.append(LLMMessage.text("user", text))
        return messages

    @staticmethod
    def _turn_context(plan: TurnPlan, image: Optional[str]) -> Optional[str]:
        if plan.booking is not None:
            meeting = plan.booking.meeting
            context = (
                f"A calendar entry '{meeting.title}' on {meeting.date} at {meeting.time} "
                f"has been prepared and its link shown to the user. Confirm it briefly."
            )
            if plan.booking.event.remote_id:
                context += " It was also added to the user's calendar."
            if plan.booking.reauthorize:
                context += " Calendar access has expired; ask the user to reconnect their calendar."
            elif plan.booking.remote_error:
                context += " Adding it to the calendar directly failed; the link still works."
            return context
        if plan.intent is Intent.CREATE_IMAGE:
            if image:
                return "An image matching the request was generated and shown. Describe it in one sentence."
            return "Image generation is unavailable right now. Apologise briefly."
        return None

    async def _generate_image(self, text: str) -> Optional[str]:
        if self.image_generator is None:
            return None
        try:
            return await self.image_generator.generate(extract_image_prompt(text))
        except ProviderUnavailable as e:
            logger.warning(f"Image generation failed: {e}")
            return None

    # ------------------------------------------------------------------
    # Turns
    # ------------------------------------------------------------------

    async def process_message(self, session_id: str, text: str) -> TurnResult:
        """Run a buffered turn and record it in session memory."""
        logger.info(f"Processing message for session {session_id}: {text[:100]}")
        plan = await self.plan_turn(session_id, text)

        async with self.store.lock(session_id):
            image = await self._generate_image(text) if plan.intent is Intent.CREATE_IMAGE else None
            messages = self.build_messages(
                self.store.get_history(session_id), text,
                turn_context=self._turn_context(plan, image),
            )
            reply = await self.chain.reply(messages, model=self.store.get_model(session_id))
            self.store.append_turn(session_id, text, reply.text)

        return TurnResult(
            intent=plan.intent.value,
            transcript=text,
            reply=reply.text,
            provider=reply.provider,
            model=reply.model,
            calendar_url=plan.booking.link if plan.booking else None,
            image=image,
        )

    async def process_document(self, session_id: str, filename: str, document_text: str) -> TurnResult:
        """Summarize an uploaded document as a buffered turn."""
        user_text = f"Please summarize the document '{filename}'."
        async with self.store.lock(session_id):
            messages = self.build_messages(
                self.store.get_history(session_id), user_text,
                turn_context=f"Document '{filename}' contents:\n{document_text}",
            )
            reply = await self.chain.reply(messages, model=self.store.get_model(session_id))
            self.store.append_turn(session_id, user_text, reply.text)

        return TurnResult(
            intent=Intent.READ_DOCUMENT.value,
            transcript=user_text,
            reply=reply.text,
            provider=reply.provider,
            model=reply.model,
        )

    async def stream_turn(
        self,
        session_id: str,
        plan: TurnPlan,
        sink: StreamSink,
        language: str = "en-US",
        model_override: Optional[str] = None,
    ) -> Optional[str]:
        """
        Run a streamed turn into ``sink``; the sink is always finished on return.

        Returns the recorded assistant text, or None when the stream could
        not start (an error frame is sent and nothing is recorded).
        """
        try:
            if plan.booking is not None:
                await sink.send(plan.booking.to_frame())

            async with self.store.lock(session_id):
                image = None
                if plan.intent is Intent.CREATE_IMAGE:
                    image = await self._generate_image(plan.text)
                    if image:
                        await sink.send({"type": "image", "content": image})

                messages = self.build_messages(
                    self.store.get_history(session_id), plan.text, language,
                    turn_context=self._turn_context(plan, image),
                )
                model = model_override or self.store.get_model(session_id)
                reply_text = await self._relay(messages, sink, model)
                if reply_text is not None:
                    self.store.append_turn(session_id, plan.text, reply_text)
                return reply_text
        except Exception as e:
            logger.error(
                f"Stream turn failed for session {session_id}: {str(e)}",
                exc_info=True,
                extra={"extra_fields": {"session_id": session_id, "error": str(e)}}
            )
            await sink.send({"type": "error", "error": str(e)})
            return None
        finally:
            sink.finish()

    async def _relay(self, messages: List[LLMMessage], sink: StreamSink, model: str) -> Optional[str]:
        provider = self.chain.streaming_provider()
        if provider is None:
            reply = await self.chain.reply(messages, model=model)
            text = normalize_newlines(reply.text)
            await sink.send(text)
            return text

        relay = StreamRelay(provider, self.chain.temperature, self.chain.max_tokens)
        try:
            return await relay.stream_reply(messages, sink, model=model)
        except StreamError as e:
            logger.error(f"Stream could not start: {e}")
            await sink.send({"type": "error", "error": e.message, "status": e.status})
            return None
        except StreamInterrupted as e:
            await sink.send(INTERRUPTED_NOTICE)
            return e.partial_text + INTERRUPTED_NOTICE
