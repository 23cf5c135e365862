"""
Tests for the conversation service: buffered and streamed turns.
"""

import asyncio
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest

from voice_agent.core.exceptions import CalendarCreateFailed, CalendarUnauthorized, ProviderUnavailable
from voice_agent.core.intent import Intent
from voice_agent.llm.chain import ProviderChain
from voice_agent.models import ChatMessage, OAuthTokens, RemoteEvent
from voice_agent.services.conversation import INTERRUPTED_NOTICE, ConversationService
from voice_agent.services.stream_relay import StreamSink

from fakes import FakeProvider


def _service(store, clock, *providers, **kwargs):
    return ConversationService(store, ProviderChain(list(providers)), clock=clock, **kwargs)


async def _collect(sink: StreamSink) -> list:
    return [item async for item in sink]


class TestBuildMessages:

    def test_history_verbatim_between_system_and_user(self, store, fixed_clock):
        service = _service(store, fixed_clock)
        history = [
            ChatMessage(role="user", content="hi"),
            ChatMessage(role="assistant", content="hello"),
        ]
        messages = service.build_messages(history, "how are you?", language="fr-FR")

        assert [m.role for m in messages] == ["system", "user", "assistant", "user"]
        assert "fr-FR" in messages[0].content
        assert [m.content for m in messages[1:]] == ["hi", "hello", "how are you?"]

    def test_turn_context_added_as_system(self, store, fixed_clock):
        service = _service(store, fixed_clock)
        messages = service.build_messages([], "hi", turn_context="extra")
        assert [m.role for m in messages] == ["system", "system", "user"]
        assert messages[1].content == "extra"


class TestProcessMessage:

    @pytest.mark.asyncio
    async def test_general_chat_records_pair(self, store, fixed_clock):
        service = _service(store, fixed_clock, FakeProvider("openai", reply="Hi! I'm fine."))

        result = await service.process_message("s1", "how are you?")

        assert result.intent == "general_chat"
        assert result.reply == "Hi! I'm fine."
        assert result.provider == "openai"
        assert result.calendar_url is None
        history = store.get_history("s1")
        assert [(m.role, m.content) for m in history] == [
            ("user", "how are you?"), ("assistant", "Hi! I'm fine."),
        ]

    @pytest.mark.asyncio
    async def test_second_turn_sees_first(self, store, fixed_clock):
        provider = FakeProvider(reply="ok")
        service = _service(store, fixed_clock, provider)

        await service.process_message("s1", "first")
        await service.process_message("s1", "second")

        contents = [m.content for m in provider.last_messages]
        assert contents[1:] == ["first", "ok", "second"]

    @pytest.mark.asyncio
    async def test_session_model_used(self, store, fixed_clock):
        provider = FakeProvider("openai")
        provider.accepts_model_override = True
        service = _service(store, fixed_clock, provider)
        store.set_model("s1", "gpt-4o")

        result = await service.process_message("s1", "hello")

        assert result.model == "gpt-4o"

    @pytest.mark.asyncio
    async def test_calendar_turn_books_event(self, store, fixed_clock):
        service = _service(store, fixed_clock, FakeProvider(reply="Booked!"))

        result = await service.process_message("s1", "book a meeting tomorrow at 3pm")

        assert result.intent == Intent.CREATE_CALENDAR_EVENT.value
        assert "dates=20240102T150000/20240102T160000" in result.calendar_url
        events = store.get("s1").calendar_events
        assert len(events) == 1
        assert events[0].id.startswith("evt_")
        assert events[0].link == result.calendar_url
        assert len(store.get_history("s1")) == 2

    @pytest.mark.asyncio
    async def test_no_providers_uses_canned_reply(self, store, fixed_clock):
        service = _service(store, fixed_clock)

        result = await service.process_message("s1", "schedule a call tomorrow at 2pm")

        assert result.provider == "fallback"
        assert "calendar link" in result.reply
        assert result.calendar_url is not None

    @pytest.mark.asyncio
    async def test_image_turn(self, store, fixed_clock):
        generator = MagicMock()
        generator.generate = AsyncMock(return_value="data:image/png;base64,AAAA")
        service = _service(store, fixed_clock, FakeProvider(reply="A cat."),
                           image_generator=generator)

        result = await service.process_message("s1", "draw a picture of a cat")

        assert result.intent == "create_image"
        assert result.image == "data:image/png;base64,AAAA"
        generator.generate.assert_awaited_once_with("a cat")

    @pytest.mark.asyncio
    async def test_image_failure_is_not_fatal(self, store, fixed_clock):
        generator = MagicMock()
        generator.generate = AsyncMock(side_effect=ProviderUnavailable("image", "HTTP 500"))
        service = _service(store, fixed_clock, FakeProvider(reply="Sorry."),
                           image_generator=generator)

        result = await service.process_message("s1", "draw a picture of a cat")

        assert result.image is None
        assert result.reply == "Sorry."

    @pytest.mark.asyncio
    async def test_process_document(self, store, fixed_clock):
        provider = FakeProvider(reply="It is a short note.")
        service = _service(store, fixed_clock, provider)

        result = await service.process_document("s1", "note.txt", "Buy milk.")

        assert result.intent == "read_document"
        assert result.reply == "It is a short note."
        assert any("Buy milk." in m.content for m in provider.last_messages)
        assert len(store.get_history("s1")) == 2


class TestBookMeeting:

    @pytest.mark.asyncio
    async def test_remote_event_created_with_tokens(self, store, fixed_clock):
        client = MagicMock()
        client.create_remote_event = AsyncMock(return_value=RemoteEvent(
            id="g123", html_link="https://calendar.google.com/event?eid=g123",
            meet_link="https://meet.google.com/abc-defg-hij",
        ))
        store.set_tokens("s1", OAuthTokens(access_token="at"))
        service = _service(store, fixed_clock, calendar_client=client)

        plan = await service.plan_turn("s1", "book a meeting tomorrow at 3pm")

        assert plan.booking.event.remote_id == "g123"
        assert plan.booking.event.meet_link == "https://meet.google.com/abc-defg-hij"
        assert store.get("s1").calendar_events[0].remote_id == "g123"

    @pytest.mark.asyncio
    async def test_no_tokens_skips_remote(self, store, fixed_clock):
        client = MagicMock()
        client.create_remote_event = AsyncMock()
        service = _service(store, fixed_clock, calendar_client=client)

        plan = await service.plan_turn("s1", "book a meeting tomorrow at 3pm")

        client.create_remote_event.assert_not_called()
        assert plan.booking.event.remote_id is None

    @pytest.mark.asyncio
    async def test_rejected_tokens_cleared(self, store, fixed_clock):
        client = MagicMock()
        client.create_remote_event = AsyncMock(side_effect=CalendarUnauthorized("expired"))
        store.set_tokens("s1", OAuthTokens(access_token="at"))
        service = _service(store, fixed_clock, calendar_client=client)

        plan = await service.plan_turn("s1", "book a meeting tomorrow at 3pm")

        assert plan.booking.reauthorize
        assert store.get("s1").auth_tokens is None
        assert plan.booking.to_frame()["reauthorize"] is True
        # The link still works
        assert len(store.get("s1").calendar_events) == 1

    @pytest.mark.asyncio
    async def test_remote_failure_keeps_link(self, store, fixed_clock):
        client = MagicMock()
        client.create_remote_event = AsyncMock(side_effect=CalendarCreateFailed(400, "bad request"))
        store.set_tokens("s1", OAuthTokens(access_token="at"))
        service = _service(store, fixed_clock, calendar_client=client)

        plan = await service.plan_turn("s1", "book a meeting tomorrow at 3pm")

        assert plan.booking.remote_error == "bad request"
        assert store.get("s1").auth_tokens is not None
        assert plan.booking.link.startswith("https://calendar.google.com/calendar/render?")


    @pytest.mark.asyncio
    async def test_expired_tokens_refreshed_before_create(self, store, fixed_clock):
        expired = OAuthTokens(access_token="old", refresh_token="rt",
                              expires_at=datetime.now(timezone.utc) - timedelta(minutes=1))
        fresh = OAuthTokens(access_token="new", refresh_token="rt",
                            expires_at=datetime.now(timezone.utc) + timedelta(hours=1))
        client = MagicMock()
        client.refresh = AsyncMock(return_value=fresh)
        client.create_remote_event = AsyncMock(return_value=RemoteEvent(id="g456"))
        store.set_tokens("s1", expired)
        service = _service(store, fixed_clock, calendar_client=client)

        plan = await service.plan_turn("s1", "book a meeting tomorrow at 3pm")

        client.refresh.assert_awaited_once_with(expired)
        assert client.create_remote_event.call_args[0][1] is fresh
        assert store.get("s1").auth_tokens is fresh
        assert plan.booking.event.remote_id == "g456"
        assert not plan.booking.reauthorize

    @pytest.mark.asyncio
    async def test_refused_refresh_asks_to_reauthorize(self, store, fixed_clock):
        client = MagicMock()
        client.refresh = AsyncMock(side_effect=CalendarUnauthorized("invalid_grant"))
        client.create_remote_event = AsyncMock()
        store.set_tokens("s1", OAuthTokens(
            access_token="old", refresh_token="rt",
            expires_at=datetime.now(timezone.utc) - timedelta(minutes=1),
        ))
        service = _service(store, fixed_clock, calendar_client=client)

        plan = await service.plan_turn("s1", "book a meeting tomorrow at 3pm")

        client.create_remote_event.assert_not_called()
        assert plan.booking.reauthorize
        assert store.get("s1").auth_tokens is None

class TestStreamTurn:

    @pytest.mark.asyncio
    async def test_streams_and_records(self, store, fixed_clock):
        provider = FakeProvider(tokens=["React", "isapopular", "library"])
        service = _service(store, fixed_clock, provider)
        plan = await service.plan_turn("s1", "Tell me about React")
        sink = StreamSink()

        reply = await service.stream_turn("s1", plan, sink)

        assert reply == "React is a popular library"
        assert await _collect(sink) == ["React", " is a popular", " library"]
        assert store.get_history("s1")[-1].content == "React is a popular library"

    @pytest.mark.asyncio
    async def test_calendar_frame_first(self, store, fixed_clock):
        service = _service(store, fixed_clock, FakeProvider(tokens=["Done", "."]))
        plan = await service.plan_turn("s1", "book a meeting tomorrow at 3pm")
        sink = StreamSink()

        await service.stream_turn("s1", plan, sink)
        items = await _collect(sink)

        assert items[0]["type"] == "calendar"
        assert items[0]["url"] == plan.booking.link
        assert items[0]["task"]["date"] == "2024-01-02"
        assert items[0]["task"]["time"] == "15:00"
        assert items[1:] == ["Done", "."]

    @pytest.mark.asyncio
    async def test_model_override(self, store, fixed_clock):
        provider = FakeProvider(tokens=["ok"])
        calls = {}
        original = provider.chat_completion_stream

        def recording(messages, **kwargs):
            calls.update(kwargs)
            return original(messages, **kwargs)

        provider.chat_completion_stream = recording
        service = _service(store, fixed_clock, provider)
        plan = await service.plan_turn("s1", "hi")

        await service.stream_turn("s1", plan, StreamSink(), model_override="gpt-4o")

        assert calls["model"] == "gpt-4o"

    @pytest.mark.asyncio
    async def test_stream_error_sends_error_frame(self, store, fixed_clock):
        service = _service(store, fixed_clock, FakeProvider(stream_status=502))
        plan = await service.plan_turn("s1", "hi")
        sink = StreamSink()

        reply = await service.stream_turn("s1", plan, sink)
        items = await _collect(sink)

        assert reply is None
        assert items[-1]["type"] == "error"
        assert items[-1]["status"] == 502
        assert store.get_history("s1") == []

    @pytest.mark.asyncio
    async def test_interrupted_stream_records_partial(self, store, fixed_clock):
        provider = FakeProvider(tokens=["Hello", " world", " again"], drop_after=2)
        service = _service(store, fixed_clock, provider)
        plan = await service.plan_turn("s1", "hi")
        sink = StreamSink()

        reply = await service.stream_turn("s1", plan, sink)
        items = await _collect(sink)

        assert reply == "Hello world" + INTERRUPTED_NOTICE
        assert items == ["Hello", " world", INTERRUPTED_NOTICE]
        assert store.get_history("s1")[-1].content == reply

    @pytest.mark.asyncio
    async def test_detach_during_stall_records_partial_and_unlocks(self, store, fixed_clock):
        provider = FakeProvider(tokens=["Partial", " reply"], stall_after=1)
        service = _service(store, fixed_clock, provider)
        plan = await service.plan_turn("s1", "hi")
        sink = StreamSink()
        turn = asyncio.create_task(service.stream_turn("s1", plan, sink))

        first = await asyncio.wait_for(sink.__aiter__().__anext__(), timeout=1)
        sink.detach()
        reply = await asyncio.wait_for(turn, timeout=1)

        assert first == "Partial"
        assert reply == "Partial"
        assert provider.stream_closed
        assert not store.lock("s1").locked()
        assert store.get_history("s1")[-1].content == "Partial"

    @pytest.mark.asyncio
    async def test_no_provider_sends_canned_reply(self, store, fixed_clock):
        service = _service(store, fixed_clock)
        plan = await service.plan_turn("s1", "hello")
        sink = StreamSink()

        await service.stream_turn("s1", plan, sink)

        assert await _collect(sink) == ["Hello! How can I help you today?"]
        assert len(store.get_history("s1")) == 2

    @pytest.mark.asyncio
    async def test_image_frame(self, store, fixed_clock):
        generator = MagicMock()
        generator.generate = AsyncMock(return_value="data:image/png;base64,AAAA")
        service = _service(store, fixed_clock, FakeProvider(tokens=["A", " cat"]),
                           image_generator=generator)
        plan = await service.plan_turn("s1", "draw a picture of a cat")
        sink = StreamSink()

        await service.stream_turn("s1", plan, sink)
        items = await _collect(sink)

        assert items[0] == {"type": "image", "content": "data:image/png;base64,AAAA"}
        assert items[1:] == ["A", " cat"]
