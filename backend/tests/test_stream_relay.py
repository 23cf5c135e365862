"""
Unit tests for the stream relay and its sink.
"""

import asyncio

import pytest

from voice_agent.core.exceptions import StreamError, StreamInterrupted
from voice_agent.llm.base import LLMMessage
from voice_agent.services.stream_relay import StreamRelay, StreamSink

from fakes import FakeProvider

MESSAGES = [LLMMessage.text("user", "Tell me about React")]


async def _drain(sink: StreamSink) -> list:
    sink.finish()
    return [item async for item in sink]


class DetachingSink(StreamSink):
    """Sink whose consumer walks away after ``limit`` items."""

    def __init__(self, limit: int):
        super().__init__()
        self.limit = limit
        self.received = []

    async def send(self, item) -> bool:
        accepted = await super().send(item)
        if accepted:
            self.received.append(item)
            if len(self.received) >= self.limit:
                self.detach()
        return accepted


class TestStreamSink:

    @pytest.mark.asyncio
    async def test_items_in_order_then_end(self):
        sink = StreamSink()
        assert await sink.send("a")
        assert await sink.send({"type": "calendar"})
        assert await _drain(sink) == ["a", {"type": "calendar"}]

    @pytest.mark.asyncio
    async def test_send_after_finish_rejected(self):
        sink = StreamSink()
        sink.finish()
        assert sink.closed
        assert not await sink.send("late")

    @pytest.mark.asyncio
    async def test_send_after_detach_rejected(self):
        sink = StreamSink()
        sink.detach()
        assert not await sink.send("nobody listening")

    @pytest.mark.asyncio
    async def test_finish_idempotent(self):
        sink = StreamSink()
        sink.finish()
        sink.finish()
        assert [item async for item in sink] == []


class TestStreamRelay:

    @pytest.mark.asyncio
    async def test_repairs_and_forwards_tokens(self):
        provider = FakeProvider(tokens=["React", "isapopular", "library"])
        sink = StreamSink()

        text = await StreamRelay(provider).stream_reply(MESSAGES, sink)

        assert text == "React is a popular library"
        assert await _drain(sink) == ["React", " is a popular", " library"]
        assert provider.stream_closed

    @pytest.mark.asyncio
    async def test_fragments_concatenate_to_text(self):
        provider = FakeProvider(tokens=["Line", " one\nLine", " two"])
        sink = StreamSink()

        text = await StreamRelay(provider).stream_reply(MESSAGES, sink)
        fragments = await _drain(sink)

        assert "".join(fragments) == text
        assert all("\n" not in f for f in fragments)

    @pytest.mark.asyncio
    async def test_error_status_before_first_token(self):
        provider = FakeProvider(stream_status=500)
        sink = StreamSink()

        with pytest.raises(StreamError) as exc_info:
            await StreamRelay(provider).stream_reply(MESSAGES, sink)

        assert exc_info.value.status == 500
        assert await _drain(sink) == []

    @pytest.mark.asyncio
    async def test_transport_failure_before_first_token(self):
        provider = FakeProvider(tokens=["Hello"], drop_after=0)

        with pytest.raises(StreamError) as exc_info:
            await StreamRelay(provider).stream_reply(MESSAGES, StreamSink())

        assert exc_info.value.status is None
        assert exc_info.value.provider == "fake"

    @pytest.mark.asyncio
    async def test_transport_failure_after_tokens(self):
        provider = FakeProvider(tokens=["Hello", " world", " again"], drop_after=2)
        sink = StreamSink()

        with pytest.raises(StreamInterrupted) as exc_info:
            await StreamRelay(provider).stream_reply(MESSAGES, sink)

        assert exc_info.value.partial_text == "Hello world"
        assert await _drain(sink) == ["Hello", " world"]

    @pytest.mark.asyncio
    async def test_detached_consumer_stops_stream(self):
        provider = FakeProvider(tokens=["one", " two", " three", " four", " five"])
        sink = DetachingSink(limit=2)

        text = await StreamRelay(provider).stream_reply(MESSAGES, sink)

        assert sink.received == ["one", " two"]
        assert text == "one two"
        assert provider.tokens_yielded == 2
        assert provider.stream_closed

    @pytest.mark.asyncio
    async def test_detach_releases_stalled_upstream(self):
        provider = FakeProvider(tokens=["one", " two"], stall_after=1)
        sink = StreamSink()
        relay = asyncio.create_task(StreamRelay(provider).stream_reply(MESSAGES, sink))

        first = await asyncio.wait_for(sink.__aiter__().__anext__(), timeout=1)
        sink.detach()
        text = await asyncio.wait_for(relay, timeout=1)

        assert first == "one"
        assert text == "one"
        assert provider.stream_closed

    @pytest.mark.asyncio
    async def test_detach_before_first_token(self):
        provider = FakeProvider(tokens=["one"], stall_after=0)
        sink = StreamSink()
        relay = asyncio.create_task(StreamRelay(provider).stream_reply(MESSAGES, sink))

        await asyncio.sleep(0.01)
        sink.detach()
        text = await asyncio.wait_for(relay, timeout=1)

        assert text == ""
        assert provider.stream_closed

    @pytest.mark.asyncio
    async def test_model_forwarded(self):
        provider = FakeProvider()
        calls = {}
        original = provider.chat_completion_stream

        def recording(messages, **kwargs):
            calls.update(kwargs)
            return original(messages, **kwargs)

        provider.chat_completion_stream = recording
        await StreamRelay(provider, temperature=0.3, max_tokens=99).stream_reply(
            MESSAGES, StreamSink(), model="gpt-4o"
        )

        assert calls == {"temperature": 0.3, "max_tokens": 99, "model": "gpt-4o"}
