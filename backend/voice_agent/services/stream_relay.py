"""
Stream Relay - Forwards a live provider token stream to a client sink.

The provider connection produces raw tokens, ``TokenRepairer`` transforms
them, and a ``StreamSink`` carries the repaired fragments to the consumer.
A consumer that goes away detaches the sink. A pending upstream read is
cancelled at once, so a stalled provider never keeps the connection (or
the session lock held by the turn) beyond the detach.
"""

import asyncio
import logging
from typing import Any, AsyncIterator, List, Optional, Union

from ..core.exceptions import ProviderUnavailable, StreamError, StreamInterrupted
from ..core.token_repair import TokenRepairer
from ..llm.base import LLMMessage, LLMProvider

logger = logging.getLogger(__name__)

SinkItem = Union[str, dict]

_END = object()


class StreamSink:
    """
    One-way channel of reply fragments (str) and tagged events (dict).

    The producer calls ``send`` and finally ``finish``; the consumer
    iterates with ``async for`` and calls ``detach`` if it stops early.
    """

    def __init__(self):
        self._queue: "asyncio.Queue[Any]" = asyncio.Queue()
        self.detached = False
        self.finished = False
        self._detach_event = asyncio.Event()

    @property
    def closed(self) -> bool:
        return self.detached or self.finished

    async def send(self, item: SinkItem) -> bool:
        """Queue ``item``; returns False when the sink no longer accepts items."""
        if self.closed:
            return False
        await self._queue.put(item)
        return True

    def finish(self) -> None:
        if not self.finished:
            self.finished = True
            self._queue.put_nowait(_END)

    def detach(self) -> None:
        self.detached = True
        self._detach_event.set()

    async def wait_detached(self) -> None:
        await self._detach_event.wait()

    def __aiter__(self) -> AsyncIterator[SinkItem]:
        return self._iterate()

    async def _iterate(self) -> AsyncIterator[SinkItem]:
        while True:
            item = await self._queue.get()
            if item is _END:
                return
            yield item


async def _next_token(stream: AsyncIterator[str], sink: StreamSink) -> Optional[str]:
    """
    Next upstream token, or None at end of stream or once the sink detaches.

    A read still pending at detach is cancelled, which unwinds the
    provider generator and its HTTP connection.
    """
    read = asyncio.ensure_future(stream.__anext__())
    detached = asyncio.ensure_future(sink.wait_detached())
    try:
        await asyncio.wait({read, detached}, return_when=asyncio.FIRST_COMPLETED)
    finally:
        detached.cancel()
        if not read.done():
            read.cancel()
            await asyncio.wait({read})

    if read.cancelled():
        return None
    try:
        return read.result()
    except StopAsyncIteration:
        return None


class StreamRelay:
    """Relays one provider stream through token repair into a sink."""

    def __init__(
        self,
        provider: LLMProvider,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
    ):
        self.provider = provider
        self.temperature = temperature
        self.max_tokens = max_tokens

    async def stream_reply(
        self,
        messages: List[LLMMessage],
        sink: StreamSink,
        model: Optional[str] = None,
    ) -> str:
        """
        Stream a reply into ``sink`` and return the full forwarded text.

        Raises:
            StreamError: The stream could not start; nothing was forwarded
            StreamInterrupted: The connection failed after forwarding began;
                ``partial_text`` holds what the client already has
        """
        repairer = TokenRepairer()
        forwarded = 0
        stream = self.provider.chat_completion_stream(
            messages, temperature=self.temperature, max_tokens=self.max_tokens, model=model
        )

        try:
            while not sink.closed:
                token = await _next_token(stream, sink)
                if token is None:
                    break
                fragment = repairer.feed(token)
                if fragment and await sink.send(fragment):
                    forwarded += 1
        except ProviderUnavailable as e:
            if forwarded == 0:
                raise StreamError(None, str(e), provider=self.provider.name) from e
            logger.warning(
                f"Stream from {self.provider.name} interrupted after {forwarded} fragments: {e}"
            )
            raise StreamInterrupted(repairer.text, str(e)) from e
        finally:
            await stream.aclose()

        if sink.detached:
            logger.info(
                f"Sink detached after {forwarded} fragments, closed {self.provider.name} stream"
            )
        logger.debug(
            f"Relay finished: provider={self.provider.name}, fragments={forwarded}, "
            f"length={len(repairer.text)}"
        )
        return repairer.text
