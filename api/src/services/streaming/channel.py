"""
Event Stream Channel

Single-producer / single-consumer channel between the agent loop (producer)
and the SSE response (consumer), on an unbounded asyncio.Queue.

States move OPEN -> CLOSING -> CLOSED only:
- OPEN: send() enqueues
- CLOSING: close() was called; no new events, queued ones still drain
- CLOSED: the consumer saw the end of stream or detached

send() after close is a silent no-op; close() is idempotent. A consumer that
detaches (client disconnect) closes the channel and sets the abort event so
the loop stops before its next iteration.
"""

import asyncio
import logging
from collections.abc import AsyncIterator
from enum import Enum

from src.models.contracts.agent import StreamEvent

logger = logging.getLogger(__name__)

_END_OF_STREAM = object()


class ChannelState(str, Enum):
    OPEN = "open"
    CLOSING = "closing"
    CLOSED = "closed"


class EventChannel:
    """Ordered event channel with an explicit three-state lifecycle."""

    def __init__(self, abort_event: asyncio.Event | None = None):
        self._queue: asyncio.Queue[object] = asyncio.Queue()
        self._state = ChannelState.OPEN
        self.abort_event = abort_event or asyncio.Event()

    @property
    def state(self) -> ChannelState:
        return self._state

    @property
    def is_open(self) -> bool:
        return self._state == ChannelState.OPEN

    def send(self, event: StreamEvent) -> None:
        """Enqueue an event. Ignored once the channel is closing or closed."""
        if self._state != ChannelState.OPEN:
            return
        self._queue.put_nowait(event)

    def close(self) -> None:
        """Stop accepting events; the consumer drains what is queued."""
        if self._state != ChannelState.OPEN:
            return
        self._state = ChannelState.CLOSING
        self._queue.put_nowait(_END_OF_STREAM)

    def detach(self) -> None:
        """Consumer went away: close immediately and signal abort."""
        if self._state != ChannelState.CLOSED:
            logger.info("Stream consumer detached, aborting agent loop")
        self._state = ChannelState.CLOSED
        self.abort_event.set()

    async def __aiter__(self) -> AsyncIterator[StreamEvent]:
        while self._state != ChannelState.CLOSED:
            item = await self._queue.get()
            if item is _END_OF_STREAM:
                self._state = ChannelState.CLOSED
                return
            yield item  # type: ignore[misc]
