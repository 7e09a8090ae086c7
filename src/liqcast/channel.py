"""Bounded one-way channel carrying adapter output to the supervisor.

Adapters call :meth:`AdapterChannel.publish`, which never blocks. When the
buffer is full the channel applies its overflow policy:

``"drop_oldest"`` - discard the oldest buffered message and accept the new one.

``"drop_newest"`` - reject the incoming message.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import AsyncIterator, Union

from .errors import ChannelClosedError
from .events import NormalizedEvent

logger = logging.getLogger(__name__)

OVERFLOW_POLICIES = {"drop_oldest", "drop_newest"}


@dataclass(frozen=True, slots=True)
class AdapterLog:
    exchange: str
    level: int
    message: str


@dataclass(frozen=True, slots=True)
class AdapterEvent:
    event: NormalizedEvent
    rendered_text: str

    @property
    def exchange(self) -> str:
        return self.event.exchange


AdapterMessage = Union[AdapterLog, AdapterEvent]


class AdapterChannel:
    """Bounded buffer of :data:`AdapterMessage` with a drop policy."""

    def __init__(self, maxsize: int = 1000, overflow: str = "drop_oldest") -> None:
        if overflow not in OVERFLOW_POLICIES:
            raise ValueError(f"overflow must be one of {sorted(OVERFLOW_POLICIES)}, got {overflow!r}")
        if maxsize <= 0:
            raise ValueError(f"maxsize must be positive, got {maxsize}")
        self._queue: asyncio.Queue[AdapterMessage | None] = asyncio.Queue(maxsize=maxsize)
        self._drop_oldest = overflow == "drop_oldest"
        self._closed = False
        self.dropped = 0

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def depth(self) -> int:
        return self._queue.qsize()

    def publish(self, message: AdapterMessage) -> bool:
        """Hand ``message`` over without waiting.

        Returns ``True`` when the message was buffered, ``False`` when it was
        dropped by the overflow policy.
        """
        if self._closed:
            raise ChannelClosedError("adapter channel is closed")

        try:
            self._queue.put_nowait(message)
            return True
        except asyncio.QueueFull:
            self.dropped += 1

        if not self._drop_oldest:
            return False

        try:
            self._queue.get_nowait()
        except asyncio.QueueEmpty:
            pass
        try:
            self._queue.put_nowait(message)
        except asyncio.QueueFull:
            return False
        return True

    async def get(self) -> AdapterMessage | None:
        """Next message, or ``None`` once the channel is closed and drained."""
        if self._closed and self._queue.empty():
            return None
        item = await self._queue.get()
        if item is None:
            # keep the close marker for other consumers
            self._queue.put_nowait(None)
        return item

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        try:
            self._queue.put_nowait(None)
        except asyncio.QueueFull:
            try:
                self._queue.get_nowait()
            except asyncio.QueueEmpty:
                pass
            self._queue.put_nowait(None)

    async def __aiter__(self) -> AsyncIterator[AdapterMessage]:
        while True:
            item = await self.get()
            if item is None:
                return
            yield item
