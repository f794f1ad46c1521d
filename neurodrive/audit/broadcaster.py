from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from typing import AsyncIterator

from neurodrive.core.logging import get_logger

from .models import LogEntry

logger = get_logger(name=__name__)


class LogSubscription:
    """Async iterator over entries published after the subscription opened."""

    def __init__(self, queue: asyncio.Queue[LogEntry]) -> None:
        self._queue = queue

    def __aiter__(self) -> "LogSubscription":
        return self

    async def __anext__(self) -> LogEntry:
        return await self._queue.get()

    async def get(self, timeout: float | None = None) -> LogEntry:
        if timeout is None:
            return await self._queue.get()
        return await asyncio.wait_for(self._queue.get(), timeout=timeout)

    def pending(self) -> int:
        return self._queue.qsize()


class LogBroadcaster:
    """Fan newly appended entries out to live subscribers.

    Queues are bounded; when a subscriber falls behind its oldest buffered entry
    is dropped so publishing never blocks the writer.
    """

    def __init__(self, queue_size: int = 256) -> None:
        self._queue_size = max(1, queue_size)
        self._queues: set[asyncio.Queue[LogEntry]] = set()

    @property
    def subscriber_count(self) -> int:
        return len(self._queues)

    def publish(self, entry: LogEntry) -> None:
        for queue in list(self._queues):
            if queue.full():
                try:
                    queue.get_nowait()
                except asyncio.QueueEmpty:  # pragma: no cover - raced with consumer
                    pass
                logger.debug("war_room_subscriber_lagging", dropped=1)
            queue.put_nowait(entry)

    @asynccontextmanager
    async def subscribe(self) -> AsyncIterator[LogSubscription]:
        queue: asyncio.Queue[LogEntry] = asyncio.Queue(maxsize=self._queue_size)
        self._queues.add(queue)
        try:
            yield LogSubscription(queue)
        finally:
            self._queues.discard(queue)
