"""Bounded progress channel between the worker pool and its host.

Producers never block: when the channel is full the oldest queued event
is discarded to make room and counted in ``dropped``.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator
from dataclasses import dataclass

from notecard_service.indexing.types import QueueStatus, TaskResult

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TaskCompleted:
    result: TaskResult


@dataclass(frozen=True)
class ProgressUpdate:
    status: QueueStatus


Event = TaskCompleted | ProgressUpdate

_CLOSED = object()


class EventChannel:
    def __init__(self, maxsize: int = 256) -> None:
        if maxsize < 1:
            raise ValueError("maxsize must be >= 1")
        self._queue: asyncio.Queue[object] = asyncio.Queue(maxsize=maxsize)
        self._closed = False
        self.dropped = 0

    @property
    def closed(self) -> bool:
        return self._closed

    def qsize(self) -> int:
        return self._queue.qsize()

    def publish(self, event: Event) -> None:
        if self._closed:
            return
        self._put(event)

    def _put(self, item: object) -> None:
        while True:
            try:
                self._queue.put_nowait(item)
                return
            except asyncio.QueueFull:
                self._queue.get_nowait()
                self.dropped += 1
                if self.dropped == 1 or self.dropped % 100 == 0:
                    logger.warning("Event channel full; dropped %d events so far", self.dropped)

    def close(self) -> None:
        """Stop accepting events; iteration ends after the queued ones are drained."""
        if self._closed:
            return
        self._closed = True
        self._put(_CLOSED)

    async def get(self) -> Event | None:
        item = await self._queue.get()
        if item is _CLOSED:
            return None
        return item  # type: ignore[return-value]

    def __aiter__(self) -> AsyncIterator[Event]:
        return self._iterate()

    async def _iterate(self) -> AsyncIterator[Event]:
        while True:
            event = await self.get()
            if event is None:
                return
            yield event
