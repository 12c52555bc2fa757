"""Fixed-size asyncio worker pool over a single FIFO queue.

Every counter transition happens in synchronous code between awaits, so
``status()`` always satisfies ``total == completed + failed + pending +
in_flight`` no matter when it is observed.

Lifecycle::

    IDLE --start--> RUNNING --pause--> PAUSED --resume--> RUNNING
      |                |                  |
      +-----pause------+------cancel------+--> CANCELLED (terminal)

Cancelling stops dispatch only: in-flight tasks run to completion and
pending tasks stay pending.
"""

from __future__ import annotations

import asyncio
import logging
from collections import deque
from collections.abc import Awaitable, Callable, Iterable
from enum import StrEnum
from typing import Any

from notecard_service.indexing.errors import DuplicateTaskError, PoolCancelledError
from notecard_service.indexing.events import EventChannel, ProgressUpdate, TaskCompleted
from notecard_service.indexing.types import QueueStatus, Task, TaskResult

logger = logging.getLogger(__name__)

TaskExecutor = Callable[[Task], Awaitable[Any]]


class PoolState(StrEnum):
    IDLE = "idle"
    RUNNING = "running"
    PAUSED = "paused"
    CANCELLED = "cancelled"


class WorkerPool:
    def __init__(
        self,
        executor: TaskExecutor,
        *,
        concurrency: int = 3,
        channel: EventChannel | None = None,
    ) -> None:
        if concurrency < 1:
            raise ValueError("concurrency must be >= 1")
        self._executor = executor
        self._concurrency = concurrency
        self._channel = channel

        self._state = PoolState.IDLE
        self._pending: deque[Task] = deque()
        self._in_flight: dict[str, asyncio.Task[None]] = {}
        self._results: list[TaskResult] = []
        self._completed = 0
        self._failed = 0
        self._changed = asyncio.Event()

    # -- introspection ----------------------------------------------------------

    @property
    def state(self) -> PoolState:
        return self._state

    @property
    def concurrency(self) -> int:
        return self._concurrency

    @property
    def is_running(self) -> bool:
        return self._state == PoolState.RUNNING

    @property
    def is_paused(self) -> bool:
        return self._state == PoolState.PAUSED

    @property
    def is_cancelled(self) -> bool:
        return self._state == PoolState.CANCELLED

    def status(self) -> QueueStatus:
        pending = len(self._pending)
        in_flight = len(self._in_flight)
        return QueueStatus(
            total=self._completed + self._failed + pending + in_flight,
            completed=self._completed,
            failed=self._failed,
            pending=pending,
            in_flight=in_flight,
            is_running=self.is_running,
            is_paused=self.is_paused,
            is_cancelled=self.is_cancelled,
        )

    def results(self) -> list[TaskResult]:
        """Results in completion order."""
        return list(self._results)

    # -- queueing -----------------------------------------------------------------

    def enqueue(self, task: Task) -> None:
        self.enqueue_batch([task])

    def enqueue_batch(self, tasks: Iterable[Task]) -> None:
        """Append tasks in order. Rejects the whole batch on any duplicate id."""
        if self.is_cancelled:
            raise PoolCancelledError("cannot enqueue: pool was cancelled")

        batch = list(tasks)
        live = {t.id for t in self._pending} | set(self._in_flight)
        seen: set[str] = set()
        for task in batch:
            if task.id in live or task.id in seen:
                raise DuplicateTaskError(f"task already queued or running: {task.id}")
            seen.add(task.id)

        self._pending.extend(batch)
        logger.debug("Enqueued %d task(s); %d pending", len(batch), len(self._pending))
        self._publish_progress()
        self._dispatch()

    # -- lifecycle ----------------------------------------------------------------

    def start(self) -> None:
        if self.is_cancelled:
            raise PoolCancelledError("cannot start: pool was cancelled")
        if self.is_paused:
            logger.debug("start() while paused; staying paused")
            return
        if self.is_running:
            return
        self._state = PoolState.RUNNING
        logger.info(
            "Worker pool started: %d pending, concurrency=%d",
            len(self._pending),
            self._concurrency,
        )
        self._dispatch()

    def pause(self) -> None:
        if self.is_cancelled or self.is_paused:
            return
        self._state = PoolState.PAUSED
        logger.info("Worker pool paused (%d in flight will finish)", len(self._in_flight))
        self._publish_progress()

    def resume(self) -> None:
        if self.is_cancelled:
            raise PoolCancelledError("cannot resume: pool was cancelled")
        if not self.is_paused:
            return
        self._state = PoolState.RUNNING
        logger.info("Worker pool resumed: %d pending", len(self._pending))
        self._publish_progress()
        self._dispatch()

    def cancel(self) -> None:
        if self.is_cancelled:
            return
        self._state = PoolState.CANCELLED
        logger.info(
            "Worker pool cancelled: %d pending left, %d in flight",
            len(self._pending),
            len(self._in_flight),
        )
        self._publish_progress()
        self._changed.set()

    def set_concurrency(self, concurrency: int) -> None:
        """Change the in-flight limit. Lowering it never interrupts running tasks."""
        if concurrency < 1:
            raise ValueError("concurrency must be >= 1")
        self._concurrency = concurrency
        self._dispatch()

    def _settled(self) -> bool:
        return not self._in_flight and (not self._pending or self.is_cancelled)

    async def wait_for_completion(self) -> QueueStatus:
        while not self._settled():
            self._changed.clear()
            await self._changed.wait()
        return self.status()

    # -- dispatch -------------------------------------------------------------------

    def _dispatch(self) -> None:
        if not self.is_running:
            return
        while self._pending and len(self._in_flight) < self._concurrency:
            task = self._pending.popleft()
            self._in_flight[task.id] = asyncio.create_task(
                self._run_task(task), name=f"notecard:{task.id}"
            )

    async def _run_task(self, task: Task) -> None:
        try:
            value = await self._executor(task)
        except asyncio.CancelledError as e:
            self._finish(task, TaskResult(task_id=task.id, success=False, error=e))
            raise
        except Exception as e:
            self._finish(task, TaskResult(task_id=task.id, success=False, error=e))
        else:
            self._finish(task, TaskResult(task_id=task.id, success=True, result=value))

    def _finish(self, task: Task, result: TaskResult) -> None:
        del self._in_flight[task.id]
        if result.success:
            self._completed += 1
        else:
            self._failed += 1
            logger.debug("Task %s failed: %s", task.id, result.error_message)
        self._results.append(result)

        if self._channel is not None:
            self._channel.publish(TaskCompleted(result))
        self._publish_progress()
        self._changed.set()
        self._dispatch()

    def _publish_progress(self) -> None:
        if self._channel is not None:
            self._channel.publish(ProgressUpdate(self.status()))
