"""Sequential preview run: extracts notes without persisting anything."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable

from notecard_service.indexing.attempt import ExtractionAttempt
from notecard_service.indexing.errors import ExtractionFailedError
from notecard_service.indexing.events import EventChannel, ProgressUpdate, TaskCompleted
from notecard_service.indexing.types import (
    DryRunNoteResult,
    DryRunSummary,
    OutcomeStatus,
    QueueStatus,
    TaskResult,
)

logger = logging.getLogger(__name__)

AttemptFactory = Callable[..., ExtractionAttempt]


class DryRunExecutor:
    """Runs each note through the normal attempt with ``persist=False``.

    No card is written and nothing is appended to the error log. Pause and
    cancel take effect between notes.
    """

    def __init__(
        self, attempt_factory: AttemptFactory, *, channel: EventChannel | None = None
    ) -> None:
        self._factory = attempt_factory
        self._channel = channel
        self._gate = asyncio.Event()
        self._gate.set()
        self._cancelled = False
        self._running = False
        self._summary = DryRunSummary()
        self._in_flight = 0

    @property
    def is_running(self) -> bool:
        return self._running and self._gate.is_set()

    @property
    def is_paused(self) -> bool:
        return not self._gate.is_set() and not self._cancelled

    def pause(self) -> None:
        if not self._cancelled:
            self._gate.clear()

    def resume(self) -> None:
        self._gate.set()

    def cancel(self) -> None:
        self._cancelled = True
        self._gate.set()

    def status(self) -> QueueStatus:
        s = self._summary
        done = s.processed + s.skipped + s.failed
        return QueueStatus(
            total=s.total,
            completed=s.processed + s.skipped,
            failed=s.failed,
            pending=s.total - done - self._in_flight,
            in_flight=self._in_flight,
            is_running=self.is_running,
            is_paused=self.is_paused,
            is_cancelled=self._cancelled,
        )

    async def run(self, paths: list[str]) -> DryRunSummary:
        summary = self._summary = DryRunSummary(total=len(paths))
        self._running = True
        logger.info("[DRY-RUN] previewing %d note(s)", len(paths))
        try:
            for path in paths:
                await self._gate.wait()
                if self._cancelled:
                    summary.cancelled = True
                    break

                self._in_flight = 1
                outcome = await self._factory(path, persist=False).run()
                self._in_flight = 0

                note = DryRunNoteResult(
                    path=path,
                    status=outcome.status,
                    record=outcome.record,
                    error=outcome.error,
                    skip_reason=outcome.skip_reason,
                    attempts=outcome.attempts,
                )
                summary.results.append(note)
                if outcome.status == OutcomeStatus.COMPLETED:
                    summary.processed += 1
                elif outcome.status == OutcomeStatus.SKIPPED:
                    summary.skipped += 1
                else:
                    summary.failed += 1
                self._publish(
                    TaskResult(
                        task_id=path,
                        success=not outcome.failed,
                        result=note,
                        error=ExtractionFailedError(outcome) if outcome.failed else None,
                    )
                )
        finally:
            self._running = False
            self._in_flight = 0

        log_report(summary)
        return summary

    def _publish(self, result: TaskResult) -> None:
        if self._channel is None:
            return
        self._channel.publish(TaskCompleted(result))
        self._channel.publish(ProgressUpdate(self.status()))


def format_report(summary: DryRunSummary) -> str:
    lines = [
        "Dry-run report",
        f"  notes: {summary.total}  extracted: {summary.processed}  "
        f"skipped: {summary.skipped}  failed: {summary.failed}"
        + ("  (cancelled)" if summary.cancelled else ""),
    ]
    for r in summary.results:
        if r.status == OutcomeStatus.COMPLETED and r.record is not None:
            skills = ", ".join(t.name for t in r.record.tech_stack) or "-"
            lines.append(f"  [ok]   {r.path} ({r.record.type}) skills: {skills}")
        elif r.status == OutcomeStatus.SKIPPED:
            lines.append(f"  [skip] {r.path} ({r.skip_reason})")
        else:
            lines.append(f"  [fail] {r.path} after {r.attempts} attempt(s): {r.error}")
    return "\n".join(lines)


def log_report(summary: DryRunSummary) -> None:
    logger.info("%s", format_report(summary))
