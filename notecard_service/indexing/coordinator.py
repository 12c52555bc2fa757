from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence

from notecard_service.indexing.attempt import AttemptSettings, ExtractionAttempt, Sleep
from notecard_service.indexing.change_detector import ChangeDetector
from notecard_service.indexing.config import IndexConfig
from notecard_service.indexing.dry_run import DryRunExecutor
from notecard_service.indexing.errors import ExtractionFailedError
from notecard_service.indexing.events import EventChannel
from notecard_service.indexing.privacy import PrivacyGuard
from notecard_service.indexing.scanner import scan_directories
from notecard_service.indexing.types import (
    AttemptOutcome,
    DryRunSummary,
    IndexErrorEntry,
    IndexResult,
    OutcomeStatus,
    QueueStatus,
    Task,
    create_task,
)
from notecard_service.indexing.worker_pool import WorkerPool
from notecard_service.providers.base import ExtractionProvider
from notecard_service.providers.factory import build_provider
from notecard_service.stores.document_store import DocumentStore, LocalDocumentStore
from notecard_service.stores.error_log import ErrorSink, MarkdownErrorLog
from notecard_service.stores.record_store import JsonRecordStore, RecordStore

logger = logging.getLogger(__name__)

_IDLE_STATUS = QueueStatus(
    total=0,
    completed=0,
    failed=0,
    pending=0,
    in_flight=0,
    is_running=False,
    is_paused=False,
    is_cancelled=False,
)


class IndexHandle:
    """Control surface for one indexing run.

    Wraps the run's worker pool (or dry-run executor) and the task that
    aggregates its results. A handle for an empty run is already finished.
    """

    def __init__(
        self,
        *,
        control: WorkerPool | DryRunExecutor | None = None,
        runner: asyncio.Task[IndexResult] | None = None,
        result: IndexResult | None = None,
    ) -> None:
        self._control = control
        self._runner = runner
        self._result = result

    @classmethod
    def finished(cls, result: IndexResult) -> IndexHandle:
        return cls(result=result)

    @property
    def is_running(self) -> bool:
        return self._control is not None and self._control.is_running and not self.done

    @property
    def is_paused(self) -> bool:
        return self._control is not None and self._control.is_paused

    @property
    def done(self) -> bool:
        return self._runner is None or self._runner.done()

    def pause(self) -> None:
        if self._control is not None:
            self._control.pause()

    def resume(self) -> None:
        if self._control is not None:
            self._control.resume()

    def cancel(self) -> None:
        if self._control is not None:
            self._control.cancel()

    def status(self) -> QueueStatus:
        if self._control is None:
            return _IDLE_STATUS
        return self._control.status()

    async def wait(self) -> IndexResult:
        if self._runner is not None:
            return await self._runner
        assert self._result is not None
        return self._result


class ColdStartCoordinator:
    """Scans the vault, filters unchanged notes and drives extraction."""

    def __init__(
        self,
        *,
        documents: DocumentStore,
        records: RecordStore,
        provider: ExtractionProvider,
        error_sink: ErrorSink,
        settings: AttemptSettings | None = None,
        privacy: PrivacyGuard | None = None,
        concurrency: int = 3,
        dry_run_max_notes: int = 10,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self._documents = documents
        self._records = records
        self._provider = provider
        self._sink = error_sink
        self._settings = settings or AttemptSettings()
        self._privacy = privacy or PrivacyGuard()
        self._concurrency = concurrency
        self._dry_run_max_notes = dry_run_max_notes
        self._sleep = sleep
        self._detector = ChangeDetector(documents, records, privacy=self._privacy)

    def new_attempt(self, path: str, *, persist: bool = True) -> ExtractionAttempt:
        return ExtractionAttempt(
            path,
            documents=self._documents,
            records=self._records,
            provider=self._provider,
            error_sink=self._sink,
            settings=self._settings,
            privacy=self._privacy,
            persist=persist,
            sleep=self._sleep,
        )

    async def _execute(self, task: Task) -> AttemptOutcome:
        outcome = await self.new_attempt(task.payload["note_path"]).run()
        if outcome.failed:
            raise ExtractionFailedError(outcome)
        return outcome

    async def _candidates(
        self, directories: Sequence[str] | None, result: IndexResult
    ) -> list[str]:
        paths = await scan_directories(self._documents, list(directories or []))
        result.scanned_notes = len(paths)

        candidates: list[str] = []
        for path in paths:
            check = await self._detector.check(path)
            if check.needs_processing:
                candidates.append(path)
            elif check.reason == "unchanged":
                result.unchanged_notes += 1
            elif check.reason == "excluded":
                result.excluded_notes += 1
            else:
                logger.debug("Note vanished before filtering: %s", path)

        logger.info(
            "Change detection: %d scanned, %d to process, %d unchanged, %d excluded",
            result.scanned_notes,
            len(candidates),
            result.unchanged_notes,
            result.excluded_notes,
        )
        return candidates

    async def start(
        self,
        directories: Sequence[str] | None = None,
        *,
        dry_run: bool = False,
        max_notes: int = 0,
        concurrency: int | None = None,
        channel: EventChannel | None = None,
    ) -> IndexHandle:
        """Plan the run and start it in the background.

        Setup failures (unreadable vault, invalid concurrency) raise here;
        per-note failures only ever show up in the IndexResult.
        """
        workers = concurrency if concurrency is not None else self._concurrency
        if workers < 1:
            raise ValueError("concurrency must be >= 1")

        result = IndexResult()
        candidates = await self._candidates(directories, result)

        if dry_run:
            cap = max_notes or self._dry_run_max_notes
            candidates = candidates[:cap]
        elif max_notes:
            candidates = candidates[:max_notes]
        result.total_notes = len(candidates)

        if not candidates:
            if dry_run:
                result.dry_run = DryRunSummary()
            logger.info("Nothing to index")
            return IndexHandle.finished(result)

        if dry_run:
            executor = DryRunExecutor(self.new_attempt, channel=channel)
            runner = asyncio.create_task(self._run_dry(executor, candidates, result))
            return IndexHandle(control=executor, runner=runner)

        pool = WorkerPool(self._execute, concurrency=workers, channel=channel)
        pool.enqueue_batch([create_task(p) for p in candidates])
        pool.start()
        runner = asyncio.create_task(self._collect(pool, result))
        return IndexHandle(control=pool, runner=runner)

    async def run(
        self,
        directories: Sequence[str] | None = None,
        *,
        dry_run: bool = False,
        max_notes: int = 0,
        concurrency: int | None = None,
        channel: EventChannel | None = None,
    ) -> IndexResult:
        handle = await self.start(
            directories,
            dry_run=dry_run,
            max_notes=max_notes,
            concurrency=concurrency,
            channel=channel,
        )
        return await handle.wait()

    async def _collect(self, pool: WorkerPool, result: IndexResult) -> IndexResult:
        status = await pool.wait_for_completion()

        for tr in pool.results():
            if tr.success:
                outcome: AttemptOutcome = tr.result
                if outcome.status == OutcomeStatus.SKIPPED:
                    result.skipped_notes += 1
                else:
                    result.processed_notes += 1
            else:
                result.failed_notes += 1
                result.errors.append(
                    IndexErrorEntry(path=tr.task_id, error=tr.error_message or "Unknown error")
                )

        result.pending_notes = status.pending
        result.cancelled = status.is_cancelled
        _log_summary(result)
        return result

    async def _run_dry(
        self, executor: DryRunExecutor, candidates: list[str], result: IndexResult
    ) -> IndexResult:
        summary = await executor.run(candidates)
        result.dry_run = summary
        result.processed_notes = summary.processed
        result.skipped_notes = summary.skipped
        result.failed_notes = summary.failed
        result.pending_notes = result.total_notes - len(summary.results)
        result.cancelled = summary.cancelled
        result.errors = [
            IndexErrorEntry(path=r.path, error=r.error or "Unknown error")
            for r in summary.results
            if r.status == OutcomeStatus.FAILED
        ]
        _log_summary(result)
        return result

    async def aclose(self) -> None:
        await self._provider.aclose()


def _log_summary(result: IndexResult) -> None:
    logger.info(
        "Indexing %s: %s",
        "cancelled" if result.cancelled else "finished",
        result.as_dict(),
    )


def build_coordinator(cfg: IndexConfig) -> ColdStartCoordinator:
    """Wire the filesystem stores and the configured provider."""
    return ColdStartCoordinator(
        documents=LocalDocumentStore(cfg.vault_root),
        records=JsonRecordStore(cfg.index_path),
        provider=build_provider(cfg),
        error_sink=MarkdownErrorLog(cfg.error_log_file),
        settings=AttemptSettings(
            max_retries=cfg.max_retries,
            timeout_seconds=cfg.timeout_seconds,
            retry_base_seconds=cfg.retry_base_seconds,
            temperature=cfg.temperature,
            retry_feedback=cfg.retry_feedback,
        ),
        privacy=PrivacyGuard(
            exclude_directories=cfg.exclude_directories,
            exclude_tags=cfg.exclude_tags,
        ),
        concurrency=cfg.concurrency,
        dry_run_max_notes=cfg.dry_run_max_notes,
    )
