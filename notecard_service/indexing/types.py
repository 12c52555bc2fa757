from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import StrEnum
from typing import Any

from notecard_service.models import NoteCard


class TaskKind(StrEnum):
    EXTRACT_NOTE = "extract_note"


class OutcomeStatus(StrEnum):
    COMPLETED = "completed"
    SKIPPED = "skipped"
    FAILED = "failed"


class SkipReason(StrEnum):
    EXCLUDED = "excluded"  # policy-driven skip
    UNCHANGED = "unchanged"  # stored hash matches current content


@dataclass(frozen=True)
class Task:
    id: str  # normalized document path
    kind: TaskKind
    payload: dict[str, Any]
    created_at: datetime


def create_task(path: str, kind: TaskKind = TaskKind.EXTRACT_NOTE) -> Task:
    return Task(
        id=path,
        kind=kind,
        payload={"note_path": path},
        created_at=datetime.now(UTC),
    )


@dataclass(frozen=True)
class TaskResult:
    task_id: str
    success: bool
    result: Any = None
    error: BaseException | None = None

    @property
    def error_message(self) -> str | None:
        if self.error is None:
            return None
        return str(self.error) or type(self.error).__name__


@dataclass(frozen=True)
class QueueStatus:
    total: int
    completed: int
    failed: int
    pending: int
    in_flight: int
    is_running: bool
    is_paused: bool
    is_cancelled: bool


@dataclass(frozen=True)
class AttemptOutcome:
    path: str
    status: OutcomeStatus
    record: NoteCard | None = None
    error: str | None = None
    attempts: int = 0
    skip_reason: SkipReason | None = None

    @property
    def succeeded(self) -> bool:
        return self.status == OutcomeStatus.COMPLETED

    @property
    def skipped(self) -> bool:
        return self.status == OutcomeStatus.SKIPPED

    @property
    def failed(self) -> bool:
        return self.status == OutcomeStatus.FAILED


@dataclass(frozen=True)
class ExtractionError:
    path: str
    message: str
    timestamp: str  # ISO 8601, UTC
    attempts: int
    error_type: str = "extraction"  # extraction|validation|file_operation|llm|unknown


@dataclass(frozen=True)
class IndexErrorEntry:
    path: str
    error: str


@dataclass(frozen=True)
class DryRunNoteResult:
    path: str
    status: OutcomeStatus
    record: NoteCard | None = None
    error: str | None = None
    skip_reason: SkipReason | None = None
    attempts: int = 0


@dataclass
class DryRunSummary:
    total: int = 0
    processed: int = 0
    skipped: int = 0
    failed: int = 0
    cancelled: bool = False
    results: list[DryRunNoteResult] = field(default_factory=list)


@dataclass
class IndexResult:
    total_notes: int = 0
    processed_notes: int = 0
    failed_notes: int = 0
    skipped_notes: int = 0
    pending_notes: int = 0
    errors: list[IndexErrorEntry] = field(default_factory=list)
    cancelled: bool = False

    # Pre-filter counts; not part of total_notes
    scanned_notes: int = 0
    unchanged_notes: int = 0
    excluded_notes: int = 0

    dry_run: DryRunSummary | None = None

    def as_dict(self) -> dict[str, int]:
        return {
            "total": self.total_notes,
            "processed": self.processed_notes,
            "failed": self.failed_notes,
            "skipped": self.skipped_notes,
            "pending": self.pending_notes,
            "scanned": self.scanned_notes,
            "unchanged": self.unchanged_notes,
            "excluded": self.excluded_notes,
        }
