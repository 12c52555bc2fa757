"""Error taxonomy for the indexing engine.

Task-level errors are captured and surfaced through TaskResult / IndexResult.
Only setup failures propagate to the caller of the coordinator.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from notecard_service.indexing.types import AttemptOutcome


class IndexingError(Exception):
    """Base class for indexing engine errors."""


class DocumentNotFoundError(IndexingError):
    """The source document does not exist. Fails one task only."""

    def __init__(self, path: str) -> None:
        super().__init__(f"File not found: {path}")
        self.path = path


class DocumentReadError(IndexingError):
    """The document exists but cannot be read (bad encoding, permissions). Fails one task only."""

    def __init__(self, path: str, reason: str) -> None:
        super().__init__(f"Cannot read {path}: {reason}")
        self.path = path
        self.reason = reason


class ExtractionValidationError(IndexingError):
    """Provider output could not be parsed or failed schema checks. Retryable."""


class ProviderError(IndexingError):
    """Failure talking to an extraction provider.

    ``retryable`` is True for timeouts, transport errors, rate limits and
    server errors; client errors (bad request, auth) are terminal.
    """

    def __init__(
        self,
        message: str,
        *,
        provider: str,
        status_code: int | None = None,
        retryable: bool = False,
    ) -> None:
        super().__init__(message)
        self.provider = provider
        self.status_code = status_code
        self.retryable = retryable


class RetryExhaustedError(IndexingError):
    """Terminal failure once every allowed attempt has been used."""

    def __init__(self, path: str, attempts: int, last_error: str) -> None:
        super().__init__(f"Extraction failed after {attempts} attempts: {last_error}")
        self.path = path
        self.attempts = attempts
        self.last_error = last_error


class RecordSchemaError(IndexingError):
    """A record was rejected by the record schema on write."""


class ExtractionFailedError(IndexingError):
    """Raised by the coordinator's task executor so the pool counts the task as failed."""

    def __init__(self, outcome: AttemptOutcome) -> None:
        super().__init__(outcome.error or "Unknown error")
        self.outcome = outcome


class PoolCancelledError(IndexingError):
    """Operation rejected because the worker pool was cancelled."""


class DuplicateTaskError(IndexingError):
    """A task with the same id is already pending or in flight."""
