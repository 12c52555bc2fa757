"""Per-note extraction as an explicit state machine.

    START -> BUILD_REQUEST -> CALL_PROVIDER -> VALIDATE -> SUCCESS
                                  ^               |
                                  |               v
                                RETRY <-------- (retryable failure)
                                  |
                                  v
                                FAILED

``START`` may also end in SKIPPED (excluded or unchanged note) or FAILED
(note missing or unreadable). Each step returns the next state; ``run`` loops
until a terminal state and then commits the outcome: one record write on
success, one error-log entry on failure, neither when ``persist`` is False.
An unexpected exception inside a step ends the attempt in FAILED as well.
"""

from __future__ import annotations

import asyncio
import logging
import random
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, replace
from datetime import UTC, date, datetime
from enum import StrEnum

from pydantic import ValidationError

from notecard_service.config import (
    CURRENT_SCHEMA_VERSION,
    NOTECARD_BACKOFF_CAP_SECONDS,
    NOTECARD_BACKOFF_JITTER,
)
from notecard_service.indexing.errors import (
    DocumentNotFoundError,
    DocumentReadError,
    ExtractionValidationError,
    ProviderError,
    RecordSchemaError,
    RetryExhaustedError,
)
from notecard_service.indexing.hashing import content_hash
from notecard_service.indexing.privacy import PrivacyGuard, extract_tags
from notecard_service.indexing.prompts import build_note_prompt, with_retry_feedback
from notecard_service.indexing.types import (
    AttemptOutcome,
    ExtractionError,
    OutcomeStatus,
    SkipReason,
)
from notecard_service.models import NoteCard, NoteCardExtraction
from notecard_service.providers.base import ExtractionProvider, ExtractionRequest, validate_output
from notecard_service.stores.document_store import DocumentStore
from notecard_service.stores.error_log import ErrorSink
from notecard_service.stores.record_store import RecordStore

logger = logging.getLogger(__name__)

Sleep = Callable[[float], Awaitable[None]]


class AttemptState(StrEnum):
    START = "start"
    BUILD_REQUEST = "build_request"
    CALL_PROVIDER = "call_provider"
    VALIDATE = "validate"
    RETRY = "retry"
    SUCCESS = "success"
    SKIPPED = "skipped"
    FAILED = "failed"


_TERMINAL = frozenset({AttemptState.SUCCESS, AttemptState.SKIPPED, AttemptState.FAILED})


@dataclass(frozen=True)
class AttemptSettings:
    max_retries: int = 3
    timeout_seconds: float = 30.0
    retry_base_seconds: float = 1.0
    backoff_cap_seconds: float = NOTECARD_BACKOFF_CAP_SECONDS
    jitter: float = NOTECARD_BACKOFF_JITTER
    temperature: float = 0.7
    retry_feedback: bool = False

    def backoff_delay(self, attempt: int, rand: Callable[[], float] = random.random) -> float:
        """Delay before the retry that follows call number ``attempt`` (1-indexed)."""
        raw = self.retry_base_seconds * (2 ** max(attempt - 1, 0))
        jittered = raw * (1 + self.jitter * (2 * rand() - 1))
        return max(0.0, min(self.backoff_cap_seconds, jittered))


def _utc_timestamp() -> str:
    return datetime.now(UTC).isoformat(timespec="milliseconds").replace("+00:00", "Z")


class ExtractionAttempt:
    def __init__(
        self,
        path: str,
        *,
        documents: DocumentStore,
        records: RecordStore,
        provider: ExtractionProvider,
        error_sink: ErrorSink,
        settings: AttemptSettings | None = None,
        privacy: PrivacyGuard | None = None,
        persist: bool = True,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self.path = path
        self._documents = documents
        self._records = records
        self._provider = provider
        self._sink = error_sink
        self._settings = settings or AttemptSettings()
        self._privacy = privacy or PrivacyGuard()
        self._persist = persist
        self._sleep = sleep

        self.state = AttemptState.START
        self.attempts = 0
        self._content = ""
        self._hash = ""
        self._base_request: ExtractionRequest | None = None
        self._request: ExtractionRequest | None = None
        self._raw = ""
        self._record: NoteCard | None = None
        self._last_error = ""
        self._error_type = "unknown"
        self._retry_with_feedback = False
        self._skip_reason: SkipReason | None = None
        self._exhausted = False

    async def run(self) -> AttemptOutcome:
        steps = {
            AttemptState.START: self._start,
            AttemptState.BUILD_REQUEST: self._build_request,
            AttemptState.CALL_PROVIDER: self._call_provider,
            AttemptState.VALIDATE: self._validate,
            AttemptState.RETRY: self._retry,
        }
        while self.state not in _TERMINAL:
            try:
                self.state = await steps[self.state]()
            except Exception as e:
                logger.exception("Unexpected error in %s for %s", self.state, self.path)
                self.state = self._fail(f"{type(e).__name__}: {e}", "unknown")

        if self.state == AttemptState.SUCCESS:
            return await self._commit_success()
        if self.state == AttemptState.SKIPPED:
            logger.debug("Skipped %s (%s)", self.path, self._skip_reason)
            return AttemptOutcome(
                path=self.path,
                status=OutcomeStatus.SKIPPED,
                attempts=self.attempts,
                skip_reason=self._skip_reason,
            )
        return await self._commit_failure()

    # -- steps ----------------------------------------------------------------

    async def _start(self) -> AttemptState:
        try:
            self._content = await self._documents.read(self.path)
        except (DocumentNotFoundError, DocumentReadError) as e:
            return self._fail(str(e), "file_operation")

        if self._privacy.should_exclude(self.path, extract_tags(self._content)):
            self._skip_reason = SkipReason.EXCLUDED
            return AttemptState.SKIPPED

        self._hash = content_hash(self._content)
        try:
            stored = await self._records.read_record(self.path)
        except RecordSchemaError as e:
            logger.warning("Replacing unreadable card for %s: %s", self.path, e)
            stored = None
        if stored is not None and stored.hash == self._hash:
            self._skip_reason = SkipReason.UNCHANGED
            return AttemptState.SKIPPED

        return AttemptState.BUILD_REQUEST

    async def _build_request(self) -> AttemptState:
        content = self._privacy.filter_pii(self._content, external=self._provider.tag.is_external)
        prompt = build_note_prompt(
            note_path=self.path,
            note_content=content,
            content_hash=self._hash,
            current_date=date.today().isoformat(),
        )
        self._base_request = ExtractionRequest(
            note_path=self.path, prompt=prompt, temperature=self._settings.temperature
        )
        self._request = self._base_request
        return AttemptState.CALL_PROVIDER

    async def _call_provider(self) -> AttemptState:
        assert self._request is not None
        self.attempts += 1
        total = self._settings.max_retries + 1
        logger.debug("Calling provider for %s (attempt %d/%d)", self.path, self.attempts, total)

        timeout = self._settings.timeout_seconds
        try:
            self._raw = await asyncio.wait_for(
                self._provider.complete(self._request), timeout=timeout
            )
        except TimeoutError:
            return self._retry_or_fail(f"LLM request timed out after {timeout}s", "llm")
        except ProviderError as e:
            if not e.retryable:
                return self._fail(str(e), "llm")
            return self._retry_or_fail(str(e), "llm")
        except Exception as e:
            return self._retry_or_fail(f"{type(e).__name__}: {e}", "unknown")

        return AttemptState.VALIDATE

    async def _validate(self) -> AttemptState:
        try:
            extraction = validate_output(self._raw, NoteCardExtraction)
            # Engine-owned fields always win over anything the model produced
            self._record = NoteCard.model_validate(
                {
                    **extraction.model_dump(),
                    "schema_version": CURRENT_SCHEMA_VERSION,
                    "note_path": self.path,
                    "hash": self._hash,
                    "detected_date": _utc_timestamp(),
                    "status": "draft",
                    "deleted": False,
                }
            )
        except (ExtractionValidationError, ValidationError) as e:
            return self._retry_or_fail(str(e), "validation")
        return AttemptState.SUCCESS

    async def _retry(self) -> AttemptState:
        assert self._base_request is not None
        delay = self._settings.backoff_delay(self.attempts)
        logger.warning(
            "Extraction failed for %s (attempt %d/%d), retrying in %.2fs: %s",
            self.path,
            self.attempts,
            self._settings.max_retries + 1,
            delay,
            self._last_error,
        )
        await self._sleep(delay)

        if self._retry_with_feedback:
            self._request = replace(
                self._base_request,
                prompt=with_retry_feedback(self._base_request.prompt, self._last_error),
            )
        else:
            self._request = self._base_request
        return AttemptState.CALL_PROVIDER

    # -- transitions ----------------------------------------------------------

    def _retry_or_fail(self, message: str, error_type: str) -> AttemptState:
        self._last_error = message
        self._error_type = error_type
        self._retry_with_feedback = self._settings.retry_feedback and error_type == "validation"
        if self.attempts <= self._settings.max_retries:
            return AttemptState.RETRY
        self._exhausted = True
        return AttemptState.FAILED

    def _fail(self, message: str, error_type: str) -> AttemptState:
        self._last_error = message
        self._error_type = error_type
        return AttemptState.FAILED

    # -- commit ---------------------------------------------------------------

    async def _commit_success(self) -> AttemptOutcome:
        assert self._record is not None
        if self._persist:
            try:
                await self._records.write_record(self._record)
            except (RecordSchemaError, OSError) as e:
                self._fail(f"Failed to write card: {e}", "file_operation")
                return await self._commit_failure()

        logger.info("Extracted %s in %d attempt(s)", self.path, self.attempts)
        return AttemptOutcome(
            path=self.path,
            status=OutcomeStatus.COMPLETED,
            record=self._record,
            attempts=self.attempts,
        )

    async def _commit_failure(self) -> AttemptOutcome:
        self.state = AttemptState.FAILED
        if self._exhausted:
            message = str(RetryExhaustedError(self.path, self.attempts, self._last_error))
        else:
            message = self._last_error
        logger.error("Extraction failed for %s: %s", self.path, message)

        if self._persist:
            entry = ExtractionError(
                path=self.path,
                message=message,
                timestamp=_utc_timestamp(),
                attempts=self.attempts,
                error_type=self._error_type,
            )
            try:
                await self._sink.append(entry)
            except OSError:
                logger.exception("Could not record failure for %s in the error log", self.path)

        return AttemptOutcome(
            path=self.path,
            status=OutcomeStatus.FAILED,
            error=message,
            attempts=self.attempts,
        )
