"""Unit test conftest: filesystem stores under tmp_path and a scripted provider."""

from __future__ import annotations

import asyncio
import json
from collections import deque
from collections.abc import Iterable
from pathlib import Path
from typing import Any

import pytest

from notecard_service.indexing.attempt import AttemptSettings, ExtractionAttempt
from notecard_service.indexing.coordinator import ColdStartCoordinator
from notecard_service.indexing.privacy import PrivacyGuard
from notecard_service.providers.base import ExtractionProvider, ExtractionRequest, ProviderTag
from notecard_service.stores.document_store import LocalDocumentStore
from notecard_service.stores.error_log import MarkdownErrorLog
from notecard_service.stores.record_store import JsonRecordStore


def extraction_payload(**overrides: Any) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "summary": "Built a CLI for syncing notes.",
        "type": "project",
        "time_span": "2025-01 to 2025-03",
        "tech_stack": [
            {"name": "Python", "context": "CLI implementation", "level": "proficient"},
        ],
        "topics": ["tooling"],
        "preferences": {"likes": ["automation"], "dislikes": [], "traits": []},
        "evidence": ["wrote the sync command"],
        "last_updated": "2025-03",
    }
    payload.update(overrides)
    return payload


def extraction_json(**overrides: Any) -> str:
    return json.dumps(extraction_payload(**overrides))


class FakeProvider(ExtractionProvider):
    """Provider that replays scripted responses.

    Each entry is returned as raw text or, if it is an exception, raised.
    Once the script runs out every call returns ``default``.
    """

    def __init__(
        self,
        responses: Iterable[str | BaseException] = (),
        *,
        tag: ProviderTag = ProviderTag.LOCAL,
        default: str | BaseException | None = None,
        delay: float = 0.0,
    ) -> None:
        self.tag = tag
        self._responses: deque[str | BaseException] = deque(responses)
        self._default = extraction_json() if default is None else default
        self.delay = delay
        self.requests: list[ExtractionRequest] = []
        self.closed = False

    @property
    def calls(self) -> int:
        return len(self.requests)

    async def complete(self, request: ExtractionRequest) -> str:
        self.requests.append(request)
        if self.delay:
            await asyncio.sleep(self.delay)
        item = self._responses.popleft() if self._responses else self._default
        if isinstance(item, BaseException):
            raise item
        return item

    async def aclose(self) -> None:
        self.closed = True


class RecordingSleep:
    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


@pytest.fixture
def provider() -> FakeProvider:
    return FakeProvider()


@pytest.fixture
def no_sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
def document_store(vault: Path) -> LocalDocumentStore:
    return LocalDocumentStore(vault)


@pytest.fixture
def record_store(index_dir: Path) -> JsonRecordStore:
    return JsonRecordStore(index_dir)


@pytest.fixture
def error_log(error_log_path: Path) -> MarkdownErrorLog:
    return MarkdownErrorLog(error_log_path)


@pytest.fixture
def make_coordinator(document_store, record_store, error_log, no_sleep):
    """Build a coordinator over the tmp vault; keyword overrides pass through."""

    def _make(
        provider: ExtractionProvider,
        *,
        max_retries: int = 2,
        privacy: PrivacyGuard | None = None,
        concurrency: int = 2,
        dry_run_max_notes: int = 10,
    ) -> ColdStartCoordinator:
        return ColdStartCoordinator(
            documents=document_store,
            records=record_store,
            provider=provider,
            error_sink=error_log,
            settings=AttemptSettings(max_retries=max_retries, timeout_seconds=5.0),
            privacy=privacy,
            concurrency=concurrency,
            dry_run_max_notes=dry_run_max_notes,
            sleep=no_sleep,
        )

    return _make


@pytest.fixture
def make_provider():
    """Factory for scripted providers: ``make_provider([raw_or_exc, ...], tag=..., delay=...)``."""

    def _make(responses: Iterable[str | BaseException] = (), **kwargs: Any) -> FakeProvider:
        return FakeProvider(responses, **kwargs)

    return _make


@pytest.fixture
def valid_extraction() -> dict[str, Any]:
    return extraction_payload()


@pytest.fixture
def make_attempt(document_store, record_store, error_log, no_sleep):
    def _make(
        path: str,
        provider: ExtractionProvider,
        *,
        persist: bool = True,
        privacy: PrivacyGuard | None = None,
        **settings: Any,
    ) -> ExtractionAttempt:
        return ExtractionAttempt(
            path,
            documents=document_store,
            records=record_store,
            provider=provider,
            error_sink=error_log,
            settings=AttemptSettings(**settings),
            privacy=privacy,
            persist=persist,
            sleep=no_sleep,
        )

    return _make
