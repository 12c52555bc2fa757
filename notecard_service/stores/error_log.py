"""Append-only markdown error log for terminal extraction failures.

Entry format::

    ## 2026-01-15T10:30:00.000Z

    - **Type**: LLM/API
    - **Path**: notes/project.md
    - **Attempts**: 3
    - **Error**: Extraction failed after 3 attempts: ...

    ---

Entries are only ever appended (oldest first) and fsynced, so the log
survives process restarts. ``parse_error_log`` reads the same format back,
including legacy entries without a Type line.
"""

from __future__ import annotations

import asyncio
import logging
import os
import re
from abc import ABC, abstractmethod
from collections import Counter
from dataclasses import dataclass
from pathlib import Path

from notecard_service.config import NOTECARD_ERROR_LOG_HEADER, NOTECARD_ERROR_MESSAGE_MAX_CHARS
from notecard_service.indexing.types import ExtractionError

logger = logging.getLogger(__name__)

ERROR_TYPES = ("extraction", "validation", "file_operation", "llm", "unknown")

_TYPE_LABELS: dict[str, str] = {
    "extraction": "Extraction",
    "validation": "Schema Validation",
    "file_operation": "File Operation",
    "llm": "LLM/API",
    "unknown": "Unknown",
}

_LABEL_TYPES: dict[str, str] = {
    "extraction": "extraction",
    "schema validation": "validation",
    "validation": "validation",
    "file operation": "file_operation",
    "llm/api": "llm",
    "llm": "llm",
    "api": "llm",
    "unknown": "unknown",
    "other": "unknown",
}

_ENTRY_RE = re.compile(
    r"## (\d{4}-\d{2}-\d{2}T[\d:.]+(?:Z|[+-]\d{2}:\d{2})?)\s*\n([\s\S]*?)(?=\n---|\n## |\Z)"
)
_TYPE_RE = re.compile(r"\*\*Type\*\*:\s*(.+)")
_PATH_RE = re.compile(r"\*\*Path\*\*:\s*(.+)")
_ATTEMPTS_RE = re.compile(r"\*\*Attempts\*\*:\s*(\d+)")
_ERROR_RE = re.compile(r"\*\*Error\*\*:\s*([\s\S]*?)(?=\n-|\n$|\Z)")


def categorize_error(message: str) -> str:
    """Best-effort classification of an error message into an error type."""
    m = message.lower()
    if any(k in m for k in ("llm", "api", "timeout", "timed out", "rate limit", "network", "connection")):
        return "llm"
    if any(k in m for k in ("schema", "validation", "invalid", "parse", "json")):
        return "validation"
    if any(k in m for k in ("file", "read", "write", "permission", "enoent", "directory")):
        return "file_operation"
    if any(k in m for k in ("extract", "notecard")):
        return "extraction"
    return "unknown"


def parse_type_label(label: str) -> str:
    return _LABEL_TYPES.get(label.strip().lower(), "unknown")


def type_label(error_type: str) -> str:
    return _TYPE_LABELS.get(error_type, "Unknown")


def _flatten(message: str) -> str:
    # One line per field keeps the log parseable
    flat = " ".join(message.split())
    if len(flat) > NOTECARD_ERROR_MESSAGE_MAX_CHARS:
        flat = flat[:NOTECARD_ERROR_MESSAGE_MAX_CHARS] + "..."
    return flat


def format_entry(entry: ExtractionError) -> str:
    return (
        f"## {entry.timestamp}\n\n"
        f"- **Type**: {type_label(entry.error_type)}\n"
        f"- **Path**: {entry.path}\n"
        f"- **Attempts**: {entry.attempts}\n"
        f"- **Error**: {_flatten(entry.message)}\n"
        "\n---\n\n"
    )


def parse_error_log(content: str) -> list[ExtractionError]:
    if not content or not content.strip():
        return []

    entries: list[ExtractionError] = []
    for match in _ENTRY_RE.finditer(content):
        timestamp, body = match.group(1), match.group(2)

        type_m = _TYPE_RE.search(body)
        path_m = _PATH_RE.search(body)
        attempts_m = _ATTEMPTS_RE.search(body)
        error_m = _ERROR_RE.search(body)

        message = error_m.group(1).strip() if error_m else "Unknown error"
        error_type = parse_type_label(type_m.group(1)) if type_m else categorize_error(message)

        entries.append(
            ExtractionError(
                path=path_m.group(1).strip() if path_m else "Unknown path",
                message=message,
                timestamp=timestamp,
                attempts=int(attempts_m.group(1)) if attempts_m else 0,
                error_type=error_type,
            )
        )
    return entries


@dataclass(frozen=True)
class ErrorLogSummary:
    total_errors: int
    by_type: dict[str, int]
    entries: list[ExtractionError]


def summarize(entries: list[ExtractionError]) -> ErrorLogSummary:
    counts = Counter(e.error_type for e in entries)
    return ErrorLogSummary(
        total_errors=len(entries),
        by_type={t: counts.get(t, 0) for t in ERROR_TYPES},
        entries=entries,
    )


class ErrorSink(ABC):
    @abstractmethod
    async def append(self, entry: ExtractionError) -> None: ...


class MarkdownErrorLog(ErrorSink):
    def __init__(self, path: str | Path) -> None:
        self._path = Path(path)
        self._lock = asyncio.Lock()

    @property
    def path(self) -> Path:
        return self._path

    async def append(self, entry: ExtractionError) -> None:
        block = format_entry(entry)

        def _append() -> None:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            is_new = not self._path.exists() or self._path.stat().st_size == 0
            with self._path.open("a", encoding="utf-8") as f:
                if is_new:
                    f.write(NOTECARD_ERROR_LOG_HEADER)
                f.write(block)
                f.flush()
                os.fsync(f.fileno())

        async with self._lock:
            await asyncio.to_thread(_append)
        logger.debug("Appended error entry for %s to %s", entry.path, self._path)

    async def read_entries(self) -> list[ExtractionError]:
        def _read() -> str:
            try:
                return self._path.read_text(encoding="utf-8")
            except FileNotFoundError:
                return ""

        return parse_error_log(await asyncio.to_thread(_read))

    async def summarize(self) -> ErrorLogSummary:
        return summarize(await self.read_entries())
