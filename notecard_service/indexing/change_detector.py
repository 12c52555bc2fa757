from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Literal

from notecard_service.indexing.errors import (
    DocumentNotFoundError,
    DocumentReadError,
    RecordSchemaError,
)
from notecard_service.indexing.hashing import content_hash
from notecard_service.indexing.privacy import PrivacyGuard, extract_tags
from notecard_service.stores.document_store import DocumentStore
from notecard_service.stores.record_store import RecordStore

logger = logging.getLogger(__name__)

ChangeReason = Literal["new", "changed", "unchanged", "missing", "excluded", "unreadable"]


@dataclass(frozen=True)
class ChangeCheck:
    path: str
    needs_processing: bool
    reason: ChangeReason
    current_hash: str | None = None


class ChangeDetector:
    """Decides whether a note needs (re)extraction.

    A note is processed when no card exists for it or the stored hash
    differs from the hash of its current content. Reads only.
    """

    def __init__(
        self,
        documents: DocumentStore,
        records: RecordStore,
        *,
        privacy: PrivacyGuard | None = None,
    ) -> None:
        self._documents = documents
        self._records = records
        self._privacy = privacy

    async def check(self, path: str) -> ChangeCheck:
        try:
            content = await self._documents.read(path)
        except DocumentNotFoundError:
            return ChangeCheck(path=path, needs_processing=False, reason="missing")
        except DocumentReadError as e:
            # Left to the extraction attempt, which fails and logs it
            logger.warning("%s", e)
            return ChangeCheck(path=path, needs_processing=True, reason="unreadable")

        if self._privacy is not None and self._privacy.should_exclude(path, extract_tags(content)):
            return ChangeCheck(path=path, needs_processing=False, reason="excluded")

        current = content_hash(content)
        try:
            stored = await self._records.read_record(path)
        except (RecordSchemaError, OSError) as e:
            # A corrupt card is replaced by a fresh extraction
            logger.warning("Ignoring unreadable card for %s: %s", path, e)
            stored = None
        if stored is None:
            return ChangeCheck(path=path, needs_processing=True, reason="new", current_hash=current)
        if stored.hash != current:
            return ChangeCheck(
                path=path, needs_processing=True, reason="changed", current_hash=current
            )
        return ChangeCheck(
            path=path, needs_processing=False, reason="unchanged", current_hash=current
        )

    async def needs_processing(self, path: str) -> bool:
        return (await self.check(path)).needs_processing
