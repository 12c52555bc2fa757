"""JSON-file persistence for NoteCards.

One card per note, stored as ``<index_dir>/<sanitized note path>.json``.
Every write is validated against the NoteCard schema first and rejected
loudly on violation; nothing is coerced into shape.
"""

from __future__ import annotations

import asyncio
import json
import logging
import os
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from notecard_service.indexing.errors import RecordSchemaError
from notecard_service.models import NoteCard, RecordStats
from notecard_service.stores.document_store import normalize_path

logger = logging.getLogger(__name__)


def card_filename(note_path: str) -> str:
    sanitized = normalize_path(note_path)
    if sanitized.endswith(".md"):
        sanitized = sanitized[:-3]
    sanitized = sanitized.replace("/", "_").replace("\\", "_")
    return f"{sanitized}.json"


class RecordStore(ABC):
    @abstractmethod
    async def read_record(self, path: str) -> NoteCard | None: ...

    @abstractmethod
    async def write_record(self, record: NoteCard | dict[str, Any]) -> None: ...


class JsonRecordStore(RecordStore):
    def __init__(self, index_dir: str | Path) -> None:
        self._dir = Path(index_dir)

    @property
    def index_dir(self) -> Path:
        return self._dir

    def card_path(self, note_path: str) -> Path:
        return self._dir / card_filename(note_path)

    async def read_record(self, path: str) -> NoteCard | None:
        card_file = self.card_path(path)
        try:
            raw = await asyncio.to_thread(card_file.read_bytes)
        except FileNotFoundError:
            return None

        try:
            card = NoteCard.model_validate_json(raw)
        except (ValidationError, UnicodeDecodeError) as e:
            raise RecordSchemaError(f"Stored card {card_file.name} is invalid: {e}") from e

        if card.note_path != normalize_path(path):
            # Sanitized names can collide ("a/b.md" vs "a_b.md")
            logger.warning(
                "Card %s belongs to '%s', not '%s'", card_file.name, card.note_path, path
            )
            return None
        return card

    async def write_record(self, record: NoteCard | dict[str, Any]) -> None:
        payload = record.model_dump() if isinstance(record, NoteCard) else record
        try:
            card = NoteCard.model_validate(payload)
        except ValidationError as e:
            raise RecordSchemaError(f"Card failed schema validation: {e}") from e

        card_file = self.card_path(card.note_path)
        data = json.dumps(card.model_dump(mode="json"), ensure_ascii=False, indent=2)

        def _write() -> None:
            self._dir.mkdir(parents=True, exist_ok=True)
            tmp = card_file.with_name(card_file.name + ".tmp")
            tmp.write_text(data, encoding="utf-8")
            os.replace(tmp, card_file)

        await asyncio.to_thread(_write)
        logger.debug("Wrote card for %s", card.note_path)

    async def list_records(self, *, include_deleted: bool = True) -> list[NoteCard]:
        def _read_all() -> list[bytes]:
            if not self._dir.is_dir():
                return []
            return [p.read_bytes() for p in sorted(self._dir.glob("*.json"))]

        cards: list[NoteCard] = []
        for raw in await asyncio.to_thread(_read_all):
            try:
                card = NoteCard.model_validate_json(raw)
            except (ValidationError, UnicodeDecodeError):
                logger.error("Skipping unreadable card in %s", self._dir, exc_info=True)
                continue
            if card.deleted and not include_deleted:
                continue
            cards.append(card)
        return cards

    async def mark_deleted(self, path: str) -> bool:
        """Tombstone the card for ``path``. Returns False when no card exists."""
        card = await self.read_record(path)
        if card is None:
            return False
        if not card.deleted:
            await self.write_record(card.model_copy(update={"deleted": True}))
        return True

    async def stats(self) -> RecordStats:
        cards = await self.list_records()
        return RecordStats(
            total_cards=len(cards),
            draft_cards=sum(1 for c in cards if c.status == "draft" and not c.deleted),
            confirmed_cards=sum(1 for c in cards if c.status == "confirmed" and not c.deleted),
            deleted_cards=sum(1 for c in cards if c.deleted),
        )
