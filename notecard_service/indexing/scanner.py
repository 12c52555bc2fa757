from __future__ import annotations

import logging

from notecard_service.stores.document_store import DocumentStore, normalize_path

logger = logging.getLogger(__name__)

_NOTE_EXTS = (".md",)


def is_note(path: str) -> bool:
    return path.lower().endswith(_NOTE_EXTS)


def _is_hidden(path: str) -> bool:
    # .obsidian/, .trash/, .notecards/ and friends
    return any(part.startswith(".") for part in path.split("/")[:-1])


async def scan_directories(
    store: DocumentStore,
    directories: list[str] | tuple[str, ...] | None = None,
    *,
    max_notes: int = 0,
) -> list[str]:
    """Markdown notes under ``directories`` (the whole vault when empty).

    Returns normalized paths, de-duplicated and sorted so runs are
    reproducible. Notes inside hidden directories are never candidates.
    """
    roots = [normalize_path(d) for d in (directories or [])] or [""]

    seen: set[str] = set()
    for root in roots:
        for path in await store.list(root):
            if not is_note(path) or _is_hidden(path):
                continue
            seen.add(normalize_path(path))

    paths = sorted(seen)
    if max_notes and len(paths) > max_notes:
        paths = paths[:max_notes]

    logger.info("Scanned %s; found %d notes", roots, len(paths))
    return paths
