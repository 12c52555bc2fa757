"""Vault-backed document store.

Paths are vault-relative posix strings. Blocking filesystem calls run in a
worker thread so they never stall the event loop.
"""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from pathlib import Path

from notecard_service.indexing.errors import DocumentNotFoundError, DocumentReadError

logger = logging.getLogger(__name__)


def normalize_path(path: str) -> str:
    p = path.replace("\\", "/").strip()
    while p.startswith("./"):
        p = p[2:]
    p = p.lstrip("/")
    parts = [seg for seg in p.split("/") if seg and seg != "."]
    return "/".join(parts)


class DocumentStore(ABC):
    @abstractmethod
    async def read(self, path: str) -> str: ...

    @abstractmethod
    async def write(self, path: str, content: str) -> None: ...

    @abstractmethod
    async def list(self, directory: str = "") -> list[str]: ...

    async def exists(self, path: str) -> bool:
        try:
            await self.read(path)
        except DocumentNotFoundError:
            return False
        return True


class LocalDocumentStore(DocumentStore):
    def __init__(self, root: str | Path) -> None:
        self._root = Path(root).resolve()

    @property
    def root(self) -> Path:
        return self._root

    def _resolve(self, path: str) -> Path:
        rel = normalize_path(path)
        full = (self._root / rel).resolve()
        if full != self._root and self._root not in full.parents:
            raise ValueError(f"Path escapes vault root: {path}")
        return full

    async def read(self, path: str) -> str:
        full = self._resolve(path)
        try:
            return await asyncio.to_thread(full.read_text, encoding="utf-8")
        except (FileNotFoundError, IsADirectoryError, NotADirectoryError) as e:
            raise DocumentNotFoundError(normalize_path(path)) from e
        except UnicodeDecodeError as e:
            raise DocumentReadError(normalize_path(path), "not valid UTF-8") from e
        except OSError as e:
            raise DocumentReadError(normalize_path(path), e.strerror or str(e)) from e

    async def write(self, path: str, content: str) -> None:
        full = self._resolve(path)

        def _write() -> None:
            full.parent.mkdir(parents=True, exist_ok=True)
            full.write_text(content, encoding="utf-8")

        await asyncio.to_thread(_write)

    async def list(self, directory: str = "") -> list[str]:
        """Return every file under ``directory`` (recursively), sorted."""
        base = self._resolve(directory)

        def _walk() -> list[str]:
            if not base.is_dir():
                return []
            out: list[str] = []
            for p in base.rglob("*"):
                if p.is_file():
                    out.append(p.relative_to(self._root).as_posix())
            out.sort()
            return out

        paths = await asyncio.to_thread(_walk)
        logger.debug("Listed %d files under '%s'", len(paths), directory or "/")
        return paths
