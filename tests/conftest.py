"""Shared test fixtures for the notecard-indexer test suite."""

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path

import pytest


@pytest.fixture
def vault(tmp_path: Path) -> Path:
    root = tmp_path / "vault"
    root.mkdir()
    return root


@pytest.fixture
def index_dir(tmp_path: Path) -> Path:
    return tmp_path / "index"


@pytest.fixture
def error_log_path(tmp_path: Path) -> Path:
    return tmp_path / "error_log.md"


@pytest.fixture
def write_note(vault: Path) -> Callable[[str, str], str]:
    """Write a note into the test vault and return its vault-relative path."""

    def _write(rel: str, content: str) -> str:
        p = vault / rel
        p.parent.mkdir(parents=True, exist_ok=True)
        p.write_text(content, encoding="utf-8")
        return rel

    return _write
