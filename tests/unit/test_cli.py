"""Unit tests for the notecard-indexer entry point, scanner and logging setup."""

from __future__ import annotations

import json
import logging
from unittest.mock import patch

import pytest

from notecard_service.indexing.cli import build_parser
from notecard_service.indexing.main import _amain
from notecard_service.indexing.prompts import build_note_prompt, with_retry_feedback
from notecard_service.indexing.scanner import scan_directories
from notecard_service.logging_config import GCPJsonFormatter, generate_run_id, setup_logging


class TestParser:
    def test_defaults(self):
        args = build_parser().parse_args([])
        assert args.dir == []
        assert args.dry_run is False
        assert args.max_notes == 0
        assert args.concurrency == 0
        assert args.log_level == "INFO"

    def test_repeatable_dir(self):
        args = build_parser().parse_args(["--dir", "work", "--dir", "side", "--dry-run"])
        assert args.dir == ["work", "side"]
        assert args.dry_run is True


class TestScanner:
    async def test_dedupes_overlapping_directories(self, write_note, document_store):
        write_note("work/a.md", "a")
        write_note("work/sub/b.md", "b")

        paths = await scan_directories(document_store, ["work", "./work/sub/"])

        assert paths == ["work/a.md", "work/sub/b.md"]

    async def test_cap(self, write_note, document_store):
        for i in range(4):
            write_note(f"n{i}.md", "x")

        assert await scan_directories(document_store, max_notes=2) == ["n0.md", "n1.md"]


class TestPrompts:
    def test_prompt_contains_inputs(self):
        prompt = build_note_prompt(
            note_path="a.md", note_content="body {braces}", content_hash="h1", current_date="2026-01-01"
        )
        assert "a.md" in prompt
        assert "body {braces}" in prompt
        assert "h1" in prompt
        assert "2026-01-01" in prompt

    def test_feedback(self):
        assert with_retry_feedback("P", "bad json").startswith("P")
        assert "bad json" in with_retry_feedback("P", "bad json")


class TestLogging:
    def test_json_formatter_maps_severity(self):
        formatter = GCPJsonFormatter(fmt="%(message)s %(levelname)s")
        record = logging.LogRecord("x", logging.WARNING, __file__, 1, "hello %s", ("world",), None)

        out = json.loads(formatter.format(record))

        assert out["message"] == "hello world"
        assert out["severity"] == "WARNING"
        assert "levelname" not in out

    def test_json_lines_carry_run_id(self):
        formatter = GCPJsonFormatter(fmt="%(message)s", run_id="abc123")
        record = logging.LogRecord("x", logging.INFO, __file__, 1, "scanned", (), None)

        assert json.loads(formatter.format(record))["run_id"] == "abc123"

    def test_setup_logging_replaces_handlers(self):
        setup_logging(level="DEBUG", json_output=True)
        root = logging.getLogger()
        assert len(root.handlers) == 1
        assert isinstance(root.handlers[0].formatter, GCPJsonFormatter)
        setup_logging(level="INFO", json_output=False)
        assert not isinstance(logging.getLogger().handlers[0].formatter, GCPJsonFormatter)

    def test_run_id(self):
        assert len(generate_run_id()) == 16
        assert generate_run_id() != generate_run_id()


class TestMain:
    @pytest.fixture
    def env(self, monkeypatch, vault, tmp_path):
        monkeypatch.setenv("NOTECARD_VAULT_ROOT", str(vault))
        monkeypatch.setenv("NOTECARD_INDEX_DIR", str(tmp_path / "index"))
        monkeypatch.setenv("NOTECARD_ERROR_LOG", str(tmp_path / "errors.md"))
        monkeypatch.setenv("NOTECARD_PROVIDER", "local")
        monkeypatch.delenv("NOTECARD_DRY_RUN", raising=False)
        return monkeypatch

    async def test_exit_zero_on_success(self, env, write_note, make_provider, tmp_path):
        write_note("a.md", "# A\n")
        provider = make_provider()
        env.setattr("sys.argv", ["notecard-indexer", "--concurrency", "2"])

        with patch("notecard_service.indexing.coordinator.build_provider", return_value=provider):
            code = await _amain()

        assert code == 0
        assert (tmp_path / "index" / "a.json").exists()
        assert provider.closed

    async def test_exit_two_on_failures(self, env, write_note, make_provider, tmp_path):
        write_note("a.md", "# A\n")
        env.setenv("NOTECARD_MAX_RETRIES", "0")
        env.setattr("sys.argv", ["notecard-indexer"])

        with patch(
            "notecard_service.indexing.coordinator.build_provider",
            return_value=make_provider(default="garbage"),
        ):
            code = await _amain()

        assert code == 2
        assert (tmp_path / "errors.md").exists()

    async def test_dry_run_flag(self, env, write_note, make_provider, tmp_path):
        write_note("a.md", "# A\n")
        env.setattr("sys.argv", ["notecard-indexer", "--dry-run"])

        with patch(
            "notecard_service.indexing.coordinator.build_provider", return_value=make_provider()
        ):
            code = await _amain()

        assert code == 0
        assert not (tmp_path / "index").exists()
