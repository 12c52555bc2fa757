"""Unit tests for the cold-start coordinator and its run handle."""

from __future__ import annotations

import asyncio
from unittest.mock import patch

import pytest

from notecard_service.indexing.events import EventChannel, TaskCompleted
from notecard_service.indexing.privacy import PrivacyGuard


def _seed(write_note, n: int = 3, prefix: str = "notes") -> list[str]:
    return [write_note(f"{prefix}/note-{i}.md", f"# Note {i}\n\nWorked with Go.\n") for i in range(n)]


def _conserved(result) -> bool:
    return result.total_notes == result.processed_notes + result.failed_notes + result.skipped_notes


class TestRun:
    async def test_processes_every_new_note(
        self, write_note, make_coordinator, provider, record_store
    ):
        paths = _seed(write_note)

        result = await make_coordinator(provider).run()

        assert result.scanned_notes == 3
        assert result.total_notes == 3
        assert result.processed_notes == 3
        assert result.failed_notes == 0
        assert _conserved(result)
        for p in paths:
            assert await record_store.read_record(p) is not None

    async def test_second_run_is_idempotent(self, write_note, make_coordinator, provider):
        _seed(write_note)
        coordinator = make_coordinator(provider)
        await coordinator.run()
        calls_after_first = provider.calls

        result = await coordinator.run()

        assert result.total_notes == 0
        assert result.unchanged_notes == 3
        assert provider.calls == calls_after_first

    async def test_only_modified_note_is_reprocessed(self, write_note, make_coordinator, provider):
        paths = _seed(write_note)
        coordinator = make_coordinator(provider)
        await coordinator.run()

        write_note(paths[1], "# Note 1\n\nNow also Rust.\n")
        result = await coordinator.run()

        assert result.total_notes == 1
        assert result.processed_notes == 1
        assert result.unchanged_notes == 2

    async def test_failures_are_counted_and_logged_once(
        self, write_note, make_coordinator, make_provider, error_log
    ):
        _seed(write_note, n=2)
        provider = make_provider(default="not json")

        result = await make_coordinator(provider, max_retries=1).run()

        assert result.failed_notes == 2
        assert result.processed_notes == 0
        assert {e.path for e in result.errors} == {"notes/note-0.md", "notes/note-1.md"}
        assert all(e.error.startswith("Extraction failed after 2 attempts") for e in result.errors)
        assert len(await error_log.read_entries()) == 2
        assert _conserved(result)

    async def test_scan_limited_to_directories(self, write_note, make_coordinator, provider):
        _seed(write_note, n=2, prefix="work")
        _seed(write_note, n=3, prefix="personal")

        result = await make_coordinator(provider).run(["work"])

        assert result.scanned_notes == 2
        assert result.processed_notes == 2

    async def test_max_notes_caps_candidates(self, write_note, make_coordinator, provider):
        _seed(write_note, n=5)

        result = await make_coordinator(provider).run(max_notes=2)

        assert result.total_notes == 2
        assert provider.calls == 2

    async def test_excluded_notes_are_counted(self, write_note, make_coordinator, provider):
        _seed(write_note, n=2)
        write_note("private/secret.md", "# Secret\n")
        write_note("notes/diary.md", "Today #journal was fine")
        guard = PrivacyGuard(exclude_directories=("private",), exclude_tags=("journal",))

        result = await make_coordinator(provider, privacy=guard).run()

        assert result.excluded_notes == 2
        assert result.total_notes == 2

    async def test_ignores_non_markdown_and_hidden(self, vault, write_note, make_coordinator, provider):
        _seed(write_note, n=1)
        write_note("attachments/pic.png", "not a note")
        write_note(".obsidian/workspace.md", "# config")

        result = await make_coordinator(provider).run()

        assert result.scanned_notes == 1

    async def test_empty_vault_builds_no_pool(self, make_coordinator, provider):
        coordinator = make_coordinator(provider)

        with patch("notecard_service.indexing.coordinator.WorkerPool") as pool_cls:
            handle = await coordinator.start()
            result = await handle.wait()

        pool_cls.assert_not_called()
        assert handle.done
        assert handle.status().total == 0
        assert result.total_notes == 0
        assert result.processed_notes == 0

    async def test_invalid_concurrency_raises(self, write_note, make_coordinator, provider):
        _seed(write_note, n=1)
        with pytest.raises(ValueError):
            await make_coordinator(provider).start(concurrency=0)

    async def test_progress_events_reach_channel(self, write_note, make_coordinator, provider):
        _seed(write_note, n=3)
        channel = EventChannel(maxsize=64)

        await make_coordinator(provider).run(channel=channel)
        channel.close()

        completed = [e async for e in channel if isinstance(e, TaskCompleted)]
        assert len(completed) == 3


class TestHandle:
    async def test_cancel_leaves_pending(self, write_note, make_coordinator, make_provider):
        _seed(write_note, n=6)
        provider = make_provider(delay=0.05)
        coordinator = make_coordinator(provider, concurrency=1)

        handle = await coordinator.start()
        await asyncio.sleep(0.01)
        handle.cancel()
        result = await handle.wait()

        assert result.cancelled
        assert result.pending_notes > 0
        assert result.processed_notes >= 1
        assert (
            result.processed_notes + result.failed_notes + result.skipped_notes + result.pending_notes
            == result.total_notes
        )

    async def test_pause_and_resume(self, write_note, make_coordinator, make_provider):
        _seed(write_note, n=4)
        provider = make_provider(delay=0.02)
        handle = await make_coordinator(provider, concurrency=1).start()

        handle.pause()
        assert handle.is_paused
        await asyncio.sleep(0.1)
        paused_status = handle.status()
        assert paused_status.completed <= 1
        assert paused_status.in_flight == 0

        handle.resume()
        result = await handle.wait()

        assert result.processed_notes == 4
        assert not handle.is_running

    async def test_note_deleted_after_planning_fails_that_task_only(
        self, vault, write_note, make_coordinator, make_provider
    ):
        paths = _seed(write_note, n=3)
        provider = make_provider(delay=0.02)
        handle = await make_coordinator(provider, concurrency=1).start()
        (vault / paths[2]).unlink()

        result = await handle.wait()

        assert result.processed_notes == 2
        assert result.failed_notes == 1
        assert result.errors[0].error == f"File not found: {paths[2]}"

    async def test_undecodable_note_fails_only_its_own_task(
        self, vault, write_note, make_coordinator, provider, error_log
    ):
        write_note("notes/good.md", "# Good\n\nWorked with Go.\n")
        (vault / "notes" / "bad.md").write_bytes(b"# Bad\n\xff\xfe not utf-8")

        result = await make_coordinator(provider).run()

        assert result.scanned_notes == 2
        assert result.processed_notes == 1
        assert result.failed_notes == 1
        assert result.errors[0].path == "notes/bad.md"
        assert result.errors[0].error == "Cannot read notes/bad.md: not valid UTF-8"
        assert [e.path for e in await error_log.read_entries()] == ["notes/bad.md"]
        assert _conserved(result)


class TestDryRunThroughCoordinator:
    async def test_dry_run_writes_nothing(
        self, write_note, make_coordinator, provider, index_dir, error_log_path
    ):
        _seed(write_note, n=3)

        result = await make_coordinator(provider).run(dry_run=True)

        assert result.dry_run is not None
        assert result.dry_run.processed == 3
        assert result.processed_notes == 3
        assert not index_dir.exists()
        assert not error_log_path.exists()

    async def test_dry_run_respects_cap(self, write_note, make_coordinator, provider):
        _seed(write_note, n=5)

        result = await make_coordinator(provider, dry_run_max_notes=2).run(dry_run=True)

        assert result.total_notes == 2
        assert result.dry_run.total == 2
        assert provider.calls == 2
