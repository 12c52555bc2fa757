from __future__ import annotations

import argparse


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="notecard-indexer",
        description="Cold-start NoteCard extraction over a markdown vault",
    )
    p.add_argument(
        "--dir",
        action="append",
        default=[],
        help="Vault-relative directory to scan (repeatable; default NOTECARD_SCAN_DIRS or whole vault)",
    )
    p.add_argument(
        "--dry-run",
        action="store_true",
        help="Preview extraction for a few notes without writing cards or error log entries",
    )
    p.add_argument(
        "--max-notes",
        type=int,
        default=0,
        help="Cap on notes to process (0 = no cap; dry run defaults to NOTECARD_DRY_RUN_MAX_NOTES)",
    )
    p.add_argument(
        "--concurrency",
        type=int,
        default=0,
        help="Override NOTECARD_CONCURRENCY",
    )
    p.add_argument("--log-level", default="INFO", help="Python logging level (INFO, DEBUG, ...)")
    return p
