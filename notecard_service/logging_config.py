"""Logging for indexer runs.

JSON lines (python-json-logger, GCP severity names) when the run is shipped
to a log collector, plain text in a terminal. Every JSON line of a run
carries the same ``run_id`` so one cold start can be pulled out of a shared
log stream.
"""

from __future__ import annotations

import logging
import uuid

from pythonjsonlogger.json import JsonFormatter

from notecard_service.config import NOTECARD_LOG_JSON

_GCP_SEVERITY = {
    "DEBUG": "DEBUG",
    "INFO": "INFO",
    "WARNING": "WARNING",
    "ERROR": "ERROR",
    "CRITICAL": "CRITICAL",
}


class GCPJsonFormatter(JsonFormatter):
    """Indexer log line as JSON: ``severity`` instead of ``levelname``, plus ``run_id``."""

    def __init__(self, *args, run_id: str | None = None, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self.run_id = run_id

    def add_fields(
        self,
        log_record: dict[str, object],
        record: logging.LogRecord,
        message_dict: dict[str, object],
    ) -> None:
        super().add_fields(log_record, record, message_dict)
        log_record["severity"] = _GCP_SEVERITY.get(record.levelname, record.levelname)
        log_record.pop("levelname", None)
        if self.run_id:
            log_record.setdefault("run_id", self.run_id)


def setup_logging(
    *, level: str = "INFO", json_output: bool | None = None, run_id: str | None = None
) -> None:
    """Replace the root handlers. ``json_output=None`` follows NOTECARD_LOG_JSON."""
    use_json = NOTECARD_LOG_JSON if json_output is None else json_output

    root = logging.getLogger()
    root.setLevel(getattr(logging, level.upper(), logging.INFO))

    for h in root.handlers[:]:
        root.removeHandler(h)

    handler = logging.StreamHandler()
    if use_json:
        handler.setFormatter(GCPJsonFormatter(
            fmt="%(message)s %(name)s %(funcName)s %(lineno)d",
            rename_fields={"name": "logger"},
            run_id=run_id,
        ))
    else:
        handler.setFormatter(logging.Formatter(
            "%(asctime)s %(levelname)-8s %(name)s:%(lineno)d  %(message)s",
            datefmt="%H:%M:%S",
        ))

    root.addHandler(handler)


def generate_run_id() -> str:
    """Short random id shared by all log lines of one indexing run."""
    return uuid.uuid4().hex[:16]
