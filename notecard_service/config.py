"""Environment-variable-driven constants for the NoteCard indexer.

Engine run settings live in ``notecard_service.indexing.config``; this module
holds process-wide defaults shared by providers, stores and the engine.
"""

from __future__ import annotations

import os


def _env_bool(name: str, default: bool = False) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


# -- Schema -------------------------------------------------------------------
CURRENT_SCHEMA_VERSION: int = 1

# -- Retry / backoff ----------------------------------------------------------
NOTECARD_BACKOFF_CAP_SECONDS: float = float(os.getenv("NOTECARD_BACKOFF_CAP_SECONDS", "30"))
NOTECARD_BACKOFF_JITTER: float = 0.25

# -- Providers ----------------------------------------------------------------
NOTECARD_OPENAI_URL: str = os.getenv(
    "NOTECARD_OPENAI_URL", "https://api.openai.com/v1/chat/completions"
)
NOTECARD_ANTHROPIC_URL: str = os.getenv(
    "NOTECARD_ANTHROPIC_URL", "https://api.anthropic.com/v1/messages"
)
NOTECARD_ANTHROPIC_VERSION: str = "2023-06-01"
NOTECARD_ANTHROPIC_MAX_TOKENS: int = int(os.getenv("NOTECARD_ANTHROPIC_MAX_TOKENS", "4096"))
NOTECARD_OLLAMA_URL: str = os.getenv("NOTECARD_OLLAMA_URL", "http://localhost:11434")

# -- Error log ----------------------------------------------------------------
NOTECARD_ERROR_LOG_HEADER: str = "# NoteCard Error Log\n\n"
NOTECARD_ERROR_MESSAGE_MAX_CHARS: int = 4000

# -- Runtime ------------------------------------------------------------------
IS_CLOUD_RUN: bool = bool(os.getenv("K_SERVICE"))
NOTECARD_LOG_JSON: bool = _env_bool("NOTECARD_LOG_JSON", IS_CLOUD_RUN)
