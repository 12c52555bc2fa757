from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from notecard_service.providers.base import ProviderTag


def _get_bool(name: str, default: bool) -> bool:
    v = os.getenv(name)
    if v is None:
        return default
    return v.strip().lower() in ("1", "true", "t", "yes", "y", "on")


def _get_int(name: str, default: int) -> int:
    v = os.getenv(name)
    if v is None:
        return default
    return int(v)


def _get_float(name: str, default: float) -> float:
    v = os.getenv(name)
    if v is None:
        return default
    return float(v)


def _get_csv(name: str) -> tuple[str, ...]:
    v = os.getenv(name)
    if not v:
        return ()
    return tuple(item.strip() for item in v.split(",") if item.strip())


_DEFAULT_MODELS: dict[ProviderTag, str] = {
    ProviderTag.OPENAI: "gpt-4o-mini",
    ProviderTag.ANTHROPIC: "claude-3-5-haiku-latest",
    ProviderTag.GOOGLE: "gemini-2.0-flash",
    ProviderTag.LOCAL: "llama3.1",
}


@dataclass(frozen=True)
class IndexConfig:
    # Vault / persistence
    vault_root: str
    index_directory: str  # relative to vault root unless absolute
    error_log_path: str
    scan_directories: tuple[str, ...] = ()

    # Provider
    provider: ProviderTag = ProviderTag.OPENAI
    model: str = _DEFAULT_MODELS[ProviderTag.OPENAI]
    api_key: str | None = None
    base_url: str | None = None
    custom_base_url: str | None = None
    temperature: float = 0.7

    # Concurrency / retries
    concurrency: int = 3
    max_retries: int = 3
    timeout_seconds: float = 30.0
    retry_base_seconds: float = 1.0
    retry_feedback: bool = False

    # Dry run
    dry_run_enabled: bool = False
    dry_run_max_notes: int = 10

    # Privacy
    exclude_directories: tuple[str, ...] = ()
    exclude_tags: tuple[str, ...] = ()

    # Progress channel
    channel_size: int = 256

    def resolve(self, path: str) -> Path:
        p = Path(path)
        return p if p.is_absolute() else Path(self.vault_root) / p

    @property
    def index_path(self) -> Path:
        return self.resolve(self.index_directory)

    @property
    def error_log_file(self) -> Path:
        return self.resolve(self.error_log_path)

    @classmethod
    def from_env(cls) -> IndexConfig:
        vault_root = os.getenv("NOTECARD_VAULT_ROOT")
        if not vault_root:
            raise ValueError("NOTECARD_VAULT_ROOT is required")

        raw_provider = os.getenv("NOTECARD_PROVIDER", ProviderTag.OPENAI.value).strip().lower()
        try:
            provider = ProviderTag(raw_provider)
        except ValueError as e:
            allowed = ", ".join(t.value for t in ProviderTag)
            raise ValueError(f"NOTECARD_PROVIDER must be one of: {allowed}") from e

        return cls(
            vault_root=vault_root,
            index_directory=os.getenv("NOTECARD_INDEX_DIR", ".notecards/index"),
            error_log_path=os.getenv("NOTECARD_ERROR_LOG", ".notecards/error_log.md"),
            scan_directories=_get_csv("NOTECARD_SCAN_DIRS"),
            provider=provider,
            model=os.getenv("NOTECARD_MODEL", _DEFAULT_MODELS[provider]),
            api_key=os.getenv("NOTECARD_API_KEY"),
            base_url=os.getenv("NOTECARD_BASE_URL"),
            custom_base_url=os.getenv("NOTECARD_CUSTOM_BASE_URL"),
            temperature=_get_float("NOTECARD_TEMPERATURE", 0.7),
            concurrency=_get_int("NOTECARD_CONCURRENCY", 3),
            max_retries=_get_int("NOTECARD_MAX_RETRIES", 3),
            timeout_seconds=_get_float("NOTECARD_TIMEOUT_SECONDS", 30.0),
            retry_base_seconds=_get_float("NOTECARD_RETRY_BASE_SECONDS", 1.0),
            retry_feedback=_get_bool("NOTECARD_RETRY_FEEDBACK", False),
            dry_run_enabled=_get_bool("NOTECARD_DRY_RUN", False),
            dry_run_max_notes=_get_int("NOTECARD_DRY_RUN_MAX_NOTES", 10),
            exclude_directories=_get_csv("NOTECARD_EXCLUDE_DIRS"),
            exclude_tags=_get_csv("NOTECARD_EXCLUDE_TAGS"),
            channel_size=_get_int("NOTECARD_CHANNEL_SIZE", 256),
        )

    def validate(self) -> None:
        if self.concurrency < 1:
            raise ValueError("NOTECARD_CONCURRENCY must be >= 1")
        if self.max_retries < 0:
            raise ValueError("NOTECARD_MAX_RETRIES must be >= 0")
        if self.timeout_seconds <= 0:
            raise ValueError("NOTECARD_TIMEOUT_SECONDS must be > 0")
        if self.retry_base_seconds < 0:
            raise ValueError("NOTECARD_RETRY_BASE_SECONDS must be >= 0")
        if self.dry_run_max_notes < 1:
            raise ValueError("NOTECARD_DRY_RUN_MAX_NOTES must be >= 1")
        if self.channel_size < 1:
            raise ValueError("NOTECARD_CHANNEL_SIZE must be >= 1")
        if not self.model:
            raise ValueError("NOTECARD_MODEL must not be empty")
        if (
            self.provider in (ProviderTag.OPENAI, ProviderTag.ANTHROPIC)
            and not self.api_key
            and not self.custom_base_url
        ):
            raise ValueError(f"NOTECARD_API_KEY is required for provider '{self.provider}'")
