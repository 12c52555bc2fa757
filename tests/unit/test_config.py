from __future__ import annotations

import os
from pathlib import Path

import pytest

from notecard_service.indexing.config import IndexConfig
from notecard_service.providers.base import ProviderTag


@pytest.fixture
def env(monkeypatch):
    for key in list(os.environ):
        if key.startswith("NOTECARD_"):
            monkeypatch.delenv(key)
    monkeypatch.setenv("NOTECARD_VAULT_ROOT", "/vault")
    return monkeypatch


class TestFromEnv:
    def test_defaults(self, env):
        cfg = IndexConfig.from_env()

        assert cfg.vault_root == "/vault"
        assert cfg.provider == ProviderTag.OPENAI
        assert cfg.model == "gpt-4o-mini"
        assert cfg.concurrency == 3
        assert cfg.max_retries == 3
        assert cfg.timeout_seconds == 30.0
        assert cfg.retry_feedback is False
        assert cfg.index_path == Path("/vault/.notecards/index")
        assert cfg.error_log_file == Path("/vault/.notecards/error_log.md")

    def test_overrides(self, env):
        env.setenv("NOTECARD_PROVIDER", "local")
        env.setenv("NOTECARD_SCAN_DIRS", "work, projects ,")
        env.setenv("NOTECARD_EXCLUDE_TAGS", "private")
        env.setenv("NOTECARD_CONCURRENCY", "5")
        env.setenv("NOTECARD_DRY_RUN", "yes")

        cfg = IndexConfig.from_env()

        assert cfg.provider == ProviderTag.LOCAL
        assert cfg.model == "llama3.1"
        assert cfg.scan_directories == ("work", "projects")
        assert cfg.exclude_tags == ("private",)
        assert cfg.concurrency == 5
        assert cfg.dry_run_enabled is True

    def test_vault_root_required(self, env):
        env.delenv("NOTECARD_VAULT_ROOT")
        with pytest.raises(ValueError, match="NOTECARD_VAULT_ROOT"):
            IndexConfig.from_env()

    def test_unknown_provider(self, env):
        env.setenv("NOTECARD_PROVIDER", "mystery")
        with pytest.raises(ValueError, match="NOTECARD_PROVIDER"):
            IndexConfig.from_env()


class TestValidate:
    def _cfg(self, **overrides) -> IndexConfig:
        fields = dict(
            vault_root="/vault",
            index_directory=".notecards/index",
            error_log_path=".notecards/error_log.md",
            api_key="k",
        )
        fields.update(overrides)
        return IndexConfig(**fields)

    def test_valid(self):
        self._cfg().validate()

    @pytest.mark.parametrize(
        ("overrides", "var"),
        [
            ({"concurrency": 0}, "NOTECARD_CONCURRENCY"),
            ({"max_retries": -1}, "NOTECARD_MAX_RETRIES"),
            ({"timeout_seconds": 0}, "NOTECARD_TIMEOUT_SECONDS"),
            ({"channel_size": 0}, "NOTECARD_CHANNEL_SIZE"),
            ({"api_key": None}, "NOTECARD_API_KEY"),
        ],
    )
    def test_invalid(self, overrides, var):
        with pytest.raises(ValueError, match=var):
            self._cfg(**overrides).validate()

    def test_proxy_needs_no_key(self):
        self._cfg(api_key=None, custom_base_url="http://proxy/v1/chat/completions").validate()

    def test_local_needs_no_key(self):
        self._cfg(api_key=None, provider=ProviderTag.LOCAL, model="llama3.1").validate()

    def test_absolute_index_dir_kept(self):
        assert self._cfg(index_directory="/data/index").index_path == Path("/data/index")
