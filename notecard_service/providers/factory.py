from __future__ import annotations

import logging

from notecard_service.indexing.config import IndexConfig
from notecard_service.providers.base import ExtractionProvider, ProviderTag
from notecard_service.providers.gemini import GeminiExtractionProvider
from notecard_service.providers.http import HttpExtractionProvider
from notecard_service.providers.strategies import HTTP_STRATEGIES, OpenAIStrategy

logger = logging.getLogger(__name__)


def build_provider(cfg: IndexConfig) -> ExtractionProvider:
    """Select the provider implementation for ``cfg.provider``.

    A custom base URL routes every provider through an OpenAI-compatible
    proxy, whatever the configured tag.
    """
    if cfg.custom_base_url:
        logger.info("Using OpenAI-compatible proxy at %s", cfg.custom_base_url)
        strategy = OpenAIStrategy(
            model=cfg.model, api_key=cfg.api_key, base_url=cfg.custom_base_url
        )
        return HttpExtractionProvider(strategy, timeout_seconds=cfg.timeout_seconds)

    if cfg.provider == ProviderTag.GOOGLE:
        return GeminiExtractionProvider(
            model=cfg.model, api_key=cfg.api_key, timeout_seconds=cfg.timeout_seconds
        )

    strategy_cls = HTTP_STRATEGIES[cfg.provider]
    strategy = strategy_cls(model=cfg.model, api_key=cfg.api_key, base_url=cfg.base_url)
    return HttpExtractionProvider(strategy, timeout_seconds=cfg.timeout_seconds)
