from __future__ import annotations

import logging

import httpx

from notecard_service.indexing.errors import ProviderError
from notecard_service.providers.base import ExtractionProvider, ExtractionRequest
from notecard_service.providers.strategies import ProviderStrategy

logger = logging.getLogger(__name__)

_ERROR_BODY_MAX_CHARS = 500


def is_retryable_status(status_code: int) -> bool:
    return status_code == 429 or 500 <= status_code < 600


class HttpExtractionProvider(ExtractionProvider):
    """Single-shot chat request over httpx. Retries are the caller's concern."""

    def __init__(
        self,
        strategy: ProviderStrategy,
        *,
        timeout_seconds: float = 30.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.strategy = strategy
        self.tag = strategy.tag
        self._timeout = timeout_seconds
        self._client = client
        self._owns_client = client is None

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self._timeout)
        return self._client

    async def complete(self, request: ExtractionRequest) -> str:
        spec = self.strategy.build_request(request)
        try:
            resp = await self._get_client().post(
                spec.url, headers=spec.headers, json=spec.body, timeout=self._timeout
            )
        except httpx.TimeoutException as e:
            raise ProviderError(
                f"LLM request timed out after {self._timeout}s",
                provider=self.tag,
                retryable=True,
            ) from e
        except httpx.HTTPError as e:
            raise ProviderError(
                f"LLM request failed: {type(e).__name__}: {e}",
                provider=self.tag,
                retryable=True,
            ) from e

        if resp.status_code >= 400:
            raise ProviderError(
                f"LLM request failed: {resp.status_code} - {resp.text[:_ERROR_BODY_MAX_CHARS]}",
                provider=self.tag,
                status_code=resp.status_code,
                retryable=is_retryable_status(resp.status_code),
            )

        try:
            data = resp.json()
        except ValueError as e:
            raise ProviderError(
                "LLM response body was not JSON",
                provider=self.tag,
                status_code=resp.status_code,
                retryable=True,
            ) from e

        return self.strategy.parse_response(data)

    async def aclose(self) -> None:
        if self._owns_client and self._client is not None:
            await self._client.aclose()
            self._client = None
