"""Per-provider request/response shapes for HTTP chat endpoints.

Each strategy exposes the same ``build_request`` / ``parse_response`` pair;
the provider tag picks the strategy, never the shape of a response.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any

from notecard_service.config import (
    NOTECARD_ANTHROPIC_MAX_TOKENS,
    NOTECARD_ANTHROPIC_URL,
    NOTECARD_ANTHROPIC_VERSION,
    NOTECARD_OLLAMA_URL,
    NOTECARD_OPENAI_URL,
)
from notecard_service.indexing.errors import ProviderError
from notecard_service.providers.base import ExtractionRequest, ProviderTag


@dataclass(frozen=True)
class HttpRequestSpec:
    url: str
    headers: dict[str, str]
    body: dict[str, Any] = field(default_factory=dict)


class ProviderStrategy(ABC):
    tag: ProviderTag

    def __init__(self, *, model: str, api_key: str | None = None, base_url: str | None = None) -> None:
        self.model = model
        self.api_key = api_key
        self.base_url = base_url

    @abstractmethod
    def build_request(self, request: ExtractionRequest) -> HttpRequestSpec: ...

    @abstractmethod
    def parse_response(self, data: dict[str, Any]) -> str: ...

    def _empty(self) -> ProviderError:
        return ProviderError(
            f"{self.tag} response contained no text", provider=self.tag, retryable=True
        )


class OpenAIStrategy(ProviderStrategy):
    """OpenAI chat completions; also used for OpenAI-compatible proxies."""

    tag = ProviderTag.OPENAI

    def build_request(self, request: ExtractionRequest) -> HttpRequestSpec:
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        body: dict[str, Any] = {
            "model": self.model,
            "messages": [{"role": "user", "content": request.prompt}],
            "temperature": request.temperature,
        }
        if request.json_mode:
            body["response_format"] = {"type": "json_object"}
        return HttpRequestSpec(url=self.base_url or NOTECARD_OPENAI_URL, headers=headers, body=body)

    def parse_response(self, data: dict[str, Any]) -> str:
        try:
            text = data["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError) as e:
            raise self._empty() from e
        if not text:
            raise self._empty()
        return str(text)


class AnthropicStrategy(ProviderStrategy):
    tag = ProviderTag.ANTHROPIC

    def build_request(self, request: ExtractionRequest) -> HttpRequestSpec:
        headers = {
            "Content-Type": "application/json",
            "anthropic-version": NOTECARD_ANTHROPIC_VERSION,
        }
        if self.api_key:
            headers["x-api-key"] = self.api_key
        body = {
            "model": self.model,
            "max_tokens": NOTECARD_ANTHROPIC_MAX_TOKENS,
            "messages": [{"role": "user", "content": request.prompt}],
            "temperature": request.temperature,
        }
        return HttpRequestSpec(url=self.base_url or NOTECARD_ANTHROPIC_URL, headers=headers, body=body)

    def parse_response(self, data: dict[str, Any]) -> str:
        try:
            text = data["content"][0]["text"]
        except (KeyError, IndexError, TypeError) as e:
            raise self._empty() from e
        if not text:
            raise self._empty()
        return str(text)


class OllamaStrategy(ProviderStrategy):
    tag = ProviderTag.LOCAL

    def build_request(self, request: ExtractionRequest) -> HttpRequestSpec:
        base = (self.base_url or NOTECARD_OLLAMA_URL).rstrip("/")
        body: dict[str, Any] = {
            "model": self.model,
            "messages": [{"role": "user", "content": request.prompt}],
            "stream": False,
            "options": {"temperature": request.temperature},
        }
        if request.json_mode:
            body["format"] = "json"
        return HttpRequestSpec(
            url=f"{base}/api/chat", headers={"Content-Type": "application/json"}, body=body
        )

    def parse_response(self, data: dict[str, Any]) -> str:
        try:
            text = data["message"]["content"]
        except (KeyError, TypeError) as e:
            raise self._empty() from e
        if not text:
            raise self._empty()
        return str(text)


HTTP_STRATEGIES: dict[ProviderTag, type[ProviderStrategy]] = {
    ProviderTag.OPENAI: OpenAIStrategy,
    ProviderTag.ANTHROPIC: AnthropicStrategy,
    ProviderTag.LOCAL: OllamaStrategy,
}
