"""Gemini extraction provider (google-genai SDK).

The SDK call is blocking, so it runs in a worker thread under a hard
timeout. A timed-out thread is abandoned rather than interrupted; the
caller only stops waiting for it.
"""

from __future__ import annotations

import asyncio
import logging
import os

from google import genai
from google.genai import errors as genai_errors

from notecard_service.indexing.errors import ProviderError
from notecard_service.providers.base import ExtractionProvider, ExtractionRequest, ProviderTag

logger = logging.getLogger(__name__)


def _is_gcp_environment() -> bool:
    """Detect if running on GCP (Cloud Run, GCE, etc.)."""
    return bool(os.getenv("K_SERVICE") or os.getenv("GOOGLE_APPLICATION_CREDENTIALS"))


class GeminiExtractionProvider(ExtractionProvider):
    tag = ProviderTag.GOOGLE

    def __init__(
        self,
        *,
        model: str,
        api_key: str | None = None,
        timeout_seconds: float = 30.0,
        client: genai.Client | None = None,
    ) -> None:
        self.model = model
        self._api_key = api_key
        self._timeout = timeout_seconds
        self._client = client

    def _get_client(self) -> genai.Client:
        """Client with automatic credential detection, created on first use."""
        if self._client is None:
            if _is_gcp_environment() and not self._api_key:
                self._client = genai.Client(
                    vertexai=True,
                    project=os.getenv("GOOGLE_CLOUD_PROJECT"),
                    location=os.getenv("GOOGLE_CLOUD_LOCATION", "us-central1"),
                )
            else:
                api_key = self._api_key or os.getenv("GEMINI_API_KEY")
                if not api_key:
                    raise ProviderError(
                        "GEMINI_API_KEY not set. Set it for local dev or run on GCP for ADC.",
                        provider=self.tag,
                    )
                self._client = genai.Client(api_key=api_key)
        return self._client

    def _generate(self, request: ExtractionRequest) -> str:
        response = self._get_client().models.generate_content(
            model=self.model,
            contents=request.prompt,
            config={
                "temperature": request.temperature,
                "response_mime_type": "application/json" if request.json_mode else "text/plain",
            },
        )
        text = response.text
        if not text:
            raise ProviderError("Gemini response was empty", provider=self.tag, retryable=True)
        return text

    async def complete(self, request: ExtractionRequest) -> str:
        try:
            return await asyncio.wait_for(
                asyncio.to_thread(self._generate, request), timeout=self._timeout
            )
        except TimeoutError as e:
            raise ProviderError(
                f"LLM request timed out after {self._timeout}s",
                provider=self.tag,
                retryable=True,
            ) from e
        except genai_errors.APIError as e:
            code = getattr(e, "code", None)
            retryable = isinstance(e, genai_errors.ServerError) or code == 429
            raise ProviderError(
                f"Gemini request failed: {e}",
                provider=self.tag,
                status_code=code,
                retryable=retryable,
            ) from e
