from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import StrEnum
from typing import TypeVar

from pydantic import BaseModel, ValidationError

from notecard_service.indexing.errors import ExtractionValidationError
from notecard_service.providers.json_cleaner import clean_and_parse_json

SchemaT = TypeVar("SchemaT", bound=BaseModel)


class ProviderTag(StrEnum):
    OPENAI = "openai"
    ANTHROPIC = "anthropic"
    GOOGLE = "google"
    LOCAL = "local"  # Ollama

    @property
    def is_external(self) -> bool:
        return self is not ProviderTag.LOCAL


@dataclass(frozen=True)
class ExtractionRequest:
    note_path: str
    prompt: str
    temperature: float = 0.7
    json_mode: bool = True


def validate_output(raw: str, output_schema: type[SchemaT]) -> SchemaT:
    """Parse raw model text and validate it against ``output_schema``."""
    parsed = clean_and_parse_json(raw)
    try:
        return output_schema.model_validate(parsed)
    except ValidationError as e:
        raise ExtractionValidationError(
            f"Schema validation failed ({e.error_count()} errors): {e}"
        ) from e


class ExtractionProvider(ABC):
    """Capability interface for a text-generation provider.

    ``complete`` performs one request and returns the raw text, raising
    ``ProviderError`` (with ``retryable`` set) on failure. Implementations
    enforce their own request timeout.
    """

    tag: ProviderTag

    @abstractmethod
    async def complete(self, request: ExtractionRequest) -> str: ...

    async def call(self, request: ExtractionRequest, output_schema: type[SchemaT]) -> SchemaT:
        raw = await self.complete(request)
        return validate_output(raw, output_schema)

    async def aclose(self) -> None:
        return None
