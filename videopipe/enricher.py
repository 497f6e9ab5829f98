"""Language-model enrichment and embeddings for video transcripts."""

from __future__ import annotations

import json
import logging
from typing import Any, List, Literal, Optional

from openai import OpenAI, OpenAIError
from pydantic import BaseModel, ConfigDict, ValidationError, field_validator

from .config import OpenAIConfig

LOGGER = logging.getLogger(__name__)

SYSTEM_PROMPT = (
    "You are a video content analyst. Given a video transcript, return a JSON object with these fields: "
    '"summary" (2-3 sentence summary), '
    '"sentiment" (one of: positive, negative, neutral, mixed), '
    '"tags" (array of 5-10 relevant keyword strings), '
    '"categories" (array of 1-3 broad topic category strings), '
    '"venue" (name of the venue/place - use transcript if mentioned, otherwise infer from context '
    "or your knowledge, or null), "
    '"address" (street address - use transcript if mentioned, otherwise infer from your knowledge '
    "of the venue, or null), "
    '"city" (city name - use transcript if mentioned, otherwise infer from your knowledge of the venue, or null), '
    '"neighborhood" (neighborhood/district - use transcript if mentioned, otherwise infer from your knowledge '
    "of the venue, or null), "
    '"price" (price or price range if mentioned e.g. "$20" or "$10-$30", or null).'
)


class EnrichmentError(RuntimeError):
    """Raised when the language model cannot produce an enrichment."""


class EmptyResponseError(EnrichmentError):
    """Raised when the model answers without any content."""


class EnrichmentResponseError(EnrichmentError):
    """Raised when the model answer is not valid JSON of the expected shape."""


class EnrichmentResult(BaseModel):
    model_config = ConfigDict(extra="ignore")

    summary: str
    sentiment: Literal["positive", "negative", "neutral", "mixed"]
    tags: List[str]
    categories: List[str]
    venue: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    neighborhood: Optional[str] = None
    price: Optional[str] = None

    @field_validator("sentiment", mode="before")
    @classmethod
    def lower_sentiment(cls, value: Any) -> Any:
        return value.strip().lower() if isinstance(value, str) else value

    @field_validator("tags", "categories", mode="before")
    @classmethod
    def dedupe_keywords(cls, value: Any) -> Any:
        if not isinstance(value, list):
            return value
        seen: list[Any] = []
        for item in value:
            if item not in seen:
                seen.append(item)
        return seen

    @field_validator("venue", "address", "city", "neighborhood", "price", mode="before")
    @classmethod
    def blank_to_none(cls, value: Any) -> Any:
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return str(value)
        if isinstance(value, str) and not value.strip():
            return None
        return value

    def record_fields(self) -> dict[str, Any]:
        return self.model_dump()


class OpenAIEnricher:
    """Summary, sentiment, tags and location hints via chat completions; vectors via embeddings."""

    def __init__(self, config: OpenAIConfig, *, client: OpenAI | None = None) -> None:
        self._config = config
        self._client = client

    def _get_client(self) -> OpenAI:
        # Built on first use so stages that never call the model need no API key
        if self._client is None:
            self._client = OpenAI(api_key=self._config.api_key, timeout=self._config.request_timeout)
        return self._client

    def enrich(self, transcript: str) -> EnrichmentResult:
        try:
            response = self._get_client().chat.completions.create(
                model=self._config.model,
                response_format={"type": "json_object"},
                messages=[
                    {"role": "system", "content": SYSTEM_PROMPT},
                    {"role": "user", "content": f"Analyze this transcript:\n\n{transcript}"},
                ],
            )
        except OpenAIError as exc:
            raise EnrichmentError(f"OpenAI enrichment request failed: {exc}") from exc

        content = response.choices[0].message.content if response.choices else None
        if not content:
            raise EmptyResponseError("Empty response from OpenAI enrichment")

        try:
            payload = json.loads(content)
        except json.JSONDecodeError as exc:
            raise EnrichmentResponseError(f"OpenAI enrichment returned invalid JSON: {exc}") from exc

        try:
            return EnrichmentResult.model_validate(payload)
        except ValidationError as exc:
            raise EnrichmentResponseError(f"OpenAI enrichment has an unexpected shape: {exc}") from exc

    def embed(self, text: str) -> list[float]:
        try:
            response = self._get_client().embeddings.create(model=self._config.embedding_model, input=text)
        except OpenAIError as exc:
            raise EnrichmentError(f"OpenAI embedding request failed: {exc}") from exc

        embedding = response.data[0].embedding if response.data else None
        if not embedding:
            raise EmptyResponseError("Empty embedding from OpenAI")

        expected = self._config.embedding_dimensions
        if expected and len(embedding) != expected:
            raise EnrichmentResponseError(
                f"Embedding has {len(embedding)} dimensions, expected {expected}"
            )
        return [float(value) for value in embedding]
