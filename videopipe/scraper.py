"""HTTP client for the transcript scraping provider."""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Optional, Type, TypeVar, Union

import httpx
from pydantic import BaseModel, ConfigDict, ValidationError

from .config import ScraperConfig
from .platforms import detect_platform, normalize_url
from .schemas import Platform, VideoData, preview_of

LOGGER = logging.getLogger(__name__)

_YOUTUBE_TRANSCRIPT_PATH = "/v1/youtube/video/transcript"
_YOUTUBE_VIDEO_PATH = "/v1/youtube/video"
_TIKTOK_TRANSCRIPT_PATH = "/v1/tiktok/video/transcript"
_INSTAGRAM_TRANSCRIPT_PATH = "/v1/instagram/media/transcript"


class ProviderError(RuntimeError):
    """Raised when the scraping provider is unreachable or answers with an error."""


class ProviderResponseError(ProviderError):
    """Raised when a provider response does not match the expected schema."""


class _ProviderModel(BaseModel):
    model_config = ConfigDict(extra="ignore")


class TranscriptSegment(_ProviderModel):
    text: Optional[str] = None


class YouTubeTranscriptResponse(_ProviderModel):
    transcript: Union[list[TranscriptSegment], str, None] = None
    text: Optional[str] = None
    url: Optional[str] = None
    title: Optional[str] = None

    def transcript_text(self) -> str:
        raw = self.transcript if self.transcript is not None else self.text
        if raw is None:
            return ""
        if isinstance(raw, list):
            return " ".join(segment.text or "" for segment in raw)
        return raw


class YouTubeChannel(_ProviderModel):
    title: Optional[str] = None


class YouTubeVideoResponse(_ProviderModel):
    title: Optional[str] = None
    channel: Optional[YouTubeChannel] = None
    channelTitle: Optional[str] = None
    author: Optional[str] = None
    publishedAt: Optional[str] = None
    published: Optional[str] = None

    def creator(self) -> str | None:
        if self.channel is not None and self.channel.title:
            return self.channel.title
        return self.channelTitle or self.author

    def published_at(self) -> str | None:
        return self.publishedAt or self.published


class ShortFormTranscriptResponse(_ProviderModel):
    """Transcript payload shared by the TikTok and Instagram endpoints."""

    transcript: Optional[str] = None
    text: Optional[str] = None
    url: Optional[str] = None
    title: Optional[str] = None
    author: Optional[str] = None
    username: Optional[str] = None
    published: Optional[str] = None

    def transcript_text(self) -> str:
        if self.transcript is not None:
            return self.transcript
        return self.text or ""


ModelT = TypeVar("ModelT", bound=_ProviderModel)


class ScrapeCreatorsClient:
    """Fetches transcripts and metadata for supported platforms."""

    def __init__(
        self,
        config: ScraperConfig,
        *,
        client: httpx.Client | None = None,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self._config = config
        self._transport = transport
        self._client = client or self._build_client()
        self._owns_client = client is None

    def _build_client(self) -> httpx.Client:
        headers = {"Accept": "application/json"}
        if self._config.api_key:
            headers["x-api-key"] = self._config.api_key
        kwargs: dict[str, object] = {
            "base_url": self._config.base_url,
            "timeout": self._config.request_timeout,
            "headers": headers,
            "follow_redirects": True,
        }
        if self._transport:
            kwargs["transport"] = self._transport
        return httpx.Client(**kwargs)

    def fetch_video_data(self, url: str) -> VideoData:
        platform = detect_platform(url)
        if platform in (Platform.YOUTUBE, Platform.YOUTUBE_SHORTS):
            return self._fetch_youtube(url, platform)
        path = _TIKTOK_TRANSCRIPT_PATH if platform == Platform.TIKTOK else _INSTAGRAM_TRANSCRIPT_PATH
        return self._fetch_short_form(url, platform, path)

    def _fetch_youtube(self, url: str, platform: Platform) -> VideoData:
        # Transcript and metadata are independent lookups; both must succeed.
        with ThreadPoolExecutor(max_workers=2) as executor:
            transcript_future = executor.submit(
                self._get_model, _YOUTUBE_TRANSCRIPT_PATH, url, YouTubeTranscriptResponse
            )
            metadata_future = executor.submit(self._get_model, _YOUTUBE_VIDEO_PATH, url, YouTubeVideoResponse)
            transcript = transcript_future.result()
            metadata = metadata_future.result()

        transcript_text = transcript.transcript_text()
        return VideoData(
            transcript_text=transcript_text,
            transcript_url=transcript.url,
            transcript_preview=preview_of(transcript_text),
            title=metadata.title or transcript.title,
            creator=metadata.creator(),
            published=metadata.published_at(),
            platform=platform,
            normalized_url=normalize_url(url),
        )

    def _fetch_short_form(self, url: str, platform: Platform, path: str) -> VideoData:
        data = self._get_model(path, url, ShortFormTranscriptResponse)
        transcript_text = data.transcript_text()
        return VideoData(
            transcript_text=transcript_text,
            transcript_url=data.url,
            transcript_preview=preview_of(transcript_text),
            title=data.title,
            creator=data.author or data.username,
            published=data.published,
            platform=platform,
            normalized_url=normalize_url(url),
        )

    def _get_model(self, path: str, url: str, model: Type[ModelT]) -> ModelT:
        payload = self._get_json(path, url)
        try:
            return model.model_validate(payload)
        except ValidationError as exc:
            raise ProviderResponseError(f"Unexpected response shape from {path}: {exc}") from exc

    def _get_json(self, path: str, url: str) -> Any:
        try:
            response = self._client.get(path, params={"url": url})
        except httpx.HTTPError as exc:
            raise ProviderError(f"Scraping provider request to {path} failed: {exc}") from exc

        if not response.is_success:
            LOGGER.warning("Scraping provider answered %d for %s", response.status_code, path)
            raise ProviderError(f"Scraping provider error {response.status_code}: {response.text}")

        try:
            return response.json()
        except ValueError as exc:
            raise ProviderResponseError(f"Scraping provider returned invalid JSON for {path}") from exc

    def close(self) -> None:
        if self._owns_client:
            self._client.close()

    def __enter__(self) -> "ScrapeCreatorsClient":  # pragma: no cover - convenience wrapper
        return self

    def __exit__(self, *_exc_info) -> None:  # pragma: no cover - convenience wrapper
        self.close()
