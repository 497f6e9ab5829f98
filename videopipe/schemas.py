"""Data models shared by the pipeline stages and their queue payloads."""

from __future__ import annotations

from dataclasses import asdict, dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Mapping

TRANSCRIPT_PREVIEW_LIMIT = 500

SCRAPE_QUEUE = "scrape_jobs"
ENRICH_QUEUE = "enrich_jobs"
GEO_QUEUE = "geo_jobs"


class Platform(str, Enum):
    YOUTUBE = "youtube"
    YOUTUBE_SHORTS = "youtube_shorts"
    TIKTOK = "tiktok"
    INSTAGRAM = "instagram"


class ProcessingStatus(str, Enum):
    PENDING = "pending"
    SCRAPING = "scraping"
    ENRICHING = "enriching"
    DONE = "done"
    FAILED = "failed"


IN_PROGRESS_STATUSES = frozenset({ProcessingStatus.SCRAPING.value, ProcessingStatus.ENRICHING.value})


class PayloadError(ValueError):
    """Raised when a queue payload does not match the expected job shape."""


def _require_str(payload: Mapping[str, Any], key: str) -> str:
    value = payload.get(key)
    if not isinstance(value, str) or not value:
        raise PayloadError(f"Job payload field '{key}' must be a non-empty string")
    return value


def _optional_str(payload: Mapping[str, Any], key: str) -> str | None:
    value = payload.get(key)
    if value is None:
        return None
    if not isinstance(value, str):
        raise PayloadError(f"Job payload field '{key}' must be a string or null")
    return value


def preview_of(transcript_text: str) -> str:
    return transcript_text[:TRANSCRIPT_PREVIEW_LIMIT]


@dataclass(slots=True)
class VideoData:
    """Transcript and metadata returned by the scraping provider."""

    transcript_text: str
    transcript_url: str | None
    transcript_preview: str
    title: str | None
    creator: str | None
    published: str | None
    platform: Platform
    normalized_url: str

    def to_payload(self) -> dict[str, Any]:
        payload = asdict(self)
        payload["platform"] = self.platform.value
        return payload

    @classmethod
    def from_payload(cls, payload: Any) -> "VideoData":
        if not isinstance(payload, Mapping):
            raise PayloadError("videoData must be an object")
        transcript_text = payload.get("transcript_text")
        if not isinstance(transcript_text, str):
            raise PayloadError("videoData.transcript_text must be a string")
        try:
            platform = Platform(payload.get("platform"))
        except ValueError as exc:
            raise PayloadError(f"Unknown platform {payload.get('platform')!r}") from exc
        preview = _optional_str(payload, "transcript_preview")
        return cls(
            transcript_text=transcript_text,
            transcript_url=_optional_str(payload, "transcript_url"),
            transcript_preview=preview_of(preview if preview is not None else transcript_text),
            title=_optional_str(payload, "title"),
            creator=_optional_str(payload, "creator"),
            published=_optional_str(payload, "published"),
            platform=platform,
            normalized_url=_require_str(payload, "normalized_url"),
        )

    def metadata_fields(self) -> dict[str, Any]:
        """Record fields written even when no transcript is available."""

        return {
            "platform": self.platform.value,
            "normalized_url": self.normalized_url,
            "creator": self.creator,
            "title": self.title,
            "published": self.published,
            "transcript_url": self.transcript_url,
        }


@dataclass(slots=True)
class ScraperJob:
    id: str
    video_url: str

    def to_payload(self) -> dict[str, Any]:
        return {"id": self.id, "video_url": self.video_url}

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "ScraperJob":
        return cls(id=_require_str(payload, "id"), video_url=_require_str(payload, "video_url"))


@dataclass(slots=True)
class EnrichJob:
    id: str
    video_data: VideoData

    def to_payload(self) -> dict[str, Any]:
        return {"id": self.id, "videoData": self.video_data.to_payload()}

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "EnrichJob":
        return cls(
            id=_require_str(payload, "id"),
            video_data=VideoData.from_payload(payload.get("videoData")),
        )


@dataclass(slots=True)
class GeoJob:
    id: str
    venue: str | None = None
    address: str | None = None
    city: str | None = None
    neighborhood: str | None = None

    def to_payload(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "GeoJob":
        return cls(
            id=_require_str(payload, "id"),
            venue=_optional_str(payload, "venue"),
            address=_optional_str(payload, "address"),
            city=_optional_str(payload, "city"),
            neighborhood=_optional_str(payload, "neighborhood"),
        )

    def has_location_hint(self) -> bool:
        return any(
            value and value.strip()
            for value in (self.venue, self.address, self.city, self.neighborhood)
        )

    def text_fields(self) -> dict[str, str | None]:
        return {
            "venue": self.venue,
            "address": self.address,
            "city": self.city,
            "neighborhood": self.neighborhood,
        }


@dataclass(slots=True)
class QueueEnvelope:
    """A leased queue message together with its delivery bookkeeping."""

    msg_id: int
    read_ct: int
    enqueued_at: datetime
    vt: datetime
    message: dict[str, Any]
