"""Shared fixtures for the pipeline tests: an in-memory database and fake collaborators."""

from __future__ import annotations

from datetime import datetime, timedelta

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from models import Base
from videopipe.enricher import EnrichmentResult
from videopipe.geo import Coordinates
from videopipe.platforms import detect_platform, normalize_url
from videopipe.schemas import VideoData, preview_of


def make_session_factory():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    return sessionmaker(bind=engine)


class FakeClock:
    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime(2024, 1, 1, 12, 0, 0)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


class RecordingWaker:
    def __init__(self, fail: bool = False) -> None:
        self.calls: list[str] = []
        self.fail = fail

    def wake(self, stage_name: str) -> None:
        self.calls.append(stage_name)
        if self.fail:
            raise RuntimeError("broker unreachable")


def make_video_data(url: str = "https://www.tiktok.com/@chef/video/123", transcript: str = "Great tacos at Lupe's.") -> VideoData:
    return VideoData(
        transcript_text=transcript,
        transcript_url="https://cdn.example.com/transcript.vtt",
        transcript_preview=preview_of(transcript),
        title="Best tacos in town",
        creator="chef",
        published="2024-05-01",
        platform=detect_platform(url),
        normalized_url=normalize_url(url),
    )


class FakeScraper:
    def __init__(self, transcript: str = "Great tacos at Lupe's on Mission Street in San Francisco.") -> None:
        self.transcript = transcript
        self.calls: list[str] = []

    def fetch_video_data(self, url: str) -> VideoData:
        self.calls.append(url)
        return make_video_data(url, self.transcript)


class FakeEnricher:
    def __init__(self, dimensions: int = 1536, **overrides) -> None:
        self.dimensions = dimensions
        self.enrich_calls = 0
        self.embed_calls = 0
        self.payload = {
            "summary": "A taco review.",
            "sentiment": "positive",
            "tags": ["tacos", "food", "tacos"],
            "categories": ["Food"],
            "venue": "Lupe's",
            "address": "123 Mission St",
            "city": "San Francisco",
            "neighborhood": "Mission",
            "price": "$12",
        }
        self.payload.update(overrides)

    def enrich(self, transcript: str) -> EnrichmentResult:
        self.enrich_calls += 1
        return EnrichmentResult.model_validate(self.payload)

    def embed(self, text: str) -> list[float]:
        self.embed_calls += 1
        return [0.25] * self.dimensions


class FakeGeocoder:
    def __init__(self, coordinates: Coordinates | None = Coordinates(lat=37.76, lng=-122.42)) -> None:
        self.coordinates = coordinates
        self.queries: list[str] = []

    def geocode(self, query: str) -> Coordinates | None:
        self.queries.append(query)
        return self.coordinates
