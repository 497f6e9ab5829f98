"""Configuration utilities shared by the pipeline workers, router and CLIs."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Optional

from .policy import DEFAULT_POISON_THRESHOLD

DEFAULT_SCRAPER_BASE_URL = "https://api.scrapecreators.com"
DEFAULT_GEOCODER_BASE_URL = "https://api.mapbox.com/geocoding/v5/mapbox.places"
DEFAULT_OPENAI_MODEL = "gpt-4o-mini"
DEFAULT_EMBEDDING_MODEL = "text-embedding-3-small"
DEFAULT_EMBEDDING_DIMENSIONS = 1536


def _env_str(name: str, default: Optional[str] = None) -> Optional[str]:
    value = os.getenv(name)
    if value is None:
        return default
    cleaned = value.strip()
    return cleaned or default


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None:
        return default
    try:
        parsed = int(value)
    except ValueError:
        return default
    return max(0, parsed)


def _env_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None:
        return default
    try:
        parsed = float(value)
    except ValueError:
        return default
    return max(0.0, parsed)


@dataclass(slots=True)
class StageConfig:
    """Visibility windows, sized to the slowest external call of each stage."""

    scrape_visibility_timeout: int = 120
    enrich_visibility_timeout: int = 300
    geo_visibility_timeout: int = 120


@dataclass(slots=True)
class RetryConfig:
    poison_threshold: int = DEFAULT_POISON_THRESHOLD


@dataclass(slots=True)
class ScraperConfig:
    api_key: Optional[str] = None
    base_url: str = DEFAULT_SCRAPER_BASE_URL
    request_timeout: float = 60.0


@dataclass(slots=True)
class OpenAIConfig:
    api_key: Optional[str] = None
    model: str = DEFAULT_OPENAI_MODEL
    embedding_model: str = DEFAULT_EMBEDDING_MODEL
    embedding_dimensions: int | None = DEFAULT_EMBEDDING_DIMENSIONS
    request_timeout: float = 120.0


@dataclass(slots=True)
class GeocoderConfig:
    access_token: Optional[str] = None
    base_url: str = DEFAULT_GEOCODER_BASE_URL
    request_timeout: float = 30.0


@dataclass(slots=True)
class WorkerConfig:
    """Idle polling controls for long-lived drain loops."""

    idle_backoff_base: float = 1.0
    idle_backoff_max: float = 30.0


@dataclass(slots=True)
class PipelineConfig:
    db_url: Optional[str] = None
    stages: StageConfig = field(default_factory=StageConfig)
    retry: RetryConfig = field(default_factory=RetryConfig)
    scraper: ScraperConfig = field(default_factory=ScraperConfig)
    openai: OpenAIConfig = field(default_factory=OpenAIConfig)
    geocoder: GeocoderConfig = field(default_factory=GeocoderConfig)
    worker: WorkerConfig = field(default_factory=WorkerConfig)

    def visibility_timeout(self, stage_name: str) -> int:
        try:
            return getattr(self.stages, f"{stage_name}_visibility_timeout")
        except AttributeError as exc:
            raise KeyError(f"Unknown stage '{stage_name}'") from exc


def load_config(db_url: Optional[str] = None) -> PipelineConfig:
    """Build a configuration from environment variables, with an optional db_url override."""

    stage_defaults = StageConfig()
    stages = StageConfig(
        scrape_visibility_timeout=_env_int(
            "VIDEOPIPE_SCRAPE_VISIBILITY_TIMEOUT", stage_defaults.scrape_visibility_timeout
        ),
        enrich_visibility_timeout=_env_int(
            "VIDEOPIPE_ENRICH_VISIBILITY_TIMEOUT", stage_defaults.enrich_visibility_timeout
        ),
        geo_visibility_timeout=_env_int(
            "VIDEOPIPE_GEO_VISIBILITY_TIMEOUT", stage_defaults.geo_visibility_timeout
        ),
    )

    dimensions: int | None = _env_int("VIDEOPIPE_EMBEDDING_DIMENSIONS", DEFAULT_EMBEDDING_DIMENSIONS)
    if not dimensions:
        # 0 disables the dimensionality check
        dimensions = None

    worker_defaults = WorkerConfig()
    return PipelineConfig(
        db_url=db_url or _env_str("VIDEOPIPE_DATABASE_URL"),
        stages=stages,
        retry=RetryConfig(
            poison_threshold=_env_int("VIDEOPIPE_POISON_THRESHOLD", DEFAULT_POISON_THRESHOLD),
        ),
        scraper=ScraperConfig(
            api_key=_env_str("SCRAPECREATORS_API_KEY"),
            base_url=_env_str("SCRAPECREATORS_BASE_URL", DEFAULT_SCRAPER_BASE_URL),
            request_timeout=_env_float("SCRAPECREATORS_TIMEOUT", ScraperConfig().request_timeout),
        ),
        openai=OpenAIConfig(
            api_key=_env_str("OPENAI_API_KEY"),
            model=_env_str("OPENAI_MODEL", DEFAULT_OPENAI_MODEL),
            embedding_model=_env_str("OPENAI_EMBEDDING_MODEL", DEFAULT_EMBEDDING_MODEL),
            embedding_dimensions=dimensions,
            request_timeout=_env_float("OPENAI_TIMEOUT", OpenAIConfig().request_timeout),
        ),
        geocoder=GeocoderConfig(
            access_token=_env_str("MAPBOX_ACCESS_TOKEN"),
            base_url=_env_str("MAPBOX_GEOCODING_URL", DEFAULT_GEOCODER_BASE_URL),
            request_timeout=_env_float("MAPBOX_TIMEOUT", GeocoderConfig().request_timeout),
        ),
        worker=WorkerConfig(
            idle_backoff_base=_env_float("VIDEOPIPE_IDLE_BACKOFF_BASE", worker_defaults.idle_backoff_base),
            idle_backoff_max=_env_float("VIDEOPIPE_IDLE_BACKOFF_MAX", worker_defaults.idle_backoff_max),
        ),
    )
