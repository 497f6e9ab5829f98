"""The scrape, enrich and geo stages expressed as stage definitions."""

from __future__ import annotations

import logging
from typing import Any, Mapping, Protocol

from .config import PipelineConfig
from .enricher import EnrichmentResult
from .geo import Coordinates, build_query
from .schemas import (
    ENRICH_QUEUE,
    GEO_QUEUE,
    SCRAPE_QUEUE,
    EnrichJob,
    GeoJob,
    ProcessingStatus,
    ScraperJob,
    VideoData,
)
from .stage import Handoff, StageDefinition, StepOutcome

LOGGER = logging.getLogger(__name__)


class Scraper(Protocol):
    def fetch_video_data(self, url: str) -> VideoData:  # pragma: no cover - interface only
        ...


class Enricher(Protocol):
    def enrich(self, transcript: str) -> EnrichmentResult:  # pragma: no cover - interface only
        ...

    def embed(self, text: str) -> list[float]:  # pragma: no cover - interface only
        ...


class Geocoder(Protocol):
    def geocode(self, query: str) -> Coordinates | None:  # pragma: no cover - interface only
        ...


def scrape_step(scraper: Scraper):
    def step(message: Mapping[str, Any]) -> StepOutcome:
        job = ScraperJob.from_payload(message)
        LOGGER.info("[scrape] Scraping %s for video %s", job.video_url, job.id)
        video_data = scraper.fetch_video_data(job.video_url)
        LOGGER.info(
            "[scrape] Scraped video %s: platform=%s transcript_len=%d",
            job.id,
            video_data.platform.value,
            len(video_data.transcript_text),
        )
        return StepOutcome(handoff=Handoff(ENRICH_QUEUE, EnrichJob(job.id, video_data).to_payload()))

    return step


def enrich_step(enricher: Enricher):
    def step(message: Mapping[str, Any]) -> StepOutcome:
        job = EnrichJob.from_payload(message)
        video_data = job.video_data

        if not video_data.transcript_text.strip():
            LOGGER.warning("[enrich] No transcript for %s; writing metadata only", job.id)
            fields = video_data.metadata_fields()
            fields.update(processing_status=ProcessingStatus.DONE, processing_error=None)
            return StepOutcome(fields=fields)

        enrichment = enricher.enrich(video_data.transcript_text)
        LOGGER.info("[enrich] Enrichment done for %s: sentiment=%s", job.id, enrichment.sentiment)
        embedding = enricher.embed(video_data.transcript_text)
        LOGGER.info("[enrich] Embedding done for %s: dims=%d", job.id, len(embedding))

        fields = video_data.metadata_fields()
        fields.update(enrichment.record_fields())
        fields.update(
            transcript_text=video_data.transcript_text,
            transcript_preview=video_data.transcript_preview,
            embedding=embedding,
            processing_status=ProcessingStatus.DONE,
            processing_error=None,
        )

        geo_job = GeoJob(
            id=job.id,
            venue=enrichment.venue,
            address=enrichment.address,
            city=enrichment.city,
            neighborhood=enrichment.neighborhood,
        )
        handoff = None
        if geo_job.has_location_hint():
            handoff = Handoff(GEO_QUEUE, geo_job.to_payload(), best_effort=True)
        else:
            LOGGER.debug("[enrich] No location hints for %s; skipping geo stage", job.id)
        return StepOutcome(fields=fields, handoff=handoff)

    return step


def geo_step(geocoder: Geocoder):
    def step(message: Mapping[str, Any]) -> StepOutcome:
        job = GeoJob.from_payload(message)
        fields: dict[str, Any] = dict(job.text_fields())

        query = build_query(job.venue, job.address, job.city, job.neighborhood)
        if query is None:
            LOGGER.info("[geo] No geocodable location data for %s; writing text fields only", job.id)
            return StepOutcome(fields=fields)

        LOGGER.info("[geo] Geocoding %r for video %s", query, job.id)
        coordinates = geocoder.geocode(query)
        if coordinates is None:
            LOGGER.warning("[geo] No results for %r (video %s)", query, job.id)
        else:
            fields.update(lat=coordinates.lat, lng=coordinates.lng)
        return StepOutcome(fields=fields)

    return step


def build_stage_definitions(
    config: PipelineConfig,
    *,
    scraper: Scraper,
    enricher: Enricher,
    geocoder: Geocoder,
) -> dict[str, StageDefinition]:
    threshold = config.retry.poison_threshold
    return {
        "scrape": StageDefinition(
            name="scrape",
            input_queue=SCRAPE_QUEUE,
            visibility_timeout=config.visibility_timeout("scrape"),
            step=scrape_step(scraper),
            in_progress_status=ProcessingStatus.SCRAPING,
            next_stage="enrich",
            poison_threshold=threshold,
        ),
        "enrich": StageDefinition(
            name="enrich",
            input_queue=ENRICH_QUEUE,
            visibility_timeout=config.visibility_timeout("enrich"),
            step=enrich_step(enricher),
            in_progress_status=ProcessingStatus.ENRICHING,
            next_stage="geo",
            poison_threshold=threshold,
        ),
        # Coordinates are advisory: a retryable geocoding failure does not demote an enriched record
        "geo": StageDefinition(
            name="geo",
            input_queue=GEO_QUEUE,
            visibility_timeout=config.visibility_timeout("geo"),
            step=geo_step(geocoder),
            failure_status=None,
            poison_threshold=threshold,
        ),
    }
