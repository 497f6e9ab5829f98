"""Wiring of the store, queue, collaborators and workers from one configuration."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from functools import lru_cache

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from models import Base

from .config import PipelineConfig
from .enricher import OpenAIEnricher
from .geo import MapboxGeocoder
from .router import IngestRouter
from .scraper import ScrapeCreatorsClient
from .stage import StageWorker
from .stages import Enricher, Geocoder, Scraper, build_stage_definitions
from .store import VideoStore
from .wake import Waker
from .work_queue import WorkQueue

LOGGER = logging.getLogger(__name__)

_ENGINE_OPTIONS = {
    # Every stage invocation is short-lived; keep the per-process footprint small.
    "pool_size": 2,
    "max_overflow": 0,
    "pool_pre_ping": True,
    "pool_recycle": 1800,
}


def _engine_for(db_url: str):
    if db_url.startswith("sqlite"):
        # In-memory SQLite must share a single connection across sessions
        return create_engine(
            db_url,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    return create_engine(db_url, **_ENGINE_OPTIONS)


@lru_cache(maxsize=8)
def session_factory_for(db_url: str, create_tables: bool = False):
    engine = _engine_for(db_url)
    if create_tables:
        Base.metadata.create_all(engine)
    return sessionmaker(bind=engine)


@dataclass(slots=True)
class PipelineRuntime:
    config: PipelineConfig
    store: VideoStore
    queue: WorkQueue
    router: IngestRouter
    workers: dict[str, StageWorker] = field(default_factory=dict)

    def worker(self, stage_name: str) -> StageWorker:
        try:
            return self.workers[stage_name]
        except KeyError as exc:
            raise KeyError(f"Unknown stage '{stage_name}'") from exc


def build_runtime(
    config: PipelineConfig,
    waker: Waker,
    *,
    session_factory=None,
    scraper: Scraper | None = None,
    enricher: Enricher | None = None,
    geocoder: Geocoder | None = None,
    create_tables: bool = False,
) -> PipelineRuntime:
    """Assemble a runtime; collaborators default to the real HTTP/OpenAI clients."""

    if session_factory is None:
        if not config.db_url:
            raise ValueError("A database URL is required (set VIDEOPIPE_DATABASE_URL or pass --db-url)")
        session_factory = session_factory_for(config.db_url, create_tables)

    store = VideoStore(session_factory)
    queue = WorkQueue(session_factory)
    definitions = build_stage_definitions(
        config,
        scraper=scraper or ScrapeCreatorsClient(config.scraper),
        enricher=enricher or OpenAIEnricher(config.openai),
        geocoder=geocoder or MapboxGeocoder(config.geocoder),
    )
    workers = {
        name: StageWorker(definition, queue, store, waker)
        for name, definition in definitions.items()
    }
    return PipelineRuntime(
        config=config,
        store=store,
        queue=queue,
        router=IngestRouter(store, queue, waker),
        workers=workers,
    )
