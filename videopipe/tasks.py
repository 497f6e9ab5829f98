"""Celery tasks that run one stage invocation per wake signal."""

from __future__ import annotations

import logging
from functools import lru_cache
from typing import Any

from .celery_app import celery_app
from .config import load_config
from .runtime import PipelineRuntime, build_runtime
from .wake import CeleryWaker
from .work_queue import QueueUnavailableError

LOGGER = logging.getLogger(__name__)


@lru_cache(maxsize=1)
def _runtime() -> PipelineRuntime:
    return build_runtime(load_config(), CeleryWaker(celery_app))


def run_stage(stage_name: str) -> dict[str, Any]:
    """Run a single invocation, reporting queue outages as a result instead of an exception."""

    worker = _runtime().worker(stage_name)
    try:
        result = worker.run_once()
    except QueueUnavailableError as exc:
        LOGGER.error("[%s] Work queue unavailable: %s", stage_name, exc)
        return {"stage": stage_name, "status": "error", "error": str(exc)}
    return result.to_dict()


# No Celery autoretry: redelivery of failed work is owned by the queue leases.
@celery_app.task(name="videopipe.scrape_worker", ignore_result=True)
def scrape_worker_task() -> dict[str, Any]:
    return run_stage("scrape")


@celery_app.task(name="videopipe.enrich_worker", ignore_result=True)
def enrich_worker_task() -> dict[str, Any]:
    return run_stage("enrich")


@celery_app.task(name="videopipe.geo_worker", ignore_result=True)
def geo_worker_task() -> dict[str, Any]:
    return run_stage("geo")


__all__ = ["run_stage", "scrape_worker_task", "enrich_worker_task", "geo_worker_task"]
