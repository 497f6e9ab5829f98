"""Celery application setup for stage worker wake signals."""

from __future__ import annotations

import os
from typing import Optional

from celery import Celery


def _env_bool(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _sqla_broker_from_db(db_url: Optional[str]) -> Optional[str]:
    if not db_url:
        return None
    return db_url if db_url.startswith("sqla+") else f"sqla+{db_url}"


def create_celery_app() -> Celery:
    """Instantiate the Celery app with environment driven configuration.

    Wake tasks carry no body and return nothing worth keeping, so no result
    backend is configured; the broker defaults to the pipeline database.
    """

    broker_url = os.getenv("VIDEOPIPE_CELERY_BROKER_URL")
    if broker_url is None:
        broker_url = _sqla_broker_from_db(os.getenv("VIDEOPIPE_DATABASE_URL")) or "memory://"

    app = Celery("videopipe", broker=broker_url, include=["videopipe.tasks"])
    app.conf.update(
        task_serializer="json",
        accept_content=["json"],
        # Eager self-wakes would recurse once per queued message
        task_always_eager=_env_bool("VIDEOPIPE_CELERY_TASK_ALWAYS_EAGER", False),
        # Wake tasks are idempotent; redelivery is owned by the work queue leases
        task_acks_late=False,
        task_ignore_result=True,
        worker_prefetch_multiplier=1,
        broker_connection_retry_on_startup=True,
    )
    return app


celery_app = create_celery_app()


__all__ = ["celery_app", "create_celery_app"]
