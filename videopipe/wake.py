"""Wake signals that start a fresh invocation of a stage worker."""

from __future__ import annotations

import logging
import threading
from typing import Iterable, Protocol

from celery import Celery

LOGGER = logging.getLogger(__name__)

STAGE_NAMES = ("scrape", "enrich", "geo")


def task_name_for(stage_name: str) -> str:
    return f"videopipe.{stage_name}_worker"


class Waker(Protocol):
    def wake(self, stage_name: str) -> None:  # pragma: no cover - interface only
        ...


class NullWaker:
    """Drops wake signals; callers drive the workers themselves."""

    def wake(self, stage_name: str) -> None:
        LOGGER.debug("Dropping wake signal for %s", stage_name)


class CeleryWaker:
    """Publishes the stage's Celery task with an empty body.

    Publishing returns once the broker has accepted the message, so the caller
    never waits on the woken worker itself.
    """

    def __init__(self, app: Celery) -> None:
        self._app = app

    def wake(self, stage_name: str) -> None:
        self._app.send_task(task_name_for(stage_name), args=(), kwargs={})


class LocalWaker:
    """Per-stage events for drain loops running inside one process."""

    def __init__(self, stage_names: Iterable[str] = STAGE_NAMES) -> None:
        self._events = {name: threading.Event() for name in stage_names}

    def wake(self, stage_name: str) -> None:
        event = self._events.get(stage_name)
        if event is None:
            LOGGER.debug("No local loop for stage %s; wake ignored", stage_name)
            return
        event.set()

    def wait(self, stage_name: str, timeout: float) -> bool:
        """Block until the stage is woken or the timeout passes; clears the signal."""

        event = self._events[stage_name]
        woken = event.wait(timeout)
        event.clear()
        return woken
