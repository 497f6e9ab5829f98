"""Routes newly inserted video rows into the first pipeline stage."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Mapping

from .platforms import UnsupportedPlatformError, detect_platform
from .schemas import IN_PROGRESS_STATUSES, SCRAPE_QUEUE, ProcessingStatus, ScraperJob
from .store import VideoStore
from .wake import Waker
from .work_queue import WorkQueue

LOGGER = logging.getLogger(__name__)

INSERT_EVENT = "INSERT"


@dataclass(slots=True)
class RouteResult:
    action: str
    reason: str
    video_id: str | None = None
    msg_id: int | None = None

    @property
    def routed(self) -> bool:
        return self.action == "routed"

    def to_dict(self) -> dict[str, Any]:
        return {
            "action": self.action,
            "reason": self.reason,
            "video_id": self.video_id,
            "msg_id": self.msg_id,
        }


def _ignored(reason: str, video_id: str | None = None) -> RouteResult:
    return RouteResult(action="ignored", reason=reason, video_id=video_id)


class IngestRouter:
    """Turns a row-insert notification into a scrape job.

    Every gate that fails returns an ignored result; :meth:`handle` never raises.
    """

    def __init__(self, store: VideoStore, queue: WorkQueue, waker: Waker) -> None:
        self._store = store
        self._queue = queue
        self._waker = waker

    def handle(self, notification: Mapping[str, Any]) -> RouteResult:
        if not isinstance(notification, Mapping):
            return _ignored("notification must be an object")
        try:
            return self._route(notification)
        except Exception as exc:
            LOGGER.exception("Routing failed for notification %r", notification.get("record"))
            return _ignored(f"error: {exc}")

    def _route(self, notification: Mapping[str, Any]) -> RouteResult:
        event_type = notification.get("type") or notification.get("event_type")
        if event_type != INSERT_EVENT:
            return _ignored("not an insert event")

        snapshot = notification.get("record")
        if not isinstance(snapshot, Mapping) or not snapshot.get("id"):
            return _ignored("no record id")
        video_id = str(snapshot["id"])

        # Prefer the stored row: duplicate notifications may carry a stale snapshot
        record: Mapping[str, Any] = self._store.get(video_id) or snapshot

        video_url = record.get("video_url")
        if not video_url:
            LOGGER.info("Skipping row %s: no video_url", video_id)
            return _ignored("no video_url", video_id)

        if record.get("transcript_text"):
            LOGGER.info("Skipping row %s: already processed", video_id)
            return _ignored("already processed", video_id)

        if record.get("processing_status") in IN_PROGRESS_STATUSES:
            LOGGER.info("Skipping row %s: already %s", video_id, record.get("processing_status"))
            return _ignored("already in progress", video_id)

        try:
            platform = detect_platform(video_url)
        except UnsupportedPlatformError as exc:
            LOGGER.error("Unsupported platform for %s: %s", video_id, video_url)
            self._store.update_fields(
                video_id,
                {"processing_status": ProcessingStatus.FAILED, "processing_error": str(exc)},
            )
            return _ignored("unsupported platform", video_id)

        self._store.update_fields(
            video_id,
            {"processing_status": ProcessingStatus.PENDING, "processing_error": None},
        )
        try:
            msg_id = self._queue.enqueue(SCRAPE_QUEUE, ScraperJob(id=video_id, video_url=video_url).to_payload())
        except Exception as exc:
            self._release(video_id, exc)
            raise
        LOGGER.info("Routing video %s (%s) as scrape msg %d", video_id, platform.value, msg_id)

        # Nothing else would pick up a missed first wake, so send it before answering
        try:
            self._waker.wake("scrape")
        except Exception:
            LOGGER.exception("Failed to wake scrape worker for video %s", video_id)

        return RouteResult(action="routed", reason=platform.value, video_id=video_id, msg_id=msg_id)

    def _release(self, video_id: str, exc: Exception) -> None:
        """Return a row whose scrape job was never queued to the unrouted state.

        A pending row without a job would be invisible to the sweep.
        """
        try:
            self._store.update_fields(
                video_id,
                {"processing_status": None, "processing_error": f"Failed to enqueue scrape job: {exc}"},
            )
        except Exception:
            LOGGER.exception("Failed to reset status of video %s after enqueue failure", video_id)
