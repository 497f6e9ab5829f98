"""Generic queue-driven stage worker shared by the scrape, enrich and geo stages."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Mapping

from .platforms import UnsupportedPlatformError
from .policy import DEFAULT_POISON_THRESHOLD, is_poisoned, poison_error
from .schemas import PayloadError, ProcessingStatus, QueueEnvelope
from .store import VideoStore
from .wake import Waker
from .work_queue import WorkQueue

LOGGER = logging.getLogger(__name__)

# Errors that no amount of redelivery can fix
PERMANENT_ERRORS: tuple[type[BaseException], ...] = (PayloadError, UnsupportedPlatformError)


@dataclass(slots=True)
class Handoff:
    """A job for the next stage's queue.

    Required hand-offs are enqueued before the input message is archived. Best-effort
    ones are enqueued afterwards and their failure does not fail the invocation.
    """

    queue_name: str
    payload: dict[str, Any]
    best_effort: bool = False


@dataclass(slots=True)
class StepOutcome:
    fields: dict[str, Any] = field(default_factory=dict)
    handoff: Handoff | None = None


class StageStatus(str, Enum):
    IDLE = "idle"
    POISONED = "poisoned"
    PROCESSED = "processed"
    FAILED = "failed"


@dataclass(slots=True)
class StageResult:
    stage: str
    status: StageStatus
    msg_id: int | None = None
    video_id: str | None = None
    error: str | None = None

    @property
    def idle(self) -> bool:
        return self.status == StageStatus.IDLE

    def to_dict(self) -> dict[str, Any]:
        return {
            "stage": self.stage,
            "status": self.status.value,
            "msg_id": self.msg_id,
            "video_id": self.video_id,
            "error": self.error,
        }


@dataclass(slots=True)
class StageDefinition:
    """Everything that distinguishes one pipeline stage from another."""

    name: str
    input_queue: str
    visibility_timeout: int
    step: Callable[[Mapping[str, Any]], StepOutcome]
    in_progress_status: ProcessingStatus | None = None
    next_stage: str | None = None
    # None leaves the record's status untouched when a step fails and will be retried;
    # a poisoned message always ends the record as failed
    failure_status: ProcessingStatus | None = ProcessingStatus.FAILED
    poison_threshold: int = DEFAULT_POISON_THRESHOLD
    permanent_errors: tuple[type[BaseException], ...] = PERMANENT_ERRORS


def _video_id_of(message: Mapping[str, Any]) -> str | None:
    value = message.get("id") if isinstance(message, Mapping) else None
    return value if isinstance(value, str) and value else None


class StageWorker:
    """Performs at most one unit of work per :meth:`run_once` call."""

    def __init__(self, definition: StageDefinition, queue: WorkQueue, store: VideoStore, waker: Waker) -> None:
        self.definition = definition
        self._queue = queue
        self._store = store
        self._waker = waker

    @property
    def name(self) -> str:
        return self.definition.name

    def run_once(self) -> StageResult:
        """Lease one message and process it.

        Stage failures are reported through the record and the returned result,
        never raised. Only a failed lease (queue unavailable) propagates.
        """

        definition = self.definition
        messages = self._queue.lease(definition.input_queue, definition.visibility_timeout, max_count=1)
        if not messages:
            LOGGER.debug("No messages in %s; %s worker idle", definition.input_queue, definition.name)
            return StageResult(stage=definition.name, status=StageStatus.IDLE)

        envelope = messages[0]
        video_id = _video_id_of(envelope.message)
        LOGGER.info(
            "[%s] Processing msg %d (read_ct=%d) for video %s",
            definition.name,
            envelope.msg_id,
            envelope.read_ct,
            video_id,
        )

        if is_poisoned(envelope.read_ct, definition.poison_threshold):
            return self._retire_poisoned(envelope, video_id)

        if definition.in_progress_status is not None and video_id:
            self._write_best_effort(
                video_id,
                {"processing_status": definition.in_progress_status},
                purpose="in-progress status",
            )

        handoff: Handoff | None = None
        handoff_enqueued = False
        try:
            outcome = definition.step(envelope.message)
            if video_id and outcome.fields:
                self._store.update_fields(video_id, outcome.fields)
            handoff = outcome.handoff
            if handoff is not None and not handoff.best_effort:
                next_msg_id = self._queue.enqueue(handoff.queue_name, handoff.payload)
                handoff_enqueued = True
                LOGGER.info(
                    "[%s] Enqueued msg %d on %s for video %s",
                    definition.name,
                    next_msg_id,
                    handoff.queue_name,
                    video_id,
                )
            self._queue.archive(definition.input_queue, envelope.msg_id)
        except definition.permanent_errors as exc:
            return self._record_failure(envelope, video_id, exc, archive=True)
        except Exception as exc:
            return self._record_failure(envelope, video_id, exc, archive=False)

        if handoff is not None and handoff.best_effort:
            handoff_enqueued = self._enqueue_best_effort(handoff, video_id)

        if handoff_enqueued and definition.next_stage:
            self._signal(definition.next_stage)
        # Keep draining; an empty queue ends the chain on the next invocation
        self._signal(definition.name)

        LOGGER.info("[%s] Done with msg %d for video %s", definition.name, envelope.msg_id, video_id)
        return StageResult(
            stage=definition.name,
            status=StageStatus.PROCESSED,
            msg_id=envelope.msg_id,
            video_id=video_id,
        )

    def _retire_poisoned(self, envelope: QueueEnvelope, video_id: str | None) -> StageResult:
        definition = self.definition
        error = poison_error(definition.name, envelope.read_ct)
        LOGGER.error(
            "[%s] Poison pill detected for msg %d (video %s): %s",
            definition.name,
            envelope.msg_id,
            video_id,
            error,
        )
        if video_id:
            # Exhausted retries are terminal for every stage, advisory ones included
            self._write_best_effort(
                video_id,
                {"processing_status": ProcessingStatus.FAILED, "processing_error": error},
                purpose="poison-pill failure",
            )
        self._queue.archive(definition.input_queue, envelope.msg_id)
        return StageResult(
            stage=definition.name,
            status=StageStatus.POISONED,
            msg_id=envelope.msg_id,
            video_id=video_id,
            error=error,
        )

    def _record_failure(
        self,
        envelope: QueueEnvelope,
        video_id: str | None,
        exc: Exception,
        *,
        archive: bool,
    ) -> StageResult:
        definition = self.definition
        error = str(exc) or type(exc).__name__
        if archive:
            LOGGER.error(
                "[%s] Permanent failure for video %s (msg %d archived): %s",
                definition.name,
                video_id,
                envelope.msg_id,
                error,
            )
        else:
            LOGGER.error(
                "[%s] Failed for video %s; msg %d will be redelivered after its lease expires: %s",
                definition.name,
                video_id,
                envelope.msg_id,
                error,
            )

        if video_id:
            self._write_best_effort(video_id, self._failure_fields(error), purpose="failure")
        if archive:
            try:
                self._queue.archive(definition.input_queue, envelope.msg_id)
            except Exception:
                LOGGER.exception("[%s] Failed to archive msg %d", definition.name, envelope.msg_id)

        return StageResult(
            stage=definition.name,
            status=StageStatus.FAILED,
            msg_id=envelope.msg_id,
            video_id=video_id,
            error=error,
        )

    def _failure_fields(self, error: str) -> dict[str, Any]:
        fields: dict[str, Any] = {"processing_error": error}
        if self.definition.failure_status is not None:
            fields["processing_status"] = self.definition.failure_status
        return fields

    def _enqueue_best_effort(self, handoff: Handoff, video_id: str | None) -> bool:
        try:
            msg_id = self._queue.enqueue(handoff.queue_name, handoff.payload)
        except Exception:
            LOGGER.exception(
                "[%s] Failed to enqueue optional job on %s for video %s",
                self.definition.name,
                handoff.queue_name,
                video_id,
            )
            return False
        LOGGER.info(
            "[%s] Enqueued msg %d on %s for video %s",
            self.definition.name,
            msg_id,
            handoff.queue_name,
            video_id,
        )
        return True

    def _write_best_effort(self, video_id: str, fields: Mapping[str, Any], *, purpose: str) -> None:
        try:
            self._store.update_fields(video_id, fields)
        except Exception:
            LOGGER.exception("[%s] Failed to write %s for video %s", self.definition.name, purpose, video_id)

    def _signal(self, stage_name: str) -> None:
        try:
            self._waker.wake(stage_name)
        except Exception:
            LOGGER.exception("[%s] Failed to wake %s worker", self.definition.name, stage_name)
