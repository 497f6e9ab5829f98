"""Durable at-least-once work queue stored in the pipeline database."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Mapping

from sqlalchemy import func, update
from sqlalchemy.exc import SQLAlchemyError

from models import QueueMessage

from .schemas import QueueEnvelope

LOGGER = logging.getLogger(__name__)


class QueueUnavailableError(RuntimeError):
    """Raised when the queue tables cannot be read or written."""


def utcnow() -> datetime:
    # Stored naive, in UTC, so SQLite and PostgreSQL compare the same way
    return datetime.now(timezone.utc).replace(tzinfo=None)


class WorkQueue:
    """Named FIFO-ish queues with visibility-timeout leases.

    A leased message stays invisible until its visibility deadline passes. If it
    is not archived by then it becomes leasable again and its read count grows,
    which is how failed work is retried.
    """

    def __init__(self, session_factory, *, clock: Callable[[], datetime] | None = None) -> None:
        self._session_factory = session_factory
        self._clock = clock or utcnow

    def enqueue(self, queue_name: str, payload: Mapping[str, Any]) -> int:
        now = self._clock()
        try:
            with self._session_factory() as session:
                row = QueueMessage(
                    queue_name=queue_name,
                    message=dict(payload),
                    read_ct=0,
                    enqueued_at=now,
                    vt=now,
                )
                session.add(row)
                session.flush()
                msg_id = int(row.id)
                session.commit()
        except SQLAlchemyError as exc:
            raise QueueUnavailableError(f"Failed to enqueue on {queue_name}: {exc}") from exc

        LOGGER.debug("Enqueued message %d on %s", msg_id, queue_name)
        return msg_id

    def lease(self, queue_name: str, visibility_seconds: int, max_count: int = 1) -> list[QueueEnvelope]:
        if max_count <= 0:
            return []

        now = self._clock()
        deadline = now + timedelta(seconds=visibility_seconds)
        try:
            with self._session_factory() as session:
                rows = (
                    session.query(QueueMessage)
                    .filter(
                        QueueMessage.queue_name == queue_name,
                        QueueMessage.archived_at.is_(None),
                        QueueMessage.vt <= now,
                    )
                    .order_by(QueueMessage.id)
                    .limit(max_count)
                    .with_for_update(skip_locked=True)
                    .all()
                )
                leased: list[QueueEnvelope] = []
                for row in rows:
                    row.read_ct = (row.read_ct or 0) + 1
                    row.vt = deadline
                    leased.append(
                        QueueEnvelope(
                            msg_id=int(row.id),
                            read_ct=row.read_ct,
                            enqueued_at=row.enqueued_at,
                            vt=deadline,
                            message=dict(row.message or {}),
                        )
                    )
                session.commit()
        except SQLAlchemyError as exc:
            raise QueueUnavailableError(f"Failed to lease from {queue_name}: {exc}") from exc

        return leased

    def archive(self, queue_name: str, msg_id: int) -> bool:
        """Retire a message. Unknown or already archived ids are a no-op."""

        try:
            with self._session_factory() as session:
                result = session.execute(
                    update(QueueMessage)
                    .where(
                        QueueMessage.id == msg_id,
                        QueueMessage.queue_name == queue_name,
                        QueueMessage.archived_at.is_(None),
                    )
                    .values(archived_at=self._clock())
                )
                session.commit()
        except SQLAlchemyError as exc:
            raise QueueUnavailableError(f"Failed to archive message {msg_id} on {queue_name}: {exc}") from exc

        archived = bool(result.rowcount)
        if not archived:
            LOGGER.debug("Archive of message %d on %s was a no-op", msg_id, queue_name)
        return archived

    def depth(self, queue_name: str) -> int:
        """Count live (not archived) messages, leased or not."""

        try:
            with self._session_factory() as session:
                count = (
                    session.query(func.count(QueueMessage.id))
                    .filter(QueueMessage.queue_name == queue_name, QueueMessage.archived_at.is_(None))
                    .scalar()
                )
        except SQLAlchemyError as exc:
            raise QueueUnavailableError(f"Failed to count messages on {queue_name}: {exc}") from exc
        return int(count or 0)
