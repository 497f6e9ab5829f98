"""Database persistence helpers for per-video records."""

from __future__ import annotations

from typing import Any, Mapping
from uuid import UUID

from sqlalchemy import inspect, or_, update
from sqlalchemy.exc import SQLAlchemyError

from models import Video, generate_uuid7

from .schemas import ProcessingStatus

_IMMUTABLE_FIELDS = frozenset({"id", "created_at", "updated_at"})
WRITABLE_FIELDS = frozenset(
    column.key for column in inspect(Video).columns if column.key not in _IMMUTABLE_FIELDS
)


class RecordStoreError(RuntimeError):
    """Raised when reading or writing a video record fails."""


def _to_uuid(video_id: str | UUID) -> UUID:
    if isinstance(video_id, UUID):
        return video_id
    try:
        return UUID(str(video_id))
    except ValueError as exc:
        raise RecordStoreError(f"Invalid video id {video_id!r}") from exc


def _row_to_dict(video: Video) -> dict[str, Any]:
    record = {column.key: getattr(video, column.key) for column in inspect(Video).columns}
    record["id"] = str(video.id)
    return record


class VideoStore:
    """Partial, last-write-wins updates of video rows keyed by id."""

    def __init__(self, session_factory) -> None:
        self._session_factory = session_factory

    def insert(self, video_url: str | None, **fields: Any) -> str:
        self._check_fields(fields)
        try:
            with self._session_factory() as session:
                video = Video(id=generate_uuid7(), video_url=video_url, **fields)
                session.add(video)
                session.flush()
                video_id = str(video.id)
                session.commit()
                return video_id
        except SQLAlchemyError as exc:  # pragma: no cover - failure path
            raise RecordStoreError(str(exc)) from exc

    def update_fields(self, video_id: str | UUID, fields: Mapping[str, Any]) -> bool:
        """Apply one partial UPDATE. Returns False when no row matched the id."""

        if not fields:
            return True
        self._check_fields(fields)
        values = {
            key: value.value if isinstance(value, ProcessingStatus) else value
            for key, value in fields.items()
        }
        row_id = _to_uuid(video_id)
        try:
            with self._session_factory() as session:
                result = session.execute(update(Video).where(Video.id == row_id).values(**values))
                session.commit()
        except SQLAlchemyError as exc:
            raise RecordStoreError(f"Failed to update video {video_id}: {exc}") from exc
        return bool(result.rowcount)

    def get(self, video_id: str | UUID) -> dict[str, Any] | None:
        row_id = _to_uuid(video_id)
        try:
            with self._session_factory() as session:
                video = session.get(Video, row_id)
                return _row_to_dict(video) if video is not None else None
        except SQLAlchemyError as exc:
            raise RecordStoreError(f"Failed to load video {video_id}: {exc}") from exc

    def select(self, *, limit: int | None = None, **equals: Any) -> list[dict[str, Any]]:
        self._check_fields(equals)
        try:
            with self._session_factory() as session:
                query = session.query(Video)
                for key, value in equals.items():
                    column = getattr(Video, key)
                    query = query.filter(column.is_(None) if value is None else column == value)
                query = query.order_by(Video.created_at, Video.id)
                if limit:
                    query = query.limit(limit)
                return [_row_to_dict(video) for video in query]
        except SQLAlchemyError as exc:
            raise RecordStoreError(f"Failed to select videos: {exc}") from exc

    def select_unrouted(self, limit: int, *, include_failed: bool = False) -> list[dict[str, Any]]:
        """Rows without a transcript that never entered the pipeline (optionally also failed rows)."""

        status_filter = Video.processing_status.is_(None)
        if include_failed:
            status_filter = or_(status_filter, Video.processing_status == ProcessingStatus.FAILED.value)
        try:
            with self._session_factory() as session:
                query = (
                    session.query(Video)
                    .filter(Video.transcript_text.is_(None), Video.video_url.isnot(None), status_filter)
                    .order_by(Video.created_at, Video.id)
                )
                if limit and limit > 0:
                    query = query.limit(limit)
                return [_row_to_dict(video) for video in query]
        except SQLAlchemyError as exc:
            raise RecordStoreError(f"Failed to select unrouted videos: {exc}") from exc

    @staticmethod
    def _check_fields(fields: Mapping[str, Any]) -> None:
        unknown = sorted(set(fields) - WRITABLE_FIELDS)
        if unknown:
            raise RecordStoreError(f"Unknown video fields: {', '.join(unknown)}")
