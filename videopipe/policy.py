"""Retry budget for redelivered queue messages."""

from __future__ import annotations

DEFAULT_POISON_THRESHOLD = 3


def is_poisoned(read_count: int, threshold: int = DEFAULT_POISON_THRESHOLD) -> bool:
    """Return True once a message has been leased more often than the retry budget allows."""

    return read_count > threshold


def poison_error(stage_name: str, read_count: int) -> str:
    return f"{stage_name.capitalize()} job exceeded max retries (read_ct={read_count})"
