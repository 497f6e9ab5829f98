"""Platform detection and URL normalization for supported video hosts."""

from __future__ import annotations

from urllib.parse import urlsplit

from .schemas import Platform

# Order matters: the shorts path must win over the generic youtube host
_PLATFORM_MARKERS: tuple[tuple[tuple[str, ...], Platform], ...] = (
    (("youtube.com/shorts/",), Platform.YOUTUBE_SHORTS),
    (("youtube.com", "youtu.be"), Platform.YOUTUBE),
    (("tiktok.com",), Platform.TIKTOK),
    (("instagram.com",), Platform.INSTAGRAM),
)


class UnsupportedPlatformError(ValueError):
    """Raised when a URL does not belong to a supported video platform."""


def detect_platform(url: str) -> Platform:
    for markers, platform in _PLATFORM_MARKERS:
        if any(marker in url for marker in markers):
            return platform
    raise UnsupportedPlatformError(f"Unsupported platform for URL: {url}")


def normalize_url(url: str) -> str:
    """Return host + path, dropping scheme, query and fragment."""

    try:
        parts = urlsplit(url)
    except ValueError:
        return url
    if not parts.hostname:
        return url
    return f"{parts.hostname}{parts.path}"
