"""Geocoding query construction and the Mapbox forward-geocoding client."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from urllib.parse import quote

import httpx

from .config import GeocoderConfig

LOGGER = logging.getLogger(__name__)


class GeocodingError(RuntimeError):
    """Raised when the geocoding provider cannot be queried."""


@dataclass(slots=True, frozen=True)
class Coordinates:
    lat: float
    lng: float


def _clean(value: str | None) -> str | None:
    if value is None:
        return None
    stripped = value.strip()
    return stripped or None


def build_query(
    venue: str | None,
    address: str | None,
    city: str | None,
    neighborhood: str | None,
) -> str | None:
    """Combine the best place term and the best area term into one query.

    Address beats venue for the place, city beats neighborhood for the area.
    Either half on its own still yields a query; None when both are missing.
    """

    place = _clean(address) or _clean(venue)
    area = _clean(city) or _clean(neighborhood)
    parts = [part for part in (place, area) if part]
    if not parts:
        return None
    return ", ".join(parts)


def _redact(text: str, secret: str | None) -> str:
    if not secret:
        return text
    return text.replace(secret, f"{secret[:8]}...")


class MapboxGeocoder:
    """Resolves a free-text query to the coordinates of the best match."""

    def __init__(
        self,
        config: GeocoderConfig,
        *,
        client: httpx.Client | None = None,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self._config = config
        self._transport = transport
        self._client = client or self._build_client()
        self._owns_client = client is None

    def _build_client(self) -> httpx.Client:
        kwargs: dict[str, object] = {"timeout": self._config.request_timeout}
        if self._transport:
            kwargs["transport"] = self._transport
        return httpx.Client(**kwargs)

    def geocode(self, query: str) -> Coordinates | None:
        url = f"{self._config.base_url.rstrip('/')}/{quote(query, safe='')}.json"
        params = {"limit": "1"}
        if self._config.access_token:
            params["access_token"] = self._config.access_token

        try:
            response = self._client.get(url, params=params)
        except httpx.HTTPError as exc:
            raise GeocodingError(
                f"Geocoding request failed: {_redact(str(exc), self._config.access_token)}"
            ) from exc

        if not response.is_success:
            LOGGER.warning("Geocoder answered %d for query %r", response.status_code, query)
            raise GeocodingError(f"Geocoding API error: {response.status_code} {response.reason_phrase}")

        try:
            features = response.json().get("features") or []
        except (ValueError, AttributeError) as exc:
            raise GeocodingError("Geocoding API returned an unexpected body") from exc

        if not features:
            LOGGER.info("No geocoding match for %r", query)
            return None

        top = features[0]
        try:
            lng, lat = top["center"][:2]
            coordinates = Coordinates(lat=float(lat), lng=float(lng))
        except (KeyError, TypeError, ValueError) as exc:
            raise GeocodingError("Geocoding feature is missing its center") from exc

        LOGGER.debug("Top geocoding match for %r: %s", query, top.get("place_name"))
        return coordinates

    def close(self) -> None:
        if self._owns_client:
            self._client.close()
