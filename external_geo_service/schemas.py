"""Result types and response parsers for the external geo providers."""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import UTC, datetime
from typing import Any

from core.exceptions import ExternalServiceException

# Values of GeoResult.provider
PROVIDER_LIVE = "live"
PROVIDER_FALLBACK = "fallback"

CITY_KEYS = ("city", "town", "village", "municipality")


@dataclass(frozen=True)
class GeoResult:
    """A display-ready reverse geocoding result."""

    display_address: str
    full_address: str
    provider: str
    cached: bool
    resolved_at: datetime

    @property
    def is_live(self) -> bool:
        return self.provider == PROVIDER_LIVE

    def as_cached(self) -> GeoResult:
        return replace(self, cached=True)


@dataclass(frozen=True)
class SnapResult:
    """A road-aligned coordinate, or the raw point when ``snapped`` is False."""

    longitude: float
    latitude: float
    snapped: bool

    @classmethod
    def raw(cls, latitude: float, longitude: float) -> SnapResult:
        return cls(longitude=longitude, latitude=latitude, snapped=False)


def fallback_result(lat: float, lon: float, fallback_address: str) -> GeoResult:
    return GeoResult(
        display_address=fallback_address,
        full_address=f"{lat}, {lon}",
        provider=PROVIDER_FALLBACK,
        cached=False,
        resolved_at=datetime.now(UTC),
    )


def format_nominatim_address(response: dict[str, Any]) -> tuple[str, str]:
    """
    Build a short display address from a Nominatim reverse response.

    ``{"road": "Rua Augusta", "suburb": "Consolação", "city": "São Paulo",
    "state_code": "SP"}`` becomes ``"Rua Augusta, Consolação, São Paulo - SP"``.

    Returns:
        ``(display, full)`` where ``full`` is the provider's display_name
    """
    full = str(response.get("display_name") or "")
    addr = response.get("address")
    if not isinstance(addr, dict):
        addr = {}

    parts: list[str] = []
    road = addr.get("road")
    if road:
        house_number = addr.get("house_number")
        parts.append(f"{road}, {house_number}" if house_number else str(road))
    if addr.get("suburb"):
        parts.append(str(addr["suburb"]))
    city = next((addr[key] for key in CITY_KEYS if addr.get(key)), "")
    if city:
        parts.append(str(city))
    state = addr.get("state_code") or addr.get("state") or ""

    if parts and state:
        display = f"{', '.join(parts)} - {state}"
    elif parts:
        display = ", ".join(parts)
    else:
        display = full
    return display, full


def parse_nominatim_response(response: Any) -> GeoResult:
    """
    Parse a Nominatim reverse response into a live GeoResult.

    Raises:
        ExternalServiceException: the body is not an object or carries no
            usable address at all.
    """
    if not isinstance(response, dict):
        msg = "Nominatim reverse error: unexpected response"
        raise ExternalServiceException(msg, {"body": response})
    if "error" in response:
        msg = f"Nominatim reverse error: {response['error']}"
        raise ExternalServiceException(msg, {"body": response})

    display, full = format_nominatim_address(response)
    if not display:
        msg = "Nominatim reverse error: no address in response"
        raise ExternalServiceException(msg, {"body": response})

    return GeoResult(
        display_address=display,
        full_address=full,
        provider=PROVIDER_LIVE,
        cached=False,
        resolved_at=datetime.now(UTC),
    )


def parse_mapbox_matching_response(response: Any) -> tuple[float, float] | None:
    """
    Extract the snapped position of the latest point from a Map Matching body.

    Returns:
        ``(longitude, latitude)`` of the last coordinate of the first
        matching, or None when nothing was matched
    """
    if not isinstance(response, dict) or response.get("code") != "Ok":
        return None
    matchings = response.get("matchings")
    if not isinstance(matchings, list) or not matchings:
        return None
    first = matchings[0]
    geometry = first.get("geometry") if isinstance(first, dict) else None
    coordinates = geometry.get("coordinates") if isinstance(geometry, dict) else None
    if not isinstance(coordinates, list) or not coordinates:
        return None
    last = coordinates[-1]
    if not isinstance(last, (list, tuple)) or len(last) < 2:
        return None
    try:
        return float(last[0]), float(last[1])
    except (TypeError, ValueError):
        return None
