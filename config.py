"""Centralized configuration for environment variables and external APIs.

This module is the single source of truth for configuration used across the
pipeline. Import constants from here rather than calling os.getenv directly
in multiple places. Services accept explicit constructor arguments that
default to these values, so tests and parallel pipelines can override them.
"""

from __future__ import annotations

import os
from typing import Final

from dotenv import load_dotenv

# Load environment variables from .env if present
load_dotenv()


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _env_int(name: str, default: int) -> int:
    return int(_env_float(name, float(default)))


# --- Nominatim (reverse geocoding) ---
NOMINATIM_REVERSE_URL: Final[str] = os.getenv(
    "NOMINATIM_REVERSE_URL",
    "https://nominatim.openstreetmap.org/reverse",
)
NOMINATIM_USER_AGENT: Final[str] = os.getenv(
    "NOMINATIM_USER_AGENT",
    "LocationPipeline/1.0",
)
NOMINATIM_LANGUAGE: Final[str] = os.getenv("NOMINATIM_LANGUAGE", "pt-BR")

GEOCODE_CACHE_TTL_SECONDS: Final[float] = _env_float("GEOCODE_CACHE_TTL_SECONDS", 600.0)
GEOCODE_CACHE_MAX_ENTRIES: Final[int] = _env_int("GEOCODE_CACHE_MAX_ENTRIES", 5000)
GEOCODE_KEY_DECIMALS: Final[int] = _env_int("GEOCODE_KEY_DECIMALS", 4)
GEOCODE_MIN_INTERVAL_SECONDS: Final[float] = _env_float(
    "GEOCODE_MIN_INTERVAL_SECONDS", 1.0
)
GEOCODE_BACKOFF_BASE_SECONDS: Final[float] = _env_float(
    "GEOCODE_BACKOFF_BASE_SECONDS", 30.0
)
GEOCODE_BACKOFF_MAX_SECONDS: Final[float] = _env_float(
    "GEOCODE_BACKOFF_MAX_SECONDS", 300.0
)
GEOCODE_FALLBACK_ADDRESS: Final[str] = "Endereço indisponível"

# --- Mapbox (map matching) ---
MAPBOX_MATCHING_URL: Final[str] = os.getenv(
    "MAPBOX_MATCHING_URL",
    "https://api.mapbox.com/matching/v5/mapbox",
)
MAPBOX_MATCHING_PROFILE: Final[str] = os.getenv("MAPBOX_MATCHING_PROFILE", "driving")
# Static token; when empty the token is fetched from the backend.
MAPBOX_ACCESS_TOKEN: Final[str] = os.getenv("MAPBOX_ACCESS_TOKEN", "")
# Mapbox allows 300 requests per minute - be conservative at 280
MAPBOX_REQUESTS_PER_MINUTE: Final[int] = _env_int("MAPBOX_REQUESTS_PER_MINUTE", 280)

SNAP_MIN_INTERVAL_SECONDS: Final[float] = _env_float("SNAP_MIN_INTERVAL_SECONDS", 0.3)
SNAP_CACHE_MAX_ENTRIES: Final[int] = _env_int("SNAP_CACHE_MAX_ENTRIES", 500)
SNAP_SEARCH_RADIUS_M: Final[int] = _env_int("SNAP_SEARCH_RADIUS_M", 25)
SNAP_MAX_TRAIL_POINTS: Final[int] = _env_int("SNAP_MAX_TRAIL_POINTS", 5)

# --- Backend (token endpoint) ---
BACKEND_URL: Final[str] = os.getenv("BACKEND_URL", "").rstrip("/")
BACKEND_API_KEY: Final[str] = os.getenv("BACKEND_API_KEY", "")
MAPBOX_TOKEN_PATH: Final[str] = "/functions/v1/mapbox-token"
# Unset means the fetched token never expires in-process.
MAPBOX_TOKEN_TTL_SECONDS: Final[float | None] = (
    _env_float("MAPBOX_TOKEN_TTL_SECONDS", 0.0) or None
)

# --- Shared ---
PROVIDER_TIMEOUT_SECONDS: Final[float] = _env_float("PROVIDER_TIMEOUT_SECONDS", 6.0)
HOME_RADIUS_M: Final[float] = _env_float("HOME_RADIUS_M", 50.0)


def get_mapbox_token_url() -> str:
    """Return the backend endpoint that hands out Mapbox tokens, or ''."""
    if not BACKEND_URL:
        return ""
    return f"{BACKEND_URL}{MAPBOX_TOKEN_PATH}"


__all__ = [
    "BACKEND_API_KEY",
    "BACKEND_URL",
    "GEOCODE_BACKOFF_BASE_SECONDS",
    "GEOCODE_BACKOFF_MAX_SECONDS",
    "GEOCODE_CACHE_MAX_ENTRIES",
    "GEOCODE_CACHE_TTL_SECONDS",
    "GEOCODE_FALLBACK_ADDRESS",
    "GEOCODE_KEY_DECIMALS",
    "GEOCODE_MIN_INTERVAL_SECONDS",
    "HOME_RADIUS_M",
    "MAPBOX_ACCESS_TOKEN",
    "MAPBOX_MATCHING_PROFILE",
    "MAPBOX_MATCHING_URL",
    "MAPBOX_REQUESTS_PER_MINUTE",
    "MAPBOX_TOKEN_PATH",
    "MAPBOX_TOKEN_TTL_SECONDS",
    "NOMINATIM_LANGUAGE",
    "NOMINATIM_REVERSE_URL",
    "NOMINATIM_USER_AGENT",
    "PROVIDER_TIMEOUT_SECONDS",
    "SNAP_CACHE_MAX_ENTRIES",
    "SNAP_MAX_TRAIL_POINTS",
    "SNAP_MIN_INTERVAL_SECONDS",
    "SNAP_SEARCH_RADIUS_M",
    "get_mapbox_token_url",
]
