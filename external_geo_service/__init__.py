"""
External Geo Service Package.

This package provides reverse geocoding (Nominatim) and road snapping
(Mapbox Map Matching) with caching and provider protection, plus a
per-subject fix pipeline combining them with movement classification.
"""

from .geocoding import GeocodeMetrics, GeocodeResolver, make_cache_key, round_coord
from .map_matching import RoadSnapper, snap_cache_key
from .rate_limiting import build_mapbox_rate_limiter
from .schemas import (
    PROVIDER_FALLBACK,
    PROVIDER_LIVE,
    GeoResult,
    SnapResult,
    format_nominatim_address,
    parse_mapbox_matching_response,
    parse_nominatim_response,
)
from .service import FixSummary, LocationPipeline, SubjectTrack
from .tokens import MapboxTokenProvider

__all__ = [
    "PROVIDER_FALLBACK",
    "PROVIDER_LIVE",
    # Pipeline
    "FixSummary",
    # Individual services
    "GeoResult",
    "GeocodeMetrics",
    "GeocodeResolver",
    "LocationPipeline",
    "MapboxTokenProvider",
    "RoadSnapper",
    "SnapResult",
    "SubjectTrack",
    # Rate limiting
    "build_mapbox_rate_limiter",
    # Utilities
    "format_nominatim_address",
    "make_cache_key",
    "parse_mapbox_matching_response",
    "parse_nominatim_response",
    "round_coord",
    "snap_cache_key",
]
