"""Snap the latest GPS fix to the road network using Mapbox Map Matching."""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Callable, Mapping, Sequence
from typing import Any

import aiohttp
from cachetools import FIFOCache

from config import (
    MAPBOX_MATCHING_PROFILE,
    MAPBOX_MATCHING_URL,
    PROVIDER_TIMEOUT_SECONDS,
    SNAP_CACHE_MAX_ENTRIES,
    SNAP_MAX_TRAIL_POINTS,
    SNAP_MIN_INTERVAL_SECONDS,
    SNAP_SEARCH_RADIUS_M,
)
from core.exceptions import ExternalServiceException, RateLimitException
from core.http.gate import ProviderGate
from core.http.request import request_json
from core.http.session import get_session

from .rate_limiting import build_mapbox_rate_limiter
from .schemas import SnapResult, parse_mapbox_matching_response
from .tokens import MapboxTokenProvider

logger = logging.getLogger(__name__)

# Anything with latitude/longitude keys, e.g. a GpsFix dump or a DB row
TrailPoint = Mapping[str, Any]


def snap_cache_key(lat: float, lon: float) -> str:
    return f"{lat:.5f},{lon:.5f}"


class RoadSnapper:
    """
    Service for snapping the most recent point of a trail to a road.

    Throttled calls, missing tokens and provider failures all return the
    raw point with ``snapped=False`` immediately; nothing is queued for
    later. Only successful snaps are cached.
    """

    def __init__(
        self,
        *,
        session: aiohttp.ClientSession | None = None,
        token_provider: MapboxTokenProvider | None = None,
        matching_url: str = MAPBOX_MATCHING_URL,
        profile: str = MAPBOX_MATCHING_PROFILE,
        min_interval: float = SNAP_MIN_INTERVAL_SECONDS,
        max_cache_entries: int = SNAP_CACHE_MAX_ENTRIES,
        search_radius_m: int = SNAP_SEARCH_RADIUS_M,
        max_points: int = SNAP_MAX_TRAIL_POINTS,
        timeout: float = PROVIDER_TIMEOUT_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._session = session
        self.token_provider = token_provider or MapboxTokenProvider(session=session)
        self.matching_url = f"{matching_url.rstrip('/')}/{profile}"
        self.search_radius_m = search_radius_m
        self.max_points = max_points
        self._timeout = aiohttp.ClientTimeout(total=timeout)

        self._lock = asyncio.Lock()
        # Insertion-order eviction; reads never refresh an entry
        self._cache: FIFOCache[str, SnapResult] = FIFOCache(
            maxsize=max_cache_entries
        )
        self.gate = ProviderGate(
            "Mapbox matching",
            min_interval=min_interval,
            clock=clock,
        )
        self._rate_limiter = build_mapbox_rate_limiter()

    @property
    def cache_size(self) -> int:
        return len(self._cache)

    async def snap(self, points: Sequence[TrailPoint]) -> SnapResult:
        """
        Snap the most recent point of ``points`` to the nearest road.

        Args:
            points: Recent fixes, most recent first, each with ``latitude``
                and ``longitude``

        Returns:
            The snapped coordinate, or the raw most recent point with
            ``snapped=False`` when snapping was skipped or failed
        """
        if not points:
            return SnapResult(longitude=0.0, latitude=0.0, snapped=False)

        latest = points[0]
        lat = float(latest["latitude"])
        lon = float(latest["longitude"])
        raw = SnapResult.raw(lat, lon)
        key = snap_cache_key(lat, lon)

        async with self._lock:
            hit = self._cache.get(key)
            if hit is not None:
                return hit
            # Map matching needs at least two points.
            if len(points) < 2:
                return raw
            if not self.gate.try_acquire():
                logger.debug("Map matching throttled for %s", key)
                return raw

        token = await self.token_provider.get_token()
        if not token:
            return raw

        try:
            snapped = await self._match(points[: self.max_points], token)
        except RateLimitException as e:
            logger.warning("Map matching rate limited: %s", e)
            self.gate.record_failure(e.retry_after)
            return raw
        except ExternalServiceException as e:
            logger.warning("Map matching failed: %s", e)
            if e.status == 401:
                self.token_provider.invalidate()
            elif e.status is not None and e.status >= 500:
                self.gate.record_failure()
            return raw
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.warning("Map matching transport error: %r", e)
            return raw
        except (KeyError, TypeError, ValueError) as e:
            logger.error("Map matching error for %s: %s", key, e)
            return raw

        if snapped is None:
            logger.debug("No road match for %s", key)
            return raw

        result = SnapResult(longitude=snapped[0], latitude=snapped[1], snapped=True)
        async with self._lock:
            self.gate.record_success()
            self._cache[key] = result
        return result

    async def _match(
        self,
        points: Sequence[TrailPoint],
        token: str,
    ) -> tuple[float, float] | None:
        coords = ";".join(
            f"{float(p['longitude']):.6f},{float(p['latitude']):.6f}" for p in points
        )
        radiuses = ";".join(str(self.search_radius_m) for _ in points)
        params = {
            "access_token": token,
            "radiuses": radiuses,
            "geometries": "geojson",
            "overview": "full",
            "steps": "false",
        }

        session = self._session or await get_session()
        async with self._rate_limiter:
            data = await request_json(
                "GET",
                f"{self.matching_url}/{coords}",
                session=session,
                params=params,
                service_name="Mapbox matching",
                timeout=self._timeout,
            )
        return parse_mapbox_matching_response(data)

    def clear(self) -> None:
        """Drop cached snaps and throttle state."""
        self._cache.clear()
        self.gate.reset()
