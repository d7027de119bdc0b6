"""
Reverse geocoding with caching, request coalescing and provider protection.

Coordinates are quantized to 4 decimal places (about 11 m) so nearby fixes
share one cache entry. For each key at most one Nominatim request is in
flight; concurrent callers await the same task. Requests to Nominatim are
spaced by a minimum interval and skipped entirely while the provider is
backed off after a 429, a 5xx or a transport failure.

Nothing here raises to the caller: every failure degrades to the fallback
address, which is never cached so a later call can retry.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Callable
from dataclasses import asdict, dataclass
from typing import Any

import aiohttp
from cachetools import TTLCache

from config import (
    GEOCODE_BACKOFF_BASE_SECONDS,
    GEOCODE_BACKOFF_MAX_SECONDS,
    GEOCODE_CACHE_MAX_ENTRIES,
    GEOCODE_CACHE_TTL_SECONDS,
    GEOCODE_FALLBACK_ADDRESS,
    GEOCODE_KEY_DECIMALS,
    GEOCODE_MIN_INTERVAL_SECONDS,
    NOMINATIM_LANGUAGE,
    NOMINATIM_REVERSE_URL,
    NOMINATIM_USER_AGENT,
    PROVIDER_TIMEOUT_SECONDS,
)
from core.exceptions import ExternalServiceException, RateLimitException
from core.http.gate import ProviderGate
from core.http.request import request_json
from core.http.session import get_session

from .schemas import GeoResult, fallback_result, parse_nominatim_response

logger = logging.getLogger(__name__)


def round_coord(value: float, decimals: int = GEOCODE_KEY_DECIMALS) -> float:
    """Round a coordinate to ``decimals`` places."""
    return round(value, decimals)


def make_cache_key(
    lat: float,
    lon: float,
    decimals: int = GEOCODE_KEY_DECIMALS,
) -> str:
    """Build the quantized ``"lat,lon"`` cache key."""
    lat_part = f"{round_coord(lat, decimals):.{decimals}f}"
    lon_part = f"{round_coord(lon, decimals):.{decimals}f}"
    return f"{lat_part},{lon_part}"


@dataclass
class GeocodeMetrics:
    """Counters for cache effectiveness and provider health."""

    cache_hit: int = 0
    cache_miss: int = 0
    provider_error: int = 0

    def snapshot(self) -> dict[str, int]:
        return asdict(self)

    def reset(self) -> None:
        self.cache_hit = 0
        self.cache_miss = 0
        self.provider_error = 0


class GeocodeResolver:
    """
    Resolve coordinates to display addresses through Nominatim.

    Each instance owns its cache, in-flight ledger, gate and metrics. Build
    one per process to share them across all callers, or one per test to
    keep state isolated.
    """

    def __init__(
        self,
        *,
        session: aiohttp.ClientSession | None = None,
        reverse_url: str = NOMINATIM_REVERSE_URL,
        user_agent: str = NOMINATIM_USER_AGENT,
        language: str = NOMINATIM_LANGUAGE,
        cache_ttl: float = GEOCODE_CACHE_TTL_SECONDS,
        max_cache_entries: int = GEOCODE_CACHE_MAX_ENTRIES,
        min_interval: float = GEOCODE_MIN_INTERVAL_SECONDS,
        backoff_base: float = GEOCODE_BACKOFF_BASE_SECONDS,
        backoff_max: float = GEOCODE_BACKOFF_MAX_SECONDS,
        timeout: float = PROVIDER_TIMEOUT_SECONDS,
        decimals: int = GEOCODE_KEY_DECIMALS,
        fallback_address: str = GEOCODE_FALLBACK_ADDRESS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._session = session
        self.reverse_url = reverse_url
        self.user_agent = user_agent
        self.language = language
        self.decimals = decimals
        self.fallback_address = fallback_address
        self._timeout = aiohttp.ClientTimeout(total=timeout)

        self._lock = asyncio.Lock()
        # Expired entries are pruned on every insert
        self._cache: TTLCache[str, GeoResult] = TTLCache(
            maxsize=max_cache_entries, ttl=cache_ttl, timer=clock
        )
        self._inflight: dict[str, asyncio.Task[GeoResult]] = {}
        self.gate = ProviderGate(
            "Nominatim",
            min_interval=min_interval,
            backoff_base=backoff_base,
            backoff_max=backoff_max,
            clock=clock,
        )
        self.metrics = GeocodeMetrics()

    @property
    def cache_size(self) -> int:
        return len(self._cache)

    @property
    def inflight_size(self) -> int:
        return len(self._inflight)

    async def resolve(self, lat: float, lon: float) -> GeoResult:
        """
        Resolve an address for a coordinate.

        Args:
            lat: Latitude
            lon: Longitude

        Returns:
            A live or fallback GeoResult; ``cached`` is True when the answer
            came from the cache or from another caller's in-flight request
        """
        key = make_cache_key(lat, lon, self.decimals)

        async with self._lock:
            hit = self._cache.get(key)
            if hit is not None:
                self.metrics.cache_hit += 1
                logger.debug("Geocode cache hit for %s", key)
                return hit.as_cached()

            task = self._inflight.get(key)
            shared = task is not None
            if shared:
                self.metrics.cache_hit += 1
                logger.debug("Joining in-flight geocode request for %s", key)
            else:
                self.metrics.cache_miss += 1
                task = asyncio.create_task(self._fetch(key, lat, lon))
                self._inflight[key] = task

        # A caller giving up must not cancel the request other callers share.
        result = await asyncio.shield(task)
        return result.as_cached() if shared else result

    async def _fetch(self, key: str, lat: float, lon: float) -> GeoResult:
        try:
            async with self._lock:
                delay = self.gate.reserve()
            if delay is None:
                logger.debug(
                    "Nominatim backed off for %.0fs more, using fallback for %s",
                    self.gate.backoff_remaining(),
                    key,
                )
                return fallback_result(lat, lon, self.fallback_address)
            if delay > 0:
                await asyncio.sleep(delay)
                # Another key may have opened a backoff while this one waited.
                async with self._lock:
                    backed_off = self.gate.is_backed_off()
                if backed_off:
                    logger.debug("Nominatim backed off during wait for %s", key)
                    return fallback_result(lat, lon, self.fallback_address)

            result = await self._request(lat, lon)
        except RateLimitException as e:
            return self._degrade(
                key, lat, lon, e, backoff=True, retry_after=e.retry_after
            )
        except ExternalServiceException as e:
            backoff = e.status is None or e.status >= 500
            return self._degrade(key, lat, lon, e, backoff=backoff)
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            return self._degrade(key, lat, lon, e, backoff=True)
        else:
            async with self._lock:
                self.gate.record_success()
                self._cache[key] = result
            return result
        finally:
            async with self._lock:
                self._inflight.pop(key, None)

    async def _request(self, lat: float, lon: float) -> GeoResult:
        session = self._session or await get_session()
        params: dict[str, Any] = {
            "lat": lat,
            "lon": lon,
            "format": "json",
            "addressdetails": 1,
            "accept-language": self.language,
        }
        data = await request_json(
            "GET",
            self.reverse_url,
            session=session,
            params=params,
            headers={"User-Agent": self.user_agent},
            service_name="Nominatim reverse",
            timeout=self._timeout,
        )
        return parse_nominatim_response(data)

    def _degrade(
        self,
        key: str,
        lat: float,
        lon: float,
        error: Exception,
        *,
        backoff: bool,
        retry_after: float | None = None,
    ) -> GeoResult:
        self.metrics.provider_error += 1
        logger.warning("Reverse geocoding failed for %s: %r", key, error)
        if backoff:
            self.gate.record_failure(retry_after)
        return fallback_result(lat, lon, self.fallback_address)

    def clear(self) -> None:
        """Drop cached addresses, the in-flight ledger and gate state."""
        self._cache.clear()
        self._inflight.clear()
        self.gate.reset()
