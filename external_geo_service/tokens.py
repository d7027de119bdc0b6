"""Mapbox access token acquisition from the backend token endpoint."""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Callable

import aiohttp

from config import (
    BACKEND_API_KEY,
    MAPBOX_ACCESS_TOKEN,
    MAPBOX_TOKEN_TTL_SECONDS,
    PROVIDER_TIMEOUT_SECONDS,
    get_mapbox_token_url,
)
from core.exceptions import ExternalServiceException
from core.http.request import request_json
from core.http.retry import retry_async
from core.http.session import get_session

logger = logging.getLogger(__name__)


class MapboxTokenProvider:
    """
    Lazily fetch and cache a Mapbox access token.

    A statically configured token always wins. Otherwise the token is
    fetched once from the backend and kept for ``ttl_seconds`` (forever
    when None). A failed fetch is not cached, so the next caller retries.
    """

    def __init__(
        self,
        *,
        session: aiohttp.ClientSession | None = None,
        static_token: str | None = MAPBOX_ACCESS_TOKEN,
        token_url: str | None = None,
        api_key: str = BACKEND_API_KEY,
        ttl_seconds: float | None = MAPBOX_TOKEN_TTL_SECONDS,
        timeout: float = PROVIDER_TIMEOUT_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._session = session
        self.static_token = static_token or None
        self.token_url = token_url if token_url is not None else get_mapbox_token_url()
        self.api_key = api_key
        self.ttl_seconds = ttl_seconds
        self.clock = clock
        self._timeout = aiohttp.ClientTimeout(total=timeout)

        self._lock = asyncio.Lock()
        self._token: str | None = None
        self._fetched_at: float | None = None

    def _cached(self) -> str | None:
        if self._token is None:
            return None
        if (
            self.ttl_seconds is not None
            and self._fetched_at is not None
            and self.clock() - self._fetched_at >= self.ttl_seconds
        ):
            logger.info("Mapbox token expired after %.0fs", self.ttl_seconds)
            self._token = None
            self._fetched_at = None
        return self._token

    async def get_token(self) -> str | None:
        """Return a usable token, or None when none can be obtained."""
        if self.static_token:
            return self.static_token

        token = self._cached()
        if token is not None:
            return token

        # Concurrent callers wait for the first fetch instead of repeating it.
        async with self._lock:
            token = self._cached()
            if token is not None:
                return token
            if not self.token_url:
                logger.warning("No Mapbox token or token endpoint configured")
                return None
            try:
                token = await self._fetch_token()
            except (
                ExternalServiceException,
                aiohttp.ClientError,
                asyncio.TimeoutError,
            ) as e:
                logger.warning("Mapbox token fetch failed: %s", e)
                return None
            if not token:
                logger.warning("Mapbox token endpoint returned no token")
                return None
            self._token = token
            self._fetched_at = self.clock()
            return token

    @retry_async(max_retries=1, retry_delay=0.5)
    async def _fetch_token(self) -> str | None:
        session = self._session or await get_session()
        headers = {"apikey": self.api_key} if self.api_key else None
        data = await request_json(
            "GET",
            self.token_url,
            session=session,
            headers=headers,
            service_name="Mapbox token",
            timeout=self._timeout,
        )
        if not isinstance(data, dict):
            return None
        token = data.get("token")
        return token if isinstance(token, str) and token else None

    def invalidate(self) -> None:
        """Forget the fetched token so the next call fetches a fresh one."""
        self._token = None
        self._fetched_at = None
