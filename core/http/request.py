"""
Shared HTTP request helpers for external providers.

Keeps JSON request/response handling and error mapping consistent across
the Nominatim, Mapbox and backend token clients.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

import aiohttp

from core.exceptions import ExternalServiceException, RateLimitException

if TYPE_CHECKING:
    from collections.abc import Iterable

logger = logging.getLogger(__name__)

DEFAULT_RETRY_AFTER_SECONDS = 5


def _parse_retry_after(raw: Any) -> int:
    try:
        return max(0, int(raw))
    except (TypeError, ValueError):
        return DEFAULT_RETRY_AFTER_SECONDS


async def request_json(
    method: str,
    url: str,
    *,
    session: Any,
    params: dict[str, Any] | None = None,
    json: dict[str, Any] | None = None,
    headers: dict[str, str] | None = None,
    expected_status: int | Iterable[int] = 200,
    service_name: str = "Service",
    timeout: Any | None = None,
) -> Any:
    """
    Issue a request and decode its JSON body.

    Raises:
        RateLimitException: the provider answered 429.
        ExternalServiceException: any other unexpected status or an
            undecodable body. ``details["status"]`` carries the HTTP status.
    """
    method_upper = method.upper()
    if isinstance(expected_status, int):
        expected = {expected_status}
    else:
        expected = set(expected_status)

    if method_upper == "GET":
        request_fn = session.get
    elif method_upper == "POST":
        request_fn = session.post
    else:
        msg = f"{service_name} request error: unsupported method {method_upper}"
        raise ExternalServiceException(msg, {"url": url})

    request_kwargs: dict[str, Any] = {"params": params, "headers": headers}
    if json is not None:
        request_kwargs["json"] = json
    if timeout is not None:
        request_kwargs["timeout"] = timeout

    async with request_fn(url, **request_kwargs) as response:
        if response.status == 429:
            retry_after = _parse_retry_after(
                response.headers.get("Retry-After", DEFAULT_RETRY_AFTER_SECONDS)
            )
            msg = f"{service_name} error: 429"
            raise RateLimitException(
                msg,
                {"status": 429, "retry_after": retry_after, "url": url},
            )
        if response.status not in expected:
            body = await response.text()
            logger.debug("%s returned %s for %s", service_name, response.status, url)
            msg = f"{service_name} error: {response.status}"
            raise ExternalServiceException(
                msg,
                {"status": response.status, "body": body, "url": url},
            )
        try:
            return await response.json()
        except (aiohttp.ContentTypeError, ValueError) as exc:
            msg = f"{service_name} error: malformed JSON body"
            raise ExternalServiceException(
                msg,
                {"status": response.status, "url": url},
            ) from exc
