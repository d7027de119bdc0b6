import asyncio

import aiohttp
import pytest
from http_fakes import FakeResponse, FakeSession

from external_geo_service.tokens import MapboxTokenProvider

TOKEN_URL = "https://backend.test/functions/v1/mapbox-token"


def _provider(session: FakeSession, **kwargs) -> MapboxTokenProvider:
    kwargs.setdefault("static_token", None)
    kwargs.setdefault("token_url", TOKEN_URL)
    kwargs.setdefault("api_key", "anon-key")
    return MapboxTokenProvider(session=session, **kwargs)


@pytest.mark.asyncio
async def test_static_token_skips_endpoint() -> None:
    session = FakeSession()
    provider = _provider(session, static_token="pk.static")

    assert await provider.get_token() == "pk.static"
    assert session.get_count == 0


@pytest.mark.asyncio
async def test_token_is_fetched_once_and_cached() -> None:
    session = FakeSession(
        get_responses=[FakeResponse(json_data={"token": "pk.fetched"})]
    )
    provider = _provider(session)

    assert await provider.get_token() == "pk.fetched"
    assert await provider.get_token() == "pk.fetched"
    assert session.get_count == 1

    _, url, kwargs = session.requests[0]
    assert url == TOKEN_URL
    assert kwargs["headers"] == {"apikey": "anon-key"}


@pytest.mark.asyncio
async def test_concurrent_callers_share_one_fetch() -> None:
    session = FakeSession(
        get_responses=[FakeResponse(json_data={"token": "pk.fetched"}, delay=0.05)]
    )
    provider = _provider(session)

    tokens = await asyncio.gather(*(provider.get_token() for _ in range(4)))

    assert tokens == ["pk.fetched"] * 4
    assert session.get_count == 1


@pytest.mark.asyncio
async def test_failed_fetch_is_not_cached() -> None:
    session = FakeSession(
        get_responses=[
            FakeResponse(status=500, text_data="boom"),
            FakeResponse(json_data={"token": "pk.second"}),
        ]
    )
    provider = _provider(session)

    assert await provider.get_token() is None
    assert await provider.get_token() == "pk.second"


@pytest.mark.asyncio
async def test_missing_token_field_returns_none() -> None:
    session = FakeSession(get_responses=[FakeResponse(json_data={"error": "nope"})])
    provider = _provider(session)

    assert await provider.get_token() is None


@pytest.mark.asyncio
async def test_transport_error_is_retried_once() -> None:
    session = FakeSession(
        get_responses=[
            aiohttp.ClientConnectionError("reset"),
            FakeResponse(json_data={"token": "pk.retried"}),
        ]
    )
    provider = _provider(session)

    assert await provider.get_token() == "pk.retried"
    assert session.get_count == 2


@pytest.mark.asyncio
async def test_no_endpoint_configured_returns_none() -> None:
    provider = _provider(FakeSession(), token_url="")
    assert await provider.get_token() is None


@pytest.mark.asyncio
async def test_token_expires_after_ttl(clock) -> None:
    session = FakeSession(
        get_responses=[
            FakeResponse(json_data={"token": "pk.one"}),
            FakeResponse(json_data={"token": "pk.two"}),
        ]
    )
    provider = _provider(session, ttl_seconds=3600, clock=clock)

    assert await provider.get_token() == "pk.one"
    clock.advance(3600)
    assert await provider.get_token() == "pk.two"


@pytest.mark.asyncio
async def test_invalidate_forces_refetch() -> None:
    session = FakeSession(
        get_responses=[
            FakeResponse(json_data={"token": "pk.one"}),
            FakeResponse(json_data={"token": "pk.two"}),
        ]
    )
    provider = _provider(session)

    assert await provider.get_token() == "pk.one"
    provider.invalidate()
    assert await provider.get_token() == "pk.two"
