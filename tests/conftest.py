import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]

if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

import pytest
from http_fakes import FakeSession
from network_blocker import install_network_blocker

from external_geo_service.geocoding import GeocodeResolver
from external_geo_service.map_matching import RoadSnapper
from external_geo_service.tokens import MapboxTokenProvider


@pytest.fixture(autouse=True)
def _default_test_env(monkeypatch: pytest.MonkeyPatch) -> None:
    install_network_blocker(monkeypatch)


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def make_resolver():
    def _make(session: FakeSession, **kwargs) -> GeocodeResolver:
        kwargs.setdefault("min_interval", 0.0)
        return GeocodeResolver(session=session, **kwargs)

    return _make


@pytest.fixture
def make_snapper():
    def _make(session: FakeSession, token: str | None = "pk.test-token", **kwargs):
        provider = MapboxTokenProvider(
            session=session,
            static_token=token,
            token_url="",
        )
        return RoadSnapper(session=session, token_provider=provider, **kwargs)

    return _make
