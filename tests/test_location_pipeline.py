import pytest
from http_fakes import FakeResponse, FakeSession, matching_payload, nominatim_payload

from external_geo_service.schemas import PROVIDER_FALLBACK, PROVIDER_LIVE
from external_geo_service.service import LocationPipeline
from movement.models import GpsFix
from movement.state import MovementStatus


@pytest.fixture
def pipeline_factory(make_resolver, make_snapper):
    def _make(geo_responses, match_responses) -> LocationPipeline:
        resolver = make_resolver(FakeSession(get_responses=geo_responses))
        snapper = make_snapper(
            FakeSession(get_responses=match_responses), min_interval=0
        )
        return LocationPipeline(resolver, snapper)

    return _make


@pytest.mark.asyncio
async def test_ingest_combines_all_components(pipeline_factory) -> None:
    pipeline = pipeline_factory(
        [
            FakeResponse(json_data=nominatim_payload()),
            FakeResponse(json_data=nominatim_payload(road="Rua da Consolação")),
        ],
        [FakeResponse(json_data=matching_payload([-46.6401, -23.5502]))],
    )

    first = await pipeline.ingest(
        "kid-1", GpsFix(latitude=-23.55, longitude=-46.64, speed=0, accuracy=5)
    )
    second = await pipeline.ingest(
        "kid-1", GpsFix(latitude=-23.5503, longitude=-46.6402, speed=0, accuracy=5)
    )

    assert first.movement.status is MovementStatus.STATIONARY
    assert first.address.provider == PROVIDER_LIVE
    assert first.address.display_address == "Rua Augusta, Consolação, São Paulo - SP"
    # A single fix cannot be matched; the raw point comes back.
    assert first.road_position.snapped is False
    assert first.road_position.latitude == -23.55

    assert second.address.display_address == (
        "Rua da Consolação, Consolação, São Paulo - SP"
    )
    assert second.road_position.snapped is True
    assert second.road_position.longitude == -46.6401
    assert second.is_home is False


@pytest.mark.asyncio
async def test_trail_is_most_recent_first_and_bounded(pipeline_factory) -> None:
    pipeline = pipeline_factory([], [])
    track = pipeline.track("kid-1")
    for i in range(7):
        track.trail.appendleft(GpsFix(latitude=-23.0 - i / 100, longitude=-46.0))

    points = track.trail_points()
    assert len(points) == 5
    assert points[0]["latitude"] == pytest.approx(-23.06)
    assert points[-1]["latitude"] == pytest.approx(-23.02)


@pytest.mark.asyncio
async def test_subjects_have_independent_classifiers(pipeline_factory) -> None:
    pipeline = pipeline_factory(
        [
            FakeResponse(status=503),
            FakeResponse(status=503),
        ],
        [],
    )

    await pipeline.ingest(
        "walker", GpsFix(latitude=-23.55, longitude=-46.64, speed=1.5, accuracy=5)
    )
    await pipeline.ingest(
        "sitter", GpsFix(latitude=-22.90, longitude=-43.17, speed=0, accuracy=5)
    )

    assert pipeline.track("walker").classifier.samples == [5.4]
    assert pipeline.track("sitter").classifier.samples == [0.0]


@pytest.mark.asyncio
async def test_provider_failure_degrades_address(pipeline_factory) -> None:
    pipeline = pipeline_factory([FakeResponse(status=503)], [])

    summary = await pipeline.ingest(
        "kid-1", GpsFix(latitude=-23.55, longitude=-46.64)
    )

    assert summary.address.provider == PROVIDER_FALLBACK
    assert summary.road_position.snapped is False


@pytest.mark.asyncio
async def test_is_home_within_radius(pipeline_factory) -> None:
    pipeline = pipeline_factory([FakeResponse(json_data=nominatim_payload())], [])
    pipeline.set_home("kid-1", -23.5500, -46.6400)

    # ~33 m north of home
    assert pipeline.is_home("kid-1", -23.5497, -46.6400) is True
    # ~111 m north of home
    assert pipeline.is_home("kid-1", -23.5490, -46.6400) is False
    assert pipeline.is_home("someone-else", -23.5500, -46.6400) is False

    summary = await pipeline.ingest(
        "kid-1", GpsFix(latitude=-23.5500, longitude=-46.6400)
    )
    assert summary.is_home is True


def test_set_home_rejects_invalid_coordinate(pipeline_factory) -> None:
    pipeline = pipeline_factory([], [])
    with pytest.raises(ValueError):
        pipeline.set_home("kid-1", 91.0, 0.0)


def test_forget_drops_subject_state(pipeline_factory) -> None:
    pipeline = pipeline_factory([], [])
    pipeline.set_home("kid-1", -23.55, -46.64)
    pipeline.forget("kid-1")

    assert pipeline.is_home("kid-1", -23.55, -46.64) is False
    pipeline.forget("unknown")
