import pytest

from core.exceptions import ExternalServiceException
from external_geo_service.schemas import (
    format_nominatim_address,
    parse_mapbox_matching_response,
    parse_nominatim_response,
)


def test_format_full_address() -> None:
    display, full = format_nominatim_address(
        {
            "display_name": "Rua Augusta, Consolação, São Paulo, SP, 01305-100, Brasil",
            "address": {
                "road": "Rua Augusta",
                "house_number": "1500",
                "suburb": "Consolação",
                "city": "São Paulo",
                "state": "São Paulo",
                "state_code": "SP",
            },
        }
    )
    assert display == "Rua Augusta, 1500, Consolação, São Paulo - SP"
    assert full.endswith("Brasil")


def test_format_uses_town_and_state_name() -> None:
    display, _ = format_nominatim_address(
        {"address": {"road": "Avenida Central", "town": "Paraty", "state": "Rio de Janeiro"}}
    )
    assert display == "Avenida Central, Paraty - Rio de Janeiro"


def test_format_without_state() -> None:
    display, _ = format_nominatim_address({"address": {"village": "Cunha"}})
    assert display == "Cunha"


def test_format_falls_back_to_display_name() -> None:
    display, full = format_nominatim_address(
        {"display_name": "Oceano Atlântico", "address": {"state_code": "SP"}}
    )
    assert display == full == "Oceano Atlântico"


def test_parse_nominatim_rejects_error_payload() -> None:
    with pytest.raises(ExternalServiceException):
        parse_nominatim_response({"error": "Unable to geocode"})


def test_parse_nominatim_rejects_empty_payload() -> None:
    with pytest.raises(ExternalServiceException):
        parse_nominatim_response({})


def test_parse_nominatim_builds_live_result() -> None:
    result = parse_nominatim_response(
        {"display_name": "Praça da Sé, São Paulo", "address": {"road": "Praça da Sé"}}
    )
    assert result.provider == "live"
    assert result.is_live
    assert result.cached is False
    assert result.as_cached().cached is True


def test_parse_matching_takes_last_coordinate_of_first_matching() -> None:
    payload = {
        "code": "Ok",
        "matchings": [
            {"geometry": {"coordinates": [[-46.1, -23.1], [-46.2, -23.2]]}},
            {"geometry": {"coordinates": [[-40.0, -20.0]]}},
        ],
    }
    assert parse_mapbox_matching_response(payload) == (-46.2, -23.2)


@pytest.mark.parametrize(
    "payload",
    [
        None,
        [],
        {"code": "NoMatch", "matchings": []},
        {"code": "Ok", "matchings": []},
        {"code": "Ok", "matchings": [{"geometry": {"coordinates": []}}]},
        {"code": "Ok", "matchings": [{"geometry": None}]},
        {"code": "Ok", "matchings": [{"geometry": {"coordinates": [["x", "y"]]}}]},
    ],
)
def test_parse_matching_returns_none_without_match(payload) -> None:
    assert parse_mapbox_matching_response(payload) is None
