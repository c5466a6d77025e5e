import pytest

from routestops.core.exceptions import UpstreamError, ValidationError
from routestops.models.location import Coordinate
from routestops.models.place import SearchParams
from routestops.models.route import RouteSegment
from routestops.repositories.maps.places import (
    GooglePlacesRepository,
    normalize_place,
    normalize_places_response,
    normalize_price_level,
)
from tests.conftest import SAMPLE_POLYLINE, TEST_API_KEY, FakeTransport

PLACES_RESPONSE = {
    "places": [
        {
            "id": "abc",
            "displayName": {"text": "Shell"},
            "formattedAddress": "1 Main St",
            "location": {"latitude": 1.0, "longitude": 2.0},
            "primaryType": "gas_station",
            "rating": 4.1,
            "userRatingCount": 88,
            "currentOpeningHours": {"openNow": True},
            "priceLevel": "PRICE_LEVEL_MODERATE",
        },
        {
            "id": "def",
            "displayName": {"text": "Exxon"},
            "formattedAddress": "9 Elm St",
            "location": {"latitude": 3.0, "longitude": 4.0},
        },
    ],
    "routingSummaries": [
        {
            "legs": [{"duration": "390s", "distanceMeters": 2300}],
            "directionsUri": "https://maps.google.com/?dir=abc",
        },
        {"legs": []},
    ],
}


class TestNormalization:
    def test_zips_places_with_routing_summaries(self) -> None:
        shell, exxon = normalize_places_response(PLACES_RESPONSE)

        assert shell.name == "Shell"
        assert shell.location == Coordinate(latitude=1.0, longitude=2.0)
        assert shell.is_open is True
        assert shell.price_level == 2
        assert shell.detour_seconds == 390.0
        assert shell.detour_minutes == 6.5
        assert shell.detour_meters == 2300
        assert shell.detour_distance_km == 2.3
        assert shell.directions_uri == "https://maps.google.com/?dir=abc"
        assert shell.segment_index is None

        assert exxon.detour_minutes is None
        assert exxon.detour_meters is None
        assert exxon.type == "Unknown"
        assert exxon.is_open is False
        assert exxon.user_rating_count == 0

    def test_missing_summaries_leave_detour_unset(self) -> None:
        places = normalize_places_response({"places": PLACES_RESPONSE["places"]})
        assert [p.detour_minutes for p in places] == [None, None]

    def test_short_summary_list(self) -> None:
        data = dict(PLACES_RESPONSE, routingSummaries=PLACES_RESPONSE["routingSummaries"][:1])
        shell, exxon = normalize_places_response(data)
        assert shell.detour_minutes == 6.5
        assert exxon.detour_minutes is None

    def test_malformed_summary_is_not_an_error(self) -> None:
        place = normalize_place(PLACES_RESPONSE["places"][0], {"legs": "nope"})
        assert place.detour_seconds is None

        place = normalize_place(PLACES_RESPONSE["places"][0], {"legs": [{"duration": "soon"}]})
        assert place.detour_minutes is None

    def test_defaults_for_sparse_entry(self) -> None:
        place = normalize_place({"id": "x"})
        assert place.name == "Unknown"
        assert place.address == "Address not available"
        assert place.location is None

    def test_price_levels(self) -> None:
        assert normalize_price_level("PRICE_LEVEL_FREE") == 0
        assert normalize_price_level("PRICE_LEVEL_VERY_EXPENSIVE") == 4
        assert normalize_price_level("PRICE_LEVEL_UNSPECIFIED") is None
        assert normalize_price_level(3) == 3
        assert normalize_price_level(9) is None
        assert normalize_price_level(None) is None


class TestSearch:
    def setup_method(self) -> None:
        self.repository = GooglePlacesRepository(api_key=TEST_API_KEY, retry_attempts=1)

    @pytest.mark.asyncio
    async def test_single_shot_search(self, origin) -> None:
        transport = FakeTransport((200, PLACES_RESPONSE))
        self.repository._send = transport

        result = await self.repository.search(SearchParams(
            text_query="gas station",
            encoded_polyline=SAMPLE_POLYLINE,
            origin=origin,
            included_type="gas_station",
        ))

        assert result.total_results == 2
        payload = transport.calls[0]["payload"]
        assert payload["textQuery"] == "gas station"
        assert payload["searchAlongRouteParameters"]["polyline"]["encodedPolyline"] == SAMPLE_POLYLINE
        assert payload["maxResultCount"] == 30
        assert payload["includedType"] == "gas_station"
        assert payload["routingParameters"]["origin"] == {"latitude": 40.0, "longitude": -75.0}
        assert "locationBias" not in payload
        headers = transport.calls[0]["headers"]
        assert headers["X-Goog-Api-Key"] == TEST_API_KEY
        assert "routingSummaries" in headers["X-Goog-FieldMask"]

    @pytest.mark.asyncio
    async def test_segment_search_tags_and_biases(self, origin) -> None:
        transport = FakeTransport((200, PLACES_RESPONSE))
        self.repository._send = transport
        segment = RouteSegment(index=1, start_offset_seconds=1800, end_offset_seconds=3600, label="30-60 min")

        result = await self.repository.search(SearchParams(
            text_query="gas station",
            encoded_polyline=SAMPLE_POLYLINE,
            max_result_count=5,
            origin=origin,
            segment_context=segment,
        ))

        assert [p.segment_index for p in result.places] == [1, 1]
        payload = transport.calls[0]["payload"]
        assert payload["textQuery"] == "gas station 30-60 min segment"
        assert payload["maxResultCount"] == 20
        center = payload["locationBias"]["circle"]["center"]
        progress = 2700 / 14138
        assert center["latitude"] == pytest.approx(37.4219 + progress * 0.5)
        assert center["longitude"] == pytest.approx(-122.0841 + progress * 0.3)

    @pytest.mark.asyncio
    async def test_without_origin_detour_is_unset(self) -> None:
        transport = FakeTransport((200, {"places": PLACES_RESPONSE["places"]}))
        self.repository._send = transport

        result = await self.repository.search(SearchParams(text_query="food", encoded_polyline=SAMPLE_POLYLINE))

        assert "routingParameters" not in transport.calls[0]["payload"]
        assert all(p.detour_minutes is None for p in result.places)

    @pytest.mark.asyncio
    async def test_empty_result_is_success(self) -> None:
        self.repository._send = FakeTransport((200, {}))
        result = await self.repository.search(SearchParams(text_query="food", encoded_polyline=SAMPLE_POLYLINE))
        assert result.total_results == 0
        assert result.places == []

    @pytest.mark.asyncio
    @pytest.mark.parametrize("query, encoded", [("", SAMPLE_POLYLINE), ("  ", SAMPLE_POLYLINE), ("food", "")])
    async def test_validation(self, query, encoded) -> None:
        transport = FakeTransport()
        self.repository._send = transport
        with pytest.raises(ValidationError):
            await self.repository.search(SearchParams(text_query=query, encoded_polyline=encoded))
        assert transport.calls == []

    @pytest.mark.asyncio
    async def test_provider_error_propagates(self) -> None:
        body = {"error": {"code": 403, "message": "API key not valid"}}
        self.repository._send = FakeTransport((403, body))
        with pytest.raises(UpstreamError) as excinfo:
            await self.repository.search(SearchParams(text_query="food", encoded_polyline=SAMPLE_POLYLINE))
        assert excinfo.value.status == 403
        assert excinfo.value.body == body

    @pytest.mark.asyncio
    async def test_find_location_takes_top_hit(self) -> None:
        transport = FakeTransport((200, {"places": [{"location": {"latitude": 5.0, "longitude": 6.0}}]}))
        self.repository._send = transport

        location = await self.repository.find_location("Some Town")

        assert location == Coordinate(latitude=5.0, longitude=6.0)
        assert transport.calls[0]["payload"] == {"textQuery": "Some Town", "maxResultCount": 1}

    @pytest.mark.asyncio
    async def test_find_location_no_hit(self) -> None:
        self.repository._send = FakeTransport((200, {"places": []}))
        assert await self.repository.find_location("Nowhere") is None
