"""Shared fakes for the upstream providers."""
from typing import Any, Dict, List

import pytest

from routestops.core.exceptions import UpstreamError
from routestops.models.location import Coordinate
from routestops.models.place import Place, PlaceSearchResult

TEST_API_KEY = "AIza-test-key"
# Three points: (38.5, -120.2), (40.7, -120.95), (43.252, -126.453)
SAMPLE_POLYLINE = "_p~iF~ps|U_ulLnnqC_mqNvxq`@"


class FakeTransport:
    """Stands in for ``BaseHTTPRepository._send``; replays queued responses or exceptions."""

    def __init__(self, *responses):
        self.responses = list(responses)
        self.calls: List[Dict[str, Any]] = []

    async def __call__(self, url, payload, headers):
        self.calls.append({"url": url, "payload": payload, "headers": headers})
        response = self.responses.pop(0)
        if isinstance(response, BaseException):
            raise response
        return response


class FakeGeocoder:
    def __init__(self, results=None, error=None):
        self.results = results or []
        self.error = error
        self.addresses: List[str] = []

    def geocode(self, address):
        self.addresses.append(address)
        if self.error is not None:
            raise self.error
        return self.results


class FakePlacesRepository:
    """Per-segment search double: returns one place per segment unless told to fail."""

    def __init__(self, failing=(), places_per_call=1):
        self.failing = set(failing)
        self.places_per_call = places_per_call
        self.calls = []

    async def search(self, params):
        self.calls.append(params)
        index = params.segment_context.index if params.segment_context else None
        if index in self.failing:
            raise UpstreamError(503, {"error": {"status": "UNAVAILABLE"}})
        suffix = "" if index is None else f"-{index}"
        places = [
            Place(
                id=f"place{suffix}-{n}",
                name=f"Stop{suffix}-{n}",
                address=f"{n} Main St",
                location=Coordinate(latitude=40.0 + n, longitude=-75.0),
                is_open=True,
                segment_index=index,
            )
            for n in range(self.places_per_call)
        ]
        return PlaceSearchResult(places=places, total_results=len(places))


class FakeGenerator:
    def __init__(self, text=None, error=None):
        self.text = text
        self.error = error
        self.prompts: List[str] = []

    async def generate(self, prompt):
        self.prompts.append(prompt)
        if self.error is not None:
            raise self.error
        return self.text


@pytest.fixture
def origin() -> Coordinate:
    return Coordinate(latitude=40.0, longitude=-75.0)


@pytest.fixture
def shell_place() -> Place:
    return Place(
        id="shell-1",
        name="Shell",
        address="1 Main St",
        location=Coordinate(latitude=1, longitude=2),
        type="gas_station",
        rating=4.1,
        user_rating_count=88,
        is_open=True,
        price_level=2,
        detour_seconds=390.0,
        detour_meters=2300,
        detour_minutes=6.5,
        detour_distance_km=2.3,
    )
