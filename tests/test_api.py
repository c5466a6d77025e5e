import pytest
from fastapi.testclient import TestClient

from routestops.agents.stops import StopsAgent
from routestops.api.dependencies import get_stops_agent, get_travel_service
from routestops.core.exceptions import ResolutionError, UpstreamError
from routestops.main import app
from routestops.repositories.maps.places import GooglePlacesRepository
from routestops.repositories.maps.routes import GoogleRoutesRepository
from routestops.services.segments import SegmentPlanner
from routestops.services.travel import TravelService
from tests.conftest import SAMPLE_POLYLINE, TEST_API_KEY, FakeGenerator, FakeGeocoder, FakePlacesRepository, FakeTransport
from tests.test_routes_repository import ROUTE_RESPONSE


class FailingRoutesRepository:
    def __init__(self, error):
        self.error = error

    async def compute_route(self, origin, destination, mode):
        raise self.error

    async def compute_route_with_waypoints(self, origin, destination, waypoints, mode):
        raise self.error


@pytest.fixture
def client():
    yield TestClient(app)
    app.dependency_overrides.clear()


def use_service(routes_repository=None, places=None):
    places = places or FakePlacesRepository()
    service = TravelService(
        routes_repository=routes_repository,
        places_repository=places,
        segment_planner=SegmentPlanner(places, delay_seconds=0),
        stops_agent=StopsAgent(),
    )
    app.dependency_overrides[get_travel_service] = lambda: service
    return service


def routes_repository_with(*responses):
    repository = GoogleRoutesRepository(
        api_key=TEST_API_KEY,
        places_repository=GooglePlacesRepository(api_key=TEST_API_KEY),
        retry_attempts=1,
        geocoder=FakeGeocoder(),
    )
    repository._send = FakeTransport(*responses)
    return repository


class TestRouteEndpoint:
    def test_route_is_returned_in_camel_case(self, client) -> None:
        use_service(routes_repository_with((200, ROUTE_RESPONSE)))

        response = client.post("/api/v1/route", json={
            "origin": "38.5,-120.2", "destination": "43.252,-126.453", "mode": "DRIVE",
        })

        assert response.status_code == 200
        body = response.json()
        assert body["distanceMeters"] == 80000
        assert body["durationSeconds"] == 5400
        assert body["distanceText"] == "80.0 km"
        assert body["durationText"] == "90 mins"
        assert body["encodedPolyline"] == SAMPLE_POLYLINE

    def test_missing_destination(self, client) -> None:
        use_service(routes_repository_with())
        response = client.post("/api/v1/route", json={"origin": "38.5,-120.2"})
        assert response.status_code == 400

    def test_unknown_address(self, client) -> None:
        use_service(FailingRoutesRepository(ResolutionError("Atlantis")))
        response = client.post("/api/v1/route", json={"origin": "Atlantis", "destination": "Boston"})
        assert response.status_code == 404
        assert "Atlantis" in response.json()["detail"]

    def test_provider_status_is_forwarded(self, client) -> None:
        body = {"error": {"code": 403, "message": "API key not valid"}}
        use_service(FailingRoutesRepository(UpstreamError(403, body)))

        response = client.post("/api/v1/route", json={"origin": "Boston", "destination": "Hartford"})

        assert response.status_code == 403
        assert response.json()["detail"] == {"error": "Google Routes API error", "details": body}

    def test_provider_without_status_is_bad_gateway(self, client) -> None:
        use_service(FailingRoutesRepository(UpstreamError(None, None, "No routes found")))
        response = client.post("/api/v1/route", json={"origin": "Boston", "destination": "Hartford"})
        assert response.status_code == 502

    def test_unexpected_failure(self, client) -> None:
        use_service(FailingRoutesRepository(RuntimeError("boom")))
        response = client.post("/api/v1/route/waypoints", json={
            "origin": "Boston", "destination": "Hartford", "waypoints": ["Providence"],
        })
        assert response.status_code == 500


class TestPlacesSearchEndpoint:
    def test_long_route_search(self, client) -> None:
        use_service()

        response = client.post("/api/v1/places/search", json={
            "textQuery": "gas station",
            "encodedPolyline": SAMPLE_POLYLINE,
            "origin": {"latitude": 38.5, "longitude": -120.2},
            "durationSeconds": 5400,
        })

        assert response.status_code == 200
        body = response.json()
        assert body["query"] == "gas station"
        assert body["totalResults"] == 3
        assert [p["segmentIndex"] for p in body["places"]] == [0, 1, 2]
        assert [s["label"] for s in body["segments"]] == ["0-30 min", "30-60 min", "60-90 min"]
        assert body["intelligentStops"] is None

    def test_missing_origin(self, client) -> None:
        places = FakePlacesRepository()
        use_service(places=places)

        response = client.post("/api/v1/places/search", json={
            "textQuery": "gas station", "encodedPolyline": SAMPLE_POLYLINE,
        })

        assert response.status_code == 400
        assert "Origin" in response.json()["detail"]
        assert places.calls == []

    def test_backwards_caller_segment(self, client) -> None:
        places = FakePlacesRepository()
        use_service(places=places)

        response = client.post("/api/v1/places/search", json={
            "textQuery": "gas station",
            "encodedPolyline": SAMPLE_POLYLINE,
            "origin": {"latitude": 38.5, "longitude": -120.2},
            "segment": 1,
            "segmentInfo": {"index": 1, "startOffsetSeconds": 3600, "endOffsetSeconds": 1800, "label": "60-30 min"},
        })

        assert response.status_code == 400
        assert places.calls == []

    def test_every_segment_failing(self, client) -> None:
        use_service(places=FakePlacesRepository(failing={0, 1, 2}))

        response = client.post("/api/v1/places/search", json={
            "textQuery": "gas station",
            "encodedPolyline": SAMPLE_POLYLINE,
            "origin": {"latitude": 38.5, "longitude": -120.2},
            "durationSeconds": 5400,
        })

        assert response.status_code == 502
        details = response.json()["detail"]["details"]
        assert [d["segment"] for d in details] == [0, 1, 2]
        assert all(d["status"] == 503 for d in details)


class TestHealth:
    def test_reports_gemini_availability(self, client) -> None:
        app.dependency_overrides[get_stops_agent] = lambda: StopsAgent()
        body = client.get("/health").json()
        assert body["status"] == "OK"
        assert body["apis"]["gemini"] == "Not Available"

        app.dependency_overrides[get_stops_agent] = lambda: StopsAgent(FakeGenerator("{}"))
        assert client.get("/health").json()["apis"]["gemini"] == "Gemini AI API"
