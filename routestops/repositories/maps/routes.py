"""Google Routes API client: endpoint resolution, route computation and normalization."""
import asyncio
import logging
import math
from typing import Any, Dict, List, Optional

import googlemaps
import googlemaps.exceptions
import polyline

from routestops.core.exceptions import ResolutionError, UpstreamError, ValidationError
from routestops.models.location import Bounds, Coordinate
from routestops.models.route import Route, RouteLeg, Step, TravelMode, WaypointsRoute
from routestops.repositories.base import BaseHTTPRepository
from routestops.repositories.maps.places import GooglePlacesRepository
from routestops.utils.time_format import format_distance, format_duration, parse_duration_seconds

logger = logging.getLogger(__name__)

ROUTES_FIELD_MASK = (
    "routes.duration,routes.distanceMeters,routes.polyline.encodedPolyline,"
    "routes.legs,routes.viewport"
)

# Directions-API style names still sent by older clients
LEGACY_TRAVEL_MODES = {
    "driving": TravelMode.DRIVE,
    "walking": TravelMode.WALK,
    "bicycling": TravelMode.BICYCLE,
    "transit": TravelMode.TRANSIT,
}


def parse_travel_mode(mode: Any) -> TravelMode:
    if isinstance(mode, TravelMode):
        return mode
    text = str(mode or "").strip()
    if text.lower() in LEGACY_TRAVEL_MODES:
        return LEGACY_TRAVEL_MODES[text.lower()]
    try:
        return TravelMode(text.upper())
    except ValueError:
        logger.warning(f"Unsupported travel mode: '{mode}'. Defaulting to DRIVE.")
        return TravelMode.DRIVE


def parse_coordinate_pair(value: str) -> Optional[Coordinate]:
    """Return a Coordinate for ``"lat,lng"`` input, or None when the input is free text."""
    parts = value.split(",")
    if len(parts) != 2:
        return None
    try:
        latitude, longitude = float(parts[0]), float(parts[1])
    except ValueError:
        return None
    if any(math.isnan(v) or math.isinf(v) for v in (latitude, longitude)):
        return None
    if not (-90 <= latitude <= 90 and -180 <= longitude <= 180):
        raise ValidationError(f"Coordinates out of range: '{value}'")
    return Coordinate(latitude=latitude, longitude=longitude)


def _lat_lng(location: Any) -> Optional[Coordinate]:
    try:
        lat_lng = location["latLng"]
        return Coordinate(latitude=lat_lng["latitude"], longitude=lat_lng["longitude"])
    except (KeyError, TypeError, ValueError):
        return None


def _int_or_zero(value: Any) -> int:
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return int(value)
    return 0


def bounds_from_polyline(encoded: str) -> Optional[Bounds]:
    try:
        points = polyline.decode(encoded)
    except (IndexError, TypeError, ValueError):
        logger.warning("Could not decode route polyline for bounds")
        return None
    if not points:
        return None
    latitudes = [point[0] for point in points]
    longitudes = [point[1] for point in points]
    return Bounds(
        low=Coordinate(latitude=min(latitudes), longitude=min(longitudes)),
        high=Coordinate(latitude=max(latitudes), longitude=max(longitudes)),
    )


def _bounds(route: Dict[str, Any], encoded: str) -> Optional[Bounds]:
    viewport = route.get("viewport")
    if isinstance(viewport, dict):
        try:
            return Bounds.model_validate(viewport)
        except ValueError:
            logger.warning(f"Ignoring malformed route viewport: {viewport}")
    return bounds_from_polyline(encoded)


def normalize_step(step: Dict[str, Any]) -> Step:
    instruction = (step.get("navigationInstruction") or {}).get("instructions") or "Continue"
    distance = step.get("distanceMeters")
    duration = parse_duration_seconds(step.get("staticDuration", step.get("duration")))
    return Step(
        instruction=instruction,
        distance_meters=_int_or_zero(distance),
        duration_seconds=int(duration or 0),
        distance_text=format_distance(distance) if distance else "Unknown",
        duration_text=format_duration(duration) if duration is not None else "Unknown",
    )


def _first_route(data: Dict[str, Any]) -> Dict[str, Any]:
    routes = data.get("routes")
    if not isinstance(routes, list) or not routes or not isinstance(routes[0], dict):
        raise UpstreamError(None, data, "No routes found in Routes API response")
    return routes[0]


def _route_totals(route: Dict[str, Any], data: Dict[str, Any]):
    duration = parse_duration_seconds(route.get("duration"))
    encoded = (route.get("polyline") or {}).get("encodedPolyline")
    if duration is None or not encoded:
        raise UpstreamError(None, data, "Route is missing its duration or polyline")
    return _int_or_zero(route.get("distanceMeters")), int(duration), encoded


def normalize_route(
    data: Dict[str, Any],
    mode: TravelMode,
    origin: Coordinate,
    destination: Coordinate,
) -> Route:
    """Normalize a computeRoutes response into a Route. Endpoints fall back to the resolved inputs."""
    route = _first_route(data)
    distance_meters, duration_seconds, encoded = _route_totals(route, data)
    legs = [leg for leg in route.get("legs") or [] if isinstance(leg, dict)]
    leg = legs[0] if legs else {}

    return Route(
        origin=_lat_lng(leg.get("startLocation")) or origin,
        destination=_lat_lng(leg.get("endLocation")) or destination,
        distance_meters=distance_meters,
        duration_seconds=duration_seconds,
        distance_text=format_distance(distance_meters),
        duration_text=format_duration(duration_seconds),
        mode=mode.value.lower(),
        encoded_polyline=encoded,
        steps=[normalize_step(step) for step in leg.get("steps") or [] if isinstance(step, dict)],
        bounds=_bounds(route, encoded),
    )


def normalize_waypoints_route(
    data: Dict[str, Any],
    mode: TravelMode,
    waypoints: List[str],
    stops: List[Coordinate],
) -> WaypointsRoute:
    """``stops`` is the resolved origin, intermediates and destination in travel order."""
    route = _first_route(data)
    distance_meters, duration_seconds, encoded = _route_totals(route, data)
    raw_legs = [leg for leg in route.get("legs") or [] if isinstance(leg, dict)]

    legs = []
    for index, leg in enumerate(raw_legs):
        distance = leg.get("distanceMeters")
        duration = parse_duration_seconds(leg.get("duration"))
        fallback_start = stops[index] if index < len(stops) else stops[0]
        fallback_end = stops[index + 1] if index + 1 < len(stops) else stops[-1]
        legs.append(RouteLeg(
            start=_lat_lng(leg.get("startLocation")) or fallback_start,
            end=_lat_lng(leg.get("endLocation")) or fallback_end,
            distance_meters=_int_or_zero(distance),
            duration_seconds=int(duration or 0),
            distance_text=format_distance(distance) if distance else "Unknown",
            duration_text=format_duration(duration) if duration is not None else "Unknown",
            steps=[normalize_step(step) for step in leg.get("steps") or [] if isinstance(step, dict)],
        ))

    return WaypointsRoute(
        origin=legs[0].start if legs else stops[0],
        destination=legs[-1].end if legs else stops[-1],
        waypoints=list(waypoints),
        total_distance_meters=distance_meters,
        total_duration_seconds=duration_seconds,
        distance_text=format_distance(distance_meters),
        duration_text=format_duration(duration_seconds),
        mode=mode.value.lower(),
        legs=legs,
        encoded_polyline=encoded,
        bounds=_bounds(route, encoded),
    )


class GoogleRoutesRepository(BaseHTTPRepository):
    def __init__(
        self,
        api_key: str,
        places_repository: GooglePlacesRepository,
        api_url: str = "https://routes.googleapis.com/directions/v2:computeRoutes",
        timeout_seconds: float = 10.0,
        retry_attempts: int = 2,
        geocoder: Optional[googlemaps.Client] = None,
    ):
        super().__init__(api_key, timeout_seconds, retry_attempts)
        self.api_url = api_url
        self.places_repository = places_repository
        self.geocoder = geocoder or googlemaps.Client(key=api_key, timeout=timeout_seconds)

    async def geocode(self, address: str) -> Coordinate:
        """Geocode an address, falling back to Places text search when geocoding is denied."""
        logger.info(f"Attempting to geocode address: '{address}'")
        try:
            results = await asyncio.to_thread(self.geocoder.geocode, address)
        except googlemaps.exceptions.ApiError as e:
            if e.status != "REQUEST_DENIED":
                logger.error(f"Geocoding failed for '{address}' with status {e.status}: {e.message}")
                raise ResolutionError(address) from e
            logger.info(f"Geocoding denied for '{address}', trying Places text search fallback")
            return await self._geocode_with_places(address)
        except googlemaps.exceptions.Timeout as e:
            raise UpstreamError(504, None, f"Geocoding timed out for '{address}'") from e
        except googlemaps.exceptions.TransportError as e:
            raise UpstreamError(502, str(e), f"Geocoding transport error for '{address}': {e}") from e

        if not results:
            logger.warning(f"No geocoding results found for address: '{address}'")
            raise ResolutionError(address)
        location = results[0]["geometry"]["location"]
        coordinate = Coordinate(latitude=location["lat"], longitude=location["lng"])
        logger.info(f"Geocoded '{address}' to {coordinate}")
        return coordinate

    async def _geocode_with_places(self, address: str) -> Coordinate:
        try:
            coordinate = await self.places_repository.find_location(address)
        except UpstreamError as e:
            logger.error(f"Places fallback failed for '{address}': {e}")
            raise ResolutionError(
                address, f"Failed to geocode address: {address} - both Geocoding and Places lookups failed"
            ) from e
        if coordinate is None:
            raise ResolutionError(address)
        logger.info(f"Places fallback resolved '{address}' to {coordinate}")
        return coordinate

    async def resolve(self, value: str) -> Coordinate:
        """Resolve ``"lat,lng"`` or free text to a Coordinate."""
        if not value or not value.strip():
            raise ValidationError("Location must not be empty")
        coordinate = parse_coordinate_pair(value.strip())
        if coordinate is not None:
            return coordinate
        return await self.geocode(value.strip())

    async def resolve_all(self, values: List[str]) -> List[Coordinate]:
        """Resolve concurrently; the first failure cancels the lookups still running."""
        tasks = [asyncio.ensure_future(self.resolve(value)) for value in values]
        try:
            return list(await asyncio.gather(*tasks))
        except BaseException:
            for task in tasks:
                if not task.done():
                    task.cancel()
            # Let the cancelled lookups unwind before the error propagates
            await asyncio.gather(*tasks, return_exceptions=True)
            raise

    def _payload(self, origin: Coordinate, destination: Coordinate, mode: TravelMode) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "origin": {"location": {"latLng": origin.model_dump()}},
            "destination": {"location": {"latLng": destination.model_dump()}},
            "travelMode": mode.value,
            "computeAlternativeRoutes": False,
            "polylineQuality": "OVERVIEW",
        }
        # The Routes API rejects a routing preference for non-driving modes
        if mode == TravelMode.DRIVE:
            payload["routingPreference"] = "TRAFFIC_AWARE"
        return payload

    async def compute_route(self, origin: str, destination: str, mode: Any = TravelMode.DRIVE) -> Route:
        travel_mode = parse_travel_mode(mode)
        logger.info(f"Computing route from '{origin}' to '{destination}' using {travel_mode.value}")
        origin_coord, destination_coord = await self.resolve_all([origin, destination])

        data = await self._post_json(
            self.api_url,
            self._payload(origin_coord, destination_coord, travel_mode),
            self._headers(ROUTES_FIELD_MASK),
        )
        route = normalize_route(data, travel_mode, origin_coord, destination_coord)
        logger.info(f"Route found: {route.distance_text} in {route.duration_text}")
        return route

    async def compute_route_with_waypoints(
        self,
        origin: str,
        destination: str,
        waypoints: Optional[List[str]] = None,
        mode: Any = TravelMode.DRIVE,
    ) -> WaypointsRoute:
        waypoints = list(waypoints or [])
        travel_mode = parse_travel_mode(mode)
        logger.info(
            f"Computing route with {len(waypoints)} waypoints from '{origin}' to '{destination}'"
        )
        # Every waypoint is mandatory: the first failed lookup fails the whole request
        resolved = await self.resolve_all([origin, destination, *waypoints])
        origin_coord, destination_coord, intermediates = resolved[0], resolved[1], list(resolved[2:])

        payload = self._payload(origin_coord, destination_coord, travel_mode)
        if intermediates:
            payload["intermediates"] = [
                {"location": {"latLng": coordinate.model_dump()}} for coordinate in intermediates
            ]
        data = await self._post_json(self.api_url, payload, self._headers(ROUTES_FIELD_MASK))
        route = normalize_waypoints_route(
            data, travel_mode, waypoints, [origin_coord, *intermediates, destination_coord]
        )
        logger.info(
            f"Multi-leg route: {route.distance_text} in {route.duration_text} over {len(route.legs)} legs"
        )
        return route
