"""Google Places API (New) text search along a route polyline."""
import logging
from typing import Any, Dict, List, Optional

from routestops.core.exceptions import ValidationError
from routestops.models.location import Coordinate
from routestops.models.place import LocationBiasRegion, Place, PlaceSearchResult, SearchParams
from routestops.models.route import RouteSegment
from routestops.repositories.base import BaseHTTPRepository
from routestops.utils.time_format import convert_seconds_to_minutes, meters_to_kilometers, parse_duration_seconds

logger = logging.getLogger(__name__)

PLACES_FIELD_MASK = ",".join([
    "places.id",
    "places.displayName",
    "places.formattedAddress",
    "places.location",
    "places.primaryType",
    "places.rating",
    "places.userRatingCount",
    "places.currentOpeningHours",
    "places.priceLevel",
    "routingSummaries",
])

SEGMENT_MIN_RESULTS = 20
SINGLE_SHOT_MIN_RESULTS = 30

PRICE_LEVELS = {
    "PRICE_LEVEL_FREE": 0,
    "PRICE_LEVEL_INEXPENSIVE": 1,
    "PRICE_LEVEL_MODERATE": 2,
    "PRICE_LEVEL_EXPENSIVE": 3,
    "PRICE_LEVEL_VERY_EXPENSIVE": 4,
}


def normalize_price_level(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value if 0 <= value <= 4 else None
    if isinstance(value, str):
        return PRICE_LEVELS.get(value)
    return None


def _coordinate(value: Any) -> Optional[Coordinate]:
    if not isinstance(value, dict):
        return None
    try:
        return Coordinate(latitude=value["latitude"], longitude=value["longitude"])
    except (KeyError, TypeError, ValueError):
        return None


def normalize_place(entry: Dict[str, Any], routing_summary: Any = None) -> Place:
    """Build a Place from one search result and its positionally aligned routing summary."""
    display_name = entry.get("displayName") or {}
    opening_hours = entry.get("currentOpeningHours") or {}

    detour_seconds = None
    detour_meters = None
    directions_uri = None
    if isinstance(routing_summary, dict):
        legs = routing_summary.get("legs")
        if isinstance(legs, list) and legs and isinstance(legs[0], dict):
            detour_seconds = parse_duration_seconds(legs[0].get("duration"))
            distance = legs[0].get("distanceMeters")
            if isinstance(distance, (int, float)) and not isinstance(distance, bool):
                detour_meters = int(distance)
            directions_uri = routing_summary.get("directionsUri")

    rating = entry.get("rating")
    return Place(
        id=entry.get("id") or "",
        name=display_name.get("text") or "Unknown",
        address=entry.get("formattedAddress") or "Address not available",
        location=_coordinate(entry.get("location")),
        type=entry.get("primaryType") or "Unknown",
        rating=float(rating) if isinstance(rating, (int, float)) and rating else None,
        user_rating_count=entry.get("userRatingCount") or 0,
        is_open=bool(opening_hours.get("openNow", False)),
        price_level=normalize_price_level(entry.get("priceLevel")),
        detour_seconds=detour_seconds,
        detour_meters=detour_meters,
        detour_minutes=convert_seconds_to_minutes(detour_seconds),
        detour_distance_km=meters_to_kilometers(detour_meters),
        directions_uri=directions_uri,
    )


def normalize_places_response(data: Dict[str, Any]) -> List[Place]:
    places = data.get("places") or []
    summaries = data.get("routingSummaries")
    if not isinstance(summaries, list):
        if places:
            logger.info("No routing summaries in places response; detour fields will be unset")
        summaries = []

    normalized = []
    for index, entry in enumerate(places):
        if not isinstance(entry, dict):
            logger.warning(f"Skipping malformed place entry at position {index}: {entry!r}")
            continue
        summary = summaries[index] if index < len(summaries) else None
        normalized.append(normalize_place(entry, summary))
    return normalized


class GooglePlacesRepository(BaseHTTPRepository):
    def __init__(
        self,
        api_key: str,
        api_url: str = "https://places.googleapis.com/v1/places:searchText",
        timeout_seconds: float = 10.0,
        retry_attempts: int = 2,
        location_bias: Optional[LocationBiasRegion] = None,
    ):
        super().__init__(api_key, timeout_seconds, retry_attempts)
        self.api_url = api_url
        self.location_bias = location_bias or LocationBiasRegion()

    def _segment_bias(self, segment: RouteSegment) -> Dict[str, Any]:
        """Approximate location bias for a segment; see LocationBiasRegion."""
        region = self.location_bias
        progress = min(max(segment.midpoint_seconds / region.reference_seconds, 0.0), 1.0)
        return {
            "circle": {
                "center": {
                    "latitude": region.base_latitude + progress * region.latitude_span,
                    "longitude": region.base_longitude + progress * region.longitude_span,
                },
                "radius": region.radius_meters,
            }
        }

    def build_payload(self, params: SearchParams) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "textQuery": params.text_query,
            "searchAlongRouteParameters": {
                "polyline": {"encodedPolyline": params.encoded_polyline}
            },
            "maxResultCount": params.max_result_count,
            "openNow": params.open_now,
        }
        if params.origin is not None:
            payload["routingParameters"] = {
                "origin": {
                    "latitude": params.origin.latitude,
                    "longitude": params.origin.longitude,
                },
                "travelMode": "DRIVE",
                "routingPreference": "TRAFFIC_AWARE_OPTIMAL",
            }
        if params.included_type:
            payload["includedType"] = params.included_type

        segment = params.segment_context
        if segment is not None:
            payload["textQuery"] = f"{params.text_query} {segment.label} segment"
            payload["maxResultCount"] = max(params.max_result_count, SEGMENT_MIN_RESULTS)
            payload["locationBias"] = self._segment_bias(segment)
        else:
            payload["maxResultCount"] = max(params.max_result_count, SINGLE_SHOT_MIN_RESULTS)
        return payload

    async def search(self, params: SearchParams) -> PlaceSearchResult:
        """Search for places along a route polyline."""
        if not params.text_query or not params.text_query.strip():
            raise ValidationError("Text query is required")
        if not params.encoded_polyline:
            raise ValidationError("Encoded polyline is required")

        payload = self.build_payload(params)
        if params.segment_context is not None:
            logger.info(
                f"Searching '{params.text_query}' along route for segment "
                f"{params.segment_context.index} ({params.segment_context.label})"
            )
        else:
            logger.info(f"Searching '{params.text_query}' along route, max {payload['maxResultCount']} results")
        if params.origin is None:
            logger.info("No origin supplied; detour metrics will not be requested")

        data = await self._post_json(self.api_url, payload, self._headers(PLACES_FIELD_MASK))
        places = normalize_places_response(data)
        if params.segment_context is not None:
            places = [
                place.model_copy(update={"segment_index": params.segment_context.index})
                for place in places
            ]
        logger.info(f"Found {len(places)} places along the route for '{params.text_query}'")
        return PlaceSearchResult(places=places, total_results=len(places))

    async def find_location(self, address: str) -> Optional[Coordinate]:
        """Top text-search hit for an address, used as a geocoding fallback."""
        logger.info(f"Looking up '{address}' with Places text search")
        data = await self._post_json(
            self.api_url,
            {"textQuery": address, "maxResultCount": 1},
            self._headers("places.location"),
        )
        for entry in data.get("places") or []:
            if isinstance(entry, dict):
                location = _coordinate(entry.get("location"))
                if location is not None:
                    return location
        return None
