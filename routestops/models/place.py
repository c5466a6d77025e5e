from typing import List, Optional
from pydantic import Field

from routestops.models.base import CamelModel
from routestops.models.location import Coordinate
from routestops.models.route import RouteSegment


class Place(CamelModel):
    id: str
    name: str = Field(default="Unknown")
    address: str = Field(default="Address not available")
    location: Optional[Coordinate] = None
    type: str = Field(default="Unknown", description="Primary place type")
    rating: Optional[float] = None
    user_rating_count: int = Field(default=0, ge=0)
    is_open: bool = False
    price_level: Optional[int] = Field(None, ge=0, le=4)

    # Detour from the route origin, present only when routing summaries were requested
    detour_seconds: Optional[float] = None
    detour_meters: Optional[int] = None
    detour_minutes: Optional[float] = None
    detour_distance_km: Optional[float] = None
    directions_uri: Optional[str] = None

    segment_index: Optional[int] = Field(
        None, description="Segment that produced this place (segmented searches only)"
    )


class SearchParams(CamelModel):
    text_query: str
    encoded_polyline: str
    max_result_count: int = Field(default=20, ge=1)
    open_now: bool = False
    included_type: Optional[str] = None
    origin: Optional[Coordinate] = Field(
        None, description="Required to receive per-place detour metrics"
    )
    segment_context: Optional[RouteSegment] = None


class PlaceSearchResult(CamelModel):
    places: List[Place] = Field(default_factory=list)
    total_results: int = 0


class LocationBiasRegion(CamelModel):
    """Fixed reference region used to nudge per-segment searches apart.

    The bias center is a linear interpolation across this region by segment
    progress. It is a coarse diversity heuristic and does not follow the
    actual route geometry.
    """
    base_latitude: float = 37.4219
    base_longitude: float = -122.0841
    latitude_span: float = 0.5
    longitude_span: float = 0.3
    reference_seconds: int = Field(default=14138, gt=0)
    radius_meters: float = 50000.0
