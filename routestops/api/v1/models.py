from typing import List, Optional
from pydantic import Field

from routestops.models.base import CamelModel
from routestops.models.location import Coordinate
from routestops.models.route import RouteSegment
from routestops.models.search import SearchTuning


# Request Models
class RouteRequest(CamelModel):
    origin: str = Field(default="", description="'lat,lng' or a free-text address")
    destination: str = Field(default="", description="'lat,lng' or a free-text address")
    mode: str = Field(default="DRIVE", description="DRIVE, WALK, BICYCLE, TRANSIT or driving, walking, ...")

    class Config:
        json_schema_extra = {
            "example": {
                "origin": "40.0,-75.0",
                "destination": "Baltimore, MD",
                "mode": "DRIVE",
            }
        }


class WaypointsRouteRequest(RouteRequest):
    waypoints: List[str] = Field(default_factory=list, description="Intermediate stops in travel order")


class PlacesSearchRequest(CamelModel):
    text_query: str = Field(default="", description="What to look for, e.g. 'gas station'")
    encoded_polyline: str = Field(default="", description="Encoded route polyline")
    origin: Optional[Coordinate] = Field(None, description="Route origin, required for detour metrics")
    max_result_count: int = Field(default=20, ge=1, le=50)
    open_now: bool = False
    included_type: Optional[str] = None
    duration_seconds: Optional[int] = Field(None, ge=0, description="Route duration in seconds")
    segment: Optional[int] = Field(None, ge=0)
    segment_info: Optional[RouteSegment] = None

    class Config:
        json_schema_extra = {
            "example": {
                "textQuery": "gas station",
                "encodedPolyline": "_p~iF~ps|U_ulLnnqC_mqNvxq`@",
                "origin": {"latitude": 38.5, "longitude": -120.2},
                "durationSeconds": 5400,
            }
        }

    def tuning(self) -> SearchTuning:
        return SearchTuning(
            max_result_count=self.max_result_count,
            open_now=self.open_now,
            included_type=self.included_type,
            duration_seconds=self.duration_seconds,
            segment=self.segment,
            segment_info=self.segment_info,
        )
