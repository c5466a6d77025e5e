from enum import Enum
from typing import List, Optional
from pydantic import Field

from routestops.models.base import CamelModel
from routestops.models.location import Bounds, Coordinate


class TravelMode(str, Enum):
    DRIVE = "DRIVE"
    WALK = "WALK"
    BICYCLE = "BICYCLE"
    TRANSIT = "TRANSIT"


class Step(CamelModel):
    instruction: str = Field(default="Continue")
    distance_meters: int = Field(default=0, description="Distance in meters")
    duration_seconds: int = Field(default=0, description="Duration in seconds")
    distance_text: str = Field(default="Unknown")
    duration_text: str = Field(default="Unknown")

    class Config:
        frozen = True


class Route(CamelModel):
    origin: Coordinate
    destination: Coordinate
    distance_meters: int = Field(..., description="Total distance in meters")
    duration_seconds: int = Field(..., description="Total duration in seconds")
    distance_text: str
    duration_text: str
    mode: str = Field(default="drive")
    encoded_polyline: str = Field(..., description="Encoded overview polyline")
    steps: List[Step] = Field(default_factory=list)
    bounds: Optional[Bounds] = None

    class Config:
        frozen = True


class RouteLeg(CamelModel):
    start: Coordinate
    end: Coordinate
    distance_meters: int = 0
    duration_seconds: int = 0
    distance_text: str = "Unknown"
    duration_text: str = "Unknown"
    steps: List[Step] = Field(default_factory=list)

    class Config:
        frozen = True


class WaypointsRoute(CamelModel):
    origin: Coordinate
    destination: Coordinate
    waypoints: List[str] = Field(default_factory=list, description="Waypoints as requested")
    total_distance_meters: int
    total_duration_seconds: int
    distance_text: str
    duration_text: str
    mode: str = Field(default="drive")
    legs: List[RouteLeg]
    encoded_polyline: str
    bounds: Optional[Bounds] = None

    class Config:
        frozen = True


class RouteSegment(CamelModel):
    """A contiguous time slice of a route, used to spread place searches."""
    index: int = Field(..., ge=0)
    start_offset_seconds: float = Field(..., ge=0)
    end_offset_seconds: float = Field(..., ge=0)
    label: str

    class Config:
        frozen = True

    @property
    def midpoint_seconds(self) -> float:
        return (self.start_offset_seconds + self.end_offset_seconds) / 2
