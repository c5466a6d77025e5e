from typing import List, Optional
from pydantic import Field

from routestops.models.base import CamelModel
from routestops.models.location import Coordinate
from routestops.models.place import Place
from routestops.models.route import RouteSegment
from routestops.models.stops import StopsPlan


class SearchTuning(CamelModel):
    max_result_count: int = Field(default=20, ge=1)
    open_now: bool = False
    included_type: Optional[str] = None
    duration_seconds: Optional[int] = Field(
        None, ge=0, description="Route duration; long routes are searched per segment"
    )
    segment: Optional[int] = Field(None, ge=0, description="Caller-chosen segment index")
    segment_info: Optional[RouteSegment] = None


class SegmentSearchOutcome(CamelModel):
    segment: RouteSegment
    places: List[Place] = Field(default_factory=list)
    error: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.error is None


class SegmentedSearchResult(CamelModel):
    places: List[Place] = Field(default_factory=list)
    per_segment_results: List[SegmentSearchOutcome] = Field(default_factory=list)

    @property
    def failed_segments(self) -> List[int]:
        return [outcome.segment.index for outcome in self.per_segment_results if not outcome.succeeded]


class PlacesSearchResponse(CamelModel):
    query: str
    total_results: int
    origin: Coordinate
    places: List[Place] = Field(default_factory=list)
    intelligent_stops: Optional[StopsPlan] = None
    segment: Optional[int] = None
    segment_info: Optional[RouteSegment] = None
    segments: Optional[List[RouteSegment]] = None
    failed_segments: Optional[List[int]] = None
