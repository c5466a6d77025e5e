from typing import List, Optional
from pydantic import Field

from routestops.models.base import CamelModel
from routestops.models.place import Place
from routestops.models.route import RouteSegment


class RecommendedPlace(Place):
    reasoning: str = Field(default="")


class StopsPlanSegment(CamelModel):
    label: str = Field(..., alias="segment")
    recommended_places: List[RecommendedPlace] = Field(default_factory=list)


class StopsPlan(CamelModel):
    segments: List[StopsPlanSegment] = Field(default_factory=list, alias="stopsPlan")


class SegmentPlan(CamelModel):
    """AI plan produced for one route segment (None when curation was skipped)."""
    segment: RouteSegment
    plan: Optional[StopsPlan] = None
