import asyncio
import logging
from typing import Any, List, Optional

from routestops.agents.stops import StopsAgent, combine_across_segments
from routestops.core.exceptions import ValidationError
from routestops.models.location import Coordinate
from routestops.models.place import SearchParams
from routestops.models.route import Route, TravelMode, WaypointsRoute
from routestops.models.search import PlacesSearchResponse, SearchTuning, SegmentSearchOutcome
from routestops.models.stops import SegmentPlan, StopsPlan
from routestops.repositories.maps.places import GooglePlacesRepository
from routestops.repositories.maps.routes import GoogleRoutesRepository
from routestops.services.segments import SegmentPlanner

logger = logging.getLogger(__name__)


class TravelService:
    """Route computation plus place search and stop curation along the route."""

    def __init__(
        self,
        routes_repository: GoogleRoutesRepository,
        places_repository: GooglePlacesRepository,
        segment_planner: SegmentPlanner,
        stops_agent: StopsAgent,
    ):
        self.routes_repository = routes_repository
        self.places_repository = places_repository
        self.segment_planner = segment_planner
        self.stops_agent = stops_agent

    async def compute_route(self, origin: str, destination: str, mode: Any = TravelMode.DRIVE) -> Route:
        if not origin or not destination:
            raise ValidationError("Origin and destination are required")
        return await self.routes_repository.compute_route(origin, destination, mode)

    async def compute_route_with_waypoints(
        self,
        origin: str,
        destination: str,
        waypoints: Optional[List[str]] = None,
        mode: Any = TravelMode.DRIVE,
    ) -> WaypointsRoute:
        if not origin or not destination:
            raise ValidationError("Origin and destination are required")
        return await self.routes_repository.compute_route_with_waypoints(origin, destination, waypoints, mode)

    async def plan_and_curate_stops(
        self,
        text_query: str,
        encoded_polyline: str,
        origin: Optional[Coordinate],
        tuning: Optional[SearchTuning] = None,
    ) -> PlacesSearchResponse:
        """Search places along the route (per segment for long routes) and attach a curated plan."""
        tuning = tuning or SearchTuning()
        if not text_query or not text_query.strip() or not encoded_polyline:
            raise ValidationError("Text query and encoded polyline are required")
        if origin is None:
            raise ValidationError(
                "Origin coordinates (latitude and longitude) are required for routing summaries"
            )
        info = tuning.segment_info
        if tuning.segment is not None and info is not None:
            if info.end_offset_seconds < info.start_offset_seconds:
                raise ValidationError("Segment must not end before it starts")
            if not info.label.strip():
                raise ValidationError("Segment label is required")

        params = SearchParams(
            text_query=text_query,
            encoded_polyline=encoded_polyline,
            max_result_count=tuning.max_result_count,
            open_now=tuning.open_now,
            included_type=tuning.included_type,
            origin=origin,
        )

        if tuning.segment is not None and tuning.segment_info is not None:
            return await self._search_caller_segment(params, tuning)
        if self.segment_planner.is_long_route(tuning.duration_seconds):
            return await self._search_segmented(params, tuning.duration_seconds)
        return await self._search_single(params)

    async def _search_single(self, params: SearchParams) -> PlacesSearchResponse:
        result = await self.places_repository.search(params)
        intelligent_stops = await self.stops_agent.curate(result.places, params.origin, params.text_query)
        return PlacesSearchResponse(
            query=params.text_query,
            total_results=result.total_results,
            origin=params.origin,
            places=result.places,
            intelligent_stops=intelligent_stops,
        )

    async def _search_caller_segment(self, params: SearchParams, tuning: SearchTuning) -> PlacesSearchResponse:
        segment = tuning.segment_info.model_copy(update={"index": tuning.segment})
        result = await self.places_repository.search(params.model_copy(update={"segment_context": segment}))
        plan = await self.stops_agent.curate(result.places, params.origin, params.text_query)
        intelligent_stops = None
        if plan is not None:
            intelligent_stops = combine_across_segments([SegmentPlan(segment=segment, plan=plan)])
        return PlacesSearchResponse(
            query=params.text_query,
            total_results=result.total_results,
            origin=params.origin,
            places=result.places,
            intelligent_stops=intelligent_stops,
            segment=segment.index,
            segment_info=segment,
        )

    async def _search_segmented(self, params: SearchParams, duration_seconds: int) -> PlacesSearchResponse:
        logger.info(f"Route of {duration_seconds}s is long; searching per segment")
        result = await self.segment_planner.execute_segmented_search(
            params.encoded_polyline, params.origin, duration_seconds, params
        )
        intelligent_stops = await self._curate_segments(result.per_segment_results, params)
        failed = result.failed_segments
        if failed:
            logger.warning(f"Segmented search completed without segments {failed}")
        return PlacesSearchResponse(
            query=params.text_query,
            total_results=len(result.places),
            origin=params.origin,
            places=result.places,
            intelligent_stops=intelligent_stops,
            segments=[outcome.segment for outcome in result.per_segment_results],
            failed_segments=failed,
        )

    async def _curate_segments(
        self, outcomes: List[SegmentSearchOutcome], params: SearchParams
    ) -> Optional[StopsPlan]:
        if not self.stops_agent.is_available:
            return None
        curated = [outcome for outcome in outcomes if outcome.succeeded and outcome.places]
        plans = await asyncio.gather(*(
            self.stops_agent.curate(outcome.places, params.origin, params.text_query)
            for outcome in curated
        ))
        per_segment = [
            SegmentPlan(segment=outcome.segment, plan=plan)
            for outcome, plan in zip(curated, plans)
        ]
        if all(entry.plan is None for entry in per_segment):
            return None
        return combine_across_segments(per_segment)
