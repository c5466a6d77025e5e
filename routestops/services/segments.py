"""Time-based route segmentation and best-effort per-segment place search."""
import asyncio
import logging
import math
from typing import List, Optional, Tuple

from routestops.core.exceptions import AggregateUpstreamError, UpstreamError, ValidationError
from routestops.models.location import Coordinate
from routestops.models.place import Place, SearchParams
from routestops.models.route import RouteSegment
from routestops.models.search import SegmentedSearchResult, SegmentSearchOutcome
from routestops.repositories.maps.places import GooglePlacesRepository
from routestops.utils.time_format import format_minutes_range

logger = logging.getLogger(__name__)

TARGET_SEGMENT_SECONDS = 2100  # 35 minutes
LONG_ROUTE_THRESHOLD_SECONDS = 2700  # 45 minutes


def plan_segments(duration_seconds: float, target_segment_seconds: float = TARGET_SEGMENT_SECONDS) -> List[RouteSegment]:
    """Split ``[0, duration_seconds]`` into equal, contiguous segments near the target length.

    The segment count is ``ceil(duration / target)`` and the duration is then
    divided evenly, so there is never a short tail segment.
    """
    if duration_seconds is None or duration_seconds < 0:
        raise ValidationError("Route duration must be a non-negative number of seconds")
    if target_segment_seconds <= 0:
        raise ValidationError("Target segment duration must be positive")

    num_segments = max(1, math.ceil(duration_seconds / target_segment_seconds))
    segment_seconds = duration_seconds / num_segments

    segments = []
    for index in range(num_segments):
        start = index * segment_seconds
        # The last boundary is pinned so the segments cover the route exactly
        end = duration_seconds if index == num_segments - 1 else (index + 1) * segment_seconds
        segments.append(RouteSegment(
            index=index,
            start_offset_seconds=start,
            end_offset_seconds=end,
            label=format_minutes_range(start, end),
        ))
    return segments


def is_long_route(duration_seconds: float, threshold_seconds: float = LONG_ROUTE_THRESHOLD_SECONDS) -> bool:
    """True when the route is long enough to be searched segment by segment."""
    return duration_seconds > threshold_seconds


class SegmentPlanner:
    def __init__(
        self,
        places_repository: GooglePlacesRepository,
        target_segment_seconds: float = TARGET_SEGMENT_SECONDS,
        long_route_threshold_seconds: float = LONG_ROUTE_THRESHOLD_SECONDS,
        delay_seconds: float = 0.5,
    ):
        self.places_repository = places_repository
        self.target_segment_seconds = target_segment_seconds
        self.long_route_threshold_seconds = long_route_threshold_seconds
        self.delay_seconds = delay_seconds

    def plan(self, duration_seconds: float) -> List[RouteSegment]:
        return plan_segments(duration_seconds, self.target_segment_seconds)

    def is_long_route(self, duration_seconds: Optional[float]) -> bool:
        if duration_seconds is None:
            return False
        return is_long_route(duration_seconds, self.long_route_threshold_seconds)

    async def execute_segmented_search(
        self,
        encoded_polyline: str,
        origin: Optional[Coordinate],
        duration_seconds: float,
        base_params: SearchParams,
    ) -> SegmentedSearchResult:
        """Run one place search per segment, in order, and merge what succeeds.

        Calls are sequential with a fixed delay between them to stay under the
        provider's rate limit. A failed segment is logged and skipped; only
        when every segment fails is AggregateUpstreamError raised.
        Cancellation is not caught, so it aborts the remaining segments.
        """
        if not base_params.text_query or not base_params.text_query.strip():
            raise ValidationError("Text query is required")
        if not encoded_polyline:
            raise ValidationError("Encoded polyline is required")

        segments = self.plan(duration_seconds)
        logger.info(
            f"Segmented search for '{base_params.text_query}': {len(segments)} segments "
            f"over {duration_seconds}s"
        )

        outcomes: List[SegmentSearchOutcome] = []
        failures: List[Tuple[int, UpstreamError]] = []
        places: List[Place] = []

        for segment in segments:
            params = base_params.model_copy(update={
                "encoded_polyline": encoded_polyline,
                "origin": origin,
                "segment_context": segment,
            })
            try:
                result = await self.places_repository.search(params)
            except UpstreamError as e:
                logger.warning(f"Segment {segment.index} ({segment.label}) failed: {e}")
                failures.append((segment.index, e))
                outcomes.append(SegmentSearchOutcome(segment=segment, error=str(e)))
            except Exception as e:
                logger.warning(
                    f"Segment {segment.index} ({segment.label}) failed unexpectedly: {e}", exc_info=True
                )
                failures.append((segment.index, UpstreamError(None, str(e))))
                outcomes.append(SegmentSearchOutcome(segment=segment, error=str(e)))
            else:
                tagged = [
                    place if place.segment_index == segment.index
                    else place.model_copy(update={"segment_index": segment.index})
                    for place in result.places
                ]
                logger.info(f"Segment {segment.index} ({segment.label}): {len(tagged)} places")
                places.extend(tagged)
                outcomes.append(SegmentSearchOutcome(segment=segment, places=tagged))

            if segment.index < len(segments) - 1 and self.delay_seconds > 0:
                await asyncio.sleep(self.delay_seconds)

        if len(failures) == len(segments):
            logger.error(f"All {len(segments)} segments failed for '{base_params.text_query}'")
            raise AggregateUpstreamError(failures)

        return SegmentedSearchResult(places=places, per_segment_results=outcomes)
