import logging
from fastapi import APIRouter, Depends, HTTPException

from routestops.api.dependencies import get_travel_service
from routestops.api.v1.models import PlacesSearchRequest, RouteRequest, WaypointsRouteRequest
from routestops.core.exceptions import (
    AggregateUpstreamError,
    ResolutionError,
    UpstreamError,
    ValidationError,
)
from routestops.models.route import Route, WaypointsRoute
from routestops.models.search import PlacesSearchResponse
from routestops.services.travel import TravelService

logger = logging.getLogger(__name__)
router = APIRouter()


def _upstream_exception(provider: str, error: UpstreamError) -> HTTPException:
    status = error.status if isinstance(error.status, int) and 400 <= error.status < 600 else 502
    return HTTPException(
        status_code=status,
        detail={"error": f"{provider} error", "details": error.body if error.body is not None else str(error)},
    )


@router.post("/route", response_model=Route)
async def plan_route(
    request: RouteRequest,
    travel_service: TravelService = Depends(get_travel_service),
):
    """Compute a driving (or other mode) route between two locations."""
    try:
        logger.info(f"Route planning request: '{request.origin}' -> '{request.destination}' ({request.mode})")
        route = await travel_service.compute_route(request.origin, request.destination, request.mode)
        logger.info(f"Route details: {route.distance_text} in {route.duration_text}")
        return route
    except ValidationError as e:
        logger.warning(f"Invalid route request: {e}")
        raise HTTPException(status_code=400, detail=str(e))
    except ResolutionError as e:
        logger.warning(f"Could not resolve location: {e}")
        raise HTTPException(status_code=404, detail=str(e))
    except UpstreamError as e:
        logger.error(f"Routes API error: {e}")
        raise _upstream_exception("Google Routes API", e)
    except Exception as e:
        logger.error(f"Unexpected error planning route: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal server error while planning route.")


@router.post("/route/waypoints", response_model=WaypointsRoute)
async def plan_route_with_waypoints(
    request: WaypointsRouteRequest,
    travel_service: TravelService = Depends(get_travel_service),
):
    """Compute a multi-leg route through intermediate waypoints."""
    try:
        logger.info(
            f"Route with {len(request.waypoints)} waypoints requested: "
            f"'{request.origin}' -> '{request.destination}'"
        )
        return await travel_service.compute_route_with_waypoints(
            request.origin, request.destination, request.waypoints, request.mode
        )
    except ValidationError as e:
        logger.warning(f"Invalid waypoints route request: {e}")
        raise HTTPException(status_code=400, detail=str(e))
    except ResolutionError as e:
        logger.warning(f"Could not resolve location: {e}")
        raise HTTPException(status_code=404, detail=str(e))
    except UpstreamError as e:
        logger.error(f"Routes API error: {e}")
        raise _upstream_exception("Google Routes API", e)
    except Exception as e:
        logger.error(f"Unexpected error planning waypoints route: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal server error while planning route.")


@router.post("/places/search", response_model=PlacesSearchResponse)
async def search_places_along_route(
    request: PlacesSearchRequest,
    travel_service: TravelService = Depends(get_travel_service),
):
    """Search places along a route and, when configured, curate a stops plan."""
    try:
        logger.info(f"Places search along route: '{request.text_query}', max {request.max_result_count}")
        return await travel_service.plan_and_curate_stops(
            request.text_query, request.encoded_polyline, request.origin, request.tuning()
        )
    except ValidationError as e:
        logger.warning(f"Invalid places search request: {e}")
        raise HTTPException(status_code=400, detail=str(e))
    except AggregateUpstreamError as e:
        logger.error(f"Segmented places search failed: {e}")
        raise HTTPException(
            status_code=502,
            detail={
                "error": "Google Places API error",
                "details": [
                    {"segment": index, "status": error.status, "reason": str(error)}
                    for index, error in e.failures
                ],
            },
        )
    except UpstreamError as e:
        logger.error(f"Places API error: {e}")
        raise _upstream_exception("Google Places API", e)
    except Exception as e:
        logger.error(f"Unexpected error searching places: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal server error while searching places.")
