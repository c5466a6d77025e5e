from functools import lru_cache
from fastapi import Depends

from routestops.agents.stops import StopsAgent
from routestops.core.settings import Settings, get_settings
from routestops.models.place import LocationBiasRegion
from routestops.repositories.ai.gemini import GeminiRepository
from routestops.repositories.maps.places import GooglePlacesRepository
from routestops.repositories.maps.routes import GoogleRoutesRepository
from routestops.services.segments import SegmentPlanner
from routestops.services.travel import TravelService


@lru_cache()
def get_places_repository() -> GooglePlacesRepository:
    """Get GooglePlacesRepository instance."""
    settings = get_settings()
    return GooglePlacesRepository(
        api_key=settings.GOOGLE_MAPS_API_KEY,
        api_url=settings.PLACES_API_URL,
        timeout_seconds=settings.HTTP_TIMEOUT_SECONDS,
        retry_attempts=settings.UPSTREAM_RETRY_ATTEMPTS,
        location_bias=LocationBiasRegion(
            base_latitude=settings.LOCATION_BIAS_BASE_LATITUDE,
            base_longitude=settings.LOCATION_BIAS_BASE_LONGITUDE,
            latitude_span=settings.LOCATION_BIAS_LATITUDE_SPAN,
            longitude_span=settings.LOCATION_BIAS_LONGITUDE_SPAN,
            reference_seconds=settings.LOCATION_BIAS_REFERENCE_SECONDS,
            radius_meters=settings.LOCATION_BIAS_RADIUS_METERS,
        ),
    )


@lru_cache()
def get_routes_repository() -> GoogleRoutesRepository:
    """Get GoogleRoutesRepository instance."""
    settings = get_settings()
    return GoogleRoutesRepository(
        api_key=settings.GOOGLE_MAPS_API_KEY,
        places_repository=get_places_repository(),
        api_url=settings.ROUTES_API_URL,
        timeout_seconds=settings.HTTP_TIMEOUT_SECONDS,
        retry_attempts=settings.UPSTREAM_RETRY_ATTEMPTS,
    )


@lru_cache()
def get_stops_agent() -> StopsAgent:
    """Get StopsAgent instance; curation is disabled without a Gemini key."""
    settings = get_settings()
    generator = None
    if settings.GEMINI_API_KEY:
        generator = GeminiRepository(
            api_key=settings.GEMINI_API_KEY,
            api_url=settings.GEMINI_API_URL,
            timeout_seconds=settings.HTTP_TIMEOUT_SECONDS,
            retry_attempts=settings.UPSTREAM_RETRY_ATTEMPTS,
        )
    return StopsAgent(generator=generator)


def get_segment_planner(
    places_repository: GooglePlacesRepository = Depends(get_places_repository),
    settings: Settings = Depends(get_settings),
) -> SegmentPlanner:
    return SegmentPlanner(
        places_repository=places_repository,
        target_segment_seconds=settings.TARGET_SEGMENT_SECONDS,
        long_route_threshold_seconds=settings.LONG_ROUTE_THRESHOLD_SECONDS,
        delay_seconds=settings.SEGMENT_DELAY_SECONDS,
    )


def get_travel_service(
    routes_repository: GoogleRoutesRepository = Depends(get_routes_repository),
    places_repository: GooglePlacesRepository = Depends(get_places_repository),
    segment_planner: SegmentPlanner = Depends(get_segment_planner),
    stops_agent: StopsAgent = Depends(get_stops_agent),
) -> TravelService:
    """Get TravelService instance."""
    return TravelService(
        routes_repository=routes_repository,
        places_repository=places_repository,
        segment_planner=segment_planner,
        stops_agent=stops_agent,
    )
