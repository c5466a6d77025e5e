from functools import lru_cache
from typing import Optional
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # API Configuration
    HOST: str = "0.0.0.0"
    PORT: int = 8000
    ENVIRONMENT: str = "development"
    LOG_LEVEL: str = "INFO"

    # Google Maps Platform
    GOOGLE_MAPS_API_KEY: str
    ROUTES_API_URL: str = "https://routes.googleapis.com/directions/v2:computeRoutes"
    PLACES_API_URL: str = "https://places.googleapis.com/v1/places:searchText"

    # Gemini Configuration (curation is disabled without a key)
    GEMINI_API_KEY: Optional[str] = None
    GEMINI_API_URL: str = (
        "https://generativelanguage.googleapis.com/v1beta/models/"
        "gemini-1.5-flash:generateContent"
    )

    # Outbound calls
    HTTP_TIMEOUT_SECONDS: float = 10.0
    UPSTREAM_RETRY_ATTEMPTS: int = 2

    # Route segmentation
    TARGET_SEGMENT_SECONDS: int = 2100
    LONG_ROUTE_THRESHOLD_SECONDS: int = 2700
    SEGMENT_DELAY_SECONDS: float = 0.5

    # Reference region for the per-segment location bias (approximate)
    LOCATION_BIAS_BASE_LATITUDE: float = 37.4219
    LOCATION_BIAS_BASE_LONGITUDE: float = -122.0841
    LOCATION_BIAS_LATITUDE_SPAN: float = 0.5
    LOCATION_BIAS_LONGITUDE_SPAN: float = 0.3
    LOCATION_BIAS_REFERENCE_SECONDS: int = 14138
    LOCATION_BIAS_RADIUS_METERS: float = 50000.0

    class Config:
        case_sensitive = True  # Variables are case-sensitive
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"


@lru_cache()  # Cache the settings object for performance
def get_settings() -> Settings:
    return Settings()
