import logging
import os
import time
from datetime import datetime, timezone

import uvicorn
from dotenv import load_dotenv
from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import HTTPException
from fastapi.responses import JSONResponse

from routestops.core.logging import setup_logging

# Load environment variables from .env file
load_dotenv()

# Setup logging
setup_logging(os.getenv("LOG_LEVEL", "INFO"))
logger = logging.getLogger(__name__)

from routestops.agents.stops import StopsAgent  # noqa: E402
from routestops.api.dependencies import get_stops_agent  # noqa: E402
from routestops.api.v1 import routes  # noqa: E402
from routestops.core.settings import get_settings  # noqa: E402

app = FastAPI(title="Route Stops API", version="2.0.0")


@app.middleware("http")
async def log_requests_middleware(request: Request, call_next):
    """Log incoming requests and their processing time."""
    start_time = time.time()
    method = request.method
    path = request.url.path
    logger.info(f"Request: {method} {path}")

    try:
        response = await call_next(request)
    except Exception as e:
        process_time = time.time() - start_time
        logger.error(
            f"Error: {method} {path} - Exception: {str(e)} - Duration: {process_time:.4f}s",
            exc_info=True,
        )
        return JSONResponse(
            status_code=500,
            content={"detail": "Internal Server Error. Please check logs for more details."},
        )
    process_time = time.time() - start_time
    logger.info(
        f"Response: {method} {path} - Status: {response.status_code} - Duration: {process_time:.4f}s"
    )
    return response


app.include_router(routes.router, prefix="/api/v1", tags=["routes"])


@app.get("/health", tags=["General"])
async def health_check(stops_agent: StopsAgent = Depends(get_stops_agent)):
    """Report service status and which upstream APIs are enabled."""
    return {
        "status": "OK",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "service": "Route Stops Backend",
        "version": app.version,
        "apis": {
            "routes": "Google Maps Routes API",
            "places": "Google Places API",
            "gemini": "Gemini AI API" if stops_agent.is_available else "Not Available",
        },
    }


@app.exception_handler(HTTPException)
async def custom_http_exception_handler(request: Request, exc: HTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.detail},
    )


if __name__ == "__main__":
    app_settings = get_settings()
    logger.info(
        f"Starting server on {app_settings.HOST}:{app_settings.PORT}, environment: {app_settings.ENVIRONMENT}"
    )
    uvicorn.run(
        "routestops.main:app",
        host=app_settings.HOST,
        port=app_settings.PORT,
        log_level=app_settings.LOG_LEVEL.lower(),
        reload=app_settings.ENVIRONMENT == "development",
    )
