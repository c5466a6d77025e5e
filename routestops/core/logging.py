import logging
from fastapi.logger import logger as fastapi_logger

LOG_FORMAT = "%(asctime)s - %(levelname)s - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Client libraries that log every request at INFO/DEBUG
QUIET_LOGGERS = ("aiohttp.access", "urllib3", "googlemaps")


def setup_logging(level: str = "INFO"):
    """Configure root and FastAPI logging for the route stops service."""
    resolved = logging.getLevelName(str(level).upper())
    if not isinstance(resolved, int):
        resolved = logging.INFO

    logging.basicConfig(level=resolved, format=LOG_FORMAT, datefmt=DATE_FORMAT)

    # Route FastAPI messages through uvicorn's handlers when running under uvicorn
    fastapi_logger.handlers = logging.getLogger("uvicorn").handlers
    fastapi_logger.setLevel(resolved)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(max(resolved, logging.WARNING))
