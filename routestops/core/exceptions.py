from typing import Any, List, Optional, Tuple


class RouteStopsError(Exception):
    """Base class for route planning and stop curation errors."""
    pass


class ValidationError(RouteStopsError, ValueError):
    """Caller input is missing or malformed."""
    pass


class ResolutionError(RouteStopsError):
    """An address could not be converted to coordinates."""

    def __init__(self, address: str, message: Optional[str] = None):
        self.address = address
        super().__init__(message or f"Location not found: {address}")


class UpstreamError(RouteStopsError):
    """A provider returned a non-success status or an unusable body."""

    def __init__(self, status: Optional[int], body: Any = None, message: Optional[str] = None):
        self.status = status
        self.body = body
        super().__init__(message or f"Upstream error (status={status}): {body}")


class AggregateUpstreamError(RouteStopsError):
    """Every segment of a segmented search failed."""

    def __init__(self, failures: List[Tuple[int, UpstreamError]]):
        self.failures = failures
        reasons = "; ".join(f"segment {index}: {error}" for index, error in failures)
        super().__init__(f"All {len(failures)} segments failed: {reasons}")
