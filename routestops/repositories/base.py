import asyncio
import json
import logging
from typing import Any, Dict, Optional, Tuple

import aiohttp
from tenacity import AsyncRetrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from routestops.core.exceptions import UpstreamError

logger = logging.getLogger(__name__)

# Connection failures and timeouts are worth another attempt; HTTP error statuses are not.
TRANSIENT_ERRORS = (aiohttp.ClientConnectionError, asyncio.TimeoutError)


class BaseHTTPRepository:
    """Base class for repositories that talk JSON over HTTP to an external provider."""

    def __init__(self, api_key: str, timeout_seconds: float = 10.0, retry_attempts: int = 2):
        self.api_key = api_key
        self.timeout = aiohttp.ClientTimeout(total=timeout_seconds)
        self.retry_attempts = max(1, retry_attempts)

    def _headers(self, field_mask: Optional[str] = None) -> Dict[str, str]:
        headers = {
            "Content-Type": "application/json",
            "X-Goog-Api-Key": self.api_key,
        }
        if field_mask:
            headers["X-Goog-FieldMask"] = field_mask
        return headers

    async def _send(self, url: str, payload: Dict[str, Any], headers: Dict[str, str]) -> Tuple[int, Any]:
        """POST ``payload`` and return the status with the decoded body."""
        async with aiohttp.ClientSession(timeout=self.timeout) as session:
            async with session.post(url, json=payload, headers=headers) as response:
                text = await response.text()
                try:
                    body = json.loads(text) if text else {}
                except json.JSONDecodeError:
                    body = text
                return response.status, body

    async def _post_json(self, url: str, payload: Dict[str, Any], headers: Dict[str, str]) -> Dict[str, Any]:
        """POST with retries on transient failures; raise UpstreamError on anything but a 2xx JSON object."""
        try:
            async for attempt in AsyncRetrying(
                stop=stop_after_attempt(self.retry_attempts),
                wait=wait_exponential(multiplier=0.5, min=0.5, max=4),
                retry=retry_if_exception_type(TRANSIENT_ERRORS),
                reraise=True,
            ):
                with attempt:
                    status, body = await self._send(url, payload, headers)
        except asyncio.TimeoutError as e:
            logger.error(f"Timed out calling {url} after {self.retry_attempts} attempt(s)")
            raise UpstreamError(504, None, f"Timed out calling {url}") from e
        except aiohttp.ClientError as e:
            logger.error(f"Transport error calling {url}: {e}", exc_info=True)
            raise UpstreamError(502, str(e), f"Transport error calling {url}: {e}") from e

        if not 200 <= status < 300:
            logger.error(f"Provider at {url} returned status {status}: {body}")
            raise UpstreamError(status, body)
        if not isinstance(body, dict):
            logger.error(f"Provider at {url} returned a non-object body: {body!r}")
            raise UpstreamError(status, body, f"Unexpected response body from {url}")
        return body
