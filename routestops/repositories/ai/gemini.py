import logging
from typing import Any, Dict

from routestops.core.exceptions import UpstreamError
from routestops.repositories.base import BaseHTTPRepository

logger = logging.getLogger(__name__)


class GeminiRepository(BaseHTTPRepository):
    """Gemini generateContent client returning the raw candidate text."""

    def __init__(
        self,
        api_key: str,
        api_url: str = "https://generativelanguage.googleapis.com/v1beta/models/gemini-1.5-flash:generateContent",
        timeout_seconds: float = 10.0,
        retry_attempts: int = 2,
        temperature: float = 0.1,
        top_k: int = 1,
        top_p: float = 1.0,
        max_output_tokens: int = 2048,
    ):
        super().__init__(api_key, timeout_seconds, retry_attempts)
        self.api_url = api_url
        self.generation_config = {
            "temperature": temperature,
            "topK": top_k,
            "topP": top_p,
            "maxOutputTokens": max_output_tokens,
        }

    async def generate(self, prompt: str) -> str:
        payload: Dict[str, Any] = {
            "contents": [{"parts": [{"text": prompt}]}],
            "generationConfig": self.generation_config,
        }
        logger.info("Calling Gemini API for stop curation")
        data = await self._post_json(self.api_url, payload, self._headers())

        try:
            parts = data["candidates"][0]["content"]["parts"]
            text = "".join(part.get("text", "") for part in parts if isinstance(part, dict))
        except (KeyError, IndexError, TypeError) as e:
            raise UpstreamError(None, data, "Gemini response has no candidate text") from e
        logger.info(f"Gemini response received ({len(text)} characters)")
        return text
