import json
import logging
import math
import re
from typing import Any, Dict, List, Optional

from routestops.agents.base import BaseAgent
from routestops.core.exceptions import UpstreamError
from routestops.models.location import Coordinate
from routestops.models.place import Place
from routestops.models.stops import RecommendedPlace, SegmentPlan, StopsPlan, StopsPlanSegment
from routestops.repositories.ai.gemini import GeminiRepository

logger = logging.getLogger(__name__)

_decoder = json.JSONDecoder()
_LEADING_NUMBER = re.compile(r"^\s*[-+]?(\d+\.?\d*|\.\d+)")

STOPS_TEMPLATE = """You are a travel assistant that helps drivers select the best places to stop along a route.

You will be given the route origin and a list of candidate places found along the route
(searched for: "{query}"), each with metadata such as name, address, rating, userRatingCount,
isOpen, detourTimeMinutes, detourDistanceKm, directionsUri and location.

Your task:
1. Analyze the route and create a comprehensive stops plan:
   - Break the route into logical segments based on travel time
   - For each segment, recommend 1-2 optimal places
   - Ensure recommendations are distributed across the entire route, not clustered in one area

2. Ranking Criteria (order of importance):
   a. Place must be open.
   b. Lowest detour time/distance.
   c. Higher rating.
   d. More user ratings (reliability).
   e. (Optional) Price level if provided.

3. Segment Strategy:
   - Create segments of 30-45 minutes each
   - Distribute recommendations evenly across segments
   - Avoid clustering all recommendations in early segments

4. Provide a structured JSON response in this format, copying name and address exactly
   as given in the candidate list:

{{
  "stopsPlan": [
    {{
      "segment": "0-45 min",
      "recommendedPlaces": [
        {{
          "name": "...",
          "address": "...",
          "rating": 4.2,
          "userRatingCount": 150,
          "detourTimeMinutes": 6.5,
          "detourDistanceKm": 2.3,
          "directionsUri": "...",
          "reasoning": "Shortest detour with good rating and many reviews."
        }}
      ]
    }}
  ]
}}

5. Only output valid JSON. No extra text.

origin location: {origin_latitude}, {origin_longitude}
stops list: {places_json}"""


def _prompt_entry(place: Place) -> Dict[str, Any]:
    entry = {
        "name": place.name,
        "address": place.address,
        "type": place.type,
        "rating": place.rating,
        "userRatingCount": place.user_rating_count,
        "isOpen": place.is_open,
        "priceLevel": place.price_level,
        "detourTimeMinutes": place.detour_minutes,
        "detourDistanceKm": place.detour_distance_km,
        "directionsUri": place.directions_uri,
        "location": place.location.model_dump() if place.location else None,
    }
    return {key: value for key, value in entry.items() if value is not None}


def extract_json_object(text: Optional[str]) -> Optional[Dict[str, Any]]:
    """Return the first brace-delimited JSON object embedded in ``text``."""
    if not text:
        return None
    start = text.find("{")
    while start != -1:
        try:
            value, _ = _decoder.raw_decode(text, start)
        except json.JSONDecodeError:
            start = text.find("{", start + 1)
            continue
        if isinstance(value, dict):
            return value
        start = text.find("{", start + 1)
    return None


def coerce_number(value: Any) -> Optional[float]:
    """Numbers pass through; strings yield their leading number (``"6.5 min"`` -> 6.5)."""
    if isinstance(value, bool):
        return None
    number = None
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        match = _LEADING_NUMBER.match(value)
        if match:
            number = float(match.group(0))
    if number is None or not math.isfinite(number):
        return None
    return number


def reconcile_recommendation(place: Place, raw: Dict[str, Any]) -> RecommendedPlace:
    """Merge an AI recommendation onto the canonical place it names.

    Identity, location, type, opening status and price level always come from
    ``place``; the AI only contributes reasoning and the figures it quotes.
    """
    data = place.model_dump()
    data["reasoning"] = str(raw.get("reasoning") or "")

    minutes = coerce_number(raw.get("detourTimeMinutes"))
    if minutes is not None:
        data["detour_minutes"] = minutes
    kilometers = coerce_number(raw.get("detourDistanceKm"))
    if kilometers is not None:
        data["detour_distance_km"] = kilometers
    rating = coerce_number(raw.get("rating"))
    if rating is not None and 0 <= rating <= 5:
        data["rating"] = rating
    count = coerce_number(raw.get("userRatingCount"))
    if count is not None and count >= 0:
        data["user_rating_count"] = int(count)
    uri = raw.get("directionsUri")
    if isinstance(uri, str) and uri:
        data["directions_uri"] = uri
    return RecommendedPlace(**data)


def parse_curation_response(text: Optional[str], places: List[Place]) -> Optional[StopsPlan]:
    """Parse raw model output into a StopsPlan reconciled against ``places``.

    Returns None when the text holds no usable plan. Recommendations that do
    not match a known place by exact name and address are dropped, as are
    entries of the wrong shape.
    """
    payload = extract_json_object(text)
    if payload is None:
        logger.warning("No valid JSON found in curation response")
        return None
    raw_segments = payload.get("stopsPlan")
    if not isinstance(raw_segments, list):
        logger.warning("Curation response has no stopsPlan list")
        return None

    known: Dict[tuple, Place] = {}
    for place in places:
        known.setdefault((place.name, place.address), place)

    segments = []
    for raw_segment in raw_segments:
        if not isinstance(raw_segment, dict):
            continue
        raw_places = raw_segment.get("recommendedPlaces")
        if not isinstance(raw_places, list):
            continue
        recommended = []
        for raw in raw_places:
            if not isinstance(raw, dict):
                continue
            name, address = raw.get("name"), raw.get("address")
            match = None
            if isinstance(name, str) and isinstance(address, str):
                match = known.get((name, address))
            if match is None:
                logger.warning(
                    f"Dropping recommendation with no matching place: "
                    f"'{name}' at '{address}'"
                )
                continue
            recommended.append(reconcile_recommendation(match, raw))
        if recommended:
            segments.append(StopsPlanSegment(
                label=str(raw_segment.get("segment") or ""),
                recommended_places=recommended,
            ))
    if not segments:
        logger.warning("Curation response has no usable recommendations")
        return None
    return StopsPlan(segments=segments)


def combine_across_segments(per_segment_plans: List[SegmentPlan]) -> StopsPlan:
    """Concatenate per-segment plans in route order, prefixing labels with the segment range."""
    combined = []
    for entry in sorted(per_segment_plans, key=lambda item: item.segment.index):
        if entry.plan is None:
            continue
        for plan_segment in entry.plan.segments:
            label = entry.segment.label
            if plan_segment.label:
                label = f"{entry.segment.label}: {plan_segment.label}"
            combined.append(plan_segment.model_copy(update={"label": label}))
    return StopsPlan(segments=combined)


class StopsAgent(BaseAgent):
    """Ranks places found along a route into a segmented stops plan."""

    def __init__(self, generator: Optional[GeminiRepository] = None):
        self.generator = generator
        super().__init__()

    def _setup_prompt(self):
        self.prompt = self._create_prompt(
            template=STOPS_TEMPLATE,
            input_variables=["query", "origin_latitude", "origin_longitude", "places_json"],
        )

    @property
    def is_available(self) -> bool:
        return self.generator is not None

    def build_prompt(self, places: List[Place], origin: Coordinate, query: str) -> str:
        return self.prompt.format(
            query=query,
            origin_latitude=origin.latitude,
            origin_longitude=origin.longitude,
            places_json=json.dumps([_prompt_entry(place) for place in places], indent=2),
        )

    async def process(self, **kwargs) -> Optional[StopsPlan]:
        return await self.curate(**kwargs)

    async def curate(self, places: List[Place], origin: Coordinate, query: str) -> Optional[StopsPlan]:
        """Ask the model for a stops plan; any failure yields None instead of an error."""
        if not self.is_available:
            return None
        if not places:
            logger.info("No places to curate")
            return None

        prompt = self.build_prompt(places, origin, query)
        try:
            text = await self.generator.generate(prompt)
        except UpstreamError as e:
            logger.warning(f"Curation call failed, omitting stops plan: {e}")
            return None
        except Exception as e:
            logger.warning(f"Unexpected curation failure, omitting stops plan: {e}", exc_info=True)
            return None

        try:
            plan = parse_curation_response(text, places)
        except (TypeError, ValueError) as e:
            logger.warning(f"Malformed curation response, omitting stops plan: {e}", exc_info=True)
            return None
        if plan is not None:
            logger.info(f"Curated stops plan with {len(plan.segments)} segments")
        return plan
