"""
Google Places (New) text-search client.

Used as the candidate source for itinerary slots and as the geocoder for the
public flow. Any non-success response from a candidate search is treated as
"no candidates for this query" so one bad lookup never sinks a whole plan.
"""

import math
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import requests

from app.config import Settings, settings as default_settings
from app.models.itinerary import PlaceCandidate

logger = logging.getLogger(__name__)
logger.setLevel(logging.INFO)

SEARCH_TEXT_URL = "https://places.googleapis.com/v1/places:searchText"
MAX_RADIUS_METERS = 50_000
MAX_RESULTS = 20

CANDIDATE_FIELD_MASK = ",".join([
    "places.id",
    "places.displayName",
    "places.formattedAddress",
    "places.googleMapsUri",
    "places.location",
    "places.rating",
    "places.userRatingCount",
    "places.priceLevel",
    "places.types",
    "places.photos",
    "places.currentOpeningHours",
    "places.regularOpeningHours",
])
GEOCODE_FIELD_MASK = "places.location,places.formattedAddress,places.displayName"

PRICE_LEVELS = {
    "PRICE_LEVEL_FREE": 0,
    "PRICE_LEVEL_INEXPENSIVE": 1,
    "PRICE_LEVEL_MODERATE": 2,
    "PRICE_LEVEL_EXPENSIVE": 3,
    "PRICE_LEVEL_VERY_EXPENSIVE": 4,
}


class PlacesNotConfiguredError(RuntimeError):
    pass


class GeocodeError(RuntimeError):
    pass


class GeocodeNotFoundError(GeocodeError):
    pass


@dataclass
class LocationBias:
    lat: float
    lng: float
    radiusMeters: int
    key: str = ""


@dataclass
class GeocodeResult:
    lat: float
    lng: float
    formatted: str


def clamp(n, lo, hi):
    return max(lo, min(hi, n))


def score_place(rating: Optional[float], user_ratings_total: Optional[int]) -> float:
    """Quality score: rating*10 + log10(reviews+1)*5, rounded to 3 decimals."""
    r = rating if isinstance(rating, (int, float)) else 0
    n = user_ratings_total if isinstance(user_ratings_total, (int, float)) else 0
    return round(r * 10 + math.log10(n + 1) * 5, 3)


def price_level_to_number(level: Optional[str]) -> Optional[int]:
    return PRICE_LEVELS.get(level) if level else None


def _as_dict(value: Any) -> Dict[str, Any]:
    return value if isinstance(value, dict) else {}


def parse_place(raw: Dict[str, Any]) -> Optional[PlaceCandidate]:
    """Map one Places API result into a PlaceCandidate; None if id or name is missing."""
    place_id = str(raw.get("id") or "")
    name = _as_dict(raw.get("displayName")).get("text") or ""
    if not place_id or not name:
        return None

    rating = raw.get("rating") if isinstance(raw.get("rating"), (int, float)) else None
    total = raw.get("userRatingCount") if isinstance(raw.get("userRatingCount"), int) else None
    location = _as_dict(raw.get("location"))
    current_hours = _as_dict(raw.get("currentOpeningHours"))
    regular_hours = _as_dict(raw.get("regularOpeningHours"))
    photos = raw.get("photos") if isinstance(raw.get("photos"), list) else []

    open_now = current_hours.get("openNow")
    weekday = current_hours.get("weekdayDescriptions") or regular_hours.get("weekdayDescriptions")

    return PlaceCandidate(
        placeId=place_id,
        name=str(name),
        address=raw.get("formattedAddress") if isinstance(raw.get("formattedAddress"), str) else None,
        googleMapsUri=raw.get("googleMapsUri") if isinstance(raw.get("googleMapsUri"), str) else None,
        lat=location.get("latitude") if isinstance(location.get("latitude"), (int, float)) else None,
        lng=location.get("longitude") if isinstance(location.get("longitude"), (int, float)) else None,
        rating=rating,
        userRatingsTotal=total,
        priceLevel=price_level_to_number(raw.get("priceLevel")) if isinstance(raw.get("priceLevel"), str) else None,
        types=[str(t) for t in raw["types"]] if isinstance(raw.get("types"), list) else None,
        photoRef=photos[0].get("name") if photos and isinstance(photos[0], dict) else None,
        score=score_place(rating, total),
        openNow=open_now if isinstance(open_now, bool) else None,
        weekdayDescriptions=[str(d) for d in weekday] if isinstance(weekday, list) else None,
    )


class PlacesService:
    """Thin client over places:searchText"""

    def __init__(self, config: Optional[Settings] = None, session: Optional[requests.Session] = None):
        self.config = config or default_settings
        self.api_key = self.config.google_maps_api_key
        self.timeout = self.config.places_timeout_seconds
        self.session = session or requests.Session()

    @property
    def configured(self) -> bool:
        return bool(self.api_key)

    def _post(self, body: Dict[str, Any], field_mask: str) -> requests.Response:
        if not self.api_key:
            raise PlacesNotConfiguredError("Missing GOOGLE_MAPS_API_KEY")
        return self.session.post(
            SEARCH_TEXT_URL,
            json=body,
            headers={
                "Content-Type": "application/json",
                "X-Goog-Api-Key": self.api_key,
                "X-Goog-FieldMask": field_mask,
            },
            timeout=self.timeout,
        )

    def search_text(
        self,
        text_query: str,
        location_bias: Optional[LocationBias] = None,
        min_rating: float = 0.0,
        max_results: int = 10,
    ) -> List[PlaceCandidate]:
        """
        Run one text search and return rated candidates sorted by score (desc).

        Returns [] on any transport error or non-2xx response.
        """
        body: Dict[str, Any] = {
            "textQuery": text_query,
            "maxResultCount": clamp(int(max_results), 1, MAX_RESULTS),
        }
        if location_bias:
            body["locationBias"] = {
                "circle": {
                    "center": {"latitude": location_bias.lat, "longitude": location_bias.lng},
                    "radius": clamp(location_bias.radiusMeters, 0, MAX_RADIUS_METERS),
                }
            }

        try:
            res = self._post(body, CANDIDATE_FIELD_MASK)
        except requests.RequestException as e:
            logger.warning(f"Places search failed for {text_query[:80]!r}: {e}")
            return []

        if not res.ok:
            logger.warning(f"Places search returned {res.status_code} for {text_query[:80]!r}: {res.text[:300]}")
            return []

        try:
            payload = res.json()
        except ValueError:
            logger.warning(f"Places search returned non-JSON body for {text_query[:80]!r}")
            return []

        raw = payload.get("places") if isinstance(payload, dict) else None
        entries = raw if isinstance(raw, list) else []
        candidates = [c for c in (parse_place(p) for p in entries if isinstance(p, dict)) if c]
        rated = [c for c in candidates if c.rating is not None and c.rating >= min_rating]
        rated.sort(key=lambda c: c.score, reverse=True)
        logger.info(f"Places search {text_query[:60]!r} -> {len(rated)}/{len(candidates)} candidates")
        return rated

    def geocode(self, query: str) -> GeocodeResult:
        """Resolve free text (city, ZIP, address) to a coordinate."""
        q = (query or "").strip()
        if not q:
            raise ValueError("Missing query")

        try:
            res = self._post({"textQuery": q, "regionCode": "US", "languageCode": "en"}, GEOCODE_FIELD_MASK)
        except requests.RequestException as e:
            logger.error(f"Geocode request failed for {q!r}: {e}")
            raise GeocodeError(f"Geocode failed: {e}")

        try:
            payload = res.json()
        except ValueError:
            payload = {}

        if not res.ok:
            message = _as_dict(payload.get("error")).get("message") if isinstance(payload, dict) else None
            raise GeocodeError(message or f"Places search failed ({res.status_code})")

        places = payload.get("places") if isinstance(payload, dict) else None
        first = _as_dict(places[0]) if isinstance(places, list) and places else {}
        loc = _as_dict(first.get("location"))
        lat, lng = loc.get("latitude"), loc.get("longitude")
        if not isinstance(lat, (int, float)) or not isinstance(lng, (int, float)):
            raise GeocodeNotFoundError("No results found. Try a ZIP or City, State.")

        formatted = first.get("formattedAddress") or _as_dict(first.get("displayName")).get("text") or q
        return GeocodeResult(lat=lat, lng=lng, formatted=str(formatted))
