"""
Distance helpers and optional travel-time estimates between chosen stops.

The Haversine distance is local maths used for re-ranking. Real travel times
come from the Google Distance Matrix API and are only ever used to add a
"travel from last stop" tip; every failure here returns None.
"""

from __future__ import annotations

import math
import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

import requests

from app.config import Settings, settings as default_settings
from app.models.itinerary import Transport

logger = logging.getLogger(__name__)

DISTANCE_MATRIX_URL = "https://maps.googleapis.com/maps/api/distancematrix/json"

_EARTH_RADIUS_KM = 6371.0

TRAVEL_MODES = {
    Transport.walk: "walking",
    Transport.bike: "bicycling",
    Transport.drive: "driving",
}


def haversine_km(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Great-circle distance between two points (Haversine formula) in km."""
    phi1, phi2 = math.radians(lat1), math.radians(lat2)
    d_phi = math.radians(lat2 - lat1)
    d_lam = math.radians(lon2 - lon1)
    a = (
        math.sin(d_phi / 2) ** 2
        + math.cos(phi1) * math.cos(phi2) * math.sin(d_lam / 2) ** 2
    )
    return 2 * _EARTH_RADIUS_KM * math.asin(min(1.0, math.sqrt(a)))


def offset_point(lat: float, lng: float, distance_km: float, bearing_deg: float) -> Tuple[float, float]:
    """Point reached by moving distance_km from (lat, lng) along bearing_deg."""
    d = distance_km / _EARTH_RADIUS_KM
    brg = math.radians(bearing_deg)
    phi1, lam1 = math.radians(lat), math.radians(lng)
    phi2 = math.asin(math.sin(phi1) * math.cos(d) + math.cos(phi1) * math.sin(d) * math.cos(brg))
    lam2 = lam1 + math.atan2(
        math.sin(brg) * math.sin(d) * math.cos(phi1),
        math.cos(d) - math.sin(phi1) * math.sin(phi2),
    )
    return math.degrees(phi2), (math.degrees(lam2) + 540) % 360 - 180


@dataclass
class TravelEstimate:
    durationMinutes: int
    durationText: str
    distanceMeters: int
    distanceText: str


class TravelService:
    def __init__(self, config: Optional[Settings] = None, session: Optional[requests.Session] = None):
        self.config = config or default_settings
        self.api_key = self.config.google_maps_api_key
        self.timeout = self.config.travel_timeout_seconds
        self.session = session or requests.Session()

    def estimate(self, origin_place_id: str, dest_place_id: str, transport: Transport) -> Optional[TravelEstimate]:
        """Travel time between two place ids, or None on any failure."""
        if not self.api_key or not origin_place_id or not dest_place_id:
            return None

        params = {
            "origins": f"place_id:{origin_place_id}",
            "destinations": f"place_id:{dest_place_id}",
            "mode": TRAVEL_MODES[transport],
            "key": self.api_key,
        }
        try:
            res = self.session.get(DISTANCE_MATRIX_URL, params=params, timeout=self.timeout)
            if not res.ok:
                logger.warning(f"Distance Matrix returned {res.status_code}")
                return None
            data = res.json()
        except (requests.RequestException, ValueError) as e:
            logger.warning(f"Distance Matrix lookup failed: {e}")
            return None

        try:
            element = data["rows"][0]["elements"][0]
        except (KeyError, IndexError, TypeError):
            return None
        if not isinstance(element, dict) or element.get("status") != "OK":
            return None

        try:
            seconds = float(element["duration"]["value"])
            meters = int(element["distance"]["value"])
        except (KeyError, TypeError, ValueError):
            return None

        minutes = max(1, min(999, round(seconds / 60)))
        return TravelEstimate(
            durationMinutes=minutes,
            durationText=str(element["duration"].get("text") or f"{minutes} mins"),
            distanceMeters=meters,
            distanceText=str(element["distance"].get("text") or ""),
        )

    def estimate_legs(self, place_ids: List[Optional[str]], transport: Transport) -> Dict[int, TravelEstimate]:
        """
        Estimate each consecutive leg in parallel.

        Returns {index of destination stop: estimate} for the legs that resolved.
        """
        pairs = [
            (i, place_ids[i - 1], place_ids[i])
            for i in range(1, len(place_ids))
            if place_ids[i - 1] and place_ids[i] and place_ids[i - 1] != place_ids[i]
        ]
        if not pairs or not self.api_key:
            return {}

        out: Dict[int, TravelEstimate] = {}
        with ThreadPoolExecutor(max_workers=min(len(pairs), 6)) as pool:
            futures = {
                pool.submit(self.estimate, orig, dest, transport): idx
                for idx, orig, dest in pairs
            }
            for future in as_completed(futures):
                idx = futures[future]
                try:
                    result = future.result()
                except Exception:
                    logger.warning(f"Travel lookup failed for stop {idx}, skipping", exc_info=True)
                    continue
                if result:
                    out[idx] = result
        return out


def travel_tip(estimate: TravelEstimate, transport: Transport) -> str:
    how = {Transport.walk: "on foot", Transport.bike: "by bike", Transport.drive: "by car"}[transport]
    distance = f" ({estimate.distanceText})" if estimate.distanceText else ""
    return f"Travel from last stop: about {estimate.durationText} {how}{distance}."
