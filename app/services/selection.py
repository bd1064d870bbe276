"""
Selection engine: turns raw place candidates into one primary + alternates per slot.

Per slot, in order:
  1. pick 1-2 search centers (biases)
  2. gather candidates across queries x biases until enough unique ones exist
  3. rotate deterministically for variety
  4. prefer open-now places when the slot is soon
  5. prefer a place type not used earlier in the plan
  6. re-rank by distance from the previous stop
  7. pick the first unused place id as primary (open-now first when soon)
  8. keep the next few unused candidates as alternates

Every varying input (including the current instant) is passed in, so the same
inputs and the same provider answers always produce the same itinerary.
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, List, Optional, Sequence, Set, Tuple

from app.models.itinerary import Budget, ItineraryBlock, Duration, LatLng, Pace, PlaceCandidate, PreferenceInput, Transport
from app.services.places_service import LocationBias
from app.services.signals import NoteSignals
from app.services.slot_builder import SlotTemplate
from app.services.time_resolver import DEFAULT_TIMEZONE, format_time_label
from app.services.travel_service import haversine_km, offset_point

logger = logging.getLogger(__name__)

# Places API circle radius must be <= 50 km, so wider coverage uses several centers.
NAMED_AREAS: List[LocationBias] = [
    LocationBias(29.4241, -98.4936, 50_000, "downtown"),
    LocationBias(29.6027, -98.6153, 35_000, "rim"),  # La Cantera / The Rim
    LocationBias(29.6499, -98.4730, 35_000, "stone_oak"),
    LocationBias(29.7947, -98.7319, 35_000, "boerne"),
    LocationBias(29.7030, -98.1245, 35_000, "new_braunfels"),
    LocationBias(29.5522, -98.2697, 35_000, "schertz"),
]

# area hint -> named area key
AREA_HINT_BIASES = {
    "downtown": "downtown",
    "pearl": "downtown",
    "southtown": "downtown",
    "king william": "downtown",
    "river walk": "downtown",
    "alamo heights": "downtown",
    "the rim": "rim",
    "la cantera": "rim",
    "stone oak": "stone_oak",
    "boerne": "boerne",
    "new braunfels": "new_braunfels",
    "schertz": "schertz",
}

PREFERRED_RADIUS_KM = {Transport.walk: 3.0, Transport.bike: 8.0, Transport.drive: 25.0}
DISTANCE_PENALTY = {Transport.walk: 2.8, Transport.bike: 1.8, Transport.drive: 0.9}
DISTANCE_GRACE_KM = 0.5

# Secondary point around an explicit origin
ORIGIN_OFFSET_KM = {Transport.walk: 1.5, Transport.bike: 4.0, Transport.drive: 10.0}
ORIGIN_RADIUS_METERS = {Transport.walk: 3_000, Transport.bike: 8_000, Transport.drive: 25_000}

TARGET_CANDIDATES = 12
MAX_RESULTS_PER_QUERY = 16
MIN_POOL = 3
VARIETY_WINDOW = 6
SOON_BEFORE_MINUTES = -30
SOON_AFTER_MINUTES = 180

SearchFn = Callable[..., List[PlaceCandidate]]


def fnv1a_32(text: str) -> int:
    """32-bit FNV-1a over the UTF-8 bytes of text."""
    h = 0x811C9DC5
    for byte in text.encode("utf-8"):
        h ^= byte
        h = (h * 0x01000193) & 0xFFFFFFFF
    return h


def min_rating_for(budget: Budget) -> float:
    return 4.4 if budget == Budget.splurge else 4.2


def preference_signature(prefs: PreferenceInput, slot_id: str, now: datetime) -> str:
    hour_key = now.astimezone(timezone.utc).strftime("%Y-%m-%dT%H")
    origin = f"{prefs.origin.lat:.4f},{prefs.origin.lng:.4f}" if prefs.origin else ""
    return "|".join([
        slot_id,
        prefs.city,
        prefs.duration.value,
        prefs.pace.value,
        prefs.budget.value,
        prefs.transport.value,
        ",".join(prefs.vibes),
        prefs.notes or "",
        prefs.planDay.value,
        prefs.startTime or "",
        origin,
        hour_key,
    ])


def rotate(items: Sequence, offset: int) -> list:
    if not items:
        return list(items)
    o = offset % len(items)
    return list(items[o:]) + list(items[:o])


def dedupe_by_place_id(items: Sequence[PlaceCandidate]) -> List[PlaceCandidate]:
    seen: Set[str] = set()
    out: List[PlaceCandidate] = []
    for it in items:
        if it.placeId in seen:
            continue
        seen.add(it.placeId)
        out.append(it)
    return out


def type_key(p: PlaceCandidate) -> str:
    """Primary place type, used to avoid e.g. bakery -> bakery -> bakery."""
    return str(p.types[0]).lower() if p.types else ""


def is_soon(now: datetime, slot_time: datetime) -> bool:
    diff_min = (slot_time - now).total_seconds() / 60
    return SOON_BEFORE_MINUTES <= diff_min <= SOON_AFTER_MINUTES


def pick_biases(prefs: PreferenceInput, signals: NoteSignals, slot_id: str, now: datetime) -> List[LocationBias]:
    seed = fnv1a_32(preference_signature(prefs, slot_id, now))

    if prefs.origin:
        lat, lng = prefs.origin.lat, prefs.origin.lng
        radius = ORIGIN_RADIUS_METERS[prefs.transport]
        bearing = (seed % 8) * 45
        o_lat, o_lng = offset_point(lat, lng, ORIGIN_OFFSET_KM[prefs.transport], bearing)
        return [
            LocationBias(lat, lng, radius, "origin"),
            LocationBias(o_lat, o_lng, radius, f"origin_{bearing}"),
        ]

    by_key = {b.key: b for b in NAMED_AREAS}
    primary = by_key["downtown"]
    for hint in signals.areaHints:
        key = AREA_HINT_BIASES.get(hint)
        if key and key != "downtown":
            return [primary, by_key[key]]

    outskirts = [b for b in NAMED_AREAS if b.key != "downtown"]
    return [primary, rotate(outskirts, seed % len(outskirts))[0]]


def gather_candidates(
    search: SearchFn,
    queries: Sequence[str],
    biases: Sequence[LocationBias],
    min_rating: float,
) -> List[PlaceCandidate]:
    """
    Query each string against every bias (biases concurrently), merging in order
    until TARGET_CANDIDATES unique places are collected or queries run out.
    """
    candidates: List[PlaceCandidate] = []
    if not biases:
        return candidates

    with ThreadPoolExecutor(max_workers=len(biases)) as pool:
        for q in queries:
            results = pool.map(
                lambda b, q=q: search(q, location_bias=b, min_rating=min_rating, max_results=MAX_RESULTS_PER_QUERY),
                biases,
            )
            for found in results:
                candidates = dedupe_by_place_id(candidates + list(found))
                if len(candidates) >= TARGET_CANDIDATES:
                    return candidates
    return candidates


def variety_rotate(candidates: Sequence[PlaceCandidate], seed: int) -> List[PlaceCandidate]:
    if not candidates:
        return []
    return rotate(candidates, seed % min(len(candidates), VARIETY_WINDOW))


def filter_open_now(candidates: List[PlaceCandidate], required: bool) -> List[PlaceCandidate]:
    """
    Keep only open-now places when required. With fewer than MIN_POOL open,
    fall back to the whole pool with the open ones moved to the front.
    """
    if not required:
        return candidates
    open_now = [p for p in candidates if p.openNow is True]
    if len(open_now) >= MIN_POOL:
        return open_now
    return open_now + [p for p in candidates if p.openNow is not True]


def filter_type_diversity(
    candidates: List[PlaceCandidate],
    used_types: Set[str],
    prefer_open: bool = False,
) -> List[PlaceCandidate]:
    diverse = [p for p in candidates if not type_key(p) or type_key(p) not in used_types]
    if len(diverse) < MIN_POOL:
        return candidates
    if prefer_open and any(p.openNow is True for p in candidates) and not any(p.openNow is True for p in diverse):
        return candidates
    return diverse


def rerank_by_distance(
    candidates: List[PlaceCandidate],
    previous: Optional[LatLng],
    transport: Transport,
) -> List[PlaceCandidate]:
    """
    Within-radius places first, then the rest; inside each bucket sort by
    score - penalty * max(0, km - 0.5). Places without coordinates go last
    unpenalized. Stable for ties.
    """
    if previous is None:
        return candidates

    radius = PREFERRED_RADIUS_KM[transport]
    penalty = DISTANCE_PENALTY[transport]

    def key(p: PlaceCandidate) -> Tuple[int, float]:
        if p.lat is None or p.lng is None:
            return (2, -p.score)
        km = haversine_km(previous.lat, previous.lng, p.lat, p.lng)
        adjusted = p.score - penalty * max(0.0, km - DISTANCE_GRACE_KM)
        return (0 if km <= radius else 1, -adjusted)

    return sorted(candidates, key=key)


@dataclass
class SelectionState:
    """Itinerary-wide bookkeeping carried from slot to slot"""
    usedPlaceIds: Set[str] = field(default_factory=set)
    usedTypes: Set[str] = field(default_factory=set)
    previous: Optional[LatLng] = None


def select_for_slot(
    pool: List[PlaceCandidate],
    state: SelectionState,
    pace: Pace,
    prefer_open: bool = False,
) -> Tuple[Optional[PlaceCandidate], List[PlaceCandidate]]:
    """
    Primary is the first unused place in ranked order; with prefer_open, the
    first unused open-now place wins when there is one.
    """
    unused = [c for c in pool if c.placeId not in state.usedPlaceIds]
    primary = None
    if prefer_open:
        primary = next((c for c in unused if c.openNow is True), None)
    if primary is None:
        primary = unused[0] if unused else None
    if primary:
        state.usedPlaceIds.add(primary.placeId)
        k = type_key(primary)
        if k:
            state.usedTypes.add(k)
        if primary.lat is not None and primary.lng is not None:
            state.previous = LatLng(lat=primary.lat, lng=primary.lng)

    limit = 6 if pace == Pace.packed else 4
    alternates = [
        p for p in pool
        if (primary is None or p.placeId != primary.placeId) and p.placeId not in state.usedPlaceIds
    ][:limit]
    return primary, alternates


def build_itinerary_blocks(
    prefs: PreferenceInput,
    signals: NoteSignals,
    slots: Sequence[SlotTemplate],
    search: SearchFn,
    now: datetime,
    tz_name: str = DEFAULT_TIMEZONE,
) -> List[ItineraryBlock]:
    """Reduce candidates into the itinerary skeleton (no narrative yet)."""
    state = SelectionState()
    min_rating = min_rating_for(prefs.budget)
    blocks: List[ItineraryBlock] = []

    for slot in slots:
        seed = fnv1a_32(preference_signature(prefs, slot.id, now))
        biases = pick_biases(prefs, signals, slot.id, now)

        candidates = gather_candidates(search, slot.queries, biases, min_rating)
        candidates = variety_rotate(candidates, seed)

        want_open = slot.requireOpenNow and is_soon(now, slot.startAt)
        pool = filter_open_now(candidates, want_open)
        pool = filter_type_diversity(pool, state.usedTypes, prefer_open=want_open)
        pool = rerank_by_distance(pool, state.previous, prefs.transport)

        primary, alternates = select_for_slot(pool, state, prefs.pace, prefer_open=want_open)
        if primary is None:
            logger.warning(f"No candidate for slot {slot.id} ({len(candidates)} gathered)")
        else:
            logger.info(f"Slot {slot.id}: {primary.name} + {len(alternates)} alternates")

        blocks.append(ItineraryBlock(
            id=slot.id,
            timeLabel=format_time_label(slot.startAt, tz_name, with_day=prefs.duration == Duration.two_days),
            title=slot.title,
            category=slot.category,
            primary=primary,
            alternates=alternates,
        ))

    return blocks
