import logging
from datetime import datetime, timezone
from typing import List, Optional

from app.config import Settings, settings as default_settings
from app.models.itinerary import GeneratedItinerary, ItineraryBlock, PreferenceInput, Transport
from app.services.llm_service import get_llm_service
from app.services.narrative_service import NarrativeService
from app.services.places_service import PlacesService
from app.services.selection import build_itinerary_blocks
from app.services.signals import extract_signals
from app.services.slot_builder import build_slots, plan_mode
from app.services.time_resolver import resolve_start
from app.services.travel_service import TravelService, travel_tip

logger = logging.getLogger(__name__)
logger.setLevel(logging.INFO)

MAX_BLOCK_TIPS = 3


class ItineraryGenerationError(RuntimeError):
    """No usable skeleton could be built (provider missing or every slot empty)."""


def _default_llm_service():
    try:
        return get_llm_service()
    except RuntimeError as e:
        logger.warning(f"Narrative LLM unavailable, default narrative will be used: {e}")
        return None


class ItineraryService:
    """Plans an itinerary from validated preferences: skeleton, narrative, travel tips"""

    def __init__(
        self,
        places: Optional[PlacesService] = None,
        narrative: Optional[NarrativeService] = None,
        travel: Optional[TravelService] = None,
        config: Optional[Settings] = None,
    ):
        self.config = config or default_settings
        self.places = places or PlacesService(self.config)
        self.narrative = narrative or NarrativeService(_default_llm_service(), self.config.narrative_model)
        self.travel = travel
        if self.travel is None and self.config.travel_tips_enabled:
            self.travel = TravelService(self.config)

    def generate_itinerary(self, prefs: PreferenceInput, now: Optional[datetime] = None) -> GeneratedItinerary:
        """
        Generate a new itinerary.

        Args:
            prefs: Fully validated guest preferences
            now: Current instant (timezone-aware); defaults to the wall clock

        Raises:
            ItineraryGenerationError: no slot could be filled
            ValueError: naive `now` or malformed start time
        """
        now = now or datetime.now(timezone.utc)
        tz_name = self.config.timezone

        if not self.places.configured:
            raise ItineraryGenerationError("Place search is not configured (missing GOOGLE_MAPS_API_KEY)")

        resolved = resolve_start(prefs.planDay, prefs.startTime, now, tz_name, self.config.late_hour)
        mode = plan_mode(prefs, resolved)
        signals = extract_signals(prefs.notes, prefs.vibes)
        slots = build_slots(prefs, signals, resolved, tz_name)

        logger.info(
            f"Generating itinerary for {prefs.city}: {prefs.duration.value}, {prefs.pace.value}, "
            f"{prefs.transport.value}, {prefs.budget.value}, mode={mode}"
        )
        blocks = build_itinerary_blocks(prefs, signals, slots, self.places.search_text, now, tz_name)

        if not any(b.primary for b in blocks):
            logger.error(f"No slot produced a primary for {prefs.city}")
            raise ItineraryGenerationError("Couldn't find good matches right now. Try different preferences.")

        narrative = self.narrative.augment(prefs.city, prefs, blocks)
        blocks = self._add_travel_tips(narrative.blocks, prefs.transport)

        itinerary = GeneratedItinerary(
            city=prefs.city,
            generatedAt=now.astimezone(timezone.utc).isoformat(),
            prefs=prefs,
            headline=narrative.headline,
            overview=narrative.overview,
            blocks=blocks,
            generalTips=narrative.generalTips,
            disclaimers=narrative.disclaimers,
            meta={
                "generatedBy": "places+narrative",
                "narrativeSource": narrative.source,
                "nightMode": resolved.nightMode,
                "mode": mode,
                "startAt": resolved.start.isoformat(),
            },
        )
        filled = sum(1 for b in blocks if b.primary)
        logger.info(f"Itinerary ready: {filled}/{len(blocks)} blocks filled, narrative={narrative.source}")
        return itinerary

    def _add_travel_tips(self, blocks: List[ItineraryBlock], transport: Transport) -> List[ItineraryBlock]:
        """Append a 'travel from last stop' tip where an estimate is available."""
        if self.travel is None:
            return blocks

        place_ids = [b.primary.placeId if b.primary else None for b in blocks]
        estimates = self.travel.estimate_legs(place_ids, transport)
        if not estimates:
            return blocks

        out = []
        for i, block in enumerate(blocks):
            estimate = estimates.get(i)
            if estimate is None:
                out.append(block)
                continue
            tips = block.tips[:MAX_BLOCK_TIPS - 1] + [travel_tip(estimate, transport)]
            out.append(block.model_copy(update={"tips": tips}))
        logger.info(f"Added {len(estimates)} travel tip(s)")
        return out


# Singleton instance
_itinerary_service = None


def get_itinerary_service() -> ItineraryService:
    """Get singleton itinerary service instance"""
    global _itinerary_service
    if _itinerary_service is None:
        _itinerary_service = ItineraryService()
    return _itinerary_service
