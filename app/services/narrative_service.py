"""
Narrative augmentation for a finished itinerary skeleton.

The model only receives facts we already hold (name, rating, review count,
price) and is told not to invent anything else. Its prose is still advisory:
every response is shape-checked, and anything missing or malformed is
replaced with safe defaults. Narrative problems never fail a plan.
"""

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

from pydantic import BaseModel, Field, ValidationError

from app.models.itinerary import Duration, ItineraryBlock, PlaceCandidate, PreferenceInput
from app.services.llm_service import LLMConfig, SystemInstructions, parse_json_content

logger = logging.getLogger(__name__)

DEFAULT_WHY_THIS = "Hand-picked based on top ratings and your preferences."
NO_MATCH_WHY_THIS = "No strong match for this block right now. Try changing your preferences or swapping."
DEFAULT_GENERAL_TIPS = [
    "Save each stop in your maps app before you head out.",
    "Build in a little buffer time between stops.",
]
DEFAULT_DISCLAIMERS = [
    "Hours and availability can change. Double-check before you go, especially on holidays.",
]
DURATION_LABELS = {
    Duration.half_day: "half day",
    Duration.full_day: "day",
    Duration.two_days: "two days",
}


class NarrativeBlock(BaseModel):
    id: str
    whyThis: str = Field(..., min_length=1)
    tips: List[str] = Field(default_factory=list, max_length=3)


class NarrativePayload(BaseModel):
    headline: str = Field(..., min_length=1)
    overview: str = Field(..., min_length=1)
    blocks: List[Any]  # validated one by one so a bad entry only defaults itself
    generalTips: List[str] = Field(..., min_length=2, max_length=8)
    disclaimers: List[str] = Field(..., min_length=1, max_length=6)


@dataclass
class Narrative:
    headline: str
    overview: str
    blocks: List[ItineraryBlock]
    generalTips: List[str]
    disclaimers: List[str]
    source: str = "fallback"  # "llm" | "fallback"
    errors: List[str] = field(default_factory=list)


def place_summary(p: Optional[PlaceCandidate]) -> str:
    if not p:
        return "No match found"
    r = f"{p.rating:.1f}" if isinstance(p.rating, (int, float)) else "n/a"
    n = p.userRatingsTotal if isinstance(p.userRatingsTotal, int) else 0
    return f"{p.name} (rating {r}, {n} reviews)"


def price_label(level: Optional[int]) -> str:
    if not isinstance(level, int):
        return ""
    return "$" * min(max(level, 1), 4)


def prefs_subset(prefs: PreferenceInput) -> Dict[str, Any]:
    return {
        "duration": prefs.duration.value,
        "pace": prefs.pace.value,
        "transport": prefs.transport.value,
        "budget": prefs.budget.value,
        "vibes": list(prefs.vibes),
        "notes": prefs.notes or "",
    }


def build_request_data(city: str, prefs: PreferenceInput, blocks: Sequence[ItineraryBlock]) -> Dict[str, Any]:
    """Everything the model is allowed to know about the plan."""
    return {
        "city": city,
        "prefs": prefs_subset(prefs),
        "blocks": [
            {
                "id": b.id,
                "timeLabel": b.timeLabel,
                "title": b.title,
                "category": b.category.value,
                "primary": place_summary(b.primary),
                "alternates": [place_summary(p) for p in b.alternates[:3]],
            }
            for b in blocks
        ],
    }


def _default_why(block: ItineraryBlock) -> str:
    return DEFAULT_WHY_THIS if block.primary else NO_MATCH_WHY_THIS


def fallback_narrative(city: str, prefs: PreferenceInput, blocks: Sequence[ItineraryBlock], error: Optional[str] = None) -> Narrative:
    return Narrative(
        headline=f"Your {DURATION_LABELS[prefs.duration]} in {city}",
        overview="A hand-picked plan built from top-rated local spots that match your vibe, budget and pace.",
        blocks=[b.model_copy(update={"whyThis": _default_why(b), "tips": []}) for b in blocks],
        generalTips=list(DEFAULT_GENERAL_TIPS),
        disclaimers=list(DEFAULT_DISCLAIMERS),
        errors=[error] if error else [],
    )


def merge_narrative(payload: NarrativePayload, blocks: Sequence[ItineraryBlock]) -> Narrative:
    by_id: Dict[str, NarrativeBlock] = {}
    errors: List[str] = []
    for raw in payload.blocks:
        try:
            nb = NarrativeBlock.model_validate(raw)
        except ValidationError as e:
            errors.append(f"block rejected: {e.error_count()} error(s)")
            continue
        by_id.setdefault(nb.id, nb)

    merged = []
    for b in blocks:
        nb = by_id.get(b.id)
        if nb is None:
            merged.append(b.model_copy(update={"whyThis": _default_why(b), "tips": []}))
        else:
            merged.append(b.model_copy(update={"whyThis": nb.whyThis, "tips": list(nb.tips)}))

    return Narrative(
        headline=payload.headline,
        overview=payload.overview,
        blocks=merged,
        generalTips=list(payload.generalTips),
        disclaimers=list(payload.disclaimers),
        source="llm",
        errors=errors,
    )


class NarrativeService:
    def __init__(self, llm_service=None, model: Optional[str] = None):
        self.llm_service = llm_service
        self.model = model

    def _config(self) -> LLMConfig:
        return LLMConfig(model=self.model) if self.model else LLMConfig()

    def augment(self, city: str, prefs: PreferenceInput, blocks: Sequence[ItineraryBlock]) -> Narrative:
        """Headline, overview and per-block rationale; defaults on any failure."""
        if self.llm_service is None:
            logger.warning("No LLM service configured; using default narrative")
            return fallback_narrative(city, prefs, blocks, "llm not configured")

        data = build_request_data(city, prefs, blocks)
        user_message = (
            "Create a concise headline and overview for the itinerary.\n"
            "For each block id, write:\n"
            "- whyThis: 1-2 sentences that explain why it matches the guest's vibe/budget/pace\n"
            "- tips: up to 3 short bullets with practical guidance (parking, best time, what to order)\n"
            "Also provide 2-8 generalTips and 1-6 disclaimers (e.g., hours change, holiday closures).\n\n"
            f"DATA:\n{json.dumps(data)}"
        )

        response = self.llm_service.generate_content(
            user_message=user_message,
            system_instruction=SystemInstructions.itinerary_narrator(city),
            config=self._config(),
        )
        if not response.success:
            logger.warning(f"Narrative call failed, using defaults: {response.error}")
            return fallback_narrative(city, prefs, blocks, response.error)

        try:
            payload = NarrativePayload.model_validate(parse_json_content(response.content))
        except (ValueError, ValidationError) as e:
            logger.warning(f"Narrative response rejected, using defaults: {e}")
            return fallback_narrative(city, prefs, blocks, str(e))

        narrative = merge_narrative(payload, blocks)
        if narrative.errors:
            logger.warning(f"Narrative merged with {len(narrative.errors)} rejected block(s)")
        return narrative

    def narrate_block(
        self,
        city: str,
        prefs: PreferenceInput,
        block: ItineraryBlock,
        place: PlaceCandidate,
    ) -> NarrativeBlock:
        """Fresh whyThis/tips for one block, e.g. after a swap."""
        fallback = NarrativeBlock(id=block.id, whyThis=DEFAULT_WHY_THIS, tips=[])
        if self.llm_service is None:
            return fallback

        data = {
            "city": city,
            "prefs": prefs_subset(prefs),
            "block": {
                "id": block.id,
                "title": block.title,
                "category": block.category.value,
                "timeLabel": block.timeLabel,
            },
            "place": {
                "name": place.name,
                "rating": f"{place.rating:.1f}" if isinstance(place.rating, (int, float)) else "n/a",
                "reviews": f"{place.userRatingsTotal:,}" if isinstance(place.userRatingsTotal, int) else "0",
                "price": price_label(place.priceLevel),
                "address": place.address or "",
            },
        }
        response = self.llm_service.generate_content(
            user_message=f"Generate whyThis + tips for the place in this itinerary block.\n\nDATA:\n{json.dumps(data)}",
            system_instruction=SystemInstructions.block_narrator(city),
            config=self._config(),
        )
        if not response.success:
            logger.warning(f"Block narrative failed for {block.id}: {response.error}")
            return fallback

        try:
            parsed = parse_json_content(response.content)
            if isinstance(parsed, dict):
                parsed = {**parsed, "id": block.id}
            return NarrativeBlock.model_validate(parsed)
        except (ValueError, ValidationError) as e:
            logger.warning(f"Block narrative rejected for {block.id}: {e}")
            return fallback
