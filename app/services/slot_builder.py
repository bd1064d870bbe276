"""
Slot template builder.

Given preferences, extracted signals and a resolved start instant, lays out the
ordered time blocks of an itinerary and the search queries used to fill each
one. Three shapes: now-mode, night-mode (late on "today") and day-mode.
"""

import logging
from dataclasses import dataclass, replace
from datetime import datetime, timedelta
from typing import List, Sequence, Tuple

from app.models.itinerary import BlockCategory, Budget, Duration, Pace, PlanDay, PreferenceInput
from app.services.signals import COFFEE_WORDS, NoteSignals
from app.services.time_resolver import DEFAULT_TIMEZONE, ResolvedStart, local_hour

logger = logging.getLogger(__name__)

MAX_BOOST_KEYWORDS = 8

PACE_GAP_MINUTES = {
    Pace.packed: 90,
    Pace.balanced: 120,
    Pace.chill: 150,
}

BUDGET_HINTS = {
    Budget.low: "budget-friendly",
    Budget.moderate: "mid-priced",
    Budget.high: "upscale",
    Budget.splurge: "fine dining",
}

FOOD_CATEGORIES = {BlockCategory.coffee, BlockCategory.breakfast, BlockCategory.lunch, BlockCategory.dinner}


@dataclass(frozen=True)
class SlotTemplate:
    id: str
    title: str
    category: BlockCategory
    queries: Tuple[str, ...]
    startAt: datetime
    requireOpenNow: bool


def gap_minutes(pace: Pace) -> int:
    return PACE_GAP_MINUTES[pace]


class QueryBuilder:
    """Composes search strings: phrase + area + qualifiers + (boost) + -negatives"""

    def __init__(self, prefs: PreferenceInput, signals: NoteSignals):
        self.signals = signals
        self.area = prefs.city
        if signals.areaHints:
            self.area = f"{prefs.city} near {signals.areaHints[0]}"
        self.budget_hint = BUDGET_HINTS[prefs.budget]
        self.local_flavor = "family friendly local favorite" if signals.kidFriendly else "local favorite"
        self.hidden_gem = "hidden gem locals love"

    def boost_terms(self, category: BlockCategory) -> List[str]:
        s = self.signals
        if category in FOOD_CATEGORIES:
            pool = list(s.cuisines)
        elif category == BlockCategory.nightlife:
            pool = list(s.nightlife)
        elif category in (BlockCategory.attraction, BlockCategory.outdoors, BlockCategory.shopping):
            pool = list(s.activities)
        else:
            pool = []
        pool.extend(s.includeKeywords)
        out: List[str] = []
        for term in pool:
            if s.noCoffee and any(w in COFFEE_WORDS for w in term.split(" ")):
                continue
            if term not in out:
                out.append(term)
        return out[:MAX_BOOST_KEYWORDS]

    def negative_suffix(self) -> str:
        words = list(self.signals.avoidKeywords)
        if self.signals.noCoffee:
            # morning templates already drop coffee; keep the word out of every query
            words = [w for w in words if w not in COFFEE_WORDS]
        return " ".join(f"-{w}" for w in words)

    def query(self, phrase: str, category: BlockCategory, *, budget: bool = False, gem: bool = False) -> str:
        parts = [phrase, self.area]
        if budget:
            parts.append(self.budget_hint)
        parts.append(self.hidden_gem if gem else self.local_flavor)
        boost = self.boost_terms(category)
        if boost:
            parts.append(f"({', '.join(boost)})")
        negative = self.negative_suffix()
        if negative:
            parts.append(negative)
        return " ".join(p for p in parts if p)


def _retime(slots: Sequence[SlotTemplate], start: datetime, gap: int) -> List[SlotTemplate]:
    return [replace(s, startAt=start + timedelta(minutes=gap * i)) for i, s in enumerate(slots)]


def _now_mode(prefs: PreferenceInput, signals: NoteSignals, qb: QueryBuilder, start: datetime, gap: int, tz_name: str) -> List[SlotTemplate]:
    hour = local_hour(start, tz_name)
    if hour < 11:
        food_cat, food_phrase = BlockCategory.breakfast, "breakfast open now"
    elif hour < 16:
        food_cat, food_phrase = BlockCategory.lunch, "lunch open now"
    else:
        food_cat, food_phrase = BlockCategory.dinner, "dinner open now"

    do_phrases = [f"{a} open now" for a in signals.activities[:1]] + ["things to do open now", "attractions open now"]
    food_phrases = [f"{c} open now" for c in signals.cuisines[:1]] + [food_phrase, "quick bite open now"]

    if hour >= 18 and not signals.kidFriendly:
        last_cat = BlockCategory.nightlife
        last_phrases = [f"{n} open now" for n in signals.nightlife[:1]] + ["cocktail bar open now", "live music tonight"]
    else:
        last_cat = BlockCategory.relax
        treat = "ice cream open now" if signals.wantsIceCream else "dessert open now"
        last_phrases = [treat, "scenic walk" if signals.kidFriendly else "relaxing spot open now"]
        if not signals.noCoffee and hour < 17:
            last_phrases.append("coffee shop open now")

    def variants(phrases: List[str], category: BlockCategory) -> Tuple[str, ...]:
        out = []
        for i, phrase in enumerate(phrases[:3]):
            q = qb.query(phrase, category, budget=(category in FOOD_CATEGORIES and i == 0), gem=(i % 2 == 1))
            if q not in out:
                out.append(q)
        return tuple(out)

    slots = [
        SlotTemplate("now_1", "Do something (open now)", BlockCategory.attraction,
                     variants(do_phrases, BlockCategory.attraction), start, True),
        SlotTemplate("now_2", "Grab something nearby", food_cat,
                     variants(food_phrases, food_cat), start, True),
        SlotTemplate("now_3", "One more stop", last_cat,
                     variants(last_phrases, last_cat), start, True),
    ]
    return _retime(slots, start, gap)


def _night_mode(signals: NoteSignals, qb: QueryBuilder, start: datetime, gap: int) -> List[SlotTemplate]:
    R, N = BlockCategory.relax, BlockCategory.nightlife
    if signals.wantsIceCream:
        dessert = (
            qb.query("ice cream open late", R),
            qb.query("gelato open late", R, gem=True),
            qb.query("late night dessert", R, gem=True),
        )
        dessert_title = "Ice cream / dessert (open late)"
    else:
        dessert = (
            qb.query("late night dessert", R, gem=True),
            qb.query("late night tacos", R),
            qb.query("open late food", R, gem=True),
        )
        dessert_title = "Night bite / dessert"

    if signals.kidFriendly:
        night = (
            qb.query("evening walk scenic", N),
            qb.query("family friendly evening", N, gem=True),
        )
    else:
        lead = tuple(qb.query(f"{n} open late", N) for n in signals.nightlife[:1])
        night = lead + (
            qb.query("live music tonight", N),
            qb.query("cocktail bar open late", N, gem=True),
            qb.query("nightlife popular", N),
        )

    slots = [
        SlotTemplate("night_1", dessert_title, R, dessert, start, True),
        SlotTemplate("night_2", "Night activity (open now)", N, night, start, True),
    ]
    return _retime(slots, start, gap)


def _day_mode(prefs: PreferenceInput, signals: NoteSignals, qb: QueryBuilder, start: datetime, gap: int) -> List[SlotTemplate]:
    B, A, L = BlockCategory.breakfast, BlockCategory.attraction, BlockCategory.lunch
    S, D, N, R = BlockCategory.shopping, BlockCategory.dinner, BlockCategory.nightlife, BlockCategory.relax

    if signals.noCoffee:
        morning = (
            qb.query("best breakfast", B, budget=True),
            qb.query("breakfast tacos", B, gem=True),
            qb.query("bakery", B, gem=True),
        )
        morning_title = "Breakfast / morning bite"
    else:
        morning = (
            qb.query("best breakfast", B, budget=True),
            qb.query("coffee and pastries", B, gem=True),
            qb.query("cafe", B),
        )
        morning_title = "Breakfast / coffee (your choice)"

    cuisine_lunch = tuple(qb.query(f"best {c} lunch", L) for c in signals.cuisines[:1] if c not in ("bbq", "barbecue"))
    if signals.wantsBbq:
        lunch = (
            qb.query("best bbq brisket ribs", L),
            qb.query("bbq smoked meats", L, gem=True),
        )
        lunch_title = "Lunch (BBQ)"
    else:
        lunch = cuisine_lunch + (
            qb.query("best lunch", L, budget=True),
            qb.query("local lunch", L, gem=True),
        )
        lunch_title = "Lunch"

    attraction = tuple(qb.query(f"best {a}", A) for a in signals.activities[:1]) + (
        qb.query("top attractions", A),
        qb.query("things to do", A, gem=True),
        qb.query("best museums", A),
    )

    half_day = [
        SlotTemplate("morning", morning_title, B, morning, start, False),
        SlotTemplate("thing", "Top thing to do", A, attraction, start, False),
        SlotTemplate("lunch", lunch_title, L, lunch, start, False),
    ]

    dinner_lead = tuple(qb.query(f"best {c} dinner", D, budget=True) for c in signals.cuisines[1:2] or signals.cuisines[:1])
    if signals.kidFriendly:
        evening = (
            qb.query("evening walk scenic", N),
            qb.query("family friendly evening", N, gem=True),
        )
    else:
        evening = tuple(qb.query(n, N, gem=True) for n in signals.nightlife[:1]) + (
            qb.query("cocktail bars", N, gem=True),
            qb.query("live music", N),
        )

    full_extra = [
        SlotTemplate("aft", "Explore a neighborhood / shops", S, (
            qb.query("best neighborhoods to explore", S),
            qb.query("boutiques", S, gem=True),
            qb.query("market square local", S),
        ), start, False),
        SlotTemplate("dinner", "Dinner", D, dinner_lead + (
            qb.query("best dinner", D, budget=True),
            qb.query("local dinner", D, gem=True),
        ), start, False),
        SlotTemplate("eve", "Evening option", N, evening, start, False),
    ]

    slots = half_day if prefs.duration == Duration.half_day else half_day + full_extra

    if signals.kidFriendly or signals.wantsIceCream:
        if signals.wantsIceCream:
            treat_queries = (qb.query("best ice cream", R), qb.query("gelato", R, gem=True))
            treat_title = "Ice cream / treat stop"
        else:
            treat_queries = (qb.query("dessert", R), qb.query("ice cream", R, gem=True))
            treat_title = "Treat stop"
        treat = SlotTemplate("treat", treat_title, R, treat_queries, start, False)
        at = [s.id for s in slots].index("lunch") + 1
        slots = slots[:at] + [treat] + slots[at:]

    # two_days currently shares the full-day skeleton; only its labels carry the weekday.
    return _retime(slots, start, gap)


def plan_mode(prefs: PreferenceInput, resolved: ResolvedStart) -> str:
    """'now', 'night' or 'day'."""
    if prefs.planDay == PlanDay.now:
        return "now"
    if prefs.planDay == PlanDay.today and resolved.nightMode:
        return "night"
    return "day"


def build_slots(
    prefs: PreferenceInput,
    signals: NoteSignals,
    resolved: ResolvedStart,
    tz_name: str = DEFAULT_TIMEZONE,
) -> List[SlotTemplate]:
    gap = gap_minutes(prefs.pace)
    qb = QueryBuilder(prefs, signals)
    mode = plan_mode(prefs, resolved)

    if mode == "now":
        slots = _now_mode(prefs, signals, qb, resolved.start, gap, tz_name)
    elif mode == "night":
        slots = _night_mode(signals, qb, resolved.start, gap)
    else:
        slots = _day_mode(prefs, signals, qb, resolved.start, gap)

    logger.info(f"Built {len(slots)} slots in {mode} mode (gap {gap} min)")
    return slots
