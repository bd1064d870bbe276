from datetime import timedelta

import pytest

from app.models.itinerary import BlockCategory, Budget, Duration, Pace, PlanDay
from app.services.signals import NoteSignals, extract_signals
from app.services.slot_builder import MAX_BOOST_KEYWORDS, QueryBuilder, build_slots, plan_mode
from app.services.time_resolver import ResolvedStart, resolve_start

from fakes import MORNING


def _slots(prefs, now=MORNING):
    signals = extract_signals(prefs.notes, prefs.vibes)
    return build_slots(prefs, signals, resolve_start(prefs.planDay, prefs.startTime, now))


class TestDayMode:

    def test_half_day_skeleton(self, make_prefs):
        slots = _slots(make_prefs(duration=Duration.half_day))
        assert [s.id for s in slots] == ["morning", "thing", "lunch"]
        assert all(s.requireOpenNow is False for s in slots)

    @pytest.mark.parametrize("duration", [Duration.full_day, Duration.two_days])
    def test_full_day_skeleton(self, make_prefs, duration):
        slots = _slots(make_prefs(duration=duration))
        assert [s.id for s in slots] == ["morning", "thing", "lunch", "aft", "dinner", "eve"]

    def test_slots_spaced_by_pace_gap(self, make_prefs):
        slots = _slots(make_prefs(duration=Duration.full_day, pace=Pace.packed))
        gaps = [(b.startAt - a.startAt) for a, b in zip(slots, slots[1:])]
        assert gaps == [timedelta(minutes=90)] * 5
        assert slots[0].startAt == MORNING

    def test_treat_spliced_after_lunch_and_retimed(self, make_prefs):
        slots = _slots(make_prefs(duration=Duration.full_day, vibes=["family"]))
        assert [s.id for s in slots] == ["morning", "thing", "lunch", "treat", "aft", "dinner", "eve"]
        assert slots[3].category == BlockCategory.relax
        assert slots[3].startAt == MORNING + timedelta(minutes=120 * 3)
        assert slots[4].startAt == MORNING + timedelta(minutes=120 * 4)

    def test_ice_cream_treat_on_half_day(self, make_prefs):
        slots = _slots(make_prefs(notes="ice cream after lunch"))
        assert [s.id for s in slots] == ["morning", "thing", "lunch", "treat"]
        assert "ice cream" in slots[3].queries[0]

    def test_no_coffee_morning_never_requests_coffee(self, make_prefs):
        slots = _slots(make_prefs(notes="no coffee"))
        morning = slots[0]
        assert morning.category == BlockCategory.breakfast
        assert all("coffee" not in q for q in morning.queries)
        assert any("breakfast tacos" in q for q in morning.queries)
        assert any(q.startswith("bakery") for q in morning.queries)

    def test_not_a_coffee_drinker_gets_no_coffee_anywhere(self, make_prefs):
        slots = _slots(make_prefs(notes="I'm not a coffee drinker", duration=Duration.full_day))
        assert all("coffee" not in q for s in slots for q in s.queries)

    def test_default_morning_offers_coffee(self, make_prefs):
        assert any("coffee" in q for q in _slots(make_prefs())[0].queries)

    def test_bbq_lunch(self, make_prefs):
        slots = _slots(make_prefs(notes="craving brisket"))
        lunch = next(s for s in slots if s.id == "lunch")
        assert lunch.title == "Lunch (BBQ)"
        assert lunch.queries[0].startswith("best bbq brisket ribs")

    def test_tomorrow_is_day_mode_even_late(self, make_prefs):
        late = MORNING + timedelta(hours=11)
        slots = _slots(make_prefs(planDay=PlanDay.tomorrow), now=late)
        assert slots[0].id == "morning"


class TestNowMode:

    def test_three_open_now_blocks(self, make_prefs):
        slots = _slots(make_prefs(planDay=PlanDay.now))
        assert [s.id for s in slots] == ["now_1", "now_2", "now_3"]
        assert all(s.requireOpenNow for s in slots)
        assert all(2 <= len(s.queries) <= 3 for s in slots)

    def test_food_block_follows_the_clock(self, make_prefs):
        slots = _slots(make_prefs(planDay=PlanDay.now))
        assert slots[1].category == BlockCategory.breakfast
        evening = MORNING + timedelta(hours=9)  # 7 PM
        slots = _slots(make_prefs(planDay=PlanDay.now), now=evening)
        assert slots[1].category == BlockCategory.dinner
        assert slots[2].category == BlockCategory.nightlife

    def test_kid_friendly_evening_avoids_nightlife(self, make_prefs):
        evening = MORNING + timedelta(hours=9)
        slots = _slots(make_prefs(planDay=PlanDay.now, vibes=["family"]), now=evening)
        assert slots[2].category == BlockCategory.relax


class TestNightMode:

    def test_two_open_now_blocks(self, make_prefs):
        late = MORNING + timedelta(hours=11)  # 9 PM
        slots = _slots(make_prefs(), now=late)
        assert [s.id for s in slots] == ["night_1", "night_2"]
        assert all(s.requireOpenNow for s in slots)
        assert slots[1].category == BlockCategory.nightlife

    def test_kid_friendly_night_is_a_walk(self, make_prefs):
        late = MORNING + timedelta(hours=11)
        slots = _slots(make_prefs(vibes=["family"]), now=late)
        assert slots[1].queries[0].startswith("evening walk scenic")

    def test_plan_mode(self, make_prefs):
        assert plan_mode(make_prefs(planDay=PlanDay.now), ResolvedStart(MORNING, True)) == "now"
        assert plan_mode(make_prefs(), ResolvedStart(MORNING, True)) == "night"
        assert plan_mode(make_prefs(planDay=PlanDay.tomorrow), ResolvedStart(MORNING, True)) == "day"


class TestQueryBuilder:

    def test_query_parts(self, make_prefs):
        qb = QueryBuilder(make_prefs(budget=Budget.high), NoteSignals(cuisines=("tacos",), avoidKeywords=("chains",)))
        q = qb.query("best lunch", BlockCategory.lunch, budget=True)
        assert q == "best lunch San Antonio, TX upscale local favorite (tacos) -chains"

    def test_hidden_gem_and_family(self, make_prefs):
        qb = QueryBuilder(make_prefs(), NoteSignals(kidFriendly=True))
        assert qb.query("park", BlockCategory.outdoors) == "park San Antonio, TX family friendly local favorite"
        assert qb.query("park", BlockCategory.outdoors, gem=True) == "park San Antonio, TX hidden gem locals love"

    def test_area_hint_narrows_area(self, make_prefs):
        qb = QueryBuilder(make_prefs(), NoteSignals(areaHints=("pearl",)))
        assert "San Antonio, TX near pearl" in qb.query("cafe", BlockCategory.breakfast)

    def test_boost_depends_on_category(self, make_prefs):
        signals = NoteSignals(cuisines=("tacos",), nightlife=("jazz",), activities=("museum",), includeKeywords=("patio",))
        qb = QueryBuilder(make_prefs(), signals)
        assert qb.boost_terms(BlockCategory.lunch) == ["tacos", "patio"]
        assert qb.boost_terms(BlockCategory.nightlife) == ["jazz", "patio"]
        assert qb.boost_terms(BlockCategory.attraction) == ["museum", "patio"]
        assert qb.boost_terms(BlockCategory.relax) == ["patio"]

    def test_boost_capped(self, make_prefs):
        many = tuple(f"kw{i}" for i in range(12))
        qb = QueryBuilder(make_prefs(), NoteSignals(includeKeywords=many))
        assert len(qb.boost_terms(BlockCategory.relax)) == MAX_BOOST_KEYWORDS

    def test_no_coffee_drops_coffee_negative(self, make_prefs):
        qb = QueryBuilder(make_prefs(), NoteSignals(noCoffee=True, avoidKeywords=("coffee", "crowds")))
        assert qb.negative_suffix() == "-crowds"

    def test_no_coffee_drops_coffee_boost(self, make_prefs):
        signals = NoteSignals(noCoffee=True, includeKeywords=("coffee", "drinker", "coffee drinker"))
        qb = QueryBuilder(make_prefs(), signals)
        assert qb.boost_terms(BlockCategory.breakfast) == ["drinker"]
