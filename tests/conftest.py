import os
import sys

import pytest

# Project root so `app.*` imports work without installing the package
_root = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if _root not in sys.path:
    sys.path.insert(0, _root)

from app.config import Settings
from app.models.itinerary import (
    BlockCategory,
    Budget,
    Duration,
    GeneratedItinerary,
    ItineraryBlock,
    Pace,
    PlanDay,
    PreferenceInput,
    Transport,
)

from fakes import MORNING, FakePlaces, make_place
from mock_llm_service import MockLLMService


@pytest.fixture
def now():
    return MORNING


@pytest.fixture
def make_prefs():
    def _make(**overrides):
        data = dict(
            city="San Antonio, TX",
            propertySlug="lamar",
            duration=Duration.half_day,
            pace=Pace.balanced,
            transport=Transport.drive,
            budget=Budget.moderate,
            vibes=["food"],
            notes=None,
            planDay=PlanDay.today,
        )
        data.update(overrides)
        return PreferenceInput(**data)
    return _make


@pytest.fixture
def prefs(make_prefs):
    return make_prefs()


@pytest.fixture
def fake_places():
    return FakePlaces()


@pytest.fixture
def mock_llm():
    return MockLLMService()


@pytest.fixture
def test_settings():
    return Settings(
        google_maps_api_key="test-key",
        google_api_key="",
        google_cloud_project="",
        travel_tips_enabled=False,
    )


@pytest.fixture
def itinerary(prefs):
    """Two-block itinerary with alternates, used by swap and API tests."""
    return GeneratedItinerary(
        city=prefs.city,
        generatedAt=MORNING.isoformat(),
        prefs=prefs,
        headline="Your half day in San Antonio, TX",
        overview="A plan.",
        blocks=[
            ItineraryBlock(
                id="morning",
                timeLabel="10:00 AM",
                title="Breakfast",
                category=BlockCategory.breakfast,
                primary=make_place("a"),
                alternates=[make_place("b"), make_place("c"), make_place("d")],
            ),
            ItineraryBlock(
                id="lunch",
                timeLabel="12:00 PM",
                title="Lunch",
                category=BlockCategory.lunch,
                primary=make_place("x"),
                alternates=[make_place("y")],
            ),
        ],
        generalTips=["one", "two"],
        disclaimers=["Hours change."],
    )
