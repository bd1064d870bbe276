from unittest.mock import MagicMock

import pytest
from fastapi.testclient import TestClient

from app.dependencies import get_clock, get_itinerary_service, get_narrative_service, get_places_service
from app.main import app
from app.services.itinerary_service import ItineraryGenerationError, ItineraryService
from app.services.narrative_service import NarrativeService
from app.services.places_service import GeocodeError, GeocodeNotFoundError, GeocodeResult

from fakes import MORNING, FakePlaces
from mock_llm_service import MockLLMService

GENERATE_URL = "/api/v1/itinerary/generate"


@pytest.fixture
def service(test_settings):
    return ItineraryService(
        places=FakePlaces(),
        narrative=NarrativeService(MockLLMService()),
        config=test_settings,
    )


@pytest.fixture
def client(service):
    app.dependency_overrides[get_itinerary_service] = lambda: service
    app.dependency_overrides[get_narrative_service] = lambda: service.narrative
    app.dependency_overrides[get_clock] = lambda: MORNING
    yield TestClient(app)
    app.dependency_overrides.clear()


def _body(**overrides):
    body = {
        "property": "lamar",
        "duration": "half_day",
        "pace": "balanced",
        "transport": "walk",
        "budget": "$$",
        "vibes": ["food", "history"],
        "notes": "no coffee",
    }
    body.update(overrides)
    return body


class TestHealth:

    def test_health(self, client):
        res = client.get("/health")
        assert res.status_code == 200
        assert res.json()["status"] == "ok"

    def test_root(self, client):
        assert client.get("/").json()["health_url"] == "/health"


class TestGenerate:

    def test_property_flow(self, client):
        res = client.post(GENERATE_URL, json=_body())
        assert res.status_code == 200

        data = res.json()
        assert data["status"] == "success"
        itinerary = data["itinerary"]
        assert itinerary["city"] == "San Antonio, TX"
        assert itinerary["prefs"]["propertySlug"] == "lamar"
        assert [b["id"] for b in itinerary["blocks"]] == ["morning", "thing", "lunch"]
        assert itinerary["generatedAt"].startswith("2026-10-19T15:00:00")
        assert "X-Processing-Time" in res.headers

    def test_origin_flow(self, client, service):
        body = _body(property=None, origin={"lat": 29.42, "lng": -98.49}, city="Austin, TX")
        res = client.post(GENERATE_URL, json=body)
        assert res.status_code == 200
        assert res.json()["itinerary"]["prefs"]["origin"] == {"lat": 29.42, "lng": -98.49}
        assert {c["bias"].key.split("_")[0] for c in service.places.calls} == {"origin"}

    def test_notes_truncated_and_vibes_capped(self, client):
        body = _body(notes="x" * 400, vibes=["a", "b", "c", "d", "e", "f", "g", "a"])
        prefs = client.post(GENERATE_URL, json=body).json()["itinerary"]["prefs"]
        assert len(prefs["notes"]) == 280
        assert prefs["vibes"] == ["a", "b", "c", "d", "e", "f"]

    @pytest.mark.parametrize("overrides, message", [
        ({"property": "ritz"}, "Unknown property"),
        ({"property": None}, "Either property or origin is required"),
        ({"vibes": []}, "Pick at least one vibe"),
    ])
    def test_semantic_errors_are_400(self, client, overrides, message):
        res = client.post(GENERATE_URL, json=_body(**overrides))
        assert res.status_code == 400
        assert res.json()["detail"] == {"status": "error", "message": message}

    @pytest.mark.parametrize("overrides", [
        {"budget": "$$$$$"},
        {"duration": "week"},
        {"planDay": "yesterday"},
        {"startTime": "9am"},
        {"origin": {"lat": 123, "lng": 0}, "property": None},
    ])
    def test_invalid_enums_are_422(self, client, overrides):
        assert client.post(GENERATE_URL, json=_body(**overrides)).status_code == 422

    def test_empty_skeleton_is_503(self, client, service):
        service.places.empty = True
        res = client.post(GENERATE_URL, json=_body())
        assert res.status_code == 503
        assert res.json()["detail"]["status"] == "error"

    def test_unexpected_error_is_500(self, client):
        broken = MagicMock()
        broken.generate_itinerary.side_effect = KeyError("boom")
        app.dependency_overrides[get_itinerary_service] = lambda: broken
        res = client.post(GENERATE_URL, json=_body())
        assert res.status_code == 500
        assert res.json()["detail"]["message"] == "Internal server error"

    def test_clock_is_injected(self, client, service):
        service.generate_itinerary = MagicMock(side_effect=ItineraryGenerationError("none"))
        client.post(GENERATE_URL, json=_body())
        assert service.generate_itinerary.call_args.kwargs["now"] == MORNING


class TestSwap:

    def test_swap(self, client, itinerary):
        res = client.post("/api/v1/itinerary/swap", json={
            "itinerary": itinerary.model_dump(mode="json"),
            "blockId": "morning",
        })
        assert res.status_code == 200
        block = res.json()["itinerary"]["blocks"][0]
        assert block["primary"]["placeId"] == "b"
        assert block["alternates"][-1]["placeId"] == "a"

    def test_unknown_block_is_400(self, client, itinerary):
        res = client.post("/api/v1/itinerary/swap", json={
            "itinerary": itinerary.model_dump(mode="json"),
            "blockId": "nope",
        })
        assert res.status_code == 400


class TestNarrate:

    def _body(self, itinerary):
        block = itinerary.blocks[0]
        return {
            "city": itinerary.city,
            "prefs": itinerary.prefs.model_dump(mode="json"),
            "block": block.model_dump(mode="json"),
            "place": block.alternates[0].model_dump(mode="json"),
        }

    def test_narrate(self, client, itinerary):
        res = client.post("/api/v1/itinerary/narrate", json=self._body(itinerary))
        assert res.status_code == 200
        assert res.json() == {"whyThis": "Place b is a strong pick.", "tips": ["Ask for the patio."]}

    def test_narrate_failure_is_default_not_error(self, client, itinerary):
        app.dependency_overrides[get_narrative_service] = lambda: NarrativeService(MockLLMService(mode="fail"))
        res = client.post("/api/v1/itinerary/narrate", json=self._body(itinerary))
        assert res.status_code == 200
        assert res.json()["tips"] == []


class TestGeocode:

    @pytest.fixture
    def places(self, client):
        places = MagicMock()
        app.dependency_overrides[get_places_service] = lambda: places
        return places

    def test_success(self, client, places):
        places.geocode.return_value = GeocodeResult(lat=29.42, lng=-98.49, formatted="San Antonio, TX 78205")
        res = client.get("/api/v1/geocode", params={"q": "78205"})
        assert res.status_code == 200
        assert res.json() == {"lat": 29.42, "lng": -98.49, "formatted": "San Antonio, TX 78205"}
        places.geocode.assert_called_once_with("78205")

    @pytest.mark.parametrize("error, code", [
        (ValueError("Missing query"), 400),
        (GeocodeNotFoundError("No results found."), 404),
        (GeocodeError("upstream"), 502),
    ])
    def test_errors(self, client, places, error, code):
        places.geocode.side_effect = error
        assert client.get("/api/v1/geocode", params={"q": "x"}).status_code == code
