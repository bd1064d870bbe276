from unittest.mock import MagicMock, patch

import pytest
import requests

from app.config import Settings
from app.models.itinerary import Transport
from app.services.travel_service import (
    TravelEstimate,
    TravelService,
    haversine_km,
    offset_point,
    travel_tip,
)


def _matrix(element):
    res = MagicMock()
    res.ok = True
    res.status_code = 200
    res.json.return_value = {"rows": [{"elements": [element]}]}
    return res


OK_ELEMENT = {
    "status": "OK",
    "duration": {"value": 754, "text": "13 mins"},
    "distance": {"value": 4200, "text": "2.6 mi"},
}


@pytest.fixture
def session():
    return MagicMock()


@pytest.fixture
def service(session):
    return TravelService(Settings(google_maps_api_key="k"), session=session)


class TestGeometry:

    def test_haversine(self):
        assert haversine_km(29.4241, -98.4936, 29.4241, -98.4936) == 0
        assert haversine_km(0, 0, 1, 0) == pytest.approx(111.19, abs=0.01)

    @pytest.mark.parametrize("bearing", [0, 45, 90, 180, 315])
    def test_offset_point_distance(self, bearing):
        lat, lng = offset_point(29.4241, -98.4936, 10.0, bearing)
        assert haversine_km(29.4241, -98.4936, lat, lng) == pytest.approx(10.0, abs=0.001)

    def test_offset_north_increases_latitude(self):
        lat, lng = offset_point(29.4241, -98.4936, 5.0, 0)
        assert lat > 29.4241
        assert lng == pytest.approx(-98.4936)


class TestEstimate:

    def test_parses_element(self, service, session):
        session.get.return_value = _matrix(OK_ELEMENT)
        est = service.estimate("A", "B", Transport.bike)
        assert est == TravelEstimate(durationMinutes=13, durationText="13 mins", distanceMeters=4200, distanceText="2.6 mi")

        params = session.get.call_args.kwargs["params"]
        assert params["origins"] == "place_id:A"
        assert params["destinations"] == "place_id:B"
        assert params["mode"] == "bicycling"

    def test_duration_clamped(self, service, session):
        session.get.return_value = _matrix({**OK_ELEMENT, "duration": {"value": 5}})
        assert service.estimate("A", "B", Transport.walk).durationMinutes == 1

    def test_element_not_ok(self, service, session):
        session.get.return_value = _matrix({"status": "ZERO_RESULTS"})
        assert service.estimate("A", "B", Transport.drive) is None

    def test_transport_error(self, service, session):
        session.get.side_effect = requests.Timeout("slow")
        assert service.estimate("A", "B", Transport.drive) is None

    def test_no_key(self, session):
        service = TravelService(Settings(google_maps_api_key=""), session=session)
        assert service.estimate("A", "B", Transport.drive) is None
        session.get.assert_not_called()


class TestLegs:

    def test_only_consecutive_known_pairs(self, service):
        est = TravelEstimate(5, "5 mins", 400, "0.2 mi")
        with patch.object(service, "estimate", return_value=est) as mock_est:
            legs = service.estimate_legs(["A", "B", None, "C", "D"], Transport.walk)

        assert set(legs) == {1, 4}
        called = sorted(c.args[:2] for c in mock_est.call_args_list)
        assert called == [("A", "B"), ("C", "D")]

    def test_failed_legs_are_skipped(self, service):
        def fake(orig, dest, transport):
            if orig == "A":
                raise RuntimeError("boom")
            return TravelEstimate(5, "5 mins", 400, "")

        with patch.object(service, "estimate", side_effect=fake):
            assert set(service.estimate_legs(["A", "B", "C"], Transport.walk)) == {2}


class TestTip:

    def test_tip_text(self):
        est = TravelEstimate(13, "13 mins", 4200, "2.6 mi")
        assert travel_tip(est, Transport.drive) == "Travel from last stop: about 13 mins by car (2.6 mi)."
        assert travel_tip(TravelEstimate(5, "5 mins", 400, ""), Transport.walk) == "Travel from last stop: about 5 mins on foot."
