import logging
from datetime import datetime, timezone

from app.services.itinerary_service import ItineraryService, get_itinerary_service as _get_itinerary_service
from app.services.narrative_service import NarrativeService
from app.services.places_service import PlacesService

logger = logging.getLogger(__name__)
logger.setLevel(logging.INFO)


# ---------------------------
# FastAPI dependencies
# ---------------------------
def get_clock() -> datetime:
    """
    Current instant for planning. Override in tests to pin time:
        app.dependency_overrides[get_clock] = lambda: fixed_instant
    """
    return datetime.now(timezone.utc)


def get_itinerary_service() -> ItineraryService:
    return _get_itinerary_service()


def get_places_service() -> PlacesService:
    return get_itinerary_service().places


def get_narrative_service() -> NarrativeService:
    return get_itinerary_service().narrative
