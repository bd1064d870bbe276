from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel
import logging

from app.dependencies import get_places_service
from app.services.places_service import (
    GeocodeError,
    GeocodeNotFoundError,
    PlacesNotConfiguredError,
    PlacesService,
)

logger = logging.getLogger(__name__)
router = APIRouter(tags=["geocode"])


class GeocodeResponse(BaseModel):
    lat: float
    lng: float
    formatted: str


@router.get("/geocode", response_model=GeocodeResponse)
def geocode(
    q: str = Query("", max_length=200, description="City, ZIP or address"),
    places: PlacesService = Depends(get_places_service),
):
    """Resolve free text to a coordinate for origin-based planning."""
    try:
        result = places.geocode(q)
        return GeocodeResponse(lat=result.lat, lng=result.lng, formatted=result.formatted)
    except ValueError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"status": "error", "message": str(e)}
        )
    except GeocodeNotFoundError as e:
        logger.info(f"Geocode miss for {q!r}")
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail={"status": "error", "message": str(e)}
        )
    except GeocodeError as e:
        logger.error(f"Geocode failed for {q!r}: {e}")
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail={"status": "error", "message": str(e)}
        )
    except PlacesNotConfiguredError as e:
        logger.error(f"Geocode unavailable: {e}")
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail={"status": "error", "message": "Geocoding is not configured"}
        )
