from fastapi import APIRouter, Depends, HTTPException, status, Response
from pydantic import BaseModel, Field, field_validator
from typing import Optional, Dict, Any, List
import logging
from datetime import datetime

from app.dependencies import get_clock, get_itinerary_service, get_narrative_service
from app.models.itinerary import (
    Budget,
    Duration,
    GeneratedItinerary,
    ItineraryBlock,
    LatLng,
    Pace,
    PlaceCandidate,
    PlanDay,
    PreferenceInput,
    Transport,
)
from app.services.itinerary_service import ItineraryService, ItineraryGenerationError
from app.services.narrative_service import NarrativeService
from app.services.property_service import get_property_config
from app.services.swap import swap_block

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/itinerary", tags=["itinerary"])

MAX_VIBES = 6
MAX_NOTES_CHARS = 280
DEFAULT_PUBLIC_CITY = "San Antonio, TX"


# Request Models
class GenerateItineraryRequest(BaseModel):
    """Request model for itinerary generation: a property slug OR a guest origin"""
    property: Optional[str] = Field(None, max_length=50, description="Property slug (e.g. lamar)")
    origin: Optional[LatLng] = Field(None, description="Guest location for public (non-property) planning")
    city: Optional[str] = Field(None, min_length=2, max_length=100, description="City label when planning from an origin")
    duration: Duration = Duration.half_day
    pace: Pace = Pace.balanced
    transport: Transport = Transport.drive
    budget: Budget = Budget.moderate
    vibes: List[str] = Field(default_factory=list, description="Vibe tags (1-6)")
    notes: Optional[str] = Field(None, description="Free-text guest notes (truncated to 280 chars)")
    planDay: PlanDay = PlanDay.today
    startTime: Optional[str] = Field(None, pattern=r'^([01]\d|2[0-3]):[0-5]\d$', description="Start time (HH:MM)")

    @field_validator('vibes')
    @classmethod
    def clean_vibes(cls, v):
        cleaned = []
        for vibe in v:
            vibe = str(vibe).strip()
            if vibe and vibe not in cleaned:
                cleaned.append(vibe)
        return cleaned[:MAX_VIBES]

    @field_validator('notes')
    @classmethod
    def truncate_notes(cls, v):
        if v is None:
            return v
        return v.strip()[:MAX_NOTES_CHARS] or None

    def to_preferences(self) -> PreferenceInput:
        """Resolve property/origin into planner preferences; ValueError on semantic problems."""
        if not self.vibes:
            raise ValueError("Pick at least one vibe")

        property_slug = None
        if self.property:
            cfg = get_property_config(self.property)
            if not cfg:
                raise ValueError("Unknown property")
            city = cfg.city
            property_slug = cfg.slug
        elif self.origin:
            city = self.city or DEFAULT_PUBLIC_CITY
        else:
            raise ValueError("Either property or origin is required")

        return PreferenceInput(
            city=city,
            propertySlug=property_slug,
            origin=None if property_slug else self.origin,
            duration=self.duration,
            pace=self.pace,
            transport=self.transport,
            budget=self.budget,
            vibes=self.vibes,
            notes=self.notes,
            planDay=self.planDay,
            startTime=self.startTime,
        )


class SwapRequest(BaseModel):
    """Request model for swapping one block's primary"""
    itinerary: GeneratedItinerary
    blockId: str = Field(..., min_length=1)


class NarrateRequest(BaseModel):
    """Request model for a single-block narrative refresh"""
    city: str = Field(..., min_length=2, max_length=100)
    prefs: PreferenceInput
    block: ItineraryBlock
    place: PlaceCandidate


# Response Models
class GenerateItineraryResponse(BaseModel):
    status: str
    itinerary: GeneratedItinerary
    processingTime: float


class SwapResponse(BaseModel):
    status: str
    itinerary: GeneratedItinerary


class NarrateResponse(BaseModel):
    whyThis: str
    tips: List[str]


class ErrorResponse(BaseModel):
    """Error response model"""
    status: str = "error"
    message: str
    details: Optional[Dict[str, Any]] = None


# API Endpoints
@router.post("/generate", response_model=GenerateItineraryResponse, responses={
    400: {"model": ErrorResponse, "description": "Bad Request"},
    503: {"model": ErrorResponse, "description": "No itinerary could be generated"},
    500: {"model": ErrorResponse, "description": "Internal Server Error"}
})
def generate_itinerary(
    request: GenerateItineraryRequest,
    response: Response,
    service: ItineraryService = Depends(get_itinerary_service),
    now: datetime = Depends(get_clock),
):
    """
    Generate a guest itinerary from preferences.

    Plans around a registered property's city, or around the guest's own
    location when `origin` is supplied instead.
    """
    start_time = datetime.now()

    try:
        prefs = request.to_preferences()
        logger.info(f"Planning {prefs.duration.value} itinerary in {prefs.city} (planDay={prefs.planDay.value})")

        itinerary = service.generate_itinerary(prefs, now=now)

        processing_time = (datetime.now() - start_time).total_seconds()
        logger.info(f"Itinerary generated successfully in {processing_time:.2f}s")
        response.headers["X-Processing-Time"] = str(processing_time)

        return GenerateItineraryResponse(
            status="success",
            itinerary=itinerary,
            processingTime=processing_time,
        )

    except ValueError as e:
        logger.error(f"Validation error in itinerary generation: {e}")
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"status": "error", "message": str(e)}
        )
    except ItineraryGenerationError as e:
        logger.error(f"Itinerary generation failed: {e}")
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail={"status": "error", "message": str(e)}
        )
    except Exception as e:
        logger.error(f"Unexpected error in itinerary generation: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={"status": "error", "message": "Internal server error"}
        )


@router.post("/swap", response_model=SwapResponse, responses={
    400: {"model": ErrorResponse, "description": "Bad Request"}
})
def swap_itinerary_block(request: SwapRequest):
    """Replace one block's primary with its next unused alternate. No provider calls."""
    try:
        return SwapResponse(status="success", itinerary=swap_block(request.itinerary, request.blockId))
    except ValueError as e:
        logger.error(f"Swap rejected: {e}")
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"status": "error", "message": str(e)}
        )


@router.post("/narrate", response_model=NarrateResponse)
def narrate_block(
    request: NarrateRequest,
    narrative: NarrativeService = Depends(get_narrative_service),
):
    """Fresh rationale and tips for one block; falls back to defaults, never errors."""
    result = narrative.narrate_block(request.city, request.prefs, request.block, request.place)
    return NarrateResponse(whyThis=result.whyThis, tips=result.tips)
