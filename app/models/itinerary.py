from enum import Enum
from pydantic import BaseModel, Field, field_validator
from typing import Optional, Dict, Any, List


# ---------------------------
# Enums
# ---------------------------

class Duration(str, Enum):
    half_day = "half_day"
    full_day = "full_day"
    two_days = "two_days"


class Pace(str, Enum):
    chill = "chill"
    balanced = "balanced"
    packed = "packed"


class Transport(str, Enum):
    walk = "walk"
    drive = "drive"
    bike = "bike"


class Budget(str, Enum):
    low = "$"
    moderate = "$$"
    high = "$$$"
    splurge = "$$$$"


class PlanDay(str, Enum):
    today = "today"
    tomorrow = "tomorrow"
    now = "now"


class BlockCategory(str, Enum):
    coffee = "coffee"
    breakfast = "breakfast"
    lunch = "lunch"
    dinner = "dinner"
    attraction = "attraction"
    shopping = "shopping"
    outdoors = "outdoors"
    nightlife = "nightlife"
    relax = "relax"


# ---------------------------
# Core Models
# ---------------------------

class LatLng(BaseModel):
    lat: float = Field(..., ge=-90, le=90)
    lng: float = Field(..., ge=-180, le=180)


class PreferenceInput(BaseModel):
    """Fully validated guest preferences; every enum is resolved before planning."""
    city: str
    propertySlug: Optional[str] = None
    origin: Optional[LatLng] = None  # public mode: plan around the guest's location
    duration: Duration
    pace: Pace
    transport: Transport
    budget: Budget
    vibes: List[str] = []
    notes: Optional[str] = None
    planDay: PlanDay = PlanDay.today
    startTime: Optional[str] = Field(None, pattern=r'^([01]\d|2[0-3]):[0-5]\d$', description="Civil start time (HH:MM)")

    @field_validator('notes')
    @classmethod
    def clamp_notes(cls, v):
        if v is None:
            return v
        v = v.strip()[:280]
        return v or None


class PlaceCandidate(BaseModel):
    placeId: str
    name: str
    address: Optional[str] = None
    googleMapsUri: Optional[str] = None
    lat: Optional[float] = None
    lng: Optional[float] = None
    rating: Optional[float] = None
    userRatingsTotal: Optional[int] = None
    priceLevel: Optional[int] = None  # 0-4
    types: Optional[List[str]] = None
    photoRef: Optional[str] = None
    score: float = 0.0
    openNow: Optional[bool] = None
    weekdayDescriptions: Optional[List[str]] = None


class ItineraryBlock(BaseModel):
    id: str
    timeLabel: str
    title: str
    category: BlockCategory
    primary: Optional[PlaceCandidate] = None
    alternates: List[PlaceCandidate] = []
    whyThis: str = ""
    tips: List[str] = []


class GeneratedItinerary(BaseModel):
    version: int = 1
    city: str
    generatedAt: str
    prefs: PreferenceInput
    headline: str
    overview: str
    blocks: List[ItineraryBlock] = []
    generalTips: List[str] = []
    disclaimers: List[str] = []
    meta: Optional[Dict[str, Any]] = {}  # {"narrativeSource": "llm" | "fallback", "nightMode": bool}
