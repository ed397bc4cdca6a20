from pydantic import BaseModel
from typing import Optional
from lifeline.models.facility import AttentionLevel


class FacilityResponse(BaseModel):
    id: str
    name: str
    type: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    phone: Optional[str] = None
    emergency_phone: Optional[str] = None
    latitude: float
    longitude: float
    has_emergency: bool
    has_24_hours: bool
    has_icu: bool
    has_trauma: bool
    attention_level: Optional[AttentionLevel] = None
    specialties: Optional[list[str]] = None

    class Config:
        from_attributes = True


class FacilityMatchResponse(BaseModel):
    facility: FacilityResponse
    distance: float
    match_score: Optional[int] = None
    matched_specialties: list[str] = []
    maps_url: str
    directions_url: str


class FacilityListResponse(BaseModel):
    facilities: list[FacilityMatchResponse]
    total: int
    required_specialties: Optional[list[str]] = None


class ConditionListResponse(BaseModel):
    conditions: list[str]
