from pydantic import BaseModel, Field
from datetime import date, datetime
from typing import Optional


class EmergencyAccessRequest(BaseModel):
    qr_token: str = Field(..., min_length=1)
    accessor_name: str = Field(..., min_length=1)
    accessor_role: str = Field(..., min_length=1)
    accessor_license: Optional[str] = None
    institution_id: Optional[str] = None
    institution_name: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    location_name: Optional[str] = None


class PatientSnapshot(BaseModel):
    name: str
    date_of_birth: Optional[date] = None
    sex: Optional[str] = None
    photo_url: Optional[str] = None


class MedicalSnapshot(BaseModel):
    blood_type: Optional[str] = None
    allergies: list[str] = []
    conditions: list[str] = []
    medications: list[str] = []


class DirectiveSummary(BaseModel):
    has_active_directive: bool
    accepts_cpr: Optional[bool] = None
    accepts_intubation: Optional[bool] = None
    additional_notes: Optional[str] = None
    document_url: Optional[str] = None
    validated_at: Optional[datetime] = None


class RepresentativeSummary(BaseModel):
    name: str
    phone: str
    relation: str
    priority: int


class EmergencyAccessResponse(BaseModel):
    access_token: str
    expires_at: datetime
    patient: PatientSnapshot
    medical_info: MedicalSnapshot
    directive: DirectiveSummary
    donation: dict
    representatives: list[RepresentativeSummary]


class AccessVerificationResponse(BaseModel):
    valid: bool
    expires_at: datetime
    accessed_at: datetime
    reason: Optional[str] = None


class AccessHistoryItem(BaseModel):
    id: str
    accessor_name: str
    accessor_role: str
    accessor_license: Optional[str] = None
    institution_name: Optional[str] = None
    location_name: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    accessed_at: datetime
    expires_at: datetime

    class Config:
        from_attributes = True


class AccessHistoryResponse(BaseModel):
    accesses: list[AccessHistoryItem]
    total: int
