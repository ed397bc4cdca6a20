from pydantic import BaseModel
from datetime import datetime
from typing import Optional


class QRCodeResponse(BaseModel):
    qr_token: str
    generated_at: Optional[datetime] = None
    emergency_url: str
    qr_data_url: str


class QRRegenerateResponse(BaseModel):
    qr_token: str
    emergency_url: str


class MedicalInfoResponse(BaseModel):
    blood_type: Optional[str] = None
    allergies: list[str] = []
    conditions: list[str] = []
    medications: list[str] = []
    donor_preferences: Optional[dict] = None


class MedicalInfoUpdate(BaseModel):
    blood_type: Optional[str] = None
    allergies: Optional[list[str]] = None
    conditions: Optional[list[str]] = None
    medications: Optional[list[str]] = None
    donor_preferences: Optional[dict] = None
