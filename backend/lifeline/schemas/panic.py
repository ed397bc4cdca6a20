from pydantic import BaseModel, Field
from datetime import datetime
from typing import Any, Optional
from lifeline.models.panic_alert import PanicStatus


class PanicActivateRequest(BaseModel):
    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)
    accuracy: Optional[float] = Field(default=None, ge=0)
    message: Optional[str] = Field(default=None, max_length=500)


class FacilitySnapshot(BaseModel):
    id: str
    name: str
    distance: float
    match_score: Optional[int] = None


class ContactNotification(BaseModel):
    contact_id: str
    name: str
    phone: str
    email: Optional[str] = None
    sms_status: str
    email_status: str
    sms_simulated: bool = False
    email_simulated: bool = False
    error: Optional[str] = None


class PanicActivateResponse(BaseModel):
    alert_id: str
    status: PanicStatus
    facilities: list[FacilitySnapshot]
    contacts_notified: list[ContactNotification]
    created_at: datetime


class PanicAlertResponse(BaseModel):
    id: str
    status: PanicStatus
    latitude: float
    longitude: float
    accuracy: Optional[float] = None
    message: Optional[str] = None
    nearby_facilities: list[dict[str, Any]] = []
    notifications_sent: list[dict[str, Any]] = []
    created_at: datetime
    cancelled_at: Optional[datetime] = None
    resolved_at: Optional[datetime] = None
    resolved_by: Optional[str] = None
    expired_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class PanicAlertListResponse(BaseModel):
    alerts: list[PanicAlertResponse]
    total: int


class PanicExpireResponse(BaseModel):
    expired: list[str]
    total: int
