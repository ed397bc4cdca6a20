from pydantic import BaseModel, Field
from datetime import datetime
from typing import Optional


class ContactCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    phone: str = Field(..., min_length=4, max_length=40)
    email: Optional[str] = None
    relation: str = Field(..., min_length=1, max_length=80)
    priority: Optional[int] = Field(default=None, ge=1)
    notify_on_emergency: bool = True
    notify_on_access: bool = True
    is_donor_spokesperson: bool = False


class ContactUpdate(BaseModel):
    name: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    relation: Optional[str] = None
    priority: Optional[int] = Field(default=None, ge=1)
    notify_on_emergency: Optional[bool] = None
    notify_on_access: Optional[bool] = None
    is_donor_spokesperson: Optional[bool] = None


class ContactReorderRequest(BaseModel):
    ordered_ids: list[str]


class ContactResponse(BaseModel):
    id: str
    name: str
    phone: str
    email: Optional[str] = None
    relation: str
    priority: int
    notify_on_emergency: bool
    notify_on_access: bool
    is_donor_spokesperson: bool
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class ContactListResponse(BaseModel):
    contacts: list[ContactResponse]
    total: int
