import enum
from sqlalchemy import Column, String, Float, Boolean, JSON, Enum, Text
from lifeline.database import Base
from lifeline.models._ids import new_id


class AttentionLevel(str, enum.Enum):
    FIRST = "FIRST"
    SECOND = "SECOND"
    THIRD = "THIRD"


class Facility(Base):
    """Care facility catalog entry. Maintained externally, read-only here."""

    __tablename__ = "facilities"

    id = Column(String(36), primary_key=True, default=new_id)
    name = Column(String(300), nullable=False)
    type = Column(String(50))
    address = Column(Text)
    city = Column(String(120))
    state = Column(String(120))
    phone = Column(String(40))
    emergency_phone = Column(String(40))

    latitude = Column(Float)
    longitude = Column(Float)

    specialties = Column(JSON, default=list)
    has_emergency = Column(Boolean, nullable=False, default=False)
    has_24_hours = Column(Boolean, nullable=False, default=False)
    has_icu = Column(Boolean, nullable=False, default=False)
    has_trauma = Column(Boolean, nullable=False, default=False)
    attention_level = Column(Enum(AttentionLevel, name="attention_level"))

    is_active = Column(Boolean, nullable=False, default=True)
