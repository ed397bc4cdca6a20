import enum
from sqlalchemy import Column, String, Float, Text, DateTime, JSON, Enum, ForeignKey
from lifeline.database import Base
from lifeline.models._ids import new_id


class PanicStatus(str, enum.Enum):
    ACTIVE = "ACTIVE"
    CANCELLED = "CANCELLED"
    RESOLVED = "RESOLVED"
    EXPIRED = "EXPIRED"


class PanicAlert(Base):
    __tablename__ = "panic_alerts"

    id = Column(String(36), primary_key=True, default=new_id)
    patient_id = Column(String(36), ForeignKey("patients.id"), nullable=False, index=True)
    latitude = Column(Float, nullable=False)
    longitude = Column(Float, nullable=False)
    accuracy = Column(Float)
    message = Column(Text)
    status = Column(Enum(PanicStatus, name="panic_status"), nullable=False, default=PanicStatus.ACTIVE, index=True)

    # Snapshots taken at creation time
    nearby_facilities = Column(JSON, default=list)
    notifications_sent = Column(JSON, default=list)

    created_at = Column(DateTime(timezone=True), nullable=False, index=True)
    cancelled_at = Column(DateTime(timezone=True))
    resolved_at = Column(DateTime(timezone=True))
    resolved_by = Column(String(200))
    expired_at = Column(DateTime(timezone=True))
