from sqlalchemy import Column, Integer, String, DateTime, JSON
from lifeline.database import Base


class AuditEvent(Base):
    __tablename__ = "audit_events"

    id = Column(Integer, primary_key=True, index=True)
    timestamp = Column(DateTime(timezone=True), nullable=False, index=True)
    actor_type = Column(String(30), nullable=False)  # PATIENT | STAFF | SYSTEM | ADMIN
    actor_name = Column(String(200))
    action = Column(String(60), nullable=False, index=True)
    resource = Column(String(60), nullable=False)
    resource_id = Column(String(64))
    patient_id = Column(String(36), index=True)
    event_metadata = Column("metadata", JSON, default=dict)
