from sqlalchemy import Column, String, Integer, DateTime, Boolean, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from lifeline.database import Base
from lifeline.models._ids import new_id


class EmergencyContact(Base):
    __tablename__ = "emergency_contacts"
    __table_args__ = (
        UniqueConstraint("patient_id", "priority", name="uq_contact_patient_priority"),
    )

    id = Column(String(36), primary_key=True, default=new_id)
    patient_id = Column(String(36), ForeignKey("patients.id"), nullable=False, index=True)
    name = Column(String(200), nullable=False)
    phone = Column(String(40), nullable=False)
    email = Column(String(200))
    relation = Column(String(80), nullable=False)
    priority = Column(Integer, nullable=False)  # dense 1..n per patient
    notify_on_emergency = Column(Boolean, nullable=False, default=True)
    notify_on_access = Column(Boolean, nullable=False, default=True)
    is_donor_spokesperson = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    patient = relationship("Patient", back_populates="contacts")
