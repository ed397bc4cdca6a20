from sqlalchemy import Column, String, Text, DateTime, Boolean, ForeignKey
from sqlalchemy.sql import func
from lifeline.database import Base
from lifeline.models._ids import new_id


class AdvanceDirective(Base):
    """Read-only here; directive authoring and notarization live elsewhere."""

    __tablename__ = "advance_directives"

    id = Column(String(36), primary_key=True, default=new_id)
    patient_id = Column(String(36), ForeignKey("patients.id"), nullable=False, index=True)
    status = Column(String(20), nullable=False, default="DRAFT")  # DRAFT | ACTIVE | REVOKED
    accepts_cpr = Column(Boolean)
    accepts_intubation = Column(Boolean)
    additional_notes = Column(Text)
    document_url = Column(String(500))
    validated_at = Column(DateTime(timezone=True))
    created_at = Column(DateTime(timezone=True), server_default=func.now())
