from sqlalchemy import Column, String, Float, DateTime, JSON, ForeignKey
from lifeline.database import Base
from lifeline.models._ids import new_id


class AccessGrant(Base):
    """One row per QR scan. Written once; expiry is checked lazily on read."""

    __tablename__ = "access_grants"

    id = Column(String(36), primary_key=True, default=new_id)
    access_token = Column(String(64), unique=True, index=True, nullable=False)
    patient_id = Column(String(36), ForeignKey("patients.id"), nullable=False, index=True)

    accessor_name = Column(String(200), nullable=False)
    accessor_role = Column(String(100), nullable=False)
    accessor_license = Column(String(100))
    institution_id = Column(String(36), ForeignKey("facilities.id"))
    institution_name = Column(String(300))

    latitude = Column(Float)
    longitude = Column(Float)
    location_name = Column(String(300))

    qr_token_used = Column(String(64), nullable=False)
    data_scope = Column(JSON, default=list)

    accessed_at = Column(DateTime(timezone=True), nullable=False, index=True)
    expires_at = Column(DateTime(timezone=True), nullable=False)
