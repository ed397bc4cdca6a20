from sqlalchemy import Column, String, Date, Text, DateTime, Boolean
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from lifeline.database import Base
from lifeline.models._ids import new_id


class Patient(Base):
    __tablename__ = "patients"

    id = Column(String(36), primary_key=True, default=new_id)
    name = Column(String(200), nullable=False)
    date_of_birth = Column(Date)
    sex = Column(String(20))
    photo_url = Column(String(500))

    # Vault ciphertexts ("nonce:tag:ciphertext"); never plaintext
    blood_type_enc = Column(Text)
    allergies_enc = Column(Text)
    conditions_enc = Column(Text)
    medications_enc = Column(Text)
    donor_preferences_enc = Column(Text)

    is_donor = Column(Boolean, nullable=False, default=False)

    qr_token = Column(String(64), unique=True, index=True, nullable=False, default=new_id)
    qr_generated_at = Column(DateTime(timezone=True), server_default=func.now())

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    contacts = relationship(
        "EmergencyContact",
        back_populates="patient",
        order_by="EmergencyContact.priority",
        cascade="all, delete-orphan",
    )
