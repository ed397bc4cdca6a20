from dataclasses import dataclass, field
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from lifeline.exceptions import NotFoundError, ValidationError
from lifeline.models.patient import Patient
from lifeline.services.vault import CredentialVault


@dataclass
class MedicalInfo:
    blood_type: Optional[str] = None
    allergies: list[str] = field(default_factory=list)
    conditions: list[str] = field(default_factory=list)
    medications: list[str] = field(default_factory=list)
    donor_preferences: Optional[dict] = None


_LIST_FIELDS = {
    "allergies": "allergies_enc",
    "conditions": "conditions_enc",
    "medications": "medications_enc",
}


class EncryptedProfileStore:
    """Read/write access to the vault-encrypted medical fields of a patient."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession], vault: CredentialVault):
        self.session_factory = session_factory
        self.vault = vault

    def decrypt_medical_info(self, patient: Patient) -> MedicalInfo:
        # An empty column means "never recorded"; a bad ciphertext raises CryptoError.
        info = MedicalInfo()
        if patient.blood_type_enc:
            info.blood_type = self.vault.decrypt(patient.blood_type_enc)
        for attr, column in _LIST_FIELDS.items():
            value = getattr(patient, column)
            if value:
                setattr(info, attr, list(self.vault.decrypt_json(value)))
        if patient.donor_preferences_enc:
            info.donor_preferences = self.vault.decrypt_json(patient.donor_preferences_enc)
        return info

    async def get_medical_info(self, patient_id: str) -> MedicalInfo:
        async with self.session_factory() as session:
            patient = await session.get(Patient, patient_id)
            if not patient:
                raise NotFoundError(f"Patient {patient_id} not found")
            return self.decrypt_medical_info(patient)

    def apply_medical_info(self, patient: Patient, **fields) -> None:
        """Encrypt the given fields onto the patient row (no commit)."""
        if "blood_type" in fields:
            value = fields.pop("blood_type")
            patient.blood_type_enc = self.vault.encrypt(value) if value is not None else None
        if "donor_preferences" in fields:
            value = fields.pop("donor_preferences")
            patient.donor_preferences_enc = self.vault.encrypt_json(value) if value is not None else None
        for attr in list(fields):
            if attr not in _LIST_FIELDS:
                raise ValidationError(f"Unknown medical field: {attr}")
            setattr(patient, _LIST_FIELDS[attr], self.vault.encrypt_json(list(fields[attr] or [])))

    async def update_medical_info(self, patient_id: str, **fields) -> MedicalInfo:
        async with self.session_factory() as session:
            result = await session.execute(select(Patient).where(Patient.id == patient_id))
            patient = result.scalar_one_or_none()
            if not patient:
                raise NotFoundError(f"Patient {patient_id} not found")
            self.apply_medical_info(patient, **fields)
            await session.commit()
            return self.decrypt_medical_info(patient)
