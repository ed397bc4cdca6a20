"""
Load a demo facility catalog and one demo patient with encrypted medical data.
Run with: python -m scripts.seed_demo
Run with: python -m scripts.seed_demo --facilities-only  (catalog only)
"""

import argparse
import asyncio
from datetime import date
from sqlalchemy import select, func
from lifeline.config import get_settings
from lifeline.database import build_engine, build_session_factory, create_all
from lifeline.models import AdvanceDirective, EmergencyContact, Facility, Patient
from lifeline.models.facility import AttentionLevel
from lifeline.services.profile_store import EncryptedProfileStore
from lifeline.services.vault import CredentialVault
from lifeline.timeutils import utcnow

FACILITIES = [
    {
        "name": "Hospital General de Mexico",
        "type": "HOSPITAL_PUBLIC",
        "address": "Dr. Balmis 148, Doctores, Cuauhtemoc",
        "city": "Ciudad de Mexico",
        "state": "CDMX",
        "phone": "55 2789 2000",
        "emergency_phone": "55 2789 2000 ext. 1234",
        "latitude": 19.4133,
        "longitude": -99.1528,
        "specialties": ["Emergency Medicine", "Cardiology", "Neurology", "Trauma Surgery", "Internal Medicine"],
        "has_emergency": True,
        "has_24_hours": True,
        "has_icu": True,
        "has_trauma": True,
        "attention_level": AttentionLevel.THIRD,
    },
    {
        "name": "Instituto Nacional de Cardiologia",
        "type": "HOSPITAL_PUBLIC",
        "address": "Juan Badiano 1, Belisario Dominguez Seccion 16, Tlalpan",
        "city": "Ciudad de Mexico",
        "state": "CDMX",
        "phone": "55 5573 2911",
        "latitude": 19.2913,
        "longitude": -99.1557,
        "specialties": ["Emergency Medicine", "Cardiology", "Cardiovascular Surgery", "Interventional Cardiology"],
        "has_emergency": True,
        "has_24_hours": True,
        "has_icu": True,
        "has_trauma": False,
        "attention_level": AttentionLevel.THIRD,
    },
    {
        "name": "Hospital Angeles Roma",
        "type": "HOSPITAL_PRIVATE",
        "address": "Queretaro 58, Roma Norte, Cuauhtemoc",
        "city": "Ciudad de Mexico",
        "state": "CDMX",
        "phone": "55 5574 7711",
        "latitude": 19.4167,
        "longitude": -99.1625,
        "specialties": ["Emergency Medicine", "Internal Medicine", "Pediatrics", "Endocrinology"],
        "has_emergency": True,
        "has_24_hours": True,
        "has_icu": True,
        "has_trauma": False,
        "attention_level": AttentionLevel.SECOND,
    },
    {
        "name": "Clinica de Medicina Familiar Narvarte",
        "type": "CLINIC",
        "address": "Eje 5 Sur 1124, Narvarte Poniente, Benito Juarez",
        "city": "Ciudad de Mexico",
        "state": "CDMX",
        "phone": "55 5639 5822",
        "latitude": 19.3911,
        "longitude": -99.1580,
        "specialties": ["Family Medicine"],
        "has_emergency": False,
        "has_24_hours": False,
        "has_icu": False,
        "has_trauma": False,
        "attention_level": AttentionLevel.FIRST,
    },
]

CONTACTS = [
    {"name": "Maria Elena Garcia Lopez", "phone": "+52 55 9876 5432", "email": "maria.garcia@example.com",
     "relation": "Spouse", "is_donor_spokesperson": True},
    {"name": "Roberto Garcia Martinez", "phone": "+52 55 5555 1234", "email": "roberto.garcia@example.com",
     "relation": "Son", "notify_on_access": False},
    {"name": "Ana Patricia Garcia Martinez", "phone": "+52 55 5555 5678", "email": None,
     "relation": "Daughter", "notify_on_access": False},
]


async def seed_facilities(session_factory):
    async with session_factory() as session:
        count = await session.scalar(select(func.count()).select_from(Facility))
        if count:
            print(f"Facility catalog already has {count} entries, skipping.")
            return
        session.add_all([Facility(**f) for f in FACILITIES])
        await session.commit()
    print(f"Loaded {len(FACILITIES)} facilities.")


async def seed_patient(session_factory, profiles: EncryptedProfileStore):
    async with session_factory() as session:
        patient = Patient(name="Carlos Garcia Hernandez", date_of_birth=date(1965, 3, 14), sex="M", is_donor=True)
        profiles.apply_medical_info(
            patient,
            blood_type="O+",
            allergies=["Penicillin", "Sulfonamides"],
            conditions=["Diabetes", "Hypertension"],
            medications=["Metformin 850mg", "Losartan 50mg"],
            donor_preferences={"organs": ["kidneys", "corneas"], "research": False},
        )
        session.add(patient)
        await session.flush()

        for priority, contact in enumerate(CONTACTS, start=1):
            session.add(EmergencyContact(patient_id=patient.id, priority=priority, **contact))

        session.add(
            AdvanceDirective(
                patient_id=patient.id,
                status="ACTIVE",
                accepts_cpr=False,
                accepts_intubation=False,
                additional_notes="Palliative care only in case of terminal illness.",
                validated_at=utcnow(),
            )
        )
        await session.commit()
        print(f"Demo patient {patient.id} created with QR token {patient.qr_token}")


async def main(facilities_only: bool):
    settings = get_settings()
    engine = build_engine(settings.database_url)
    await create_all(engine)
    session_factory = build_session_factory(engine)

    await seed_facilities(session_factory)
    if not facilities_only:
        profiles = EncryptedProfileStore(session_factory, CredentialVault(settings.encryption_key))
        await seed_patient(session_factory, profiles)

    await engine.dispose()


if __name__ == "__main__":
    parser = argparse.ArgumentParser()
    parser.add_argument("--facilities-only", action="store_true")
    args = parser.parse_args()
    asyncio.run(main(args.facilities_only))
