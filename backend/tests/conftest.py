"""
Shared fixtures: in-memory database, recording channels and a controllable clock.

Environment variables are set before any ``lifeline`` import because the
settings object is cached and ``lifeline.main`` reads it at import time.
"""

import os

TEST_KEY = "0123456789abcdef" * 4

os.environ.setdefault("ENCRYPTION_KEY", TEST_KEY)
os.environ.setdefault("JWT_SECRET_KEY", "test-jwt-secret")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")

from datetime import datetime, timedelta, timezone  # noqa: E402
from typing import Optional  # noqa: E402

import pytest  # noqa: E402

from lifeline.config import Settings  # noqa: E402
from lifeline.database import build_engine, build_session_factory, create_all  # noqa: E402
from lifeline.exceptions import ChannelDeliveryError  # noqa: E402
from lifeline.models import EmergencyContact, Facility, Patient  # noqa: E402
from lifeline.models.facility import AttentionLevel  # noqa: E402
from lifeline.services.channels import SENT, ChannelResult  # noqa: E402
from lifeline.services.container import build_container  # noqa: E402
from lifeline.services.event_publisher import InMemoryEventPublisher  # noqa: E402

# Zocalo, Mexico City
ORIGIN = (19.4326, -99.1332)


class FixedClock:
    """Callable clock that only moves when told to."""

    def __init__(self, start: datetime):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


class RecordingSms:
    def __init__(self):
        self.sent: list[tuple[str, str]] = []
        self.fail_for: set[str] = set()

    async def send(self, to: str, body: str) -> ChannelResult:
        if to in self.fail_for:
            raise ChannelDeliveryError("sms", "provider returned 500")
        self.sent.append((to, body))
        return ChannelResult(status=SENT, message_id=f"SM{len(self.sent)}", body=body)


class RecordingEmail:
    def __init__(self):
        self.sent: list[dict] = []
        self.fail_for: set[str] = set()

    async def send(self, to: str, subject: str, html: str, text: str) -> ChannelResult:
        if to in self.fail_for:
            raise RuntimeError("connection reset by peer")
        self.sent.append({"to": to, "subject": subject, "html": html, "text": text})
        return ChannelResult(status=SENT, message_id=f"<{len(self.sent)}@test>", subject=subject, body=html)


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock(datetime(2026, 1, 15, 12, 0, tzinfo=timezone.utc))


@pytest.fixture
def settings() -> Settings:
    return Settings(
        encryption_key=TEST_KEY,
        jwt_secret_key="test-jwt-secret",
        database_url="sqlite+aiosqlite:///:memory:",
        frontend_url="https://lifeline.test",
        panic_resolution_policy="both",
        panic_auto_expire_minutes=240,
        _env_file=None,
    )


@pytest.fixture
async def engine():
    engine = build_engine("sqlite+aiosqlite:///:memory:")
    await create_all(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return build_session_factory(engine)


@pytest.fixture
def sms() -> RecordingSms:
    return RecordingSms()


@pytest.fixture
def email() -> RecordingEmail:
    return RecordingEmail()


@pytest.fixture
def publisher() -> InMemoryEventPublisher:
    return InMemoryEventPublisher()


@pytest.fixture
def services(settings, session_factory, publisher, sms, email, clock):
    return build_container(settings, session_factory, publisher, sms=sms, email=email, clock=clock)


@pytest.fixture
def make_patient(session_factory, services):
    """Factory: persist a patient with encrypted medical data and contacts."""

    async def _make(
        name: str = "Lucia Torres",
        conditions: Optional[list[str]] = None,
        contacts: Optional[list[dict]] = None,
        **medical,
    ) -> Patient:
        async with session_factory() as session:
            patient = Patient(name=name, sex="F", is_donor=True)
            services.profiles.apply_medical_info(
                patient,
                blood_type=medical.get("blood_type", "A+"),
                allergies=medical.get("allergies", ["Penicillin"]),
                conditions=conditions or [],
                medications=medical.get("medications", ["Metformin"]),
            )
            session.add(patient)
            await session.flush()
            for priority, contact in enumerate(contacts or [], start=1):
                session.add(EmergencyContact(patient_id=patient.id, priority=priority, **contact))
            await session.commit()
            return patient

    return _make


def facility_at(name: str, lat: float, lon: float, **kwargs) -> Facility:
    kwargs.setdefault("has_emergency", True)
    kwargs.setdefault("specialties", ["Emergency Medicine"])
    return Facility(name=name, latitude=lat, longitude=lon, **kwargs)


@pytest.fixture
async def facilities(session_factory) -> list[Facility]:
    rows = [
        facility_at(
            "Hospital General", 19.4133, -99.1528,
            specialties=["Emergency Medicine", "Cardiology", "Neurology", "Trauma Surgery"],
            has_icu=True, has_trauma=True, attention_level=AttentionLevel.THIRD,
            emergency_phone="55 2789 2000",
        ),
        facility_at(
            "Clinica Centro", 19.4340, -99.1340,
            specialties=["Emergency Medicine", "Internal Medicine"],
            attention_level=AttentionLevel.FIRST, phone="55 1111 2222",
        ),
        facility_at(
            "Consultorio Familiar", 19.4300, -99.1300,
            has_emergency=False, specialties=["Family Medicine"],
        ),
        facility_at("Hospital Puebla", 19.0414, -98.2063, attention_level=AttentionLevel.THIRD),
        facility_at("Closed Hospital", 19.4330, -99.1335, is_active=False),
    ]
    async with session_factory() as session:
        session.add_all(rows)
        await session.commit()
    return rows


TWO_CONTACTS = [
    {"name": "Ana Torres", "phone": "+525500000001", "email": "ana@example.com", "relation": "Sister"},
    {"name": "Luis Torres", "phone": "+525500000002", "email": None, "relation": "Brother"},
]
