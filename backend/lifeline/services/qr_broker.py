"""
QR access broker.

A scan of the patient's QR identifier creates an Access Grant valid for
exactly ACCESS_GRANT_TTL, returns the emergency snapshot, and hands back a
DispatchJob that notifies the patient's contacts. Grants are never extended,
revoked or deleted here; expiry is evaluated lazily by ``verify``.
"""

import base64
import io
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Callable, Optional

import qrcode
import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from lifeline.exceptions import NotFoundError, ValidationError
from lifeline.models.access_grant import AccessGrant
from lifeline.models.contact import EmergencyContact
from lifeline.models.directive import AdvanceDirective
from lifeline.models.facility import Facility
from lifeline.models.patient import Patient
from lifeline.services.alert_dispatcher import ACCESS, AlertDispatcher, DispatchContext, Location
from lifeline.services.audit_service import AuditRecorder
from lifeline.services.dispatch_job import DispatchJob
from lifeline.services.geomatch import GeomatchEngine, is_valid_coordinates
from lifeline.services.profile_store import EncryptedProfileStore
from lifeline.services.vault import generate_secure_token
from lifeline.timeutils import as_utc, utcnow

logger = structlog.get_logger(__name__)

ACCESS_GRANT_TTL = timedelta(minutes=60)
ACCESS_DATA_SCOPE = ["profile", "allergies", "conditions", "medications", "directives", "representatives"]
UNKNOWN_QR_MESSAGE = "Emergency profile not found"


@dataclass
class AccessorInfo:
    name: str
    role: str
    license: Optional[str] = None
    institution_id: Optional[str] = None
    institution_name: Optional[str] = None


@dataclass
class AccessResult:
    access_token: str
    expires_at: datetime
    patient: dict
    medical_info: dict
    directive: dict
    donation: dict
    representatives: list[dict]
    dispatch: DispatchJob = field(repr=False)


@dataclass
class AccessVerification:
    valid: bool
    expires_at: datetime
    accessed_at: datetime
    reason: Optional[str] = None


@dataclass
class QRCodeInfo:
    qr_token: str
    generated_at: Optional[datetime]
    emergency_url: str
    qr_data_url: str


def _empty_directive() -> dict:
    return {
        "has_active_directive": False,
        "accepts_cpr": None,
        "accepts_intubation": None,
        "additional_notes": None,
        "document_url": None,
        "validated_at": None,
    }


def render_qr_data_url(data: str) -> str:
    qr = qrcode.QRCode(
        error_correction=qrcode.constants.ERROR_CORRECT_H,
        box_size=10,
        border=2,
    )
    qr.add_data(data)
    qr.make(fit=True)
    img = qr.make_image(fill_color="#1E40AF", back_color="white")
    buf = io.BytesIO()
    img.save(buf, format="PNG")
    return "data:image/png;base64," + base64.b64encode(buf.getvalue()).decode("ascii")


class QRAccessBroker:
    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        profiles: EncryptedProfileStore,
        geomatch: GeomatchEngine,
        dispatcher: AlertDispatcher,
        audit: AuditRecorder,
        frontend_url: str,
        clock: Callable = utcnow,
    ):
        self.session_factory = session_factory
        self.profiles = profiles
        self.geomatch = geomatch
        self.dispatcher = dispatcher
        self.audit = audit
        self.frontend_url = frontend_url.rstrip("/")
        self.clock = clock

    # ------------------------------------------------------------------
    # QR identifier lifecycle
    # ------------------------------------------------------------------

    async def regenerate(self, patient_id: str) -> str:
        async with self.session_factory() as session:
            patient = await session.get(Patient, patient_id)
            if not patient:
                raise NotFoundError(f"Patient {patient_id} not found")
            new_token = str(uuid.uuid4())
            patient.qr_token = new_token
            patient.qr_generated_at = self.clock()
            await session.commit()

        await self.audit.record(
            "PATIENT", None, "QR_REGENERATED", "qr_token",
            resource_id=patient_id, patient_id=patient_id,
        )
        return new_token

    def emergency_url(self, qr_token: str) -> str:
        return f"{self.frontend_url}/emergency/{qr_token}"

    async def get_qr(self, patient_id: str) -> QRCodeInfo:
        async with self.session_factory() as session:
            patient = await session.get(Patient, patient_id)
            if not patient:
                raise NotFoundError(f"Patient {patient_id} not found")
            token, generated_at = patient.qr_token, as_utc(patient.qr_generated_at)

        url = self.emergency_url(token)
        return QRCodeInfo(
            qr_token=token,
            generated_at=generated_at,
            emergency_url=url,
            qr_data_url=render_qr_data_url(url),
        )

    # ------------------------------------------------------------------
    # Emergency access
    # ------------------------------------------------------------------

    @staticmethod
    def _validate(accessor: AccessorInfo, location: Optional[Location]) -> None:
        if not accessor.name or not accessor.name.strip():
            raise ValidationError("accessor_name is required")
        if not accessor.role or not accessor.role.strip():
            raise ValidationError("accessor_role is required")
        if location is not None and not is_valid_coordinates(location.latitude, location.longitude):
            raise ValidationError("Invalid coordinates")

    async def initiate(
        self,
        qr_identifier: str,
        accessor: AccessorInfo,
        location: Optional[Location] = None,
    ) -> AccessResult:
        self._validate(accessor, location)

        async with self.session_factory() as session:
            result = await session.execute(select(Patient).where(Patient.qr_token == qr_identifier))
            patient = result.scalar_one_or_none()
            if not patient:
                raise NotFoundError(UNKNOWN_QR_MESSAGE)

            medical = self.profiles.decrypt_medical_info(patient)

            institution_name = accessor.institution_name
            if accessor.institution_id:
                institution = await session.get(Facility, accessor.institution_id)
                if not institution:
                    raise ValidationError(f"Unknown institution {accessor.institution_id}")
                institution_name = institution_name or institution.name

            directive_row = await session.scalar(
                select(AdvanceDirective)
                .where(AdvanceDirective.patient_id == patient.id, AdvanceDirective.status == "ACTIVE")
                .order_by(AdvanceDirective.validated_at.desc())
                .limit(1)
            )

            contacts_result = await session.execute(
                select(EmergencyContact)
                .where(EmergencyContact.patient_id == patient.id)
                .order_by(EmergencyContact.priority)
            )
            representatives = [
                {"name": c.name, "phone": c.phone, "relation": c.relation, "priority": c.priority}
                for c in contacts_result.scalars().all()
            ]

            now = self.clock()
            grant = AccessGrant(
                access_token=generate_secure_token(),
                patient_id=patient.id,
                accessor_name=accessor.name.strip(),
                accessor_role=accessor.role.strip(),
                accessor_license=accessor.license,
                institution_id=accessor.institution_id,
                institution_name=institution_name,
                latitude=location.latitude if location else None,
                longitude=location.longitude if location else None,
                location_name=location.name if location else None,
                qr_token_used=qr_identifier,
                data_scope=list(ACCESS_DATA_SCOPE),
                accessed_at=now,
                expires_at=now + ACCESS_GRANT_TTL,
            )
            session.add(grant)
            await session.commit()

            patient_id, patient_name = patient.id, patient.name
            snapshot_patient = {
                "name": patient.name,
                "date_of_birth": patient.date_of_birth,
                "sex": patient.sex,
                "photo_url": patient.photo_url,
            }
            is_donor = bool(patient.is_donor)

        await self.audit.record(
            "STAFF", accessor.name, "EMERGENCY_ACCESS", "patient_data",
            resource_id=patient_id,
            patient_id=patient_id,
            metadata={
                "access_grant_id": grant.id,
                "accessor_role": accessor.role,
                "institution_name": institution_name,
                "location": location.name if location else None,
            },
        )

        if directive_row:
            directive = {
                "has_active_directive": True,
                "accepts_cpr": directive_row.accepts_cpr,
                "accepts_intubation": directive_row.accepts_intubation,
                "additional_notes": directive_row.additional_notes,
                "document_url": directive_row.document_url,
                "validated_at": as_utc(directive_row.validated_at),
            }
        else:
            directive = _empty_directive()

        job = DispatchJob(
            f"access-notify-{grant.id}",
            lambda: self._notify_access(patient_id, patient_name, accessor.name, location, medical.conditions),
        )

        logger.info("emergency_access_granted", patient_id=patient_id, grant_id=grant.id, accessor_role=accessor.role)

        return AccessResult(
            access_token=grant.access_token,
            expires_at=as_utc(grant.expires_at),
            patient=snapshot_patient,
            medical_info={
                "blood_type": medical.blood_type,
                "allergies": medical.allergies,
                "conditions": medical.conditions,
                "medications": medical.medications,
            },
            directive=directive,
            donation={"is_donor": is_donor},
            representatives=representatives,
            dispatch=job,
        )

    async def _notify_access(self, patient_id, patient_name, accessor_name, location, conditions):
        facilities = []
        if location is not None:
            facilities = await self.geomatch.for_patient(location.latitude, location.longitude, conditions)

        context = DispatchContext(
            patient_name=patient_name,
            accessor_name=accessor_name,
            facilities=facilities,
        )
        return await self.dispatcher.notify_all(patient_id, ACCESS, location, context)

    async def verify(self, access_token: str, now: Optional[datetime] = None) -> AccessVerification:
        async with self.session_factory() as session:
            result = await session.execute(select(AccessGrant).where(AccessGrant.access_token == access_token))
            grant = result.scalar_one_or_none()
            if not grant:
                raise NotFoundError("Access token not recognised")

        now = as_utc(now or self.clock())
        expires_at = as_utc(grant.expires_at)
        valid = now < expires_at
        return AccessVerification(
            valid=valid,
            expires_at=expires_at,
            accessed_at=as_utc(grant.accessed_at),
            reason=None if valid else "expired",
        )

    async def access_history(self, patient_id: str) -> list[AccessGrant]:
        async with self.session_factory() as session:
            result = await session.execute(
                select(AccessGrant)
                .where(AccessGrant.patient_id == patient_id)
                .order_by(AccessGrant.accessed_at.desc())
            )
            return list(result.scalars().all())
