"""
Panic alert lifecycle.

    ACTIVE -> CANCELLED   patient cancels
    ACTIVE -> RESOLVED    administrative resolution (policy: manual | both)
    ACTIVE -> EXPIRED     explicit stale sweep (policy: auto_expire | both)

Every successor state is terminal. Transitions are written as guarded
UPDATEs on ``status = ACTIVE`` so two concurrent callers cannot both win.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, Optional

import structlog
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from lifeline.exceptions import NotFoundError, StateConflictError, ValidationError
from lifeline.models.panic_alert import PanicAlert, PanicStatus
from lifeline.models.patient import Patient
from lifeline.services.alert_dispatcher import PANIC, AlertDispatcher, ContactResult, DispatchContext, Location
from lifeline.services.audit_service import AuditRecorder
from lifeline.services.event_publisher import EventPublisher, representative_room
from lifeline.services.geomatch import FacilityMatch, GeomatchEngine, is_valid_coordinates
from lifeline.services.profile_store import EncryptedProfileStore
from lifeline.timeutils import as_utc, utcnow

logger = structlog.get_logger(__name__)

TRANSITIONS = {
    PanicStatus.ACTIVE: {PanicStatus.CANCELLED, PanicStatus.RESOLVED, PanicStatus.EXPIRED},
    PanicStatus.CANCELLED: set(),
    PanicStatus.RESOLVED: set(),
    PanicStatus.EXPIRED: set(),
}

MANUAL_POLICIES = {"manual", "both"}
AUTO_EXPIRE_POLICIES = {"auto_expire", "both"}


def can_transition(current: PanicStatus, target: PanicStatus) -> bool:
    return target in TRANSITIONS[current]


@dataclass
class PanicResult:
    alert_id: str
    status: PanicStatus
    facilities: list[FacilityMatch]
    contact_results: list[ContactResult]
    created_at: datetime


class PanicAlertService:
    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        profiles: EncryptedProfileStore,
        geomatch: GeomatchEngine,
        dispatcher: AlertDispatcher,
        publisher: EventPublisher,
        audit: AuditRecorder,
        resolution_policy: str = "manual",
        auto_expire_after: timedelta = timedelta(minutes=240),
        clock: Callable = utcnow,
    ):
        self.session_factory = session_factory
        self.profiles = profiles
        self.geomatch = geomatch
        self.dispatcher = dispatcher
        self.publisher = publisher
        self.audit = audit
        self.resolution_policy = resolution_policy
        self.auto_expire_after = auto_expire_after
        self.clock = clock

    async def activate(
        self,
        patient_id: str,
        latitude: float,
        longitude: float,
        accuracy: Optional[float] = None,
        message: Optional[str] = None,
    ) -> PanicResult:
        if not is_valid_coordinates(latitude, longitude):
            raise ValidationError("Invalid coordinates")
        if accuracy is not None and accuracy < 0:
            raise ValidationError("accuracy must be non-negative")

        async with self.session_factory() as session:
            patient = await session.get(Patient, patient_id)
            if not patient:
                raise NotFoundError(f"Patient {patient_id} not found")
            patient_name = patient.name
            conditions = self.profiles.decrypt_medical_info(patient).conditions

        facilities = await self.geomatch.for_patient(latitude, longitude, conditions)

        async with self.session_factory() as session:
            alert = PanicAlert(
                patient_id=patient_id,
                latitude=latitude,
                longitude=longitude,
                accuracy=accuracy,
                message=message,
                status=PanicStatus.ACTIVE,
                nearby_facilities=[m.snapshot() for m in facilities],
                created_at=self.clock(),
            )
            session.add(alert)
            await session.commit()
            alert_id, created_at = alert.id, as_utc(alert.created_at)

        contact_results = await self.dispatcher.notify_all(
            patient_id,
            PANIC,
            Location(latitude=latitude, longitude=longitude, accuracy=accuracy),
            DispatchContext(
                patient_name=patient_name,
                facilities=facilities,
                alert_id=alert_id,
                message=message,
            ),
        )

        async with self.session_factory() as session:
            await session.execute(
                update(PanicAlert)
                .where(PanicAlert.id == alert_id)
                .values(notifications_sent=[r.snapshot() for r in contact_results])
            )
            await session.commit()

        await self.audit.record(
            "PATIENT", patient_name, "PANIC_ACTIVATED", "panic_alert",
            resource_id=alert_id,
            patient_id=patient_id,
            metadata={"facilities": len(facilities), "contacts_notified": len(contact_results)},
        )
        logger.warning(
            "panic_alert_activated",
            alert_id=alert_id,
            patient_id=patient_id,
            nearest_facility=facilities[0].name if facilities else None,
        )

        return PanicResult(
            alert_id=alert_id,
            status=PanicStatus.ACTIVE,
            facilities=facilities,
            contact_results=contact_results,
            created_at=created_at,
        )

    async def _transition(self, alert_id: str, target: PanicStatus, values: dict, patient_id: Optional[str] = None) -> PanicAlert:
        async with self.session_factory() as session:
            query = select(PanicAlert).where(PanicAlert.id == alert_id)
            if patient_id is not None:
                query = query.where(PanicAlert.patient_id == patient_id)
            alert = await session.scalar(query)
            if not alert:
                raise NotFoundError("Alert not found")
            if not can_transition(alert.status, target):
                raise StateConflictError(
                    f"Alert is {alert.status.value}, cannot move to {target.value}",
                    {"status": alert.status.value},
                )

            result = await session.execute(
                update(PanicAlert)
                .where(PanicAlert.id == alert_id, PanicAlert.status == PanicStatus.ACTIVE)
                .values(status=target, **values)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                await session.rollback()
                raise StateConflictError("Alert is no longer active")
            await session.commit()
            await session.refresh(alert)
            return alert

    async def cancel(self, alert_id: str, patient_id: str) -> bool:
        now = self.clock()
        await self._transition(alert_id, PanicStatus.CANCELLED, {"cancelled_at": now}, patient_id=patient_id)

        try:
            await self.publisher.publish(
                representative_room(patient_id),
                "panic-cancelled",
                {"alert_id": alert_id, "timestamp": now.isoformat()},
            )
        except Exception:
            logger.exception("realtime_publish_failed", event_name="panic-cancelled", alert_id=alert_id)

        await self.audit.record(
            "PATIENT", None, "PANIC_CANCELLED", "panic_alert",
            resource_id=alert_id, patient_id=patient_id,
        )
        logger.info("panic_alert_cancelled", alert_id=alert_id)
        return True

    async def resolve(self, alert_id: str, resolved_by: str) -> PanicAlert:
        if self.resolution_policy not in MANUAL_POLICIES:
            raise StateConflictError(f"Manual resolution is disabled (policy: {self.resolution_policy})")

        alert = await self._transition(
            alert_id, PanicStatus.RESOLVED, {"resolved_at": self.clock(), "resolved_by": resolved_by}
        )
        await self.audit.record(
            "ADMIN", resolved_by, "PANIC_RESOLVED", "panic_alert",
            resource_id=alert_id, patient_id=alert.patient_id,
        )
        return alert

    async def expire_stale(self, now: Optional[datetime] = None) -> list[str]:
        """Move ACTIVE alerts older than the configured window to EXPIRED."""
        if self.resolution_policy not in AUTO_EXPIRE_POLICIES:
            raise StateConflictError(f"Auto-expiry is disabled (policy: {self.resolution_policy})")

        now = as_utc(now or self.clock())
        cutoff = now - self.auto_expire_after

        async with self.session_factory() as session:
            result = await session.execute(
                select(PanicAlert.id, PanicAlert.patient_id, PanicAlert.created_at)
                .where(PanicAlert.status == PanicStatus.ACTIVE)
            )
            stale = [(row.id, row.patient_id) for row in result if as_utc(row.created_at) <= cutoff]

            expired = []
            for alert_id, _ in stale:
                res = await session.execute(
                    update(PanicAlert)
                    .where(PanicAlert.id == alert_id, PanicAlert.status == PanicStatus.ACTIVE)
                    .values(status=PanicStatus.EXPIRED, expired_at=now)
                    .execution_options(synchronize_session=False)
                )
                if res.rowcount == 1:
                    expired.append(alert_id)
            await session.commit()

        owners = dict(stale)
        for alert_id in expired:
            await self.audit.record(
                "SYSTEM", None, "PANIC_EXPIRED", "panic_alert",
                resource_id=alert_id, patient_id=owners[alert_id],
            )
        if expired:
            logger.info("panic_alerts_expired", count=len(expired))
        return expired

    async def active_alerts(self, patient_id: str) -> list[PanicAlert]:
        async with self.session_factory() as session:
            result = await session.execute(
                select(PanicAlert)
                .where(PanicAlert.patient_id == patient_id, PanicAlert.status == PanicStatus.ACTIVE)
                .order_by(PanicAlert.created_at.desc())
            )
            return list(result.scalars().all())

    async def alert_history(self, patient_id: str, limit: int = 10) -> list[PanicAlert]:
        async with self.session_factory() as session:
            result = await session.execute(
                select(PanicAlert)
                .where(PanicAlert.patient_id == patient_id)
                .order_by(PanicAlert.created_at.desc())
                .limit(limit)
            )
            return list(result.scalars().all())

    async def get_alert(self, alert_id: str, patient_id: str) -> PanicAlert:
        async with self.session_factory() as session:
            alert = await session.scalar(
                select(PanicAlert).where(PanicAlert.id == alert_id, PanicAlert.patient_id == patient_id)
            )
            if not alert:
                raise NotFoundError("Alert not found")
            return alert
