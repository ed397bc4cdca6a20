"""
Alert dispatcher: fans an emergency out to every contact on every channel.

Per contact the SMS and email sends run concurrently, and all contacts run
concurrently with each other. A channel failure is recorded on that contact's
result and never stops the others; ``notify_all`` only returns once every
attempted channel has an outcome.
"""

import asyncio
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Optional

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from lifeline.exceptions import ChannelDeliveryError
from lifeline.models.contact import EmergencyContact
from lifeline.models.notification_log import NotificationLog
from lifeline.services import message_templates as templates
from lifeline.services.channels import FAILED, SKIPPED, ChannelResult, EmailSender, SmsSender
from lifeline.services.event_publisher import EventPublisher, representative_room, user_room
from lifeline.services.geomatch import FacilityMatch
from lifeline.timeutils import utcnow

logger = structlog.get_logger(__name__)

PANIC = templates.PANIC
ACCESS = templates.ACCESS

# (representative channel event, patient session event)
EVENT_NAMES = {
    PANIC: ("panic-alert", "panic-alert-sent"),
    ACCESS: ("qr-access-alert", "qr-access-notification"),
}


@dataclass
class Location:
    latitude: float
    longitude: float
    accuracy: Optional[float] = None
    name: Optional[str] = None


@dataclass
class DispatchContext:
    patient_name: str
    accessor_name: Optional[str] = None
    facilities: list[FacilityMatch] = field(default_factory=list)
    alert_id: Optional[str] = None
    message: Optional[str] = None

    @property
    def nearest_facility(self) -> Optional[str]:
        return self.facilities[0].name if self.facilities else None


@dataclass
class ContactResult:
    contact_id: str
    name: str
    phone: str
    email: Optional[str]
    sms_status: str
    email_status: str
    sms_simulated: bool = False
    email_simulated: bool = False
    error: Optional[str] = None

    def snapshot(self) -> dict:
        """Persisted shape on the panic alert."""
        return {
            "contact_id": self.contact_id,
            "name": self.name,
            "phone": self.phone,
            "sms_status": self.sms_status,
            "email_status": self.email_status,
        }


class AlertDispatcher:
    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        sms: SmsSender,
        email: EmailSender,
        publisher: EventPublisher,
        clock: Callable = utcnow,
    ):
        self.session_factory = session_factory
        self.sms = sms
        self.email = email
        self.publisher = publisher
        self.clock = clock

    async def _load_contacts(self, patient_id: str) -> list[EmergencyContact]:
        async with self.session_factory() as session:
            result = await session.execute(
                select(EmergencyContact)
                .where(
                    EmergencyContact.patient_id == patient_id,
                    EmergencyContact.notify_on_emergency.is_(True),
                )
                .order_by(EmergencyContact.priority)
            )
            return list(result.scalars().all())

    async def _attempt(self, channel: str, send: Awaitable[ChannelResult]) -> ChannelResult:
        try:
            return await send
        except ChannelDeliveryError as e:
            logger.warning("channel_delivery_failed", channel=channel, reason=e.reason)
            return ChannelResult(status=FAILED, error=e.message)
        except Exception as e:
            logger.exception("channel_delivery_error", channel=channel)
            return ChannelResult(status=FAILED, error=f"{channel}: {e}")

    async def _notify_contact(
        self,
        contact: EmergencyContact,
        sms_body: str,
        subject: str,
        html: str,
        text: str,
    ) -> tuple[ContactResult, ChannelResult, Optional[ChannelResult]]:
        sends = [self._attempt("sms", self.sms.send(contact.phone, sms_body))]
        if contact.email:
            sends.append(self._attempt("email", self.email.send(contact.email, subject, html, text)))

        outcomes = await asyncio.gather(*sends)
        sms_result = outcomes[0]
        email_result = outcomes[1] if contact.email else None

        errors = [r.error for r in outcomes if r.error]
        result = ContactResult(
            contact_id=contact.id,
            name=contact.name,
            phone=contact.phone,
            email=contact.email,
            sms_status=sms_result.status,
            email_status=email_result.status if email_result else SKIPPED,
            sms_simulated=sms_result.simulated,
            email_simulated=email_result.simulated if email_result else False,
            error="; ".join(errors) if errors else None,
        )
        return result, sms_result, email_result

    async def notify_all(
        self,
        patient_id: str,
        kind: str,
        location: Optional[Location],
        context: DispatchContext,
    ) -> list[ContactResult]:
        if kind not in EVENT_NAMES:
            raise ValueError(f"Unknown alert kind: {kind}")

        contacts = await self._load_contacts(patient_id)
        sent_at = self.clock()

        sms_body = templates.sms_body(
            kind, context.patient_name, location, context.accessor_name, context.nearest_facility
        )
        subject = templates.email_subject(kind, context.patient_name)
        html = templates.email_html(
            kind, context.patient_name, location, sent_at,
            context.accessor_name, context.nearest_facility, context.facilities,
        )
        text = templates.email_text(
            kind, context.patient_name, location,
            context.accessor_name, context.nearest_facility, context.facilities,
        )

        outcomes = await asyncio.gather(
            *(self._notify_contact(c, sms_body, subject, html, text) for c in contacts)
        )
        results = [result for result, _, _ in outcomes]

        await self._write_logs(patient_id, kind, location, contacts, outcomes, sent_at)
        await self._emit(patient_id, kind, location, context, results, sent_at)

        logger.info(
            "contacts_notified",
            patient_id=patient_id,
            kind=kind,
            contacts=len(results),
            sms_failed=sum(1 for r in results if r.sms_status == FAILED),
            email_failed=sum(1 for r in results if r.email_status == FAILED),
        )
        return results

    async def _write_logs(self, patient_id, kind, location, contacts, outcomes, sent_at) -> None:
        location_data = {"lat": location.latitude, "lng": location.longitude} if location else None
        rows = []
        for contact, (_, sms_result, email_result) in zip(contacts, outcomes):
            channels = [("SMS", contact.phone, sms_result)]
            if email_result is not None:
                channels.append(("EMAIL", contact.email, email_result))
            for channel, recipient, outcome in channels:
                rows.append(
                    NotificationLog(
                        patient_id=patient_id,
                        contact_id=contact.id,
                        kind=kind,
                        channel=channel,
                        recipient=recipient,
                        subject=outcome.subject,
                        body=outcome.body,
                        status=outcome.status,
                        simulated=outcome.simulated,
                        error=outcome.error,
                        details={"message_id": outcome.message_id, "location": location_data},
                        created_at=sent_at,
                    )
                )
        if not rows:
            return
        try:
            async with self.session_factory() as session:
                session.add_all(rows)
                await session.commit()
        except Exception:
            logger.exception("notification_log_write_failed", patient_id=patient_id, rows=len(rows))

    async def _emit(self, patient_id, kind, location, context, results, sent_at) -> None:
        representative_event, user_event = EVENT_NAMES[kind]
        payload = {
            "type": "PANIC_ALERT" if kind == PANIC else "QR_ACCESS_ALERT",
            "patient_id": patient_id,
            "patient_name": context.patient_name,
            "alert_id": context.alert_id,
            "accessor_name": context.accessor_name,
            "message": context.message,
            "location": {
                "latitude": location.latitude,
                "longitude": location.longitude,
                "accuracy": location.accuracy,
                "name": location.name,
            } if location else None,
            "nearest_facility": context.nearest_facility,
            "nearby_facilities": [m.snapshot() for m in context.facilities],
            "contacts_notified": len(results),
            "timestamp": sent_at.isoformat(),
        }

        for room, event in (
            (representative_room(patient_id), representative_event),
            (user_room(patient_id), user_event),
        ):
            try:
                await self.publisher.publish(room, event, payload)
            except Exception:
                logger.exception("realtime_publish_failed", room=room, event_name=event)
