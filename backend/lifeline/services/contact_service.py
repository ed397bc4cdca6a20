from typing import Optional

import structlog
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from lifeline.exceptions import NotFoundError, ValidationError
from lifeline.models.contact import EmergencyContact
from lifeline.services.audit_service import AuditRecorder

logger = structlog.get_logger(__name__)

EDITABLE_FIELDS = {
    "name",
    "phone",
    "email",
    "relation",
    "notify_on_emergency",
    "notify_on_access",
    "is_donor_spokesperson",
}


async def _renumber(session: AsyncSession, ordered: list[EmergencyContact]) -> None:
    """
    Write priorities 1..n in list order.

    Priorities are unique per patient, so every row is first parked on a
    negative value and flushed before the final values are written.
    """
    for i, contact in enumerate(ordered, start=1):
        if contact.priority is not None:
            contact.priority = -i
    await session.flush()
    for i, contact in enumerate(ordered, start=1):
        contact.priority = i
    await session.flush()


class ContactService:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession], audit: Optional[AuditRecorder] = None):
        self.session_factory = session_factory
        self.audit = audit

    async def _contacts(self, session: AsyncSession, patient_id: str) -> list[EmergencyContact]:
        result = await session.execute(
            select(EmergencyContact)
            .where(EmergencyContact.patient_id == patient_id)
            .order_by(EmergencyContact.priority)
        )
        return list(result.scalars().all())

    @staticmethod
    def _find(contacts: list[EmergencyContact], contact_id: str) -> EmergencyContact:
        for contact in contacts:
            if contact.id == contact_id:
                return contact
        raise NotFoundError("Contact not found")

    async def list_contacts(self, patient_id: str) -> list[EmergencyContact]:
        async with self.session_factory() as session:
            return await self._contacts(session, patient_id)

    async def get_contact(self, patient_id: str, contact_id: str) -> EmergencyContact:
        async with self.session_factory() as session:
            contact = await session.scalar(
                select(EmergencyContact).where(
                    EmergencyContact.id == contact_id, EmergencyContact.patient_id == patient_id
                )
            )
            if not contact:
                raise NotFoundError("Contact not found")
            return contact

    async def create_contact(self, patient_id: str, priority: Optional[int] = None, **fields) -> EmergencyContact:
        unknown = set(fields) - EDITABLE_FIELDS
        if unknown:
            raise ValidationError(f"Unknown contact fields: {', '.join(sorted(unknown))}")
        if not fields.get("name") or not fields.get("phone") or not fields.get("relation"):
            raise ValidationError("name, phone and relation are required")

        async with self.session_factory() as session:
            contacts = await self._contacts(session, patient_id)
            contact = EmergencyContact(patient_id=patient_id, **fields)

            if priority is None or priority > len(contacts):
                contact.priority = len(contacts) + 1
                session.add(contact)
                await session.flush()
            else:
                if priority < 1:
                    raise ValidationError("priority must be >= 1")
                ordered = list(contacts)
                ordered.insert(priority - 1, contact)
                # contact is still transient, so its slot stays free until add()
                await _renumber(session, ordered)
                session.add(contact)
                await session.flush()

            if contact.is_donor_spokesperson:
                await self._clear_spokesperson(session, patient_id, keep=contact.id)

            await session.commit()
            await session.refresh(contact)

        logger.info("contact_created", patient_id=patient_id, contact_id=contact.id, priority=contact.priority)
        return contact

    async def update_contact(
        self, patient_id: str, contact_id: str, priority: Optional[int] = None, **fields
    ) -> EmergencyContact:
        unknown = set(fields) - EDITABLE_FIELDS
        if unknown:
            raise ValidationError(f"Unknown contact fields: {', '.join(sorted(unknown))}")

        async with self.session_factory() as session:
            contacts = await self._contacts(session, patient_id)
            contact = self._find(contacts, contact_id)

            for attr, value in fields.items():
                if attr in ("name", "phone", "relation") and not value:
                    raise ValidationError(f"{attr} cannot be empty")
                setattr(contact, attr, value)

            if priority is not None and priority != contact.priority:
                if priority < 1:
                    raise ValidationError("priority must be >= 1")
                ordered = [c for c in contacts if c is not contact]
                ordered.insert(min(priority, len(contacts)) - 1, contact)
                await _renumber(session, ordered)

            if fields.get("is_donor_spokesperson"):
                await self._clear_spokesperson(session, patient_id, keep=contact.id)

            await session.commit()
            await session.refresh(contact)
            return contact

    async def delete_contact(self, patient_id: str, contact_id: str) -> bool:
        async with self.session_factory() as session:
            contacts = await self._contacts(session, patient_id)
            contact = self._find(contacts, contact_id)
            await session.delete(contact)
            await session.flush()
            await _renumber(session, [c for c in contacts if c is not contact])
            await session.commit()

        logger.info("contact_deleted", patient_id=patient_id, contact_id=contact_id)
        return True

    async def reorder(self, patient_id: str, ordered_ids: list[str]) -> list[EmergencyContact]:
        """Assign priorities 1..n in the given order, all-or-nothing."""
        async with self.session_factory() as session:
            contacts = await self._contacts(session, patient_id)
            by_id = {c.id: c for c in contacts}
            if len(ordered_ids) != len(by_id) or set(ordered_ids) != set(by_id):
                raise ValidationError(
                    "ordered_ids must list every contact of the patient exactly once",
                    {"expected": len(by_id), "received": len(ordered_ids)},
                )

            await _renumber(session, [by_id[i] for i in ordered_ids])
            await session.commit()

        if self.audit:
            await self.audit.record(
                "PATIENT", None, "CONTACTS_REORDERED", "emergency_contact",
                patient_id=patient_id, metadata={"order": list(ordered_ids)},
            )
        return await self.list_contacts(patient_id)

    async def _clear_spokesperson(self, session: AsyncSession, patient_id: str, keep: str) -> None:
        await session.execute(
            update(EmergencyContact)
            .where(EmergencyContact.patient_id == patient_id, EmergencyContact.id != keep)
            .values(is_donor_spokesperson=False)
            .execution_options(synchronize_session="fetch")
        )

    async def set_donor_spokesperson(self, patient_id: str, contact_id: str) -> EmergencyContact:
        async with self.session_factory() as session:
            contacts = await self._contacts(session, patient_id)
            contact = self._find(contacts, contact_id)
            await self._clear_spokesperson(session, patient_id, keep=contact_id)
            contact.is_donor_spokesperson = True
            await session.commit()
            await session.refresh(contact)
            return contact
