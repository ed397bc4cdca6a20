"""Tests for the panic alert lifecycle and its resolution policies."""

from datetime import timedelta

import pytest
from sqlalchemy import select

from conftest import ORIGIN, TWO_CONTACTS
from lifeline.exceptions import NotFoundError, StateConflictError, ValidationError
from lifeline.models import AuditEvent, PanicAlert, PanicStatus
from lifeline.services.channels import SKIPPED
from lifeline.services.event_publisher import representative_room, user_room
from lifeline.services.panic_service import PanicAlertService, can_transition


class TestActivate:
    @pytest.mark.asyncio
    async def test_activation_persists_snapshots_and_notifies(
        self, services, make_patient, facilities, publisher, session_factory
    ) -> None:
        patient = await make_patient(conditions=["Heart Attack"], contacts=TWO_CONTACTS)

        result = await services.panic.activate(patient.id, *ORIGIN, accuracy=12.5, message="chest pain")

        assert result.status == PanicStatus.ACTIVE
        assert result.facilities[0].name == "Hospital General"
        assert [r.name for r in result.contact_results] == ["Ana Torres", "Luis Torres"]
        assert result.contact_results[1].email_status == SKIPPED

        async with session_factory() as session:
            alert = await session.get(PanicAlert, result.alert_id)
        assert alert.status == PanicStatus.ACTIVE
        assert alert.accuracy == 12.5
        assert alert.nearby_facilities[0]["name"] == "Hospital General"
        assert "match_score" in alert.nearby_facilities[0]
        assert set(alert.notifications_sent[0]) == {"contact_id", "name", "phone", "sms_status", "email_status"}

        [rep] = publisher.for_room(representative_room(patient.id))
        [own] = publisher.for_room(user_room(patient.id))
        assert (rep.event, own.event) == ("panic-alert", "panic-alert-sent")
        assert rep.payload["alert_id"] == result.alert_id
        assert rep.payload["message"] == "chest pain"
        assert "patient_conditions" not in rep.payload

    @pytest.mark.asyncio
    async def test_without_conditions_uses_distance(self, services, make_patient, facilities) -> None:
        patient = await make_patient()
        result = await services.panic.activate(patient.id, *ORIGIN)
        assert result.facilities[0].name == "Clinica Centro"
        assert result.facilities[0].match_score is None

    @pytest.mark.asyncio
    @pytest.mark.parametrize("lat,lon,accuracy", [(91, 0, None), (0, 181, None), (0, 0, -1)])
    async def test_invalid_input(self, services, make_patient, lat, lon, accuracy) -> None:
        patient = await make_patient()
        with pytest.raises(ValidationError):
            await services.panic.activate(patient.id, lat, lon, accuracy=accuracy)

    @pytest.mark.asyncio
    async def test_unknown_patient(self, services) -> None:
        with pytest.raises(NotFoundError):
            await services.panic.activate("missing", *ORIGIN)

    @pytest.mark.asyncio
    async def test_audited(self, services, make_patient, session_factory) -> None:
        patient = await make_patient()
        result = await services.panic.activate(patient.id, *ORIGIN)
        async with session_factory() as session:
            event = await session.scalar(select(AuditEvent).where(AuditEvent.action == "PANIC_ACTIVATED"))
        assert event.resource_id == result.alert_id


class TestCancel:
    @pytest.mark.asyncio
    async def test_double_cancel(self, services, make_patient, publisher) -> None:
        patient = await make_patient()
        result = await services.panic.activate(patient.id, *ORIGIN)

        assert await services.panic.cancel(result.alert_id, patient.id) is True
        with pytest.raises(StateConflictError):
            await services.panic.cancel(result.alert_id, patient.id)

        alert = await services.panic.get_alert(result.alert_id, patient.id)
        assert alert.status == PanicStatus.CANCELLED
        assert alert.cancelled_at is not None
        cancelled = [e for e in publisher.events if e.event == "panic-cancelled"]
        assert len(cancelled) == 1
        assert cancelled[0].room == representative_room(patient.id)

    @pytest.mark.asyncio
    async def test_not_owned_is_not_found(self, services, make_patient) -> None:
        owner = await make_patient()
        other = await make_patient(name="Someone Else")
        result = await services.panic.activate(owner.id, *ORIGIN)
        with pytest.raises(NotFoundError):
            await services.panic.cancel(result.alert_id, other.id)

    @pytest.mark.asyncio
    async def test_missing_alert(self, services, make_patient) -> None:
        patient = await make_patient()
        with pytest.raises(NotFoundError):
            await services.panic.cancel("missing", patient.id)

    @pytest.mark.asyncio
    async def test_cancel_after_resolve_conflicts(self, services, make_patient) -> None:
        patient = await make_patient()
        result = await services.panic.activate(patient.id, *ORIGIN)
        await services.panic.resolve(result.alert_id, resolved_by="ops")
        with pytest.raises(StateConflictError):
            await services.panic.cancel(result.alert_id, patient.id)


def test_terminal_states_have_no_transitions() -> None:
    for terminal in (PanicStatus.CANCELLED, PanicStatus.RESOLVED, PanicStatus.EXPIRED):
        for target in PanicStatus:
            assert not can_transition(terminal, target)
    assert can_transition(PanicStatus.ACTIVE, PanicStatus.CANCELLED)
    assert not can_transition(PanicStatus.ACTIVE, PanicStatus.ACTIVE)


class TestResolutionPolicy:
    def _with_policy(self, services, policy: str) -> PanicAlertService:
        panic = services.panic
        return PanicAlertService(
            panic.session_factory, panic.profiles, panic.geomatch, panic.dispatcher,
            panic.publisher, panic.audit,
            resolution_policy=policy,
            auto_expire_after=timedelta(minutes=240),
            clock=panic.clock,
        )

    @pytest.mark.asyncio
    async def test_resolve(self, services, make_patient) -> None:
        patient = await make_patient()
        result = await services.panic.activate(patient.id, *ORIGIN)
        alert = await services.panic.resolve(result.alert_id, resolved_by="ops@lifeline")
        assert alert.status == PanicStatus.RESOLVED
        assert alert.resolved_by == "ops@lifeline"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("policy", ["auto_expire", "none"])
    async def test_resolve_disabled(self, services, make_patient, policy) -> None:
        patient = await make_patient()
        result = await services.panic.activate(patient.id, *ORIGIN)
        with pytest.raises(StateConflictError):
            await self._with_policy(services, policy).resolve(result.alert_id, resolved_by="ops")

    @pytest.mark.asyncio
    async def test_expire_stale(self, services, make_patient, clock) -> None:
        patient = await make_patient()
        old = await services.panic.activate(patient.id, *ORIGIN)
        clock.advance(minutes=200)
        recent = await services.panic.activate(patient.id, *ORIGIN)
        cancelled = await services.panic.activate(patient.id, *ORIGIN)
        await services.panic.cancel(cancelled.alert_id, patient.id)

        expired = await services.panic.expire_stale(now=clock() + timedelta(minutes=60))

        assert expired == [old.alert_id]
        assert (await services.panic.get_alert(old.alert_id, patient.id)).status == PanicStatus.EXPIRED
        assert (await services.panic.get_alert(recent.alert_id, patient.id)).status == PanicStatus.ACTIVE
        assert (await services.panic.get_alert(cancelled.alert_id, patient.id)).status == PanicStatus.CANCELLED

    @pytest.mark.asyncio
    @pytest.mark.parametrize("policy", ["manual", "none"])
    async def test_expire_disabled(self, services, policy) -> None:
        with pytest.raises(StateConflictError):
            await self._with_policy(services, policy).expire_stale()


class TestQueries:
    @pytest.mark.asyncio
    async def test_active_and_history(self, services, make_patient, clock) -> None:
        patient = await make_patient()
        first = await services.panic.activate(patient.id, *ORIGIN)
        clock.advance(minutes=1)
        second = await services.panic.activate(patient.id, *ORIGIN)
        await services.panic.cancel(first.alert_id, patient.id)

        active = await services.panic.active_alerts(patient.id)
        history = await services.panic.alert_history(patient.id, limit=10)
        limited = await services.panic.alert_history(patient.id, limit=1)

        assert [a.id for a in active] == [second.alert_id]
        assert [a.id for a in history] == [second.alert_id, first.alert_id]
        assert [a.id for a in limited] == [second.alert_id]

    @pytest.mark.asyncio
    async def test_audit_failure_does_not_fail_activation(self, services, make_patient, monkeypatch) -> None:
        patient = await make_patient()

        def broken_clock():
            raise RuntimeError("clock unavailable")

        monkeypatch.setattr(services.audit, "clock", broken_clock)
        result = await services.panic.activate(patient.id, *ORIGIN)
        assert result.status == PanicStatus.ACTIVE

    @pytest.mark.asyncio
    async def test_recent_audit_events_newest_first(self, services, make_patient, clock) -> None:
        patient = await make_patient()
        result = await services.panic.activate(patient.id, *ORIGIN)
        clock.advance(minutes=5)
        await services.panic.cancel(result.alert_id, patient.id)

        events = await services.audit.recent(patient.id)
        actions = [e.action for e in events]

        assert actions[:2] == ["PANIC_CANCELLED", "PANIC_ACTIVATED"]
        assert len(await services.audit.recent(patient.id, limit=1)) == 1
