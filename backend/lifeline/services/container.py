from dataclasses import dataclass
from datetime import timedelta
from typing import Callable, Optional

from fastapi import Request
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from lifeline.config import Settings
from lifeline.services.alert_dispatcher import AlertDispatcher
from lifeline.services.audit_service import AuditRecorder
from lifeline.services.channels import EmailSender, SmsSender
from lifeline.services.contact_service import ContactService
from lifeline.services.email_service import EmailService
from lifeline.services.event_publisher import EventPublisher
from lifeline.services.geomatch import GeomatchEngine, SqlFacilityCatalog
from lifeline.services.panic_service import PanicAlertService
from lifeline.services.profile_store import EncryptedProfileStore
from lifeline.services.qr_broker import QRAccessBroker
from lifeline.services.sms_service import SmsService
from lifeline.services.vault import CredentialVault
from lifeline.timeutils import utcnow


@dataclass
class ServiceContainer:
    """Everything the HTTP layer needs, wired once per application."""
    vault: CredentialVault
    profiles: EncryptedProfileStore
    audit: AuditRecorder
    geomatch: GeomatchEngine
    dispatcher: AlertDispatcher
    broker: QRAccessBroker
    panic: PanicAlertService
    contacts: ContactService
    publisher: EventPublisher


def build_container(
    settings: Settings,
    session_factory: async_sessionmaker[AsyncSession],
    publisher: EventPublisher,
    sms: Optional[SmsSender] = None,
    email: Optional[EmailSender] = None,
    clock: Callable = utcnow,
) -> ServiceContainer:
    vault = CredentialVault(settings.encryption_key)
    profiles = EncryptedProfileStore(session_factory, vault)
    audit = AuditRecorder(session_factory, clock=clock)
    geomatch = GeomatchEngine(SqlFacilityCatalog(session_factory))
    dispatcher = AlertDispatcher(
        session_factory,
        sms or SmsService(settings),
        email or EmailService(settings),
        publisher,
        clock=clock,
    )
    broker = QRAccessBroker(
        session_factory, profiles, geomatch, dispatcher, audit,
        frontend_url=settings.frontend_url,
        clock=clock,
    )
    panic = PanicAlertService(
        session_factory, profiles, geomatch, dispatcher, publisher, audit,
        resolution_policy=settings.panic_resolution_policy,
        auto_expire_after=timedelta(minutes=settings.panic_auto_expire_minutes),
        clock=clock,
    )
    return ServiceContainer(
        vault=vault,
        profiles=profiles,
        audit=audit,
        geomatch=geomatch,
        dispatcher=dispatcher,
        broker=broker,
        panic=panic,
        contacts=ContactService(session_factory, audit),
        publisher=publisher,
    )


def get_services(request: Request) -> ServiceContainer:
    """FastAPI dependency: the container built at startup."""
    return request.app.state.services
