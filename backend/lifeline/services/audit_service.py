from typing import Callable, Optional

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from lifeline.models.audit_event import AuditEvent
from lifeline.timeutils import utcnow

logger = structlog.get_logger(__name__)


class AuditRecorder:
    """
    Append-only audit log.

    Writes use a dedicated session so a failed audit insert can never roll back
    or block the emergency operation that triggered it.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession], clock: Callable = utcnow):
        self.session_factory = session_factory
        self.clock = clock

    async def record(
        self,
        actor_type: str,
        actor_name: Optional[str],
        action: str,
        resource: str,
        resource_id: Optional[str] = None,
        patient_id: Optional[str] = None,
        metadata: Optional[dict] = None,
    ) -> bool:
        try:
            async with self.session_factory() as session:
                session.add(
                    AuditEvent(
                        timestamp=self.clock(),
                        actor_type=actor_type,
                        actor_name=actor_name,
                        action=action,
                        resource=resource,
                        resource_id=resource_id,
                        patient_id=patient_id,
                        event_metadata=metadata or {},
                    )
                )
                await session.commit()
            return True
        except Exception:
            logger.exception("audit_write_failed", action=action, resource=resource, resource_id=resource_id)
            return False

    async def recent(self, patient_id: str, limit: int = 50) -> list[AuditEvent]:
        async with self.session_factory() as session:
            result = await session.execute(
                select(AuditEvent)
                .where(AuditEvent.patient_id == patient_id)
                .order_by(AuditEvent.timestamp.desc(), AuditEvent.id.desc())
                .limit(limit)
            )
            return list(result.scalars().all())
