"""
Move stale ACTIVE panic alerts to EXPIRED.
Run with: python -m scripts.expire_panic_alerts
Intended for cron; requires PANIC_RESOLUTION_POLICY=auto_expire or both.
"""

import asyncio
import sys
from lifeline.config import get_settings
from lifeline.database import build_engine, build_session_factory
from lifeline.exceptions import StateConflictError
from lifeline.logging_config import configure_logging
from lifeline.services.container import build_container
from lifeline.services.event_publisher import InMemoryEventPublisher


async def expire() -> int:
    settings = get_settings()
    configure_logging(settings.log_level, settings.log_format)
    engine = build_engine(settings.database_url)
    try:
        # Expiry publishes nothing, so an in-process publisher is enough here
        services = build_container(settings, build_session_factory(engine), InMemoryEventPublisher())
        try:
            expired = await services.panic.expire_stale()
        except StateConflictError as e:
            print(e.message)
            return 1
        print(f"Expired {len(expired)} panic alert(s).")
        return 0
    finally:
        await engine.dispose()


if __name__ == "__main__":
    sys.exit(asyncio.run(expire()))
