import asyncio
from typing import Any, Awaitable, Callable, Optional

import structlog

logger = structlog.get_logger(__name__)


class DispatchJob:
    """
    Deferred notification work with its own result/error channel.

    The HTTP layer schedules ``run`` as a background task once the request's
    transaction has committed; callers that need the outcome can ``wait()``.
    """

    def __init__(self, name: str, factory: Callable[[], Awaitable[Any]]):
        self.name = name
        self._factory = factory
        self._done = asyncio.Event()
        self._started = False
        self.result: Any = None
        self.error: Optional[BaseException] = None

    @property
    def done(self) -> bool:
        return self._done.is_set()

    @property
    def succeeded(self) -> bool:
        return self.done and self.error is None

    async def run(self) -> Any:
        if self._started:
            return await self.wait()
        self._started = True
        try:
            self.result = await self._factory()
            logger.info("dispatch_job_completed", job=self.name)
        except Exception as e:
            self.error = e
            logger.exception("dispatch_job_failed", job=self.name)
        finally:
            self._done.set()
        return self.result

    async def wait(self) -> Any:
        await self._done.wait()
        return self.result
