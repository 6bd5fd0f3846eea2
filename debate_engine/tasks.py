"""Background task dispatch for work that must not block a request.

Verdict generation and automated turn responses run after the request that
triggered them returns. Every job is idempotent, so at-least-once delivery is
enough; the scheduler sweeps pick up anything a dispatcher dropped.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Any, Protocol

logger = logging.getLogger(__name__)

JobFactory = Callable[[], Awaitable[Any]]


class TaskDispatcher(Protocol):
    """Hands a job off for asynchronous execution."""

    def dispatch(self, name: str, job: JobFactory) -> None:
        ...


class AsyncioTaskDispatcher:
    """Runs jobs as tasks on the current event loop.

    Created tasks are referenced until they finish so they cannot be garbage
    collected mid-flight, and failures are logged by a done callback rather
    than surfacing as "exception was never retrieved".
    """

    def __init__(self):
        self._tasks: set[asyncio.Task[Any]] = set()

    def dispatch(self, name: str, job: JobFactory) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.warning(f"No running event loop; running background job {name} synchronously")
            asyncio.run(self._run(name, job))
            return

        task = loop.create_task(self._run(name, job), name=name)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    @property
    def pending(self) -> int:
        return len(self._tasks)

    async def drain(self) -> None:
        """Wait for every dispatched job, including jobs dispatched while waiting."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    @staticmethod
    async def _run(name: str, job: JobFactory) -> None:
        try:
            await job()
        except asyncio.CancelledError:
            logger.warning(f"Background job {name} was cancelled")
            raise
        except Exception as e:
            logger.error(f"Background job {name} failed: {e}", exc_info=True)
