"""Post-commit cleanup scheduling - fire-and-forget tasks that must not fail the caller.

Invariants:
    - Scheduled work runs after the core transaction committed
    - A failing cleanup is logged (ERROR, exc_info) and never re-raised
    - Task references are held until completion (no GC of running tasks)
"""

import asyncio
import logging
from collections.abc import Coroutine
from typing import Any

logger = logging.getLogger(__name__)


class CleanupScheduler:
    def __init__(self):
        self._tasks: set[asyncio.Task] = set()

    @property
    def pending(self) -> int:
        return len(self._tasks)

    def schedule(
        self, coro: Coroutine[Any, Any, Any], operation: str, **fields,
    ) -> asyncio.Task:
        task = asyncio.create_task(self._run(coro, operation, fields))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _run(self, coro, operation: str, fields: dict) -> None:
        try:
            await coro
        except Exception as e:
            # committed state is already correct; leftovers stay pending
            logger.error(
                f"Post-commit cleanup failed: {e}",
                exc_info=True,
                extra={"operation": operation, **fields},
            )

    async def drain(self) -> None:
        """Wait for every scheduled cleanup (shutdown and tests)."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks))
