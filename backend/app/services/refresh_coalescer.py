"""Single-flight guard for token refreshes.

Two refresh requests for the same user can race (a duplicated tab, a client
retrying after a timeout). Both would try to redeem the same refresh token,
and whichever came second would find it already blacklisted and log the user
out. Coalescing makes the second caller wait for the first caller's result
instead.
"""

import asyncio
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

from app.core.logging import get_logger

logger = get_logger("refresh_coalescer")

T = TypeVar("T")


class RefreshCoalescer:
    """At most one in-flight refresh per subject id."""

    def __init__(self) -> None:
        self._in_flight: dict[int, asyncio.Task[Any]] = {}

    def in_flight(self, subject_id: int) -> bool:
        return subject_id in self._in_flight

    async def coalesce(self, subject_id: int, operation: Callable[[], Awaitable[T]]) -> T:
        """Run operation for subject_id, or join the one already running.

        Every caller receives the same result or the same exception. The
        record is dropped when the operation finishes, whatever the outcome.
        A caller that is cancelled while waiting does not cancel the shared
        operation.
        """
        task = self._in_flight.get(subject_id)
        if task is None:
            task = asyncio.ensure_future(operation())
            self._in_flight[subject_id] = task
            task.add_done_callback(lambda t: self._release(subject_id, t))
        else:
            logger.debug(f"Joining in-flight refresh for subject {subject_id}")
        return await asyncio.shield(task)

    def _release(self, subject_id: int, task: asyncio.Task[Any]) -> None:
        if self._in_flight.get(subject_id) is task:
            del self._in_flight[subject_id]
        # Mark the exception retrieved; waiters get it through the shield.
        if not task.cancelled():
            task.exception()
