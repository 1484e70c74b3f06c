"""At-most-one in-flight operation per key, shared by every concurrent caller."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Hashable
from typing import Generic, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class SingleFlight(Generic[T]):
    """Deduplicate concurrent calls that share a key.

    The first caller for a key starts the work as an asyncio Task; callers
    arriving while it runs await that same task. Each waiter is shielded, so a
    waiter that times out or is cancelled does not cancel the shared work.
    Once the task settles the key is released and the next call starts fresh.
    """

    def __init__(self) -> None:
        self._inflight: dict[Hashable, asyncio.Task[T]] = {}

    async def do(
        self,
        key: Hashable,
        fn: Callable[[], Awaitable[T]],
        timeout: float | None = None,
    ) -> T:
        task = self._inflight.get(key)
        if task is None:
            task = asyncio.ensure_future(fn())
            self._inflight[key] = task
            task.add_done_callback(lambda t, k=key: self._release(k, t))
        else:
            logger.debug("Joining in-flight operation for %r", key)

        if timeout is None:
            return await asyncio.shield(task)
        return await asyncio.wait_for(asyncio.shield(task), timeout)

    def in_flight(self, key: Hashable) -> bool:
        return key in self._inflight

    def _release(self, key: Hashable, task: asyncio.Task[T]) -> None:
        if self._inflight.get(key) is task:
            del self._inflight[key]
        # Every waiter may have given up; mark the outcome as observed.
        if not task.cancelled():
            task.exception()
