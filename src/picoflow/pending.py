"""Lifecycle tracking for handlers that suspended mid-dispatch."""

from __future__ import annotations

import asyncio
import logging
from typing import Any

LOGGER = logging.getLogger(__name__)


class PendingHandlers:
    """Track asyncio tasks left running after their dispatch returned.

    Tasks self-clean when they complete. Nothing here inspects the outcome
    of a task; failures are reported by whoever registered the task.
    """

    def __init__(self) -> None:
        self._tasks: set[asyncio.Task[Any]] = set()

    def __len__(self) -> int:
        return len(self._tasks)

    def add(self, task: asyncio.Task[Any]) -> None:
        """Register a suspended task until it finishes."""
        if task.done():
            return
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def await_all(self) -> None:
        """Wait until no tracked task remains.

        Handlers resumed while waiting may start further suspended handlers,
        so the set is polled until it stays empty. Task failures are not
        re-raised.
        """
        while True:
            running = [t for t in self._tasks if not t.done()]
            if not running:
                return
            LOGGER.debug("Waiting for %d suspended handler(s)", len(running))
            await asyncio.wait(running)

    async def cancel_all(self) -> None:
        """Cancel every tracked task and await them all."""
        tasks = list(self._tasks)
        for task in tasks:
            if not task.done():
                task.cancel()
        # Outcomes were already reported by the owner's done callbacks.
        await asyncio.gather(*tasks, return_exceptions=True)
        self._tasks.clear()
