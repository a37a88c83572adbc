"""
Exclusive gate that keeps the monitor quiet while a rebuild runs.

The pipeline writes its output while it runs; without the guard those writes
would be reported as changes and trigger the next rebuild. Source changes
held back while the guard is held are counted, so the coordinator can still
schedule a follow-up rebuild for them.
"""

import asyncio
import logging
from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import asynccontextmanager
from typing import Any, TypeVar

from watch_rebuild.monitoring.file_watcher import FileSystemMonitor

logger = logging.getLogger(__name__)

T = TypeVar("T")


class RebuildGuard:
    """Suspends monitor delivery for the duration of an exclusive section."""

    def __init__(self, monitor: FileSystemMonitor):
        self.monitor = monitor
        self.missed_changes = 0
        self._lock = asyncio.Lock()

    @asynccontextmanager
    async def suspended(self) -> AsyncIterator[None]:
        """
        Hold the guard: pause delivery on entry, resume it on every exit path.

        Only one holder at a time; other callers wait for the lock. After
        release, ``missed_changes`` holds the number of notifications the
        monitor held back during this section.
        """
        async with self._lock:
            self.missed_changes = 0
            self.monitor.pause()
            try:
                yield
            finally:
                self.missed_changes = self.monitor.resume()
                if self.missed_changes:
                    logger.debug("%d change(s) arrived while the guard was held", self.missed_changes)

    async def run_exclusive(self, fn: Callable[..., Awaitable[T]], *args: Any) -> T:
        """
        Run ``fn(*args)`` with delivery suspended.

        Exceptions from ``fn`` propagate after delivery has been re-enabled.
        """
        async with self.suspended():
            return await fn(*args)

    @property
    def is_held(self) -> bool:
        """Check if a rebuild currently holds the guard."""
        return self._lock.locked()
