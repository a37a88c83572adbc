"""
File system monitor for the watch session.

Watches a directory tree recursively with watchdog and turns every OS-level
notification into a ChangeEvent on an asyncio stream consumed by the watch
session. Changes under directories the pipeline writes to are ignored.
"""

import asyncio
import logging
import os
import threading
from collections.abc import AsyncIterator
from pathlib import Path

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from watch_rebuild.models import ChangeEvent, ChangeKind, MonitoringError

logger = logging.getLogger(__name__)


class FileSystemMonitor(FileSystemEventHandler):
    """
    Recursive filesystem monitor producing a stream of change events.

    Watchdog calls the ``on_*`` handlers from its own threads. Handlers only
    take the delivery lock and schedule a queue put on the event loop
    captured by ``start``; everything downstream runs on that loop.
    """

    def __init__(self, join_timeout: float = 5.0):
        """
        Initialize the monitor.

        Args:
            join_timeout: Seconds to wait for the observer thread on stop
        """
        super().__init__()
        self.join_timeout = join_timeout

        self._observer: Observer | None = None
        self._root: Path | None = None
        self._loop: asyncio.AbstractEventLoop | None = None
        self._queue: asyncio.Queue[ChangeEvent | None] | None = None

        # Directories the pipeline writes to; changes under them are never source changes
        self._excluded: list[Path] = []

        # Guards the flags and counters below across watchdog threads
        self._delivery_lock = threading.Lock()
        self._paused = False
        self._closed = False
        self._suppressed = 0
        self._missed = 0
        self._excluded_count = 0

    def start(self, root: Path) -> None:
        """
        Start watching a directory tree for changes.

        Must be called from a running event loop.

        Args:
            root: Directory to monitor, recursively

        Raises:
            MonitoringError: If monitoring cannot be started
        """
        root = Path(root)
        if not root.exists():
            raise MonitoringError(f"Directory does not exist: {root}", path=str(root), operation="start")

        if not root.is_dir():
            raise MonitoringError(f"Path is not a directory: {root}", path=str(root), operation="start")

        if self._observer is not None or self._closed:
            raise MonitoringError("Monitor has already been started", path=str(root), operation="start")

        try:
            self._loop = asyncio.get_running_loop()
        except RuntimeError as e:
            raise MonitoringError(
                "Monitor must be started from a running event loop",
                path=str(root),
                operation="start",
                underlying_error=e,
            ) from e

        self._root = root.resolve()
        self._queue = asyncio.Queue()

        try:
            observer = Observer()
            observer.schedule(self, str(self._root), recursive=True)
            observer.start()
        except Exception as e:
            logger.error("Failed to start file monitoring: %s", e)
            raise MonitoringError(
                f"Failed to start monitoring: {e}",
                path=str(self._root),
                operation="start",
                underlying_error=e,
            ) from e

        self._observer = observer
        logger.info("Started monitoring %s (recursive: True)", self._root)

    async def events(self) -> AsyncIterator[ChangeEvent]:
        """
        Iterate over change events until the monitor is stopped.

        Raises:
            MonitoringError: If the monitor has not been started
        """
        if self._queue is None:
            raise MonitoringError("Monitor has not been started", operation="events")

        while True:
            event = await self._queue.get()
            if event is None or self._closed:
                return
            yield event

    def exclude(self, path: Path) -> None:
        """
        Ignore every change under ``path``, e.g. the pipeline's output directory.

        Args:
            path: Directory whose contents are written by the pipeline
        """
        path = Path(path).expanduser().resolve()
        with self._delivery_lock:
            if path not in self._excluded:
                self._excluded.append(path)
        logger.debug("Excluding changes under %s", path)

    def pause(self) -> None:
        """
        Suspend delivery.

        Notifications raised while paused are not delivered, but they are
        counted and reported by ``resume``.
        """
        with self._delivery_lock:
            self._paused = True
            self._missed = 0
        logger.debug("Event delivery paused")

    def resume(self) -> int:
        """
        Re-enable delivery.

        Returns:
            Number of notifications held back since ``pause``
        """
        with self._delivery_lock:
            self._paused = False
            missed, self._missed = self._missed, 0
        logger.debug("Event delivery resumed (%d held back)", missed)
        return missed

    def close_stream(self) -> None:
        """
        Stop delivery and end the event stream without waiting for the observer.

        Safe to call from a signal callback running on the event loop.
        """
        with self._delivery_lock:
            if self._closed:
                return
            self._closed = True
            if self._loop is not None and self._queue is not None and not self._loop.is_closed():
                self._loop.call_soon_threadsafe(self._queue.put_nowait, None)
        logger.debug("Event stream closed")

    def stop(self) -> None:
        """
        Stop monitoring and release the observer.

        No events are yielded once this returns. Calling it again is a no-op.

        Raises:
            MonitoringError: If the observer cannot be stopped
        """
        self.close_stream()

        observer, self._observer = self._observer, None
        if observer is None:
            return

        try:
            observer.stop()
            observer.join(timeout=self.join_timeout)
            if observer.is_alive():
                logger.warning("Observer thread did not exit within %.1fs", self.join_timeout)
            logger.info("File monitoring stopped")
        except Exception as e:
            logger.error("Error stopping file monitoring: %s", e)
            raise MonitoringError("Failed to stop monitoring", operation="stop", underlying_error=e) from e

    def on_created(self, event: FileSystemEvent) -> None:
        """Handle file/directory creation events."""
        self._deliver(ChangeKind.CREATED, event)

    def on_modified(self, event: FileSystemEvent) -> None:
        """Handle file modification events."""
        # Watchdog reports the parent directory as modified for every child change
        if not event.is_directory:
            self._deliver(ChangeKind.MODIFIED, event)

    def on_deleted(self, event: FileSystemEvent) -> None:
        """Handle file/directory deletion events."""
        self._deliver(ChangeKind.DELETED, event)

    def on_moved(self, event: FileSystemEvent) -> None:
        """Handle file/directory move events."""
        self._deliver(ChangeKind.RENAMED, event)

    def _deliver(self, kind: ChangeKind, event: FileSystemEvent) -> None:
        """
        Convert a watchdog event and hand it to the event loop.

        Args:
            kind: Change kind for the event
            event: Raw watchdog event
        """
        if kind == ChangeKind.RENAMED:
            change = ChangeEvent(
                kind=kind,
                path=Path(os.fsdecode(event.dest_path)),
                previous_path=Path(os.fsdecode(event.src_path)),
                is_directory=event.is_directory,
            )
        else:
            change = ChangeEvent(kind=kind, path=Path(os.fsdecode(event.src_path)), is_directory=event.is_directory)

        with self._delivery_lock:
            if self._is_excluded(change):
                self._excluded_count += 1
                logger.debug("Ignored %s under an excluded directory", change)
                return

            if self._closed or self._paused:
                self._suppressed += 1
                if not self._closed:
                    self._missed += 1
                logger.debug("Suppressed %s while delivery is disabled", change)
                return

            if self._loop is None or self._queue is None or self._loop.is_closed():
                logger.error("No event loop available to deliver %s", change)
                return

            self._loop.call_soon_threadsafe(self._queue.put_nowait, change)

        logger.debug("Delivered %s", change)

    def _is_excluded(self, change: ChangeEvent) -> bool:
        """Check if every path the change touches lies under an excluded directory."""
        paths = [change.path] if change.previous_path is None else [change.path, change.previous_path]
        return bool(self._excluded) and all(
            any(path == excluded or excluded in path.parents for excluded in self._excluded) for path in paths
        )

    @property
    def root(self) -> Path | None:
        """Get the absolute root being watched."""
        return self._root

    @property
    def is_watching(self) -> bool:
        """Check if currently watching for file changes."""
        return self._observer is not None and self._observer.is_alive()

    @property
    def is_paused(self) -> bool:
        """Check if delivery is currently suspended."""
        return self._paused

    @property
    def excluded_paths(self) -> list[Path]:
        """Get the directories whose changes are ignored."""
        return list(self._excluded)

    def get_suppressed_count(self) -> int:
        """Get count of notifications held back while delivery was disabled."""
        return self._suppressed

    def get_excluded_count(self) -> int:
        """Get count of notifications ignored under excluded directories."""
        return self._excluded_count
