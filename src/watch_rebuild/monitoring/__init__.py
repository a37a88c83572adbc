"""
Monitoring package for watch-triggered rebuilds.

This package provides the components that watch a directory tree for
changes and rerun the generation pipeline: the filesystem monitor, the
rebuild guard, the rebuild coordinator and the watch session lifecycle.
"""

from .file_watcher import FileSystemMonitor
from .rebuild_coordinator import RebuildCoordinator
from .rebuild_guard import RebuildGuard
from .reporter import WATCHING_MESSAGE, WatchReporter
from .watch_session import EXIT_INITIAL_REBUILD_FAILED, EXIT_OK, WatchSession

__all__ = [
    "EXIT_INITIAL_REBUILD_FAILED",
    "EXIT_OK",
    "WATCHING_MESSAGE",
    "FileSystemMonitor",
    "RebuildCoordinator",
    "RebuildGuard",
    "WatchReporter",
    "WatchSession",
]
