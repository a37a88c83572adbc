"""Data models and exceptions for the watch-rebuild orchestrator."""

from watch_rebuild.models.change_event import TIMESTAMP_FORMAT, ChangeEvent, ChangeKind
from watch_rebuild.models.exceptions import (
    BaseError,
    ConfigurationError,
    InitializationError,
    MonitoringError,
    PipelineError,
    ShutdownError,
)
from watch_rebuild.models.rebuild import PipelineResult, RebuildOutcome, SessionState

__all__ = [
    "TIMESTAMP_FORMAT",
    "ChangeEvent",
    "ChangeKind",
    "PipelineResult",
    "RebuildOutcome",
    "SessionState",
    "BaseError",
    "ConfigurationError",
    "InitializationError",
    "MonitoringError",
    "PipelineError",
    "ShutdownError",
]
