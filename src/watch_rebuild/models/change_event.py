"""
Data models for filesystem change events.

Change events are transient: they are produced by the filesystem monitor,
printed, and consumed immediately by the rebuild coordinator.
"""

from datetime import datetime
from enum import Enum
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, model_validator

TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"


class ChangeKind(str, Enum):
    """Kind of filesystem change; the value is the name printed in change lines."""

    CREATED = "Created"
    MODIFIED = "Modified"
    DELETED = "Deleted"
    RENAMED = "Renamed"


class ChangeEvent(BaseModel):
    """
    Represents a single filesystem change reported by the monitor.

    Renamed events carry the path the entry was moved from in ``previous_path``;
    every other kind must leave it unset.
    """

    kind: ChangeKind = Field(..., description="Kind of change")
    path: Path = Field(..., description="Affected path (destination for renames)")
    previous_path: Path | None = Field(None, description="Source path, renames only")
    timestamp: datetime = Field(default_factory=datetime.now, description="Local time the change was observed")
    is_directory: bool = Field(default=False, description="Whether the affected entry is a directory")

    @model_validator(mode='after')
    def validate_previous_path(self):
        """Ensure previous_path is present exactly for renames."""
        if self.kind == ChangeKind.RENAMED and self.previous_path is None:
            raise ValueError("previous_path is required for renamed events")
        if self.kind != ChangeKind.RENAMED and self.previous_path is not None:
            raise ValueError(f"previous_path is only valid for renamed events, not {self.kind.value}")
        return self

    def format_line(self) -> str:
        """Render the change line printed for every detected change."""
        return f"{self.timestamp.strftime(TIMESTAMP_FORMAT)}: {self.kind.value} {self.path}"

    def __str__(self) -> str:
        if self.previous_path is not None:
            return f"ChangeEvent({self.kind.value}: {self.previous_path} -> {self.path})"
        return f"ChangeEvent({self.kind.value}: {self.path})"

    model_config = ConfigDict(frozen=True)
