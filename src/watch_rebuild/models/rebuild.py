"""
Data models for rebuild state and results.

These models describe the watch session lifecycle and the results reported
by the generation pipeline. None of them are persisted.
"""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, computed_field

from watch_rebuild.models.change_event import ChangeEvent


class SessionState(str, Enum):
    """Watch session lifecycle state."""

    IDLE = "idle"
    BUILDING = "building"
    SHUTTING_DOWN = "shutting_down"  # terminal


class PipelineResult(BaseModel):
    """Result returned by a generation pipeline run."""

    success: bool = Field(..., description="Whether the pipeline completed successfully")
    error: str | None = Field(None, description="Error details if the pipeline failed")

    @classmethod
    def ok(cls) -> "PipelineResult":
        return cls(success=True)

    @classmethod
    def failed(cls, error: str) -> "PipelineResult":
        return cls(success=False, error=error)

    model_config = ConfigDict(frozen=True)


class RebuildOutcome(BaseModel):
    """
    Outcome of a single rebuild.

    Used for logging and statistics only. ``trigger`` is the change event
    that started the rebuild; it is ``None`` for the initial rebuild and for
    coalesced follow-up rebuilds.
    """

    success: bool = Field(..., description="Whether the rebuild succeeded")
    error: str | None = Field(None, description="Error details if the rebuild failed")
    duration_seconds: float = Field(..., ge=0.0, description="Wall-clock duration of the pipeline call")
    trigger: ChangeEvent | None = Field(None, description="Change event that started the rebuild")
    finished_at: datetime = Field(default_factory=datetime.now, description="When the rebuild finished")

    @computed_field
    @property
    def trigger_description(self) -> str:
        """Get a short description of what started the rebuild."""
        if self.trigger is None:
            return "startup or follow-up"
        return str(self.trigger)

    def __str__(self) -> str:
        status = "succeeded" if self.success else f"failed ({self.error})"
        return f"Rebuild {status} in {self.duration_seconds:.2f}s"

    model_config = ConfigDict(frozen=True)
