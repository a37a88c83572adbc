"""
Abstract interfaces for the watch-rebuild orchestrator.

These interfaces define the contracts for the collaborators a watch session
depends on, enabling dependency injection for testing and alternative
implementations.
"""

from abc import ABC, abstractmethod
from pathlib import Path

from watch_rebuild.models import PipelineResult


class IGenerationPipeline(ABC):
    """Interface for the external full-regeneration build."""

    @abstractmethod
    def run(self, input_dir: Path, output_dir: Path, options: dict[str, str]) -> PipelineResult:
        """
        Regenerate the whole output from the input directory.

        Called from a worker thread; never concurrently with itself within one
        watch session.

        Args:
            input_dir: Absolute path of the source directory
            output_dir: Absolute path of the output directory
            options: Pipeline options the session was started with

        Returns:
            PipelineResult describing success or failure

        Raises:
            PipelineError: If the pipeline cannot be invoked at all
        """
        pass

    @property
    @abstractmethod
    def description(self) -> str:
        """Get a short human-readable description of the pipeline."""
        pass
