"""
Pipeline adapter running an external build command.

The command is a template: ``{input_dir}``, ``{output_dir}`` and any
pipeline option key are substituted into each argument before the command
is executed without a shell.
"""

import logging
import shlex
import subprocess
from pathlib import Path

from watch_rebuild.core.interfaces import IGenerationPipeline
from watch_rebuild.models import PipelineError, PipelineResult

logger = logging.getLogger(__name__)


class CommandPipeline(IGenerationPipeline):
    """Runs an external command as the generation pipeline."""

    def __init__(self, command_template: str, timeout_seconds: float | None = None):
        """
        Initialize the command pipeline.

        Args:
            command_template: Command line with ``{placeholder}`` arguments
            timeout_seconds: Kill the command after this many seconds (None for no limit)

        Raises:
            PipelineError: If the template cannot be split into arguments
        """
        try:
            self.arguments = shlex.split(command_template)
        except ValueError as e:
            raise PipelineError(
                f"Invalid pipeline command: {e}", pipeline=command_template, stage="parse", underlying_error=e
            ) from e

        if not self.arguments:
            raise PipelineError("Pipeline command is empty", pipeline=command_template, stage="parse")

        self.command_template = command_template
        self.timeout_seconds = timeout_seconds

    def build_command(self, input_dir: Path, output_dir: Path, options: dict[str, str]) -> list[str]:
        """
        Substitute the pipeline arguments into the command template.

        Raises:
            PipelineError: If the template references an unknown placeholder
        """
        values = {**options, "input_dir": str(input_dir), "output_dir": str(output_dir)}
        try:
            return [argument.format(**values) for argument in self.arguments]
        except (KeyError, IndexError, ValueError) as e:
            raise PipelineError(
                f"Cannot expand pipeline command: {e}",
                pipeline=self.command_template,
                stage="expand",
                underlying_error=e,
            ) from e

    def run(self, input_dir: Path, output_dir: Path, options: dict[str, str]) -> PipelineResult:
        command = self.build_command(input_dir, output_dir, options)
        logger.info("Running: %s", shlex.join(command))

        try:
            completed = subprocess.run(command, check=False, timeout=self.timeout_seconds)
        except FileNotFoundError as e:
            raise PipelineError(
                f"Pipeline command not found: {command[0]}",
                pipeline=self.command_template,
                stage="execute",
                underlying_error=e,
            ) from e
        except subprocess.TimeoutExpired:
            return PipelineResult.failed(f"Command timed out after {self.timeout_seconds}s")

        if completed.returncode != 0:
            return PipelineResult.failed(f"Command exited with code {completed.returncode}")
        return PipelineResult.ok()

    @property
    def description(self) -> str:
        return f"command '{self.command_template}'"
