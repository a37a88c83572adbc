"""Pipeline adapter calling a Python function referenced as ``module:function``."""

import importlib
import logging
from collections.abc import Callable
from pathlib import Path
from typing import Any

from watch_rebuild.core.interfaces import IGenerationPipeline
from watch_rebuild.models import PipelineError, PipelineResult
from watch_rebuild.models.exceptions import raise_pipeline_error

logger = logging.getLogger(__name__)

PipelineCallable = Callable[[Path, Path, dict[str, str]], Any]


class CallablePipeline(IGenerationPipeline):
    """
    Wraps a plain function as a generation pipeline.

    The function receives ``(input_dir, output_dir, options)``. It may return
    a PipelineResult, a bool, or None (success); exceptions propagate to the
    caller.
    """

    def __init__(self, function: PipelineCallable, name: str | None = None):
        self.function = function
        self.name = name or getattr(function, "__qualname__", repr(function))

    @classmethod
    def from_reference(cls, reference: str) -> "CallablePipeline":
        """
        Load a pipeline from a ``module:function`` reference.

        Raises:
            PipelineError: If the reference is malformed or cannot be loaded
        """
        module_name, sep, attribute = reference.partition(":")
        if not sep or not module_name or not attribute:
            raise PipelineError(
                f"Pipeline reference must look like 'module:function', got '{reference}'",
                pipeline=reference,
                stage="load",
            )

        try:
            module = importlib.import_module(module_name)
        except ImportError as e:
            raise PipelineError(
                f"Unable to import pipeline module '{module_name}'", pipeline=reference, stage="load", underlying_error=e
            ) from e

        target: Any = module
        for part in attribute.split("."):
            try:
                target = getattr(target, part)
            except AttributeError as e:
                raise_pipeline_error(
                    f"Pipeline '{reference}' could not find '{attribute}' in {module_name}",
                    pipeline=reference,
                    stage="load",
                    underlying_error=e,
                )

        if not callable(target):
            raise PipelineError(
                f"Pipeline attribute '{attribute}' in {module_name} is not callable", pipeline=reference, stage="load"
            )

        logger.debug("Loaded pipeline %s", reference)
        return cls(target, name=reference)

    def run(self, input_dir: Path, output_dir: Path, options: dict[str, str]) -> PipelineResult:
        result = self.function(input_dir, output_dir, dict(options))

        if isinstance(result, PipelineResult):
            return result
        if result is None or result is True:
            return PipelineResult.ok()
        if result is False:
            return PipelineResult.failed(f"{self.name} reported failure")

        raise PipelineError(
            f"Pipeline {self.name} returned unsupported value of type {type(result).__name__}",
            pipeline=self.name,
            stage="result",
        )

    @property
    def description(self) -> str:
        return f"callable '{self.name}'"
