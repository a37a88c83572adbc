"""Generation pipeline adapters."""

from watch_rebuild.config import WatchConfig
from watch_rebuild.core.interfaces import IGenerationPipeline
from watch_rebuild.models import ConfigurationError
from watch_rebuild.pipelines.command import CommandPipeline
from watch_rebuild.pipelines.python_callable import CallablePipeline


def create_pipeline(config: WatchConfig) -> IGenerationPipeline:
    """
    Build the pipeline described by the configuration.

    Raises:
        ConfigurationError: If no pipeline is configured
        PipelineError: If the configured pipeline cannot be loaded
    """
    if config.pipeline_command:
        return CommandPipeline(config.pipeline_command, timeout_seconds=config.pipeline_timeout_seconds)
    if config.pipeline_reference:
        return CallablePipeline.from_reference(config.pipeline_reference)
    raise ConfigurationError(
        "No generation pipeline configured; set a command or a module:function reference",
        config_key="pipeline_command",
        expected_type="str",
    )


__all__ = ["CallablePipeline", "CommandPipeline", "create_pipeline"]
