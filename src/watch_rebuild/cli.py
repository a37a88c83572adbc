"""
Command-line interface for watch-rebuild.

``generate`` runs the pipeline once; ``watch`` runs it once and then again
after every change under the input directory. Both accept the same options.
"""

import asyncio
import logging
import logging.config
from pathlib import Path
from typing import Any

import click
from pydantic import ValidationError
from rich.console import Console

from watch_rebuild import __version__
from watch_rebuild.config import WatchConfig, reload_config
from watch_rebuild.core.interfaces import IGenerationPipeline
from watch_rebuild.models import BaseError, MonitoringError, ShutdownError
from watch_rebuild.models.exceptions import raise_config_error
from watch_rebuild.monitoring import WatchSession
from watch_rebuild.pipelines import create_pipeline

logger = logging.getLogger(__name__)

EXIT_FAILURE = 1
EXIT_SETUP_ERROR = 2

err_console = Console(stderr=True, highlight=False, soft_wrap=True)


def parse_options(values: tuple[str, ...]) -> dict[str, str]:
    """Parse repeated ``KEY=VALUE`` pipeline options."""
    options = {}
    for item in values:
        key, sep, value = item.partition("=")
        if not sep or not key.strip():
            raise_config_error(
                f"Pipeline option must look like KEY=VALUE, got '{item}'",
                config_key="pipeline_options",
                expected_type="KEY=VALUE",
                actual_value=item,
            )
        options[key.strip()] = value
    return options


PIPELINE_ARGUMENTS = [
    click.argument('input_dir', type=click.Path(path_type=Path), required=False),
    click.argument('output_dir', type=click.Path(path_type=Path), required=False),
    click.option('--command', '-c', 'command', help='Build command template, e.g. "make SRC={input_dir}"'),
    click.option('--pipeline', '-p', 'reference', help='Python pipeline as module:function'),
    click.option('--option', '-o', 'options', multiple=True, help='Pipeline option KEY=VALUE (repeatable)'),
    click.option(
        '--log-level',
        type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"], case_sensitive=False),
        help='Logging level',
    ),
    click.option('--verbose', '-v', is_flag=True, help='Enable verbose logging'),
]


def pipeline_arguments(func):
    """Attach the arguments and options shared by ``generate`` and ``watch``."""
    for decorator in reversed(PIPELINE_ARGUMENTS):
        func = decorator(func)
    return func


def prepare(
    input_dir: Path | None,
    output_dir: Path | None,
    command: str | None,
    reference: str | None,
    options: tuple[str, ...],
    log_level: str | None,
    verbose: bool,
) -> tuple[WatchConfig, IGenerationPipeline]:
    """
    Build the configuration and pipeline from CLI arguments.

    Arguments that were not given fall back to the environment.

    Raises:
        BaseError: If the configuration or pipeline is invalid
        ValidationError: If a setting fails validation
    """
    overrides: dict[str, Any] = {}
    if input_dir is not None:
        overrides["input_dir"] = input_dir
    if output_dir is not None:
        overrides["output_dir"] = output_dir
    if command is not None:
        overrides["pipeline_command"] = command
    if reference is not None:
        overrides["pipeline_reference"] = reference
    if options:
        overrides["pipeline_options"] = parse_options(options)
    if log_level is not None:
        overrides["log_level"] = log_level.upper()
    if verbose:
        overrides["debug_mode"] = True

    config = reload_config(**overrides)
    logging.config.dictConfig(config.get_log_config())
    logger.debug("Loaded configuration: %s", config.model_dump())

    return config, create_pipeline(config)


def _setup_or_exit(ctx: click.Context, **arguments: Any) -> tuple[WatchConfig, IGenerationPipeline]:
    try:
        return prepare(**arguments)
    except (BaseError, ValidationError) as e:
        err_console.print(f"Error: {e}", markup=False, style="red")
        ctx.exit(EXIT_SETUP_ERROR)


@click.group()
@click.version_option(__version__, prog_name="watch-rebuild")
def main():
    """Regenerate an output directory from its sources, once or on every change."""


@main.command()
@pipeline_arguments
@click.pass_context
def generate(ctx: click.Context, **arguments: Any):
    """Run the generation pipeline once."""
    config, pipeline = _setup_or_exit(ctx, **arguments)

    try:
        result = pipeline.run(*config.get_pipeline_arguments())
    except Exception as e:
        logger.exception("Pipeline %s raised", pipeline.description)
        err_console.print(f"Generation failed: {e}", markup=False, style="red")
        ctx.exit(EXIT_FAILURE)

    if not result.success:
        err_console.print(f"Generation failed: {result.error}", markup=False, style="red")
        ctx.exit(EXIT_FAILURE)


@main.command()
@pipeline_arguments
@click.pass_context
def watch(ctx: click.Context, **arguments: Any):
    """
    Generate, then regenerate whenever the input directory changes.

    Stops cleanly on Ctrl+C or SIGTERM, after any running rebuild finishes.
    """
    config, pipeline = _setup_or_exit(ctx, **arguments)

    session = WatchSession(config, pipeline)
    try:
        exit_code = asyncio.run(session.run())
    except MonitoringError as e:
        err_console.print(f"Cannot watch {config.input_dir}: {e}", markup=False, style="red")
        ctx.exit(EXIT_SETUP_ERROR)
    except ShutdownError as e:
        # asyncio.run has already waited for the pipeline thread to finish
        err_console.print(f"Rebuild outlived the shutdown timeout: {e}", markup=False, style="red")
        ctx.exit(EXIT_FAILURE)
    except KeyboardInterrupt:
        # Platforms without loop signal handlers
        exit_code = 0

    ctx.exit(exit_code)


if __name__ == '__main__':
    main()
