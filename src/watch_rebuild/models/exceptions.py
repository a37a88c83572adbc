"""
Custom exception classes for the watch-rebuild orchestrator.

Provides specific exception types for the failure modes of a watch session
(setup, pipeline invocation, shutdown) so callers can decide which errors
end the process and which are recovered locally.
"""

from typing import Any


class BaseError(Exception):
    """
    Base exception class for all watch-rebuild errors.

    All custom exceptions in the system should inherit from this base class
    to enable consistent error handling and logging.
    """

    def __init__(
        self,
        message: str,
        error_code: str | None = None,
        context: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ):
        """
        Initialize the error.

        Args:
            message: Human-readable error description
            error_code: Optional error code for programmatic handling
            context: Optional dictionary with error context information
            cause: Optional underlying exception that caused this error
        """
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.context = context or {}
        self.cause = cause

    def __str__(self) -> str:
        """String representation including error code if present."""
        if self.error_code:
            return f"[{self.error_code}] {self.message}"
        return self.message

    def __repr__(self) -> str:
        """Detailed representation for debugging."""
        return (
            f"{self.__class__.__name__}("
            f"message='{self.message}', "
            f"error_code='{self.error_code}', "
            f"context={self.context})"
        )


class ConfigurationError(BaseError):
    """Raised when there are configuration or settings issues."""

    def __init__(
        self,
        message: str,
        config_key: str | None = None,
        expected_type: str | None = None,
        actual_value: Any | None = None,
    ):
        context = {}
        if config_key:
            context["config_key"] = config_key
        if expected_type:
            context["expected_type"] = expected_type
        if actual_value is not None:
            context["actual_value"] = str(actual_value)

        super().__init__(message, error_code="CONFIG_ERROR", context=context)


class MonitoringError(BaseError):
    """Raised when file monitoring operations fail."""

    def __init__(
        self,
        message: str,
        path: str | None = None,
        operation: str | None = None,
        underlying_error: Exception | None = None,
    ):
        context = {}
        if path:
            context["path"] = path
        if operation:
            context["operation"] = operation

        super().__init__(
            message,
            error_code="MONITORING_ERROR",
            context=context,
            cause=underlying_error,
        )


class PipelineError(BaseError):
    """Raised when a generation pipeline cannot be loaded or invoked."""

    def __init__(
        self,
        message: str,
        pipeline: str | None = None,
        stage: str | None = None,
        exit_code: int | None = None,
        underlying_error: Exception | None = None,
    ):
        context = {}
        if pipeline:
            context["pipeline"] = pipeline
        if stage:
            context["stage"] = stage
        if exit_code is not None:
            context["exit_code"] = exit_code

        super().__init__(
            message,
            error_code="PIPELINE_ERROR",
            context=context,
            cause=underlying_error,
        )


class InitializationError(BaseError):
    """Raised when a watch session cannot be initialized."""

    def __init__(
        self,
        message: str,
        component: str | None = None,
        initialization_stage: str | None = None,
        underlying_error: Exception | None = None,
    ):
        context = {}
        if component:
            context["component"] = component
        if initialization_stage:
            context["initialization_stage"] = initialization_stage

        super().__init__(
            message,
            error_code="INITIALIZATION_ERROR",
            context=context,
            cause=underlying_error,
        )


class ShutdownError(BaseError):
    """Raised when a watch session cannot shut down cleanly."""

    def __init__(
        self,
        message: str,
        component: str | None = None,
        shutdown_stage: str | None = None,
        underlying_error: Exception | None = None,
    ):
        context = {}
        if component:
            context["component"] = component
        if shutdown_stage:
            context["shutdown_stage"] = shutdown_stage

        super().__init__(
            message,
            error_code="SHUTDOWN_ERROR",
            context=context,
            cause=underlying_error,
        )


# Convenience functions for common error scenarios
def raise_config_error(
    message: str,
    config_key: str,
    expected_type: str | None = None,
    actual_value: Any | None = None,
) -> None:
    """Raise a configuration error with context."""
    raise ConfigurationError(
        message=message,
        config_key=config_key,
        expected_type=expected_type,
        actual_value=actual_value,
    )


def raise_pipeline_error(
    message: str,
    pipeline: str,
    stage: str,
    underlying_error: Exception | None = None,
) -> None:
    """Raise a pipeline error with context."""
    raise PipelineError(
        message=message,
        pipeline=pipeline,
        stage=stage,
        underlying_error=underlying_error,
    )
