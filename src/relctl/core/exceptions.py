"""Custom exceptions for relctl."""

from typing import Any


class RelCtlError(Exception):
    """Base exception for all relctl errors."""

    # Name reported in OperationResult.error_type
    error_type = "Error"

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} - {self.details}"
        return self.message


class ConfigError(RelCtlError):
    """Configuration-related errors."""

    error_type = "ConfigError"


class InvalidInputError(RelCtlError):
    """Bad action or parameter, rejected before touching any state."""

    error_type = "InvalidInput"

    def __init__(
        self,
        message: str,
        parameter: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message, details)
        self.parameter = parameter


class K8sError(RelCtlError):
    """Kubernetes API errors."""

    error_type = "K8sError"

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message, details)
        self.status_code = status_code


class OrchestratorUnavailableError(K8sError):
    """A control-plane call failed or timed out. Safe to retry the invocation."""

    error_type = "OrchestratorUnavailable"


class AuthenticationError(RelCtlError):
    """Authentication/authorization errors."""

    error_type = "AuthenticationError"


class HealthCheckFailedError(RelCtlError):
    """A version target never became ready."""

    error_type = "HealthCheckFailed"

    def __init__(
        self,
        message: str,
        target: str | None = None,
        health: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message, details)
        self.target = target
        self.health = health


class StateError(RelCtlError):
    """Release state could not be read, written or verified."""

    error_type = "StateError"
