"""Core utilities and shared components for relctl."""

# Note: Import context lazily to avoid circular imports
# Use: from relctl.core.context import RelCtlContext, pass_context
from relctl.core.exceptions import (
    RelCtlError,
    ConfigError,
    InvalidInputError,
    K8sError,
    OrchestratorUnavailableError,
    HealthCheckFailedError,
    StateError,
)
from relctl.core.output import OutputFormatter

__all__ = [
    "RelCtlError",
    "ConfigError",
    "InvalidInputError",
    "K8sError",
    "OrchestratorUnavailableError",
    "HealthCheckFailedError",
    "StateError",
    "OutputFormatter",
]
