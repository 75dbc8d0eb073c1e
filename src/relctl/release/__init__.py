"""Release strategies: blue-green and canary controllers behind a dispatcher."""

from relctl.release.dispatcher import StrategyDispatcher, validate_request
from relctl.release.health import HealthGate
from relctl.release.models import (
    CANARY_STAGES,
    Action,
    Color,
    HealthStatus,
    OperationResult,
    Outcome,
    ReleaseState,
    VersionTarget,
)
from relctl.release.state import ReleaseStateStore

__all__ = [
    "CANARY_STAGES",
    "Action",
    "Color",
    "HealthGate",
    "HealthStatus",
    "OperationResult",
    "Outcome",
    "ReleaseState",
    "ReleaseStateStore",
    "StrategyDispatcher",
    "VersionTarget",
    "validate_request",
]
