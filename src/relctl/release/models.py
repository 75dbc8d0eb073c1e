"""Release data models."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from relctl.core.exceptions import StateError

# Canary traffic ladder (percent). Promotion moves exactly one index up.
CANARY_STAGES: tuple[int, ...] = (0, 10, 25, 50, 100)


class VersionTarget(str, Enum):
    """Deployable variants of a managed service."""

    BLUE = "blue"
    GREEN = "green"
    CANARY = "canary"

    @property
    def description(self) -> str:
        return _TARGET_DESCRIPTIONS[self]


_TARGET_DESCRIPTIONS = {
    VersionTarget.BLUE: "Stable production environment",
    VersionTarget.GREEN: "Pre-production testing environment",
    VersionTarget.CANARY: "Experimental release",
}


class Color(str, Enum):
    """Blue-green variants."""

    BLUE = "blue"
    GREEN = "green"

    @property
    def other(self) -> "Color":
        return Color.GREEN if self is Color.BLUE else Color.BLUE

    @property
    def target(self) -> VersionTarget:
        return VersionTarget(self.value)


class Action(str, Enum):
    """Actions recognized by the strategy dispatcher."""

    STATUS = "status"
    BLUE_GREEN_DEPLOY = "blue-green-deploy"
    BLUE_GREEN_SWITCH = "blue-green-switch"
    CANARY_DEPLOY = "canary-deploy"
    CANARY_SET_WEIGHT = "canary-set-weight"
    CANARY_PROMOTE = "canary-promote"
    CANARY_ROLLBACK = "canary-rollback"
    HEALTH_CHECK = "health-check"


class HealthStatus(str, Enum):
    """Health gate verdicts."""

    HEALTHY = "healthy"
    UNHEALTHY = "unhealthy"
    TIMED_OUT = "timed_out"


class Outcome(str, Enum):
    """Operation outcomes."""

    SUCCEEDED = "succeeded"
    FAILED = "failed"
    ALREADY_AT_STATE = "already_at_state"
    PARTIAL_ROLLBACK = "partial_rollback"


class BlueGreenPhase(str, Enum):
    """Blue-green controller states."""

    IDLE = "idle"
    DEPLOYING = "deploying"
    HEALTH_CHECKING = "health_checking"
    SWITCHING = "switching"
    SCALING_DOWN = "scaling_down"
    COMPLETE = "complete"
    FAILED = "failed"


class CanaryPhase(str, Enum):
    """Canary controller states."""

    DISABLED = "disabled"
    DEPLOYING = "deploying"
    PROMOTING = "promoting"
    MONITORING = "monitoring"
    PROMOTED = "promoted"
    ROLLED_BACK = "rolled_back"
    FAILED = "failed"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class ReleaseState:
    """Persisted release state of one managed service."""

    service: str
    namespace: str = "default"
    active_color: Color = Color.BLUE
    canary_weight: int = 0
    promotion_stage: int = 0
    last_transition_time: datetime | None = None

    def __post_init__(self) -> None:
        self.validate()

    def validate(self) -> None:
        """Check the state invariants.

        Raises:
            StateError: If the record is inconsistent
        """
        if not isinstance(self.active_color, Color):
            raise StateError(f"Invalid active color: {self.active_color!r}")
        if self.canary_weight not in CANARY_STAGES:
            raise StateError(f"Canary weight {self.canary_weight} is not a ladder stage")
        if not 0 <= self.promotion_stage < len(CANARY_STAGES):
            raise StateError(f"Promotion stage {self.promotion_stage} out of range")
        if CANARY_STAGES[self.promotion_stage] != self.canary_weight:
            raise StateError(
                f"Promotion stage {self.promotion_stage} does not match weight {self.canary_weight}"
            )

    @property
    def canary_enabled(self) -> bool:
        return self.canary_weight > 0

    @property
    def is_fully_promoted(self) -> bool:
        return self.promotion_stage == len(CANARY_STAGES) - 1

    def with_weight(self, weight: int) -> "ReleaseState":
        """Copy of this state at a ladder weight."""
        return ReleaseState(
            service=self.service,
            namespace=self.namespace,
            active_color=self.active_color,
            canary_weight=weight,
            promotion_stage=CANARY_STAGES.index(weight),
            last_transition_time=self.last_transition_time,
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "service": self.service,
            "namespace": self.namespace,
            "active_color": self.active_color.value,
            "canary_weight": self.canary_weight,
            "canary_enabled": self.canary_enabled,
            "promotion_stage": self.promotion_stage,
            "last_transition_time": (
                self.last_transition_time.isoformat() if self.last_transition_time else None
            ),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ReleaseState":
        """Create from dictionary."""
        try:
            service = data["service"]
            active_color = Color(data.get("active_color", "blue"))
            weight = int(data.get("canary_weight", 0))
            stage = int(data.get("promotion_stage", 0))
            transition = data.get("last_transition_time")
            last_transition_time = datetime.fromisoformat(transition) if transition else None
        except (KeyError, TypeError, ValueError) as e:
            raise StateError(f"Corrupt release state: {e!r}")

        return cls(
            service=service,
            namespace=data.get("namespace", "default"),
            active_color=active_color,
            canary_weight=weight,
            promotion_stage=stage,
            last_transition_time=last_transition_time,
        )


@dataclass
class StageResult:
    """Result of one step within an operation."""

    name: str
    success: bool
    message: str = ""
    skipped: bool = False

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "name": self.name,
            "success": self.success,
            "skipped": self.skipped,
            "message": self.message,
        }


@dataclass
class OperationResult:
    """Structured result of a dispatcher action."""

    action: Action
    outcome: Outcome = Outcome.SUCCEEDED
    phase: str = ""
    message: str = ""
    error_type: str | None = None
    before: dict[str, Any] | None = None
    after: dict[str, Any] | None = None
    stages: list[StageResult] = field(default_factory=list)
    details: dict[str, Any] = field(default_factory=dict)

    @property
    def succeeded(self) -> bool:
        """True when a pipeline may proceed to its next stage."""
        return self.outcome in (Outcome.SUCCEEDED, Outcome.ALREADY_AT_STATE)

    @property
    def failed_stages(self) -> list[StageResult]:
        return [s for s in self.stages if not s.success and not s.skipped]

    def add_stage(
        self,
        name: str,
        success: bool,
        message: str = "",
        skipped: bool = False,
    ) -> StageResult:
        """Record a stage."""
        stage = StageResult(name=name, success=success, message=message, skipped=skipped)
        self.stages.append(stage)
        return stage

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "action": self.action.value,
            "outcome": self.outcome.value,
            "phase": self.phase,
            "message": self.message,
            "error_type": self.error_type,
            "before": self.before,
            "after": self.after,
            "stages": [s.to_dict() for s in self.stages],
            "details": self.details,
        }
