"""Strategy dispatcher: the single validation boundary for release actions."""

from dataclasses import dataclass, field
from typing import Any, Callable

from relctl.config import ReleaseConfig
from relctl.core.exceptions import InvalidInputError, RelCtlError
from relctl.core.logging import StructuredLogger
from relctl.release.health import HealthGate
from relctl.release.models import (
    CANARY_STAGES,
    Action,
    Color,
    OperationResult,
    Outcome,
    VersionTarget,
    utcnow,
)
from relctl.release.state import ReleaseStateStore
from relctl.release.strategies import BlueGreenController, CanaryController

logger = StructuredLogger(__name__)


def _parse_color(value: Any) -> Color:
    try:
        return Color(str(value).strip().lower())
    except ValueError:
        raise InvalidInputError(
            f"Invalid target {value!r}; must be one of {[c.value for c in Color]}",
            parameter="target",
        )


def _parse_target(value: Any) -> VersionTarget:
    try:
        return VersionTarget(str(value).strip().lower())
    except ValueError:
        raise InvalidInputError(
            f"Invalid target {value!r}; must be one of {[t.value for t in VersionTarget]}",
            parameter="target",
        )


def _parse_image(value: Any) -> str:
    image = str(value).strip() if value is not None else ""
    if not image or any(c.isspace() for c in image):
        raise InvalidInputError(f"Invalid image {value!r}", parameter="image")
    return image


def _parse_weight(value: Any) -> int:
    if isinstance(value, bool):
        raise InvalidInputError(f"Invalid canary weight {value!r}", parameter="weight")
    try:
        weight = int(str(value).strip())
    except ValueError:
        raise InvalidInputError(
            f"Invalid canary weight {value!r}; must be one of {list(CANARY_STAGES)}",
            parameter="weight",
        )
    if weight not in CANARY_STAGES:
        raise InvalidInputError(
            f"Invalid canary weight {weight}; must be one of {list(CANARY_STAGES)}",
            parameter="weight",
        )
    return weight


# action -> (required params, optional params) with their parsers
_PARAMETERS: dict[Action, tuple[dict[str, Callable[[Any], Any]], dict[str, Callable[[Any], Any]]]] = {
    Action.STATUS: ({}, {}),
    Action.BLUE_GREEN_DEPLOY: ({"target": _parse_color, "image": _parse_image}, {}),
    Action.BLUE_GREEN_SWITCH: ({"target": _parse_color}, {}),
    Action.CANARY_DEPLOY: ({"image": _parse_image}, {}),
    Action.CANARY_SET_WEIGHT: ({"weight": _parse_weight}, {}),
    Action.CANARY_PROMOTE: ({}, {}),
    Action.CANARY_ROLLBACK: ({}, {}),
    Action.HEALTH_CHECK: ({}, {"target": _parse_target}),
}


@dataclass
class ReleaseRequest:
    """A validated action with typed parameters."""

    action: Action
    params: dict[str, Any] = field(default_factory=dict)


def validate_request(action: str | Action, params: dict[str, Any] | None = None) -> ReleaseRequest:
    """Validate an action name and its parameters.

    Args:
        action: Action name, e.g. "blue-green-switch"
        params: Raw parameters; None values count as absent

    Returns:
        ReleaseRequest with parsed parameters

    Raises:
        InvalidInputError: On unknown action, missing, unexpected or out-of-domain parameters
    """
    try:
        parsed_action = Action(action)
    except ValueError:
        raise InvalidInputError(
            f"Unknown action {action!r}; must be one of {[a.value for a in Action]}",
            parameter="action",
        )

    raw = {k: v for k, v in (params or {}).items() if v is not None}
    required, optional = _PARAMETERS[parsed_action]

    unexpected = sorted(set(raw) - set(required) - set(optional))
    if unexpected:
        raise InvalidInputError(
            f"Unexpected parameter(s) for {parsed_action.value}: {', '.join(unexpected)}",
            parameter=unexpected[0],
        )

    parsed: dict[str, Any] = {}
    for name, parser in required.items():
        if name not in raw:
            raise InvalidInputError(
                f"Missing required parameter '{name}' for {parsed_action.value}",
                parameter=name,
            )
        parsed[name] = parser(raw[name])
    for name, parser in optional.items():
        if name in raw:
            parsed[name] = parser(raw[name])

    return ReleaseRequest(action=parsed_action, params=parsed)


class StrategyDispatcher:
    """Route validated actions to the blue-green or canary controller."""

    def __init__(
        self,
        k8s_client: Any,
        store: ReleaseStateStore,
        config: ReleaseConfig,
        namespace: str,
        health_gate: HealthGate | None = None,
    ):
        self._k8s = k8s_client
        self._store = store
        self._config = config
        self._namespace = namespace
        self._health = health_gate or HealthGate(k8s_client, config)
        self._blue_green = BlueGreenController(
            k8s_client, store, config, namespace, health_gate=self._health
        )
        self._canary = CanaryController(
            k8s_client, store, config, namespace, health_gate=self._health
        )

    @property
    def blue_green(self) -> BlueGreenController:
        return self._blue_green

    @property
    def canary(self) -> CanaryController:
        return self._canary

    def dispatch(self, action: str | Action, params: dict[str, Any] | None = None) -> OperationResult:
        """Validate and run one action.

        Raises:
            InvalidInputError: Before any state or cluster access, on bad input
        """
        request = validate_request(action, params)
        logger.info("Dispatching", action=request.action.value, **request.params)

        p = request.params
        match request.action:
            case Action.STATUS:
                return self.status()
            case Action.BLUE_GREEN_DEPLOY:
                return self._blue_green.deploy(p["target"], p["image"])
            case Action.BLUE_GREEN_SWITCH:
                return self._blue_green.switch(p["target"])
            case Action.CANARY_DEPLOY:
                return self._canary.deploy(p["image"])
            case Action.CANARY_SET_WEIGHT:
                return self._canary.set_weight(p["weight"])
            case Action.CANARY_PROMOTE:
                return self._canary.promote()
            case Action.CANARY_ROLLBACK:
                return self._canary.rollback()
            case Action.HEALTH_CHECK:
                return self.health_check(p.get("target"))

    def status(self) -> OperationResult:
        """Recorded release state next to what the cluster reports."""
        service = self._config.get_service()
        result = OperationResult(action=Action.STATUS, phase="observed")
        state = self._store.load(self._namespace, service, create=False)
        result.before = state.to_dict()
        result.after = state.to_dict()

        live: dict[str, Any] = {}
        errors: list[str] = []

        try:
            live["selector"] = self._k8s.get_service_selector(service, self._config.selector_key)
        except RelCtlError as e:
            errors.append(f"service {service}: {e.message}")
        try:
            live["canary_annotation"] = self._k8s.get_ingress_annotation(
                self._config.get_ingress(), self._config.canary_annotation
            )
        except RelCtlError as e:
            errors.append(f"ingress {self._config.get_ingress()}: {e.message}")

        deployments = []
        for target in VersionTarget:
            name = self._config.deployment_name(target.value)
            entry: dict[str, Any] = {"target": target.value, "description": target.description}
            try:
                entry.update(self._k8s.get_deployment(name))
            except RelCtlError as e:
                entry.update({"name": name, "error": e.message})
                errors.append(f"deployment {name}: {e.message}")
            deployments.append(entry)
        live["deployments"] = deployments

        drift = []
        if "selector" in live and live["selector"] != state.active_color.value:
            drift.append(
                f"service selector is {live['selector']!r}, recorded active color is {state.active_color.value}"
            )
        if "canary_annotation" in live and str(live["canary_annotation"] or 0) != str(state.canary_weight):
            drift.append(
                f"ingress weight is {live['canary_annotation']!r}, recorded weight is {state.canary_weight}"
            )

        result.details = {"live": live, "drift": drift, "errors": errors}
        if state.last_transition_time:
            result.details["since_transition_seconds"] = (
                utcnow() - state.last_transition_time
            ).total_seconds()

        if errors:
            result.outcome = Outcome.FAILED
            result.error_type = "OrchestratorUnavailable"
            result.message = "Live cluster state partially unavailable"
        else:
            result.message = (
                f"{state.active_color.value} active, canary at {state.canary_weight}%"
            )
        return result

    def health_check(self, target: VersionTarget | None = None) -> OperationResult:
        """Per-pod readiness of one target, or a report over all targets."""
        result = OperationResult(action=Action.HEALTH_CHECK, phase="observed")
        targets = [target] if target else list(VersionTarget)
        reports = []

        for t in targets:
            try:
                report = self._health.snapshot(t)
            except RelCtlError as e:
                result.add_stage(t.value, False, e.message)
                result.outcome = Outcome.FAILED
                result.error_type = e.error_type
                continue
            result.add_stage(t.value, True, f"{len(report['pods'])} pod(s), healthy={report['healthy']}")
            reports.append(report)

        result.details = {"targets": reports}

        if result.outcome == Outcome.FAILED:
            result.message = "Pod readiness could not be read"
        elif target is not None and not reports[0]["healthy"]:
            result.outcome = Outcome.FAILED
            result.error_type = "HealthCheckFailed"
            result.message = f"{target.value} is not healthy"
        else:
            healthy = [r["target"] for r in reports if r["healthy"]]
            result.message = f"Healthy: {', '.join(healthy) or 'none'}"
        return result
