"""Canary release controller."""

from relctl.core.exceptions import InvalidInputError, RelCtlError, StateError
from relctl.release.models import (
    CANARY_STAGES,
    Action,
    CanaryPhase,
    OperationResult,
    Outcome,
    ReleaseState,
    VersionTarget,
    utcnow,
)
from relctl.release.strategies.base import ReleaseController


def validate_weight(weight: int) -> int:
    """Reject weights that are not a ladder stage."""
    if isinstance(weight, bool) or not isinstance(weight, int) or weight not in CANARY_STAGES:
        raise InvalidInputError(
            f"Invalid canary weight {weight!r}; must be one of {list(CANARY_STAGES)}",
            parameter="weight",
        )
    return weight


def phase_for_weight(weight: int) -> CanaryPhase:
    if weight == 0:
        return CanaryPhase.DISABLED
    if weight == CANARY_STAGES[-1]:
        return CanaryPhase.PROMOTED
    return CanaryPhase.MONITORING


class CanaryController(ReleaseController):
    """Weighted canary traffic through the fixed ladder 0, 10, 25, 50, 100."""

    @property
    def strategy_name(self) -> str:
        return "canary"

    @property
    def ingress(self) -> str:
        return self._config.get_ingress()

    def _live_weight(self) -> int | None:
        """Weight currently on the ingress; None when the annotation is not a number."""
        value = self._k8s.get_ingress_annotation(self.ingress, self._config.canary_annotation)
        if value is None or value == "":
            return 0
        try:
            return int(value)
        except (TypeError, ValueError):
            return None

    def _read_live_weight(self, result: OperationResult) -> int | None:
        with self._stage(result, "read-weight", "ingress canary weight read"):
            return self._live_weight()

    def _apply_weight(
        self,
        result: OperationResult,
        state: ReleaseState,
        weight: int,
        live_weight: int | None,
    ) -> ReleaseState:
        """Annotate the ingress and persist the new weight; no-op if already there."""
        if live_weight == weight and state.canary_weight == weight:
            result.add_stage("annotate-ingress", True, f"already at {weight}%", skipped=True)
            self._logger.info(f"Canary already at {weight}%")
            return state

        with self._stage(result, "annotate-ingress", f"{self.ingress} canary weight {weight}%"):
            self._k8s.annotate_ingress(self.ingress, self._config.canary_annotation, str(weight))

        new_state = state.with_weight(weight)
        new_state.last_transition_time = utcnow()

        with self._stage(result, "persist", f"canary weight recorded as {weight}%"):
            self._store.save(new_state)

        return new_state

    def deploy(self, image: str) -> OperationResult:
        """Stage a canary image and open it to the first ladder stage.

        Args:
            image: Container image

        Returns:
            OperationResult; on failure the weight is left untouched

        Raises:
            InvalidInputError: If the current canary still receives traffic
        """
        result = OperationResult(action=Action.CANARY_DEPLOY, phase=CanaryPhase.DISABLED.value)
        phase = CanaryPhase.DEPLOYING

        with self._locked():
            try:
                state = self._load(create=False)
                result.before = state.to_dict()
                result.after = state.to_dict()

                live_weight = self._read_live_weight(result)
                if state.canary_weight != 0 or live_weight != 0:
                    share = f"{live_weight}%" if live_weight is not None else "an unknown share"
                    raise InvalidInputError(
                        f"Canary is receiving {share} of traffic "
                        f"(recorded {state.canary_weight}%); roll back first",
                        parameter="image",
                    )

                self._logger.info(f"Deploying canary {image}")
                self._roll_out(result, VersionTarget.CANARY, image, self._config.canary_replicas)
                self._require_healthy(result, VersionTarget.CANARY)

                phase = CanaryPhase.PROMOTING
                state = self._apply_weight(result, state, CANARY_STAGES[1], live_weight)

            except InvalidInputError:
                raise
            except RelCtlError as e:
                self._fail(result, CanaryPhase.FAILED.value, e)
                result.details["failed_in"] = phase.value
                return result

        result.after = state.to_dict()
        result.phase = CanaryPhase.MONITORING.value
        result.message = f"Canary {image} is receiving {state.canary_weight}% of traffic"
        return result

    def set_weight(self, weight: int) -> OperationResult:
        """Set the canary weight to a ladder stage.

        Args:
            weight: One of 0, 10, 25, 50, 100

        Returns:
            OperationResult

        Raises:
            InvalidInputError: If weight is not a ladder stage
        """
        validate_weight(weight)
        result = OperationResult(action=Action.CANARY_SET_WEIGHT, phase=CanaryPhase.PROMOTING.value)

        with self._locked():
            try:
                state = self._load()
                result.before = state.to_dict()
                state = self._apply_weight(result, state, weight, self._read_live_weight(result))
            except RelCtlError as e:
                self._fail(result, CanaryPhase.FAILED.value, e)
                return result

        result.after = state.to_dict()
        result.phase = phase_for_weight(weight).value
        if result.stages and result.stages[-1].skipped:
            result.message = f"Canary weight already {weight}%"
        else:
            result.message = f"Canary weight set to {weight}%"
        return result

    def promote(self) -> OperationResult:
        """Advance the canary exactly one ladder stage.

        Returns:
            OperationResult; already_at_state once the canary has 100%
        """
        result = OperationResult(action=Action.CANARY_PROMOTE, phase=CanaryPhase.PROMOTING.value)

        with self._locked():
            try:
                state = self._load()
                result.before = state.to_dict()

                with self._stage(result, "verify-weight", "ingress matches recorded weight"):
                    live_weight = self._live_weight()
                    if live_weight != state.canary_weight:
                        raise StateError(
                            f"Weight drift: recorded {state.canary_weight}%, ingress reports "
                            f"{live_weight if live_weight is not None else 'an invalid value'}; "
                            "run canary-set-weight to reconcile",
                        )

                if state.is_fully_promoted:
                    result.outcome = Outcome.ALREADY_AT_STATE
                    result.phase = CanaryPhase.PROMOTED.value
                    result.after = state.to_dict()
                    result.message = (
                        "Canary already receives 100% of traffic; finish the release by "
                        "deploying the canary image to the stable color"
                    )
                    self._logger.warning("Canary already fully promoted")
                    return result

                next_weight = CANARY_STAGES[state.promotion_stage + 1]
                self._require_healthy(result, VersionTarget.CANARY)
                state = self._apply_weight(result, state, next_weight, live_weight)

            except RelCtlError as e:
                self._fail(result, CanaryPhase.FAILED.value, e)
                return result

        result.after = state.to_dict()
        result.phase = phase_for_weight(state.canary_weight).value
        result.message = (
            f"Canary promoted from {result.before['canary_weight']}% to {state.canary_weight}%"
        )
        return result

    def rollback(self) -> OperationResult:
        """Send all traffic back to stable and scale the canary to zero.

        Every step runs even if an earlier one fails, and no health check is
        consulted. The recorded weight always ends at 0.

        Returns:
            OperationResult; partial_rollback if any step failed
        """
        result = OperationResult(action=Action.CANARY_ROLLBACK, phase=CanaryPhase.ROLLED_BACK.value)
        state: ReleaseState | None = None
        annotated = False

        with self._locked():
            try:
                state = self._load()
                result.before = state.to_dict()
            except RelCtlError as e:
                result.add_stage("load-state", False, str(e))
                self._logger.error("Could not load release state", error=str(e))

            annotated = self._annotate_with_retries(result)

            canary_name = self._deployment(VersionTarget.CANARY)
            try:
                with self._stage(result, "scale-down", f"{canary_name} scaled to 0"):
                    self._k8s.scale_deployment(canary_name, 0)
            except RelCtlError:
                pass  # recorded as a failed stage

            if state is not None:
                new_state = state.with_weight(0)
                if annotated:
                    new_state.last_transition_time = utcnow()
                try:
                    with self._stage(result, "persist", "canary weight recorded as 0%"):
                        self._store.save(new_state)
                    state = new_state
                except RelCtlError:
                    pass  # recorded as a failed stage
            else:
                result.add_stage("persist", False, "release state unavailable", skipped=True)

        result.after = state.to_dict() if state is not None else None
        failed = [s.name for s in result.stages if not s.success]
        if failed:
            succeeded = [s.name for s in result.stages if s.success]
            result.outcome = Outcome.PARTIAL_ROLLBACK
            result.error_type = "PartialRollback"
            result.message = (
                f"Rollback incomplete: failed {', '.join(failed)}; "
                f"succeeded {', '.join(succeeded) or 'nothing'}"
            )
            self._logger.error("Partial rollback", failed=failed)
        else:
            result.message = "Canary rolled back: 0% traffic, scaled to 0"
        return result

    def _annotate_with_retries(self, result: OperationResult) -> bool:
        """Set the ingress weight to 0, retrying up to rollback_retries times."""
        attempts = self._config.rollback_retries
        last_error: RelCtlError | None = None

        for attempt in range(1, attempts + 1):
            try:
                self._k8s.annotate_ingress(self.ingress, self._config.canary_annotation, "0")
            except RelCtlError as e:
                last_error = e
                self._logger.warning("Annotation attempt failed", attempt=attempt, error=str(e))
                continue
            result.add_stage("annotate-ingress", True, f"{self.ingress} canary weight 0% (attempt {attempt})")
            return True

        result.add_stage(
            "annotate-ingress",
            False,
            f"failed after {attempts} attempts: {last_error}",
        )
        return False
