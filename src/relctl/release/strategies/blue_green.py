"""Blue-green release controller."""

from relctl.core.exceptions import InvalidInputError, RelCtlError
from relctl.release.models import (
    Action,
    BlueGreenPhase,
    Color,
    OperationResult,
    Outcome,
    utcnow,
)
from relctl.release.strategies.base import ReleaseController


class BlueGreenController(ReleaseController):
    """Two-version controller with an atomic selector cut-over.

    Nothing a client can observe changes before the target is proven healthy,
    and the previous color is only scaled down after the selector points away
    from it.
    """

    @property
    def strategy_name(self) -> str:
        return "blue-green"

    def deploy(self, target: Color, image: str) -> OperationResult:
        """Stage an image on the idle color without touching traffic.

        Args:
            target: Color to deploy to, must not be the active one
            image: Container image

        Returns:
            OperationResult, phase complete on success
        """
        result = OperationResult(action=Action.BLUE_GREEN_DEPLOY, phase=BlueGreenPhase.IDLE.value)
        phase = BlueGreenPhase.IDLE

        with self._locked():
            try:
                state = self._load(create=False)
                result.before = state.to_dict()
                result.after = state.to_dict()

                if target == state.active_color:
                    raise InvalidInputError(
                        f"{target.value} is the active color; deploy to {target.other.value} instead",
                        parameter="target",
                    )

                phase = BlueGreenPhase.DEPLOYING
                self._logger.info(f"Deploying {image} to {target.value}")
                self._roll_out(result, target.target, image, self._config.replicas)

                phase = BlueGreenPhase.HEALTH_CHECKING
                self._require_healthy(result, target.target)

            except InvalidInputError:
                raise
            except RelCtlError as e:
                self._fail(result, BlueGreenPhase.FAILED.value, e)
                result.details["failed_in"] = phase.value
                if result.before:
                    result.message = (
                        f"{result.message}; {result.before['active_color']} keeps serving all traffic"
                    )
                return result

        result.phase = BlueGreenPhase.COMPLETE.value
        result.message = (
            f"{image} staged on {target.value}; traffic still on {state.active_color.value}"
        )
        return result

    def switch(self, target: Color) -> OperationResult:
        """Cut traffic over to a healthy color, then scale the previous one down.

        Args:
            target: Color that should receive all traffic

        Returns:
            OperationResult; already_at_state when target is already active
        """
        result = OperationResult(action=Action.BLUE_GREEN_SWITCH, phase=BlueGreenPhase.IDLE.value)
        phase = BlueGreenPhase.IDLE
        cut_over = False

        with self._locked():
            try:
                state = self._load()
                result.before = state.to_dict()

                if target == state.active_color:
                    self._logger.warning(f"{target.value} is already active")
                    result.outcome = Outcome.ALREADY_AT_STATE
                    result.after = state.to_dict()
                    result.message = f"{target.value} is already the active color"
                    return result

                previous = state.active_color

                phase = BlueGreenPhase.HEALTH_CHECKING
                self._require_healthy(result, target.target)

                phase = BlueGreenPhase.SWITCHING
                with self._stage(result, "selector-patch", f"service routes to {target.value}"):
                    self._k8s.patch_service_selector(
                        self.service, self._config.selector_key, target.value
                    )
                cut_over = True
                state.active_color = target
                state.last_transition_time = utcnow()

                phase = BlueGreenPhase.SCALING_DOWN
                scale_down_error = None
                previous_name = self._deployment(previous.target)
                try:
                    with self._stage(result, "scale-down", f"{previous_name} scaled to 0"):
                        self._k8s.scale_deployment(previous_name, 0)
                except RelCtlError as e:
                    # Traffic has already moved; leftover replicas are harmless
                    scale_down_error = e

                with self._stage(result, "persist", f"active color recorded as {target.value}"):
                    self._store.save(state)

            except RelCtlError as e:
                self._fail(result, BlueGreenPhase.FAILED.value, e)
                result.details["failed_in"] = phase.value
                result.details["traffic_cut_over"] = cut_over
                if not cut_over:
                    result.message = f"{result.message}; traffic unchanged"
                else:
                    result.message = f"{result.message}; traffic IS routed to {target.value}"
                return result

        result.after = state.to_dict()
        result.phase = BlueGreenPhase.COMPLETE.value
        result.details["traffic_cut_over"] = True
        result.message = f"Traffic switched from {previous.value} to {target.value}"
        if scale_down_error is not None:
            result.message = (
                f"{result.message}; scale-down of previous color failed, "
                f"{previous_name} still has live replicas: {scale_down_error.message}"
            )
            self._logger.warning("Previous color left running", deployment=previous_name)
        return result
