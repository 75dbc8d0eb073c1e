"""Base release controller."""

from abc import ABC, abstractmethod
from contextlib import contextmanager
from typing import Any, Iterator

from relctl.config import ReleaseConfig
from relctl.core.exceptions import HealthCheckFailedError, RelCtlError
from relctl.core.logging import release_logger
from relctl.release.health import HealthGate
from relctl.release.models import (
    HealthStatus,
    OperationResult,
    Outcome,
    ReleaseState,
    VersionTarget,
)
from relctl.release.state import ReleaseStateStore


class ReleaseController(ABC):
    """Abstract base class for release strategy controllers."""

    def __init__(
        self,
        k8s_client: Any,
        store: ReleaseStateStore,
        config: ReleaseConfig,
        namespace: str,
        health_gate: HealthGate | None = None,
    ):
        """Initialize controller.

        Args:
            k8s_client: Orchestration client
            store: Release state store
            config: Release configuration of the managed service
            namespace: Namespace of the managed service
            health_gate: Health gate, built from the client when omitted
        """
        self._k8s = k8s_client
        self._store = store
        self._config = config
        self._namespace = namespace
        self._health = health_gate or HealthGate(k8s_client, config)
        self._logger = release_logger(self.strategy_name, namespace, self.service)

    @property
    @abstractmethod
    def strategy_name(self) -> str:
        """Get strategy name."""
        pass

    @property
    def service(self) -> str:
        return self._config.get_service()

    @contextmanager
    def _locked(self) -> Iterator[None]:
        with self._store.lock(self._namespace, self.service):
            yield

    def _load(self, create: bool = True) -> ReleaseState:
        return self._store.load(self._namespace, self.service, create=create)

    def _deployment(self, target: VersionTarget) -> str:
        return self._config.deployment_name(target.value)

    @contextmanager
    def _stage(self, result: OperationResult, name: str, message: str = "") -> Iterator[None]:
        """Record a stage as succeeded, or as failed and re-raise."""
        self._logger.info(f"Stage {name} started")
        try:
            yield
        except RelCtlError as e:
            result.add_stage(name, False, str(e))
            self._logger.error(f"Stage {name} failed", error=str(e))
            raise
        result.add_stage(name, True, message)

    def _fail(self, result: OperationResult, phase: str, error: RelCtlError) -> OperationResult:
        """Mark an operation as failed at its current stage."""
        failed = result.failed_stages
        stage = failed[-1].name if failed else "load-state"
        result.outcome = Outcome.FAILED
        result.phase = phase
        result.error_type = error.error_type
        result.message = f"{stage} failed: {error.message}"
        self._logger.error("Operation failed", action=result.action.value, stage=stage)
        return result

    def _roll_out(
        self,
        result: OperationResult,
        target: VersionTarget,
        image: str,
        replicas: int,
    ) -> None:
        """Roll an image out to a target deployment.

        Raises:
            HealthCheckFailedError: If the rollout does not complete in time
        """
        name = self._deployment(target)

        with self._stage(result, "set-image", f"{name} image set to {image}"):
            self._k8s.set_image(name, image, container=self._config.container)

        with self._stage(result, "scale-up", f"{name} scaled to {replicas} replicas"):
            self._k8s.scale_deployment(name, replicas)

        with self._stage(result, "rollout", f"{name} rollout complete"):
            if not self._k8s.wait_for_rollout(
                name, self._config.rollout_timeout, self._config.poll_interval
            ):
                raise HealthCheckFailedError(
                    f"Rollout of {name} did not complete within {self._config.rollout_timeout}s",
                    target=target.value,
                    health=HealthStatus.TIMED_OUT.value,
                )

    def _require_healthy(self, result: OperationResult, target: VersionTarget) -> None:
        """Run the health gate on a target as a stage."""
        with self._stage(result, "health-check", f"{target.value} is healthy"):
            health = self._health.await_healthy(target, self._config.health_timeout)
            if health != HealthStatus.HEALTHY:
                raise HealthCheckFailedError(
                    f"{target.value} is {health.value}",
                    target=target.value,
                    health=health.value,
                )
