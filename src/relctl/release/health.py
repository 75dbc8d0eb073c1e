"""Readiness gate for version targets."""

import time
from typing import Any, Callable

from relctl.config import ReleaseConfig
from relctl.core.logging import StructuredLogger
from relctl.release.models import HealthStatus, VersionTarget

logger = StructuredLogger(__name__)


def pods_healthy(pods: list[dict[str, Any]]) -> bool:
    """True when there is at least one pod and every pod is Running and Ready."""
    if not pods:
        return False
    return all(pod.get("phase") == "Running" and pod.get("ready") is True for pod in pods)


class HealthGate:
    """Poll pod readiness of a version target until healthy or out of time.

    Purely observational: the gate never changes cluster state, so it is safe
    to call as often as needed.
    """

    def __init__(
        self,
        k8s_client: Any,
        config: ReleaseConfig,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self._k8s = k8s_client
        self._config = config
        self._clock = clock
        self._sleep = sleep

    def await_healthy(
        self,
        target: VersionTarget,
        timeout_seconds: int | None = None,
    ) -> HealthStatus:
        """Wait for every pod of a target to be Running and Ready.

        Args:
            target: Version target whose pods are checked
            timeout_seconds: Upper bound on the wait, defaults to health_timeout

        Returns:
            HEALTHY, UNHEALTHY when no pods match at all, or TIMED_OUT

        Raises:
            OrchestratorUnavailableError: If pod readiness cannot be read
        """
        timeout = timeout_seconds if timeout_seconds is not None else self._config.health_timeout
        selector = self._config.label_selector(target.value)
        deadline = self._clock() + timeout
        log = logger.bind(target=target.value, selector=selector)

        while True:
            pods = self._k8s.get_pod_readiness(selector)

            if not pods:
                log.warning("No pods found for target")
                return HealthStatus.UNHEALTHY

            if pods_healthy(pods):
                log.info("Target is healthy", pods=len(pods))
                return HealthStatus.HEALTHY

            not_ready = [p.get("name") for p in pods if not pods_healthy([p])]
            remaining = deadline - self._clock()
            if remaining <= 0:
                log.warning("Timed out waiting for target", timeout=timeout, not_ready=not_ready)
                return HealthStatus.TIMED_OUT

            log.debug("Waiting for pods", not_ready=not_ready)
            self._sleep(min(self._config.poll_interval, remaining))

    def snapshot(self, target: VersionTarget) -> dict[str, Any]:
        """Single readiness poll of a target, without waiting."""
        pods = self._k8s.get_pod_readiness(self._config.label_selector(target.value))
        return {
            "target": target.value,
            "healthy": pods_healthy(pods),
            "pods": pods,
        }
