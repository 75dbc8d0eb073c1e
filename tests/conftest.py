"""Pytest fixtures for relctl tests."""

import os
import re
from typing import Any, Generator

import pytest
from click.testing import CliRunner

from relctl.config import K8sConfig, ProfileConfig, RelCtlConfig, ReleaseConfig
from relctl.core.context import RelCtlContext
from relctl.core.exceptions import OrchestratorUnavailableError
from relctl.core.output import OutputFormat
from relctl.release.dispatcher import StrategyDispatcher
from relctl.release.health import HealthGate
from relctl.release.state import ReleaseStateStore
from relctl.release.strategies import BlueGreenController, CanaryController

NAMESPACE = "default"


def ready_pods(target: str, count: int = 2) -> list[dict[str, Any]]:
    """Pods of a target that are Running and Ready."""
    return [{"name": f"shop-{target}-{i}", "phase": "Running", "ready": True} for i in range(count)]


def unready_pods(target: str, count: int = 2) -> list[dict[str, Any]]:
    """Pods of a target that are Running but not Ready."""
    return [{"name": f"shop-{target}-{i}", "phase": "Running", "ready": False} for i in range(count)]


class FakeOrchestrator:
    """In-memory stand-in for K8sClient that records every call.

    Failures are injected per method name: a single exception fails every
    call, a list fails calls in order until it runs out.
    """

    READS = {"get_deployment", "get_service_selector", "get_ingress_annotation", "get_pod_readiness"}

    def __init__(self) -> None:
        self.calls: list[tuple[str, tuple[Any, ...]]] = []
        self.failures: dict[str, Any] = {}
        self.selector = "blue"
        self.annotations: dict[str, str] = {}
        self.rollout_complete = True
        self.deployments = {
            name: {"name": name, "replicas": 2, "ready_replicas": 2, "image": "shop:1.0"}
            for name in ("shop-blue", "shop-green", "shop-canary")
        }
        self.pods = {
            "blue": ready_pods("blue"),
            "green": ready_pods("green"),
            "canary": ready_pods("canary", 1),
        }

    def _record(self, method: str, *args: Any) -> None:
        self.calls.append((method, args))
        failure = self.failures.get(method)
        if isinstance(failure, list):
            if failure:
                raise failure.pop(0)
        elif failure is not None:
            raise failure

    @property
    def mutations(self) -> list[tuple[str, tuple[Any, ...]]]:
        return [c for c in self.calls if c[0] not in self.READS]

    def called(self, method: str) -> list[tuple[Any, ...]]:
        return [args for name, args in self.calls if name == method]

    def get_deployment(self, name: str) -> dict[str, Any]:
        self._record("get_deployment", name)
        if name not in self.deployments:
            raise OrchestratorUnavailableError(f"Failed to get deployment {name}: Not Found", status_code=404)
        return dict(self.deployments[name])

    def set_image(self, name: str, image: str, container: str | None = None) -> None:
        self._record("set_image", name, image)
        self.deployments[name]["image"] = image

    def scale_deployment(self, name: str, replicas: int) -> None:
        self._record("scale_deployment", name, replicas)
        self.deployments[name]["replicas"] = replicas

    def wait_for_rollout(self, name: str, timeout: int, poll_interval: int = 5) -> bool:
        self._record("wait_for_rollout", name)
        return self.rollout_complete

    def patch_service_selector(self, service: str, key: str, value: str) -> None:
        self._record("patch_service_selector", service, value)
        self.selector = value

    def get_service_selector(self, service: str, key: str) -> str | None:
        self._record("get_service_selector", service)
        return self.selector

    def annotate_ingress(self, ingress: str, key: str, value: str) -> None:
        self._record("annotate_ingress", ingress, value)
        self.annotations[key] = value

    def get_ingress_annotation(self, ingress: str, key: str) -> str | None:
        self._record("get_ingress_annotation", ingress)
        return self.annotations.get(key)

    def get_pod_readiness(self, label_selector: str) -> list[dict[str, Any]]:
        self._record("get_pod_readiness", label_selector)
        match = re.search(r"version=(\w+)", label_selector)
        return [dict(p) for p in self.pods.get(match.group(1), [])] if match else []


class FakeClock:
    """Monotonic clock that only moves when sleep is called."""

    def __init__(self) -> None:
        self.now = 0.0
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


@pytest.fixture
def cli_runner() -> CliRunner:
    """Create a Click CLI runner."""
    return CliRunner()


@pytest.fixture
def release_config() -> ReleaseConfig:
    """Release configuration for a service named shop."""
    return ReleaseConfig(app="shop", health_timeout=10, rollout_timeout=10, poll_interval=2)


@pytest.fixture
def mock_config(release_config: ReleaseConfig, tmp_path) -> RelCtlConfig:
    """Create a mock configuration."""
    release_config.state_dir = str(tmp_path / "state")
    return RelCtlConfig(
        profiles={
            "default": ProfileConfig(
                k8s=K8sConfig(namespace=NAMESPACE),
                release=release_config,
            )
        }
    )


@pytest.fixture
def mock_context(mock_config: RelCtlConfig) -> RelCtlContext:
    """Create a mock relctl context."""
    return RelCtlContext(
        config=mock_config,
        profile="default",
        output_format=OutputFormat.TABLE,
        color=False,
    )


@pytest.fixture
def fake_k8s() -> FakeOrchestrator:
    return FakeOrchestrator()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def store(tmp_path) -> ReleaseStateStore:
    return ReleaseStateStore(tmp_path / "state")


@pytest.fixture
def health_gate(fake_k8s: FakeOrchestrator, release_config: ReleaseConfig, clock: FakeClock) -> HealthGate:
    return HealthGate(fake_k8s, release_config, clock=clock, sleep=clock.sleep)


@pytest.fixture
def blue_green(fake_k8s, store, release_config, health_gate) -> BlueGreenController:
    return BlueGreenController(fake_k8s, store, release_config, NAMESPACE, health_gate=health_gate)


@pytest.fixture
def canary(fake_k8s, store, release_config, health_gate) -> CanaryController:
    return CanaryController(fake_k8s, store, release_config, NAMESPACE, health_gate=health_gate)


@pytest.fixture
def dispatcher(fake_k8s, store, release_config, health_gate) -> StrategyDispatcher:
    return StrategyDispatcher(fake_k8s, store, release_config, NAMESPACE, health_gate=health_gate)


@pytest.fixture(autouse=True)
def clean_env() -> Generator[None, None, None]:
    """Clean environment variables before each test."""
    env_vars = [
        "RELCTL_PROFILE",
        "RELCTL_CONFIG",
        "RELCTL_KUBECONFIG",
        "RELCTL_K8S_CONTEXT",
        "RELCTL_K8S_NAMESPACE",
        "RELCTL_STATE_DIR",
        "K8S_CONTEXT",
        "K8S_NAMESPACE",
        "KUBECONFIG",
    ]

    original = {k: os.environ.get(k) for k in env_vars}

    for k in env_vars:
        os.environ.pop(k, None)

    yield

    for k, v in original.items():
        if v is not None:
            os.environ[k] = v
        else:
            os.environ.pop(k, None)


@pytest.fixture
def temp_config_file(tmp_path):
    """Create a temporary config file."""
    config_content = f"""
version: "1"
global:
  output_format: json
profiles:
  default:
    k8s:
      namespace: shop-prod
    release:
      app: shop
      replicas: 3
      state_dir: {tmp_path / "state"}
"""
    config_file = tmp_path / "config.yaml"
    config_file.write_text(config_content)
    return str(config_file)
