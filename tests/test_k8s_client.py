"""Tests for the Kubernetes client wrapper."""

from unittest.mock import MagicMock, patch

import pytest
from kubernetes.client.rest import ApiException
from urllib3.exceptions import MaxRetryError

from relctl.clients.k8s import K8sClient
from relctl.config import K8sConfig
from relctl.core.exceptions import AuthenticationError, K8sError, OrchestratorUnavailableError


def make_container(name: str, image: str) -> MagicMock:
    container = MagicMock()
    container.name = name
    container.image = image
    return container


def make_deployment(
    name: str = "shop-green",
    replicas: int = 2,
    ready: int = 2,
    updated: int = 2,
    available: int = 2,
    containers: list | None = None,
) -> MagicMock:
    deployment = MagicMock()
    deployment.metadata.name = name
    deployment.metadata.generation = 3
    deployment.spec.replicas = replicas
    deployment.spec.template.spec.containers = (
        containers if containers is not None else [make_container("app", "shop:1.0")]
    )
    deployment.status.ready_replicas = ready
    deployment.status.updated_replicas = updated
    deployment.status.available_replicas = available
    deployment.status.observed_generation = 3
    return deployment


def make_pod(name: str, phase: str, ready: str) -> MagicMock:
    condition = MagicMock()
    condition.type = "Ready"
    condition.status = ready
    pod = MagicMock()
    pod.metadata.name = name
    pod.status.phase = phase
    pod.status.conditions = [condition]
    return pod


@pytest.fixture
def client() -> K8sClient:
    """K8sClient with mocked API groups."""
    k8s = K8sClient(K8sConfig(namespace="shop-prod"))
    k8s._apps_v1 = MagicMock()
    k8s._core_v1 = MagicMock()
    k8s._networking_v1 = MagicMock()
    return k8s


class TestK8sClientSetup:
    """Tests for client configuration."""

    def test_lazy_initialization(self):
        k8s = K8sClient(K8sConfig())
        assert k8s._apps_v1 is None
        assert k8s._loaded is False

    def test_namespace_from_config(self):
        assert K8sClient(K8sConfig(namespace="shop-prod")).namespace == "shop-prod"

    def test_namespace_override(self):
        assert K8sClient(K8sConfig(namespace="shop-prod"), namespace="other").namespace == "other"

    def test_namespace_from_env(self, monkeypatch):
        monkeypatch.setenv("RELCTL_K8S_NAMESPACE", "from-env")
        assert K8sClient(K8sConfig()).namespace == "from-env"

    def test_kubeconfig_failure(self):
        k8s = K8sClient(K8sConfig(kubeconfig="/nonexistent/kubeconfig"))
        with patch("kubernetes.config.load_kube_config", side_effect=Exception("no such file")):
            with pytest.raises(AuthenticationError):
                k8s._load_config()

    def test_explicit_kubeconfig(self):
        k8s = K8sClient(K8sConfig(kubeconfig="/tmp/kubeconfig", context="staging"))
        with patch("kubernetes.config.load_kube_config") as mock_load:
            k8s._load_config()
        mock_load.assert_called_once_with(config_file="/tmp/kubeconfig", context="staging")
        assert k8s._loaded


class TestDeployments:
    """Tests for deployment operations."""

    def test_get_deployment(self, client):
        client._apps_v1.read_namespaced_deployment.return_value = make_deployment(ready=1)

        result = client.get_deployment("shop-green")

        assert result == {"name": "shop-green", "replicas": 2, "ready_replicas": 1, "image": "shop:1.0"}
        client._apps_v1.read_namespaced_deployment.assert_called_once_with("shop-green", "shop-prod")

    def test_set_image_first_container(self, client):
        client._apps_v1.read_namespaced_deployment.return_value = make_deployment()

        client.set_image("shop-green", "shop:2.0")

        body = client._apps_v1.patch_namespaced_deployment.call_args[0][2]
        assert body["spec"]["template"]["spec"]["containers"] == [{"name": "app", "image": "shop:2.0"}]

    def test_set_image_named_container(self, client):
        client._apps_v1.read_namespaced_deployment.return_value = make_deployment(
            containers=[make_container("sidecar", "proxy:1"), make_container("web", "shop:1.0")]
        )

        client.set_image("shop-green", "shop:2.0", container="web")

        body = client._apps_v1.patch_namespaced_deployment.call_args[0][2]
        assert body["spec"]["template"]["spec"]["containers"][0]["name"] == "web"

    def test_set_image_missing_container(self, client):
        client._apps_v1.read_namespaced_deployment.return_value = make_deployment()

        with pytest.raises(K8sError):
            client.set_image("shop-green", "shop:2.0", container="web")
        client._apps_v1.patch_namespaced_deployment.assert_not_called()

    def test_scale_deployment(self, client):
        client.scale_deployment("shop-blue", 0)

        client._apps_v1.patch_namespaced_deployment_scale.assert_called_once_with(
            "shop-blue", "shop-prod", {"spec": {"replicas": 0}}
        )

    def test_rollout_status_complete(self, client):
        client._apps_v1.read_namespaced_deployment.return_value = make_deployment()
        assert client.get_rollout_status("shop-green")["complete"] is True

    def test_rollout_status_incomplete(self, client):
        client._apps_v1.read_namespaced_deployment.return_value = make_deployment(updated=1)
        assert client.get_rollout_status("shop-green")["complete"] is False

    @patch("relctl.clients.k8s.time.sleep")
    def test_wait_for_rollout(self, mock_sleep, client):
        client._apps_v1.read_namespaced_deployment.side_effect = [
            make_deployment(ready=0),
            make_deployment(),
        ]

        assert client.wait_for_rollout("shop-green", timeout=60, poll_interval=5) is True
        mock_sleep.assert_called_once_with(5)

    @patch("relctl.clients.k8s.time.sleep")
    def test_wait_for_rollout_timeout(self, mock_sleep, client):
        client._apps_v1.read_namespaced_deployment.return_value = make_deployment(ready=0)

        assert client.wait_for_rollout("shop-green", timeout=0, poll_interval=5) is False
        mock_sleep.assert_not_called()


class TestRouting:
    """Tests for service selector and ingress annotation operations."""

    def test_patch_service_selector(self, client):
        client.patch_service_selector("shop", "version", "green")

        client._core_v1.patch_namespaced_service.assert_called_once_with(
            "shop", "shop-prod", {"spec": {"selector": {"version": "green"}}}
        )

    def test_get_service_selector(self, client):
        client._core_v1.read_namespaced_service.return_value.spec.selector = {
            "app": "shop",
            "version": "blue",
        }

        assert client.get_service_selector("shop", "version") == "blue"

    def test_annotate_ingress(self, client):
        client.annotate_ingress("shop-canary", "nginx.ingress.kubernetes.io/canary-weight", "25")

        body = client._networking_v1.patch_namespaced_ingress.call_args[0][2]
        assert body == {"metadata": {"annotations": {"nginx.ingress.kubernetes.io/canary-weight": "25"}}}

    def test_get_missing_annotation(self, client):
        client._networking_v1.read_namespaced_ingress.return_value.metadata.annotations = None

        assert client.get_ingress_annotation("shop-canary", "nginx.ingress.kubernetes.io/canary-weight") is None


class TestPods:
    """Tests for pod readiness."""

    def test_get_pod_readiness(self, client):
        client._core_v1.list_namespaced_pod.return_value.items = [
            make_pod("shop-green-1", "Running", "True"),
            make_pod("shop-green-2", "Running", "False"),
        ]

        pods = client.get_pod_readiness("app=shop,version=green")

        assert pods == [
            {"name": "shop-green-1", "phase": "Running", "ready": True},
            {"name": "shop-green-2", "phase": "Running", "ready": False},
        ]
        client._core_v1.list_namespaced_pod.assert_called_once_with(
            "shop-prod", label_selector="app=shop,version=green"
        )


class TestErrorMapping:
    """Tests for API failure translation."""

    def test_api_exception(self, client):
        client._core_v1.patch_namespaced_service.side_effect = ApiException(status=503, reason="Service Unavailable")

        with pytest.raises(OrchestratorUnavailableError) as exc_info:
            client.patch_service_selector("shop", "version", "green")

        assert exc_info.value.status_code == 503
        assert exc_info.value.error_type == "OrchestratorUnavailable"
        assert "Service Unavailable" in exc_info.value.message

    def test_not_found(self, client):
        client._apps_v1.read_namespaced_deployment.side_effect = ApiException(status=404, reason="Not Found")

        with pytest.raises(OrchestratorUnavailableError) as exc_info:
            client.get_deployment("shop-canary")

        assert exc_info.value.status_code == 404

    def test_transport_error(self, client):
        client._core_v1.list_namespaced_pod.side_effect = MaxRetryError(None, "/api/v1/pods", "refused")

        with pytest.raises(OrchestratorUnavailableError):
            client.get_pod_readiness("app=shop")

    def test_connection_error(self, client):
        client._networking_v1.patch_namespaced_ingress.side_effect = ConnectionRefusedError("refused")

        with pytest.raises(OrchestratorUnavailableError):
            client.annotate_ingress("shop-canary", "k", "0")
