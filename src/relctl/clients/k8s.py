"""Kubernetes client using the official kubernetes Python client."""

import time
from typing import Any

from relctl.config import K8sConfig
from relctl.core.exceptions import AuthenticationError, K8sError, OrchestratorUnavailableError
from relctl.core.logging import get_logger

logger = get_logger(__name__)


class K8sClient:
    """Client for the Kubernetes API operations the release controller needs.

    Every API or transport failure surfaces as OrchestratorUnavailableError so
    callers can tell a control-plane problem from a controller decision.
    """

    def __init__(self, config: K8sConfig, namespace: str | None = None):
        self._config = config
        self._namespace = namespace
        self._core_v1: Any = None
        self._apps_v1: Any = None
        self._networking_v1: Any = None
        self._loaded = False

    def _load_config(self) -> None:
        """Load kubernetes configuration."""
        if self._loaded:
            return

        try:
            from kubernetes import config
        except ImportError:
            raise K8sError("kubernetes package not installed. Run: pip install kubernetes")

        kubeconfig = self._config.get_kubeconfig()
        context = self._config.get_context()

        try:
            if kubeconfig:
                config.load_kube_config(config_file=kubeconfig, context=context)
            else:
                # Try in-cluster config first, then default kubeconfig
                try:
                    config.load_incluster_config()
                except config.ConfigException:
                    config.load_kube_config(context=context)

            self._loaded = True
            logger.debug(f"Loaded k8s config (context={context})")
        except Exception as e:
            raise AuthenticationError(f"Failed to load k8s config: {e}")

    @property
    def core_v1(self) -> Any:
        """Get CoreV1Api client (pods, services)."""
        if self._core_v1 is None:
            self._load_config()
            from kubernetes import client

            self._core_v1 = client.CoreV1Api()
        return self._core_v1

    @property
    def apps_v1(self) -> Any:
        """Get AppsV1Api client (deployments)."""
        if self._apps_v1 is None:
            self._load_config()
            from kubernetes import client

            self._apps_v1 = client.AppsV1Api()
        return self._apps_v1

    @property
    def networking_v1(self) -> Any:
        """Get NetworkingV1Api client (ingresses)."""
        if self._networking_v1 is None:
            self._load_config()
            from kubernetes import client

            self._networking_v1 = client.NetworkingV1Api()
        return self._networking_v1

    @property
    def namespace(self) -> str:
        """Get the namespace all calls are scoped to."""
        return self._namespace or self._config.get_namespace()

    def _call(self, action: str, func: Any, *args: Any, **kwargs: Any) -> Any:
        """Invoke an API method, translating failures."""
        from kubernetes.client.rest import ApiException
        from urllib3.exceptions import HTTPError

        try:
            return func(*args, **kwargs)
        except ApiException as e:
            raise OrchestratorUnavailableError(
                f"Failed to {action}: {e.reason}", status_code=e.status
            )
        except (HTTPError, OSError) as e:
            raise OrchestratorUnavailableError(f"Failed to {action}: {e}")

    # Deployment operations
    def get_deployment(self, name: str) -> dict[str, Any]:
        """Get replica counts and image of a deployment."""
        deployment = self._call(
            f"get deployment {name}",
            self.apps_v1.read_namespaced_deployment,
            name,
            self.namespace,
        )
        return self._deployment_to_dict(deployment)

    def set_image(self, name: str, image: str, container: str | None = None) -> None:
        """Set the container image of a deployment.

        Args:
            name: Deployment name
            image: New container image
            container: Container to update, defaults to the first container
        """
        deployment = self._call(
            f"get deployment {name}",
            self.apps_v1.read_namespaced_deployment,
            name,
            self.namespace,
        )
        containers = deployment.spec.template.spec.containers or []
        if not containers:
            raise K8sError(f"Deployment {name} has no containers")

        if container:
            if not any(c.name == container for c in containers):
                raise K8sError(f"Container {container} not found in deployment {name}")
            target = container
        else:
            target = containers[0].name

        body = {
            "spec": {
                "template": {
                    "spec": {"containers": [{"name": target, "image": image}]}
                }
            }
        }
        self._call(
            f"set image on {name}",
            self.apps_v1.patch_namespaced_deployment,
            name,
            self.namespace,
            body,
        )
        logger.info(f"Set image {image} on {name}/{target}")

    def scale_deployment(self, name: str, replicas: int) -> None:
        """Scale a deployment."""
        body = {"spec": {"replicas": replicas}}
        self._call(
            f"scale deployment {name}",
            self.apps_v1.patch_namespaced_deployment_scale,
            name,
            self.namespace,
            body,
        )
        logger.info(f"Scaled {name} to {replicas} replicas")

    def get_rollout_status(self, name: str) -> dict[str, Any]:
        """Get deployment rollout status."""
        deployment = self._call(
            f"get deployment {name}",
            self.apps_v1.read_namespaced_deployment,
            name,
            self.namespace,
        )
        spec = deployment.spec
        status = deployment.status
        desired = spec.replicas or 0
        updated = status.updated_replicas or 0
        ready = status.ready_replicas or 0
        available = status.available_replicas or 0
        observed = (status.observed_generation or 0) >= (deployment.metadata.generation or 0)

        return {
            "name": name,
            "replicas": desired,
            "updated": updated,
            "ready": ready,
            "available": available,
            "complete": observed and updated >= desired and available >= desired and ready >= desired,
        }

    def wait_for_rollout(self, name: str, timeout: int, poll_interval: int = 5) -> bool:
        """Wait for a deployment rollout to complete.

        Args:
            name: Deployment name
            timeout: Maximum seconds to wait
            poll_interval: Seconds between status checks

        Returns:
            True if the rollout completed before the timeout
        """
        deadline = time.monotonic() + timeout

        while True:
            status = self.get_rollout_status(name)
            if status["complete"]:
                return True
            if time.monotonic() + poll_interval > deadline:
                logger.warning(f"Rollout of {name} did not complete within {timeout}s")
                return False
            time.sleep(poll_interval)

    # Service and ingress routing
    def patch_service_selector(self, service: str, key: str, value: str) -> None:
        """Point one selector label of a service at a new value."""
        body = {"spec": {"selector": {key: value}}}
        self._call(
            f"patch selector of service {service}",
            self.core_v1.patch_namespaced_service,
            service,
            self.namespace,
            body,
        )
        logger.info(f"Patched service {service} selector {key}={value}")

    def get_service_selector(self, service: str, key: str) -> str | None:
        """Read one selector label of a service."""
        svc = self._call(
            f"get service {service}",
            self.core_v1.read_namespaced_service,
            service,
            self.namespace,
        )
        selector = svc.spec.selector or {}
        return selector.get(key)

    def annotate_ingress(self, ingress: str, key: str, value: str) -> None:
        """Set an annotation on an ingress."""
        body = {"metadata": {"annotations": {key: value}}}
        self._call(
            f"annotate ingress {ingress}",
            self.networking_v1.patch_namespaced_ingress,
            ingress,
            self.namespace,
            body,
        )
        logger.info(f"Annotated ingress {ingress} {key}={value}")

    def get_ingress_annotation(self, ingress: str, key: str) -> str | None:
        """Read an annotation of an ingress."""
        ing = self._call(
            f"get ingress {ingress}",
            self.networking_v1.read_namespaced_ingress,
            ingress,
            self.namespace,
        )
        annotations = ing.metadata.annotations or {}
        return annotations.get(key)

    # Pods
    def get_pod_readiness(self, label_selector: str) -> list[dict[str, Any]]:
        """List phase and Ready condition of every pod matching a selector."""
        pods = self._call(
            "list pods",
            self.core_v1.list_namespaced_pod,
            self.namespace,
            label_selector=label_selector,
        )
        return [self._pod_readiness(pod) for pod in pods.items]

    def _pod_readiness(self, pod: Any) -> dict[str, Any]:
        """Convert Pod object to a readiness record."""
        status = pod.status
        conditions = status.conditions or []
        ready = any(c.type == "Ready" and c.status == "True" for c in conditions)
        return {
            "name": pod.metadata.name,
            "phase": status.phase,
            "ready": ready,
        }

    def _deployment_to_dict(self, deployment: Any) -> dict[str, Any]:
        """Convert Deployment object to dictionary."""
        status = deployment.status
        spec = deployment.spec
        containers = spec.template.spec.containers or []

        return {
            "name": deployment.metadata.name,
            "replicas": spec.replicas or 0,
            "ready_replicas": status.ready_replicas or 0,
            "image": containers[0].image if containers else None,
        }

    def close(self) -> None:
        """Close the client."""
        pass

    def __enter__(self) -> "K8sClient":
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()
