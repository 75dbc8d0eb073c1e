"""API clients for external services."""

from relctl.clients.k8s import K8sClient

__all__ = ["K8sClient"]
