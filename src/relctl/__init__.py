"""relctl - blue-green and canary release controller for Kubernetes services."""

__version__ = "0.1.0"
