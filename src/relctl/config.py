"""Configuration management for relctl using Pydantic."""

import os
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, field_validator

from relctl.core.exceptions import ConfigError
from relctl.core.output import OutputFormat
from relctl.core.logging import LogLevel


class K8sConfig(BaseModel):
    """Kubernetes configuration."""

    kubeconfig: str | None = None
    context: str | None = None
    namespace: str = "default"
    timeout: int = 30

    def get_kubeconfig(self) -> str | None:
        """Get kubeconfig path from config or environment."""
        return (
            os.environ.get("RELCTL_KUBECONFIG")
            or os.environ.get("KUBECONFIG")
            or self.kubeconfig
        )

    def get_context(self) -> str | None:
        """Get k8s context from config or environment."""
        return (
            os.environ.get("RELCTL_K8S_CONTEXT")
            or os.environ.get("K8S_CONTEXT")
            or self.context
        )

    def get_namespace(self) -> str:
        """Get default namespace from config or environment."""
        return (
            os.environ.get("RELCTL_K8S_NAMESPACE")
            or os.environ.get("K8S_NAMESPACE")
            or self.namespace
        )


class ReleaseConfig(BaseModel):
    """Release controller configuration for one managed service."""

    app: str = "app"
    service: str | None = None
    ingress: str | None = None
    container: str | None = None
    deployment_template: str = "{app}-{target}"
    selector_key: str = "version"
    canary_annotation: str = "nginx.ingress.kubernetes.io/canary-weight"
    replicas: int = 2
    canary_replicas: int = 1
    health_timeout: int = 120
    rollout_timeout: int = 120
    poll_interval: int = 5
    rollback_retries: int = 3
    state_dir: str | None = None

    @field_validator("replicas", "canary_replicas", "health_timeout", "rollout_timeout", "poll_interval", "rollback_retries")
    @classmethod
    def validate_positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError("must be a positive integer")
        return v

    @field_validator("deployment_template")
    @classmethod
    def validate_template(cls, v: str) -> str:
        if "{target}" not in v:
            raise ValueError("deployment_template must contain '{target}'")
        return v

    def get_service(self) -> str:
        """Service whose selector routes blue-green traffic."""
        return self.service or self.app

    def get_ingress(self) -> str:
        """Canary ingress carrying the traffic-split annotation."""
        return self.ingress or f"{self.app}-canary"

    def deployment_name(self, target: str) -> str:
        """Deployment name for a version target."""
        return self.deployment_template.format(app=self.app, target=target)

    def label_selector(self, target: str) -> str:
        """Pod label selector for a version target."""
        return f"app={self.app},{self.selector_key}={target}"

    def get_state_dir(self) -> Path:
        """Get state directory from config or environment."""
        state_dir = os.environ.get("RELCTL_STATE_DIR") or self.state_dir
        if state_dir:
            return Path(state_dir).expanduser()
        return Path.home() / ".relctl" / "state"


class ProfileConfig(BaseModel):
    """Profile configuration grouping cluster and release settings."""

    k8s: K8sConfig = Field(default_factory=K8sConfig)
    release: ReleaseConfig = Field(default_factory=ReleaseConfig)


class GlobalConfig(BaseModel):
    """Global settings."""

    output_format: OutputFormat = OutputFormat.TABLE
    color: str = "auto"  # auto, always, never
    verbosity: LogLevel = LogLevel.WARNING
    dry_run: bool = False
    confirm_traffic_changes: bool = True

    @field_validator("color")
    @classmethod
    def validate_color(cls, v: str) -> str:
        if v not in ("auto", "always", "never"):
            raise ValueError("color must be 'auto', 'always', or 'never'")
        return v


class RelCtlConfig(BaseModel):
    """Main configuration model."""

    model_config = {"populate_by_name": True}

    version: str = "1"
    global_settings: GlobalConfig = Field(default_factory=GlobalConfig, alias="global")
    profiles: dict[str, ProfileConfig] = Field(default_factory=lambda: {"default": ProfileConfig()})

    def get_profile(self, name: str | None = None) -> ProfileConfig:
        """Get a profile by name, defaulting to 'default'."""
        profile_name = name or "default"
        if profile_name not in self.profiles:
            raise ConfigError(f"Profile '{profile_name}' not found")
        return self.profiles[profile_name]


class ConfigLoader:
    """Loads and merges configuration from multiple sources."""

    CONFIG_FILENAMES = ["relctl.yaml", "relctl.yml", ".relctl.yaml", ".relctl.yml"]

    def __init__(self):
        self._config: RelCtlConfig | None = None

    def load(
        self,
        config_file: str | Path | None = None,
        profile: str | None = None,
    ) -> RelCtlConfig:
        """Load configuration from files and environment.

        Priority (highest to lowest):
        1. Explicitly specified config file
        2. Project config (./relctl.yaml)
        3. User config (~/.relctl/config.yaml)

        Args:
            config_file: Optional explicit config file path
            profile: Profile name to use

        Returns:
            Merged configuration
        """
        configs: list[dict[str, Any]] = []

        user_config_path = Path.home() / ".relctl" / "config.yaml"
        if user_config_path.exists():
            configs.append(self._load_yaml_file(user_config_path))

        project_config = self._find_project_config()
        if project_config:
            configs.append(self._load_yaml_file(project_config))

        if config_file:
            config_path = Path(config_file)
            if not config_path.exists():
                raise ConfigError(f"Config file not found: {config_file}")
            configs.append(self._load_yaml_file(config_path))

        merged = self._merge_configs(configs)

        try:
            self._config = RelCtlConfig(**merged)
        except ValueError as e:
            raise ConfigError(f"Invalid configuration: {e}")

        if profile:
            self._config.get_profile(profile)

        return self._config

    def _find_project_config(self) -> Path | None:
        """Find project config file in current or parent directories."""
        current = Path.cwd()

        while current != current.parent:
            for filename in self.CONFIG_FILENAMES:
                config_path = current / filename
                if config_path.exists():
                    return config_path
            current = current.parent

        return None

    def _load_yaml_file(self, path: Path) -> dict[str, Any]:
        """Load a YAML config file."""
        try:
            with open(path) as f:
                content = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigError(f"Invalid YAML in {path}: {e}")
        except OSError as e:
            raise ConfigError(f"Cannot read {path}: {e}")

        if not isinstance(content, dict):
            raise ConfigError(f"Config file {path} must contain a mapping")
        return content

    def _merge_configs(self, configs: list[dict[str, Any]]) -> dict[str, Any]:
        """Deep merge multiple configuration dictionaries."""
        result: dict[str, Any] = {}
        for config in configs:
            result = self._deep_merge(result, config)
        return result

    def _deep_merge(
        self,
        base: dict[str, Any],
        override: dict[str, Any],
    ) -> dict[str, Any]:
        """Deep merge two dictionaries."""
        result = base.copy()
        for key, value in override.items():
            if key in result and isinstance(result[key], dict) and isinstance(value, dict):
                result[key] = self._deep_merge(result[key], value)
            else:
                result[key] = value
        return result


# Global config loader instance
_config_loader = ConfigLoader()


def load_config(
    config_file: str | Path | None = None,
    profile: str | None = None,
) -> RelCtlConfig:
    """Load relctl configuration.

    Args:
        config_file: Optional explicit config file path
        profile: Profile name to use

    Returns:
        Loaded configuration
    """
    return _config_loader.load(config_file, profile)


def get_default_config() -> RelCtlConfig:
    """Get default configuration without loading from files."""
    return RelCtlConfig()
