"""Click context object for sharing state across commands."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import click
from rich.markup import escape

from relctl.config import ProfileConfig, RelCtlConfig, get_default_config
from relctl.core.logging import LogLevel, StructuredLogger, setup_logging
from relctl.core.output import OutputFormat, OutputFormatter

if TYPE_CHECKING:
    from relctl.clients.k8s import K8sClient
    from relctl.release.dispatcher import StrategyDispatcher
    from relctl.release.state import ReleaseStateStore


class RelCtlContext:
    """Shared context object for relctl commands.

    Passed through Click's context mechanism; gives commands access to the
    configuration, the output formatter and lazily built release components.
    """

    def __init__(
        self,
        config: RelCtlConfig | None = None,
        profile: str | None = None,
        output_format: OutputFormat | None = None,
        verbose: int = 0,
        quiet: bool = False,
        dry_run: bool = False,
        color: bool = True,
    ):
        self._config = config or get_default_config()
        self._profile_name = profile or "default"

        # CLI overrides config
        self._output_format = output_format or self._config.global_settings.output_format
        self._verbose = verbose
        self._quiet = quiet
        self._dry_run = dry_run or self._config.global_settings.dry_run
        self._color = color

        log_level = LogLevel.from_verbosity(verbose, quiet, self._config.global_settings.verbosity)
        setup_logging(log_level, rich_output=color)
        self._logger = StructuredLogger("context")

        self._output = OutputFormatter(
            format=self._output_format,
            color=color,
            quiet=quiet,
        )

        self._k8s_client: K8sClient | None = None
        self._store: ReleaseStateStore | None = None
        self._dispatcher: StrategyDispatcher | None = None

    @property
    def config(self) -> RelCtlConfig:
        """Get the loaded configuration."""
        return self._config

    @property
    def profile(self) -> ProfileConfig:
        """Get the current profile configuration."""
        return self._config.get_profile(self._profile_name)

    @property
    def profile_name(self) -> str:
        return self._profile_name

    @property
    def output(self) -> OutputFormatter:
        return self._output

    @property
    def output_format(self) -> OutputFormat:
        return self._output_format

    @property
    def dry_run(self) -> bool:
        return self._dry_run

    @property
    def verbose(self) -> int:
        return self._verbose

    @property
    def quiet(self) -> bool:
        return self._quiet

    @property
    def logger(self) -> StructuredLogger:
        return self._logger

    @property
    def namespace(self) -> str:
        return self.profile.k8s.get_namespace()

    @property
    def k8s(self) -> "K8sClient":
        """Get or create the Kubernetes client."""
        if self._k8s_client is None:
            from relctl.clients.k8s import K8sClient

            self._k8s_client = K8sClient(self.profile.k8s)
        return self._k8s_client

    @property
    def store(self) -> "ReleaseStateStore":
        """Get or create the release state store."""
        if self._store is None:
            from relctl.release.state import ReleaseStateStore

            self._store = ReleaseStateStore(self.profile.release.get_state_dir())
        return self._store

    @property
    def dispatcher(self) -> "StrategyDispatcher":
        """Get or create the strategy dispatcher."""
        if self._dispatcher is None:
            from relctl.release.dispatcher import StrategyDispatcher

            self._dispatcher = StrategyDispatcher(
                self.k8s, self.store, self.profile.release, self.namespace
            )
        return self._dispatcher

    def confirm(self, message: str, default: bool = False) -> bool:
        """Ask for user confirmation.

        Returns True without prompting when traffic confirmations are disabled.
        """
        if not self._config.global_settings.confirm_traffic_changes:
            return True
        return self._output.confirm(message, default)

    def log_dry_run(self, action: str, details: dict[str, Any] | None = None) -> None:
        """Print a dry-run action."""
        if self._dry_run:
            msg = f"[dry-run] {action}"
            if details:
                detail_str = ", ".join(f"{k}={v}" for k, v in details.items())
                msg = f"{msg} ({detail_str})"
            self._output.print(f"[dim]{escape(msg)}[/dim]")


pass_context = click.make_pass_decorator(RelCtlContext, ensure=True)
