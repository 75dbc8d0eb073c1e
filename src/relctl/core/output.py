"""Terminal and machine-readable rendering of release results."""

from __future__ import annotations

import json
from datetime import datetime, timezone
from enum import Enum
from typing import TYPE_CHECKING, Any

import yaml
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.syntax import Syntax
from rich.table import Table

if TYPE_CHECKING:
    from relctl.release.models import OperationResult, StageResult

STAGE_HEADERS = ["stage", "result", "message"]
DEPLOYMENT_HEADERS = ["target", "name", "image", "replicas", "ready_replicas", "description"]

_DURATION_UNITS = (("d", 86400), ("h", 3600), ("m", 60))


class OutputFormat(str, Enum):
    """Supported output formats."""

    TABLE = "table"
    JSON = "json"
    YAML = "yaml"
    RAW = "raw"


def format_duration(seconds: float) -> str:
    """Format seconds as the largest whole unit, e.g. 90 -> 1.5m."""
    for suffix, size in _DURATION_UNITS:
        if seconds >= size:
            return f"{seconds / size:.1f}{suffix}"
    return f"{seconds:.1f}s"


def format_since(timestamp: str | None, now: datetime | None = None) -> str:
    """Describe an ISO timestamp relative to now, or "never" if unset."""
    if not timestamp:
        return "never"
    now = now or datetime.now(timezone.utc)
    elapsed = (now - datetime.fromisoformat(timestamp)).total_seconds()
    return f"{format_duration(max(elapsed, 0))} ago"


def stage_rows(stages: list[StageResult]) -> list[dict[str, str]]:
    return [
        {
            "stage": s.name,
            "result": "skipped" if s.skipped else ("ok" if s.success else "failed"),
            "message": s.message,
        }
        for s in stages
    ]


class OutputFormatter:
    """Writes messages, records and release results to the terminal.

    Table format is for people; json, yaml and raw dump whole records so a
    pipeline can branch on them.
    """

    def __init__(
        self,
        format: OutputFormat = OutputFormat.TABLE,
        color: bool = True,
        quiet: bool = False,
    ):
        self.format = format
        self.color = color
        self.quiet = quiet
        self._console = Console(force_terminal=color, no_color=not color)
        self._err_console = Console(stderr=True, no_color=not color)

    def print(self, message: str, style: str | None = None) -> None:
        """Print a message to stdout unless quiet."""
        if not self.quiet:
            self._console.print(message, style=style)

    def print_error(self, message: str) -> None:
        """Print an error to stderr, even when quiet."""
        self._err_console.print(f"[red]Error:[/red] {message}")

    def print_warning(self, message: str) -> None:
        self.print(f"[yellow]Warning:[/yellow] {message}")

    def print_success(self, message: str) -> None:
        self.print(f"[green]✓[/green] {message}")

    def print_info(self, message: str) -> None:
        self.print(f"[blue]ℹ[/blue] {message}")

    def print_panel(self, content: str, title: str | None = None, style: str = "blue") -> None:
        if not self.quiet:
            self._console.print(Panel(content, title=title, border_style=style))

    def print_data(
        self,
        data: list[dict[str, Any]] | dict[str, Any],
        headers: list[str] | None = None,
        title: str | None = None,
    ) -> None:
        """Print a record or a list of records in the configured format."""
        if self.format == OutputFormat.JSON:
            self._print_document(json.dumps(data, indent=2, default=str), "json")
        elif self.format == OutputFormat.YAML:
            self._print_document(yaml.dump(data, default_flow_style=False, allow_unicode=True), "yaml")
        elif self.format == OutputFormat.RAW:
            self._print_raw(data)
        else:
            self._print_table(data, headers, title)

    def print_result(self, result: OperationResult) -> None:
        """Print an operation result: one outcome line, then its stages."""
        if self.format != OutputFormat.TABLE:
            self.print_data(result.to_dict())
            return

        outcome = result.outcome.value
        if outcome == "succeeded":
            self.print_success(escape(result.message))
        elif outcome == "already_at_state":
            self.print_info(escape(result.message))
        else:
            self.print_error(escape(f"[{result.error_type}] {result.message}"))

        if result.stages:
            self.print_data(
                stage_rows(result.stages),
                headers=STAGE_HEADERS,
                title=f"{result.action.value} ({result.phase})",
            )

    def print_status(self, result: OperationResult, now: datetime | None = None) -> None:
        """Print a status result: recorded state, live deployments, drift."""
        if self.format != OutputFormat.TABLE:
            self.print_data(result.to_dict())
            return

        state = result.after or {}
        summary = [
            f"Active color:    {state.get('active_color')}",
            f"Canary weight:   {state.get('canary_weight')}% (stage {state.get('promotion_stage')})",
            f"Last transition: {format_since(state.get('last_transition_time'), now)}",
        ]
        self.print_panel(
            "\n".join(summary),
            title=f"Release: {state.get('namespace')}/{state.get('service')}",
        )

        deployments = result.details.get("live", {}).get("deployments", [])
        if deployments:
            self.print_data(deployments, headers=DEPLOYMENT_HEADERS, title="Deployments")

        for drift in result.details.get("drift", []):
            self.print_warning(escape(f"Drift: {drift}"))
        for error in result.details.get("errors", []):
            self.print_error(escape(error))

    def _print_document(self, text: str, lexer: str) -> None:
        if self.color:
            self._console.print(Syntax(text, lexer, theme="monokai"))
        else:
            print(text)

    def _print_raw(self, data: Any) -> None:
        if isinstance(data, dict):
            data = [f"{key}: {value}" for key, value in data.items()]
        for line in data if isinstance(data, list) else [data]:
            print(line)

    def _print_table(
        self,
        data: list[dict[str, Any]] | dict[str, Any],
        headers: list[str] | None,
        title: str | None,
    ) -> None:
        if not data:
            self._console.print("[dim]No data to display[/dim]")
            return

        table = Table(title=title, show_header=True, header_style="bold cyan")
        if isinstance(data, dict):
            # one record: a field/value pair per row
            table.add_column("Field", style="dim")
            table.add_column("Value")
            for key, value in data.items():
                table.add_row(str(key), str(value))
        else:
            headers = headers or list(data[0].keys())
            for header in headers:
                table.add_column(header)
            for row in data:
                table.add_row(*[str(row.get(h, "")) for h in headers])
        self._console.print(table)

    def confirm(self, message: str, default: bool = False) -> bool:
        """Ask a yes/no question on stdin; quiet mode answers with the default."""
        if self.quiet:
            return default

        suffix = "[Y/n]" if default else "[y/N]"
        self._console.print(f"{message} {escape(suffix)}", end=" ")
        try:
            response = input().strip().lower()
        except (EOFError, KeyboardInterrupt):
            return False
        return response in ("y", "yes") if response else default
