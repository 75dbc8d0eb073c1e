"""Main CLI entry point for relctl."""

import sys
from typing import Any

import click
from rich.console import Console

from relctl import __version__
from relctl.config import load_config
from relctl.core.context import RelCtlContext
from relctl.core.exceptions import ConfigError, RelCtlError
from relctl.core.output import OutputFormat


CONTEXT_SETTINGS = {
    "help_option_names": ["-h", "--help"],
    "max_content_width": 120,
}


class OutputFormatType(click.ParamType):
    """Custom Click parameter type for output format."""

    name = "format"

    def convert(
        self,
        value: Any,
        param: click.Parameter | None,
        ctx: click.Context | None,
    ) -> OutputFormat:
        if isinstance(value, OutputFormat):
            return value
        try:
            return OutputFormat(value.lower())
        except ValueError:
            self.fail(
                f"Invalid format '{value}'. Choose from: table, json, yaml, raw",
                param,
                ctx,
            )


OUTPUT_FORMAT = OutputFormatType()


def print_version(ctx: click.Context, param: click.Parameter, value: bool) -> None:
    """Print version and exit."""
    if not value or ctx.resilient_parsing:
        return
    Console().print(f"relctl version {__version__}")
    ctx.exit()


@click.group(context_settings=CONTEXT_SETTINGS)
@click.option(
    "-p",
    "--profile",
    metavar="NAME",
    envvar="RELCTL_PROFILE",
    help="Configuration profile to use",
)
@click.option(
    "-o",
    "--output",
    "output_format",
    type=OUTPUT_FORMAT,
    metavar="FORMAT",
    help="Output format: table, json, yaml, raw",
)
@click.option(
    "-v",
    "--verbose",
    count=True,
    help="Increase verbosity (-v for info, -vv for debug)",
)
@click.option(
    "-q",
    "--quiet",
    is_flag=True,
    help="Suppress non-essential output",
)
@click.option(
    "--dry-run",
    is_flag=True,
    help="Validate and print the action without contacting the cluster",
)
@click.option(
    "--no-color",
    is_flag=True,
    help="Disable colored output",
)
@click.option(
    "-c",
    "--config",
    "config_file",
    type=click.Path(exists=True),
    metavar="FILE",
    envvar="RELCTL_CONFIG",
    help="Path to config file",
)
@click.option(
    "--version",
    is_flag=True,
    callback=print_version,
    expose_value=False,
    is_eager=True,
    help="Show version and exit",
)
@click.pass_context
def cli(
    ctx: click.Context,
    profile: str | None,
    output_format: OutputFormat | None,
    verbose: int,
    quiet: bool,
    dry_run: bool,
    no_color: bool,
    config_file: str | None,
) -> None:
    """RelCtl - blue-green and canary releases on Kubernetes.

    Moves traffic between blue, green and canary versions of a service,
    gating every traffic change on pod readiness.

    \b
    Examples:
        relctl status
        relctl blue-green-deploy --target green --image myrepo/app:v2
        relctl blue-green-switch --target green
        relctl canary-deploy --image myrepo/app:v3-rc1
        relctl canary-promote
        relctl canary-rollback --yes

    \b
    Configuration:
        ~/.relctl/config.yaml    User configuration
        ./relctl.yaml            Project configuration
        RELCTL_*                 Environment variables
    """
    try:
        config = load_config(config_file, profile)

        ctx.obj = RelCtlContext(
            config=config,
            profile=profile,
            output_format=output_format,
            verbose=verbose,
            quiet=quiet,
            dry_run=dry_run,
            color=not no_color,
        )

        if ctx.obj.dry_run and not quiet:
            ctx.obj.output.print_warning("Dry-run mode enabled - the cluster will not be contacted")

    except ConfigError as e:
        Console(stderr=True).print(f"[red]Configuration error:[/red] {e}")
        sys.exit(1)


def register_commands() -> None:
    """Register release commands."""
    from relctl.commands.release import release_commands

    for command in release_commands:
        cli.add_command(command)


register_commands()


@cli.command()
@click.pass_context
def config(ctx: click.Context) -> None:
    """Show current configuration."""
    relctl_ctx: RelCtlContext = ctx.obj
    release = relctl_ctx.profile.release
    config_data = {
        "profile": relctl_ctx.profile_name,
        "output_format": relctl_ctx.output_format.value,
        "dry_run": relctl_ctx.dry_run,
        "verbose": relctl_ctx.verbose,
        "k8s": {
            "context": relctl_ctx.profile.k8s.get_context(),
            "namespace": relctl_ctx.namespace,
        },
        "release": {
            "service": release.get_service(),
            "ingress": release.get_ingress(),
            "deployments": {
                target: release.deployment_name(target) for target in ("blue", "green", "canary")
            },
            "selector_key": release.selector_key,
            "canary_annotation": release.canary_annotation,
            "state_dir": str(release.get_state_dir()),
        },
    }
    relctl_ctx.output.print_data(config_data, title="Current Configuration")


def main() -> None:
    """Main entry point."""
    try:
        cli()
    except RelCtlError as e:
        Console(stderr=True).print(f"[red]Error:[/red] {e}")
        sys.exit(1)
    except KeyboardInterrupt:
        Console(stderr=True).print("\n[yellow]Interrupted[/yellow]")
        sys.exit(130)


if __name__ == "__main__":
    main()
