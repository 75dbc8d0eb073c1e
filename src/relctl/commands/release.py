"""Release commands: one click command per dispatcher action."""

from typing import Any

import click

from relctl.core.context import RelCtlContext, pass_context
from relctl.core.exceptions import InvalidInputError
from relctl.release.dispatcher import validate_request
from relctl.release.models import Outcome

TARGET_HELP = "Version target: blue or green"

# Exit codes by outcome
EXIT_CODES = {
    Outcome.SUCCEEDED: 0,
    Outcome.ALREADY_AT_STATE: 0,
    Outcome.FAILED: 1,
    Outcome.PARTIAL_ROLLBACK: 1,
}


def _invalid(e: InvalidInputError) -> click.BadParameter:
    hint = f"'--{e.parameter}'" if e.parameter and e.parameter != "action" else None
    return click.BadParameter(e.message, param_hint=hint)


def run_action(
    ctx: RelCtlContext,
    action: str,
    params: dict[str, Any] | None = None,
    confirm: str | None = None,
    yes: bool = False,
) -> None:
    """Validate, confirm and dispatch one action, then render and exit.

    Args:
        ctx: relctl context
        action: Action name
        params: Raw string parameters from the command line
        confirm: Confirmation prompt for traffic-affecting actions
        yes: Skip the confirmation prompt
    """
    try:
        request = validate_request(action, params)
    except InvalidInputError as e:
        raise _invalid(e)

    if ctx.dry_run:
        ctx.log_dry_run(
            request.action.value,
            {k: getattr(v, "value", v) for k, v in request.params.items()},
        )
        return

    if confirm and not yes and not ctx.confirm(confirm):
        ctx.output.print_info("Cancelled")
        return

    try:
        result = ctx.dispatcher.dispatch(request.action, request.params)
    except InvalidInputError as e:
        raise _invalid(e)

    ctx.output.print_result(result)
    code = EXIT_CODES[result.outcome]
    if code:
        raise click.exceptions.Exit(code)


@click.command("status")
@pass_context
def status(ctx: RelCtlContext) -> None:
    """Show recorded release state next to the live cluster.

    \b
    Examples:
        relctl status
        relctl -o json status
    """
    if ctx.dry_run:
        ctx.log_dry_run("status")
        return

    result = ctx.dispatcher.dispatch("status")
    ctx.output.print_status(result)

    code = EXIT_CODES[result.outcome]
    if code:
        raise click.exceptions.Exit(code)


@click.command("blue-green-deploy")
@click.option("--target", required=True, help=TARGET_HELP)
@click.option("--image", required=True, help="Container image")
@pass_context
def blue_green_deploy(ctx: RelCtlContext, target: str, image: str) -> None:
    """Stage an image on the idle color. Traffic is not touched.

    \b
    Examples:
        relctl blue-green-deploy --target green --image myrepo/app:v1.2.3
    """
    run_action(ctx, "blue-green-deploy", {"target": target, "image": image})


@click.command("blue-green-switch")
@click.option("--target", required=True, help=TARGET_HELP)
@click.option("-y", "--yes", is_flag=True, help="Skip confirmation")
@pass_context
def blue_green_switch(ctx: RelCtlContext, target: str, yes: bool) -> None:
    """Route all traffic to a healthy color.

    \b
    Examples:
        relctl blue-green-switch --target green
    """
    run_action(
        ctx,
        "blue-green-switch",
        {"target": target},
        confirm=f"Switch all traffic to {target}?",
        yes=yes,
    )


@click.command("canary-deploy")
@click.option("--image", required=True, help="Container image")
@click.option("-y", "--yes", is_flag=True, help="Skip confirmation")
@pass_context
def canary_deploy(ctx: RelCtlContext, image: str, yes: bool) -> None:
    """Deploy a canary and send it 10% of traffic.

    \b
    Examples:
        relctl canary-deploy --image myrepo/app:v1.3.0-rc1
    """
    run_action(
        ctx,
        "canary-deploy",
        {"image": image},
        confirm=f"Deploy canary {image} and route 10% of traffic to it?",
        yes=yes,
    )


@click.command("canary-set-weight")
@click.option("--weight", required=True, help="Traffic percent: 0, 10, 25, 50 or 100")
@click.option("-y", "--yes", is_flag=True, help="Skip confirmation")
@pass_context
def canary_set_weight(ctx: RelCtlContext, weight: str, yes: bool) -> None:
    """Set the canary traffic weight to a ladder stage.

    \b
    Examples:
        relctl canary-set-weight --weight 25
    """
    run_action(
        ctx,
        "canary-set-weight",
        {"weight": weight},
        confirm=f"Route {weight}% of traffic to the canary?",
        yes=yes,
    )


@click.command("canary-promote")
@click.option("-y", "--yes", is_flag=True, help="Skip confirmation")
@pass_context
def canary_promote(ctx: RelCtlContext, yes: bool) -> None:
    """Advance the canary one ladder stage (10 -> 25 -> 50 -> 100).

    \b
    Examples:
        relctl canary-promote
    """
    run_action(
        ctx,
        "canary-promote",
        confirm="Promote the canary to the next traffic stage?",
        yes=yes,
    )


@click.command("canary-rollback")
@click.option("-y", "--yes", is_flag=True, help="Skip confirmation")
@pass_context
def canary_rollback(ctx: RelCtlContext, yes: bool) -> None:
    """Send all traffic back to the stable version and scale the canary down.

    \b
    Examples:
        relctl canary-rollback --yes
    """
    run_action(
        ctx,
        "canary-rollback",
        confirm="Roll back the canary?",
        yes=yes,
    )


@click.command("health-check")
@click.option("--target", help="Version target: blue, green or canary (default: all)")
@pass_context
def health_check(ctx: RelCtlContext, target: str | None) -> None:
    """Report pod readiness of one or all version targets.

    \b
    Examples:
        relctl health-check
        relctl health-check --target canary
    """
    run_action(ctx, "health-check", {"target": target})


release_commands = [
    status,
    blue_green_deploy,
    blue_green_switch,
    canary_deploy,
    canary_set_weight,
    canary_promote,
    canary_rollback,
    health_check,
]
