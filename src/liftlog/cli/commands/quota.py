"""Quota commands: quota-status, quota-use, quota-release."""

from typing import Annotated

import typer

from ...core.rate_limiter import RateLimiter
from .. import views
from ..app import CliContext, DataDirOption, UserOption, app, get_context, run

ActionArgument = Annotated[str, typer.Argument(help="Gated action, e.g. generate_routine")]


def _limiter(ctx: CliContext, action: str) -> RateLimiter:
    try:
        limit = ctx.config.rate_limit_for(action)
    except KeyError as e:
        views.print_error(str(e.args[0]))
        raise typer.Exit(1)
    return RateLimiter(
        ctx.store,
        ctx.uid,
        action,
        limit,
        app_id=ctx.config.app_id,
        enforce=ctx.config.enforce_rate_limits,
    )


@app.command("quota-status")
def quota_status(
    action: ActionArgument,
    user: UserOption = None,
    data_dir: DataDirOption = None,
) -> None:
    """Show today's remaining quota for an action without using it."""
    limiter = _limiter(get_context(user, data_dir), action)
    views.print_quota(action, run(limiter.check_rate_limit()))


@app.command("quota-use")
def quota_use(
    action: ActionArgument,
    user: UserOption = None,
    data_dir: DataDirOption = None,
) -> None:
    """
    Consume one use of an action's daily quota.

    Exits with code 2 when the quota is used up, so scripts can gate the
    expensive call on it:

      liftlog quota-use generate_routine && ./generate-routine.sh
    """
    limiter = _limiter(get_context(user, data_dir), action)
    allowed = run(limiter.check_and_increment())

    if not allowed:
        views.print_error(limiter.status.error or "Daily limit reached")
        views.print_quota(action, limiter.status)
        raise typer.Exit(2)

    if limiter.status.error:
        views.print_warning(f"{limiter.status.error}; allowing anyway.")
    views.print_success(f"Allowed. {limiter.status.remaining} of {limiter.status.limit} left today.")


@app.command("quota-release")
def quota_release(
    action: ActionArgument,
    user: UserOption = None,
    data_dir: DataDirOption = None,
) -> None:
    """Give back one use after the gated call failed."""
    limiter = _limiter(get_context(user, data_dir), action)
    run(limiter.release())
    views.print_quota(action, run(limiter.check_rate_limit()))
