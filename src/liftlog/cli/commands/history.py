"""History commands: migrate, history, streak, coach-advice."""

import json
from typing import Annotated, Optional

import typer

from ...core.migration import LegacyLogMigrator
from ...core.streaks import compute_streaks, merge_session_logs
from ...io.serializers import logs_to_dict, workout_session_to_dict
from ...io.workout_history import WorkoutHistory
from .. import views
from ..app import DataDirOption, UserOption, app, get_context, run


@app.command("migrate")
def migrate(
    user: UserOption = None,
    data_dir: DataDirOption = None,
) -> None:
    """
    Convert the legacy single log document into per-session documents.

    Safe to run any number of times; a failed run is retried from scratch.
    """
    ctx = get_context(user, data_dir)
    migrator = LegacyLogMigrator(ctx.store, ctx.uid, app_id=ctx.config.app_id)

    if not run(migrator.run()):
        views.print_error(migrator.migration_error or "Migration failed")
        raise typer.Exit(1)

    views.print_migration_report(migrator.report)


@app.command("history")
def history(
    by_exercise: Annotated[
        bool,
        typer.Option("--by-exercise", "-e", help="List entries per exercise instead of sessions"),
    ] = False,
    json_out: Annotated[
        bool,
        typer.Option("--json", "-j", help="Output as JSON for machine processing"),
    ] = False,
    user: UserOption = None,
    data_dir: DataDirOption = None,
) -> None:
    """Show committed workouts, newest first."""
    ctx = get_context(user, data_dir)
    sessions = run(WorkoutHistory(ctx.store, ctx.uid, app_id=ctx.config.app_id).load_sessions())

    if by_exercise:
        merged = merge_session_logs(sessions)
        if json_out:
            print(json.dumps(logs_to_dict(merged), indent=2))
        elif not merged:
            views.print_info("No workouts recorded yet.")
        else:
            views.console.print(views.format_logs_table(merged, "Entries by Exercise"))
        return

    if json_out:
        print(json.dumps([workout_session_to_dict(s) for s in sessions], indent=2))
        return

    views.print_history(sessions)


@app.command("streak")
def streak(
    user: UserOption = None,
    data_dir: DataDirOption = None,
) -> None:
    """Show the current day and week workout streaks."""
    ctx = get_context(user, data_dir)
    sessions = run(WorkoutHistory(ctx.store, ctx.uid, app_id=ctx.config.app_id).load_sessions())
    views.print_streaks(compute_streaks(sessions))


@app.command("coach-advice")
def coach_advice(
    advice: Annotated[
        Optional[str],
        typer.Option("--set", "-s", help="Replace the saved advice"),
    ] = None,
    user: UserOption = None,
    data_dir: DataDirOption = None,
) -> None:
    """Show or save the coach advice."""
    ctx = get_context(user, data_dir)
    workout_history = WorkoutHistory(ctx.store, ctx.uid, app_id=ctx.config.app_id)

    if advice is not None:
        if not run(workout_history.save_coach_advice(advice)):
            views.print_error("Could not save coach advice")
            raise typer.Exit(1)
        views.print_success("Coach advice saved.")
        return

    saved = run(workout_history.load_coach_advice())
    if saved is None:
        views.print_info("No coach advice saved.")
    else:
        views.console.print(saved, markup=False)
