"""Session commands: log-set, remove-set, show-pending, finish, discard."""

import json
from typing import Annotated, Optional

import typer

from ...core.models import LogEntry
from ...io.serializers import (
    ValidationError,
    logs_to_dict,
    parse_set_spec,
    to_iso,
    utc_now,
)
from .. import views
from ..app import DataDirOption, UserOption, app, get_context, run


@app.command("log-set")
def log_set(
    exercise: Annotated[str, typer.Argument(help="Exercise name, e.g. 'Bench Press'")],
    spec: Annotated[str, typer.Argument(help="REPS[xSETS][@WEIGHT], e.g. 8x3@60")],
    rpe: Annotated[
        Optional[float],
        typer.Option("--rpe", help="Rate of perceived exertion (0-10)"),
    ] = None,
    notes: Annotated[
        Optional[str],
        typer.Option("--notes", "-n", help="Entry notes"),
    ] = None,
    user: UserOption = None,
    data_dir: DataDirOption = None,
) -> None:
    """
    Add an entry to the workout in progress.

    Nothing is written to the store until 'finish':

      liftlog log-set "Bench Press" 8x3@60 --rpe 8
    """
    try:
        reps, sets, weight = parse_set_spec(spec)
        entry = LogEntry(
            date=to_iso(utc_now()), weight=weight, reps=reps, sets=sets, rpe=rpe, notes=notes
        )
    except (ValidationError, ValueError) as e:
        views.print_error(str(e))
        raise typer.Exit(1)

    buffer = get_context(user, data_dir).session_buffer()
    buffer.add_log(exercise, entry)

    views.print_success(f"Logged {exercise}: {reps} x {sets} @ {views.format_weight(weight)}")
    views.console.print(f"[dim]Entry id: {entry.date}[/dim]")


@app.command("remove-set")
def remove_set(
    exercise: Annotated[str, typer.Argument(help="Exercise name")],
    entry_date: Annotated[str, typer.Argument(help="Entry id (its logged-at timestamp)")],
    user: UserOption = None,
    data_dir: DataDirOption = None,
) -> None:
    """Remove an entry from the workout in progress."""
    buffer = get_context(user, data_dir).session_buffer()

    before = buffer.pending_logs.get(exercise, [])
    if not any(e.date == entry_date for e in before):
        views.print_error(f"No pending entry for {exercise!r} at {entry_date}")
        raise typer.Exit(1)

    buffer.remove_log(exercise, LogEntry(date=entry_date))
    views.print_success(f"Removed {exercise} entry {entry_date}")


@app.command("show-pending")
def show_pending(
    json_out: Annotated[
        bool,
        typer.Option("--json", "-j", help="Output as JSON for machine processing"),
    ] = False,
    user: UserOption = None,
    data_dir: DataDirOption = None,
) -> None:
    """Show the workout in progress."""
    pending = get_context(user, data_dir).session_buffer().snapshot()

    if json_out:
        if pending is None:
            print(json.dumps(None))
        else:
            print(json.dumps({"startedAt": pending.started_at, "logs": logs_to_dict(pending.logs)}, indent=2))
        return

    views.print_pending(pending)


@app.command("finish")
def finish(
    duration: Annotated[
        Optional[str],
        typer.Option("--duration", help="Workout duration, e.g. 45:32"),
    ] = None,
    routine: Annotated[
        Optional[str],
        typer.Option("--routine", "-r", help="Routine title"),
    ] = None,
    rating: Annotated[
        Optional[int],
        typer.Option("--rating", min=1, max=5, help="How it went (1-5)"),
    ] = None,
    user: UserOption = None,
    data_dir: DataDirOption = None,
) -> None:
    """Save the workout in progress as one session."""
    buffer = get_context(user, data_dir).session_buffer()

    if not buffer.is_session_active:
        views.print_info("No workout in progress.")
        return

    try:
        session = run(buffer.flush_session(duration=duration, routine_title=routine, rating=rating))
    except Exception as e:
        views.print_error(f"Could not save workout: {e}")
        views.print_info("Your sets are saved locally; run 'finish' again to retry.")
        raise typer.Exit(1)

    if session is not None:
        views.print_success(f"Workout saved ({session.id}).")


@app.command("discard")
def discard(
    force: Annotated[
        bool,
        typer.Option("--force", "-f", help="Skip confirmation"),
    ] = False,
    user: UserOption = None,
    data_dir: DataDirOption = None,
) -> None:
    """Throw away the workout in progress without saving it."""
    buffer = get_context(user, data_dir).session_buffer()

    pending = buffer.snapshot()
    if pending is None:
        views.print_info("No workout in progress.")
        return

    views.print_pending(pending)
    if not force and not views.confirm_action("Discard this workout? This cannot be undone."):
        views.print_info("Cancelled.")
        raise typer.Exit(0)

    buffer.clear_session()
    views.print_success("Workout discarded.")
