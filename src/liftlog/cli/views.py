"""
CLI view formatters using Rich for pretty console output.

Handles table formatting and display of sessions, quotas and streaks.
"""

from rich.console import Console
from rich.markup import escape
from rich.table import Table

from ..core.migration import MigrationReport
from ..core.models import (
    PendingSession,
    PersistedWorkoutSession,
    RateLimitStatus,
    SessionLogs,
    count_entries,
)
from ..core.streaks import Streaks

console = Console()


def format_weight(weight: float) -> str:
    return f"{weight:.1f}" if weight != 0 else "BW"


def format_logs_table(logs: SessionLogs, title: str) -> Table:
    """
    Create a Rich table with one row per log entry.

    Args:
        logs: Entries keyed by exercise
        title: Table title

    Returns:
        Rich Table object
    """
    table = Table(title=title)

    table.add_column("Exercise", style="cyan")
    table.add_column("Logged at", style="dim")
    table.add_column("Weight(kg)", justify="right")
    table.add_column("Reps", justify="right", style="bold")
    table.add_column("Sets", justify="right")
    table.add_column("RPE", justify="right")
    table.add_column("Notes")

    for exercise, entries in logs.items():
        for entry in sorted(entries, key=lambda e: e.date):
            table.add_row(
                escape(exercise),
                entry.date,
                format_weight(entry.weight),
                str(entry.reps),
                str(entry.sets),
                f"{entry.rpe:g}" if entry.rpe is not None else "-",
                escape(entry.notes or ""),
            )

    return table


def print_pending(pending: PendingSession | None) -> None:
    """Print the workout in progress."""
    if pending is None:
        console.print("[yellow]No workout in progress.[/yellow]")
        return

    console.print(
        f"Workout started [bold]{pending.started_at}[/bold]: "
        f"{count_entries(pending.logs)} entries across {len(pending.logs)} exercises"
    )
    console.print(format_logs_table(pending.logs, "Pending Session"))


def format_sessions_table(sessions: list[PersistedWorkoutSession]) -> Table:
    """
    Create a Rich table summarising committed sessions.

    Args:
        sessions: Sessions to display, in display order

    Returns:
        Rich Table object
    """
    table = Table(title="Workout History")

    table.add_column("#", justify="right", style="dim", width=3)
    table.add_column("Date", style="cyan")
    table.add_column("Routine", style="magenta")
    table.add_column("Duration", justify="right")
    table.add_column("Exercises", justify="right")
    table.add_column("Entries", justify="right", style="bold")
    table.add_column("Rating", justify="right")

    for i, session in enumerate(sessions, 1):
        table.add_row(
            str(i),
            session.date,
            escape(session.routine_title or "-"),
            session.duration or "-",
            str(len(session.logs)),
            str(count_entries(session.logs)),
            str(session.rating) if session.rating is not None else "-",
        )

    return table


def print_history(sessions: list[PersistedWorkoutSession]) -> None:
    """Print committed sessions, newest first."""
    if not sessions:
        console.print("[yellow]No workouts recorded yet.[/yellow]")
        return
    console.print(format_sessions_table(sessions))


def format_quota_status(action: str, status: RateLimitStatus) -> str:
    """
    Format a quota as a text block.

    Args:
        action: Gated action name
        status: Latest status from the rate limiter

    Returns:
        Formatted string
    """
    lines = [f"Quota for {action}"]
    lines.append(f"- Remaining today: {status.remaining} of {status.limit}")
    lines.append(f"- Resets at: {status.reset_at or 'next UTC midnight'}")
    if status.error:
        lines.append(f"- Note: {status.error}")
    return "\n".join(lines)


def print_quota(action: str, status: RateLimitStatus) -> None:
    console.print(escape(format_quota_status(action, status)))


def print_streaks(streaks: Streaks) -> None:
    day_unit = "day" if streaks.day == 1 else "days"
    week_unit = "week" if streaks.week == 1 else "weeks"
    console.print(f"Day streak:  [bold]{streaks.day}[/bold] {day_unit}")
    console.print(f"Week streak: [bold]{streaks.week}[/bold] {week_unit}")


def print_migration_report(report: MigrationReport) -> None:
    """Summarise one migration run."""
    if report.already_migrated:
        print_info("Legacy logs were already migrated.")
        return
    if report.batches_committed == 0:
        print_info("No legacy logs to migrate.")
        return
    print_success(
        f"Migrated {report.sessions_written} sessions in {report.batches_committed} batches."
    )
    if report.skipped_entries:
        print_warning(f"{report.skipped_entries} entries had no date and were skipped.")


def print_success(message: str) -> None:
    """Print a success message."""
    console.print(f"[green]{escape(message)}[/green]")


def print_error(message: str) -> None:
    """Print an error message."""
    console.print(f"[red]Error: {escape(message)}[/red]")


def print_warning(message: str) -> None:
    """Print a warning message."""
    console.print(f"[yellow]Warning: {escape(message)}[/yellow]")


def print_info(message: str) -> None:
    """Print an info message."""
    console.print(f"[blue]{escape(message)}[/blue]")


def confirm_action(message: str) -> bool:
    """
    Prompt user for confirmation.

    Args:
        message: Confirmation message

    Returns:
        True if confirmed, False otherwise
    """
    response = console.input(f"{escape(message)} \\[y/N]: ")
    return response.lower() in ("y", "yes")
