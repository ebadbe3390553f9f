"""
CLI entry point using Typer.

Provides commands for the workout-session and quota layer:
- log-set / remove-set / show-pending: edit the workout in progress
- finish / discard: save it as one session, or throw it away
- quota-status / quota-use / quota-release: daily AI quotas
- migrate: convert legacy logs to sessions
- history / streak / coach-advice: committed workouts
"""

from typing import Annotated

import typer

from .app import app, configure_logging
from .commands import history, quota, sessions  # noqa: F401  (registers commands)


@app.callback()
def main_callback(
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Show debug logging on stderr"),
    ] = False,
) -> None:
    """
    Local-first workout log. Sets are buffered on this device and saved as
    one session when you finish.
    """
    configure_logging(verbose)


if __name__ == "__main__":
    app()
