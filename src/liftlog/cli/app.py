"""Shared Typer app object, shared option types, and store wiring."""

import asyncio
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Annotated, Coroutine, Optional, TypeVar

import typer
from rich.console import Console
from rich.logging import RichHandler

from ..core.config_loader import AppConfig, load_app_config
from ..core.events import LoggingEventSink
from ..core.session_buffer import SessionBuffer
from ..io.document_store import JsonFileDocumentStore
from ..io.local_storage import FileLocalStorage

T = TypeVar("T")

# Shared --user / --data-dir options used across all commands
UserOption = Annotated[
    Optional[str],
    typer.Option("--user", "-u", envvar="LIFTLOG_USER", help="User id (default from config)"),
]
DataDirOption = Annotated[
    Optional[Path],
    typer.Option("--data-dir", "-D", help="Data directory (default: ~/.liftlog or LIFTLOG_HOME)"),
]

app = typer.Typer(
    name="liftlog",
    help="Local-first workout logging with single-write sessions and daily AI quotas.",
    no_args_is_help=True,
)


@dataclass
class CliContext:
    """Everything a command needs, built once per invocation."""

    config: AppConfig
    uid: str
    store: JsonFileDocumentStore
    local_storage: FileLocalStorage

    def session_buffer(self) -> SessionBuffer:
        return SessionBuffer(
            self.store,
            self.local_storage,
            self.uid,
            app_id=self.config.app_id,
            events=LoggingEventSink(),
        )


def get_context(user: str | None, data_dir: Path | None) -> CliContext:
    """Resolve config, user and storage for a command."""
    config = load_app_config()
    if data_dir is not None:
        config.data_dir = data_dir.expanduser()
    return CliContext(
        config=config,
        uid=user or config.default_user,
        store=JsonFileDocumentStore(config.store_dir),
        local_storage=FileLocalStorage(config.local_storage_path),
    )


def run(coro: Coroutine[object, object, T]) -> T:
    """Drive one store coroutine to completion from a sync command."""
    return asyncio.run(coro)


def configure_logging(verbose: bool) -> None:
    """Route library logging through Rich on stderr."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), show_path=verbose)],
        force=True,
    )
