"""CLI app setup and common utilities.

This module creates the main Typer app and the shared helpers commands use
to build a data source and a board from the global options.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import typer
from typer import Context, Typer

from outreachboard.config import config
from outreachboard.connectors import ApiKeyAuth, FileDataSource, HttpDataSource, RequestPolicy
from outreachboard.connectors.base import ProjectDataSource, SourceError
from outreachboard.logging_setup import configure_logging
from outreachboard.service import ProjectBoard

# Initialize Typer app
app = Typer(
    name="outreach",
    help="Outreach board: filter contacts by activity, drill into channel KPIs.",
    no_args_is_help=True,
)


class CLIState:
    """Shared state object for CLI commands."""

    def __init__(self):
        self.data_dir: Optional[Path] = None
        self.api_url: Optional[str] = None
        self.token: Optional[str] = None
        self._source: Optional[ProjectDataSource] = None

    def source(self) -> ProjectDataSource:
        """Build the data source on first use.

        An explicit --data-dir wins; otherwise an API URL (option or
        OB_API_BASE_URL) selects the HTTP backend, and the configured data
        directory is the last resort.
        """
        if self._source is not None:
            return self._source

        if self.data_dir is None and self.api_url:
            policy = RequestPolicy(read_timeout=config.api.timeout_s, max_retries=config.api.max_retries)
            self._source = HttpDataSource(
                self.api_url, auth=ApiKeyAuth(api_key=self.token or ""), policy=policy
            )
        else:
            self._source = FileDataSource(self.data_dir or config.data_dir)
        return self._source


def get_state(ctx: Context) -> CLIState:
    if ctx.obj is None:
        ctx.obj = CLIState()
    return ctx.obj


def open_board(ctx: Context, project_id: str, page_size: Optional[int] = None) -> ProjectBoard:
    """Board for one project with its activity snapshot loaded.

    Raises:
        typer.Exit: If the activities cannot be loaded.
    """
    board = ProjectBoard(get_state(ctx).source(), project_id, page_size=page_size)
    outcome = board.refresh_activities()
    if not outcome.ok:
        fail(f"Could not load activities for {project_id}: {outcome.message}")
    return board


def fail(message: str) -> None:
    """Print an error line and exit with status 1."""
    typer.echo(f"❌ {message}", err=True)
    raise typer.Exit(1)


def fail_source(error: SourceError) -> None:
    fail(f"{error.user_message}")


@app.callback()
def init_app(
    ctx: Context,
    data_dir: Optional[Path] = typer.Option(
        None, "--data-dir", "-d", help="Directory of per-project JSON exports"
    ),
    api_url: Optional[str] = typer.Option(
        None, "--api-url", help="Backend API base URL", envvar="OB_API_BASE_URL"
    ),
    token: Optional[str] = typer.Option(None, "--token", help="Backend API token", envvar="OB_API_TOKEN"),
    log_level: Optional[str] = typer.Option(None, "--log-level", help="Logging level (default: OB_LOG_LEVEL)"),
):
    """Pick the data source and configure logging for all commands."""
    configure_logging(log_level)

    state = ctx.ensure_object(CLIState)
    state.data_dir = data_dir
    state.api_url = api_url or config.api.base_url
    state.token = token or config.api.token
