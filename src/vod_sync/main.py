"""CLI entrypoint for vod-sync."""

import logging

import rich_click as click
from dotenv import load_dotenv
from rich.console import Console, RenderableType

from vod_sync import __version__
from vod_sync.reconcile.contracts import ReconcileError
from vod_sync.reconcile.controllers import (
    InspectCommand,
    ReconcileCliController,
    RunCommand,
)

click.rich_click.USE_MARKDOWN = True
RECONCILE_CONTROLLER = ReconcileCliController()
LOG_LEVELS = ["DEBUG", "INFO", "WARNING", "ERROR"]


@click.group()
@click.version_option(version=__version__, prog_name="vod-sync")
@click.option(
    "--log-level",
    type=click.Choice(LOG_LEVELS, case_sensitive=False),
    default="WARNING",
    show_default=True,
    help="Logging verbosity.",
)
def vod_sync(log_level: str) -> None:
    """Tag Todoist watch-list tasks with Filmweb VOD subscription labels."""

    load_dotenv()
    logging.basicConfig(
        level=log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


@vod_sync.command("run")
@click.option(
    "--project-id",
    type=int,
    default=None,
    help="Todoist project to scan. Defaults to VOD_SYNC_PROJECT_ID.",
)
@click.option(
    "--concurrency",
    type=click.IntRange(min=1, max=20),
    default=None,
    help="Tasks processed in parallel. Defaults to VOD_SYNC_CONCURRENCY (3).",
)
@click.option(
    "--description-mode",
    type=click.Choice(["marker", "summary"], case_sensitive=False),
    default=None,
    help=(
        "Write only today's run marker into the task description, or the marker "
        "followed by labels and TV broadcasts. Defaults to VOD_SYNC_DESCRIPTION_MODE."
    ),
)
@click.option(
    "--dry-run/--no-dry-run",
    default=False,
    show_default=True,
    help="Scrape and report without closing, creating labels, or updating tasks.",
)
@click.option(
    "--progress/--no-progress",
    "show_progress",
    default=True,
    show_default=True,
    help="Show a progress bar while tasks are processed.",
)
def run(
    project_id: int | None,
    concurrency: int | None,
    description_mode: str | None,
    dry_run: bool,
    show_progress: bool,
) -> None:
    """Deduplicate the project's tasks and attach VOD labels to each title."""

    try:
        output = RECONCILE_CONTROLLER.run(
            RunCommand(
                project_id=project_id,
                concurrency=concurrency,
                description_mode=description_mode,
                dry_run=dry_run,
                show_progress=show_progress,
            ),
        )
    except (ValueError, ReconcileError) as error:
        raise click.ClickException(str(error)) from error
    _emit(output)


@vod_sync.command("inspect")
@click.argument("url")
def inspect(url: str) -> None:
    """Show labels and TV broadcasts scraped for one Filmweb title URL."""

    try:
        output = RECONCILE_CONTROLLER.inspect(InspectCommand(url=url))
    except (ValueError, ReconcileError) as error:
        raise click.ClickException(str(error)) from error
    _emit(output)


def _emit(renderables: list[RenderableType]) -> None:
    console = Console()
    for renderable in renderables:
        console.print(renderable, markup=False, highlight=False)


if __name__ == "__main__":  # pragma: no cover
    vod_sync()
