"""Controllers for reconciliation CLI commands."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, replace

from rich.console import RenderableType
from rich.progress import BarColumn, MofNCompleteColumn, Progress, TextColumn, TimeElapsedColumn
from rich.table import Table
from rich.text import Text

from vod_sync.config import Settings
from vod_sync.filmweb.provider import FilmwebMetadataProvider
from vod_sync.http.fetcher import AsyncHttpFetcher
from vod_sync.reconcile.contracts import FetchError
from vod_sync.reconcile.keys import build_label_names, extract_canonical_key
from vod_sync.reconcile.models import RunReport, SubscriptionEntry
from vod_sync.reconcile.pipeline import run_reconciliation
from vod_sync.todoist.store import TodoistTaskStore

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class RunCommand:
    """CLI inputs for the reconciliation run command."""

    project_id: int | None
    concurrency: int | None
    description_mode: str | None
    dry_run: bool
    show_progress: bool


@dataclass(slots=True)
class InspectCommand:
    """CLI inputs for the single-title inspection command."""

    url: str


class RichProgressReporter:
    """Progress bar over processed tasks."""

    def __init__(self) -> None:
        self._progress = Progress(
            TextColumn("[progress.description]{task.description}"),
            BarColumn(),
            MofNCompleteColumn(),
            TimeElapsedColumn(),
            transient=True,
        )
        self._task_id = None

    def start(self, total: int) -> None:
        self._task_id = self._progress.add_task("Tagging tasks", total=total)
        self._progress.start()

    def advance(self) -> None:
        if self._task_id is not None:
            self._progress.advance(self._task_id)

    def stop(self) -> None:
        self._progress.stop()


class ReconcileCliController:
    """Coordinates reconciliation command execution."""

    def run(self, command: RunCommand) -> list[RenderableType]:
        settings = _apply_overrides(Settings.from_env(), command)
        settings.validate()
        report = asyncio.run(
            _run_with_adapters(
                settings,
                dry_run=command.dry_run,
                show_progress=command.show_progress,
            ),
        )
        return render_report(report)

    def inspect(self, command: InspectCommand) -> list[RenderableType]:
        settings = Settings.from_env()
        url = extract_canonical_key(f"({command.url.rstrip('/')})")
        if url is None:
            raise ValueError(f"Not a Filmweb title URL: {command.url!r}")
        entries, schedule = asyncio.run(_inspect_title(settings, url))

        subscription = [entry for entry in entries if entry.is_subscription]
        labels = build_label_names(
            (entry.provider_name for entry in subscription),
            excluded_names=settings.labels.excluded_names,
        )
        lines: list[RenderableType] = [
            f"Title: {url}",
            f"VOD offers: {len(entries)} (subscription={len(subscription)})",
            f"Labels: {'; '.join(labels) or '-'}",
        ]
        if schedule:
            lines.append("TV broadcasts:")
            lines.extend(f"  {line}" for line in schedule)
        else:
            lines.append("TV broadcasts: -")
        return lines


def render_report(report: RunReport) -> list[RenderableType]:
    """Build the console report: totals, success table, failure table."""

    counters = report.counters
    prefix = "Dry run. " if report.dry_run else ""
    output: list[RenderableType] = [
        f"{prefix}Run marker: {report.run_marker}",
        "Tasks: "
        f"listed={counters.listed_count} "
        f"eligible={counters.eligible_count} "
        f"done_today={counters.marked_today_count} "
        f"without_url={counters.without_url_count}",
    ]
    if report.dry_run:
        output.append(f"Duplicates found: {counters.duplicate_count}")
    else:
        output.append(f"Removed duplicates: {report.closes.closed}")
    for failure in report.closes.failures:
        output.append(f"  close failed: task={failure.task_id} url={failure.url} {failure.reason}")
    if report.created_labels:
        output.append(f"Created labels: {', '.join(report.created_labels)}")

    processed = Table(title=f"Processed ({len(report.processed)})")
    processed.add_column("Task")
    processed.add_column("URL")
    processed.add_column("Labels")
    for item in report.processed:
        processed.add_row(item.task_id, item.url, item.label_summary)
    output.append(processed)

    if report.failed:
        failed = Table(title=f"Failed ({len(report.failed)})")
        failed.add_column("Task")
        failed.add_column("URL")
        failed.add_column("Error")
        for item in report.failed:
            failed.add_row(item.task_id, item.url, Text(item.reason))
        output.append(failed)
    return output


async def _run_with_adapters(
    settings: Settings,
    *,
    dry_run: bool,
    show_progress: bool,
) -> RunReport:
    async with (
        TodoistTaskStore(
            token=settings.todoist.token,
            api_url=settings.todoist.api_url,
            timeout_seconds=settings.todoist.request_timeout_seconds,
        ) as store,
        _fetcher(settings) as fetcher,
    ):
        return await run_reconciliation(
            settings=settings,
            store=store,
            provider=FilmwebMetadataProvider(fetcher),
            dry_run=dry_run,
            progress=RichProgressReporter() if show_progress else None,
        )


async def _inspect_title(
    settings: Settings,
    url: str,
) -> tuple[list[SubscriptionEntry], list[str]]:
    async with _fetcher(settings) as fetcher:
        provider = FilmwebMetadataProvider(fetcher)
        entries = await provider.fetch_subscription_entries(url)
        try:
            schedule = await provider.fetch_broadcast_schedule(url)
        except FetchError as error:
            logger.warning("No broadcast schedule for %s: %s", url, error)
            schedule = []
    return entries, schedule


def _fetcher(settings: Settings) -> AsyncHttpFetcher:
    return AsyncHttpFetcher(
        timeout_seconds=settings.filmweb.request_timeout_seconds,
        max_retries=settings.filmweb.max_transport_retries,
    )


def _apply_overrides(settings: Settings, command: RunCommand) -> Settings:
    todoist = settings.todoist
    if command.project_id is not None:
        todoist = replace(todoist, project_id=command.project_id)
    execution = settings.execution
    if command.concurrency is not None:
        execution = replace(execution, concurrency=command.concurrency)
    if command.description_mode is not None:
        execution = replace(execution, description_mode=command.description_mode.lower())
    return replace(settings, todoist=todoist, execution=execution)
