"""End-to-end reconciliation run orchestration."""

from __future__ import annotations

import logging
from datetime import date
from typing import Protocol

from vod_sync.config import Settings
from vod_sync.reconcile.aggregator import ResultAggregator
from vod_sync.reconcile.contracts import (
    BroadcastScheduleProvider,
    MetadataProvider,
    ReconcileError,
    SetupError,
    TaskStore,
    UpdateError,
)
from vod_sync.reconcile.executor import ConcurrentRetryExecutor
from vod_sync.reconcile.keys import build_description, build_label_names, build_run_marker
from vod_sync.reconcile.models import (
    DescriptionMode,
    RemoteTask,
    RunReport,
    Task,
    TaskState,
    TitleMetadata,
)
from vod_sync.reconcile.services.dedup_service import DedupStageService
from vod_sync.reconcile.services.label_service import LabelResolver

logger = logging.getLogger(__name__)


class ProgressReporter(Protocol):
    """Optional hook for displaying per-task progress."""

    def start(self, total: int) -> None:
        raise NotImplementedError

    def advance(self) -> None:
        raise NotImplementedError

    def stop(self) -> None:
        raise NotImplementedError


class ReconciliationPipeline:
    """Coordinates selection, enrichment, and reporting for one run.

    All run state (label cache, outcome logs) lives on the instance, so create
    one pipeline per run.
    """

    def __init__(
        self,
        *,
        settings: Settings,
        store: TaskStore,
        provider: MetadataProvider,
        today: date | None = None,
        dry_run: bool = False,
        progress: ProgressReporter | None = None,
    ) -> None:
        self.settings = settings
        self.store = store
        self.provider = provider
        self.dry_run = dry_run
        self.progress = progress
        self.run_marker = build_run_marker(today or date.today())
        self.description_mode = DescriptionMode(settings.execution.description_mode)

        self.labels = LabelResolver(store)
        self.results = ResultAggregator()
        self.dedup_stage = DedupStageService(store=store, close_duplicates=not dry_run)
        self.executor: ConcurrentRetryExecutor[Task] = ConcurrentRetryExecutor(
            concurrency=settings.execution.concurrency,
            attempts=settings.execution.retry_attempts,
            delay_seconds=settings.execution.retry_delay_seconds,
        )

    async def run(self) -> RunReport:
        await self.labels.load()
        tasks = await self._list_tasks()

        selection = self.dedup_stage.select_eligible(tasks, self.run_marker)
        logger.info(
            "Selected %d of %d tasks (marked today=%d, without url=%d, duplicates=%d)",
            selection.counters.eligible_count,
            selection.counters.listed_count,
            selection.counters.marked_today_count,
            selection.counters.without_url_count,
            selection.counters.duplicate_count,
        )

        if self.progress is not None:
            self.progress.start(len(selection.eligible))
        try:
            await self.executor.run(
                selection.eligible,
                self.process_one,
                on_give_up=self._record_failure,
                on_done=self._advance_progress,
            )
        finally:
            if self.progress is not None:
                self.progress.stop()

        closes = await selection.closing.wait()

        report = RunReport(
            run_marker=self.run_marker,
            counters=selection.counters,
            closes=closes,
            processed=self.results.processed(),
            failed=self.results.failed(),
            created_labels=self.labels.created,
            dry_run=self.dry_run,
        )
        logger.info(
            "Run %s finished: processed=%d failed=%d duplicates_closed=%d",
            self.run_marker,
            len(report.processed),
            len(report.failed),
            report.closes.closed,
        )
        return report

    async def process_one(self, task: Task) -> None:
        """Fetch metadata, resolve labels, and write them back in one update.

        Each call restarts from the fetch; nothing is kept between attempts.
        """

        state = TaskState.PENDING
        try:
            metadata = await self._fetch_metadata(task)
            state = TaskState.METADATA_FETCHED

            label_names = build_label_names(
                (entry.provider_name for entry in metadata.entries if entry.is_subscription),
                excluded_names=self.settings.labels.excluded_names,
            )
            if not self.dry_run:
                label_ids = await self.labels.resolve_many(label_names)
                state = TaskState.LABELS_RESOLVED

                description = build_description(
                    marker=self.run_marker,
                    labels=label_names,
                    schedule=metadata.schedule,
                    summary=self.description_mode is DescriptionMode.SUMMARY,
                )
                await self._update_task(task, label_ids=label_ids, description=description)
        except Exception as exc:
            logger.debug("Task %s failed after %s: %s", task.id, state.value, exc)
            raise

        logger.debug("Task %s %s with %s", task.id, TaskState.UPDATED.value, label_names)
        self.results.record_success(task_id=task.id, url=task.url, labels=label_names)

    async def _list_tasks(self) -> list[RemoteTask]:
        project_id = self.settings.todoist.project_id
        if project_id is None:
            raise SetupError(message="Project id is not configured.")
        try:
            return await self.store.list_tasks(project_id)
        except ReconcileError as error:
            raise SetupError(message=f"Cannot list tasks: {error}") from error

    async def _fetch_metadata(self, task: Task) -> TitleMetadata:
        entries = await self.provider.fetch_subscription_entries(task.url)
        schedule: list[str] = []
        if self.description_mode is DescriptionMode.SUMMARY and isinstance(
            self.provider,
            BroadcastScheduleProvider,
        ):
            schedule = await self.provider.fetch_broadcast_schedule(task.url)
        return TitleMetadata(entries=entries, schedule=schedule)

    async def _update_task(self, task: Task, *, label_ids: list[str], description: str) -> None:
        try:
            await self.store.update_task(task.id, label_ids=label_ids, description=description)
        except UpdateError:
            raise
        except ReconcileError as error:
            raise UpdateError(
                message=f"Cannot update task {task.id}: {error}",
                task_id=task.id,
            ) from error

    def _record_failure(self, task: Task, error: Exception) -> None:
        self.results.record_failure(task_id=task.id, url=task.url, reason=str(error))

    def _advance_progress(self, _task: Task) -> None:
        if self.progress is not None:
            self.progress.advance()


async def run_reconciliation(
    *,
    settings: Settings,
    store: TaskStore,
    provider: MetadataProvider,
    today: date | None = None,
    dry_run: bool = False,
    progress: ProgressReporter | None = None,
) -> RunReport:
    """Run one reconciliation pass with provided dependencies."""

    return await ReconciliationPipeline(
        settings=settings,
        store=store,
        provider=provider,
        today=today,
        dry_run=dry_run,
        progress=progress,
    ).run()
