"""Task selection stage: idempotent skip and URL deduplication."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field

from vod_sync.reconcile.contracts import CloseError, TaskStore
from vod_sync.reconcile.keys import extract_canonical_key, is_marked
from vod_sync.reconcile.models import (
    CloseFailure,
    CloseSummary,
    RemoteTask,
    SelectionCounters,
    Task,
)

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class _CloseRequest:
    task_id: str
    url: str
    future: asyncio.Task[None]


class PendingCloses:
    """Handle over duplicate close requests started during selection."""

    def __init__(self) -> None:
        self._requests: list[_CloseRequest] = []

    def __len__(self) -> int:
        return len(self._requests)

    def start(self, store: TaskStore, *, task_id: str, url: str) -> None:
        future = asyncio.create_task(store.close_task(task_id))
        self._requests.append(_CloseRequest(task_id=task_id, url=url, future=future))

    async def wait(self) -> CloseSummary:
        """Await every close request and collect failures instead of raising them."""

        summary = CloseSummary()
        if not self._requests:
            return summary
        results = await asyncio.gather(
            *(request.future for request in self._requests),
            return_exceptions=True,
        )
        for request, result in zip(self._requests, results, strict=True):
            if isinstance(result, asyncio.CancelledError):
                raise result
            if isinstance(result, BaseException):
                error = CloseError(message=str(result), task_id=request.task_id)
                logger.warning(
                    "Failed to close duplicate task %s (%s): %s",
                    request.task_id,
                    request.url,
                    error,
                )
                summary.failures.append(
                    CloseFailure(task_id=request.task_id, url=request.url, reason=str(error)),
                )
            else:
                summary.closed += 1
        return summary


@dataclass(slots=True)
class DedupSelection:
    """Eligible tasks plus the close requests issued for duplicates."""

    eligible: list[Task]
    closing: PendingCloses
    counters: SelectionCounters = field(default_factory=SelectionCounters)

    @property
    def duplicates_count(self) -> int:
        return self.counters.duplicate_count


class DedupStageService:
    """Selects tasks to process, closing repeats of an already seen URL."""

    def __init__(self, *, store: TaskStore, close_duplicates: bool = True) -> None:
        self.store = store
        self.close_duplicates = close_duplicates

    def select_eligible(self, tasks: list[RemoteTask], today_marker: str) -> DedupSelection:
        """Filter ``tasks`` in store order; first task seen for a URL wins.

        Must be called from a running event loop since close requests are
        scheduled immediately. Tasks already marked today do not take part in
        duplicate bookkeeping.
        """

        counters = SelectionCounters(listed_count=len(tasks))
        closing = PendingCloses()
        eligible: list[Task] = []
        seen_urls: set[str] = set()

        for remote in tasks:
            if is_marked(remote.description, today_marker):
                counters.marked_today_count += 1
                continue

            url = extract_canonical_key(remote.content)
            if url is None:
                counters.without_url_count += 1
                continue

            if url in seen_urls:
                counters.duplicate_count += 1
                logger.info("Duplicate task %s for %s", remote.id, url)
                if self.close_duplicates:
                    closing.start(self.store, task_id=remote.id, url=url)
                continue

            seen_urls.add(url)
            eligible.append(
                Task(
                    id=remote.id,
                    label_ids=list(remote.label_ids),
                    url=url,
                    description=remote.description,
                ),
            )

        counters.eligible_count = len(eligible)
        return DedupSelection(eligible=eligible, closing=closing, counters=counters)
