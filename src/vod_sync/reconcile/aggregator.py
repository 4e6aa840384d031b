"""Per-run collection of task outcomes."""

from __future__ import annotations

from dataclasses import dataclass, field

from vod_sync.reconcile.models import FailedTask, ProcessedTask


@dataclass(slots=True)
class ResultAggregator:
    """Append-only success and failure logs for one run.

    Appends come from tasks on a single event loop and never interleave
    mid-call, so no lock is needed.
    """

    _processed: list[ProcessedTask] = field(default_factory=list)
    _failed: list[FailedTask] = field(default_factory=list)

    def record_success(self, *, task_id: str, url: str, labels: list[str]) -> None:
        self._processed.append(ProcessedTask(task_id=task_id, url=url, labels=list(labels)))

    def record_failure(self, *, task_id: str, url: str, reason: str) -> None:
        self._failed.append(FailedTask(task_id=task_id, url=url, reason=reason))

    def processed(self) -> list[ProcessedTask]:
        """Successes sorted by URL, then task id, for deterministic reporting."""
        return sorted(self._processed, key=lambda item: (item.url, item.task_id))

    def failed(self) -> list[FailedTask]:
        return list(self._failed)
