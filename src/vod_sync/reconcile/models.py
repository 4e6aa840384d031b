"""Domain models for task selection, enrichment, and run reporting."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

SUBSCRIPTION_TYPE = "abonament"


class TaskState(str, Enum):
    """Per-task processing states within one attempt."""

    PENDING = "pending"
    METADATA_FETCHED = "metadata_fetched"
    LABELS_RESOLVED = "labels_resolved"
    UPDATED = "updated"
    FAILED = "failed"


class DescriptionMode(str, Enum):
    """What gets written into the task description on success."""

    MARKER = "marker"
    SUMMARY = "summary"


@dataclass(slots=True)
class RemoteTask:
    """Task payload as returned by the task store."""

    id: str
    label_ids: list[str]
    content: str
    description: str = ""


@dataclass(slots=True)
class RemoteLabel:
    """Label payload as returned by the task store."""

    id: str
    name: str


@dataclass(slots=True)
class Task:
    """Task eligible for reconciliation, keyed by its canonical URL."""

    id: str
    label_ids: list[str]
    url: str
    description: str = ""


@dataclass(slots=True)
class SubscriptionEntry:
    """One VOD offer scraped for a title."""

    type: str
    provider_name: str

    @property
    def is_subscription(self) -> bool:
        return self.type == SUBSCRIPTION_TYPE


@dataclass(slots=True)
class TitleMetadata:
    """Metadata gathered for one task URL within one attempt."""

    entries: list[SubscriptionEntry]
    schedule: list[str] = field(default_factory=list)


@dataclass(slots=True)
class ProcessedTask:
    """Successful outcome of processing one task."""

    task_id: str
    url: str
    labels: list[str]

    @property
    def label_summary(self) -> str:
        return "; ".join(self.labels)


@dataclass(slots=True)
class FailedTask:
    """Task that exhausted its retries."""

    task_id: str
    url: str
    reason: str


@dataclass(slots=True)
class CloseFailure:
    """Duplicate task that could not be closed."""

    task_id: str
    url: str
    reason: str


@dataclass(slots=True)
class CloseSummary:
    """Outcome of awaiting all duplicate close requests."""

    closed: int = 0
    failures: list[CloseFailure] = field(default_factory=list)

    @property
    def requested(self) -> int:
        return self.closed + len(self.failures)


@dataclass(slots=True)
class SelectionCounters:
    """Counters tracked while selecting eligible tasks."""

    listed_count: int = 0
    marked_today_count: int = 0
    without_url_count: int = 0
    duplicate_count: int = 0
    eligible_count: int = 0


@dataclass(slots=True)
class RunReport:
    """Final result of one reconciliation run."""

    run_marker: str
    counters: SelectionCounters
    closes: CloseSummary
    processed: list[ProcessedTask]
    failed: list[FailedTask]
    created_labels: list[str] = field(default_factory=list)
    dry_run: bool = False
