"""Collaborator contracts and error taxonomy for the reconciliation run."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol, runtime_checkable

from vod_sync.reconcile.models import RemoteLabel, RemoteTask, SubscriptionEntry


@dataclass(slots=True)
class ReconcileError(Exception):
    """Base reconciliation error."""

    message: str
    code: str = "reconcile_error"

    def __str__(self) -> str:
        return self.message


@dataclass(slots=True)
class SetupError(ReconcileError):
    """Labels or tasks could not be listed; aborts the run before processing."""

    code: str = "setup"


@dataclass(slots=True)
class FetchError(ReconcileError):
    """Metadata retrieval failed; retryable."""

    code: str = "fetch"
    url: str | None = None


@dataclass(slots=True)
class LabelCreationError(ReconcileError):
    """Task store rejected label creation; retryable."""

    code: str = "label_create"
    name: str | None = None


@dataclass(slots=True)
class UpdateError(ReconcileError):
    """Task store rejected the label/description write; retryable."""

    code: str = "update"
    task_id: str | None = None


@dataclass(slots=True)
class CloseError(ReconcileError):
    """Duplicate task could not be closed."""

    code: str = "close"
    task_id: str | None = None


@dataclass(slots=True)
class StoreError(ReconcileError):
    """Generic task store request failure."""

    code: str = "store"
    status_code: int | None = None


class TaskStore(Protocol):
    """Interface for the remote task tracker."""

    async def list_tasks(self, project_id: int) -> list[RemoteTask]:
        """List open tasks of one project."""
        raise NotImplementedError

    async def list_labels(self) -> list[RemoteLabel]:
        """List all labels visible to the user."""
        raise NotImplementedError

    async def create_label(self, name: str) -> RemoteLabel:
        """Create a label and return it with its store-assigned id."""
        raise NotImplementedError

    async def update_task(self, task_id: str, *, label_ids: list[str], description: str) -> None:
        """Replace the task's labels and description in one request."""
        raise NotImplementedError

    async def close_task(self, task_id: str) -> None:
        """Move the task to its terminal state."""
        raise NotImplementedError


class MetadataProvider(Protocol):
    """Interface for title metadata lookups."""

    async def fetch_subscription_entries(self, url: str) -> list[SubscriptionEntry]:
        """Return VOD offers listed for the title at ``url``."""
        raise NotImplementedError


@runtime_checkable
class BroadcastScheduleProvider(Protocol):
    """Optional capability: TV broadcast schedule for a title."""

    async def fetch_broadcast_schedule(self, url: str) -> list[str]:
        """Return human-readable ``"<date>: <times> @ <channel>"`` strings."""
        raise NotImplementedError
