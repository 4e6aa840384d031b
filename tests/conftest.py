"""Shared test fixtures."""

from __future__ import annotations

import asyncio

import pytest

from vod_sync.config import ExecutionSettings, LabelSettings, Settings, TodoistSettings
from vod_sync.reconcile.contracts import CloseError, FetchError, LabelCreationError, UpdateError
from vod_sync.reconcile.models import RemoteLabel, RemoteTask, SubscriptionEntry


class FakeTaskStore:
    """In-memory task store recording every call."""

    def __init__(
        self,
        tasks: list[RemoteTask] | None = None,
        labels: list[RemoteLabel] | None = None,
    ) -> None:
        self.tasks = {task.id: task for task in tasks or []}
        self.labels = list(labels or [])
        self.create_calls: list[str] = []
        self.update_calls: list[tuple[str, list[str], str]] = []
        self.close_calls: list[str] = []
        self.fail_update_for: set[str] = set()
        self.fail_close_for: set[str] = set()
        self.fail_create_for: set[str] = set()
        self.fail_list_labels = False
        self.fail_list_tasks = False
        self._next_label_id = 1000

    async def list_tasks(self, project_id: int) -> list[RemoteTask]:  # noqa: ARG002
        if self.fail_list_tasks:
            raise FetchError(message="tasks unavailable")
        return list(self.tasks.values())

    async def list_labels(self) -> list[RemoteLabel]:
        if self.fail_list_labels:
            raise FetchError(message="labels unavailable")
        return list(self.labels)

    async def create_label(self, name: str) -> RemoteLabel:
        self.create_calls.append(name)
        await asyncio.sleep(0)
        if name in self.fail_create_for:
            raise LabelCreationError(message=f"conflict on {name}", name=name)
        self._next_label_id += 1
        label = RemoteLabel(id=str(self._next_label_id), name=name)
        self.labels.append(label)
        return label

    async def update_task(self, task_id: str, *, label_ids: list[str], description: str) -> None:
        self.update_calls.append((task_id, list(label_ids), description))
        await asyncio.sleep(0)
        if task_id in self.fail_update_for:
            raise UpdateError(message="HTTP 500", task_id=task_id)
        task = self.tasks[task_id]
        task.label_ids = list(label_ids)
        task.description = description

    async def close_task(self, task_id: str) -> None:
        self.close_calls.append(task_id)
        await asyncio.sleep(0)
        if task_id in self.fail_close_for:
            raise CloseError(message="HTTP 404", task_id=task_id)

    def label_id(self, name: str) -> str:
        return next(label.id for label in self.labels if label.name == name)


class FakeMetadataProvider:
    """Returns canned VOD entries per URL and tracks concurrent fetches."""

    def __init__(
        self,
        entries: dict[str, list[SubscriptionEntry]] | None = None,
        *,
        delay_seconds: float = 0.0,
    ) -> None:
        self.entries = entries or {}
        self.delay_seconds = delay_seconds
        self.calls: list[str] = []
        self.failures_left: dict[str, int] = {}
        self.in_flight = 0
        self.max_in_flight = 0

    async def fetch_subscription_entries(self, url: str) -> list[SubscriptionEntry]:
        self.calls.append(url)
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await asyncio.sleep(self.delay_seconds)
            if self.failures_left.get(url, 0) > 0:
                self.failures_left[url] -= 1
                raise FetchError(message=f"Cannot fetch {url}/vod: timeout", url=url)
            return list(self.entries.get(url, []))
        finally:
            self.in_flight -= 1


class FakeScheduleProvider(FakeMetadataProvider):
    """Provider that also exposes TV broadcasts."""

    def __init__(
        self,
        entries: dict[str, list[SubscriptionEntry]] | None = None,
        schedule: dict[str, list[str]] | None = None,
    ) -> None:
        super().__init__(entries)
        self.schedule = schedule or {}

    async def fetch_broadcast_schedule(self, url: str) -> list[str]:
        return list(self.schedule.get(url, []))


def make_settings(**execution: object) -> Settings:
    return Settings(
        todoist=TodoistSettings(token="test-token", project_id=42),
        labels=LabelSettings(),
        execution=ExecutionSettings(retry_delay_ms=0, **execution),
    )


def filmweb_task(task_id: str, slug: str, *, description: str = "", labels=None) -> RemoteTask:
    return RemoteTask(
        id=task_id,
        label_ids=list(labels or []),
        content=f"Title {slug} (https://www.filmweb.pl/{slug})",
        description=description,
    )


@pytest.fixture()
def store() -> FakeTaskStore:
    return FakeTaskStore()


@pytest.fixture()
def provider() -> FakeMetadataProvider:
    return FakeMetadataProvider()
