"""Todoist REST adapter for the task store contract."""

from __future__ import annotations

import logging
from typing import Any

import httpx

from vod_sync.reconcile.contracts import (
    CloseError,
    LabelCreationError,
    StoreError,
    UpdateError,
)
from vod_sync.reconcile.models import RemoteLabel, RemoteTask

logger = logging.getLogger(__name__)

DEFAULT_API_URL = "https://api.todoist.com/rest/v2"


class TodoistTaskStore:
    """Async Todoist client.

    The REST API attaches labels to tasks by name, while the reconciliation
    run works with label ids, so the store keeps an id <-> name map built from
    ``list_labels`` and ``create_label`` responses. A task label that is not in
    the map is exposed under its name as its id.
    """

    def __init__(
        self,
        *,
        token: str,
        api_url: str = DEFAULT_API_URL,
        timeout_seconds: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._client = httpx.AsyncClient(
            base_url=api_url.rstrip("/"),
            headers={"Authorization": f"Bearer {token}"},
            timeout=httpx.Timeout(timeout_seconds, connect=10.0),
            transport=transport,
        )
        self._names_by_id: dict[str, str] = {}
        self._ids_by_name: dict[str, str] = {}
        self._labels_loaded = False

    async def list_tasks(self, project_id: int) -> list[RemoteTask]:
        if not self._labels_loaded:
            await self.list_labels()
        payload = await self._request("GET", "/tasks", params={"project_id": str(project_id)})
        return [
            RemoteTask(
                id=str(item["id"]),
                label_ids=self._label_ids(item.get("labels") or []),
                content=item.get("content") or "",
                description=item.get("description") or "",
            )
            for item in payload
        ]

    async def list_labels(self) -> list[RemoteLabel]:
        payload = await self._request("GET", "/labels")
        labels = [RemoteLabel(id=str(item["id"]), name=item["name"]) for item in payload]
        for label in labels:
            self._remember(label)
        self._labels_loaded = True
        return labels

    async def create_label(self, name: str) -> RemoteLabel:
        try:
            payload = await self._request("POST", "/labels", json={"name": name})
        except StoreError as error:
            raise LabelCreationError(
                message=f"Cannot create label {name}: {error}",
                name=name,
            ) from error
        label = RemoteLabel(id=str(payload["id"]), name=payload["name"])
        self._remember(label)
        return label

    async def update_task(self, task_id: str, *, label_ids: list[str], description: str) -> None:
        body = {
            "labels": [self._names_by_id.get(label_id, label_id) for label_id in label_ids],
            "description": description,
        }
        try:
            await self._request("POST", f"/tasks/{task_id}", json=body)
        except StoreError as error:
            raise UpdateError(
                message=f"Cannot update task {task_id}: {error}",
                task_id=task_id,
            ) from error

    async def close_task(self, task_id: str) -> None:
        try:
            await self._request("POST", f"/tasks/{task_id}/close")
        except StoreError as error:
            raise CloseError(
                message=f"Cannot close task {task_id}: {error}",
                task_id=task_id,
            ) from error

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> TodoistTaskStore:
        return self

    async def __aexit__(self, *_: object) -> None:
        await self.aclose()

    def _label_ids(self, names: list[str]) -> list[str]:
        return [self._ids_by_name.get(name, name) for name in names]

    def _remember(self, label: RemoteLabel) -> None:
        self._names_by_id[label.id] = label.name
        self._ids_by_name[label.name] = label.id

    async def _request(self, method: str, path: str, **kwargs: Any) -> Any:
        try:
            response = await self._client.request(method, path, **kwargs)
        except httpx.HTTPError as exc:
            logger.warning("Todoist %s %s failed: %s", method, path, exc)
            raise StoreError(message=f"Todoist transport error: {exc}") from exc

        if not response.is_success:
            raise StoreError(
                message=f"Todoist {method} {path} returned HTTP {response.status_code}",
                status_code=response.status_code,
            )
        if response.status_code == httpx.codes.NO_CONTENT or not response.content:
            return None
        return response.json()
