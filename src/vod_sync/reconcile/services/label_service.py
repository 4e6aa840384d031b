"""Label resolution stage with a per-run name -> id cache."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence

from vod_sync.reconcile.contracts import LabelCreationError, ReconcileError, SetupError, TaskStore
from vod_sync.reconcile.keys import is_managed_label

logger = logging.getLogger(__name__)


class LabelResolver:
    """Maps ``VOD.*`` label names to store ids, creating missing labels on first use.

    Creation is serialized per name, so two tasks introducing the same new
    provider concurrently trigger a single create request.
    """

    def __init__(self, store: TaskStore) -> None:
        self.store = store
        self._ids: dict[str, str] = {}
        self._locks: dict[str, asyncio.Lock] = {}
        self._created: list[str] = []
        self._loaded = False

    async def load(self) -> None:
        try:
            labels = await self.store.list_labels()
        except ReconcileError as error:
            raise SetupError(message=f"Cannot list labels: {error}") from error

        for label in labels:
            if is_managed_label(label.name):
                self._ids[label.name] = label.id
        self._loaded = True
        logger.info("Loaded %d managed labels", len(self._ids))

    @property
    def cache(self) -> dict[str, str]:
        return dict(self._ids)

    @property
    def created(self) -> list[str]:
        """Label names created during this run, in creation order."""
        return list(self._created)

    async def resolve_many(self, names: Sequence[str]) -> list[str]:
        return list(await asyncio.gather(*(self.resolve_one(name) for name in names)))

    async def resolve_one(self, name: str) -> str:
        if not self._loaded:
            raise RuntimeError("LabelResolver.load() must run before resolving labels.")

        cached = self._ids.get(name)
        if cached is not None:
            return cached

        lock = self._locks.setdefault(name, asyncio.Lock())
        async with lock:
            cached = self._ids.get(name)
            if cached is not None:
                return cached
            try:
                label = await self.store.create_label(name)
            except LabelCreationError:
                raise
            except ReconcileError as error:
                raise LabelCreationError(
                    message=f"Cannot create label {name}: {error}",
                    name=name,
                ) from error
            self._ids[name] = label.id
            self._created.append(name)
            logger.info("Created label %s (id=%s)", name, label.id)
            return label.id
