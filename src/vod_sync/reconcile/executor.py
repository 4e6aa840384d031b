"""Bounded-concurrency executor with a constant-delay retry policy."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Sequence
from typing import Generic, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_CONCURRENCY = 3
DEFAULT_ATTEMPTS = 3
DEFAULT_DELAY_SECONDS = 1.0


class ConcurrentRetryExecutor(Generic[T]):
    """Runs one async unit of work per item, at most ``concurrency`` at a time.

    Each item gets up to ``attempts`` tries with ``delay_seconds`` between them.
    After the last failed try ``on_give_up(item, error)`` is called and the
    remaining items keep running; errors never reach the caller of ``run``.
    """

    def __init__(
        self,
        *,
        concurrency: int = DEFAULT_CONCURRENCY,
        attempts: int = DEFAULT_ATTEMPTS,
        delay_seconds: float = DEFAULT_DELAY_SECONDS,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        if concurrency <= 0:
            raise ValueError("concurrency must be > 0")
        if attempts <= 0:
            raise ValueError("attempts must be > 0")
        self.concurrency = concurrency
        self.attempts = attempts
        self.delay_seconds = delay_seconds
        self._sleep = sleep

    async def run(
        self,
        items: Sequence[T],
        unit_of_work: Callable[[T], Awaitable[None]],
        *,
        on_give_up: Callable[[T, Exception], None],
        on_done: Callable[[T], None] | None = None,
    ) -> None:
        semaphore = asyncio.Semaphore(self.concurrency)

        async def _run_item(item: T) -> None:
            async with semaphore:
                await self._run_with_retry(item, unit_of_work, on_give_up)
            if on_done is not None:
                on_done(item)

        await asyncio.gather(*(_run_item(item) for item in items))

    async def _run_with_retry(
        self,
        item: T,
        unit_of_work: Callable[[T], Awaitable[None]],
        on_give_up: Callable[[T, Exception], None],
    ) -> None:
        attempt = 0
        while True:
            attempt += 1
            try:
                await unit_of_work(item)
                return
            except Exception as exc:  # noqa: BLE001
                if attempt >= self.attempts:
                    logger.warning("Giving up on %s after %d attempts: %s", item, attempt, exc)
                    on_give_up(item, exc)
                    return
                logger.warning(
                    "Attempt %d/%d failed for %s: %s",
                    attempt,
                    self.attempts,
                    item,
                    exc,
                )
            await self._sleep(self.delay_seconds)
