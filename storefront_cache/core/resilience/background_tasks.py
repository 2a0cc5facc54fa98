"""
Detached background work and bounded waits.

Write-backs, stale-while-revalidate refreshes and abandoned KV reads all
outlive the request that started them. BackgroundTasks owns them: it keeps a
strong reference until each task finishes, observes every outcome so no
exception is left unretrieved, and drains pending work on shutdown.
"""

import asyncio
from collections.abc import Awaitable, Coroutine
from typing import Any, TypeVar

from storefront_cache.core.config.constants import Stage
from storefront_cache.core.exceptions import CacheTimeoutError
from storefront_cache.core.logging.logger import get_logger, log_stage

logger = get_logger(__name__)

T = TypeVar("T")


class BackgroundTasks:
    """
    Registry of fire-and-forget tasks.

    Usage:
        background = BackgroundTasks()
        background.spawn(write_back(key, value), name=f"write-back:{key}")
        ...
        await background.shutdown()
    """

    def __init__(self):
        self._tasks: set[asyncio.Task] = set()
        self._closed = False

    @property
    def pending(self) -> int:
        return len(self._tasks)

    def spawn(self, coro: Coroutine[Any, Any, Any], name: str | None = None) -> asyncio.Task | None:
        """
        Run a coroutine detached from the caller.

        Exceptions are logged and dropped. Returns None (and closes the
        coroutine) once the registry has been shut down.
        """
        if self._closed:
            coro.close()
            return None
        task = asyncio.get_running_loop().create_task(coro, name=name)
        self._tasks.add(task)
        task.add_done_callback(self._on_spawned_done)
        return task

    def adopt(self, task: asyncio.Task) -> None:
        """
        Take ownership of an abandoned task (the loser of a bounded wait).

        Its eventual result is discarded and its exception retrieved without
        logging: the caller already treated the call as failed.
        """
        if task.done():
            self._observe(task)
            return
        self._tasks.add(task)
        task.add_done_callback(self._on_adopted_done)

    def _on_spawned_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            log_stage(
                logger,
                Stage.BACKGROUND_TASK,
                "Background task failed",
                level="warning",
                task=task.get_name(),
                error=str(exc),
                error_type=type(exc).__name__,
            )

    def _on_adopted_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        self._observe(task)

    @staticmethod
    def _observe(task: asyncio.Task) -> None:
        if not task.cancelled():
            task.exception()

    async def drain(self, timeout: float | None = None) -> bool:
        """
        Wait for pending tasks.

        Returns:
            True if every task finished within the timeout
        """
        if not self._tasks:
            return True
        _, still_pending = await asyncio.wait(set(self._tasks), timeout=timeout)
        return not still_pending

    async def shutdown(self, timeout: float | None = 5.0) -> None:
        """Stop accepting work, drain, then cancel whatever is left."""
        self._closed = True
        finished = await self.drain(timeout)
        if not finished:
            leftovers = list(self._tasks)
            logger.warning("Cancelling unfinished background tasks", count=len(leftovers))
            for task in leftovers:
                task.cancel()
            await asyncio.gather(*leftovers, return_exceptions=True)


async def bounded_wait(
    awaitable: Awaitable[T],
    timeout: float,
    background: BackgroundTasks,
    operation: str = "kv",
) -> T:
    """
    Await an operation for at most ``timeout`` seconds without cancelling it.

    On timeout the still-running task is handed to ``background`` so its
    late result or exception is observed and discarded, and
    CacheTimeoutError is raised. Exceptions raised by the operation before
    the deadline propagate unchanged.
    """
    task = asyncio.ensure_future(awaitable)
    done, _ = await asyncio.wait({task}, timeout=timeout)
    if task in done:
        return task.result()

    background.adopt(task)
    raise CacheTimeoutError(
        message=f"{operation} did not complete within {timeout * 1000:.0f}ms",
        details={"operation": operation, "timeout_ms": round(timeout * 1000)},
    )
