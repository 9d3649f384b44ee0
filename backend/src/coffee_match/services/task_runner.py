"""Bounded runner for detached ("fire-and-forget") work.

Reactive rematches, acceptance notifications and operator-triggered scheduler
runs are launched here instead of with a bare ``asyncio.create_task``, so
that:

- concurrency is capped by a semaphore,
- task references are held until completion (no GC of running tasks),
- failures are logged and never reach the caller that launched them,
- tests and shutdown can ``drain()`` deterministically.
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Optional

logger = logging.getLogger(__name__)


class BackgroundTaskRunner:
    """Owns every detached task the match engine launches."""

    def __init__(self, max_concurrency: int = 8):
        if max_concurrency < 1:
            raise ValueError("max_concurrency must be at least 1")
        self._semaphore = asyncio.Semaphore(max_concurrency)
        self._tasks: set[asyncio.Task] = set()
        self._closed = False

    @property
    def pending(self) -> int:
        return len(self._tasks)

    def spawn(
        self,
        func: Callable[..., Awaitable[Any]],
        *args: Any,
        name: Optional[str] = None,
    ) -> Optional[asyncio.Task]:
        """Schedule ``func(*args)`` and return immediately.

        Returns None (and schedules nothing) once the runner is shut down.
        """
        label = name or getattr(func, "__qualname__", repr(func))
        if self._closed:
            logger.warning("Task runner closed, dropping background task %s", label)
            return None

        task = asyncio.create_task(self._run(func, args, label), name=label)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _run(self, func: Callable[..., Awaitable[Any]], args: tuple, label: str) -> Any:
        async with self._semaphore:
            try:
                return await func(*args)
            except asyncio.CancelledError:
                logger.info("Background task %s cancelled", label)
                raise
            except Exception:
                logger.exception("Background task %s failed", label)
                return None

    async def drain(self) -> None:
        """Wait until every task, including ones spawned while draining, is done."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def shutdown(self, timeout: float = 10.0) -> None:
        """Stop accepting work, give running tasks ``timeout`` seconds, cancel the rest."""
        self._closed = True
        if not self._tasks:
            return
        done, still_running = await asyncio.wait(list(self._tasks), timeout=timeout)
        for task in still_running:
            task.cancel()
        if still_running:
            logger.warning("Cancelled %d background tasks on shutdown", len(still_running))
            await asyncio.gather(*still_running, return_exceptions=True)
