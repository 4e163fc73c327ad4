"""
Fire-and-forget task dispatch.

Secondary writes (rate logs, carrier sync, SKU mapping write-through) must
never delay or fail a checkout response. They run as tracked asyncio tasks;
failures are logged and swallowed here, at the task boundary.
"""
import asyncio
import logging
from typing import Awaitable, Set

logger = logging.getLogger(__name__)

# Strong references so pending tasks are not garbage collected mid-flight
_background_tasks: Set[asyncio.Task] = set()


def fire_and_forget(coro: Awaitable, description: str) -> asyncio.Task:
    """
    Schedule a coroutine without awaiting it.

    Args:
        coro: Coroutine to run
        description: Short label used in the failure log line

    Returns:
        The scheduled task (callers normally ignore it)
    """
    task = asyncio.ensure_future(coro)
    _background_tasks.add(task)

    def _on_done(t: asyncio.Task) -> None:
        _background_tasks.discard(t)
        if t.cancelled():
            return
        exc = t.exception()
        if exc is not None:
            logger.error(f"[BACKGROUND] {description} failed: {exc!r}")

    task.add_done_callback(_on_done)
    return task


def pending_task_count() -> int:
    return len(_background_tasks)


async def drain_background_tasks(timeout: float = 5.0) -> None:
    """Wait for in-flight background work, used on shutdown and in tests."""
    if not _background_tasks:
        return
    done, pending = await asyncio.wait(set(_background_tasks), timeout=timeout)
    if pending:
        logger.warning(f"[BACKGROUND] {len(pending)} task(s) still running after {timeout}s")
