"""Virtual user shutdown helpers shared by the scheduler."""

from __future__ import annotations

import asyncio

from dealprobe._internal.logging import get_logger

logger = get_logger("engine.user_utils")


async def drain_users(
    user_tasks: list[tuple[int, asyncio.Task[None]]],
    timeout: float,
) -> int:
    """Wait for every virtual user to finish its in-flight iteration.

    Users stop on their own once the deadline passes; this only waits.
    Tasks still running after ``timeout`` seconds are cancelled so a hung
    target can never keep the process alive.

    Args:
        user_tasks: List of (vu_id, task) tuples to wait for.
        timeout: Seconds to wait before cancelling stragglers.

    Returns:
        Number of tasks that had to be cancelled.
    """
    if not user_tasks:
        return 0

    by_task = {task: vu_id for vu_id, task in user_tasks}
    done, pending = await asyncio.wait(by_task, timeout=timeout)

    for task in done:
        if task.cancelled():
            continue
        exc = task.exception()
        if exc is not None:
            logger.error(
                "Virtual user %d stopped with an error",
                by_task[task],
                exc_info=exc,
            )

    for task in pending:
        logger.warning(
            "Virtual user %d still busy after %.1fs drain, cancelling",
            by_task[task],
            timeout,
        )
        task.cancel()

    if pending:
        await asyncio.wait(pending, timeout=2.0)

    user_tasks.clear()
    logger.debug("All virtual users drained")
    return len(pending)
