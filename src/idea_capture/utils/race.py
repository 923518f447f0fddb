"""Race an awaitable against a timeout"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Optional

logger = logging.getLogger(__name__)


@dataclass
class RaceOutcome:
    """Result of race(): either the operation settled in time or the timeout won"""
    completed: bool
    value: Any = None
    error: Optional[BaseException] = None
    elapsed: float = 0.0

    @property
    def timed_out(self) -> bool:
        return not self.completed

    @property
    def succeeded(self) -> bool:
        return self.completed and self.error is None


def _discard_late(task: asyncio.Future) -> None:
    """Consume the result of an operation that lost the race"""
    if task.cancelled():
        return
    error = task.exception()
    if error is not None:
        logger.debug(f"Discarded late failure after timeout: {error!r}")
    else:
        logger.debug("Discarded late result after timeout")


async def race(awaitable: Awaitable, timeout: float, cancel_loser: bool = False) -> RaceOutcome:
    """
    Run awaitable against a timeout; whichever settles first wins.

    A late result is never returned or applied anywhere. By default the losing
    operation is left to finish in the background (its outcome is only
    logged); pass cancel_loser=True to cancel it instead.

    Args:
        awaitable: The operation to bound
        timeout: Seconds to wait

    Returns:
        RaceOutcome with the value or error when the operation won
    """
    loop = asyncio.get_running_loop()
    started = loop.time()
    task = asyncio.ensure_future(awaitable)

    try:
        done, _ = await asyncio.wait({task}, timeout=timeout)
    except asyncio.CancelledError:
        task.cancel()
        raise

    elapsed = loop.time() - started

    if task not in done:
        if cancel_loser:
            task.cancel()
        task.add_done_callback(_discard_late)
        return RaceOutcome(completed=False, elapsed=elapsed)

    if task.cancelled():
        return RaceOutcome(completed=True, error=asyncio.CancelledError(), elapsed=elapsed)

    error = task.exception()
    if error is not None:
        return RaceOutcome(completed=True, error=error, elapsed=elapsed)
    return RaceOutcome(completed=True, value=task.result(), elapsed=elapsed)
