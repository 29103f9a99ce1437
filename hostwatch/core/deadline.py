"""Hard deadlines for calls that may not honour their own timeouts."""

import asyncio
import logging
from typing import Awaitable, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


async def run_with_deadline(awaitable: Awaitable[T], seconds: float) -> T:
    """Await ``awaitable`` for at most ``seconds``.

    Unlike ``asyncio.wait_for`` this returns to the caller as soon as the
    deadline passes, even when the underlying call swallows its cancellation.
    The abandoned task is cancelled and left to finish on its own.

    Raises:
        asyncio.TimeoutError: If the deadline passes first.
    """
    task = asyncio.ensure_future(awaitable)
    try:
        done, _ = await asyncio.wait({task}, timeout=seconds)
    except asyncio.CancelledError:
        task.cancel()
        raise

    if not done:
        task.cancel()
        task.add_done_callback(_discard_result)
        raise asyncio.TimeoutError(f"deadline of {seconds}s exceeded")

    return task.result()


def _discard_result(task: "asyncio.Future") -> None:
    """Retrieve the outcome of an abandoned task so it is not reported."""
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        logger.debug(f"Abandoned call finished with error: {exc}")


def format_seconds(value: float) -> str:
    """Render a timeout as ``10`` rather than ``10.0`` when whole."""
    return str(int(value)) if float(value).is_integer() else str(value)
