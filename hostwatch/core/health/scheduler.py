"""Due-time scheduling and bounded, single-flight dispatch of evaluations."""

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import (
    Any,
    Awaitable,
    Callable,
    Dict,
    Hashable,
    List,
    Optional,
    Sequence,
    TypeVar,
)

from hostwatch.core.exceptions import NotFoundError
from hostwatch.core.settings import settings

logger = logging.getLogger(__name__)

T = TypeVar("T")


class _Call:
    """A shared evaluation and the number of callers waiting on it."""

    def __init__(self, task: "asyncio.Task"):
        self.task = task
        self.waiters = 0


class SingleFlight:
    """Ensures at most one evaluation per key runs at a time.

    Callers that arrive while an evaluation for their key is in flight join
    it and receive the same result. The shared evaluation is cancelled only
    when every waiter has gone.
    """

    def __init__(self, name: str):
        self.name = name
        self._calls: Dict[Hashable, _Call] = {}

    def in_flight(self, key: Hashable) -> bool:
        return key in self._calls

    def __len__(self) -> int:
        return len(self._calls)

    async def run(self, key: Hashable, factory: Callable[[], Awaitable[T]]) -> T:
        call = self._calls.get(key)
        if call is None:
            call = _Call(asyncio.ensure_future(factory()))
            self._calls[key] = call
            call.task.add_done_callback(lambda _t, key=key, call=call: self._forget(key, call))
        else:
            logger.debug(f"Joining in-flight {self.name} evaluation {key}")

        call.waiters += 1
        try:
            return await asyncio.shield(call.task)
        finally:
            call.waiters -= 1
            if call.waiters == 0 and not call.task.done():
                call.task.cancel()

    def _forget(self, key: Hashable, call: _Call) -> None:
        if self._calls.get(key) is call:
            del self._calls[key]


@dataclass
class ScheduleEntry:
    """When a target is next due and how to evaluate it."""

    key: Hashable
    next_due: datetime
    evaluate: Callable[[], Awaitable[Any]]

    def is_due(self, now: datetime) -> bool:
        return self.next_due <= now


class Scheduler:
    """Fans a scheduling pass out to a bounded pool of evaluations.

    Applications and hosts are separate populations, each with its own
    single-flight registry, sharing one concurrency limit.
    """

    def __init__(self, max_concurrent_checks: Optional[int] = None):
        self.max_concurrent_checks = (
            max_concurrent_checks or settings.max_concurrent_checks
        )
        self._slots = asyncio.Semaphore(self.max_concurrent_checks)
        self.applications = SingleFlight("application")
        self.hosts = SingleFlight("host")

    async def submit(
        self,
        flight: SingleFlight,
        key: Hashable,
        evaluate: Callable[[], Awaitable[T]],
    ) -> T:
        """Evaluate one target, joining an evaluation already in flight."""
        return await flight.run(key, lambda: self._in_slot(evaluate))

    async def _in_slot(self, evaluate: Callable[[], Awaitable[T]]) -> T:
        async with self._slots:
            return await evaluate()

    async def run_pass(
        self,
        flight: SingleFlight,
        entries: Sequence[ScheduleEntry],
        now: Optional[datetime] = None,
    ) -> List:
        """Evaluate every entry that is due and not already being evaluated.

        Raises:
            The first error raised by any evaluation, after all of them have
            finished. Evaluations only fail when their record cannot be stored;
            targets removed while the pass runs are skipped.
        """
        now = now or datetime.utcnow()
        due = [
            entry
            for entry in entries
            if entry.is_due(now) and not flight.in_flight(entry.key)
        ]
        skipped = sum(1 for entry in entries if entry.is_due(now)) - len(due)
        if skipped:
            logger.debug(f"Skipped {skipped} {flight.name}(s) still being evaluated")
        if not due:
            return []

        outcomes = await asyncio.gather(
            *(self.submit(flight, entry.key, entry.evaluate) for entry in due),
            return_exceptions=True,
        )

        results = []
        errors = []
        for entry, outcome in zip(due, outcomes):
            if isinstance(outcome, BaseException):
                if isinstance(outcome, asyncio.CancelledError):
                    # Another waiter's cancellation does not affect this pass.
                    continue
                if isinstance(outcome, NotFoundError):
                    # Removed since the pass was planned.
                    logger.info(
                        f"Skipped {flight.name} {entry.key}: {outcome.message}",
                        extra={"target": flight.name, "target_id": entry.key},
                    )
                    continue
                logger.error(
                    f"Error monitoring {flight.name} {entry.key}: {outcome}",
                    extra={"target": flight.name, "target_id": entry.key},
                )
                errors.append(outcome)
            else:
                results.append(outcome)

        logger.info(
            f"Monitored {len(results)} {flight.name}(s)",
            extra={"target": flight.name, "due": len(due), "failed": len(errors)},
        )
        if errors:
            raise errors[0]
        return results
