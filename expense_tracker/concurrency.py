"""
Concurrency Helpers for the Ledger

DESIGN DECISION: The only contended resource is the budget record of
one (owner, period). Two mutations that recompute the same period
must not interleave their read-entries / write-spending steps, or the
later writer can overwrite a fresher total with a stale one.

PeriodLockRegistry hands out one asyncio.Lock per (owner, period).
Mutations on different periods never wait for each other.

CancellableOperation wraps a coordinator coroutine in a task so a
caller can abandon it. Cancellation is an outcome, not an error:
result() reports MutationStatus.CANCELLED instead of raising.
"""

import asyncio
from typing import Coroutine

from expense_tracker.models.ledger import MutationResult, budget_document_id


class PeriodLockRegistry:
    """One asyncio.Lock per (owner_id, period_key), created on first use."""

    def __init__(self):
        self._locks: dict[str, asyncio.Lock] = {}

    def lock_for(self, owner_id: str, period_key: str) -> asyncio.Lock:
        key = budget_document_id(owner_id, period_key)
        lock = self._locks.get(key)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[key] = lock
        return lock

    def is_locked(self, owner_id: str, period_key: str) -> bool:
        key = budget_document_id(owner_id, period_key)
        lock = self._locks.get(key)
        return lock is not None and lock.locked()


class CancellableOperation:
    """
    Handle on a running coordinator operation.

    Usage:
        op = coordinator.submit(coordinator.add_entry(draft))
        ...
        op.cancel()                 # e.g. the user navigated away
        result = await op.result()  # status CANCELLED, never an exception
    """

    def __init__(self, coro: Coroutine):
        self._task: asyncio.Task = asyncio.create_task(coro)

    @property
    def done(self) -> bool:
        return self._task.done()

    def cancel(self) -> bool:
        """Request cancellation. Returns False if the operation already finished."""
        return self._task.cancel()

    async def result(self) -> MutationResult:
        """
        Wait for the operation.

        Waiting does not propagate a cancellation of the waiter into the
        operation itself; only cancel() does that.
        """
        await asyncio.wait({self._task})
        if self._task.cancelled():
            return MutationResult.cancelled()
        return self._task.result()
