"""
Snapshot Publisher

After every successful mutation the coordinator publishes an immutable
LedgerSnapshot. Consumers (display, analytics) subscribe once and then
receive:
1. The latest snapshot, immediately on subscribing (if there is one)
2. Every snapshot published after that

Snapshots are frozen pydantic models with tuple entry lists, so a
consumer cannot change what another consumer sees.

A failing handler is logged and skipped. It never fails the mutation
that published the snapshot.
"""

from typing import Callable, Optional

import structlog

from expense_tracker.models.ledger import LedgerSnapshot


SnapshotHandler = Callable[[LedgerSnapshot], None]

logger = structlog.get_logger(__name__)


class SnapshotPublisher:
    """Keeps the latest snapshot per owner and fans snapshots out to handlers."""

    def __init__(self):
        self._subscribers: list[tuple[Optional[str], SnapshotHandler]] = []
        self._latest: dict[str, LedgerSnapshot] = {}

    def subscribe(
        self,
        handler: SnapshotHandler,
        owner_id: Optional[str] = None,
    ) -> None:
        """
        Register a handler.

        Args:
            handler: Called with each snapshot
            owner_id: Only deliver this owner's snapshots. None means all.
        """
        self._subscribers.append((owner_id, handler))

        if owner_id is not None:
            replay = [self._latest[owner_id]] if owner_id in self._latest else []
        else:
            replay = list(self._latest.values())
        for snapshot in replay:
            self._deliver(handler, snapshot)

    def unsubscribe(self, handler: SnapshotHandler) -> None:
        self._subscribers = [
            (owner_id, registered)
            for owner_id, registered in self._subscribers
            if registered != handler
        ]

    def publish(self, snapshot: LedgerSnapshot) -> None:
        self._latest[snapshot.owner_id] = snapshot
        for owner_id, handler in list(self._subscribers):
            if owner_id is None or owner_id == snapshot.owner_id:
                self._deliver(handler, snapshot)

    def latest(self, owner_id: str) -> Optional[LedgerSnapshot]:
        """The most recent snapshot published for an owner."""
        return self._latest.get(owner_id)

    def _deliver(self, handler: SnapshotHandler, snapshot: LedgerSnapshot) -> None:
        try:
            handler(snapshot)
        except Exception as e:
            logger.error(
                "snapshot_handler_failed",
                owner_id=snapshot.owner_id,
                period_key=snapshot.period_key,
                error=str(e),
            )
