"""Snapshot publish/subscribe package."""

from expense_tracker.events.publisher import SnapshotHandler, SnapshotPublisher

__all__ = [
    "SnapshotHandler",
    "SnapshotPublisher",
]
