"""
Abstract Storage Interface

DESIGN DECISION: We define an abstract interface for storage operations.
This allows us to:
1. Swap Google Sheets for a real document database later
2. Use in-memory storage for testing
3. Keep ledger logic decoupled from storage implementation

The stores are deliberately dumb. Writing an entry never touches a
budget: keeping Budget.current_spending in sync is the coordinator's
job, not the store's.
"""

from abc import ABC, abstractmethod
from decimal import Decimal
from typing import Optional

from expense_tracker.models.audit import AuditEvent
from expense_tracker.models.ledger import (
    Budget,
    ChatMessage,
    Entry,
    EntryDraft,
)


class EntryStorageInterface(ABC):
    """
    Abstract interface for ledger entry storage.

    Entries are scoped per owner.
    """

    @abstractmethod
    async def list_entries(self, owner_id: str) -> list[Entry]:
        """
        List every entry of an owner.

        Args:
            owner_id: The owner whose entries to list

        Returns:
            Entries sorted by date, newest first

        Raises:
            NotAuthenticatedError: If owner_id is empty
            PersistenceError: If the backend cannot be read
        """
        pass

    @abstractmethod
    async def get_entry(self, entry_id: str) -> Optional[Entry]:
        """
        Retrieve an entry by its ID.

        Returns:
            The entry if found, None otherwise
        """
        pass

    @abstractmethod
    async def add_entry(self, entry: Entry) -> str:
        """
        Persist a new entry.

        The store assigns the id and stamps created_at. Not idempotent:
        retrying a failed add can create a duplicate.

        Returns:
            The assigned entry id

        Raises:
            PersistenceError: If save fails
        """
        pass

    @abstractmethod
    async def update_entry(self, entry_id: str, draft: EntryDraft) -> Entry:
        """
        Replace every mutable field of an entry.

        Returns:
            The entry as stored after the update

        Raises:
            NotFoundError: If the entry doesn't exist
            PersistenceError: If update fails
        """
        pass

    @abstractmethod
    async def delete_entry(self, entry_id: str) -> None:
        """
        Permanently delete an entry.

        Raises:
            NotFoundError: If the entry doesn't exist
            PersistenceError: If delete fails
        """
        pass


class BudgetStorageInterface(ABC):
    """
    Abstract interface for monthly budget storage.

    One document per (owner_id, period_key), keyed {owner_id}_{period_key}.
    """

    @abstractmethod
    async def get_budget(
        self,
        owner_id: str,
        period_key: str,
    ) -> Optional[Budget]:
        """
        Get the budget of a period.

        Returns:
            The budget, or None if none was set for that period
        """
        pass

    @abstractmethod
    async def set_budget(
        self,
        owner_id: str,
        period_key: str,
        monthly_budget: Decimal,
        current_spending: Decimal,
    ) -> Budget:
        """
        Create or overwrite the budget of a period.

        Args:
            owner_id: Budget owner
            period_key: YYYY-MM period
            monthly_budget: Target amount
            current_spending: The period's freshly recomputed expense total

        Returns:
            The stored budget
        """
        pass

    @abstractmethod
    async def update_spending(
        self,
        owner_id: str,
        period_key: str,
        new_spending: Decimal,
    ) -> Optional[Budget]:
        """
        Overwrite the cached spending figure of a period.

        Returns:
            The updated budget, or None (without failing) if no budget
            exists for that period yet
        """
        pass


class ChatStorageInterface(ABC):
    """
    Abstract interface for the chat/advice log.

    Messages are append-only - we never delete or modify them.
    """

    @abstractmethod
    async def append_message(self, message: ChatMessage) -> bool:
        """
        Append a message to an owner's log.

        Returns:
            True if saved successfully
        """
        pass

    @abstractmethod
    async def list_messages(self, owner_id: str) -> list[ChatMessage]:
        """
        Get an owner's messages.

        Returns:
            Messages in chronological order (oldest first)
        """
        pass


class AdviceStateStorageInterface(ABC):
    """
    Persisted edge-trigger state for budget advice.

    Remembering whether advice was already requested for the current
    overrun keeps the trigger edge-triggered across restarts.
    """

    @abstractmethod
    async def get_exceeded_flag(self, owner_id: str, period_key: str) -> bool:
        """Return True if the period is in an advised overrun episode."""
        pass

    @abstractmethod
    async def set_exceeded_flag(
        self,
        owner_id: str,
        period_key: str,
        exceeded: bool,
    ) -> None:
        """Record the start or end of an overrun episode."""
        pass


class AuditStorageInterface(ABC):
    """
    Abstract interface for audit log storage.

    Audit logs are append-only - we never delete or modify them.
    """

    @abstractmethod
    async def append_event(self, event: AuditEvent) -> bool:
        """
        Append an audit event to the log.

        Returns:
            True if logged successfully
        """
        pass

    @abstractmethod
    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """
        Get the most recent audit events.

        Returns:
            List of recent events (newest first)
        """
        pass


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class NotAuthenticatedError(StorageError):
    """No owner context - treated as the logged-out state, not a fault."""
    pass


class NotFoundError(StorageError):
    """Entity not found in storage."""
    pass


class PersistenceError(StorageError):
    """The backend was unreachable or refused the operation."""
    pass


class ConnectionError(PersistenceError):
    """Could not connect to storage backend."""
    pass


class MalformedRowError(PersistenceError):
    """A stored record could not be parsed. Retrying will not help."""
    pass
