"""
In-Memory Storage Implementation

Used by the test-suite and as the fallback when no document store is
configured. Behaves like the networked stores: every call is a
suspension point, ids are assigned on write, and missing ids raise
NotFoundError.
"""

import asyncio
from decimal import Decimal
from typing import Optional
from uuid import uuid4

from expense_tracker.models.audit import AuditEvent
from expense_tracker.models.ledger import (
    Budget,
    ChatMessage,
    Entry,
    EntryDraft,
    budget_document_id,
    utc_now,
)
from expense_tracker.services.storage.interface import (
    AdviceStateStorageInterface,
    AuditStorageInterface,
    BudgetStorageInterface,
    ChatStorageInterface,
    EntryStorageInterface,
    NotAuthenticatedError,
    NotFoundError,
)


class _SimulatedRoundTrip:
    """Yields to the event loop the way a network call would."""

    def __init__(self, latency: float = 0.0):
        self._latency = latency

    async def _round_trip(self) -> None:
        await asyncio.sleep(self._latency)


class InMemoryEntryStorage(_SimulatedRoundTrip, EntryStorageInterface):
    """Entry store backed by a dict of id -> Entry."""

    def __init__(self, latency: float = 0.0):
        super().__init__(latency)
        self._entries: dict[str, Entry] = {}

    async def list_entries(self, owner_id: str) -> list[Entry]:
        if not owner_id:
            raise NotAuthenticatedError("No owner context")
        await self._round_trip()
        entries = [
            entry for entry in self._entries.values()
            if entry.owner_id == owner_id
        ]
        entries.sort(key=lambda e: e.date, reverse=True)
        return entries

    async def get_entry(self, entry_id: str) -> Optional[Entry]:
        await self._round_trip()
        return self._entries.get(entry_id)

    async def add_entry(self, entry: Entry) -> str:
        if not entry.owner_id:
            raise NotAuthenticatedError("No owner context")
        await self._round_trip()
        entry_id = uuid4().hex
        self._entries[entry_id] = entry.model_copy(
            update={"id": entry_id, "created_at": utc_now(), "updated_at": None}
        )
        return entry_id

    async def update_entry(self, entry_id: str, draft: EntryDraft) -> Entry:
        await self._round_trip()
        current = self._entries.get(entry_id)
        if current is None:
            raise NotFoundError(f"Entry not found: {entry_id}")
        updated = current.replaced_with(draft, updated_at=utc_now())
        self._entries[entry_id] = updated
        return updated

    async def delete_entry(self, entry_id: str) -> None:
        await self._round_trip()
        if entry_id not in self._entries:
            raise NotFoundError(f"Entry not found: {entry_id}")
        del self._entries[entry_id]


class InMemoryBudgetStorage(_SimulatedRoundTrip, BudgetStorageInterface):
    """Budget store keyed by {owner_id}_{period_key}."""

    def __init__(self, latency: float = 0.0):
        super().__init__(latency)
        self._budgets: dict[str, Budget] = {}

    async def get_budget(
        self,
        owner_id: str,
        period_key: str,
    ) -> Optional[Budget]:
        await self._round_trip()
        return self._budgets.get(budget_document_id(owner_id, period_key))

    async def set_budget(
        self,
        owner_id: str,
        period_key: str,
        monthly_budget: Decimal,
        current_spending: Decimal,
    ) -> Budget:
        if not owner_id:
            raise NotAuthenticatedError("No owner context")
        await self._round_trip()
        key = budget_document_id(owner_id, period_key)
        existing = self._budgets.get(key)
        now = utc_now()
        budget = Budget(
            owner_id=owner_id,
            period_key=period_key,
            monthly_budget=monthly_budget,
            current_spending=current_spending,
            created_at=existing.created_at if existing else now,
            updated_at=now,
        )
        self._budgets[key] = budget
        return budget

    async def update_spending(
        self,
        owner_id: str,
        period_key: str,
        new_spending: Decimal,
    ) -> Optional[Budget]:
        await self._round_trip()
        key = budget_document_id(owner_id, period_key)
        existing = self._budgets.get(key)
        if existing is None:
            return None
        updated = existing.model_copy(
            update={"current_spending": new_spending, "updated_at": utc_now()}
        )
        self._budgets[key] = updated
        return updated


class InMemoryChatStorage(_SimulatedRoundTrip, ChatStorageInterface):
    """Append-only chat log per owner."""

    def __init__(self, latency: float = 0.0):
        super().__init__(latency)
        self._messages: dict[str, list[ChatMessage]] = {}

    async def append_message(self, message: ChatMessage) -> bool:
        await self._round_trip()
        self._messages.setdefault(message.owner_id, []).append(message)
        return True

    async def list_messages(self, owner_id: str) -> list[ChatMessage]:
        await self._round_trip()
        return sorted(self._messages.get(owner_id, []), key=lambda m: m.timestamp)


class InMemoryAdviceStateStorage(_SimulatedRoundTrip, AdviceStateStorageInterface):
    """Set of (owner, period) pairs currently in an advised overrun."""

    def __init__(self, latency: float = 0.0):
        super().__init__(latency)
        self._exceeded: set[str] = set()

    async def get_exceeded_flag(self, owner_id: str, period_key: str) -> bool:
        await self._round_trip()
        return budget_document_id(owner_id, period_key) in self._exceeded

    async def set_exceeded_flag(
        self,
        owner_id: str,
        period_key: str,
        exceeded: bool,
    ) -> None:
        await self._round_trip()
        key = budget_document_id(owner_id, period_key)
        if exceeded:
            self._exceeded.add(key)
        else:
            self._exceeded.discard(key)


class InMemoryAuditStorage(AuditStorageInterface):
    """Audit events kept in a list, oldest first."""

    def __init__(self):
        self.events: list[AuditEvent] = []

    async def append_event(self, event: AuditEvent) -> bool:
        self.events.append(event)
        return True

    async def get_recent_events(self, limit: int = 100) -> list[AuditEvent]:
        return list(reversed(self.events))[:limit]
