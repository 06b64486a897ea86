"""Test helpers: scripted completion provider, draft factory and ledger wiring."""

import asyncio
from datetime import datetime
from decimal import Decimal
from types import SimpleNamespace
from typing import Optional

from expense_tracker.advice import AdviceTrigger
from expense_tracker.agents import BudgetAdviceAgent, ChatAgent, TextCompletionProvider
from expense_tracker.audit import AuditLogger
from expense_tracker.config import LedgerSettings
from expense_tracker.models.ledger import EntryDraft, EntryType
from expense_tracker.orchestrator import ChatFlow, LedgerCoordinator
from expense_tracker.services.session import StaticSession
from expense_tracker.services.storage import (
    InMemoryAdviceStateStorage,
    InMemoryAuditStorage,
    InMemoryBudgetStorage,
    InMemoryChatStorage,
    InMemoryEntryStorage,
)


OWNER = "user-1"


class FakeProvider(TextCompletionProvider):
    """Completion provider that replays a fixed reply or error."""

    def __init__(
        self,
        reply: str = "Cook at home more often this month.",
        error: Optional[Exception] = None,
        delay: float = 0.0,
    ):
        self.reply = reply
        self.error = error
        self.delay = delay
        self.prompts: list[str] = []

    async def complete(self, prompt: str, timeout_ms: int) -> str:
        self.prompts.append(prompt)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error:
            raise self.error
        return self.reply


def make_draft(
    amount,
    day: datetime,
    entry_type: EntryType = EntryType.EXPENSE,
    category: str = "Food",
    title: str = "Groceries",
) -> EntryDraft:
    return EntryDraft(
        title=title,
        amount=Decimal(str(amount)),
        date=day,
        category=category,
        type=entry_type,
    )


def build_ledger(
    provider: Optional[FakeProvider] = None,
    owner_id: Optional[str] = OWNER,
    entry_storage=None,
    budget_storage=None,
    latency: float = 0.0,
) -> SimpleNamespace:
    """Wire a coordinator, chat flow and advice trigger on in-memory stores."""
    settings = LedgerSettings(currency_symbol="$", advice_recent_entries=5)
    provider = provider or FakeProvider()
    session = StaticSession(owner_id)
    entries = entry_storage or InMemoryEntryStorage(latency=latency)
    budgets = budget_storage or InMemoryBudgetStorage(latency=latency)
    chats = InMemoryChatStorage()
    advice_state = InMemoryAdviceStateStorage()
    audit_storage = InMemoryAuditStorage()
    audit_logger = AuditLogger(audit_storage)

    trigger = AdviceTrigger(
        state_storage=advice_state,
        chat_storage=chats,
        advice_agent=BudgetAdviceAgent(provider, timeout_ms=1000, currency_symbol="$"),
        audit_logger=audit_logger,
    )
    coordinator = LedgerCoordinator(
        session=session,
        entry_storage=entries,
        budget_storage=budgets,
        chat_storage=chats,
        advice_trigger=trigger,
        audit_logger=audit_logger,
        settings=settings,
    )
    chat_flow = ChatFlow(
        session=session,
        chat_storage=chats,
        chat_agent=ChatAgent(provider, timeout_ms=1000),
        audit_logger=audit_logger,
    )
    return SimpleNamespace(
        session=session,
        provider=provider,
        entries=entries,
        budgets=budgets,
        chats=chats,
        advice_state=advice_state,
        audit=audit_storage,
        trigger=trigger,
        coordinator=coordinator,
        chat_flow=chat_flow,
    )


