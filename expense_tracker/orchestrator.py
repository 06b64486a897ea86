"""
Main Orchestrator for the Expense Tracker

This module ties together all the components and defines the
end-to-end flows for:
1. Ledger mutations (entry write -> recompute period -> write budget -> publish)
2. Budget setting (recompute period -> upsert budget -> confirm in chat)
3. Chat (user message -> provider reply -> chat log)

DESIGN DECISION: The coordinator enforces the consistency rules:
- Budget.current_spending is ALWAYS rebuilt from the entry list
- Recompute-and-write of one (owner, period) is serialized by a lock
- An update that moves an entry to another month recomputes both months
- Once the entry is written, its recomputes finish even if the caller
  is cancelled (the caller still sees CANCELLED)
- Store errors stop at this boundary and become MutationResult statuses

The entry store and the budget store are not transactional. If the
entry write succeeds and the budget write fails, the entry stays
written and the caller is told the budget is out of sync (SYNC_FAILED).
The next successful mutation of that period repairs the cache.
"""

import asyncio
import re
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Coroutine, Optional, Sequence
from uuid import UUID

import structlog

from expense_tracker.advice import AdviceTrigger
from expense_tracker.agents import (
    BudgetAdviceAgent,
    ChatAgent,
    GeminiTextProvider,
    TextCompletionProvider,
)
from expense_tracker.analytics import period_spending, usage_for
from expense_tracker.audit import AuditLogger, create_correlation_id
from expense_tracker.concurrency import CancellableOperation, PeriodLockRegistry
from expense_tracker.config import LedgerSettings, get_settings
from expense_tracker.events import SnapshotPublisher
from expense_tracker.models.ledger import (
    PERIOD_KEY_PATTERN,
    Budget,
    ChatMessage,
    Entry,
    EntryDraft,
    LedgerSnapshot,
    MutationResult,
    MutationStatus,
    period_key_for,
)
from expense_tracker.services.session import SessionContext, StaticSession
from expense_tracker.services.storage import (
    AdviceStateStorageInterface,
    BudgetStorageInterface,
    ChatStorageInterface,
    EntryStorageInterface,
    GoogleSheetsAdviceStateStorage,
    GoogleSheetsAuditStorage,
    GoogleSheetsBudgetStorage,
    GoogleSheetsChatStorage,
    GoogleSheetsClient,
    GoogleSheetsEntryStorage,
    InMemoryAdviceStateStorage,
    InMemoryBudgetStorage,
    InMemoryChatStorage,
    InMemoryEntryStorage,
    NotAuthenticatedError,
    NotFoundError,
    PersistenceError,
    StorageError,
)
from expense_tracker.validation import EntryValidator


ENTRY_NOT_FOUND_MESSAGE = "This entry no longer exists. Please refresh the list."
ENTRY_SAVE_FAILED_MESSAGE = "Could not save your changes. Please try again."
BUDGET_SYNC_FAILED_MESSAGE = (
    "Your entry was saved, but the budget could not be updated yet. "
    "It will catch up on the next change."
)
BUDGET_SAVE_FAILED_MESSAGE = "Failed to set budget. Please try again."
BUDGET_INVALID_MESSAGE = "Budget must be a positive amount."
PERIOD_INVALID_MESSAGE = "Budget period must look like YYYY-MM."
LOAD_FAILED_MESSAGE = "Could not refresh your ledger. Showing the last known data."
BUDGET_SET_CHAT_TEMPLATE = "✅ Monthly budget set to {currency}{amount:.2f}"

logger = structlog.get_logger(__name__)


class LedgerCoordinator:
    """
    Keeps the budget cache consistent with the entry store.

    Flow for add / update / delete:
    1. Entry store operation (abort on failure, nothing recomputed)
    2. Affected periods: the entry's period, or old AND new for a
       date-changing update
    3. Per period, under its lock: list entries, sum the period's
       expenses, write the figure with update_spending
    4. Advice edge check on the recomputed budget
    5. Publish an immutable snapshot to subscribers

    Steps 3-5 run shielded from cancellation of the caller; drain()
    waits for any still in flight.

    Every public operation returns a MutationResult and never raises
    for store or provider failures.
    """

    def __init__(
        self,
        session: SessionContext,
        entry_storage: EntryStorageInterface,
        budget_storage: BudgetStorageInterface,
        chat_storage: Optional[ChatStorageInterface] = None,
        advice_trigger: Optional[AdviceTrigger] = None,
        publisher: Optional[SnapshotPublisher] = None,
        validator: Optional[EntryValidator] = None,
        audit_logger: Optional[AuditLogger] = None,
        locks: Optional[PeriodLockRegistry] = None,
        settings: Optional[LedgerSettings] = None,
    ):
        self._settings = settings or get_settings().ledger
        self._session = session
        self._entries = entry_storage
        self._budgets = budget_storage
        self._chat = chat_storage
        self._advice_trigger = advice_trigger
        self._publisher = publisher or SnapshotPublisher()
        self._validator = validator or EntryValidator(self._settings)
        self._audit_logger = audit_logger
        self._locks = locks or PeriodLockRegistry()
        self._syncs: set[asyncio.Task] = set()

    @property
    def publisher(self) -> SnapshotPublisher:
        return self._publisher

    async def drain(self) -> None:
        """Wait for recomputes still running after their caller was cancelled."""
        while self._syncs:
            await asyncio.gather(*list(self._syncs), return_exceptions=True)

    # =========================================================================
    # ENTRY MUTATIONS
    # =========================================================================

    async def add_entry(
        self,
        draft: EntryDraft,
        correlation_id: Optional[UUID] = None,
    ) -> MutationResult:
        """Add an entry and recompute its period."""
        owner_id = self._session.current_owner_id()
        if not owner_id:
            return MutationResult.not_authenticated()
        correlation_id = correlation_id or create_correlation_id()

        await self._report_warnings(owner_id, draft, correlation_id)

        entry = Entry.from_draft(draft, owner_id)
        try:
            entry_id = await self._entries.add_entry(entry)
        except NotAuthenticatedError:
            return MutationResult.not_authenticated()
        except PersistenceError as e:
            await self._log_storage_error("add_entry", e, owner_id, correlation_id)
            return MutationResult(
                status=MutationStatus.FAILED,
                message=ENTRY_SAVE_FAILED_MESSAGE,
            )

        entry = entry.model_copy(update={"id": entry_id})
        audit = None
        if self._audit_logger:
            audit = self._audit_logger.log_entry_added(entry, correlation_id)

        return await self._after_entry_write(
            owner_id, [entry.period_key], entry, correlation_id, audit
        )

    async def update_entry(
        self,
        entry_id: str,
        draft: EntryDraft,
        correlation_id: Optional[UUID] = None,
    ) -> MutationResult:
        """
        Replace every mutable field of an entry.

        If the date moves to another month, both the old and the new
        month are recomputed.
        """
        owner_id = self._session.current_owner_id()
        if not owner_id:
            return MutationResult.not_authenticated()
        correlation_id = correlation_id or create_correlation_id()

        original = await self._owned_entry(owner_id, entry_id, correlation_id)
        if isinstance(original, MutationResult):
            return original

        await self._report_warnings(owner_id, draft, correlation_id)

        try:
            updated = await self._entries.update_entry(entry_id, draft)
        except NotFoundError:
            return MutationResult(
                status=MutationStatus.NOT_FOUND,
                message=ENTRY_NOT_FOUND_MESSAGE,
            )
        except PersistenceError as e:
            await self._log_storage_error("update_entry", e, owner_id, correlation_id)
            return MutationResult(
                status=MutationStatus.FAILED,
                message=ENTRY_SAVE_FAILED_MESSAGE,
            )

        periods = [original.period_key]
        if updated.period_key != original.period_key:
            periods.append(updated.period_key)

        audit = None
        if self._audit_logger:
            audit = self._audit_logger.log_entry_updated(
                owner_id=owner_id,
                entry_id=entry_id,
                periods=periods,
                correlation_id=correlation_id,
            )

        return await self._after_entry_write(
            owner_id, periods, updated, correlation_id, audit
        )

    async def delete_entry(
        self,
        entry_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> MutationResult:
        """Permanently delete an entry and recompute its period."""
        owner_id = self._session.current_owner_id()
        if not owner_id:
            return MutationResult.not_authenticated()
        correlation_id = correlation_id or create_correlation_id()

        original = await self._owned_entry(owner_id, entry_id, correlation_id)
        if isinstance(original, MutationResult):
            return original

        try:
            await self._entries.delete_entry(entry_id)
        except NotFoundError:
            return MutationResult(
                status=MutationStatus.NOT_FOUND,
                message=ENTRY_NOT_FOUND_MESSAGE,
            )
        except PersistenceError as e:
            await self._log_storage_error("delete_entry", e, owner_id, correlation_id)
            return MutationResult(
                status=MutationStatus.FAILED,
                message=ENTRY_SAVE_FAILED_MESSAGE,
            )

        audit = None
        if self._audit_logger:
            audit = self._audit_logger.log_entry_deleted(
                owner_id=owner_id,
                entry_id=entry_id,
                correlation_id=correlation_id,
            )

        return await self._after_entry_write(
            owner_id, [original.period_key], original, correlation_id, audit
        )

    # =========================================================================
    # BUDGET
    # =========================================================================

    async def set_budget(
        self,
        monthly_budget,
        period_key: Optional[str] = None,
        correlation_id: Optional[UUID] = None,
    ) -> MutationResult:
        """
        Create or overwrite the budget of a period (default: this month).

        The stored spending is the period's freshly recomputed expense
        total, never a blind zero.
        """
        owner_id = self._session.current_owner_id()
        if not owner_id:
            return MutationResult.not_authenticated()
        correlation_id = correlation_id or create_correlation_id()

        try:
            amount = Decimal(str(monthly_budget))
        except (InvalidOperation, ValueError):
            amount = None
        if amount is None or not amount.is_finite() or amount <= 0:
            return MutationResult(
                status=MutationStatus.INVALID,
                message=BUDGET_INVALID_MESSAGE,
            )

        period_key = period_key or period_key_for(datetime.now())
        if not re.match(PERIOD_KEY_PATTERN, period_key):
            return MutationResult(
                status=MutationStatus.INVALID,
                message=PERIOD_INVALID_MESSAGE,
            )

        try:
            async with self._locks.lock_for(owner_id, period_key):
                entries = await self._entries.list_entries(owner_id)
                spending = period_spending(entries, period_key)
                budget = await self._budgets.set_budget(
                    owner_id, period_key, amount, spending
                )
                await self._observe(budget, entries)
        except NotAuthenticatedError:
            return MutationResult.not_authenticated()
        except PersistenceError as e:
            await self._log_storage_error("set_budget", e, owner_id, correlation_id)
            return MutationResult(
                status=MutationStatus.FAILED,
                message=BUDGET_SAVE_FAILED_MESSAGE,
            )

        if self._audit_logger:
            await self._audit_logger.log_budget_set(budget, correlation_id)

        await self._append_chat(
            owner_id,
            BUDGET_SET_CHAT_TEMPLATE.format(
                currency=self._settings.currency_symbol,
                amount=amount,
            ),
        )

        snapshot = self._publish(owner_id, period_key, entries, budget)
        return MutationResult(
            status=MutationStatus.SUCCESS,
            budget=budget,
            snapshot=snapshot,
        )

    async def recompute_period(
        self,
        owner_id: str,
        period_key: str,
        correlation_id: Optional[UUID] = None,
    ) -> Optional[Budget]:
        """
        Rebuild a period's cached spending from the entry store.

        Returns the updated budget, or None if the period has no budget.

        Raises:
            StorageError: If the entries cannot be read or the budget
                cannot be written
        """
        _, budget = await self._recompute(owner_id, period_key, correlation_id)
        return budget

    # =========================================================================
    # READS
    # =========================================================================

    async def load(self, period_key: Optional[str] = None) -> MutationResult:
        """
        Read the current ledger without changing it.

        On a store failure the last published snapshot is returned
        with a transient message.
        """
        owner_id = self._session.current_owner_id()
        if not owner_id:
            return MutationResult.not_authenticated()
        period_key = period_key or period_key_for(datetime.now())

        try:
            entries = await self._entries.list_entries(owner_id)
            budget = await self._budgets.get_budget(owner_id, period_key)
        except NotAuthenticatedError:
            return MutationResult.not_authenticated()
        except PersistenceError as e:
            await self._log_storage_error("load", e, owner_id)
            return MutationResult(
                status=MutationStatus.FAILED,
                message=LOAD_FAILED_MESSAGE,
                snapshot=self._publisher.latest(owner_id),
            )

        snapshot = self._publish(owner_id, period_key, entries, budget)
        return MutationResult(
            status=MutationStatus.SUCCESS,
            budget=budget,
            snapshot=snapshot,
        )

    async def request_advice(self, period_key: Optional[str] = None) -> Optional[str]:
        """
        Ask for budget advice right now, outside the overrun trigger.

        Returns None when signed out or when no advice service is wired.
        """
        owner_id = self._session.current_owner_id()
        if not owner_id or self._advice_trigger is None:
            return None
        period_key = period_key or period_key_for(datetime.now())

        try:
            entries = await self._entries.list_entries(owner_id)
            budget = await self._budgets.get_budget(owner_id, period_key)
        except StorageError as e:
            await self._log_storage_error("request_advice", e, owner_id)
            return None

        return await self._advice_trigger.advise_now(
            budget, self._recent(entries)
        )

    def submit(self, operation: Coroutine) -> CancellableOperation:
        """
        Run a coordinator operation as a cancellable task.

        Usage:
            op = coordinator.submit(coordinator.delete_entry(entry_id))
            op.cancel()
            result = await op.result()   # MutationStatus.CANCELLED
        """
        return CancellableOperation(operation)

    # =========================================================================
    # INTERNALS
    # =========================================================================

    async def _owned_entry(
        self,
        owner_id: str,
        entry_id: str,
        correlation_id: UUID,
    ):
        """The stored entry if it belongs to owner_id, else a failed MutationResult."""
        try:
            original = await self._entries.get_entry(entry_id)
        except PersistenceError as e:
            await self._log_storage_error("get_entry", e, owner_id, correlation_id)
            return MutationResult(
                status=MutationStatus.FAILED,
                message=ENTRY_SAVE_FAILED_MESSAGE,
            )
        if original is None or original.owner_id != owner_id:
            return MutationResult(
                status=MutationStatus.NOT_FOUND,
                message=ENTRY_NOT_FOUND_MESSAGE,
            )
        return original

    async def _after_entry_write(
        self,
        owner_id: str,
        periods: list[str],
        entry: Entry,
        correlation_id: UUID,
        audit: Optional[Coroutine] = None,
    ) -> MutationResult:
        """
        Bring every affected period's cache in line with the written entry.

        The recomputes run as one shielded task: once the entry is
        written, cancelling the caller still yields CANCELLED, but every
        period finishes its recompute. The audit record of the write, if
        any, is part of the same task.
        """
        sync = asyncio.create_task(
            self._sync_periods(owner_id, periods, entry, correlation_id, audit)
        )
        self._syncs.add(sync)
        sync.add_done_callback(self._syncs.discard)
        return await asyncio.shield(sync)

    async def _sync_periods(
        self,
        owner_id: str,
        periods: list[str],
        entry: Entry,
        correlation_id: UUID,
        audit: Optional[Coroutine] = None,
    ) -> MutationResult:
        if audit is not None:
            await audit

        entries: Optional[list[Entry]] = None
        budget: Optional[Budget] = None
        sync_failed = False

        for period_key in periods:
            try:
                entries, budget = await self._recompute(
                    owner_id, period_key, correlation_id
                )
            except StorageError as e:
                await self._log_storage_error(
                    "recompute_period", e, owner_id, correlation_id
                )
                sync_failed = True

        if sync_failed or entries is None:
            return MutationResult(
                status=MutationStatus.SYNC_FAILED,
                message=BUDGET_SYNC_FAILED_MESSAGE,
                entry=entry,
            )

        # The snapshot shows the period the entry is in now
        snapshot = self._publish(owner_id, periods[-1], entries, budget)
        return MutationResult(
            status=MutationStatus.SUCCESS,
            entry=entry,
            budget=budget,
            snapshot=snapshot,
        )

    async def _recompute(
        self,
        owner_id: str,
        period_key: str,
        correlation_id: Optional[UUID] = None,
    ) -> tuple[list[Entry], Optional[Budget]]:
        async with self._locks.lock_for(owner_id, period_key):
            entries = await self._entries.list_entries(owner_id)
            spending = period_spending(entries, period_key)
            budget = await self._budgets.update_spending(
                owner_id, period_key, spending
            )
            await self._observe(budget, entries)

        if self._audit_logger:
            await self._audit_logger.log_spending_recomputed(
                owner_id=owner_id,
                period_key=period_key,
                current_spending=spending,
                budget_exists=budget is not None,
                correlation_id=correlation_id,
            )
        return entries, budget

    async def _observe(self, budget: Optional[Budget], entries: Sequence[Entry]) -> None:
        if self._advice_trigger is not None:
            await self._advice_trigger.observe(budget, self._recent(entries))

    def _recent(self, entries: Sequence[Entry]) -> list[Entry]:
        return list(entries[:self._settings.advice_recent_entries])

    def _publish(
        self,
        owner_id: str,
        period_key: str,
        entries: Sequence[Entry],
        budget: Optional[Budget],
    ) -> LedgerSnapshot:
        snapshot = LedgerSnapshot(
            owner_id=owner_id,
            period_key=period_key,
            entries=tuple(entries),
            budget=budget,
            usage=usage_for(budget),
        )
        self._publisher.publish(snapshot)
        return snapshot

    async def _report_warnings(
        self,
        owner_id: str,
        draft: EntryDraft,
        correlation_id: UUID,
    ) -> None:
        result = self._validator.validate(draft)
        if result.warnings and self._audit_logger:
            await self._audit_logger.log_validation_warning(
                owner_id=owner_id,
                issues=[issue.model_dump() for issue in result.warnings],
                correlation_id=correlation_id,
            )

    async def _append_chat(self, owner_id: str, text: str) -> None:
        if self._chat is None:
            return
        try:
            await self._chat.append_message(
                ChatMessage(owner_id=owner_id, text=text, is_from_user=False)
            )
        except StorageError as e:
            await self._log_storage_error("append_message", e, owner_id)

    async def _log_storage_error(
        self,
        operation: str,
        error: Exception,
        owner_id: Optional[str] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        if self._audit_logger:
            await self._audit_logger.log_storage_error(
                operation=operation,
                error_message=str(error),
                owner_id=owner_id,
                correlation_id=correlation_id,
            )
        else:
            logger.error(
                "storage_error",
                operation=operation,
                error=str(error),
                owner_id=owner_id,
            )


class ChatFlow:
    """
    Orchestrates the chat flow.

    Flow:
    1. Save the user's message
    2. Ask the chat agent for a reply (bounded by the provider timeout)
    3. Save the reply, or the fallback apology
    4. Return the full history, oldest first
    """

    def __init__(
        self,
        session: SessionContext,
        chat_storage: ChatStorageInterface,
        chat_agent: ChatAgent,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._session = session
        self._chat = chat_storage
        self._agent = chat_agent
        self._audit_logger = audit_logger

    async def send_message(self, text: str) -> list[ChatMessage]:
        """Send a message and return the updated history."""
        owner_id = self._session.current_owner_id()
        if not owner_id:
            return []
        text = (text or "").strip()
        if not text:
            return await self.history()

        if not await self._save(ChatMessage(owner_id=owner_id, text=text)):
            return await self.history()

        reply = await self._agent.reply(text)
        if reply.used_fallback and self._audit_logger:
            await self._audit_logger.log_advice_fallback(
                owner_id=owner_id,
                reason=reply.failure_reason or "unknown",
            )

        await self._save(
            ChatMessage(owner_id=owner_id, text=reply.text, is_from_user=False)
        )
        return await self.history()

    async def history(self) -> list[ChatMessage]:
        """Messages oldest first, blank messages dropped."""
        owner_id = self._session.current_owner_id()
        if not owner_id:
            return []
        try:
            messages = await self._chat.list_messages(owner_id)
        except StorageError as e:
            logger.warning("chat_history_unavailable", owner_id=owner_id, error=str(e))
            return []
        messages = [message for message in messages if message.text.strip()]
        messages.sort(key=lambda m: m.timestamp)
        return messages

    async def _save(self, message: ChatMessage) -> bool:
        try:
            await self._chat.append_message(message)
        except StorageError as e:
            if self._audit_logger:
                await self._audit_logger.log_storage_error(
                    operation="append_message",
                    error_message=str(e),
                    owner_id=message.owner_id,
                )
            return False
        if self._audit_logger:
            await self._audit_logger.log_chat_message_saved(
                owner_id=message.owner_id,
                is_from_user=message.is_from_user,
            )
        return True


def create_app_components(
    use_storage: bool = True,
    session: Optional[SessionContext] = None,
    provider: Optional[TextCompletionProvider] = None,
) -> tuple[LedgerCoordinator, ChatFlow, Optional[GoogleSheetsClient]]:
    """
    Factory function to create all application components.

    Args:
        use_storage: Whether to initialize Google Sheets storage.
                    Set to False (or leave Sheets unconfigured) to run
                    on in-memory stores.
        session: Owner context. Defaults to a signed-out StaticSession.
        provider: Completion provider. Defaults to Gemini.

    Returns:
        (ledger_coordinator, chat_flow, sheets_client)
    """
    settings = get_settings()
    session = session or StaticSession()
    sheets_client = None

    entry_storage: EntryStorageInterface
    budget_storage: BudgetStorageInterface
    chat_storage: ChatStorageInterface
    advice_state_storage: AdviceStateStorageInterface

    if use_storage:
        try:
            sheets_client = GoogleSheetsClient()
            entry_storage = GoogleSheetsEntryStorage(sheets_client)
            budget_storage = GoogleSheetsBudgetStorage(sheets_client)
            chat_storage = GoogleSheetsChatStorage(sheets_client)
            advice_state_storage = GoogleSheetsAdviceStateStorage(sheets_client)
            audit_logger = AuditLogger(GoogleSheetsAuditStorage(sheets_client))
        except Exception as e:
            # Storage not configured - continue without it
            logger.warning("storage_not_configured", error=str(e))
            sheets_client = None
            use_storage = False

    if not use_storage:
        entry_storage = InMemoryEntryStorage()
        budget_storage = InMemoryBudgetStorage()
        chat_storage = InMemoryChatStorage()
        advice_state_storage = InMemoryAdviceStateStorage()
        audit_logger = AuditLogger()  # Local-only logging

    timeout_ms = None
    if provider is None:
        gemini_settings = settings.gemini
        provider = GeminiTextProvider(gemini_settings)
        timeout_ms = gemini_settings.request_timeout_ms

    ledger_settings = settings.ledger
    advice_trigger = AdviceTrigger(
        state_storage=advice_state_storage,
        chat_storage=chat_storage,
        advice_agent=BudgetAdviceAgent(
            provider,
            timeout_ms=timeout_ms,
            currency_symbol=ledger_settings.currency_symbol,
        ),
        audit_logger=audit_logger,
    )

    coordinator = LedgerCoordinator(
        session=session,
        entry_storage=entry_storage,
        budget_storage=budget_storage,
        chat_storage=chat_storage,
        advice_trigger=advice_trigger,
        audit_logger=audit_logger,
        settings=ledger_settings,
    )

    chat_flow = ChatFlow(
        session=session,
        chat_storage=chat_storage,
        chat_agent=ChatAgent(provider, timeout_ms=timeout_ms),
        audit_logger=audit_logger,
    )

    return coordinator, chat_flow, sheets_client
