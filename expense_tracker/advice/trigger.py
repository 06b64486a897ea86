"""
Budget Advice Trigger

DESIGN DECISION: Advice is EDGE-triggered, not level-triggered.

    under budget -> over budget     request advice once, set the flag
    over budget  -> over budget     nothing
    over budget  -> under budget    clear the flag (re-arm)

The flag lives in AdviceStateStorageInterface, keyed by owner and
period, so a restart in the middle of an overrun does not fire again.

The flag is written BEFORE the provider is called. The provider call
and the chat append run as a detached task: a slow or failing provider
never delays or fails the mutation that crossed the budget.
"""

import asyncio
from typing import Optional, Sequence

import structlog

from expense_tracker.agents import BudgetAdviceAgent
from expense_tracker.analytics import usage_for
from expense_tracker.audit import AuditLogger
from expense_tracker.models.ledger import Budget, ChatMessage, Entry
from expense_tracker.services.storage import (
    AdviceStateStorageInterface,
    ChatStorageInterface,
    StorageError,
)


ADVICE_MESSAGE_PREFIX = "💰 Budget Alert Advice:\n\n"
NO_BUDGET_TEXT = "Please set a monthly budget first to get AI advice!"

logger = structlog.get_logger(__name__)


class AdviceTrigger:
    """
    Watches recomputed budgets and requests advice on overrun.

    Usage:
        fired = await trigger.observe(budget, recent_entries)
        ...
        await trigger.drain()   # wait for detached advice requests
    """

    def __init__(
        self,
        state_storage: AdviceStateStorageInterface,
        chat_storage: ChatStorageInterface,
        advice_agent: BudgetAdviceAgent,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._state = state_storage
        self._chat = chat_storage
        self._agent = advice_agent
        self._audit_logger = audit_logger
        self._tasks: set[asyncio.Task] = set()

    @property
    def pending(self) -> int:
        """Number of advice requests still running."""
        return len(self._tasks)

    async def observe(
        self,
        budget: Optional[Budget],
        recent_entries: Sequence[Entry],
    ) -> bool:
        """
        Check a freshly recomputed budget for an overrun edge.

        Returns:
            True if an advice request was started
        """
        if budget is None:
            return False

        usage = usage_for(budget)
        try:
            was_exceeded = await self._state.get_exceeded_flag(
                budget.owner_id, budget.period_key
            )
            if usage.exceeded == was_exceeded:
                return False
            await self._state.set_exceeded_flag(
                budget.owner_id, budget.period_key, usage.exceeded
            )
        except StorageError as e:
            logger.warning(
                "advice_state_unavailable",
                owner_id=budget.owner_id,
                period_key=budget.period_key,
                error=str(e),
            )
            return False

        if not usage.exceeded:
            # Falling edge, re-armed
            return False

        task = asyncio.create_task(
            self._request_advice(budget, tuple(recent_entries))
        )
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return True

    async def advise_now(
        self,
        budget: Optional[Budget],
        recent_entries: Sequence[Entry],
    ) -> str:
        """
        Ask for advice immediately, regardless of the edge state.

        Returns the advice text, or NO_BUDGET_TEXT when no budget is set.
        """
        if budget is None:
            return NO_BUDGET_TEXT
        return await self._request_advice(budget, tuple(recent_entries))

    async def drain(self) -> None:
        """Wait until every detached advice request has finished."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def _request_advice(
        self,
        budget: Budget,
        recent_entries: tuple[Entry, ...],
    ) -> str:
        if self._audit_logger:
            await self._audit_logger.log_advice_requested(budget)

        reply = await self._agent.get_budget_advice(
            monthly_budget=budget.monthly_budget,
            current_spending=budget.current_spending,
            recent_entries=recent_entries,
        )
        if reply.used_fallback and self._audit_logger:
            await self._audit_logger.log_advice_fallback(
                owner_id=budget.owner_id,
                reason=reply.failure_reason or "unknown",
            )

        message = ChatMessage(
            owner_id=budget.owner_id,
            text=f"{ADVICE_MESSAGE_PREFIX}{reply.text}",
            is_from_user=False,
        )
        try:
            await self._chat.append_message(message)
        except StorageError as e:
            if self._audit_logger:
                await self._audit_logger.log_storage_error(
                    operation="append_advice_message",
                    error_message=str(e),
                    owner_id=budget.owner_id,
                )
            else:
                logger.error("advice_message_not_saved", error=str(e))
        else:
            if self._audit_logger:
                await self._audit_logger.log_chat_message_saved(
                    owner_id=budget.owner_id,
                    is_from_user=False,
                )
        return reply.text
