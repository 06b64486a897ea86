"""Tests for the edge-triggered budget advice."""

from datetime import datetime
from decimal import Decimal

import pytest

from helpers import OWNER, FakeProvider, build_ledger
from expense_tracker.advice import ADVICE_MESSAGE_PREFIX, NO_BUDGET_TEXT, AdviceTrigger
from expense_tracker.agents import BudgetAdviceAgent, ProviderTimeoutError
from expense_tracker.models.audit import AuditEventType
from expense_tracker.models.ledger import Budget, Entry


def budget(spending, monthly=120, period_key="2024-03") -> Budget:
    return Budget(
        owner_id=OWNER,
        period_key=period_key,
        monthly_budget=Decimal(str(monthly)),
        current_spending=Decimal(str(spending)),
    )


RECENT = [
    Entry(
        owner_id=OWNER,
        title="Concert",
        amount=Decimal("90"),
        date=datetime(2024, 3, 2),
        category="Fun",
    ),
    Entry(
        owner_id=OWNER,
        title="Groceries",
        amount=Decimal("60"),
        date=datetime(2024, 3, 1),
        category="Food",
    ),
]


async def advice_texts(ledger) -> list[str]:
    await ledger.trigger.drain()
    messages = await ledger.chats.list_messages(OWNER)
    return [m.text for m in messages if m.text.startswith(ADVICE_MESSAGE_PREFIX)]


class TestEdgeTriggering:
    """Advice fires on the under -> over transition only."""

    @pytest.mark.asyncio
    async def test_no_budget_never_fires(self, ledger):
        assert await ledger.trigger.observe(None, RECENT) is False

    @pytest.mark.asyncio
    async def test_under_budget_does_not_fire(self, ledger):
        assert await ledger.trigger.observe(budget(100), RECENT) is False
        assert await advice_texts(ledger) == []

    @pytest.mark.asyncio
    async def test_rising_edge_fires_once(self, ledger):
        assert await ledger.trigger.observe(budget(150), RECENT) is True
        assert await ledger.trigger.observe(budget(160), RECENT) is False
        assert await ledger.trigger.observe(budget(170), RECENT) is False

        texts = await advice_texts(ledger)
        assert texts == [f"{ADVICE_MESSAGE_PREFIX}Cook at home more often this month."]
        assert ledger.trigger.pending == 0

    @pytest.mark.asyncio
    async def test_falling_edge_rearms(self, ledger):
        await ledger.trigger.observe(budget(150), RECENT)
        assert await ledger.trigger.observe(budget(100), RECENT) is False
        assert await ledger.advice_state.get_exceeded_flag(OWNER, "2024-03") is False

        assert await ledger.trigger.observe(budget(130), RECENT) is True
        assert len(await advice_texts(ledger)) == 2

    @pytest.mark.asyncio
    async def test_exactly_on_budget_is_not_an_overrun(self, ledger):
        assert await ledger.trigger.observe(budget(120), RECENT) is False

    @pytest.mark.asyncio
    async def test_flag_is_kept_per_period(self, ledger):
        assert await ledger.trigger.observe(budget(150, period_key="2024-03"), RECENT)
        assert await ledger.trigger.observe(budget(150, period_key="2024-04"), RECENT)
        assert len(await advice_texts(ledger)) == 2

    @pytest.mark.asyncio
    async def test_flag_survives_a_new_trigger(self, ledger):
        """A restarted trigger on the same state store does not fire again."""
        await ledger.trigger.observe(budget(150), RECENT)
        await ledger.trigger.drain()

        restarted = AdviceTrigger(
            state_storage=ledger.advice_state,
            chat_storage=ledger.chats,
            advice_agent=BudgetAdviceAgent(FakeProvider(), currency_symbol="$"),
        )
        assert await restarted.observe(budget(150), RECENT) is False


class TestAdviceContent:
    """Prompt and fallback text of the advice request."""

    @pytest.mark.asyncio
    async def test_prompt_lists_budget_spending_and_entries(self, ledger):
        await ledger.trigger.observe(budget(150), RECENT)
        await ledger.trigger.drain()

        assert ledger.provider.prompts == [
            "My monthly budget is $120 and I've spent $150 so far.\n"
            "Recent entries: Concert: $90 (Fun), Groceries: $60 (Food)\n"
            "Give me some financial advice to manage my budget better."
        ]

    @pytest.mark.asyncio
    async def test_provider_failure_posts_fallback(self):
        ledger = build_ledger(
            provider=FakeProvider(error=ProviderTimeoutError("slow"))
        )

        await ledger.trigger.observe(budget(150), RECENT)
        texts = await advice_texts(ledger)

        assert len(texts) == 1
        assert "You have spent $150.00 of your $120.00 monthly budget ($30.00 over)" in texts[0]
        assert any(
            event.event_type == AuditEventType.ADVICE_FALLBACK_USED
            for event in ledger.audit.events
        )

    @pytest.mark.asyncio
    async def test_slow_provider_does_not_block_observe(self):
        ledger = build_ledger(provider=FakeProvider(delay=0.05))

        assert await ledger.trigger.observe(budget(150), RECENT) is True
        assert ledger.trigger.pending == 1

        await ledger.trigger.drain()
        assert ledger.trigger.pending == 0

    @pytest.mark.asyncio
    async def test_advise_now_without_budget(self, ledger):
        assert await ledger.trigger.advise_now(None, RECENT) == NO_BUDGET_TEXT
        assert ledger.provider.prompts == []

    @pytest.mark.asyncio
    async def test_advise_now_ignores_edge_state(self, ledger):
        text = await ledger.trigger.advise_now(budget(50), RECENT)

        assert text == "Cook at home more often this month."
        assert await ledger.advice_state.get_exceeded_flag(OWNER, "2024-03") is False
        assert await advice_texts(ledger) == [f"{ADVICE_MESSAGE_PREFIX}{text}"]
