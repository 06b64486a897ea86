"""Flow tests for ChatFlow."""

import pytest

from helpers import OWNER, FakeProvider, build_ledger
from expense_tracker.agents import CHAT_EMPTY_REPLY, CHAT_FAILED_REPLY, ProviderTimeoutError
from expense_tracker.models.audit import AuditEventType
from expense_tracker.models.ledger import ChatMessage


class TestSendMessage:
    """Tests for ChatFlow.send_message."""

    @pytest.mark.asyncio
    async def test_message_and_reply_are_saved(self, ledger):
        history = await ledger.chat_flow.send_message("How do I save more?")

        assert [(m.text, m.is_from_user) for m in history] == [
            ("How do I save more?", True),
            ("Cook at home more often this month.", False),
        ]
        assert all(m.owner_id == OWNER for m in history)

    @pytest.mark.asyncio
    async def test_message_is_trimmed(self, ledger):
        await ledger.chat_flow.send_message("  hello  ")
        assert ledger.provider.prompts == ["hello"]

    @pytest.mark.asyncio
    async def test_blank_reply_is_replaced(self):
        ledger = build_ledger(provider=FakeProvider(reply="  "))

        history = await ledger.chat_flow.send_message("hi")

        assert history[-1].text == CHAT_EMPTY_REPLY
        assert history[-1].is_from_user is False

    @pytest.mark.asyncio
    async def test_provider_failure_is_replaced(self):
        ledger = build_ledger(provider=FakeProvider(error=ProviderTimeoutError("slow")))

        history = await ledger.chat_flow.send_message("hi")

        assert history[-1].text == CHAT_FAILED_REPLY
        assert any(
            event.event_type == AuditEventType.ADVICE_FALLBACK_USED
            for event in ledger.audit.events
        )

    @pytest.mark.asyncio
    async def test_blank_message_is_not_sent(self, ledger):
        history = await ledger.chat_flow.send_message("   ")

        assert history == []
        assert ledger.provider.prompts == []

    @pytest.mark.asyncio
    async def test_signed_out_returns_nothing(self):
        ledger = build_ledger(owner_id=None)

        assert await ledger.chat_flow.send_message("hi") == []
        assert await ledger.chat_flow.history() == []
        assert ledger.provider.prompts == []


class TestHistory:
    """Tests for ChatFlow.history."""

    @pytest.mark.asyncio
    async def test_blank_messages_are_hidden(self, ledger):
        await ledger.chats.append_message(ChatMessage(owner_id=OWNER, text=" "))
        await ledger.chats.append_message(ChatMessage(owner_id=OWNER, text="kept"))

        history = await ledger.chat_flow.history()

        assert [m.text for m in history] == ["kept"]

    @pytest.mark.asyncio
    async def test_other_owners_messages_are_hidden(self, ledger):
        await ledger.chats.append_message(ChatMessage(owner_id="someone-else", text="hi"))
        assert await ledger.chat_flow.history() == []

    @pytest.mark.asyncio
    async def test_budget_confirmation_shows_in_history(self, ledger):
        await ledger.coordinator.set_budget("75", "2024-03")

        history = await ledger.chat_flow.history()

        assert [m.text for m in history] == ["✅ Monthly budget set to $75.00"]
