"""
AI Agents for the Expense Tracker

DESIGN DECISION: The language model sits behind one tiny contract,
complete(prompt, timeout_ms) -> text. Everything the ledger needs from
it (budget advice, chat replies) is built on that single call, so the
provider can be swapped or faked in tests without touching the flows.

CRITICAL BOUNDARIES:

1. BUDGET ADVICE AGENT:
   - CAN: Turn the budget, spending and recent entries into advice text
   - CANNOT: Change any ledger data
   - MUST: Return deterministic fallback text if the provider fails

2. CHAT AGENT:
   - CAN: Reply to free-text questions from the user
   - MUST: Return a fixed apology on blank replies, timeouts and errors

The provider is never allowed to fail the caller. Every failure
degrades to a fallback string, and the agent reports that it did so.
"""

import asyncio
from abc import ABC, abstractmethod
from decimal import Decimal
from typing import Optional, Sequence

import google.generativeai as genai
from pydantic import BaseModel

from expense_tracker.config import GeminiSettings, get_settings
from expense_tracker.models.ledger import Entry


DEFAULT_TIMEOUT_MS = 30_000
NO_ADVICE_TEXT = "No advice available"
CHAT_EMPTY_REPLY = "Sorry, I couldn't generate a response right now."
CHAT_FAILED_REPLY = "Sorry, the request timed out or failed."


class AgentReply(BaseModel):
    """Text produced by an agent, with whether a fallback was used."""

    text: str
    used_fallback: bool = False
    failure_reason: Optional[str] = None


# =============================================================================
# PROVIDER BOUNDARY
# =============================================================================

class TextCompletionProvider(ABC):
    """Opaque text-completion service."""

    @abstractmethod
    async def complete(self, prompt: str, timeout_ms: int) -> str:
        """
        Complete a prompt.

        Raises:
            ProviderTimeoutError: If no reply arrived within timeout_ms
            ProviderError: For any other provider failure
        """
        pass


class GeminiTextProvider(TextCompletionProvider):
    """Google Gemini implementation of the completion contract."""

    def __init__(self, settings: Optional[GeminiSettings] = None):
        self._settings = settings or get_settings().gemini
        self._configure_genai()

    def _configure_genai(self):
        """Configure Google Generative AI."""
        genai.configure(api_key=self._settings.api_key)
        self._model = genai.GenerativeModel(
            model_name=self._settings.model_name,
            generation_config={
                "temperature": self._settings.temperature,
                "max_output_tokens": self._settings.max_tokens,
            }
        )

    async def complete(self, prompt: str, timeout_ms: int) -> str:
        try:
            response = await asyncio.wait_for(
                self._model.generate_content_async(prompt),
                timeout=timeout_ms / 1000,
            )
        except asyncio.TimeoutError:
            raise ProviderTimeoutError(
                f"No response from {self._settings.model_name} within {timeout_ms}ms"
            )
        except Exception as e:
            raise ProviderError(f"Gemini request failed: {e}")

        try:
            return response.text
        except ValueError as e:
            # Raised when the candidate was blocked and has no text part
            raise ProviderError(f"Gemini returned no text: {e}")


# =============================================================================
# AGENTS
# =============================================================================

class BudgetAdviceAgent:
    """
    Asks the provider for advice once spending goes over budget.

    RESPONSIBILITIES:
    - Build the advice prompt from the budget and recent entries
    - Fall back to a canned, data-based message on failure

    BOUNDARIES:
    - NEVER writes to the ledger
    - NEVER raises on provider failure
    """

    def __init__(
        self,
        provider: TextCompletionProvider,
        timeout_ms: Optional[int] = None,
        currency_symbol: Optional[str] = None,
    ):
        self._provider = provider
        self._timeout_ms = timeout_ms or DEFAULT_TIMEOUT_MS
        self._currency = currency_symbol or get_settings().ledger.currency_symbol

    def build_prompt(
        self,
        monthly_budget: Decimal,
        current_spending: Decimal,
        recent_entries: Sequence[Entry],
    ) -> str:
        c = self._currency
        entries_str = ", ".join(
            f"{entry.title}: {c}{entry.amount} ({entry.category})"
            for entry in recent_entries
        )
        return (
            f"My monthly budget is {c}{monthly_budget} and I've spent "
            f"{c}{current_spending} so far.\n"
            f"Recent entries: {entries_str}\n"
            f"Give me some financial advice to manage my budget better."
        )

    def fallback_advice(
        self,
        monthly_budget: Decimal,
        current_spending: Decimal,
    ) -> str:
        """Deterministic advice used whenever the provider fails."""
        c = self._currency
        over = current_spending - monthly_budget
        return (
            f"You have spent {c}{current_spending:.2f} of your "
            f"{c}{monthly_budget:.2f} monthly budget ({c}{over:.2f} over). "
            f"Review your largest recent expenses and hold off on "
            f"non-essential spending until next month."
        )

    async def get_budget_advice(
        self,
        monthly_budget: Decimal,
        current_spending: Decimal,
        recent_entries: Sequence[Entry],
    ) -> AgentReply:
        prompt = self.build_prompt(monthly_budget, current_spending, recent_entries)
        try:
            text = await self._provider.complete(prompt, self._timeout_ms)
        except ProviderError as e:
            return AgentReply(
                text=self.fallback_advice(monthly_budget, current_spending),
                used_fallback=True,
                failure_reason=str(e),
            )

        text = (text or "").strip()
        if not text:
            return AgentReply(
                text=NO_ADVICE_TEXT,
                used_fallback=True,
                failure_reason="empty response",
            )
        return AgentReply(text=text)


class ChatAgent:
    """Free-text chat with the provider, with fixed apologies on failure."""

    def __init__(
        self,
        provider: TextCompletionProvider,
        timeout_ms: Optional[int] = None,
    ):
        self._provider = provider
        self._timeout_ms = timeout_ms or DEFAULT_TIMEOUT_MS

    async def reply(self, message: str) -> AgentReply:
        try:
            text = await self._provider.complete(message, self._timeout_ms)
        except ProviderError as e:
            return AgentReply(
                text=CHAT_FAILED_REPLY,
                used_fallback=True,
                failure_reason=str(e),
            )

        text = (text or "").strip()
        if not text:
            return AgentReply(
                text=CHAT_EMPTY_REPLY,
                used_fallback=True,
                failure_reason="empty response",
            )
        return AgentReply(text=text)


class ProviderError(Exception):
    """The completion provider failed or refused the request."""
    pass


class ProviderTimeoutError(ProviderError):
    """The completion provider did not answer in time."""
    pass
