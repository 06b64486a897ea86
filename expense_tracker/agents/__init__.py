"""AI agents package."""

from expense_tracker.agents.ai_agents import (
    CHAT_EMPTY_REPLY,
    CHAT_FAILED_REPLY,
    DEFAULT_TIMEOUT_MS,
    NO_ADVICE_TEXT,
    AgentReply,
    BudgetAdviceAgent,
    ChatAgent,
    GeminiTextProvider,
    ProviderError,
    ProviderTimeoutError,
    TextCompletionProvider,
)

__all__ = [
    "CHAT_EMPTY_REPLY",
    "CHAT_FAILED_REPLY",
    "DEFAULT_TIMEOUT_MS",
    "NO_ADVICE_TEXT",
    "AgentReply",
    "BudgetAdviceAgent",
    "ChatAgent",
    "GeminiTextProvider",
    "ProviderError",
    "ProviderTimeoutError",
    "TextCompletionProvider",
]
