"""Budget advice package."""

from expense_tracker.advice.trigger import (
    ADVICE_MESSAGE_PREFIX,
    NO_BUDGET_TEXT,
    AdviceTrigger,
)

__all__ = [
    "ADVICE_MESSAGE_PREFIX",
    "NO_BUDGET_TEXT",
    "AdviceTrigger",
]
