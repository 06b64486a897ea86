"""Entry validation package."""

from expense_tracker.validation.validator import EntryValidator

__all__ = ["EntryValidator"]
