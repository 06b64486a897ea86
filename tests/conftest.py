"""
Shared fixtures for the Expense Tracker tests.

No network: every store is in-memory and the completion provider is
a scripted fake.
"""

from datetime import datetime
from types import SimpleNamespace

import pytest

from helpers import build_ledger, make_draft
from expense_tracker.models.ledger import EntryDraft, EntryType


@pytest.fixture
def ledger() -> SimpleNamespace:
    return build_ledger()


@pytest.fixture
def march_entries() -> list[EntryDraft]:
    """Two Food expenses and one uncategorized income in March 2024."""
    return [
        make_draft(100, datetime(2024, 3, 1, 9, 0)),
        make_draft(50, datetime(2024, 3, 2, 18, 30)),
        make_draft(
            500,
            datetime(2024, 3, 1, 8, 0),
            entry_type=EntryType.INCOME,
            category="",
            title="Salary",
        ),
    ]
