"""Tests for two-stage entry validation."""

from datetime import datetime, timedelta

from expense_tracker.config import LedgerSettings
from expense_tracker.models.ledger import UNCATEGORIZED, EntryType
from expense_tracker.validation import EntryValidator


def validator(**overrides) -> EntryValidator:
    return EntryValidator(LedgerSettings(**overrides))


class TestSchemaStage:
    """Tests for parse_draft."""

    def test_valid_input(self):
        draft, result = validator().parse_draft({
            "title": "Bus pass",
            "amount": "45.00",
            "date": "2024-03-01T08:00:00",
            "category": "",
            "type": "expense",
        })

        assert result.is_valid
        assert result.issues == []
        assert draft.category == UNCATEGORIZED
        assert draft.type == EntryType.EXPENSE

    def test_errors_name_the_field(self):
        draft, result = validator().parse_draft({"title": " ", "amount": "-3"})

        assert draft is None
        assert result.is_valid is False
        assert {issue.field for issue in result.errors} == {"title", "amount"}
        assert all(issue.severity == "error" for issue in result.issues)

    def test_unknown_type_rejected(self):
        draft, result = validator().parse_draft(
            {"title": "x", "amount": "1", "type": "transfer"}
        )
        assert draft is None
        assert result.errors[0].field == "type"


class TestSemanticStage:
    """Tests for validate."""

    def test_future_date_warns(self):
        draft, result = validator().parse_draft({
            "title": "Concert",
            "amount": "80",
            "date": datetime.now() + timedelta(days=10),
        })

        assert draft is not None
        assert result.is_valid
        assert [w.issue_type for w in result.warnings] == ["future_date"]

    def test_tomorrow_is_within_tolerance(self):
        _, result = validator().parse_draft({
            "title": "Concert",
            "amount": "80",
            "date": datetime.now() + timedelta(days=1),
        })
        assert result.warnings == []

    def test_large_amount_warns(self):
        _, result = validator(max_entry_amount=500).parse_draft(
            {"title": "TV", "amount": "999", "date": datetime(2024, 3, 1)}
        )

        assert result.is_valid
        assert result.warnings[0].issue_type == "suspicious_value"
        assert result.warnings[0].suggested_fix
