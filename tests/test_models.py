"""
Tests for the Expense Tracker models

Test strategy:
1. Unit tests for individual components (models, aggregator, validator)
2. Flow tests for the coordinator and chat (in-memory stores)
3. No real API calls in tests (fake provider, mocked worksheets)
"""

import pytest
from datetime import datetime, timezone
from decimal import Decimal
from uuid import uuid4

from pydantic import ValidationError

from expense_tracker.models.ledger import (
    UNCATEGORIZED,
    Budget,
    ChatMessage,
    Entry,
    EntryDraft,
    EntryType,
    LedgerSnapshot,
    MutationResult,
    MutationStatus,
    ValidationIssue,
    ValidationResult,
    budget_document_id,
    normalize_category,
    period_key_for,
)
from expense_tracker.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)


class TestEntryModels:
    """Tests for entry-related Pydantic models."""

    def test_entry_draft_creation(self):
        """Test EntryDraft model creation."""
        draft = EntryDraft(
            title="Coffee",
            amount=Decimal("3.50"),
            date=datetime(2024, 3, 5, 8, 15),
            category="Food",
        )
        assert draft.title == "Coffee"
        assert draft.type == EntryType.EXPENSE
        assert draft.period_key == "2024-03"

    def test_entry_draft_strips_whitespace(self):
        """Test that whitespace is stripped from the title."""
        draft = EntryDraft(title="  Coffee  ", amount=Decimal("1"))
        assert draft.title == "Coffee"

    def test_entry_rejects_non_positive_amount(self):
        """Test that zero and negative amounts are rejected."""
        with pytest.raises(ValueError):
            EntryDraft(title="Refund", amount=Decimal("0"))
        with pytest.raises(ValueError):
            EntryDraft(title="Refund", amount=Decimal("-5"))

    def test_entry_rejects_blank_title(self):
        """Test that a title of only spaces is rejected."""
        with pytest.raises(ValueError):
            EntryDraft(title="   ", amount=Decimal("10"))

    def test_blank_category_becomes_uncategorized(self):
        """Test that empty categories are normalized."""
        assert EntryDraft(title="x", amount=1, category="").category == UNCATEGORIZED
        assert EntryDraft(title="x", amount=1, category="   ").category == UNCATEGORIZED
        assert EntryDraft(title="x", amount=1, category=None).category == UNCATEGORIZED

    def test_entry_from_draft(self):
        """Test building an unsaved entry for an owner."""
        draft = EntryDraft(title="Rent", amount=Decimal("900"), category="Home")
        entry = Entry.from_draft(draft, owner_id="user-1")
        assert entry.id is None
        assert entry.owner_id == "user-1"
        assert entry.title == "Rent"
        assert entry.amount == Decimal("900")

    def test_entry_replaced_with_updates_every_field(self):
        """Test that an update replaces all mutable fields."""
        entry = Entry(
            id="e1",
            owner_id="user-1",
            title="Taxi",
            amount=Decimal("20"),
            date=datetime(2024, 3, 31),
            category="Transport",
        )
        draft = EntryDraft(
            title="Bonus",
            amount=Decimal("200"),
            date=datetime(2024, 4, 1),
            category="",
            type=EntryType.INCOME,
        )
        stamp = datetime(2024, 4, 2)
        updated = entry.replaced_with(draft, updated_at=stamp)

        assert updated.id == "e1"
        assert updated.owner_id == "user-1"
        assert updated.title == "Bonus"
        assert updated.category == UNCATEGORIZED
        assert updated.type == EntryType.INCOME
        assert updated.period_key == "2024-04"
        assert updated.updated_at == stamp

    def test_entry_is_frozen(self):
        """Test that entries cannot be edited in place."""
        entry = Entry(owner_id="user-1", title="Tea", amount=Decimal("2"))
        with pytest.raises(ValidationError):
            entry.amount = Decimal("3")

    def test_aware_date_becomes_local_wall_time(self):
        """Test that naive and aware dates end up comparable."""
        aware = datetime(2024, 3, 2, 12, 0, tzinfo=timezone.utc)
        draft = EntryDraft(title="Taxi", amount=Decimal("9"), date=aware)
        naive = EntryDraft(title="Bus", amount=Decimal("2"), date=datetime(2024, 3, 1))

        assert draft.date.tzinfo is None
        assert draft.date == aware.astimezone().replace(tzinfo=None)
        assert sorted([draft.date, naive.date]) == [naive.date, draft.date]


class TestBudgetModels:
    """Tests for the budget model and its helpers."""

    def test_budget_id_is_derived(self):
        """Test that the composite document id is filled in."""
        budget = Budget(
            owner_id="user-1",
            period_key="2024-03",
            monthly_budget=Decimal("120"),
        )
        assert budget.id == "user-1_2024-03"
        assert budget.id == budget_document_id("user-1", "2024-03")
        assert budget.current_spending == Decimal("0")

    def test_budget_rejects_bad_period_key(self):
        """Test the YYYY-MM format."""
        with pytest.raises(ValueError):
            Budget(owner_id="u", period_key="2024-3", monthly_budget=Decimal("1"))
        with pytest.raises(ValueError):
            Budget(owner_id="u", period_key="2024-13", monthly_budget=Decimal("1"))

    def test_budget_rejects_non_positive_target(self):
        """Test monthly_budget must be greater than zero."""
        with pytest.raises(ValueError):
            Budget(owner_id="u", period_key="2024-03", monthly_budget=Decimal("0"))

    def test_budget_rejects_negative_spending(self):
        with pytest.raises(ValueError):
            Budget(
                owner_id="u",
                period_key="2024-03",
                monthly_budget=Decimal("10"),
                current_spending=Decimal("-1"),
            )

    def test_period_key_for(self):
        assert period_key_for(datetime(2024, 12, 31, 23, 59)) == "2024-12"
        assert period_key_for(datetime(2025, 1, 1)) == "2025-01"

    def test_normalize_category(self):
        assert normalize_category(None) == UNCATEGORIZED
        assert normalize_category("  ") == UNCATEGORIZED
        assert normalize_category(" Food ") == "Food"


class TestSnapshotAndResults:
    """Tests for snapshots and mutation results."""

    def test_snapshot_entries_are_immutable(self):
        """Test that a consumer cannot mutate a published snapshot."""
        entry = Entry(owner_id="u", title="Tea", amount=Decimal("2"))
        snapshot = LedgerSnapshot(owner_id="u", period_key="2024-03", entries=[entry])
        assert isinstance(snapshot.entries, tuple)
        with pytest.raises(ValidationError):
            snapshot.budget = None

    def test_cancelled_result_is_silent(self):
        """Test that cancellation carries no user-visible message."""
        result = MutationResult.cancelled()
        assert result.status == MutationStatus.CANCELLED
        assert result.message is None
        assert result.success is False

    def test_not_authenticated_result(self):
        result = MutationResult.not_authenticated()
        assert result.status == MutationStatus.NOT_AUTHENTICATED
        assert result.message is None

    def test_chat_message_defaults(self):
        message = ChatMessage(owner_id="u", text="hello")
        assert message.is_from_user is True
        assert message.timestamp.tzinfo is not None

    def test_chat_timestamps_are_aware_utc(self):
        naive = ChatMessage(owner_id="u", text="a", timestamp=datetime(2024, 3, 1, 9))
        default = ChatMessage(owner_id="u", text="b")

        assert naive.timestamp.tzinfo == timezone.utc
        assert naive.timestamp < default.timestamp


class TestAuditModels:
    """Tests for audit-related models."""

    def test_audit_event_creation(self):
        """Test AuditEvent model creation."""
        event = AuditEvent(
            event_type=AuditEventType.ENTRY_ADDED,
            description="Entry added",
        )
        assert event.event_type == AuditEventType.ENTRY_ADDED
        assert event.severity == AuditSeverity.INFO

    def test_audit_event_to_log_dict(self):
        """Test conversion to log dictionary."""
        event = AuditEvent(
            event_type=AuditEventType.BUDGET_SET,
            description="Budget set",
            details={"monthly_budget": "120"},
        )
        log_dict = event.to_log_dict()
        assert "event_id" in log_dict
        assert log_dict["event_type"] == "budget_set"
        assert log_dict["details"]["monthly_budget"] == "120"

    def test_audit_event_to_sheets_row(self):
        """Test conversion to sheets row."""
        event = AuditEvent(
            event_type=AuditEventType.ENTRY_DELETED,
            description="Entry deleted",
            owner_id="user-1",
            is_user_action=True,
        )
        row = event.to_sheets_row()
        assert len(row) == 12  # Expected number of columns
        assert row[2] == "entry_deleted"  # event_type
        assert row[4] == "user-1"  # owner_id
        assert row[11] == "True"  # is_user_action

    def test_audit_event_builder_entry_added(self):
        """Test AuditEventBuilder.entry_added."""
        correlation_id = uuid4()

        event = AuditEventBuilder.entry_added(
            owner_id="user-1",
            entry_id="e1",
            title="Coffee",
            amount="3.50",
            entry_type="expense",
            correlation_id=correlation_id,
        )

        assert event.event_type == AuditEventType.ENTRY_ADDED
        assert event.entity_id == "e1"
        assert event.correlation_id == correlation_id
        assert event.is_user_action is True

    def test_audit_event_builder_storage_error(self):
        """Test AuditEventBuilder.storage_error."""
        event = AuditEventBuilder.storage_error(
            operation="add_entry",
            error_message="backend unavailable",
        )
        assert event.severity == AuditSeverity.ERROR
        assert event.details["operation"] == "add_entry"
        assert event.error_message == "backend unavailable"


class TestValidationResult:
    """Tests for the validation result model."""

    def test_validation_result_has_errors(self):
        """Test result with errors."""
        result = ValidationResult(
            is_valid=False,
            issues=[
                ValidationIssue(
                    field="amount",
                    issue_type="greater_than",
                    message="Input should be greater than 0",
                    severity="error",
                ),
                ValidationIssue(
                    field="date",
                    issue_type="future_date",
                    message="Entry date is in the future",
                    severity="warning",
                ),
            ],
        )
        assert len(result.errors) == 1
        assert len(result.warnings) == 1
        assert result.error_summary() == "Input should be greater than 0"

    def test_validation_issue_severity_is_checked(self):
        with pytest.raises(ValueError):
            ValidationIssue(
                field="amount",
                issue_type="x",
                message="x",
                severity="fatal",
            )
