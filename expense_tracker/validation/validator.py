"""
Two-Stage Entry Validation

STAGE 1 - SCHEMA VALIDATION:
- Done by the EntryDraft model itself (pydantic)
- Non-empty title, positive amount, known entry type
- Failures are errors: the entry is not written

STAGE 2 - SEMANTIC VALIDATION:
- Business logic checks on a schema-valid draft
- Future date detection
- Absurd amount detection
- Failures are warnings: the entry is still written, and audited

IMPORTANT: Validation NEVER silently fixes issues.
It reports them and the entry is saved exactly as entered.
"""

from datetime import date, timedelta
from decimal import Decimal
from typing import Any, Optional

from pydantic import ValidationError

from expense_tracker.config import LedgerSettings, get_settings
from expense_tracker.models.ledger import (
    EntryDraft,
    ValidationIssue,
    ValidationResult,
)


class EntryValidator:
    """Validates entry drafts before they reach the entry store."""

    def __init__(self, settings: Optional[LedgerSettings] = None):
        self._settings = settings or get_settings().ledger

    def parse_draft(
        self,
        data: dict[str, Any],
    ) -> tuple[Optional[EntryDraft], ValidationResult]:
        """
        Stage 1: Build a draft from raw input.

        Returns: (draft or None, result)
        """
        try:
            draft = EntryDraft(**data)
        except ValidationError as e:
            issues = [
                ValidationIssue(
                    field=".".join(str(part) for part in error["loc"]) or "entry",
                    issue_type=error["type"],
                    message=error["msg"],
                    severity="error",
                )
                for error in e.errors()
            ]
            return None, ValidationResult(is_valid=False, issues=issues)

        return draft, self.validate(draft)

    def validate(self, draft: EntryDraft) -> ValidationResult:
        """
        Stage 2: Semantic checks on a schema-valid draft.

        Only warnings come out of this stage, so is_valid is always True.
        """
        issues = []
        today = date.today()

        max_future_date = today + timedelta(
            days=self._settings.future_date_tolerance_days
        )
        if draft.date.date() > max_future_date:
            issues.append(ValidationIssue(
                field="date",
                issue_type="future_date",
                message=f"Entry date ({draft.date.date()}) is in the future",
                severity="warning",
                suggested_fix="Please verify the date is correct",
            ))

        max_amount = Decimal(str(self._settings.max_entry_amount))
        if draft.amount > max_amount:
            issues.append(ValidationIssue(
                field="amount",
                issue_type="suspicious_value",
                message=f"Amount ({draft.amount:,.2f}) seems unusually high",
                severity="warning",
                suggested_fix="Please verify this amount is correct",
            ))

        return ValidationResult(is_valid=True, issues=issues)
