"""
Core Data Models for the Ledger

These models define the strict schemas for all data flowing through the system.
They are designed to:
1. Enforce type safety at runtime
2. Provide clear validation error messages
3. Be serializable for storage and logging
4. Be shared safely between observers (all models are frozen)

DESIGN DECISION: Entries are the source of truth. Budget.current_spending
is a cached figure derived from them and is never edited by hand.
"""

from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any, Optional

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
    model_validator,
)

from expense_tracker.models.analytics import BudgetUsage


UNCATEGORIZED = "Uncategorized"
PERIOD_KEY_FORMAT = "%Y-%m"
PERIOD_KEY_PATTERN = r"^\d{4}-(0[1-9]|1[0-2])$"


def utc_now() -> datetime:
    """Current time as an aware UTC timestamp."""
    return datetime.now(timezone.utc)


def period_key_for(moment: datetime) -> str:
    """Return the YYYY-MM period an instant falls in."""
    return moment.strftime(PERIOD_KEY_FORMAT)


def local_wall_time(moment: datetime) -> datetime:
    """Naive local wall-clock time; aware values are converted first."""
    if moment.tzinfo is None:
        return moment
    return moment.astimezone().replace(tzinfo=None)


def as_utc(moment: datetime) -> datetime:
    """Aware UTC timestamp; naive values are taken as local time."""
    return moment.astimezone(timezone.utc)


def budget_document_id(owner_id: str, period_key: str) -> str:
    """Composite key of the budget document for an owner and period."""
    return f"{owner_id}_{period_key}"


def normalize_category(category: Optional[str]) -> str:
    """Blank categories are shown and grouped as 'Uncategorized'."""
    if category is None:
        return UNCATEGORIZED
    category = category.strip()
    return category or UNCATEGORIZED


# =============================================================================
# ENUMS
# =============================================================================

class EntryType(str, Enum):
    """Direction of money for a ledger entry."""
    EXPENSE = "expense"
    INCOME = "income"


class MutationStatus(str, Enum):
    """
    Outcome of a coordinator operation.

    Only NOT_FOUND, INVALID, FAILED and SYNC_FAILED carry a message
    for the user. NOT_AUTHENTICATED and CANCELLED are silent.
    """
    SUCCESS = "success"
    NOT_AUTHENTICATED = "not_authenticated"
    NOT_FOUND = "not_found"
    INVALID = "invalid"
    FAILED = "failed"            # entry write failed, nothing changed
    SYNC_FAILED = "sync_failed"  # entry written, budget refresh failed
    CANCELLED = "cancelled"


# =============================================================================
# ENTRY MODELS
# =============================================================================

class EntryFields(BaseModel):
    """The mutable fields of an entry, shared by drafts and stored entries."""
    model_config = ConfigDict(str_strip_whitespace=True, frozen=True)

    title: str = Field(
        ...,
        min_length=1,
        max_length=200,
        description="What the money was for"
    )
    amount: Decimal = Field(
        ...,
        gt=0,
        description="Positive amount in currency units"
    )
    date: datetime = Field(
        default_factory=datetime.now,
        description="When the money moved"
    )
    category: str = Field(
        default=UNCATEGORIZED,
        max_length=100,
        description="Free text category"
    )
    type: EntryType = Field(
        default=EntryType.EXPENSE,
        description="expense or income"
    )

    @field_validator('category', mode='before')
    @classmethod
    def normalize_blank_category(cls, v: Any) -> Any:
        """Empty categories become 'Uncategorized'."""
        if v is None or (isinstance(v, str) and not v.strip()):
            return UNCATEGORIZED
        return v

    @field_validator('date')
    @classmethod
    def normalize_date(cls, v: datetime) -> datetime:
        """All entry dates are naive local time, so any two compare."""
        return local_wall_time(v)

    @property
    def period_key(self) -> str:
        """Budget period this entry counts towards."""
        return period_key_for(self.date)

    @property
    def is_expense(self) -> bool:
        return self.type == EntryType.EXPENSE


class EntryDraft(EntryFields):
    """
    User input for creating or replacing an entry.

    An update always sends a complete draft: every mutable field is
    replaced, nothing is merged.
    """


class Entry(EntryFields):
    """
    A persisted ledger entry.

    id is None until the store has assigned one. Entries are frozen;
    the only way to change one is a store update, which produces a
    new Entry with a fresh updated_at.
    """

    id: Optional[str] = Field(
        default=None,
        description="Store-assigned identifier"
    )
    owner_id: str = Field(
        default="",
        description="User the entry belongs to"
    )
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def from_draft(cls, draft: EntryDraft, owner_id: str) -> "Entry":
        """Build an unsaved entry for an owner."""
        return cls(owner_id=owner_id, **draft.model_dump())

    def to_draft(self) -> EntryDraft:
        """The mutable fields of this entry."""
        return EntryDraft(**self.model_dump(include=set(EntryFields.model_fields)))

    def replaced_with(self, draft: EntryDraft, updated_at: datetime) -> "Entry":
        """Return the entry after a full-field update."""
        return self.model_copy(
            update={**draft.model_dump(), "updated_at": updated_at}
        )


# =============================================================================
# BUDGET MODEL
# =============================================================================

class Budget(BaseModel):
    """
    Monthly budget for one owner and one period.

    current_spending is a cache of the period's expense total. It must
    equal the sum of the owner's expense entries dated in period_key.
    """
    model_config = ConfigDict(frozen=True)

    id: str = Field(
        default="",
        description="Composite key {owner_id}_{period_key}"
    )
    owner_id: str = Field(
        ...,
        min_length=1
    )
    monthly_budget: Decimal = Field(
        ...,
        gt=0,
        description="Target spending for the period"
    )
    current_spending: Decimal = Field(
        default=Decimal("0"),
        ge=0,
        description="Cached expense total for the period"
    )
    period_key: str = Field(
        ...,
        pattern=PERIOD_KEY_PATTERN,
        description="Year and month, e.g. 2024-03"
    )
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @model_validator(mode='before')
    @classmethod
    def fill_document_id(cls, data: Any) -> Any:
        """Derive the composite id when none was given."""
        if isinstance(data, dict) and not data.get("id"):
            owner_id = data.get("owner_id")
            period_key = data.get("period_key")
            if owner_id and period_key:
                data = {**data, "id": budget_document_id(owner_id, period_key)}
        return data


# =============================================================================
# CHAT MODEL
# =============================================================================

class ChatMessage(BaseModel):
    """
    One message of the advice/chat log.

    Messages are append-only: never edited or deleted.
    """
    model_config = ConfigDict(frozen=True)

    owner_id: str
    text: str
    is_from_user: bool = True
    timestamp: datetime = Field(default_factory=utc_now)

    @field_validator('timestamp')
    @classmethod
    def normalize_timestamp(cls, v: datetime) -> datetime:
        """Timestamps are aware UTC; naive values are taken as local time."""
        return as_utc(v)


# =============================================================================
# SNAPSHOTS AND RESULTS
# =============================================================================

class LedgerSnapshot(BaseModel):
    """
    Immutable view of an owner's ledger after a mutation.

    Published to every subscriber. entries is a tuple so no consumer
    can append to or reorder another consumer's view.
    """
    model_config = ConfigDict(frozen=True)

    owner_id: str
    period_key: str
    entries: tuple[Entry, ...] = ()
    budget: Optional[Budget] = None
    usage: Optional[BudgetUsage] = None
    published_at: datetime = Field(default_factory=utc_now)


class MutationResult(BaseModel):
    """What a coordinator operation reports back to its caller."""
    model_config = ConfigDict(frozen=True)

    status: MutationStatus
    message: Optional[str] = None
    entry: Optional[Entry] = None
    budget: Optional[Budget] = None
    snapshot: Optional[LedgerSnapshot] = None

    @property
    def success(self) -> bool:
        return self.status == MutationStatus.SUCCESS

    @classmethod
    def cancelled(cls) -> "MutationResult":
        return cls(status=MutationStatus.CANCELLED)

    @classmethod
    def not_authenticated(cls) -> "MutationResult":
        return cls(status=MutationStatus.NOT_AUTHENTICATED)


# =============================================================================
# VALIDATION MODELS
# =============================================================================

class ValidationIssue(BaseModel):
    """A single validation issue found."""

    field: str = Field(
        ...,
        description="Field with the issue"
    )
    issue_type: str = Field(
        ...,
        description="Type of issue (e.g., 'invalid_value', 'future_date', 'suspicious_value')"
    )
    message: str = Field(
        ...,
        description="Human-readable description of the issue"
    )
    severity: str = Field(
        ...,
        pattern="^(error|warning|info)$",
        description="Issue severity"
    )
    suggested_fix: Optional[str] = None


class ValidationResult(BaseModel):
    """
    Result of validating an entry draft.

    Errors (schema) block the write. Warnings (semantic) are reported
    and audited but the entry is still saved as entered.
    """

    is_valid: bool
    issues: list[ValidationIssue] = Field(default_factory=list)

    @property
    def errors(self) -> list[ValidationIssue]:
        return [issue for issue in self.issues if issue.severity == "error"]

    @property
    def warnings(self) -> list[ValidationIssue]:
        return [issue for issue in self.issues if issue.severity == "warning"]

    def error_summary(self) -> str:
        """All error messages joined for display."""
        return "; ".join(issue.message for issue in self.errors)
