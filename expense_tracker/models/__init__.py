"""
Data Models Package

This package contains all Pydantic models used by the ledger.
All data flowing through the system must conform to these schemas.
"""

from expense_tracker.models.analytics import (
    BudgetUsage,
    CategoryTotal,
    DailyTotal,
    SpendingStatistics,
    TypeTotals,
)
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

__all__ = [
    # Ledger models
    "UNCATEGORIZED",
    "Budget",
    "ChatMessage",
    "Entry",
    "EntryDraft",
    "EntryType",
    "LedgerSnapshot",
    "MutationResult",
    "MutationStatus",
    "ValidationIssue",
    "ValidationResult",
    "budget_document_id",
    "normalize_category",
    "period_key_for",
    # Analytics models
    "BudgetUsage",
    "CategoryTotal",
    "DailyTotal",
    "SpendingStatistics",
    "TypeTotals",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
