"""
Audit Models for the Ledger

Every mutation of the ledger is logged for audit purposes.
This provides:
1. Complete traceability of entry and budget changes
2. Debugging information when the cached spending drifts
3. A record of every advice request and its fallbacks

DESIGN DECISION: Audit logs are append-only. We never delete or modify them.
"""

import json
from datetime import datetime
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field

from expense_tracker.models.ledger import utc_now


class AuditEventType(str, Enum):
    """Types of events we audit."""
    # Entry mutations
    ENTRY_ADDED = "entry_added"
    ENTRY_UPDATED = "entry_updated"
    ENTRY_DELETED = "entry_deleted"
    ENTRY_VALIDATION_WARNING = "entry_validation_warning"

    # Budget
    BUDGET_SET = "budget_set"
    SPENDING_RECOMPUTED = "spending_recomputed"

    # Advice and chat
    ADVICE_REQUESTED = "advice_requested"
    ADVICE_FALLBACK_USED = "advice_fallback_used"
    CHAT_MESSAGE_SAVED = "chat_message_saved"

    # System events
    STORAGE_ERROR = "storage_error"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AuditEvent(BaseModel):
    """
    A single audit event.

    This is the core unit of our audit trail.
    """

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=utc_now,
        description="When the event occurred (UTC)"
    )

    # Event classification
    event_type: AuditEventType = Field(
        ...,
        description="Type of event"
    )
    severity: AuditSeverity = Field(
        default=AuditSeverity.INFO,
        description="Event severity"
    )

    # Context - what is this about?
    owner_id: Optional[str] = Field(
        default=None,
        description="User whose ledger the event belongs to"
    )
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'entry', 'budget', 'chat')"
    )
    entity_id: Optional[str] = Field(
        default=None,
        description="ID of the entity this event relates to"
    )

    # Correlation - for tracking related events
    correlation_id: Optional[UUID] = Field(
        default=None,
        description="ID to correlate the events of one mutation"
    )

    description: str = Field(
        ...,
        max_length=500,
        description="Human-readable description of what happened"
    )
    details: dict[str, Any] = Field(
        default_factory=dict,
        description="Additional event-specific data"
    )
    error_message: Optional[str] = None

    is_user_action: bool = Field(
        default=False,
        description="Was this triggered by a user action?"
    )

    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "owner_id": self.owner_id,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_message": self.error_message,
            "is_user_action": self.is_user_action,
        }

    def to_sheets_row(self) -> list:
        """
        Convert to a row suitable for Google Sheets storage.

        Returns columns in order:
        [event_id, timestamp, event_type, severity, owner_id, entity_type,
         entity_id, correlation_id, description, details_json, error_message,
         is_user_action]
        """
        return [
            str(self.event_id),
            self.timestamp.isoformat(),
            self.event_type.value,
            self.severity.value,
            self.owner_id or "",
            self.entity_type or "",
            self.entity_id or "",
            str(self.correlation_id) if self.correlation_id else "",
            self.description,
            json.dumps(self.details, default=str) if self.details else "",
            self.error_message or "",
            str(self.is_user_action),
        ]


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.entry_added(entry, correlation_id)
        event = AuditEventBuilder.spending_recomputed(budget, correlation_id)
    """

    @staticmethod
    def entry_added(
        owner_id: str,
        entry_id: str,
        title: str,
        amount: str,
        entry_type: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ENTRY_ADDED,
            owner_id=owner_id,
            entity_type="entry",
            entity_id=entry_id,
            correlation_id=correlation_id,
            description=f"Entry added: {title} ({entry_type} {amount})",
            details={
                "title": title,
                "amount": amount,
                "type": entry_type,
            },
            is_user_action=True,
        )

    @staticmethod
    def entry_updated(
        owner_id: str,
        entry_id: str,
        periods: list[str],
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ENTRY_UPDATED,
            owner_id=owner_id,
            entity_type="entry",
            entity_id=entry_id,
            correlation_id=correlation_id,
            description="Entry updated",
            details={
                "affected_periods": periods,
            },
            is_user_action=True,
        )

    @staticmethod
    def entry_deleted(
        owner_id: str,
        entry_id: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ENTRY_DELETED,
            owner_id=owner_id,
            entity_type="entry",
            entity_id=entry_id,
            correlation_id=correlation_id,
            description="Entry deleted",
            is_user_action=True,
        )

    @staticmethod
    def entry_validation_warning(
        owner_id: str,
        issues: list[dict],
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ENTRY_VALIDATION_WARNING,
            severity=AuditSeverity.WARNING,
            owner_id=owner_id,
            entity_type="entry",
            correlation_id=correlation_id,
            description=f"Entry accepted with {len(issues)} warnings",
            details={
                "issues": issues,
            },
        )

    @staticmethod
    def budget_set(
        owner_id: str,
        period_key: str,
        monthly_budget: str,
        current_spending: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.BUDGET_SET,
            owner_id=owner_id,
            entity_type="budget",
            entity_id=period_key,
            correlation_id=correlation_id,
            description=f"Budget for {period_key} set to {monthly_budget}",
            details={
                "monthly_budget": monthly_budget,
                "current_spending": current_spending,
            },
            is_user_action=True,
        )

    @staticmethod
    def spending_recomputed(
        owner_id: str,
        period_key: str,
        current_spending: str,
        budget_exists: bool,
        correlation_id: Optional[UUID],
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SPENDING_RECOMPUTED,
            severity=AuditSeverity.DEBUG,
            owner_id=owner_id,
            entity_type="budget",
            entity_id=period_key,
            correlation_id=correlation_id,
            description=f"Spending for {period_key} recomputed: {current_spending}",
            details={
                "current_spending": current_spending,
                "budget_exists": budget_exists,
            },
        )

    @staticmethod
    def advice_requested(
        owner_id: str,
        period_key: str,
        monthly_budget: str,
        current_spending: str,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ADVICE_REQUESTED,
            owner_id=owner_id,
            entity_type="budget",
            entity_id=period_key,
            description=f"Budget exceeded for {period_key}, advice requested",
            details={
                "monthly_budget": monthly_budget,
                "current_spending": current_spending,
            },
        )

    @staticmethod
    def advice_fallback_used(
        owner_id: Optional[str],
        reason: str,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ADVICE_FALLBACK_USED,
            severity=AuditSeverity.WARNING,
            owner_id=owner_id,
            entity_type="advice",
            description="AI provider failed, fallback text used",
            error_message=reason,
        )

    @staticmethod
    def chat_message_saved(
        owner_id: str,
        is_from_user: bool,
    ) -> AuditEvent:
        sender = "user" if is_from_user else "assistant"
        return AuditEvent(
            event_type=AuditEventType.CHAT_MESSAGE_SAVED,
            severity=AuditSeverity.DEBUG,
            owner_id=owner_id,
            entity_type="chat",
            description=f"Chat message saved from {sender}",
            is_user_action=is_from_user,
        )

    @staticmethod
    def storage_error(
        operation: str,
        error_message: str,
        owner_id: Optional[str] = None,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.STORAGE_ERROR,
            severity=AuditSeverity.ERROR,
            owner_id=owner_id,
            description=f"Storage error during {operation}",
            error_message=error_message,
            details={
                "operation": operation,
            },
            correlation_id=correlation_id,
        )
