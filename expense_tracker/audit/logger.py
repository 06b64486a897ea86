"""
Audit Logger

DESIGN DECISION: Every ledger mutation is logged.
This provides:
1. A trail of how each budget figure came to be
2. Debugging capability when the cache and entries disagree
3. User can see history of their interactions

The audit logger:
- Is async so it fits the coordinator's await points
- Gracefully handles failures (doesn't crash the app if logging fails)
- Supports correlation IDs to tie an entry write to its recompute
"""

from decimal import Decimal
from typing import Optional
from uuid import UUID, uuid4

import structlog

from expense_tracker.models.audit import AuditEvent, AuditEventBuilder
from expense_tracker.models.ledger import Budget, Entry
from expense_tracker.services.storage import AuditStorageInterface


# Configure structlog for local logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)


class AuditLogger:
    """
    Central audit logging service.

    Logs events both to:
    1. Structured local log (for debugging)
    2. The audit store (for persistence and user visibility)
    """

    def __init__(
        self,
        storage: Optional[AuditStorageInterface] = None,
    ):
        """
        Initialize audit logger.

        Args:
            storage: Storage backend for persistence.
                    If None, only logs locally.
        """
        self._storage = storage
        self._logger = structlog.get_logger()

    async def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.

        Always logs locally. Persists to storage if available.

        Returns True if storage write succeeded (or no storage configured).
        """
        log_dict = event.to_log_dict()

        if event.severity.value in ("error", "critical"):
            self._logger.error("audit_event", **log_dict)
        elif event.severity.value == "warning":
            self._logger.warning("audit_event", **log_dict)
        elif event.severity.value == "debug":
            self._logger.debug("audit_event", **log_dict)
        else:
            self._logger.info("audit_event", **log_dict)

        if self._storage:
            try:
                return await self._storage.append_event(event)
            except Exception as e:
                # Log failure but don't raise
                self._logger.error(
                    "audit_storage_failed",
                    error=str(e),
                    event_id=str(event.event_id),
                )
                return False

        return True

    async def log_entry_added(
        self,
        entry: Entry,
        correlation_id: UUID,
    ) -> None:
        """Log a new entry."""
        event = AuditEventBuilder.entry_added(
            owner_id=entry.owner_id,
            entry_id=entry.id or "",
            title=entry.title,
            amount=str(entry.amount),
            entry_type=entry.type.value,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_entry_updated(
        self,
        owner_id: str,
        entry_id: str,
        periods: list[str],
        correlation_id: UUID,
    ) -> None:
        """Log an entry update and the periods it touched."""
        event = AuditEventBuilder.entry_updated(
            owner_id=owner_id,
            entry_id=entry_id,
            periods=periods,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_entry_deleted(
        self,
        owner_id: str,
        entry_id: str,
        correlation_id: UUID,
    ) -> None:
        event = AuditEventBuilder.entry_deleted(
            owner_id=owner_id,
            entry_id=entry_id,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_validation_warning(
        self,
        owner_id: str,
        issues: list[dict],
        correlation_id: UUID,
    ) -> None:
        event = AuditEventBuilder.entry_validation_warning(
            owner_id=owner_id,
            issues=issues,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_budget_set(
        self,
        budget: Budget,
        correlation_id: UUID,
    ) -> None:
        event = AuditEventBuilder.budget_set(
            owner_id=budget.owner_id,
            period_key=budget.period_key,
            monthly_budget=str(budget.monthly_budget),
            current_spending=str(budget.current_spending),
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_spending_recomputed(
        self,
        owner_id: str,
        period_key: str,
        current_spending: Decimal,
        budget_exists: bool,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        event = AuditEventBuilder.spending_recomputed(
            owner_id=owner_id,
            period_key=period_key,
            current_spending=str(current_spending),
            budget_exists=budget_exists,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_advice_requested(self, budget: Budget) -> None:
        event = AuditEventBuilder.advice_requested(
            owner_id=budget.owner_id,
            period_key=budget.period_key,
            monthly_budget=str(budget.monthly_budget),
            current_spending=str(budget.current_spending),
        )
        await self.log(event)

    async def log_advice_fallback(
        self,
        owner_id: Optional[str],
        reason: str,
    ) -> None:
        """Log that the provider failed and canned text was used."""
        event = AuditEventBuilder.advice_fallback_used(
            owner_id=owner_id,
            reason=reason,
        )
        await self.log(event)

    async def log_chat_message_saved(
        self,
        owner_id: str,
        is_from_user: bool,
    ) -> None:
        event = AuditEventBuilder.chat_message_saved(
            owner_id=owner_id,
            is_from_user=is_from_user,
        )
        await self.log(event)

    async def log_storage_error(
        self,
        operation: str,
        error_message: str,
        owner_id: Optional[str] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log a storage failure caught at the coordinator boundary."""
        event = AuditEventBuilder.storage_error(
            operation=operation,
            error_message=error_message,
            owner_id=owner_id,
            correlation_id=correlation_id,
        )
        await self.log(event)


def create_correlation_id() -> UUID:
    """
    Create a new correlation ID for tracking related events.

    Use this at the start of a new user action (e.g., adding an entry).
    Pass it through the entry write and every recompute it causes.
    """
    return uuid4()
