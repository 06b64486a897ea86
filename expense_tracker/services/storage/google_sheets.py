"""
Google Sheets Storage Implementation

DESIGN DECISION: Google Sheets is used as the document store because:
1. Users can view their ledger directly in Sheets
2. No database setup required
3. Built-in backup (Google's infrastructure)
4. Easy to export/migrate later

TRADEOFFS:
- Not suitable for high-volume data (we're fine for personal use)
- No transactions: entry and budget writes are separate calls, so the
  two are eventually consistent. The coordinator recomputes the budget
  from entries after every write to close the gap.
- Limited query capabilities (we filter in Python)

RETRIES: Only idempotent operations are retried. add_entry appends a
row and a blind retry could duplicate the entry, so it is never retried.
"""

import json
from datetime import datetime
from decimal import Decimal
from typing import Optional

import gspread
import structlog
from google.oauth2.service_account import Credentials
from tenacity import (
    retry,
    retry_if_exception_type,
    retry_if_not_exception_type,
    stop_after_attempt,
    wait_exponential,
)
from uuid import UUID, uuid4

from expense_tracker.config import GoogleSheetsSettings, get_settings
from expense_tracker.models.audit import AuditEvent, AuditEventType, AuditSeverity
from expense_tracker.models.ledger import (
    Budget,
    ChatMessage,
    Entry,
    EntryDraft,
    EntryType,
    budget_document_id,
    utc_now,
)
from expense_tracker.services.storage.interface import (
    AdviceStateStorageInterface,
    AuditStorageInterface,
    BudgetStorageInterface,
    ChatStorageInterface,
    ConnectionError,
    EntryStorageInterface,
    MalformedRowError,
    NotAuthenticatedError,
    NotFoundError,
    PersistenceError,
)


# Column mappings for each worksheet
ENTRY_COLUMNS = [
    "id",
    "owner_id",
    "title",
    "amount",
    "date",
    "category",
    "type",
    "created_at",
    "updated_at",
]

BUDGET_COLUMNS = [
    "id",
    "owner_id",
    "period_key",
    "monthly_budget",
    "current_spending",
    "created_at",
    "updated_at",
]

CHAT_COLUMNS = [
    "owner_id",
    "text",
    "is_from_user",
    "timestamp",
]

ADVICE_STATE_COLUMNS = [
    "id",
    "owner_id",
    "period_key",
    "exceeded",
    "updated_at",
]

AUDIT_COLUMNS = [
    "event_id",
    "timestamp",
    "event_type",
    "severity",
    "owner_id",
    "entity_type",
    "entity_id",
    "correlation_id",
    "description",
    "details_json",
    "error_message",
    "is_user_action",
]

# Retry policy for idempotent calls; an unparseable row is not retried
idempotent_retry = retry(
    retry=(
        retry_if_exception_type(PersistenceError)
        & retry_if_not_exception_type(MalformedRowError)
    ),
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=2, max=10),
    reraise=True,
)

logger = structlog.get_logger(__name__)


def _safe_getter(row: list):
    """Read cells by index, treating missing and blank cells alike."""
    def safe_get(index: int, default: str = "") -> str:
        try:
            return row[index] if row[index] else default
        except IndexError:
            return default
    return safe_get


def _parse_datetime(value: str) -> Optional[datetime]:
    return datetime.fromisoformat(value) if value else None


class GoogleSheetsClient:
    """
    Low-level Google Sheets client wrapper.

    Handles authentication and provides retry logic for API calls.
    """

    def __init__(self, settings: Optional[GoogleSheetsSettings] = None):
        self._client: Optional[gspread.Client] = None
        self._spreadsheet: Optional[gspread.Spreadsheet] = None
        self._settings = settings or get_settings().google_sheets

    @property
    def settings(self) -> GoogleSheetsSettings:
        return self._settings

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    def connect(self) -> gspread.Client:
        """
        Establish connection to Google Sheets.

        Uses service account credentials for authentication.
        """
        if self._client is None:
            try:
                scopes = [
                    "https://www.googleapis.com/auth/spreadsheets",
                    "https://www.googleapis.com/auth/drive",
                ]
                credentials = Credentials.from_service_account_file(
                    self._settings.credentials_path,
                    scopes=scopes,
                )
                self._client = gspread.authorize(credentials)
            except FileNotFoundError:
                raise ConnectionError(
                    f"Google credentials file not found: {self._settings.credentials_path}"
                )
            except Exception as e:
                raise ConnectionError(f"Failed to connect to Google Sheets: {e}")

        return self._client

    def get_spreadsheet(self) -> gspread.Spreadsheet:
        """Get the configured spreadsheet."""
        if self._spreadsheet is None:
            client = self.connect()
            try:
                self._spreadsheet = client.open_by_key(
                    self._settings.spreadsheet_id
                )
            except gspread.SpreadsheetNotFound:
                raise ConnectionError(
                    f"Spreadsheet not found: {self._settings.spreadsheet_id}"
                )
        return self._spreadsheet

    def get_worksheet(
        self,
        title: str,
        columns: list[str],
        rows: int = 1000,
    ) -> gspread.Worksheet:
        """Get a worksheet, creating it with a header row if missing."""
        spreadsheet = self.get_spreadsheet()
        try:
            sheet = spreadsheet.worksheet(title)
        except gspread.WorksheetNotFound:
            sheet = spreadsheet.add_worksheet(
                title=title,
                rows=rows,
                cols=len(columns),
            )
            sheet.append_row(columns)
        return sheet

    def get_entries_sheet(self) -> gspread.Worksheet:
        return self.get_worksheet(self._settings.entries_sheet_name, ENTRY_COLUMNS)

    def get_budgets_sheet(self) -> gspread.Worksheet:
        return self.get_worksheet(self._settings.budgets_sheet_name, BUDGET_COLUMNS)

    def get_chats_sheet(self) -> gspread.Worksheet:
        return self.get_worksheet(self._settings.chats_sheet_name, CHAT_COLUMNS)

    def get_advice_state_sheet(self) -> gspread.Worksheet:
        return self.get_worksheet(
            self._settings.advice_state_sheet_name,
            ADVICE_STATE_COLUMNS,
        )

    def get_audit_sheet(self) -> gspread.Worksheet:
        # More rows for audit log
        return self.get_worksheet(
            self._settings.audit_sheet_name,
            AUDIT_COLUMNS,
            rows=5000,
        )


def _find_row(all_rows: list[list[str]], key: str) -> Optional[int]:
    """1-based sheet row number of the row whose first cell is key."""
    for idx, row in enumerate(all_rows[1:], start=2):  # Row 1 is the header
        if row and row[0] == key:
            return idx
    return None


class GoogleSheetsEntryStorage(EntryStorageInterface):
    """
    Google Sheets implementation of entry storage.

    One entry per row; amounts are stored as decimal strings and dates
    as ISO-8601 timestamps.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    def _entry_to_row(self, entry: Entry) -> list:
        """Convert an Entry to a spreadsheet row."""
        return [
            entry.id or "",
            entry.owner_id,
            entry.title,
            str(entry.amount),
            entry.date.isoformat(),
            entry.category,
            entry.type.value,
            entry.created_at.isoformat() if entry.created_at else "",
            entry.updated_at.isoformat() if entry.updated_at else "",
        ]

    def _row_to_entry(self, row: list) -> Entry:
        """Convert a spreadsheet row to an Entry."""
        safe_get = _safe_getter(row)
        try:
            return Entry(
                id=safe_get(0),
                owner_id=safe_get(1),
                title=safe_get(2),
                amount=Decimal(safe_get(3)),
                date=datetime.fromisoformat(safe_get(4)),
                category=safe_get(5),
                type=EntryType(safe_get(6, EntryType.EXPENSE.value)),
                created_at=_parse_datetime(safe_get(7)),
                updated_at=_parse_datetime(safe_get(8)),
            )
        except (ArithmeticError, ValueError) as e:
            raise MalformedRowError(f"Malformed entry row {safe_get(0)!r}: {e}")

    @idempotent_retry
    async def list_entries(self, owner_id: str) -> list[Entry]:
        """List an owner's entries, newest first."""
        if not owner_id:
            raise NotAuthenticatedError("No owner context")
        try:
            sheet = self._client.get_entries_sheet()
            all_rows = sheet.get_all_values()[1:]  # Skip header
        except Exception as e:
            raise PersistenceError(f"Failed to list entries: {e}")

        entries = []
        for row in all_rows:
            if not row or not row[0] or len(row) < 2 or row[1] != owner_id:
                continue
            try:
                entries.append(self._row_to_entry(row))
            except MalformedRowError:
                logger.warning("malformed_entry_row_skipped", entry_id=row[0])
                continue

        entries.sort(key=lambda e: e.date, reverse=True)
        return entries

    @idempotent_retry
    async def get_entry(self, entry_id: str) -> Optional[Entry]:
        """Retrieve an entry by its ID."""
        try:
            sheet = self._client.get_entries_sheet()
            all_rows = sheet.get_all_values()[1:]
        except Exception as e:
            raise PersistenceError(f"Failed to get entry: {e}")

        for row in all_rows:
            if row and row[0] == entry_id:
                return self._row_to_entry(row)
        return None

    async def add_entry(self, entry: Entry) -> str:
        """Append a new entry row. Never retried."""
        if not entry.owner_id:
            raise NotAuthenticatedError("No owner context")
        stored = entry.model_copy(
            update={"id": uuid4().hex, "created_at": utc_now(), "updated_at": None}
        )
        try:
            sheet = self._client.get_entries_sheet()
            sheet.append_row(self._entry_to_row(stored), value_input_option="RAW")
        except Exception as e:
            raise PersistenceError(f"Failed to save entry: {e}")
        return stored.id

    @idempotent_retry
    async def update_entry(self, entry_id: str, draft: EntryDraft) -> Entry:
        """Rewrite an entry row with the draft's fields."""
        try:
            sheet = self._client.get_entries_sheet()
            all_rows = sheet.get_all_values()
        except Exception as e:
            raise PersistenceError(f"Failed to update entry: {e}")

        idx = _find_row(all_rows, entry_id)
        if idx is None:
            raise NotFoundError(f"Entry not found: {entry_id}")

        current = self._row_to_entry(all_rows[idx - 1])
        updated = current.replaced_with(draft, updated_at=utc_now())
        try:
            sheet.update(range_name=f"A{idx}", values=[self._entry_to_row(updated)])
        except Exception as e:
            raise PersistenceError(f"Failed to update entry: {e}")
        return updated

    @idempotent_retry
    async def delete_entry(self, entry_id: str) -> None:
        """Delete an entry row."""
        try:
            sheet = self._client.get_entries_sheet()
            all_rows = sheet.get_all_values()
        except Exception as e:
            raise PersistenceError(f"Failed to delete entry: {e}")

        idx = _find_row(all_rows, entry_id)
        if idx is None:
            raise NotFoundError(f"Entry not found: {entry_id}")
        try:
            sheet.delete_rows(idx)
        except Exception as e:
            raise PersistenceError(f"Failed to delete entry: {e}")


class GoogleSheetsBudgetStorage(BudgetStorageInterface):
    """
    Google Sheets implementation of budget storage.

    The first column holds the composite {owner_id}_{period_key} key,
    so there is at most one row per owner and period.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    def _budget_to_row(self, budget: Budget) -> list:
        return [
            budget.id,
            budget.owner_id,
            budget.period_key,
            str(budget.monthly_budget),
            str(budget.current_spending),
            budget.created_at.isoformat() if budget.created_at else "",
            budget.updated_at.isoformat() if budget.updated_at else "",
        ]

    def _row_to_budget(self, row: list) -> Budget:
        safe_get = _safe_getter(row)
        try:
            return Budget(
                id=safe_get(0),
                owner_id=safe_get(1),
                period_key=safe_get(2),
                monthly_budget=Decimal(safe_get(3)),
                current_spending=Decimal(safe_get(4, "0")),
                created_at=_parse_datetime(safe_get(5)),
                updated_at=_parse_datetime(safe_get(6)),
            )
        except (ArithmeticError, ValueError) as e:
            raise MalformedRowError(f"Malformed budget row {safe_get(0)!r}: {e}")

    def _read(self) -> tuple[gspread.Worksheet, list[list[str]]]:
        try:
            sheet = self._client.get_budgets_sheet()
            return sheet, sheet.get_all_values()
        except Exception as e:
            raise PersistenceError(f"Failed to read budgets: {e}")

    @idempotent_retry
    async def get_budget(
        self,
        owner_id: str,
        period_key: str,
    ) -> Optional[Budget]:
        _, all_rows = self._read()
        idx = _find_row(all_rows, budget_document_id(owner_id, period_key))
        if idx is None:
            return None
        return self._row_to_budget(all_rows[idx - 1])

    @idempotent_retry
    async def set_budget(
        self,
        owner_id: str,
        period_key: str,
        monthly_budget: Decimal,
        current_spending: Decimal,
    ) -> Budget:
        if not owner_id:
            raise NotAuthenticatedError("No owner context")
        sheet, all_rows = self._read()
        idx = _find_row(all_rows, budget_document_id(owner_id, period_key))
        existing = None
        if idx:
            try:
                existing = self._row_to_budget(all_rows[idx - 1])
            except MalformedRowError:
                # An upsert rewrites the whole row, so it repairs it
                logger.warning(
                    "malformed_budget_row_overwritten",
                    budget_id=all_rows[idx - 1][0],
                )

        now = utc_now()
        budget = Budget(
            owner_id=owner_id,
            period_key=period_key,
            monthly_budget=monthly_budget,
            current_spending=current_spending,
            created_at=existing.created_at if existing else now,
            updated_at=now,
        )
        try:
            if idx is None:
                sheet.append_row(self._budget_to_row(budget), value_input_option="RAW")
            else:
                sheet.update(range_name=f"A{idx}", values=[self._budget_to_row(budget)])
        except Exception as e:
            raise PersistenceError(f"Failed to set budget: {e}")
        return budget

    @idempotent_retry
    async def update_spending(
        self,
        owner_id: str,
        period_key: str,
        new_spending: Decimal,
    ) -> Optional[Budget]:
        sheet, all_rows = self._read()
        idx = _find_row(all_rows, budget_document_id(owner_id, period_key))
        if idx is None:
            return None

        existing = self._row_to_budget(all_rows[idx - 1])
        updated = existing.model_copy(
            update={"current_spending": new_spending, "updated_at": utc_now()}
        )
        try:
            # One write for the whole row
            sheet.update(range_name=f"A{idx}", values=[self._budget_to_row(updated)])
        except Exception as e:
            raise PersistenceError(f"Failed to update spending: {e}")
        return updated


class GoogleSheetsChatStorage(ChatStorageInterface):
    """Google Sheets implementation of the append-only chat log."""

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    async def append_message(self, message: ChatMessage) -> bool:
        try:
            sheet = self._client.get_chats_sheet()
            sheet.append_row(
                [
                    message.owner_id,
                    message.text,
                    str(message.is_from_user),
                    message.timestamp.isoformat(),
                ],
                value_input_option="RAW",
            )
            return True
        except Exception as e:
            raise PersistenceError(f"Failed to save chat message: {e}")

    @idempotent_retry
    async def list_messages(self, owner_id: str) -> list[ChatMessage]:
        try:
            sheet = self._client.get_chats_sheet()
            all_rows = sheet.get_all_values()[1:]
        except Exception as e:
            raise PersistenceError(f"Failed to list chat messages: {e}")

        messages = []
        for row in all_rows:
            if not row or row[0] != owner_id:
                continue
            safe_get = _safe_getter(row)
            try:
                messages.append(ChatMessage(
                    owner_id=safe_get(0),
                    text=safe_get(1),
                    is_from_user=safe_get(2).lower() == "true",
                    timestamp=datetime.fromisoformat(safe_get(3)),
                ))
            except ValueError:
                continue

        messages.sort(key=lambda m: m.timestamp)
        return messages


class GoogleSheetsAdviceStateStorage(AdviceStateStorageInterface):
    """Google Sheets implementation of the advice edge-trigger state."""

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    def _read(self) -> tuple[gspread.Worksheet, list[list[str]]]:
        try:
            sheet = self._client.get_advice_state_sheet()
            return sheet, sheet.get_all_values()
        except Exception as e:
            raise PersistenceError(f"Failed to read advice state: {e}")

    @idempotent_retry
    async def get_exceeded_flag(self, owner_id: str, period_key: str) -> bool:
        _, all_rows = self._read()
        idx = _find_row(all_rows, budget_document_id(owner_id, period_key))
        if idx is None:
            return False
        return _safe_getter(all_rows[idx - 1])(3).lower() == "true"

    @idempotent_retry
    async def set_exceeded_flag(
        self,
        owner_id: str,
        period_key: str,
        exceeded: bool,
    ) -> None:
        sheet, all_rows = self._read()
        key = budget_document_id(owner_id, period_key)
        row = [key, owner_id, period_key, str(exceeded), utc_now().isoformat()]
        idx = _find_row(all_rows, key)
        try:
            if idx is None:
                sheet.append_row(row, value_input_option="RAW")
            else:
                sheet.update(range_name=f"A{idx}", values=[row])
        except Exception as e:
            raise PersistenceError(f"Failed to save advice state: {e}")


class GoogleSheetsAuditStorage(AuditStorageInterface):
    """
    Google Sheets implementation of audit log storage.

    Audit events are append-only.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    def _row_to_event(self, row: list) -> AuditEvent:
        """Convert a spreadsheet row to an AuditEvent."""
        safe_get = _safe_getter(row)
        return AuditEvent(
            event_id=UUID(safe_get(0)),
            timestamp=datetime.fromisoformat(safe_get(1)),
            event_type=AuditEventType(safe_get(2)),
            severity=AuditSeverity(safe_get(3)),
            owner_id=safe_get(4) or None,
            entity_type=safe_get(5) or None,
            entity_id=safe_get(6) or None,
            correlation_id=UUID(safe_get(7)) if safe_get(7) else None,
            description=safe_get(8),
            details=json.loads(safe_get(9)) if safe_get(9) else {},
            error_message=safe_get(10) or None,
            is_user_action=safe_get(11).lower() == "true",
        )

    async def append_event(self, event: AuditEvent) -> bool:
        """Append an audit event."""
        try:
            sheet = self._client.get_audit_sheet()
            sheet.append_row(event.to_sheets_row(), value_input_option="RAW")
            return True
        except Exception as e:
            # Audit logging must not break the main flow
            logger.warning(
                "audit_event_write_failed",
                error=str(e),
                event_id=str(event.event_id),
            )
            return False

    @idempotent_retry
    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """Get recent events."""
        try:
            sheet = self._client.get_audit_sheet()
            all_rows = sheet.get_all_values()[1:]
        except Exception as e:
            raise PersistenceError(f"Failed to get audit events: {e}")

        events = []
        for row in all_rows:
            if row and row[0]:
                try:
                    events.append(self._row_to_event(row))
                except Exception:
                    continue

        # Sort newest first
        events.sort(key=lambda e: e.timestamp, reverse=True)
        return events[:limit]
