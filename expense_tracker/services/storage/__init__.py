"""
Storage Services Package

Provides abstract interfaces and concrete implementations for data storage.
Google Sheets is the networked backend; the in-memory stores back the
test-suite and the "storage not configured" fallback.
"""

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
    StorageError,
)
from expense_tracker.services.storage.memory import (
    InMemoryAdviceStateStorage,
    InMemoryAuditStorage,
    InMemoryBudgetStorage,
    InMemoryChatStorage,
    InMemoryEntryStorage,
)
from expense_tracker.services.storage.google_sheets import (
    GoogleSheetsAdviceStateStorage,
    GoogleSheetsAuditStorage,
    GoogleSheetsBudgetStorage,
    GoogleSheetsChatStorage,
    GoogleSheetsClient,
    GoogleSheetsEntryStorage,
)

__all__ = [
    # Interfaces
    "AdviceStateStorageInterface",
    "AuditStorageInterface",
    "BudgetStorageInterface",
    "ChatStorageInterface",
    "EntryStorageInterface",
    # Exceptions
    "ConnectionError",
    "MalformedRowError",
    "NotAuthenticatedError",
    "NotFoundError",
    "PersistenceError",
    "StorageError",
    # In-memory implementation
    "InMemoryAdviceStateStorage",
    "InMemoryAuditStorage",
    "InMemoryBudgetStorage",
    "InMemoryChatStorage",
    "InMemoryEntryStorage",
    # Google Sheets implementation
    "GoogleSheetsAdviceStateStorage",
    "GoogleSheetsAuditStorage",
    "GoogleSheetsBudgetStorage",
    "GoogleSheetsChatStorage",
    "GoogleSheetsClient",
    "GoogleSheetsEntryStorage",
]
