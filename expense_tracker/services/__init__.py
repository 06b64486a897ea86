"""Services package."""

from expense_tracker.services.session import SessionContext, StaticSession
from expense_tracker.services.storage import (
    AdviceStateStorageInterface,
    AuditStorageInterface,
    BudgetStorageInterface,
    ChatStorageInterface,
    ConnectionError,
    EntryStorageInterface,
    GoogleSheetsAdviceStateStorage,
    GoogleSheetsAuditStorage,
    GoogleSheetsBudgetStorage,
    GoogleSheetsChatStorage,
    GoogleSheetsClient,
    GoogleSheetsEntryStorage,
    InMemoryAdviceStateStorage,
    InMemoryAuditStorage,
    InMemoryBudgetStorage,
    InMemoryChatStorage,
    InMemoryEntryStorage,
    NotAuthenticatedError,
    NotFoundError,
    PersistenceError,
    StorageError,
)

__all__ = [
    # Session
    "SessionContext",
    "StaticSession",
    # Storage services
    "AdviceStateStorageInterface",
    "AuditStorageInterface",
    "BudgetStorageInterface",
    "ChatStorageInterface",
    "ConnectionError",
    "EntryStorageInterface",
    "GoogleSheetsAdviceStateStorage",
    "GoogleSheetsAuditStorage",
    "GoogleSheetsBudgetStorage",
    "GoogleSheetsChatStorage",
    "GoogleSheetsClient",
    "GoogleSheetsEntryStorage",
    "InMemoryAdviceStateStorage",
    "InMemoryAuditStorage",
    "InMemoryBudgetStorage",
    "InMemoryChatStorage",
    "InMemoryEntryStorage",
    "NotAuthenticatedError",
    "NotFoundError",
    "PersistenceError",
    "StorageError",
]
