"""
Storage Services Package

Provides the abstract ledger repository and its implementations.
Google Sheets is the production backend; the in-memory one backs tests
and runs without credentials.
"""

from ledger_assistant.services.storage.interface import (
    AuditStorageInterface,
    ConnectionError,
    LedgerRepository,
    NotFoundError,
    StorageError,
)
from ledger_assistant.services.storage.memory import (
    InMemoryAuditStorage,
    InMemoryLedgerRepository,
)
from ledger_assistant.services.storage.google_sheets import (
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsLedgerRepository,
)

__all__ = [
    # Interfaces
    "AuditStorageInterface",
    "LedgerRepository",
    # Exceptions
    "ConnectionError",
    "NotFoundError",
    "StorageError",
    # In-memory implementation
    "InMemoryAuditStorage",
    "InMemoryLedgerRepository",
    # Google Sheets implementation
    "GoogleSheetsAuditStorage",
    "GoogleSheetsClient",
    "GoogleSheetsLedgerRepository",
]
