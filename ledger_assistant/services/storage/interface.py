"""
Abstract Storage Interface

DESIGN DECISION: We define an abstract interface for storage operations.
This allows us to:
1. Keep the sales engine unaware of which backend is behind it
2. Use in-memory storage for testing
3. Swap Google Sheets for a real database later

The interface is intentionally small - only the rows the sales engine
reads and writes: products, ledger entries and sale details.
"""

from abc import ABC, abstractmethod
from datetime import date
from decimal import Decimal
from typing import Any, Optional

from ledger_assistant.models.audit import AuditEvent
from ledger_assistant.models.ledger import (
    CatalogEntry,
    LedgerCategory,
    LedgerEntry,
    LedgerKind,
    SaleDetail,
)


# Corrections may only touch these columns of a ledger row
UPDATABLE_LEDGER_FIELDS = {"amount", "category", "description", "entry_date"}


class LedgerRepository(ABC):
    """
    Abstract interface for ledger storage operations.

    Any storage implementation (Google Sheets, PostgreSQL, etc.)
    must implement these methods.
    """

    @abstractmethod
    async def get_catalog(
        self,
        user_id: str,
        limit: int = 100,
    ) -> list[CatalogEntry]:
        """
        List a user's products in catalog order.

        The order matters: the matcher breaks score ties by it.
        """

    @abstractmethod
    async def create_product(
        self,
        user_id: str,
        product: CatalogEntry,
    ) -> CatalogEntry:
        """Add a product to the user's catalog."""

    @abstractmethod
    async def create_ledger_entry(
        self,
        user_id: str,
        kind: LedgerKind,
        amount: Decimal,
        category: LedgerCategory,
        description: str,
        entry_date: date,
    ) -> LedgerEntry:
        """
        Write a revenue or expense row.

        Raises:
            StorageError: If the write fails
        """

    @abstractmethod
    async def get_ledger_entry(self, entry_id: str) -> Optional[LedgerEntry]:
        """Retrieve a ledger entry, or None if it does not exist."""

    @abstractmethod
    async def update_ledger_entry(
        self,
        entry_id: str,
        fields: dict[str, Any],
    ) -> LedgerEntry:
        """
        Update selected fields of a ledger entry.

        Raises:
            NotFoundError: If the entry does not exist
            StorageError: If the update fails
        """

    @abstractmethod
    async def list_ledger_entries(
        self,
        user_id: str,
        category: Optional[LedgerCategory] = None,
    ) -> list[LedgerEntry]:
        """List a user's ledger entries, newest first."""

    @abstractmethod
    async def create_sale_detail(
        self,
        user_id: str,
        product_id: Optional[str],
        quantity: int,
        unit_price: Decimal,
        buyer_name: Optional[str],
        ledger_entry_id: Optional[str] = None,
    ) -> SaleDetail:
        """Write the per-sale detail row that accompanies a revenue entry."""

    @abstractmethod
    async def list_sale_details(
        self,
        user_id: str,
        product_id: Optional[str] = None,
    ) -> list[SaleDetail]:
        """List a user's sale details, optionally for one product."""


class AuditStorageInterface(ABC):
    """
    Abstract interface for audit log storage.

    Audit logs are APPEND-ONLY. No update or delete operations.
    """

    @abstractmethod
    async def append_event(self, event: AuditEvent) -> bool:
        """Append an audit event. Returns True if logged successfully."""

    @abstractmethod
    async def get_events_for_user(
        self,
        user_id: str,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """Most recent events for one user, newest first."""


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class NotFoundError(StorageError):
    """Entity not found in storage."""
    pass


class ConnectionError(StorageError):
    """Could not connect to storage backend."""
    pass
