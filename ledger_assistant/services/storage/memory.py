"""
In-Memory Storage Implementation

Used by the test-suite and when no Google Sheets credentials are
configured. Nothing survives a restart.
"""

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
from ledger_assistant.services.storage.interface import (
    AuditStorageInterface,
    LedgerRepository,
    UPDATABLE_LEDGER_FIELDS,
    NotFoundError,
    StorageError,
)


class InMemoryLedgerRepository(LedgerRepository):
    """Ledger rows kept in plain lists, one per table."""

    def __init__(self, products: Optional[dict[str, list[CatalogEntry]]] = None):
        self._products: dict[str, list[CatalogEntry]] = {
            user_id: list(entries) for user_id, entries in (products or {}).items()
        }
        self._entries: dict[str, LedgerEntry] = {}
        self._details: list[tuple[str, SaleDetail]] = []

    async def get_catalog(self, user_id: str, limit: int = 100) -> list[CatalogEntry]:
        return list(self._products.get(user_id, []))[:limit]

    async def create_product(self, user_id: str, product: CatalogEntry) -> CatalogEntry:
        self._products.setdefault(user_id, []).append(product)
        return product

    async def create_ledger_entry(
        self,
        user_id: str,
        kind: LedgerKind,
        amount: Decimal,
        category: LedgerCategory,
        description: str,
        entry_date: date,
    ) -> LedgerEntry:
        entry = LedgerEntry(
            user_id=user_id,
            kind=kind,
            amount=amount,
            category=category,
            description=description,
            entry_date=entry_date,
        )
        self._entries[entry.id] = entry
        return entry

    async def get_ledger_entry(self, entry_id: str) -> Optional[LedgerEntry]:
        return self._entries.get(entry_id)

    async def update_ledger_entry(
        self,
        entry_id: str,
        fields: dict[str, Any],
    ) -> LedgerEntry:
        entry = self._entries.get(entry_id)
        if entry is None:
            raise NotFoundError(f"Ledger entry not found: {entry_id}")

        unknown = set(fields) - UPDATABLE_LEDGER_FIELDS
        if unknown:
            raise StorageError(f"Cannot update fields: {sorted(unknown)}")

        updated = LedgerEntry.model_validate({**entry.model_dump(), **fields})
        self._entries[entry_id] = updated
        return updated

    async def list_ledger_entries(
        self,
        user_id: str,
        category: Optional[LedgerCategory] = None,
    ) -> list[LedgerEntry]:
        entries = [
            e for e in self._entries.values()
            if e.user_id == user_id and (category is None or e.category == category)
        ]
        entries.sort(key=lambda e: e.created_at, reverse=True)
        return entries

    async def create_sale_detail(
        self,
        user_id: str,
        product_id: Optional[str],
        quantity: int,
        unit_price: Decimal,
        buyer_name: Optional[str],
        ledger_entry_id: Optional[str] = None,
    ) -> SaleDetail:
        detail = SaleDetail(
            user_id=user_id,
            product_id=product_id,
            quantity=quantity,
            unit_price=unit_price,
            buyer_name=buyer_name,
            ledger_entry_id=ledger_entry_id,
        )
        self._details.append((user_id, detail))
        return detail

    async def list_sale_details(
        self,
        user_id: str,
        product_id: Optional[str] = None,
    ) -> list[SaleDetail]:
        return [
            d for owner, d in self._details
            if owner == user_id and (product_id is None or d.product_id == product_id)
        ]


class InMemoryAuditStorage(AuditStorageInterface):
    """Append-only list of audit events."""

    def __init__(self):
        self.events: list[AuditEvent] = []

    async def append_event(self, event: AuditEvent) -> bool:
        self.events.append(event)
        return True

    async def get_events_for_user(self, user_id: str, limit: int = 100) -> list[AuditEvent]:
        events = [e for e in self.events if e.user_id == user_id]
        events.sort(key=lambda e: e.timestamp, reverse=True)
        return events[:limit]
