"""
Google Sheets Storage Implementation

DESIGN DECISION: Google Sheets is the default backend because:
1. Small sellers can read and fix their catalog and ledger directly in Sheets
2. No database setup required
3. Easy to export/migrate later

TRADEOFFS:
- Not suitable for high-volume data (fine for one seller's chat)
- No transactions: the ledger row and the sale detail row are separate
  appends, which is why the sale detail write is best-effort
- Limited query capabilities (we filter in Python)
"""

import json
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Optional

import gspread
from google.oauth2.service_account import Credentials
from tenacity import retry, stop_after_attempt, wait_exponential

from ledger_assistant.config import get_settings
from ledger_assistant.models.audit import AuditEvent, AuditEventType, AuditSeverity
from ledger_assistant.models.ledger import (
    CatalogEntry,
    LedgerCategory,
    LedgerEntry,
    LedgerKind,
    SaleDetail,
)
from ledger_assistant.services.storage.interface import (
    UPDATABLE_LEDGER_FIELDS,
    AuditStorageInterface,
    ConnectionError,
    LedgerRepository,
    NotFoundError,
    StorageError,
)


PRODUCT_COLUMNS = [
    "id",
    "user_id",
    "name",
    "selling_price",
    "cost_price",
    "category",
    "description",
    "stock_quantity",
]

LEDGER_COLUMNS = [
    "id",
    "user_id",
    "kind",
    "amount",
    "category",
    "description",
    "entry_date",
    "created_at",
]

SALE_COLUMNS = [
    "id",
    "user_id",
    "product_id",
    "quantity",
    "unit_price",
    "buyer_name",
    "ledger_entry_id",
    "created_at",
]

AUDIT_COLUMNS = [
    "event_id",
    "timestamp",
    "event_type",
    "severity",
    "user_id",
    "entity_type",
    "entity_id",
    "description",
    "details_json",
    "error_message",
]


def _cell(row: list, index: int, default: str = "") -> str:
    """Read a cell, tolerating short rows and empty strings."""
    try:
        return row[index] if row[index] else default
    except IndexError:
        return default


class GoogleSheetsClient:
    """
    Low-level Google Sheets client wrapper.

    Handles authentication and provides retry logic for API calls.
    """

    def __init__(self):
        self._client: Optional[gspread.Client] = None
        self._spreadsheet: Optional[gspread.Spreadsheet] = None
        self._settings = get_settings().google_sheets

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

    def _get_or_create(self, title: str, columns: list[str], rows: int) -> gspread.Worksheet:
        spreadsheet = self.get_spreadsheet()
        try:
            sheet = spreadsheet.worksheet(title)
        except gspread.WorksheetNotFound:
            sheet = spreadsheet.add_worksheet(title=title, rows=rows, cols=len(columns))
            sheet.append_row(columns)
        return sheet

    def get_products_sheet(self) -> gspread.Worksheet:
        return self._get_or_create(self._settings.products_sheet_name, PRODUCT_COLUMNS, 1000)

    def get_ledger_sheet(self) -> gspread.Worksheet:
        return self._get_or_create(self._settings.ledger_sheet_name, LEDGER_COLUMNS, 5000)

    def get_sales_sheet(self) -> gspread.Worksheet:
        return self._get_or_create(self._settings.sales_sheet_name, SALE_COLUMNS, 5000)

    def get_audit_sheet(self) -> gspread.Worksheet:
        return self._get_or_create(self._settings.audit_sheet_name, AUDIT_COLUMNS, 5000)


class GoogleSheetsLedgerRepository(LedgerRepository):
    """
    Google Sheets implementation of the ledger repository.

    One worksheet per table, one row per record, first row is the header.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    # -- row conversion -------------------------------------------------------

    def _product_to_row(self, user_id: str, product: CatalogEntry) -> list:
        return [
            product.id,
            user_id,
            product.name,
            str(product.selling_price) if product.selling_price is not None else "",
            str(product.cost_price) if product.cost_price is not None else "",
            product.category,
            product.description,
            str(product.stock_quantity) if product.stock_quantity is not None else "",
        ]

    def _row_to_product(self, row: list) -> CatalogEntry:
        return CatalogEntry(
            id=_cell(row, 0),
            name=_cell(row, 2),
            selling_price=Decimal(_cell(row, 3)) if _cell(row, 3) else None,
            cost_price=Decimal(_cell(row, 4)) if _cell(row, 4) else None,
            category=_cell(row, 5, LedgerCategory.OUTROS.value),
            description=_cell(row, 6),
            stock_quantity=int(_cell(row, 7)) if _cell(row, 7) else None,
        )

    def _entry_to_row(self, entry: LedgerEntry) -> list:
        return [
            entry.id,
            entry.user_id,
            entry.kind.value,
            str(entry.amount),
            entry.category.value,
            entry.description,
            entry.entry_date.isoformat(),
            entry.created_at.isoformat(),
        ]

    def _row_to_entry(self, row: list) -> LedgerEntry:
        return LedgerEntry(
            id=_cell(row, 0),
            user_id=_cell(row, 1),
            kind=LedgerKind(_cell(row, 2)),
            amount=Decimal(_cell(row, 3, "0")),
            category=LedgerCategory(_cell(row, 4, LedgerCategory.OUTROS.value)),
            description=_cell(row, 5),
            entry_date=date.fromisoformat(_cell(row, 6)),
            created_at=datetime.fromisoformat(_cell(row, 7)),
        )

    def _detail_to_row(self, detail: SaleDetail) -> list:
        return [
            detail.id,
            detail.user_id,
            detail.product_id or "",
            str(detail.quantity),
            str(detail.unit_price),
            detail.buyer_name or "",
            detail.ledger_entry_id or "",
            detail.created_at.isoformat(),
        ]

    def _row_to_detail(self, row: list) -> SaleDetail:
        return SaleDetail(
            id=_cell(row, 0),
            user_id=_cell(row, 1),
            product_id=_cell(row, 2) or None,
            quantity=int(_cell(row, 3, "1")),
            unit_price=Decimal(_cell(row, 4)),
            buyer_name=_cell(row, 5) or None,
            ledger_entry_id=_cell(row, 6) or None,
            created_at=datetime.fromisoformat(_cell(row, 7)),
        )

    # -- products -------------------------------------------------------------

    async def get_catalog(self, user_id: str, limit: int = 100) -> list[CatalogEntry]:
        try:
            rows = self._client.get_products_sheet().get_all_values()[1:]
        except Exception as e:
            raise StorageError(f"Failed to read catalog: {e}")

        products = []
        for row in rows:
            if not row or _cell(row, 1) != user_id or not _cell(row, 2):
                continue
            try:
                products.append(self._row_to_product(row))
            except Exception:
                continue  # Skip malformed rows
            if len(products) >= limit:
                break
        return products

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    async def create_product(self, user_id: str, product: CatalogEntry) -> CatalogEntry:
        try:
            sheet = self._client.get_products_sheet()
            sheet.append_row(self._product_to_row(user_id, product), value_input_option="RAW")
            return product
        except Exception as e:
            raise StorageError(f"Failed to save product: {e}")

    # -- ledger ---------------------------------------------------------------

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
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
        try:
            sheet = self._client.get_ledger_sheet()
            sheet.append_row(self._entry_to_row(entry), value_input_option="RAW")
            return entry
        except Exception as e:
            raise StorageError(f"Failed to save ledger entry: {e}")

    async def get_ledger_entry(self, entry_id: str) -> Optional[LedgerEntry]:
        try:
            rows = self._client.get_ledger_sheet().get_all_values()[1:]
            for row in rows:
                if row and row[0] == entry_id:
                    return self._row_to_entry(row)
            return None
        except Exception as e:
            raise StorageError(f"Failed to get ledger entry: {e}")

    async def update_ledger_entry(
        self,
        entry_id: str,
        fields: dict[str, Any],
    ) -> LedgerEntry:
        unknown = set(fields) - UPDATABLE_LEDGER_FIELDS
        if unknown:
            raise StorageError(f"Cannot update fields: {sorted(unknown)}")

        try:
            sheet = self._client.get_ledger_sheet()
            all_rows = sheet.get_all_values()

            # Row 1 is the header
            for idx, row in enumerate(all_rows[1:], start=2):
                if row and row[0] == entry_id:
                    current = self._row_to_entry(row)
                    updated = LedgerEntry.model_validate({**current.model_dump(), **fields})
                    new_row = self._entry_to_row(updated)
                    for col_idx, value in enumerate(new_row, start=1):
                        if _cell(row, col_idx - 1) != value:
                            sheet.update_cell(idx, col_idx, value)
                    return updated

            raise NotFoundError(f"Ledger entry not found: {entry_id}")
        except NotFoundError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to update ledger entry: {e}")

    async def list_ledger_entries(
        self,
        user_id: str,
        category: Optional[LedgerCategory] = None,
    ) -> list[LedgerEntry]:
        try:
            rows = self._client.get_ledger_sheet().get_all_values()[1:]
        except Exception as e:
            raise StorageError(f"Failed to list ledger entries: {e}")

        entries = []
        for row in rows:
            if not row or _cell(row, 1) != user_id:
                continue
            try:
                entry = self._row_to_entry(row)
            except Exception:
                continue
            if category and entry.category != category:
                continue
            entries.append(entry)

        entries.sort(key=lambda e: e.created_at, reverse=True)
        return entries

    # -- sale details ---------------------------------------------------------

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
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
        try:
            sheet = self._client.get_sales_sheet()
            sheet.append_row(self._detail_to_row(detail), value_input_option="RAW")
            return detail
        except Exception as e:
            raise StorageError(f"Failed to save sale detail: {e}")

    async def list_sale_details(
        self,
        user_id: str,
        product_id: Optional[str] = None,
    ) -> list[SaleDetail]:
        try:
            rows = self._client.get_sales_sheet().get_all_values()[1:]
        except Exception as e:
            raise StorageError(f"Failed to list sale details: {e}")

        details = []
        for row in rows:
            if not row or _cell(row, 1) != user_id:
                continue
            if product_id is not None and _cell(row, 2) != product_id:
                continue
            try:
                details.append(self._row_to_detail(row))
            except Exception:
                continue
        return details


class GoogleSheetsAuditStorage(AuditStorageInterface):
    """
    Google Sheets implementation of audit log storage.

    Audit events are append-only.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    def _row_to_event(self, row: list) -> AuditEvent:
        return AuditEvent(
            event_id=_cell(row, 0),
            timestamp=datetime.fromisoformat(_cell(row, 1)),
            event_type=AuditEventType(_cell(row, 2)),
            severity=AuditSeverity(_cell(row, 3)),
            user_id=_cell(row, 4) or None,
            entity_type=_cell(row, 5) or None,
            entity_id=_cell(row, 6) or None,
            description=_cell(row, 7),
            details=json.loads(_cell(row, 8)) if _cell(row, 8) else {},
            error_message=_cell(row, 9) or None,
        )

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    async def append_event(self, event: AuditEvent) -> bool:
        try:
            sheet = self._client.get_audit_sheet()
            sheet.append_row(event.to_sheets_row(), value_input_option="RAW")
            return True
        except Exception as e:
            raise StorageError(f"Failed to write audit event: {e}")

    async def get_events_for_user(self, user_id: str, limit: int = 100) -> list[AuditEvent]:
        try:
            rows = self._client.get_audit_sheet().get_all_values()[1:]
        except Exception as e:
            raise StorageError(f"Failed to get audit events: {e}")

        events = []
        for row in rows:
            if row and _cell(row, 4) == user_id:
                try:
                    events.append(self._row_to_event(row))
                except Exception:
                    continue

        events.sort(key=lambda e: e.timestamp, reverse=True)
        return events[:limit]
