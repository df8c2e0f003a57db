"""
Sale Registration Service

Turns a resolved product and a price into a SaleRecord and the two rows
that back it.

DESIGN DECISION: Two writes, no transaction.
1. The revenue ledger entry is authoritative. If it fails, nothing was
   recorded and the error propagates.
2. The sale detail row is best-effort. If it fails the ledger entry
   stays, the failure is logged and audited, and the SaleRecord says so
   (detail_recorded=False) so the reply can carry a warning.

Profit without a cost price is a heuristic: a fixed share of the price
(30% by default). It is flagged as `estimated` on the record, never
presented as a measured value.
"""

from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Optional

import structlog

from ledger_assistant.audit import AuditLogger
from ledger_assistant.models.ledger import (
    MAX_PRODUCT_NAME_LENGTH,
    CatalogEntry,
    LedgerCategory,
    LedgerKind,
    SaleRecord,
    money,
)
from ledger_assistant.services.storage import LedgerRepository


logger = structlog.get_logger(__name__)

DEFAULT_ESTIMATED_MARGIN = 0.30


class SaleValidationError(ValueError):
    """A sale was rejected before anything was written."""
    pass


def validate_product_name(name: Optional[str]) -> str:
    """Stripped product name, or SaleValidationError when it is missing or too long."""
    name = (name or "").strip()
    if not name:
        raise SaleValidationError("Informe o nome do produto vendido.")
    if len(name) > MAX_PRODUCT_NAME_LENGTH:
        raise SaleValidationError(
            f"O nome do produto é longo demais (máximo {MAX_PRODUCT_NAME_LENGTH} caracteres)."
        )
    return name


def compute_profit(
    price: Decimal,
    cost: Decimal,
    estimated_margin: float = DEFAULT_ESTIMATED_MARGIN,
) -> tuple[Decimal, Decimal, bool]:
    """
    Profit, margin percentage and whether they were estimated.

    With a known cost: profit = price - cost, margin = profit / price * 100.
    Without one: profit = price * estimated_margin, margin = estimated_margin * 100.
    """
    if cost > 0:
        profit = money(price - cost)
        margin = money(profit / price * 100)
        return profit, margin, False

    share = Decimal(str(estimated_margin))
    return money(price * share), money(share * 100), True


class SaleRegistrationService:
    """Computes cost, profit and margin, then writes the sale."""

    def __init__(
        self,
        repository: LedgerRepository,
        audit_logger: Optional[AuditLogger] = None,
        estimated_margin: float = DEFAULT_ESTIMATED_MARGIN,
    ):
        self._repository = repository
        self._audit_logger = audit_logger
        self._estimated_margin = estimated_margin

    @staticmethod
    def _validate_price(price) -> Decimal:
        try:
            value = money(price)
        except (InvalidOperation, TypeError, ValueError):
            raise SaleValidationError("O valor da venda precisa ser um número.")
        if value <= 0:
            raise SaleValidationError("O valor da venda deve ser maior que zero.")
        return value

    async def register_sale(
        self,
        user_id: str,
        product: Optional[CatalogEntry],
        price,
        buyer_name: Optional[str] = None,
        product_name: Optional[str] = None,
    ) -> SaleRecord:
        """
        Register one confirmed sale.

        `product` is None for a sale of something not in the catalog;
        `product_name` then names it.

        Raises:
            SaleValidationError: price not positive, product name missing
                or too long, before any write
            StorageError: the ledger entry could not be written
        """
        unit_price = self._validate_price(price)
        name = validate_product_name(product.name if product else product_name)

        cost = money(product.cost_price or 0) if product else money(0)
        profit, margin, estimated = compute_profit(unit_price, cost, self._estimated_margin)
        buyer = buyer_name.strip() if buyer_name and buyer_name.strip() else None

        entry = await self._repository.create_ledger_entry(
            user_id=user_id,
            kind=LedgerKind.REVENUE,
            amount=unit_price,
            category=LedgerCategory.VENDAS,
            description=f"Venda: {name}",
            entry_date=date.today(),
        )

        detail_recorded = True
        try:
            await self._repository.create_sale_detail(
                user_id=user_id,
                product_id=product.id if product else None,
                quantity=1,
                unit_price=unit_price,
                buyer_name=buyer,
                ledger_entry_id=entry.id,
            )
        except Exception as e:
            detail_recorded = False
            logger.warning(
                "sale_detail_failed",
                user_id=user_id,
                ledger_entry_id=entry.id,
                error=str(e),
            )
            if self._audit_logger:
                await self._audit_logger.log_sale_detail_failed(
                    user_id=user_id,
                    ledger_entry_id=entry.id,
                    error_message=str(e),
                )

        record = SaleRecord(
            ledger_entry=entry,
            product_id=product.id if product else None,
            product_name=name,
            unit_price=unit_price,
            buyer_name=buyer,
            cost=cost,
            profit=profit,
            margin_percent=margin,
            estimated=estimated,
            detail_recorded=detail_recorded,
        )

        logger.info(
            "sale_registered",
            user_id=user_id,
            ledger_entry_id=entry.id,
            product=name,
            price=str(unit_price),
            profit=str(profit),
            estimated=estimated,
        )
        if self._audit_logger:
            await self._audit_logger.log_sale_registered(
                user_id=user_id,
                ledger_entry_id=entry.id,
                product_name=name,
                price=unit_price,
                profit=profit,
                estimated=estimated,
            )

        return record
