"""
Catalog and Sales Report Read Paths

Everything here except create_product is read-only: product details,
stock levels and the sales report are computed from the repository on
every call, nothing is cached.

Stock rule carried from the spreadsheet era: a product whose stock
quantity is missing or zero is treated as having one unit, so a product
that exists is never reported as out of stock before it sells.
"""

from collections import Counter
from decimal import Decimal
from typing import Optional

import structlog
from pydantic import BaseModel, Field

from ledger_assistant.audit import AuditLogger
from ledger_assistant.models.ledger import (
    CatalogEntry,
    LedgerCategory,
    LedgerKind,
    money,
)
from ledger_assistant.sales import replies
from ledger_assistant.sales.matcher import (
    DEFAULT_MATCH_THRESHOLD,
    DEFAULT_MAX_SUGGESTIONS,
    DEFAULT_SUGGESTION_THRESHOLD,
    match,
    normalize,
    suggest,
)
from ledger_assistant.sales.registration import (
    DEFAULT_ESTIMATED_MARGIN,
    SaleValidationError,
    validate_product_name,
)
from ledger_assistant.services.storage import LedgerRepository


logger = structlog.get_logger(__name__)

LOW_STOCK_LIMIT = 2
SUMMARY_PRODUCT_LIMIT = 10
TOP_PRODUCTS = 5
SALE_DESCRIPTION_PREFIX = "Venda: "


class ProductStock(BaseModel):
    """Stock position of one product."""

    product: CatalogEntry
    sold: int = Field(default=0, ge=0)
    available: int = Field(default=0, ge=0)

    @property
    def status(self) -> str:
        if self.available == 0:
            return "falta"
        if self.available <= LOW_STOCK_LIMIT:
            return "baixo"
        return "adequado"


class SalesSummary(BaseModel):
    """Totals over a user's revenue entries in the sales category."""

    count: int = 0
    total: Decimal = Decimal("0.00")
    average_ticket: Decimal = Decimal("0.00")
    estimated_profit: Decimal = Decimal("0.00")
    top_products: list[tuple[str, int]] = Field(default_factory=list)


def available_units(product: CatalogEntry, sold: int) -> int:
    initial = product.stock_quantity or 1
    return max(0, initial - sold)


class CatalogService:
    """Create products from chat and answer product and stock questions."""

    def __init__(
        self,
        repository: LedgerRepository,
        audit_logger: Optional[AuditLogger] = None,
        catalog_limit: int = 100,
        match_threshold: float = DEFAULT_MATCH_THRESHOLD,
        suggestion_threshold: float = DEFAULT_SUGGESTION_THRESHOLD,
        max_suggestions: int = DEFAULT_MAX_SUGGESTIONS,
    ):
        self._repository = repository
        self._audit_logger = audit_logger
        self._catalog_limit = catalog_limit
        self._match_threshold = match_threshold
        self._suggestion_threshold = suggestion_threshold
        self._max_suggestions = max_suggestions

    async def _catalog(self, user_id: str) -> list[CatalogEntry]:
        return await self._repository.get_catalog(user_id, limit=self._catalog_limit)

    async def create_product(self, user_id: str, name: str) -> str:
        """
        Add a product with zero prices and the catch-all category.

        A product whose normalized name already exists is not duplicated.
        """
        try:
            name = validate_product_name(name)
        except SaleValidationError as e:
            return replies.validation_failed(str(e))

        catalog = await self._catalog(user_id)
        for entry in catalog:
            if normalize(entry.name) == normalize(name):
                return replies.product_already_exists(entry.name)

        product = await self._repository.create_product(user_id, CatalogEntry(
            name=name,
            selling_price=Decimal("0"),
            cost_price=Decimal("0"),
            category=LedgerCategory.OUTROS.value,
        ))

        logger.info("product_created", user_id=user_id, product_id=product.id, name=product.name)
        if self._audit_logger:
            await self._audit_logger.log_product_created(user_id, product.id, product.name)

        return replies.product_created(product.name)

    async def stock_levels(self, user_id: str, products: list[CatalogEntry]) -> list[ProductStock]:
        details = await self._repository.list_sale_details(user_id)
        sold = Counter()
        for detail in details:
            if detail.product_id:
                sold[detail.product_id] += detail.quantity

        return [
            ProductStock(
                product=p,
                sold=sold[p.id],
                available=available_units(p, sold[p.id]),
            )
            for p in products
        ]

    async def product_details(self, user_id: str, name: str) -> str:
        catalog = await self._catalog(user_id)
        product = match(catalog, name, threshold=self._match_threshold)
        if product is None:
            return self._not_found(catalog, name)

        (level,) = await self.stock_levels(user_id, [product])

        lines = [f"📦 **{product.name}**", ""]
        lines.append(f"💰 **Preço de venda:** {replies.format_brl(product.selling_price)}")
        if product.cost_price:
            lines.append(f"🏷️ **Custo:** {replies.format_brl(product.cost_price)}")
            if product.has_price:
                margin = money((product.selling_price - product.cost_price) / product.selling_price * 100)
                lines.append(f"📈 **Margem:** {replies.format_percent(margin)}")
        lines.append(f"🗂️ **Categoria:** {product.category}")
        if product.description:
            lines.append(f"📝 **Descrição:** {product.description}")
        lines.append(f"📊 **Vendidos:** {level.sold} | **Disponível:** {level.available}")
        return "\n".join(lines)

    async def stock(self, user_id: str, name: Optional[str] = None) -> str:
        """Stock of one product, or a summary of the first products in the catalog."""
        catalog = await self._catalog(user_id)

        if name:
            product = match(catalog, name, threshold=self._match_threshold)
            if product is None:
                return self._not_found(catalog, name)
            (level,) = await self.stock_levels(user_id, [product])
            return (
                f"📦 **Estoque: {product.name}**\n\n"
                f"📊 **Disponível:** {level.available} unidades\n"
                f"✅ **Vendido:** {level.sold} unidades\n"
                f"Status: {level.status}"
            )

        if not catalog:
            return "📦 Nenhum produto cadastrado ainda."

        levels = await self.stock_levels(user_id, catalog[:SUMMARY_PRODUCT_LIMIT])
        lines = ["📦 **Resumo do Estoque**", ""]
        for level in levels:
            suffix = "" if level.status == "adequado" else f" ({level.status})"
            lines.append(f"• {level.product.name}: {level.available} unidades{suffix}")
        return "\n".join(lines)

    def _not_found(self, catalog: list[CatalogEntry], name: str) -> str:
        suggestions = suggest(
            catalog,
            name,
            threshold=self._suggestion_threshold,
            limit=self._max_suggestions,
        )
        if suggestions:
            return replies.product_suggestions(name, suggestions)
        return replies.product_not_found(name)


class SalesReportService:
    """Totals over the sales recorded in the ledger."""

    def __init__(
        self,
        repository: LedgerRepository,
        estimated_margin: float = DEFAULT_ESTIMATED_MARGIN,
    ):
        self._repository = repository
        self._estimated_margin = Decimal(str(estimated_margin))

    async def summarize(self, user_id: str) -> SalesSummary:
        entries = [
            e for e in await self._repository.list_ledger_entries(user_id, category=LedgerCategory.VENDAS)
            if e.kind == LedgerKind.REVENUE
        ]
        if not entries:
            return SalesSummary()

        total = money(sum((e.amount for e in entries), Decimal("0")))
        products = Counter(
            e.description[len(SALE_DESCRIPTION_PREFIX):].strip()
            for e in entries
            if e.description.startswith(SALE_DESCRIPTION_PREFIX)
        )
        return SalesSummary(
            count=len(entries),
            total=total,
            average_ticket=money(total / len(entries)),
            estimated_profit=money(total * self._estimated_margin),
            top_products=products.most_common(TOP_PRODUCTS),
        )

    async def report(self, user_id: str) -> str:
        summary = await self.summarize(user_id)
        if summary.count == 0:
            return "📊 Nenhuma venda registrada ainda."

        lines = [
            "📊 **Relatório de Vendas**",
            "",
            f"🧾 **Vendas:** {summary.count}",
            f"💰 **Faturamento:** {replies.format_brl(summary.total)}",
            f"🎯 **Ticket médio:** {replies.format_brl(summary.average_ticket)}",
            f"📈 **Lucro estimado:** {replies.format_brl(summary.estimated_profit)}",
        ]
        if summary.top_products:
            lines.append("")
            lines.append("🏆 **Mais vendidos:**")
            for name, count in summary.top_products:
                lines.append(f"• {name}: {count}")
        return "\n".join(lines)
