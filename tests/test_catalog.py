"""Tests for product creation, stock and the sales report."""

from decimal import Decimal

import pytest

from ledger_assistant.models.audit import AuditEventType
from ledger_assistant.models.ledger import CatalogEntry, LedgerCategory
from ledger_assistant.sales import CatalogService, SalesReportService
from ledger_assistant.sales.catalog import ProductStock, available_units

from tests.conftest import USER


@pytest.fixture
def catalog_service(repository, audit_logger):
    return CatalogService(repository, audit_logger=audit_logger)


@pytest.fixture
def reports(repository):
    return SalesReportService(repository)


class TestStockRules:

    def test_missing_stock_counts_as_one_unit(self):
        product = CatalogEntry(name="fone")
        assert available_units(product, 0) == 1
        assert available_units(product, 1) == 0

    def test_available_never_negative(self):
        product = CatalogEntry(name="fone", stock_quantity=2)
        assert available_units(product, 5) == 0

    @pytest.mark.parametrize("available,status", [(0, "falta"), (2, "baixo"), (3, "adequado")])
    def test_status(self, available, status):
        level = ProductStock(product=CatalogEntry(name="fone"), available=available)
        assert level.status == status


class TestCatalogService:

    @pytest.mark.asyncio
    async def test_create_product(self, catalog_service, repository, audit_storage):
        reply = await catalog_service.create_product(USER, "cabo usb")

        created = [p for p in await repository.get_catalog(USER) if p.name == "cabo usb"]
        assert len(created) == 1
        assert created[0].selling_price == Decimal("0")
        assert created[0].category == LedgerCategory.OUTROS.value
        assert "criado" in reply
        assert AuditEventType.PRODUCT_CREATED in [e.event_type for e in audit_storage.events]

    @pytest.mark.asyncio
    async def test_create_product_is_not_duplicated(self, catalog_service, repository):
        reply = await catalog_service.create_product(USER, "  Fone Bluetooth ")
        assert "já existe" in reply
        assert len(await repository.get_catalog(USER)) == 3

    @pytest.mark.asyncio
    async def test_stock_after_a_sale(self, catalog_service, registration, mouse):
        await registration.register_sale(USER, mouse, Decimal("120"))

        reply = await catalog_service.stock(USER, "mouse gamer")

        assert "4 unidades" in reply
        assert "Vendido:** 1" in reply

    @pytest.mark.asyncio
    async def test_stock_summary(self, catalog_service):
        reply = await catalog_service.stock(USER)
        assert "Resumo do Estoque" in reply
        assert "mouse gamer: 5 unidades" in reply
        assert "fone bluetooth: 1 unidades (baixo)" in reply

    @pytest.mark.asyncio
    async def test_stock_of_unknown_product_suggests(self, catalog_service):
        reply = await catalog_service.stock(USER, "caixinha de somzao")
        assert "Você quis dizer" in reply
        assert "caixa de som" in reply

    @pytest.mark.asyncio
    async def test_long_name_is_not_created(self, catalog_service, repository):
        reply = await catalog_service.create_product(USER, "y" * 250)
        assert "longo demais" in reply
        assert len(await repository.get_catalog(USER)) == 3

    @pytest.mark.asyncio
    async def test_suggestion_settings_are_honoured(self, repository):
        strict = CatalogService(repository, suggestion_threshold=0.9)
        reply = await strict.stock(USER, "caixinha de somzao")
        assert "não encontrado" in reply
        assert "Você quis dizer" not in reply

    @pytest.mark.asyncio
    async def test_product_details(self, catalog_service):
        reply = await catalog_service.product_details(USER, "fone")
        assert "R$ 80.00" in reply
        assert "R$ 50.00" in reply
        assert "37.5%" in reply

    @pytest.mark.asyncio
    async def test_product_details_not_found(self, catalog_service):
        reply = await catalog_service.product_details(USER, "bicicleta")
        assert "não encontrado" in reply


class TestSalesReport:

    @pytest.mark.asyncio
    async def test_empty_report(self, reports):
        assert "Nenhuma venda" in await reports.report(USER)

    @pytest.mark.asyncio
    async def test_summary_totals(self, reports, registration, fone, mouse):
        await registration.register_sale(USER, fone, Decimal("80"))
        await registration.register_sale(USER, fone, Decimal("80"))
        await registration.register_sale(USER, mouse, Decimal("140"))

        summary = await reports.summarize(USER)

        assert summary.count == 3
        assert summary.total == Decimal("300.00")
        assert summary.average_ticket == Decimal("100.00")
        assert summary.estimated_profit == Decimal("90.00")
        assert summary.top_products[0] == ("fone bluetooth", 2)

    @pytest.mark.asyncio
    async def test_report_text(self, reports, registration, fone):
        await registration.register_sale(USER, fone, Decimal("80"))
        reply = await reports.report(USER)
        assert "Relatório de Vendas" in reply
        assert "R$ 80.00" in reply
        assert "fone bluetooth: 1" in reply
