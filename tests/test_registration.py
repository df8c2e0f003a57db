"""Tests for sale registration and profit computation."""

from decimal import Decimal

import pytest

from ledger_assistant.models.audit import AuditEventType
from ledger_assistant.models.ledger import CatalogEntry, LedgerCategory, LedgerKind
from ledger_assistant.sales import SaleRegistrationService, SaleValidationError, replies
from ledger_assistant.sales.registration import compute_profit
from ledger_assistant.services.storage import StorageError

from tests.conftest import USER, FailingLedgerRepository


class TestComputeProfit:
    """Profit and margin with and without a cost price."""

    def test_known_cost(self):
        profit, margin, estimated = compute_profit(Decimal("80"), Decimal("50"))
        assert profit == Decimal("30.00")
        assert margin == Decimal("37.50")
        assert estimated is False

    def test_missing_cost_uses_default_margin(self):
        profit, margin, estimated = compute_profit(Decimal("100"), Decimal("0"))
        assert profit == Decimal("30.00")
        assert margin == Decimal("30.00")
        assert estimated is True

    def test_custom_estimated_margin(self):
        profit, margin, estimated = compute_profit(Decimal("200"), Decimal("0"), 0.25)
        assert profit == Decimal("50.00")
        assert margin == Decimal("25.00")
        assert estimated is True

    def test_selling_below_cost(self):
        profit, margin, _ = compute_profit(Decimal("40"), Decimal("50"))
        assert profit == Decimal("-10.00")
        assert margin == Decimal("-25.00")


class TestRegisterSale:
    """Writes and the resulting SaleRecord."""

    @pytest.mark.asyncio
    async def test_catalog_sale_with_cost(self, registration, repository, fone):
        record = await registration.register_sale(USER, fone, Decimal("80"))

        assert record.profit == Decimal("30.00")
        assert record.margin_percent == Decimal("37.50")
        assert record.estimated is False
        assert record.detail_recorded is True

        entry = record.ledger_entry
        assert entry.kind == LedgerKind.REVENUE
        assert entry.category == LedgerCategory.VENDAS
        assert entry.description == "Venda: fone bluetooth"

        details = await repository.list_sale_details(USER)
        assert len(details) == 1
        assert details[0].ledger_entry_id == entry.id
        assert details[0].product_id == "p-fone"
        assert details[0].quantity == 1

    @pytest.mark.asyncio
    async def test_sale_without_cost_is_estimated(self, registration, mouse):
        record = await registration.register_sale(USER, mouse, Decimal("100"))
        assert record.profit == Decimal("30.00")
        assert record.estimated is True
        assert "(estimado)" in replies.sale_registered(record)

    @pytest.mark.asyncio
    async def test_uncatalogued_sale(self, registration, repository):
        record = await registration.register_sale(
            USER, None, Decimal("85.50"), product_name="Projetor X"
        )
        assert record.product_id is None
        assert record.product_name == "Projetor X"
        assert record.profit == Decimal("25.65")

        details = await repository.list_sale_details(USER)
        assert details[0].product_id is None

    @pytest.mark.asyncio
    async def test_buyer_name_is_kept(self, registration, repository, fone):
        record = await registration.register_sale(USER, fone, Decimal("80"), buyer_name=" Maria ")
        assert record.buyer_name == "Maria"
        assert (await repository.list_sale_details(USER))[0].buyer_name == "Maria"
        assert "Maria" in replies.sale_registered(record)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("price", [Decimal("0"), Decimal("-5"), None, "abc"])
    async def test_invalid_price_writes_nothing(self, registration, repository, fone, price):
        with pytest.raises(SaleValidationError):
            await registration.register_sale(USER, fone, price)
        assert await repository.list_ledger_entries(USER) == []

    @pytest.mark.asyncio
    async def test_missing_name_writes_nothing(self, registration, repository):
        with pytest.raises(SaleValidationError):
            await registration.register_sale(USER, None, Decimal("10"), product_name="  ")
        assert await repository.list_ledger_entries(USER) == []

    @pytest.mark.asyncio
    async def test_long_name_writes_nothing(self, registration, repository):
        with pytest.raises(SaleValidationError, match="longo demais"):
            await registration.register_sale(USER, None, Decimal("80"), product_name="x" * 600)
        assert await repository.list_ledger_entries(USER) == []

    @pytest.mark.asyncio
    async def test_sale_record_is_immutable(self, registration, fone):
        record = await registration.register_sale(USER, fone, Decimal("80"))
        with pytest.raises(ValueError):
            record.profit = Decimal("0")


class TestPartialFailure:
    """The ledger entry is authoritative; the sale detail is best-effort."""

    @pytest.mark.asyncio
    async def test_detail_failure_keeps_ledger_entry(self, fone, audit_logger, audit_storage):
        repository = FailingLedgerRepository({USER: [fone]}, fail_on={"create_sale_detail"})
        service = SaleRegistrationService(repository, audit_logger=audit_logger)

        record = await service.register_sale(USER, fone, Decimal("80"))

        assert record.detail_recorded is False
        assert len(await repository.list_ledger_entries(USER)) == 1
        assert await repository.list_sale_details(USER) == []
        assert "com aviso" in replies.sale_registered(record)

        types = [e.event_type for e in audit_storage.events]
        assert AuditEventType.SALE_DETAIL_FAILED in types
        assert AuditEventType.SALE_REGISTERED in types

    @pytest.mark.asyncio
    async def test_ledger_failure_propagates(self, fone):
        repository = FailingLedgerRepository({USER: [fone]}, fail_on={"create_ledger_entry"})
        service = SaleRegistrationService(repository)

        with pytest.raises(StorageError):
            await service.register_sale(USER, fone, Decimal("80"))
        assert await repository.list_sale_details(USER) == []

    @pytest.mark.asyncio
    async def test_works_without_audit_logger(self, repository):
        service = SaleRegistrationService(repository)
        product = CatalogEntry(name="cabo usb", selling_price=Decimal("15"))
        record = await service.register_sale(USER, product, Decimal("15"))
        assert record.ledger_entry.amount == Decimal("15.00")
