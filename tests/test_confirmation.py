"""Tests for the image-sale confirmation flow."""

from decimal import Decimal

import pytest

from ledger_assistant.models.audit import AuditEventType
from ledger_assistant.models.context import ImageSaleContext, SaleOrigin
from ledger_assistant.models.ledger import ImageRecognition
from ledger_assistant.sales import SaleConfirmationEngine, SaleRegistrationService
from ledger_assistant.sales.confirmation import is_affirmative, is_negative, parse_price
from ledger_assistant.services.storage import StorageError

from tests.conftest import USER, FailingLedgerRepository


class TestReplyParsing:
    """Reading confirm / price / cancel replies."""

    @pytest.mark.parametrize("text,expected", [
        ("80", Decimal("80")),
        ("80,50", Decimal("80.50")),
        ("80.5", Decimal("80.5")),
        ("R$ 85,50", Decimal("85.50")),
        ("r$80", Decimal("80")),
        ("80 reais", Decimal("80")),
        ("por 80", Decimal("80")),
        ("custou 50 reais", Decimal("50")),
        ("vendi 70", Decimal("70")),
    ])
    def test_price_formats(self, text, expected):
        assert parse_price(text) == expected

    @pytest.mark.parametrize("text", ["0", "0,00", "abc", "", None, "talvez amanhã"])
    def test_not_a_price(self, text):
        assert parse_price(text) is None

    @pytest.mark.parametrize("text", ["sim", "Sim", "OK!", "confirmo", "yes"])
    def test_affirmative(self, text):
        assert is_affirmative(text)

    @pytest.mark.parametrize("text", ["não", "Nao", "cancelar", "no."])
    def test_negative(self, text):
        assert is_negative(text)

    def test_keywords_must_be_the_whole_reply(self):
        assert not is_affirmative("sim, mas depois")
        assert not is_negative("não sei")


class TestIdentify:
    """Entering the awaiting-decision state."""

    @pytest.mark.asyncio
    async def test_catalog_product_with_price(self, confirmation, store):
        reply = await confirmation.identify(
            USER, ImageRecognition(product_name="fone bluetooth", confidence=0.9)
        )

        context = store.get(USER)
        assert isinstance(context, ImageSaleContext)
        assert context.product.id == "p-fone"
        assert context.selling_price == Decimal("80")
        assert context.origin == SaleOrigin.IMAGE
        assert "R$ 80.00" in reply
        assert "90%" in reply

    @pytest.mark.asyncio
    async def test_lookup_by_product_id_first(self, confirmation, store):
        await confirmation.identify(
            USER, ImageRecognition(product_name="algo", product_id="p-mouse", confidence=0.5)
        )
        assert store.get(USER).product.name == "mouse gamer"

    @pytest.mark.asyncio
    async def test_catalog_product_without_price_asks_for_one(self, confirmation, store):
        reply = await confirmation.identify(
            USER, ImageRecognition(product_name="caixa de som", confidence=0.7)
        )
        assert store.get(USER).selling_price is None
        assert "Por quanto" in reply
        assert "não encontrado" not in reply

    @pytest.mark.asyncio
    async def test_unknown_product_still_gets_a_context(self, confirmation, store):
        reply = await confirmation.identify(
            USER, ImageRecognition(product_name="Projetor X", confidence=0.8)
        )
        context = store.get(USER)
        assert context.product is None
        assert context.product_name == "Projetor X"
        assert "não encontrado no catálogo" in reply

    @pytest.mark.asyncio
    async def test_empty_recognition_stores_nothing(self, confirmation, store):
        reply = await confirmation.identify(USER, ImageRecognition(product_name=""))
        assert store.get(USER) is None
        assert "Não consegui identificar" in reply

    @pytest.mark.asyncio
    async def test_identification_is_audited(self, confirmation, audit_storage):
        await confirmation.identify(USER, ImageRecognition(product_name="fone bluetooth"))
        types = [e.event_type for e in audit_storage.events]
        assert AuditEventType.PRODUCT_IDENTIFIED in types
        assert AuditEventType.SALE_OFFERED in types

    @pytest.mark.asyncio
    async def test_long_name_is_rejected_and_pending_sale_kept(self, confirmation, store, audit_storage):
        await confirmation.identify(USER, ImageRecognition(product_name="fone bluetooth"))
        events_before = len(audit_storage.events)

        reply = await confirmation.identify(USER, ImageRecognition(product_name="z" * 600))

        assert "longo demais" in reply
        assert store.get(USER).product.id == "p-fone"
        assert len(audit_storage.events) == events_before


class TestHandleReply:
    """Leaving the awaiting-decision state."""

    @pytest.mark.asyncio
    async def test_no_pending_sale_returns_none(self, confirmation):
        assert await confirmation.handle_reply(USER, "sim") is None

    @pytest.mark.asyncio
    async def test_confirm_registers_at_candidate_price(self, confirmation, repository, store):
        await confirmation.identify(USER, ImageRecognition(product_name="fone bluetooth"))

        reply = await confirmation.handle_reply(USER, "sim")

        entries = await repository.list_ledger_entries(USER)
        assert len(entries) == 1
        assert entries[0].amount == Decimal("80.00")
        assert "Venda registrada" in reply
        assert store.get(USER) is None

    @pytest.mark.asyncio
    async def test_price_reply_overrides_candidate(self, confirmation, repository):
        await confirmation.identify(USER, ImageRecognition(product_name="fone bluetooth"))

        await confirmation.handle_reply(USER, "R$ 85,50")

        entries = await repository.list_ledger_entries(USER)
        assert entries[0].amount == Decimal("85.50")

    @pytest.mark.asyncio
    async def test_confirm_without_price_asks_again(self, confirmation, repository, store):
        await confirmation.identify(USER, ImageRecognition(product_name="caixa de som"))

        reply = await confirmation.handle_reply(USER, "sim")

        assert "Qual foi o valor" in reply
        assert store.get(USER) is not None
        assert await repository.list_ledger_entries(USER) == []

    @pytest.mark.asyncio
    async def test_cancel_twice(self, confirmation, repository, store, audit_storage):
        await confirmation.identify(USER, ImageRecognition(product_name="fone bluetooth"))

        first = await confirmation.handle_reply(USER, "não")
        second = await confirmation.handle_reply(USER, "não")

        assert "cancelada" in first
        assert second is None
        assert store.get(USER) is None
        assert await repository.list_ledger_entries(USER) == []
        assert AuditEventType.SALE_CANCELLED in [e.event_type for e in audit_storage.events]

    @pytest.mark.asyncio
    async def test_unrecognized_reply_keeps_context_and_ttl(self, confirmation, store, clock):
        await confirmation.identify(USER, ImageRecognition(product_name="fone bluetooth"))
        created_at = store.get(USER).created_at
        clock.advance(120)

        reply = await confirmation.handle_reply(USER, "talvez")

        assert "Não entendi" in reply
        assert store.get(USER).created_at == created_at

        clock.advance(200)
        assert store.get(USER) is None

    @pytest.mark.asyncio
    async def test_zero_is_not_a_price(self, confirmation, repository, store):
        await confirmation.identify(USER, ImageRecognition(product_name="fone bluetooth"))

        reply = await confirmation.handle_reply(USER, "0")

        assert "Não entendi" in reply
        assert store.get(USER) is not None
        assert await repository.list_ledger_entries(USER) == []

    @pytest.mark.asyncio
    async def test_storage_failure_propagates_and_keeps_context(self, fone, store):
        repository = FailingLedgerRepository({USER: [fone]}, fail_on={"create_ledger_entry"})
        engine = SaleConfirmationEngine(repository, store, SaleRegistrationService(repository))
        await engine.identify(USER, ImageRecognition(product_name="fone bluetooth"))

        with pytest.raises(StorageError):
            await engine.handle_reply(USER, "sim")

        assert store.get(USER) is not None


class TestOffer:
    """Text sales that named a product but no price."""

    @pytest.mark.asyncio
    async def test_offer_keeps_buyer_for_registration(self, confirmation, repository, fone, store):
        reply = await confirmation.offer(USER, fone, buyer_name="Maria")

        assert store.get(USER).origin == SaleOrigin.TEXT
        assert "R$ 80.00" in reply

        await confirmation.handle_reply(USER, "sim")
        details = await repository.list_sale_details(USER)
        assert details[0].buyer_name == "Maria"
        assert details[0].product_id == "p-fone"
