"""
Tests for Ledger Assistant models

Test strategy:
1. Unit tests for individual components (models, validators)
2. Integration tests for flows (in-memory storage, faked external services)
3. No real API calls in tests
"""

import pytest
from datetime import date
from decimal import Decimal

from pydantic import TypeAdapter

from ledger_assistant.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)
from ledger_assistant.models.context import (
    CorrectionContext,
    ImageSaleContext,
    PendingContext,
    TransactionRef,
)
from ledger_assistant.models.ledger import (
    CatalogEntry,
    LedgerCategory,
    LedgerEntry,
    LedgerKind,
    MatchCandidate,
    MessageAnalysis,
    money,
)


class TestLedgerModels:
    """Tests for catalog and ledger Pydantic models."""

    def test_catalog_entry_strips_whitespace(self):
        """Test that whitespace is stripped from the product name."""
        entry = CatalogEntry(name="  Fone Bluetooth  ")
        assert entry.name == "Fone Bluetooth"

    def test_catalog_entry_rejects_negative_price(self):
        """Test that negative prices are rejected."""
        with pytest.raises(ValueError):
            CatalogEntry(name="fone", selling_price=Decimal("-1"))

    def test_catalog_entry_has_price(self):
        """Test has_price for missing, zero and positive prices."""
        assert CatalogEntry(name="fone").has_price is False
        assert CatalogEntry(name="fone", selling_price=Decimal("0")).has_price is False
        assert CatalogEntry(name="fone", selling_price=Decimal("80")).has_price is True

    def test_match_candidate_confidence(self):
        """Test score to whole-percentage conversion."""
        candidate = MatchCandidate(entry=CatalogEntry(name="fone"), score=0.567)
        assert candidate.confidence == 57

    def test_ledger_entry_defaults(self):
        """Test LedgerEntry defaults to the catch-all category."""
        entry = LedgerEntry(
            user_id="u1",
            kind=LedgerKind.EXPENSE,
            amount=Decimal("10"),
            entry_date=date(2024, 3, 1),
        )
        assert entry.category == LedgerCategory.OUTROS
        assert entry.id

    def test_money_rounds_half_up(self):
        """Test quantizing to cents."""
        assert money("25.655") == Decimal("25.66")
        assert money(30) == Decimal("30.00")


class TestMessageAnalysis:
    """Tests for the AI pre-parse hint model."""

    @pytest.mark.parametrize("raw", [None, "", "abc", 0, -5])
    def test_unusable_amount_is_dropped(self, raw):
        """Test that non-numeric or non-positive amounts become None."""
        assert MessageAnalysis(description="x", amount=raw).amount is None

    def test_amount_kept_as_decimal(self):
        """Test a usable amount is kept."""
        assert MessageAnalysis(description="x", amount=80.5).amount == Decimal("80.5")

    def test_text_is_normalized(self):
        """Test the keyword-check view of the description."""
        assert MessageAnalysis(description="  Vendi o FONE ").text == "vendi o fone"


class TestPendingContexts:
    """Tests for the tagged pending-context union."""

    def test_discriminator_selects_correction(self):
        """Test the kind tag picks CorrectionContext."""
        context = TypeAdapter(PendingContext).validate_python({
            "kind": "correction",
            "transaction": {"id": "e1", "category": "outros"},
        })
        assert isinstance(context, CorrectionContext)
        assert context.correction_type == "categoria"

    def test_discriminator_selects_image_sale(self):
        """Test the kind tag picks ImageSaleContext."""
        context = TypeAdapter(PendingContext).validate_python({
            "kind": "image_sale",
            "product_name": "fone",
            "selling_price": "80",
        })
        assert isinstance(context, ImageSaleContext)
        assert context.selling_price == Decimal("80")

    def test_transaction_ref_from_entry(self):
        """Test building a TransactionRef from a ledger entry."""
        entry = LedgerEntry(
            user_id="u1",
            kind=LedgerKind.EXPENSE,
            amount=Decimal("12.50"),
            category=LedgerCategory.LAZER,
            entry_date=date(2024, 3, 1),
        )
        ref = TransactionRef.from_entry(entry)
        assert ref.id == entry.id
        assert ref.category == "lazer"
        assert ref.amount == Decimal("12.50")


class TestAuditModels:
    """Tests for audit-related models."""

    def test_audit_event_creation(self):
        """Test AuditEvent model creation."""
        event = AuditEvent(
            event_type=AuditEventType.SALE_REGISTERED,
            description="Test sale",
        )
        assert event.event_type == AuditEventType.SALE_REGISTERED
        assert event.severity == AuditSeverity.INFO

    def test_audit_event_to_log_dict(self):
        """Test conversion to log dictionary."""
        event = AuditEvent(
            event_type=AuditEventType.PRODUCT_CREATED,
            description="Product created",
            details={"name": "fone"},
        )
        log_dict = event.to_log_dict()
        assert "event_id" in log_dict
        assert log_dict["event_type"] == "product_created"
        assert log_dict["details"]["name"] == "fone"

    def test_audit_event_to_sheets_row(self):
        """Test conversion to sheets row."""
        event = AuditEvent(
            event_type=AuditEventType.SALE_CANCELLED,
            user_id="u1",
            description="User cancelled",
        )
        row = event.to_sheets_row()
        assert len(row) == 10  # Expected number of columns
        assert row[2] == "sale_cancelled"  # event_type
        assert row[4] == "u1"  # user_id
        assert row[8] == ""  # no details

    def test_audit_event_builder_sale_registered(self):
        """Test AuditEventBuilder.sale_registered."""
        event = AuditEventBuilder.sale_registered(
            user_id="u1",
            ledger_entry_id="e1",
            product_name="fone",
            price=Decimal("80"),
            profit=Decimal("24"),
            estimated=True,
        )
        assert event.event_type == AuditEventType.SALE_REGISTERED
        assert event.entity_id == "e1"
        assert event.details["estimated_profit"] is True

    def test_audit_event_builder_sale_detail_failed(self):
        """Test AuditEventBuilder.sale_detail_failed is a warning."""
        event = AuditEventBuilder.sale_detail_failed("u1", "e1", "quota exceeded")
        assert event.severity == AuditSeverity.WARNING
        assert event.error_message == "quota exceeded"

    def test_audit_event_builder_clips_long_names(self):
        """Test a very long product name still builds a valid event."""
        event = AuditEventBuilder.product_identified(
            user_id="u1",
            product_name="z" * 600,
            product_id=None,
            confidence=0.9,
        )
        assert len(event.description) <= 500
        assert event.description.endswith("...")
        assert event.details["product_name"] == "z" * 600


class TestLedgerCategories:
    """Tests for the ledger category enum."""

    def test_all_categories_exist(self):
        """Test that expected categories exist."""
        expected = [
            "casa", "alimentacao", "supermercado", "transporte", "lazer",
            "roupas", "saude", "educacao", "tecnologia", "servicos",
            "vendas", "outros",
        ]
        for cat in expected:
            assert LedgerCategory(cat) is not None


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
