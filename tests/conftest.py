"""
Shared fixtures.

Test strategy:
1. Unit tests for each sales component against the in-memory repository
2. End-to-end conversations through AssistantFlow
3. No real API calls in tests (Gemini and Sheets are faked)
"""

from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from ledger_assistant.audit import AuditLogger
from ledger_assistant.models.ledger import CatalogEntry
from ledger_assistant.sales import (
    CorrectionResolver,
    InMemoryContextStore,
    SaleConfirmationEngine,
    SaleRegistrationService,
)
from ledger_assistant.services.storage import (
    InMemoryAuditStorage,
    InMemoryLedgerRepository,
    StorageError,
)


USER = "5511999990000"


class FakeClock:
    """Clock the tests move by hand."""

    def __init__(self, start: datetime = None):
        self.now = start or datetime(2024, 3, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


class FailingLedgerRepository(InMemoryLedgerRepository):
    """In-memory repository whose selected operations raise StorageError."""

    def __init__(self, *args, fail_on=(), **kwargs):
        super().__init__(*args, **kwargs)
        self.fail_on = set(fail_on)

    def _maybe_fail(self, operation: str):
        if operation in self.fail_on:
            raise StorageError(f"{operation} unavailable")

    async def get_catalog(self, user_id, limit=100):
        self._maybe_fail("get_catalog")
        return await super().get_catalog(user_id, limit)

    async def create_ledger_entry(self, *args, **kwargs):
        self._maybe_fail("create_ledger_entry")
        return await super().create_ledger_entry(*args, **kwargs)

    async def create_sale_detail(self, *args, **kwargs):
        self._maybe_fail("create_sale_detail")
        return await super().create_sale_detail(*args, **kwargs)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def fone():
    return CatalogEntry(
        id="p-fone",
        name="fone bluetooth",
        selling_price=Decimal("80"),
        cost_price=Decimal("50"),
        category="eletronicos",
    )


@pytest.fixture
def mouse():
    return CatalogEntry(
        id="p-mouse",
        name="mouse gamer",
        selling_price=Decimal("120"),
        stock_quantity=5,
    )


@pytest.fixture
def caixa():
    """Catalogued without any price."""
    return CatalogEntry(id="p-caixa", name="caixa de som")


@pytest.fixture
def repository(fone, mouse, caixa):
    return InMemoryLedgerRepository({USER: [fone, mouse, caixa]})


@pytest.fixture
def store(clock):
    return InMemoryContextStore(ttl_seconds=300, clock=clock)


@pytest.fixture
def audit_storage():
    return InMemoryAuditStorage()


@pytest.fixture
def audit_logger(audit_storage):
    return AuditLogger(audit_storage)


@pytest.fixture
def registration(repository, audit_logger):
    return SaleRegistrationService(repository, audit_logger=audit_logger)


@pytest.fixture
def confirmation(repository, store, registration, audit_logger):
    return SaleConfirmationEngine(repository, store, registration, audit_logger=audit_logger)


@pytest.fixture
def resolver(repository, store, audit_logger):
    return CorrectionResolver(repository, store, audit_logger=audit_logger)
