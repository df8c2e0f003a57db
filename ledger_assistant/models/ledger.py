"""
Core Data Models for Ledger Assistant

These models define the schemas for everything the sales engine reads from
and writes to the ledger repository. They are designed to:
1. Enforce type safety at runtime
2. Keep money in Decimal, quantized to cents
3. Be serializable for storage and logging

DESIGN DECISION: AI pre-parse results are modeled separately
(MessageAnalysis, ImageRecognition) and every field there is optional.
They are hints, never ground truth.
"""

from datetime import date, datetime, timezone
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum
from typing import Optional
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, field_validator


CENT = Decimal("0.01")
MAX_PRODUCT_NAME_LENGTH = 200


def utcnow() -> datetime:
    """Timezone-aware current time in UTC."""
    return datetime.now(timezone.utc)


def money(value) -> Decimal:
    """Quantize a number to cents, rounding half up."""
    return Decimal(str(value)).quantize(CENT, rounding=ROUND_HALF_UP)


def new_id() -> str:
    return uuid4().hex


# =============================================================================
# ENUMS - Finite set of valid values
# =============================================================================

class LedgerCategory(str, Enum):
    """
    Canonical ledger categories.

    Loose user vocabulary ("uber", "farmácia", "grocery") is mapped onto
    these by the correction resolver. Anything unknown becomes OUTROS.
    """
    CASA = "casa"
    ALIMENTACAO = "alimentacao"
    SUPERMERCADO = "supermercado"
    TRANSPORTE = "transporte"
    LAZER = "lazer"
    ROUPAS = "roupas"
    SAUDE = "saude"
    EDUCACAO = "educacao"
    TECNOLOGIA = "tecnologia"
    SERVICOS = "servicos"
    VENDAS = "vendas"
    OUTROS = "outros"


class LedgerKind(str, Enum):
    """Direction of a ledger entry."""
    REVENUE = "revenue"
    EXPENSE = "expense"


# =============================================================================
# CATALOG
# =============================================================================

class CatalogEntry(BaseModel):
    """
    A sellable product owned by a user.

    Prices are optional: products created from chat start without them.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    id: str = Field(default_factory=new_id)
    name: str = Field(
        ...,
        min_length=1,
        max_length=MAX_PRODUCT_NAME_LENGTH,
        description="Display name used for matching"
    )
    selling_price: Optional[Decimal] = Field(default=None, ge=0)
    cost_price: Optional[Decimal] = Field(default=None, ge=0)
    category: str = Field(default=LedgerCategory.OUTROS.value)
    description: str = Field(default="", max_length=1000)
    stock_quantity: Optional[int] = Field(
        default=None,
        ge=0,
        description="Units bought for resale, if the seller tracks it"
    )

    @property
    def has_price(self) -> bool:
        return bool(self.selling_price and self.selling_price > 0)


class MatchCandidate(BaseModel):
    """Ephemeral result of scoring one catalog entry against a query."""

    entry: CatalogEntry
    score: float = Field(ge=0.0, le=1.0)

    @property
    def confidence(self) -> int:
        """Score as a whole percentage."""
        return int(round(self.score * 100))


# =============================================================================
# LEDGER ROWS
# =============================================================================

class LedgerEntry(BaseModel):
    """A single financial transaction row."""

    id: str = Field(default_factory=new_id)
    user_id: str
    kind: LedgerKind
    amount: Decimal = Field(..., ge=0)
    category: LedgerCategory = LedgerCategory.OUTROS
    description: str = Field(default="", max_length=500)
    entry_date: date
    created_at: datetime = Field(default_factory=utcnow)


class SaleDetail(BaseModel):
    """Per-sale row kept next to the ledger entry it explains."""

    id: str = Field(default_factory=new_id)
    user_id: str
    product_id: Optional[str] = None
    quantity: int = Field(default=1, ge=1)
    unit_price: Decimal = Field(..., gt=0)
    buyer_name: Optional[str] = None
    ledger_entry_id: Optional[str] = None
    created_at: datetime = Field(default_factory=utcnow)

    @property
    def total(self) -> Decimal:
        return money(self.unit_price * self.quantity)


class SaleRecord(BaseModel):
    """
    Outcome of a confirmed sale.

    CRITICAL: Created exactly once per confirmed sale and never changed.
    The ledger entry is the authoritative half; detail_recorded says
    whether the best-effort sale detail row made it too.
    """
    model_config = ConfigDict(frozen=True)

    ledger_entry: LedgerEntry
    product_id: Optional[str] = None
    product_name: str
    unit_price: Decimal
    buyer_name: Optional[str] = None
    cost: Decimal
    profit: Decimal
    margin_percent: Decimal
    estimated: bool = Field(
        ...,
        description="True when profit comes from the default margin, not a cost price"
    )
    detail_recorded: bool = True
    created_at: datetime = Field(default_factory=utcnow)


# =============================================================================
# AI PRE-PARSE HINTS
# =============================================================================

class MessageAnalysis(BaseModel):
    """
    Best-effort structured guess about one inbound message.

    Only `description` (the raw text) is guaranteed. Everything else may be
    missing or wrong.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    description: str = ""
    amount: Optional[Decimal] = None
    category: Optional[str] = None
    intent: Optional[str] = None
    product_name: Optional[str] = None
    buyer_name: Optional[str] = None

    @field_validator("amount", mode="before")
    @classmethod
    def drop_unusable_amount(cls, v):
        """Non-numeric or non-positive amounts are treated as absent."""
        if v in (None, ""):
            return None
        try:
            value = Decimal(str(v))
        except ArithmeticError:
            return None
        return value if value > 0 else None

    @property
    def text(self) -> str:
        """Lower-cased, trimmed description for keyword checks."""
        return self.description.lower().strip()


class ImageRecognition(BaseModel):
    """Result of recognizing a product in a photo, supplied from outside."""
    model_config = ConfigDict(str_strip_whitespace=True)

    product_name: str = ""
    product_id: Optional[str] = None
    confidence: float = Field(default=0.0, ge=0.0, le=1.0)
