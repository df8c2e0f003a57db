"""
Pending Conversational Context Models

A pending context is the single action a user still owes us an answer
for. There are two shapes, told apart by the `kind` tag:

- CorrectionContext: "was that transaction really in this category?"
- ImageSaleContext: "was the product sold at this price?"

CRITICAL: A user has at most one pending context. Storing a new one
replaces the previous one (see ContextStore).
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, Field

from ledger_assistant.models.ledger import CatalogEntry, LedgerEntry, utcnow


class SaleOrigin(str, Enum):
    """Where a pending sale confirmation came from."""
    IMAGE = "image"  # Product recognized in a photo
    TEXT = "text"    # "vendi o fone" with no price


class TransactionRef(BaseModel):
    """The bits of a just-recorded transaction a correction needs."""

    id: str
    category: str
    amount: Optional[Decimal] = None

    @classmethod
    def from_entry(cls, entry: LedgerEntry) -> "TransactionRef":
        return cls(
            id=entry.id,
            category=entry.category.value,
            amount=entry.amount,
        )


class CorrectionContext(BaseModel):
    """Waiting to see whether the user corrects a transaction's category."""

    kind: Literal["correction"] = "correction"
    transaction: TransactionRef
    correction_type: str = "categoria"
    created_at: datetime = Field(default_factory=utcnow)


class ImageSaleContext(BaseModel):
    """
    Waiting for confirm / price override / cancel on an identified product.

    `product` is None when recognition found nothing in the catalog;
    the sale is then registered under `product_name` without a catalog link.
    """

    kind: Literal["image_sale"] = "image_sale"
    product: Optional[CatalogEntry] = None
    product_name: str
    selling_price: Optional[Decimal] = Field(
        default=None,
        description="Candidate price to confirm; None means we must ask for one"
    )
    confidence: float = Field(default=1.0, ge=0.0, le=1.0)
    origin: SaleOrigin = SaleOrigin.IMAGE
    buyer_name: Optional[str] = None
    created_at: datetime = Field(default_factory=utcnow)


PendingContext = Annotated[
    Union[CorrectionContext, ImageSaleContext],
    Field(discriminator="kind"),
]
