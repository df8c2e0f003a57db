"""
Image-Sale Confirmation Engine

Per-user state machine:

    Idle -> Identified -> AwaitingDecision -> Registered | Cancelled

There is no explicit state field. A stored ImageSaleContext IS the
AwaitingDecision state; no context means Idle. The next message from the
user is read as one of:

- affirmative ("sim", "ok")      -> register at the candidate price
- a price ("85", "R$ 85,50")     -> register at that price
- negative ("não", "cancelar")   -> drop the context
- anything else                  -> ask again, context untouched

CRITICAL: An unrecognized reply never renews the context. Its original
TTL keeps running.
"""

import re
from decimal import Decimal, InvalidOperation
from typing import Optional

import structlog

from ledger_assistant.audit import AuditLogger
from ledger_assistant.models.context import ImageSaleContext, SaleOrigin
from ledger_assistant.models.ledger import CatalogEntry, ImageRecognition
from ledger_assistant.sales import replies
from ledger_assistant.sales.context_store import ContextStore
from ledger_assistant.sales.matcher import DEFAULT_MATCH_THRESHOLD, match
from ledger_assistant.sales.registration import (
    SaleRegistrationService,
    SaleValidationError,
    validate_product_name,
)
from ledger_assistant.services.storage import LedgerRepository


logger = structlog.get_logger(__name__)

AFFIRMATIVE_WORDS = {"sim", "ok", "confirmar", "confirmo", "yes"}
NEGATIVE_WORDS = {"não", "nao", "no", "cancelar", "cancel"}

_AMOUNT = r"(\d+(?:[.,]\d{1,2})?)"

# Ordered, first match wins
PRICE_PATTERNS = [
    # "80 reais", "50 real", "por 80 reais"
    re.compile(rf"(?:por\s+)?{_AMOUNT}\s*(?:reais?|r\$?)\s*$"),
    # "R$ 80", "r$ 50.00"
    re.compile(rf"^r\$?\s*{_AMOUNT}\s*$"),
    # "80", "80.50", "80,50"
    re.compile(rf"^{_AMOUNT}\s*$"),
    # "por 80", "custou 50", "vendi 70 reais"
    re.compile(rf"(?:por|custou|vendi|vendido)\s+{_AMOUNT}\s*(?:reais?)?\s*$"),
]


def _clean(text: Optional[str]) -> str:
    return (text or "").lower().strip().strip(".!?")


def parse_price(text: Optional[str]) -> Optional[Decimal]:
    """
    Read a strictly positive price from a reply, or None.

    A pattern that matches but yields zero does not stop the search; if
    no pattern yields a positive value the reply is not a price.
    """
    cleaned = _clean(text)
    for pattern in PRICE_PATTERNS:
        found = pattern.search(cleaned)
        if not found:
            continue
        try:
            value = Decimal(found.group(1).replace(",", "."))
        except InvalidOperation:
            continue
        if value > 0:
            return value
    return None


def is_affirmative(text: Optional[str]) -> bool:
    return _clean(text) in AFFIRMATIVE_WORDS


def is_negative(text: Optional[str]) -> bool:
    return _clean(text) in NEGATIVE_WORDS


class SaleConfirmationEngine:
    """
    Holds an identified product until the user confirms, reprices or cancels.

    Used for photos (identify) and for text sales that named a catalog
    product but no price (offer).
    """

    def __init__(
        self,
        repository: LedgerRepository,
        store: ContextStore,
        registration: SaleRegistrationService,
        audit_logger: Optional[AuditLogger] = None,
        catalog_limit: int = 100,
        match_threshold: float = DEFAULT_MATCH_THRESHOLD,
    ):
        self._repository = repository
        self._store = store
        self._registration = registration
        self._audit_logger = audit_logger
        self._catalog_limit = catalog_limit
        self._match_threshold = match_threshold

    def pending(self, user_id: str) -> Optional[ImageSaleContext]:
        context = self._store.get(user_id)
        return context if isinstance(context, ImageSaleContext) else None

    async def _resolve_product(
        self,
        user_id: str,
        recognition: ImageRecognition,
    ) -> Optional[CatalogEntry]:
        catalog = await self._repository.get_catalog(user_id, limit=self._catalog_limit)
        if recognition.product_id:
            for entry in catalog:
                if entry.id == recognition.product_id:
                    return entry
        return match(catalog, recognition.product_name, threshold=self._match_threshold)

    async def identify(self, user_id: str, recognition: ImageRecognition) -> str:
        """
        Enter Identified with a recognition result and prompt the user.

        An unmatched product still gets a context (product None) and a
        price request. A recognition with no name and no catalog hit is
        answered without storing anything. So is a name too long to
        register; any sale already pending is left as it was.
        """
        product = await self._resolve_product(user_id, recognition)

        if product is None and not recognition.product_name:
            logger.info("recognition_empty", user_id=user_id)
            return replies.empty_recognition()

        try:
            name = validate_product_name(product.name if product else recognition.product_name)
        except SaleValidationError as e:
            logger.info("recognition_rejected", user_id=user_id, reason=str(e))
            return replies.validation_failed(str(e))
        price = product.selling_price if product and product.has_price else None

        logger.info(
            "product_identified",
            user_id=user_id,
            product=name,
            in_catalog=product is not None,
            confidence=recognition.confidence,
        )
        if self._audit_logger:
            await self._audit_logger.log_product_identified(
                user_id=user_id,
                product_name=name,
                product_id=product.id if product else None,
                confidence=recognition.confidence,
            )
            await self._audit_logger.log_sale_offered(
                user_id=user_id,
                product_name=name,
                price=price,
                origin=SaleOrigin.IMAGE.value,
            )

        self._store.set(user_id, ImageSaleContext(
            product=product,
            product_name=name,
            selling_price=price,
            confidence=recognition.confidence,
            origin=SaleOrigin.IMAGE,
        ))

        if price is not None:
            return replies.confirm_price_prompt(name, price, recognition.confidence)
        return replies.ask_price_prompt(name, in_catalog=product is not None)

    async def offer(
        self,
        user_id: str,
        product: CatalogEntry,
        buyer_name: Optional[str] = None,
    ) -> str:
        """Hold a text-mentioned catalog product until the user gives or confirms a price."""
        price = product.selling_price if product.has_price else None

        self._store.set(user_id, ImageSaleContext(
            product=product,
            product_name=product.name,
            selling_price=price,
            origin=SaleOrigin.TEXT,
            buyer_name=buyer_name,
        ))

        if self._audit_logger:
            await self._audit_logger.log_sale_offered(
                user_id=user_id,
                product_name=product.name,
                price=price,
                origin=SaleOrigin.TEXT.value,
            )

        if price is not None:
            return replies.confirm_price_prompt(product.name, price)
        return replies.ask_price_prompt(product.name, in_catalog=True)

    async def handle_reply(self, user_id: str, text: str) -> Optional[str]:
        """
        Interpret the reply to a pending sale.

        Returns None when the user has no pending sale, so the caller can
        route the message elsewhere.
        """
        context = self.pending(user_id)
        if context is None:
            return None

        if is_affirmative(text):
            if context.selling_price is None:
                return replies.unrecognized_reply(context.product_name, None)
            return await self._register(user_id, context, context.selling_price)

        price = parse_price(text)
        if price is not None:
            return await self._register(user_id, context, price)

        if is_negative(text):
            self._store.clear(user_id)
            logger.info("sale_cancelled", user_id=user_id, product=context.product_name)
            if self._audit_logger:
                await self._audit_logger.log_sale_cancelled(user_id, context.product_name)
            return replies.sale_cancelled(context.product_name)

        logger.debug("confirmation_unrecognized", user_id=user_id, text=text)
        return replies.unrecognized_reply(context.product_name, context.selling_price)

    async def _register(self, user_id: str, context: ImageSaleContext, price: Decimal) -> str:
        try:
            record = await self._registration.register_sale(
                user_id,
                context.product,
                price,
                buyer_name=context.buyer_name,
                product_name=context.product_name,
            )
        except SaleValidationError as e:
            return replies.validation_failed(str(e))

        self._store.clear(user_id)
        return replies.sale_registered(record)
