"""
Sales Dispatcher

Decides which handler owns an incoming message and runs it.

DESIGN DECISION: Routing is one ordered classifier, classify(), that
returns a tagged Route. The order is the whole policy:

0. a photo was recognized          -> IMAGE_IDENTIFIED
1. a sale is awaiting confirmation -> CONFIRM_PENDING_SALE
2. the message corrects a category -> CORRECTION
3. "1", "2" or "3"                 -> SUGGESTION_REPLY
4. "criar produto X"               -> CREATE_PRODUCT
5. sync keywords                   -> SYNC
6. sale keywords                   -> REGISTER_SALE
7. stock / product / report words  -> STOCK_QUERY, PRODUCT_QUERY, SALES_REPORT
8. anything else                   -> None (not a sales message)

classify() is pure; SalesDispatcher.handle() gathers its inputs and
executes the route.
"""

import re
from enum import Enum
from typing import Awaitable, Callable, Iterable, Optional

import structlog
from pydantic import BaseModel, ConfigDict

from ledger_assistant.audit import AuditLogger
from ledger_assistant.config import SalesSettings
from ledger_assistant.models.context import ImageSaleContext, PendingContext
from ledger_assistant.models.ledger import ImageRecognition, MessageAnalysis
from ledger_assistant.sales import replies
from ledger_assistant.sales.catalog import CatalogService, SalesReportService
from ledger_assistant.sales.confirmation import SaleConfirmationEngine
from ledger_assistant.sales.context_store import ContextStore
from ledger_assistant.sales.correction import CorrectionResolver
from ledger_assistant.sales.extraction import (
    extract_buyer_name,
    extract_create_product_name,
    extract_product_name,
    extract_query_product_name,
    extract_sale_price,
)
from ledger_assistant.sales.matcher import match, suggest
from ledger_assistant.sales.registration import (
    SaleRegistrationService,
    SaleValidationError,
    validate_product_name,
)
from ledger_assistant.services.storage import LedgerRepository, StorageError


logger = structlog.get_logger(__name__)

SyncTrigger = Callable[[str], Awaitable[None]]


class RouteKind(str, Enum):
    IMAGE_IDENTIFIED = "image_identified"
    CONFIRM_PENDING_SALE = "confirm_pending_sale"
    CORRECTION = "correction"
    SUGGESTION_REPLY = "suggestion_reply"
    CREATE_PRODUCT = "create_product"
    SYNC = "sync"
    REGISTER_SALE = "register_sale"
    STOCK_QUERY = "stock_query"
    PRODUCT_QUERY = "product_query"
    SALES_REPORT = "sales_report"


class Route(BaseModel):
    """Which handler owns the message, plus what it needs."""
    model_config = ConfigDict(frozen=True)

    kind: RouteKind
    recognition: Optional[ImageRecognition] = None


# =============================================================================
# KEYWORDS
# =============================================================================

SYNC_KEYWORDS = [
    "sincronizar", "sync", "atualizar vendas", "buscar vendas",
    "verificar vendas", "importar vendas", "carregar vendas",
]
SYNC_INTENTS = {"sincronizar_vendas", "sync_vendas"}

SALE_KEYWORDS = [
    "vendi", "vendeu", "venda", "registrar venda", "nova venda",
    "cliente comprou", "foi vendido", "saiu",
]
SALE_INTENTS = {"registrar_venda", "nova_venda", "venda"}

STOCK_KEYWORDS = ["estoque", "quantidade", "disponível", "disponivel", "tem em estoque"]
STOCK_INTENTS = {"consultar_estoque", "verificar_estoque"}

PRODUCT_QUERY_KEYWORDS = [
    "preço", "preco", "valor", "custa", "custo", "margem", "detalhes",
    "informações", "informacoes", "dados do produto",
]
PRODUCT_QUERY_INTENTS = {"consultar_produto", "info_produto"}

REPORT_KEYWORDS = ["vendas", "faturamento", "relatório", "relatorio", "performance"]
REPORT_INTENTS = {"consultar_vendas", "relatorio_vendas"}

SUGGESTION_INDEX = re.compile(r"^[1-3]$")
CREATE_COMMAND = re.compile(r"\bcriar\s+\w+")


def _keyword_pattern(keywords: Iterable[str]) -> re.Pattern:
    # Whole words only: "vendas" must not count as "venda"
    return re.compile(r"\b(?:" + "|".join(re.escape(k) for k in keywords) + r")\b")


_SYNC_RE = _keyword_pattern(SYNC_KEYWORDS)
_SALE_RE = _keyword_pattern(SALE_KEYWORDS)
_STOCK_RE = _keyword_pattern(STOCK_KEYWORDS)
_PRODUCT_QUERY_RE = _keyword_pattern(PRODUCT_QUERY_KEYWORDS)
_REPORT_RE = _keyword_pattern(REPORT_KEYWORDS)


def _is_create_command(text: str) -> bool:
    return "criar" in text and ("produto" in text or bool(CREATE_COMMAND.search(text)))


def classify(
    analysis: MessageAnalysis,
    context: Optional[PendingContext],
    has_correction: bool,
    recognition: Optional[ImageRecognition] = None,
) -> Optional[Route]:
    """Route for a message, or None when it is not about sales. First match wins."""
    if recognition is not None:
        return Route(kind=RouteKind.IMAGE_IDENTIFIED, recognition=recognition)

    if isinstance(context, ImageSaleContext):
        return Route(kind=RouteKind.CONFIRM_PENDING_SALE)

    if has_correction:
        return Route(kind=RouteKind.CORRECTION)

    text = analysis.text
    intent = (analysis.intent or "").lower()

    if SUGGESTION_INDEX.match(text):
        return Route(kind=RouteKind.SUGGESTION_REPLY)

    if _is_create_command(text):
        return Route(kind=RouteKind.CREATE_PRODUCT)

    if intent in SYNC_INTENTS or _SYNC_RE.search(text):
        return Route(kind=RouteKind.SYNC)

    if intent in SALE_INTENTS or _SALE_RE.search(text):
        return Route(kind=RouteKind.REGISTER_SALE)

    if intent in STOCK_INTENTS or _STOCK_RE.search(text):
        return Route(kind=RouteKind.STOCK_QUERY)

    if intent in PRODUCT_QUERY_INTENTS or _PRODUCT_QUERY_RE.search(text):
        return Route(kind=RouteKind.PRODUCT_QUERY)

    if intent in REPORT_INTENTS or _REPORT_RE.search(text):
        return Route(kind=RouteKind.SALES_REPORT)

    return None


# =============================================================================
# DISPATCHER
# =============================================================================

class SalesDispatcher:
    """
    Runs the route classify() picks.

    A storage failure on a primary write becomes a generic retry reply;
    whatever context was pending stays as it was.
    """

    def __init__(
        self,
        repository: LedgerRepository,
        store: ContextStore,
        correction: CorrectionResolver,
        confirmation: SaleConfirmationEngine,
        registration: SaleRegistrationService,
        catalog: CatalogService,
        reports: SalesReportService,
        audit_logger: Optional[AuditLogger] = None,
        settings: Optional[SalesSettings] = None,
        sync_trigger: Optional[SyncTrigger] = None,
    ):
        self._repository = repository
        self._store = store
        self._correction = correction
        self._confirmation = confirmation
        self._registration = registration
        self._catalog = catalog
        self._reports = reports
        self._audit_logger = audit_logger
        self._settings = settings or SalesSettings()
        self._sync_trigger = sync_trigger

    def route(
        self,
        user_id: str,
        analysis: MessageAnalysis,
        recognition: Optional[ImageRecognition] = None,
    ) -> Optional[Route]:
        context = self._store.get(user_id)
        has_correction = self._correction.is_correction(analysis.description, user_id)
        return classify(analysis, context, has_correction, recognition)

    async def handle(
        self,
        user_id: str,
        analysis: MessageAnalysis,
        recognition: Optional[ImageRecognition] = None,
    ) -> Optional[str]:
        """Reply text, or None when the message is not for the sales engine."""
        route = self.route(user_id, analysis, recognition)
        if route is None:
            return None

        logger.info("sales_route", user_id=user_id, route=route.kind.value)
        try:
            return await self._execute(user_id, route, analysis)
        except StorageError as e:
            logger.error(
                "sales_storage_error",
                user_id=user_id,
                route=route.kind.value,
                error=str(e),
            )
            if self._audit_logger:
                await self._audit_logger.log_storage_error(
                    user_id=user_id,
                    operation=route.kind.value,
                    error_message=str(e),
                )
            return replies.GENERIC_RETRY

    async def _execute(self, user_id: str, route: Route, analysis: MessageAnalysis) -> Optional[str]:
        text = analysis.description

        if route.kind == RouteKind.IMAGE_IDENTIFIED:
            return await self._confirmation.identify(user_id, route.recognition)

        if route.kind == RouteKind.CONFIRM_PENDING_SALE:
            return await self._confirmation.handle_reply(user_id, text)

        if route.kind == RouteKind.CORRECTION:
            return await self._correction.resolve(user_id, text)

        if route.kind == RouteKind.SUGGESTION_REPLY:
            return replies.suggestion_reply_stub()

        if route.kind == RouteKind.CREATE_PRODUCT:
            name = extract_create_product_name(text)
            if not name:
                return replies.create_product_usage()
            return await self._catalog.create_product(user_id, name)

        if route.kind == RouteKind.SYNC:
            if self._sync_trigger is None:
                return replies.sync_unavailable()
            await self._sync_trigger(user_id)
            return replies.sync_started()

        if route.kind == RouteKind.REGISTER_SALE:
            return await self._register_from_text(user_id, analysis)

        if route.kind == RouteKind.STOCK_QUERY:
            name = (
                analysis.product_name
                or extract_query_product_name(text)
                or extract_product_name(text)
            )
            return await self._catalog.stock(user_id, name)

        if route.kind == RouteKind.PRODUCT_QUERY:
            name = analysis.product_name or extract_query_product_name(text)
            if not name:
                return replies.which_product()
            return await self._catalog.product_details(user_id, name)

        if route.kind == RouteKind.SALES_REPORT:
            return await self._reports.report(user_id)

        return None

    async def _register_from_text(self, user_id: str, analysis: MessageAnalysis) -> str:
        """
        "vendi o fone por 80" and friends.

        - catalog product and a price   -> registered right away
        - catalog product, no price     -> pending confirmation (offer)
        - unknown product, similar ones -> suggestions, nothing written
        - unknown product and a price   -> registered without a catalog link
        """
        text = analysis.description
        name = analysis.product_name or extract_product_name(text)
        if not name:
            return replies.product_not_identified()
        try:
            name = validate_product_name(name)
        except SaleValidationError as e:
            return replies.validation_failed(str(e))

        price = analysis.amount or extract_sale_price(text)
        buyer = analysis.buyer_name or extract_buyer_name(text)

        catalog = await self._repository.get_catalog(user_id, limit=self._settings.catalog_limit)
        product = match(catalog, name, threshold=self._settings.match_threshold)

        if product is None:
            suggestions = suggest(
                catalog,
                name,
                threshold=self._settings.suggestion_threshold,
                limit=self._settings.max_suggestions,
            )
            if suggestions:
                return replies.product_suggestions(name, suggestions)
            if price is None:
                return replies.unknown_product_needs_price(name)

        if product is not None and price is None:
            return await self._confirmation.offer(user_id, product, buyer)

        try:
            record = await self._registration.register_sale(
                user_id,
                product,
                price,
                buyer_name=buyer,
                product_name=name,
            )
        except SaleValidationError as e:
            return replies.validation_failed(str(e))
        return replies.sale_registered(record)
