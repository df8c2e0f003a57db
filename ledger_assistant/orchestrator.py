"""
Main Orchestrator for Ledger Assistant

Ties the pre-parser, the sales engine and storage together and defines
the single end-to-end flow:

    message (+ optional image recognition)
      → pre-parse (AI hints, optional)
      → SalesDispatcher
      → reply text

DESIGN DECISION: The orchestrator enforces the boundaries:
- AI hints never bypass the dispatcher's own keyword rules
- Nothing is written for an ambiguous message; it gets a question back
- Every write is audited

The chat transport calls handle_message() and sends back what it returns.
"""

import asyncio
import logging
from typing import Optional

import structlog

from ledger_assistant.agents import GeminiPreParser, MessagePreParser, PassthroughPreParser
from ledger_assistant.audit import AuditLogger
from ledger_assistant.config import SalesSettings, get_settings, validate_all_settings
from ledger_assistant.models.context import CorrectionContext, PendingContext
from ledger_assistant.models.ledger import ImageRecognition, LedgerEntry
from ledger_assistant.sales import (
    CatalogService,
    ContextStore,
    CorrectionResolver,
    InMemoryContextStore,
    SaleConfirmationEngine,
    SaleRegistrationService,
    SalesDispatcher,
    SalesReportService,
)
from ledger_assistant.sales.dispatcher import SyncTrigger
from ledger_assistant.services.storage import (
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsLedgerRepository,
    InMemoryLedgerRepository,
    LedgerRepository,
)


logger = structlog.get_logger(__name__)

HELP_REPLY = (
    "🤖 Posso ajudar com suas vendas:\n"
    '• *"vendi o fone bluetooth por 80"* para registrar uma venda\n'
    '• *"estoque do mouse"* para consultar o estoque\n'
    '• *"preço do teclado"* para ver detalhes de um produto\n'
    '• *"relatório de vendas"* para ver o resumo\n'
    '• *"criar produto caixa de som"* para cadastrar um produto\n'
    "• Ou envie a foto do produto vendido"
)


class AssistantFlow:
    """
    Orchestrates one inbound chat message.

    Flow:
    1. Pre-parse → MessageAnalysis (hints only)
    2. Dispatch → sales route, or None
    3. Reply → dispatcher text, or the help text

    Every collaborator can be injected; the defaults run fully in memory.
    """

    def __init__(
        self,
        repository: Optional[LedgerRepository] = None,
        pre_parser: Optional[MessagePreParser] = None,
        store: Optional[ContextStore] = None,
        audit_logger: Optional[AuditLogger] = None,
        settings: Optional[SalesSettings] = None,
        sync_trigger: Optional[SyncTrigger] = None,
    ):
        self._settings = settings or get_settings().sales
        self._repository = repository if repository is not None else InMemoryLedgerRepository()
        self._pre_parser = pre_parser or PassthroughPreParser()
        self._audit_logger = audit_logger or AuditLogger()
        if store is None:
            store = InMemoryContextStore(
                ttl_seconds=self._settings.context_ttl_seconds,
                on_expire=self._on_context_expired,
            )
        self._store = store
        self._background: set[asyncio.Task] = set()

        registration = SaleRegistrationService(
            self._repository,
            audit_logger=self._audit_logger,
            estimated_margin=self._settings.estimated_margin,
        )
        self._correction = CorrectionResolver(
            self._repository,
            self._store,
            audit_logger=self._audit_logger,
        )
        confirmation = SaleConfirmationEngine(
            self._repository,
            self._store,
            registration,
            audit_logger=self._audit_logger,
            catalog_limit=self._settings.catalog_limit,
            match_threshold=self._settings.match_threshold,
        )
        self._dispatcher = SalesDispatcher(
            repository=self._repository,
            store=self._store,
            correction=self._correction,
            confirmation=confirmation,
            registration=registration,
            catalog=CatalogService(
                self._repository,
                audit_logger=self._audit_logger,
                catalog_limit=self._settings.catalog_limit,
                match_threshold=self._settings.match_threshold,
                suggestion_threshold=self._settings.suggestion_threshold,
                max_suggestions=self._settings.max_suggestions,
            ),
            reports=SalesReportService(
                self._repository,
                estimated_margin=self._settings.estimated_margin,
            ),
            audit_logger=self._audit_logger,
            settings=self._settings,
            sync_trigger=sync_trigger,
        )

    @property
    def dispatcher(self) -> SalesDispatcher:
        return self._dispatcher

    @property
    def store(self) -> ContextStore:
        return self._store

    async def handle_message(
        self,
        user_id: str,
        text: str,
        recognition: Optional[ImageRecognition] = None,
    ) -> str:
        """
        Answer one message.

        Args:
            user_id: Chat user the message came from
            text: Message text (may be empty when only a photo was sent)
            recognition: Product recognized in an attached photo, if any
        """
        analysis = await self._pre_parser.parse(text or "")
        reply = await self._dispatcher.handle(user_id, analysis, recognition)
        if reply is None:
            logger.debug("not_a_sales_message", user_id=user_id)
            return HELP_REPLY
        return reply

    def remember_transaction(self, user_id: str, entry: LedgerEntry) -> CorrectionContext:
        """Let the user correct the category of a transaction just recorded elsewhere."""
        return self._correction.remember(user_id, entry)

    def sweep_contexts(self) -> int:
        """Evict every expired pending context. Meant for a periodic job."""
        return self._store.sweep()

    def _on_context_expired(self, user_id: str, context: PendingContext) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            return
        task = loop.create_task(self._audit_logger.log_context_expired(user_id, context.kind))
        self._background.add(task)
        task.add_done_callback(self._background.discard)


def create_app_components(
    use_storage: bool = True,
    use_ai: bool = True,
) -> tuple[AssistantFlow, Optional[GoogleSheetsClient]]:
    """
    Factory function to create all application components.

    Args:
        use_storage: Whether to initialize Google Sheets storage.
                    Set to False for testing without storage.
        use_ai: Whether to pre-parse messages with Gemini.

    Returns:
        (assistant_flow, sheets_client)
    """
    settings = get_settings()
    logging.basicConfig(level=settings.app.log_level, format="%(message)s")

    status = validate_all_settings()
    logger.info(
        "settings_status",
        **{name: ok for name, ok in status.items() if not name.endswith("_error")},
    )

    sheets_client = None
    repository = None
    audit_logger = None

    if use_storage:
        try:
            sheets_client = GoogleSheetsClient()
            repository = GoogleSheetsLedgerRepository(sheets_client)
            audit_logger = AuditLogger(GoogleSheetsAuditStorage(sheets_client))
        except Exception as e:
            # Storage not configured - continue in memory
            logger.warning("storage_not_configured", error=str(e))
            sheets_client = None
            repository = None
            audit_logger = AuditLogger()  # Local-only logging
    else:
        audit_logger = AuditLogger()  # Local-only logging

    pre_parser: MessagePreParser = PassthroughPreParser()
    if use_ai:
        try:
            pre_parser = GeminiPreParser()
        except Exception as e:
            logger.warning("pre_parser_not_configured", error=str(e))

    flow = AssistantFlow(
        repository=repository,
        pre_parser=pre_parser,
        audit_logger=audit_logger,
        settings=settings.sales,
    )
    return flow, sheets_client
