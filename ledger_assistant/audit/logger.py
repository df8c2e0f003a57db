"""
Audit Logger

DESIGN DECISION: Every ledger write and every resolution of a pending
context is logged. This provides:
1. Traceability from a chat message to the row it produced
2. Debugging capability when a best-effort write fails
3. A history the seller can read back in the AuditLog sheet

The audit logger:
- Is async to not block the reply to the user
- Gracefully handles failures (a failed audit write never fails a sale)
"""

from decimal import Decimal
from typing import Optional

import structlog

from ledger_assistant.models.audit import AuditEvent, AuditEventBuilder, AuditSeverity
from ledger_assistant.services.storage import AuditStorageInterface


# Configure structlog for local logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)


class AuditLogger:
    """
    Central audit logging service.

    Logs events both to:
    1. Structured local log (for debugging)
    2. Audit storage (for persistence and user visibility)
    """

    def __init__(
        self,
        storage: Optional[AuditStorageInterface] = None,
    ):
        """
        Initialize audit logger.

        Args:
            storage: Storage backend for persistence.
                    If None, only logs locally.
        """
        self._storage = storage
        self._logger = structlog.get_logger(__name__)

    async def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.

        Always logs locally. Persists to storage if available.

        Returns True if storage write succeeded (or no storage configured).
        """
        log_dict = event.to_log_dict()

        if event.severity == AuditSeverity.ERROR:
            self._logger.error("audit_event", **log_dict)
        elif event.severity == AuditSeverity.WARNING:
            self._logger.warning("audit_event", **log_dict)
        elif event.severity == AuditSeverity.DEBUG:
            self._logger.debug("audit_event", **log_dict)
        else:
            self._logger.info("audit_event", **log_dict)

        if self._storage:
            try:
                return await self._storage.append_event(event)
            except Exception as e:
                # Log failure but don't raise
                self._logger.error(
                    "audit_storage_failed",
                    error=str(e),
                    event_id=str(event.event_id),
                )
                return False

        return True

    async def log_product_identified(
        self,
        user_id: str,
        product_name: str,
        product_id: Optional[str],
        confidence: float,
    ) -> None:
        await self.log(AuditEventBuilder.product_identified(
            user_id=user_id,
            product_name=product_name,
            product_id=product_id,
            confidence=confidence,
        ))

    async def log_sale_offered(
        self,
        user_id: str,
        product_name: str,
        price: Optional[Decimal],
        origin: str,
    ) -> None:
        await self.log(AuditEventBuilder.sale_offered(
            user_id=user_id,
            product_name=product_name,
            price=price,
            origin=origin,
        ))

    async def log_sale_registered(
        self,
        user_id: str,
        ledger_entry_id: str,
        product_name: str,
        price: Decimal,
        profit: Decimal,
        estimated: bool,
    ) -> None:
        """Log a completed sale (ledger entry written)."""
        await self.log(AuditEventBuilder.sale_registered(
            user_id=user_id,
            ledger_entry_id=ledger_entry_id,
            product_name=product_name,
            price=price,
            profit=profit,
            estimated=estimated,
        ))

    async def log_sale_detail_failed(
        self,
        user_id: str,
        ledger_entry_id: str,
        error_message: str,
    ) -> None:
        await self.log(AuditEventBuilder.sale_detail_failed(
            user_id=user_id,
            ledger_entry_id=ledger_entry_id,
            error_message=error_message,
        ))

    async def log_sale_cancelled(self, user_id: str, product_name: str) -> None:
        await self.log(AuditEventBuilder.sale_cancelled(user_id, product_name))

    async def log_correction_applied(
        self,
        user_id: str,
        ledger_entry_id: str,
        old_category: str,
        new_category: str,
        user_input: str,
    ) -> None:
        """Log a category correction on an existing ledger entry."""
        await self.log(AuditEventBuilder.correction_applied(
            user_id=user_id,
            ledger_entry_id=ledger_entry_id,
            old_category=old_category,
            new_category=new_category,
            user_input=user_input,
        ))

    async def log_context_expired(self, user_id: str, kind: str) -> None:
        await self.log(AuditEventBuilder.context_expired(user_id, kind))

    async def log_product_created(self, user_id: str, product_id: str, name: str) -> None:
        await self.log(AuditEventBuilder.product_created(user_id, product_id, name))

    async def log_storage_error(
        self,
        user_id: Optional[str],
        operation: str,
        error_message: str,
    ) -> None:
        """Log a failed storage call that was turned into a user-facing reply."""
        await self.log(AuditEventBuilder.storage_error(
            user_id=user_id,
            operation=operation,
            error_message=error_message,
        ))
