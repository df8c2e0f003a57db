"""
Audit Models for Ledger Assistant

Every significant step of a sale or correction is recorded as an event.
This provides:
1. Traceability of every ledger write back to the message that caused it
2. Debugging information when a secondary write fails
3. A record of pending contexts that expired unanswered

DESIGN DECISION: Audit logs are append-only. We never delete or modify them.
"""

import json
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field

from ledger_assistant.models.ledger import utcnow


# Free text (product names, categories) quoted inside a description
DESCRIPTION_TEXT_LIMIT = 120


class AuditEventType(str, Enum):
    """Types of events we audit."""
    # Identification
    PRODUCT_IDENTIFIED = "product_identified"
    SALE_OFFERED = "sale_offered"

    # Resolution of a pending context
    SALE_REGISTERED = "sale_registered"
    SALE_DETAIL_FAILED = "sale_detail_failed"
    SALE_CANCELLED = "sale_cancelled"
    CORRECTION_APPLIED = "correction_applied"
    CONTEXT_EXPIRED = "context_expired"

    # Catalog
    PRODUCT_CREATED = "product_created"

    # System events
    STORAGE_ERROR = "storage_error"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


def clip(text: Optional[str], limit: int = DESCRIPTION_TEXT_LIMIT) -> str:
    """Shorten user text quoted in a description so it stays within max_length."""
    text = str(text or "")
    return text if len(text) <= limit else text[: limit - 3] + "..."


class AuditEvent(BaseModel):
    """
    A single audit event.

    Every significant action creates one of these.
    """

    event_id: UUID = Field(default_factory=uuid4)
    timestamp: datetime = Field(
        default_factory=utcnow,
        description="When the event occurred (UTC)"
    )

    event_type: AuditEventType
    severity: AuditSeverity = AuditSeverity.INFO

    user_id: Optional[str] = Field(
        default=None,
        description="Chat user the event belongs to"
    )
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'ledger_entry', 'product')"
    )
    entity_id: Optional[str] = None

    description: str = Field(..., max_length=500)
    details: dict[str, Any] = Field(default_factory=dict)
    error_message: Optional[str] = None

    def to_log_dict(self) -> dict:
        """Convert to a dictionary suitable for structured logging."""
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "user_id": self.user_id,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "description": self.description,
            "details": self.details,
            "error_message": self.error_message,
        }

    def to_sheets_row(self) -> list:
        """
        Convert to a row suitable for Google Sheets storage.

        Returns columns in order:
        [event_id, timestamp, event_type, severity, user_id, entity_type,
         entity_id, description, details_json, error_message]
        """
        return [
            str(self.event_id),
            self.timestamp.isoformat(),
            self.event_type.value,
            self.severity.value,
            self.user_id or "",
            self.entity_type or "",
            self.entity_id or "",
            self.description,
            json.dumps(self.details, default=str) if self.details else "",
            self.error_message or "",
        ]


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.sale_registered(user_id, entry_id, "Fone", price)
    """

    @staticmethod
    def product_identified(
        user_id: str,
        product_name: str,
        product_id: Optional[str],
        confidence: float,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.PRODUCT_IDENTIFIED,
            user_id=user_id,
            entity_type="product",
            entity_id=product_id,
            description=f"Product identified from image: {clip(product_name)}",
            details={
                "product_name": product_name,
                "confidence": confidence,
                "in_catalog": product_id is not None,
            },
        )

    @staticmethod
    def sale_offered(
        user_id: str,
        product_name: str,
        price: Optional[Decimal],
        origin: str,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SALE_OFFERED,
            user_id=user_id,
            entity_type="product",
            description=f"Awaiting confirmation for sale of {clip(product_name)}",
            details={
                "product_name": product_name,
                "price": str(price) if price is not None else None,
                "origin": origin,
            },
        )

    @staticmethod
    def sale_registered(
        user_id: str,
        ledger_entry_id: str,
        product_name: str,
        price: Decimal,
        profit: Decimal,
        estimated: bool,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SALE_REGISTERED,
            user_id=user_id,
            entity_type="ledger_entry",
            entity_id=ledger_entry_id,
            description=f"Sale registered: {clip(product_name)} - {price}",
            details={
                "product_name": product_name,
                "price": str(price),
                "profit": str(profit),
                "estimated_profit": estimated,
            },
        )

    @staticmethod
    def sale_detail_failed(
        user_id: str,
        ledger_entry_id: str,
        error_message: str,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SALE_DETAIL_FAILED,
            severity=AuditSeverity.WARNING,
            user_id=user_id,
            entity_type="ledger_entry",
            entity_id=ledger_entry_id,
            description="Sale detail row could not be written; ledger entry kept",
            error_message=error_message,
        )

    @staticmethod
    def sale_cancelled(user_id: str, product_name: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SALE_CANCELLED,
            user_id=user_id,
            description=f"User cancelled sale of {clip(product_name)}",
            details={"product_name": product_name},
        )

    @staticmethod
    def correction_applied(
        user_id: str,
        ledger_entry_id: str,
        old_category: str,
        new_category: str,
        user_input: str,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CORRECTION_APPLIED,
            user_id=user_id,
            entity_type="ledger_entry",
            entity_id=ledger_entry_id,
            description=f"Category corrected: {clip(old_category)} -> {clip(new_category)}",
            details={
                "old_category": old_category,
                "new_category": new_category,
                "user_input": user_input,
            },
        )

    @staticmethod
    def context_expired(user_id: str, kind: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CONTEXT_EXPIRED,
            severity=AuditSeverity.DEBUG,
            user_id=user_id,
            description=f"Pending {clip(kind)} context expired",
            details={"kind": kind},
        )

    @staticmethod
    def product_created(user_id: str, product_id: str, name: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.PRODUCT_CREATED,
            user_id=user_id,
            entity_type="product",
            entity_id=product_id,
            description=f"Product created from chat: {clip(name)}",
        )

    @staticmethod
    def storage_error(
        user_id: Optional[str],
        operation: str,
        error_message: str,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.STORAGE_ERROR,
            severity=AuditSeverity.ERROR,
            user_id=user_id,
            description=f"Storage error during {clip(operation)}",
            error_message=error_message,
            details={"operation": operation},
        )
