"""
Data Models Package

This package contains all Pydantic models used in the Ledger Assistant.
All data flowing between the sales engine and storage conforms to these.
"""

from ledger_assistant.models.ledger import (
    MAX_PRODUCT_NAME_LENGTH,
    CatalogEntry,
    ImageRecognition,
    LedgerCategory,
    LedgerEntry,
    LedgerKind,
    MatchCandidate,
    MessageAnalysis,
    SaleDetail,
    SaleRecord,
    money,
    utcnow,
)
from ledger_assistant.models.context import (
    CorrectionContext,
    ImageSaleContext,
    PendingContext,
    SaleOrigin,
    TransactionRef,
)
from ledger_assistant.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Ledger models
    "MAX_PRODUCT_NAME_LENGTH",
    "CatalogEntry",
    "ImageRecognition",
    "LedgerCategory",
    "LedgerEntry",
    "LedgerKind",
    "MatchCandidate",
    "MessageAnalysis",
    "SaleDetail",
    "SaleRecord",
    "money",
    "utcnow",
    # Context models
    "CorrectionContext",
    "ImageSaleContext",
    "PendingContext",
    "SaleOrigin",
    "TransactionRef",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
