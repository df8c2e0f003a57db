"""
Sales Identification & Confirmation Engine

Matches product references against a user's catalog, holds the one
pending action per user, and turns confirmed sales into ledger rows.
"""

from ledger_assistant.sales.catalog import CatalogService, SalesReportService
from ledger_assistant.sales.confirmation import SaleConfirmationEngine, parse_price
from ledger_assistant.sales.context_store import ContextStore, InMemoryContextStore
from ledger_assistant.sales.correction import CorrectionResolver
from ledger_assistant.sales.dispatcher import Route, RouteKind, SalesDispatcher, classify
from ledger_assistant.sales.matcher import match, similarity, suggest
from ledger_assistant.sales.registration import (
    SaleRegistrationService,
    SaleValidationError,
    compute_profit,
)

__all__ = [
    # Matching
    "match",
    "similarity",
    "suggest",
    # Pending state
    "ContextStore",
    "InMemoryContextStore",
    # Handlers
    "CatalogService",
    "CorrectionResolver",
    "SaleConfirmationEngine",
    "SaleRegistrationService",
    "SalesReportService",
    "parse_price",
    "compute_profit",
    # Routing
    "Route",
    "RouteKind",
    "SalesDispatcher",
    "classify",
    # Errors
    "SaleValidationError",
]
