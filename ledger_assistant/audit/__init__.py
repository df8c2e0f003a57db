"""Audit logging package."""

from ledger_assistant.audit.logger import AuditLogger

__all__ = ["AuditLogger"]
