# src/logging/context.py - v1
"""Contextual logging support: attach category, document_id, operation and
backup_id to log records.
"""

from __future__ import annotations

import contextvars
from dataclasses import dataclass
from typing import Any

# Context variables for structured logging, set per operation.
_category: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "category", default=None
)
_document_id: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "document_id", default=None
)
_operation: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "operation", default=None
)
_backup_id: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "backup_id", default=None
)


@dataclass
class LogContext:
    """Immutable snapshot of current logging context."""

    category: str | None = None
    document_id: str | None = None
    operation: str | None = None
    backup_id: str | None = None

    def as_dict(self) -> dict[str, Any]:
        """Return non-None fields as dict for JSON log injection."""
        return {k: v for k, v in self.__dict__.items() if v is not None}


def get_context() -> LogContext:
    """Snapshot current context variables."""
    return LogContext(
        category=_category.get(),
        document_id=_document_id.get(),
        operation=_operation.get(),
        backup_id=_backup_id.get(),
    )


def set_document_context(category: str, document_id: str, operation: str) -> None:
    """Set document-level context (called per workflow operation)."""
    _category.set(category)
    _document_id.set(document_id)
    _operation.set(operation)


def set_backup_context(operation: str, backup_id: str | None = None) -> None:
    """Set backup-level context (dehydrate / hydrate)."""
    _operation.set(operation)
    _backup_id.set(backup_id)


def clear_context() -> None:
    """Reset all context variables."""
    _category.set(None)
    _document_id.set(None)
    _operation.set(None)
    _backup_id.set(None)
