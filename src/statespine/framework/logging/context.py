"""
Logging context management using contextvars.

This module provides execution-aware context that automatically attaches
to all log entries. While a collection is performing, its identifier and the
current phase are pushed here so hook and action logs emitted by user code
carry them too, without passing anything around.

Design choice: contextvars
- Thread-safe and asyncio-compatible
- No need to pass context through every hook
- Clean integration with structlog processors
"""

import uuid
from collections.abc import Iterable
from contextvars import ContextVar, Token
from dataclasses import asdict, dataclass
from typing import Any

import structlog


def new_collection_id() -> str:
    """Generate a short collection ID (8 hex chars)."""
    return uuid.uuid4().hex[:8]


@dataclass
class LogContext:
    """
    Execution context attached to all log entries.

    Collection identity:
        collection_id: Identifier of the collection being performed
        collection: Collection class name

    Transition context (set when the collection holds one transition):
        machine: Machine name
        attribute: Attribute being transitioned
        event: Event that produced the transition

    Pipeline context:
        phase: Current pipeline phase
    """

    collection_id: str | None = None
    collection: str | None = None

    machine: str | None = None
    attribute: str | None = None
    event: str | None = None

    phase: str | None = None

    def to_dict(self) -> dict[str, Any]:
        """Return non-None fields as dict."""
        return {k: v for k, v in asdict(self).items() if v is not None}

    def merge(self, **kwargs) -> "LogContext":
        """Create new context with merged values."""
        current = asdict(self)
        current.update({k: v for k, v in kwargs.items() if v is not None and k in current})
        return LogContext(**current)

    def without(self, *keys: str) -> "LogContext":
        """Create new context with the given fields reset to None."""
        current = asdict(self)
        current.update({k: None for k in keys if k in current})
        return LogContext(**current)


_log_context: ContextVar[LogContext] = ContextVar("statespine_log_context")  # noqa: B039


def get_context() -> LogContext:
    """Get the current log context."""
    return _log_context.get(LogContext())


def bind_context(**kwargs) -> LogContext:
    """
    Bind additional values to current context.

    This merges with the existing context rather than replacing it.
    """
    updated = get_context().merge(**kwargs)
    _log_context.set(updated)
    return updated


def clear_context() -> None:
    """Clear the current context (reset to empty)."""
    _log_context.set(LogContext())


class _ContextToken:
    """Token for restoring context after a scoped operation."""

    def __init__(self, token: Token):
        self._token = token

    def restore(self) -> None:
        """Restore the previous context."""
        _log_context.reset(self._token)


def push_context(*, unset: Iterable[str] = (), **kwargs) -> _ContextToken:
    """
    Push new context values, returning a token to restore later.

    Fields named in ``unset`` are cleared before merging, so a nested
    scope does not inherit them from the enclosing one.

    Usage:
        token = push_context(phase="actions")
        try:
            run_actions()
        finally:
            token.restore()
    """
    updated = get_context().without(*unset).merge(**kwargs)
    return _ContextToken(_log_context.set(updated))


def add_context_processor(
    logger: Any,
    method_name: str,
    event_dict: dict[str, Any],
) -> dict[str, Any]:
    """
    Structlog processor that adds execution context to every log entry.

    Explicit keys on the log call win over context values.
    """
    for key, value in get_context().to_dict().items():
        if key not in event_dict:
            event_dict[key] = value

    return event_dict


def get_logger(name: str | None = None) -> Any:
    """
    Get a structured logger.

    Args:
        name: Logger name (typically __name__)
    """
    return structlog.get_logger(name)
