"""
statespine logging - structured, execution-aware logging.

This module provides:
- Structured logging with structlog
- Collection/phase context propagation via contextvars
- Timing utilities for perform durations
- Settings-based configuration

Usage:
    from statespine.framework.logging import configure_logging, get_logger

    # Configure once at startup
    configure_logging()

    log = get_logger(__name__)
    log.info("vehicle.ignited", vin="1HGCM82633A004352")
"""

from statespine.framework.logging.config import configure_logging, is_configured, is_debug_enabled
from statespine.framework.logging.context import (
    LogContext,
    bind_context,
    clear_context,
    get_context,
    get_logger,
    new_collection_id,
    push_context,
)
from statespine.framework.logging.timing import TimingResult, timed_block

__all__ = [
    # Configuration
    "configure_logging",
    "is_configured",
    "is_debug_enabled",
    # Context
    "get_logger",
    "get_context",
    "bind_context",
    "clear_context",
    "push_context",
    "new_collection_id",
    "LogContext",
    # Timing
    "timed_block",
    "TimingResult",
]
