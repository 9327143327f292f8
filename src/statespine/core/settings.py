"""
Centralized settings for statespine.

One validated, cached settings object holds the process-wide knobs: how
logging is rendered and whether collections open a transaction when the
caller does not say. Values come from ``STATESPINE_*`` environment
variables or a ``.env`` file.

Examples:
    >>> from statespine.core.settings import get_settings
    >>> get_settings().use_transactions
    True

    Disable transactional wrapping for a test run::

        STATESPINE_USE_TRANSACTIONS=false pytest

Tags:
    statespine, configuration, settings, pydantic, caching
"""

from __future__ import annotations

from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class StateSpineSettings(BaseSettings):
    """statespine configuration.

    Fields
    ──────
    log_level         : Structlog/stdlib log level
    log_format        : ``console`` for development, ``json`` for aggregation
    use_transactions  : Default for the ``transaction`` collection option
    """

    model_config = SettingsConfigDict(
        env_prefix="STATESPINE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ── Logging ──────────────────────────────────────────────────
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(default="INFO")
    log_format: Literal["console", "json"] = Field(default="console")

    # ── Transitions ──────────────────────────────────────────────
    use_transactions: bool = Field(
        default=True,
        description="Wrap collections in the subject's transaction unless told otherwise",
    )


# ── Settings factory with caching ────────────────────────────────────────

_settings_cache: StateSpineSettings | None = None


def get_settings(*, _force_reload: bool = False) -> StateSpineSettings:
    """Load, validate, and cache a :class:`StateSpineSettings` instance."""
    global _settings_cache

    if _settings_cache is None or _force_reload:
        _settings_cache = StateSpineSettings()
    return _settings_cache


def clear_settings_cache() -> None:
    """Drop the cached settings so the next call re-reads the environment."""
    global _settings_cache
    _settings_cache = None


__all__ = [
    "StateSpineSettings",
    "get_settings",
    "clear_settings_cache",
]
