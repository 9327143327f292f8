"""
Shared pytest fixtures and configuration for statespine tests.

This module provides:
- Automatic unit/integration markers based on test location
- Settings and logging-context isolation between tests
- A shared call log and subject double for pipeline tests
"""

from pathlib import Path

import pytest

from statespine.core.settings import clear_settings_cache
from statespine.framework.logging import clear_context
from statespine.testing import CallLog, StubSubject


# =============================================================================
# Test Markers Configuration
# =============================================================================


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    """Auto-mark tests based on their location."""
    for item in items:
        test_path = Path(item.fspath).relative_to(Path(__file__).parent)

        if "integration" in str(test_path):
            item.add_marker(pytest.mark.integration)

        markers = {mark.name for mark in item.iter_markers()}
        if not markers.intersection({"unit", "integration"}):
            item.add_marker(pytest.mark.unit)


# =============================================================================
# Isolation Fixtures
# =============================================================================


@pytest.fixture(autouse=True)
def isolated_settings(monkeypatch):
    """Start every test from default settings, ignoring the host environment."""
    for name in ("STATESPINE_LOG_LEVEL", "STATESPINE_LOG_FORMAT", "STATESPINE_USE_TRANSACTIONS"):
        monkeypatch.delenv(name, raising=False)
    clear_settings_cache()
    yield
    clear_settings_cache()


@pytest.fixture(autouse=True)
def isolated_log_context():
    """Clear logging context before and after each test."""
    clear_context()
    yield
    clear_context()


# =============================================================================
# Pipeline Fixtures
# =============================================================================


@pytest.fixture
def log() -> CallLog:
    """Shared call log for doubles."""
    return CallLog()


@pytest.fixture
def subject(log: CallLog) -> StubSubject:
    """Subject double that records into the shared call log."""
    return StubSubject(log=log)
