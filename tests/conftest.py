"""Shared fixtures for agenda_lite tests."""

from collections.abc import Generator
from datetime import datetime
from typing import Any

import pytest

from tests.fixtures.agenda_data import FakeItemStore, FakeViewport, utc


def pytest_configure(config: Any) -> None:
    """Register test markers."""
    config.addinivalue_line("markers", "unit: Fast unit tests")
    config.addinivalue_line("markers", "integration: Engine-level tests across modules")


@pytest.fixture
def viewport() -> FakeViewport:
    return FakeViewport()


@pytest.fixture
def item_store() -> FakeItemStore:
    return FakeItemStore()


@pytest.fixture
def frozen_now() -> datetime:
    """Deterministic "now" used for expansion horizons."""
    return utc(2025, 3, 1, 8, 0)


@pytest.fixture(autouse=True)
def clean_test_environment(monkeypatch: Any) -> Generator[None, Any, None]:
    """Clear AGENDA_* variables that change engine behaviour between tests.

    Some tests set AGENDA_TEST_TIME to freeze "now"; this keeps that from
    leaking into the next test.
    """
    for key in (
        "AGENDA_TEST_TIME",
        "AGENDA_DEBUG",
        "AGENDA_LOG_LEVEL",
        "AGENDA_DEFAULT_TIMEZONE",
        "AGENDA_HORIZON_MONTHS",
        "AGENDA_MAX_OCCURRENCES",
        "AGENDA_SCROLL_SETTLE_MS",
        "AGENDA_RENDER_WAIT_MS",
        "AGENDA_NEUTRAL_DUE_TIME",
        "AGENDA_UPCOMING_OFFSET_DAYS",
    ):
        monkeypatch.delenv(key, raising=False)
    yield
