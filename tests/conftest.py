"""Pytest configuration and shared fixtures."""

from datetime import UTC, datetime

import pytest

from src.core.clock import FixedClock


@pytest.fixture
def clock() -> FixedClock:
    """A clock frozen at Wednesday 2026-10-14 09:00 UTC."""
    return FixedClock(datetime(2026, 10, 14, 9, 0, tzinfo=UTC))
