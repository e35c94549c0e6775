"""Shared fixtures for the SmartFi tests."""

from datetime import datetime, timedelta

import pytest

from tests.factories import NOW


@pytest.fixture
def now() -> datetime:
    return NOW


@pytest.fixture
def yesterday() -> datetime:
    return NOW - timedelta(days=1)
