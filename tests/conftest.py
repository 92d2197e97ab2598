"""
Pytest configuration and fixtures.
"""

from __future__ import annotations

import pytest

from connect_runtime.pipeline import ListPipeline
from tests.fakes import FakeConnection, FakeSubscription


@pytest.fixture
def pipeline() -> ListPipeline:
    """In-memory pipeline collecting emitted events."""
    return ListPipeline()


@pytest.fixture
def connection() -> FakeConnection:
    return FakeConnection()


@pytest.fixture
def subscription() -> FakeSubscription:
    return FakeSubscription()
