"""Shared pytest configuration and fixtures."""

import os
import uuid

import pytest


def pytest_configure(config: pytest.Config) -> None:
    """Register custom markers."""
    config.addinivalue_line("markers", "integration: marks tests requiring a live PostgreSQL")


def pytest_collection_modifyitems(config: pytest.Config, items: list) -> None:
    """Skip integration tests unless a test database is configured."""
    if os.environ.get("DOCSEARCH_TEST_POSTGRES_DSN"):
        return
    skip = pytest.mark.skip(reason="DOCSEARCH_TEST_POSTGRES_DSN not set")
    for item in items:
        if "integration" in item.keywords:
            item.add_marker(skip)


@pytest.fixture
def user_id() -> uuid.UUID:
    return uuid.UUID("11111111-2222-3333-4444-555555555555")
