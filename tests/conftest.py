"""
Shared pytest fixtures and configuration for Scrollfeed tests.

This module provides common fixtures used across unit and integration tests,
including mocked boto3 clients, a LocalStack client, seeded in-memory stores
and a controllable clock.
"""

import os
from typing import TYPE_CHECKING, Any
from unittest.mock import MagicMock

import boto3
import pytest

from scrollfeed import CacheOptions, PaginatedCollectionView, QueryCache
from tests.helpers.factories import (
    CountingStore,
    FakeClock,
    make_article,
    make_question,
    make_video,
)

if TYPE_CHECKING:
    from tests.helpers.localstack import LocalStackHelper


def pytest_configure(config):
    """Configure pytest markers."""
    config.addinivalue_line("markers", "unit: Unit tests with mocked dependencies")
    config.addinivalue_line("markers", "integration: Integration tests against LocalStack")
    config.addinivalue_line("markers", "slow: Slow tests that may take longer")


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def article_rows() -> list[dict[str, Any]]:
    """25 published articles, 13 of them in 'Tarih'."""
    return [make_article(n) for n in range(25)]


@pytest.fixture
def store(article_rows) -> CountingStore:
    """
    CountingStore seeded with 25 articles, 5 videos and 3 questions.
    """
    return CountingStore(
        {
            "articles": article_rows,
            "videos": [make_video(n) for n in range(5)],
            "questions": [make_question(n) for n in range(3)],
        }
    )


@pytest.fixture
def cache(clock) -> QueryCache:
    return QueryCache(CacheOptions(stale_time=300, gc_time=1800), clock=clock)


@pytest.fixture
def view(store, cache) -> PaginatedCollectionView:
    return PaginatedCollectionView(store, cache=cache)


@pytest.fixture
def mock_client():
    """
    Creates a fully mocked boto3 DynamoDB client.

    This fixture provides a mock client for unit tests that don't need
    real DynamoDB interactions.
    """
    client = MagicMock()
    client.get_paginator.return_value = MagicMock()
    return client


# Integration Test Fixtures


@pytest.fixture(scope="session")
def localstack_endpoint() -> str:
    """Get LocalStack endpoint URL from environment or default."""
    return os.getenv("LOCALSTACK_ENDPOINT", "http://localhost:4566")


@pytest.fixture(scope="session")
def localstack_helper(localstack_endpoint: str) -> "LocalStackHelper":
    """Provides a LocalStackHelper instance; skips when LocalStack is not running."""
    from tests.helpers.localstack import LocalStackHelper

    helper = LocalStackHelper(endpoint_url=localstack_endpoint)
    if not helper.is_available():
        pytest.skip(f"LocalStack not reachable at {localstack_endpoint}")
    return helper


@pytest.fixture
def localstack_client(localstack_helper):
    """boto3 DynamoDB client connected to LocalStack."""
    return localstack_helper.client
