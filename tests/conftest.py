"""Pytest configuration and shared fixtures."""

import pytest  # type: ignore[import-not-found]

from spent_time.core.storage import MemoryStorage
from spent_time.core.store import DataStore


def pytest_configure(config: pytest.Config) -> None:
    """Configure pytest."""
    config.addinivalue_line("markers", "integration: Integration tests")
    config.addinivalue_line("markers", "slow: Slow tests")


@pytest.fixture
def memory_storage() -> MemoryStorage:
    """Create an empty in-memory storage slot."""
    return MemoryStorage()


@pytest.fixture
def store(memory_storage: MemoryStorage) -> DataStore:
    """Create a store backed by in-memory storage."""
    return DataStore(memory_storage)
