"""
Shared pytest fixtures for user delete detector tests.

Provides reusable fixtures for:
- Redis test double and failure injection
- Both Registration Store implementations (parametrized)
- Identity provider and on-deleted callback doubles

The doubles themselves live in tests/doubles.py so test modules can
construct configured instances directly.
"""

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from registry.store import MemoryRegistrationStore, RedisRegistrationStore
from tests.doubles import FakeRedisAsync, RecordingCallback, StubIdentityProvider


@pytest.fixture
def fake_redis():
    """Fresh FakeRedisAsync instance."""
    return FakeRedisAsync()


@pytest.fixture
def redis_connection_error():
    """A redis-py connection error instance for failure injection."""
    return RedisConnectionError("Connection refused")


@pytest.fixture(params=["redis", "memory"])
def store(request, fake_redis):
    """Each Registration Store implementation, run through the same tests."""
    if request.param == "redis":
        return RedisRegistrationStore(fake_redis, "test:del-det")
    return MemoryRegistrationStore()


@pytest.fixture
def identity_provider():
    """Identity provider that reports every account as deleted until configured."""
    return StubIdentityProvider()


@pytest.fixture
def on_deleted():
    """Callback that always succeeds."""
    return RecordingCallback()
