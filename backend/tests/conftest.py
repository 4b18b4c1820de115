"""Shared test fixtures for all test groups."""

import pytest
from fakeredis import aioredis

from legacy_tokens.core.locking import TokenLock
from legacy_tokens.engine.registry import TokenRegistry
from legacy_tokens.engine.schedule import ScheduleEngine
from legacy_tokens.host.chain import RedisChainHeight
from legacy_tokens.host.ledger import RedisOwnershipLedger


@pytest.fixture
async def redis_client():
    """Create a fake Redis client for testing."""
    client = aioredis.FakeRedis(decode_responses=True)
    yield client
    await client.flushall()
    await client.aclose()


@pytest.fixture
def chain(redis_client):
    """Chain height starting at genesis height 0."""
    return RedisChainHeight(redis_client, genesis_height=0)


@pytest.fixture
def ledger(redis_client):
    return RedisOwnershipLedger(redis_client)


@pytest.fixture
def registry(redis_client, ledger):
    return TokenRegistry(redis_client, ledger)


@pytest.fixture
def token_lock(redis_client):
    """Token lock with a short wait so contention tests stay fast."""
    return TokenLock(redis_client, ttl=5, wait_timeout=0.2, poll_interval=0.01)


@pytest.fixture
def engine(redis_client, registry, chain, token_lock):
    """ScheduleEngine wired to fake Redis host collaborators."""
    return ScheduleEngine(redis_client, registry, chain, lock=token_lock, publish_events=True)
