"""
Unit tests for the Redis query cache, with the Redis client mocked out.
"""

import json
from unittest.mock import AsyncMock, MagicMock

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from app.services.cache import (
    CacheService,
    budget_key,
    client_assignment_keys,
    client_plan_keys,
    plans_history_key,
)


def _redis_mock():
    client = MagicMock()
    client.get = AsyncMock()
    client.setex = AsyncMock()
    client.delete = AsyncMock(return_value=1)
    client.aclose = AsyncMock()
    return client


def test_client_plan_keys_cover_every_lookup_form():
    keys = client_plan_keys("cust-1", "lead-1")

    assert "workout-plans:cust-1:lead-1" in keys
    assert "supplement-plans:cust-1:" in keys
    assert "nutrition-plans::lead-1" in keys
    assert plans_history_key(None, "lead-1") in keys
    assert len(keys) == 15


def test_client_keys_single_id():
    assert client_plan_keys("cust-1", None) == [
        "workout-plans:cust-1:",
        "nutrition-plans:cust-1:",
        "steps-plans:cust-1:",
        "supplement-plans:cust-1:",
        "plans-history:cust-1:",
    ]
    assert client_assignment_keys(None, "lead-1") == ["budget-assignments::lead-1"]


@pytest.mark.asyncio
async def test_disabled_cache_is_a_no_op():
    client = _redis_mock()
    cache = CacheService(client=client, enabled=False)

    assert await cache.get("key") is None
    assert await cache.set("key", {"a": 1}) is False
    assert await cache.invalidate("key") == 0
    client.get.assert_not_called()


@pytest.mark.asyncio
async def test_get_and_set_round_trip_json():
    client = _redis_mock()
    client.get.return_value = json.dumps({"id": "b1"})
    cache = CacheService(client=client, enabled=True)

    assert await cache.set(budget_key("b1"), {"id": "b1"}, ttl=60) is True
    client.setex.assert_awaited_once_with("budget:b1", 60, json.dumps({"id": "b1"}))
    assert await cache.get(budget_key("b1")) == {"id": "b1"}


@pytest.mark.asyncio
async def test_redis_errors_degrade_to_miss():
    client = _redis_mock()
    client.get.side_effect = RedisConnectionError("down")
    client.setex.side_effect = RedisConnectionError("down")
    client.delete.side_effect = RedisConnectionError("down")
    cache = CacheService(client=client, enabled=True)

    assert await cache.get("key") is None
    assert await cache.set("key", 1) is False
    assert await cache.invalidate("key") == 0


@pytest.mark.asyncio
async def test_invalidate_prefix_deletes_matching_keys():
    client = _redis_mock()

    async def scan_iter(match):
        assert match == "budgets*"
        for key in ("budgets:coach-1::1:20", "budgets:coach-2::1:20"):
            yield key

    client.scan_iter = scan_iter
    client.delete.return_value = 2
    cache = CacheService(client=client, enabled=True)

    assert await cache.invalidate_prefix("budgets") == 2
    client.delete.assert_awaited_once_with("budgets:coach-1::1:20", "budgets:coach-2::1:20")


@pytest.mark.asyncio
async def test_close_releases_client():
    client = _redis_mock()
    cache = CacheService(client=client, enabled=True)

    await cache.close()

    client.aclose.assert_awaited_once()
