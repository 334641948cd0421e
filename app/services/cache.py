"""
Redis query cache

Read-through cache for budget and plan queries with explicit invalidation.
Degrades gracefully: when caching is disabled or Redis is unreachable every
read misses and writes/invalidations are no-ops.
"""
import json
import logging
from typing import Any, List, Optional

import redis.asyncio as redis
from redis.exceptions import RedisError

from app.core.config import settings

logger = logging.getLogger(__name__)

BUDGETS_KEY = "budgets"
PLAN_KEY_PREFIXES = ("workout-plans", "nutrition-plans", "steps-plans", "supplement-plans")


def budget_key(budget_id: str) -> str:
    return f"budget:{budget_id}"


def client_key(prefix: str, customer_id: Optional[str], lead_id: Optional[str]) -> str:
    """Key for per-client data, e.g. ``plans-history:<customer>:<lead>``."""
    return f"{prefix}:{customer_id or ''}:{lead_id or ''}"


def plans_history_key(customer_id: Optional[str], lead_id: Optional[str]) -> str:
    return client_key("plans-history", customer_id, lead_id)


def assignments_key(customer_id: Optional[str], lead_id: Optional[str]) -> str:
    return client_key("budget-assignments", customer_id, lead_id)


def _client_variants(customer_id: Optional[str], lead_id: Optional[str]) -> List[tuple]:
    # A lead linked to a customer may be looked up by either id or both
    variants = [(customer_id, lead_id)]
    if customer_id and lead_id:
        variants += [(customer_id, None), (None, lead_id)]
    return variants


def client_plan_keys(customer_id: Optional[str], lead_id: Optional[str]) -> List[str]:
    """Every plan and history key of one client."""
    keys = []
    for customer, lead in _client_variants(customer_id, lead_id):
        keys.extend(client_key(prefix, customer, lead) for prefix in PLAN_KEY_PREFIXES)
        keys.append(plans_history_key(customer, lead))
    return keys


def client_assignment_keys(customer_id: Optional[str], lead_id: Optional[str]) -> List[str]:
    return [assignments_key(customer, lead) for customer, lead in _client_variants(customer_id, lead_id)]


class CacheService:
    """Key-addressed JSON cache with TTL, backed by Redis."""

    def __init__(self, client: Optional[redis.Redis] = None, enabled: Optional[bool] = None):
        self._client = client
        self.enabled = settings.CACHE_ENABLED if enabled is None else enabled

    def _get_client(self) -> Optional[redis.Redis]:
        if not self.enabled:
            return None
        if self._client is None:
            self._client = redis.from_url(
                settings.REDIS_URL,
                decode_responses=True,
                socket_connect_timeout=2,
                socket_timeout=2,
            )
            logger.info("Redis cache client created")
        return self._client

    async def get(self, key: str) -> Optional[Any]:
        """Get value from cache. Returns None if not found or Redis unavailable."""
        client = self._get_client()
        if not client:
            return None

        try:
            value = await client.get(key)
            if value:
                return json.loads(value)
            return None
        except (RedisError, OSError) as e:
            logger.warning(f"Cache get error for key {key}: {e}")
            return None

    async def set(self, key: str, value: Any, ttl: Optional[int] = None) -> bool:
        """Set value in cache. Returns True if successful, False otherwise."""
        client = self._get_client()
        if not client:
            return False

        try:
            await client.setex(
                key,
                ttl or settings.CACHE_TTL_DEFAULT,
                json.dumps(value, default=str)  # default=str handles datetime values
            )
            return True
        except (RedisError, OSError) as e:
            logger.warning(f"Cache set error for key {key}: {e}")
            return False

    async def invalidate(self, *keys: str) -> int:
        """Delete the given keys. Returns count of deleted keys."""
        client = self._get_client()
        if not client or not keys:
            return 0

        try:
            return await client.delete(*keys)
        except (RedisError, OSError) as e:
            logger.warning(f"Cache delete error for keys {keys}: {e}")
            return 0

    async def invalidate_prefix(self, prefix: str) -> int:
        """Delete every key starting with prefix. Returns count of deleted keys."""
        client = self._get_client()
        if not client:
            return 0

        try:
            keys = [key async for key in client.scan_iter(match=f"{prefix}*")]
            if keys:
                return await client.delete(*keys)
            return 0
        except (RedisError, OSError) as e:
            logger.warning(f"Cache invalidation error for prefix {prefix}: {e}")
            return 0

    async def close(self):
        if self._client is not None:
            await self._client.aclose()
            self._client = None


cache_service = CacheService()
