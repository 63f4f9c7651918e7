"""
Database Module - Supabase and Redis Clients

Provides singleton instances of:
- Async Supabase client for the remote per-user cart table
- Sync Upstash Redis client for device-scoped carts and cart events
"""

import os
from typing import Optional

from supabase._async.client import AsyncClient, create_client as acreate_client
from upstash_redis import Redis


# Environment variables (Upstash uses REST_URL and REST_TOKEN)
SUPABASE_URL = os.environ.get("SUPABASE_URL", "")
SUPABASE_SERVICE_ROLE_KEY = os.environ.get("SUPABASE_SERVICE_ROLE_KEY", "")

UPSTASH_REDIS_REST_URL = os.environ.get("UPSTASH_REDIS_REST_URL", "")
UPSTASH_REDIS_REST_TOKEN = os.environ.get("UPSTASH_REDIS_REST_TOKEN", "")


# Singleton instances
_async_supabase_client: Optional[AsyncClient] = None
_sync_redis_client: Optional[Redis] = None


async def get_supabase() -> AsyncClient:
    """
    Get async Supabase client (singleton).
    Used by the remote cart store.
    """
    global _async_supabase_client

    if _async_supabase_client is None:
        if not SUPABASE_URL or not SUPABASE_SERVICE_ROLE_KEY:
            raise ValueError("SUPABASE_URL and SUPABASE_SERVICE_ROLE_KEY must be set")
        _async_supabase_client = await acreate_client(SUPABASE_URL, SUPABASE_SERVICE_ROLE_KEY)

    return _async_supabase_client


def get_redis_sync() -> Redis:
    """
    Get sync Upstash Redis client (singleton).

    Cart persistence is synchronous, so only the sync client is used:
    - Device-scoped cart payloads
    - cart.updated event streams
    """
    global _sync_redis_client

    if _sync_redis_client is None:
        if not UPSTASH_REDIS_REST_URL or not UPSTASH_REDIS_REST_TOKEN:
            raise ValueError("UPSTASH_REDIS_REST_URL and UPSTASH_REDIS_REST_TOKEN must be set")
        _sync_redis_client = Redis(url=UPSTASH_REDIS_REST_URL, token=UPSTASH_REDIS_REST_TOKEN)

    return _sync_redis_client


# Redis key prefixes for organization
class RedisKeys:
    """Redis key prefixes for different data types."""

    # Device-scoped cart storage
    LOCAL_CART = "cart:local:"  # cart:local:{device_id}:{key}

    # Cross-tab cart events (Redis Stream)
    CART_EVENTS = "stream:realtime:cart:"  # stream:realtime:cart:{channel}

    @staticmethod
    def local_cart_key(device_id: str, key: str) -> str:
        return f"{RedisKeys.LOCAL_CART}{device_id}:{key}"

    @staticmethod
    def cart_events_key(channel: str) -> str:
        return f"{RedisKeys.CART_EVENTS}{channel}"


# TTL constants (in seconds)
class TTL:
    """Time-to-live constants for Redis keys."""

    LOCAL_CART = 2592000  # 30 days, abandoned device carts expire
    CART_EVENTS_MAXLEN = 100  # stream entries kept per channel


# Remote table names
class Tables:
    CARTS = "carts"
