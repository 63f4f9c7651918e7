"""
Cart storage backends.

Local stores hold the device-scoped cart payload and are synchronous.
Remote stores hold one cart snapshot per user and are async.

Backends may raise; CartStore absorbs every storage failure.
"""
import os
import tempfile
from datetime import UTC, datetime
from pathlib import Path
from typing import Optional, Protocol, Sequence

from supabase._async.client import AsyncClient
from upstash_redis import Redis

from storefront import db
from storefront.db import TTL, RedisKeys, Tables
from storefront.logging import get_logger, sanitize_id_for_logging

from .models import LineItem, RemoteCartSnapshot

logger = get_logger(__name__)


# ==================== LOCAL STORES ====================

class LocalStore(Protocol):
    """Device-scoped key/value storage for the cart payload."""

    def read(self, key: str) -> Optional[bytes]: ...

    def write(self, key: str, data: bytes) -> None: ...

    def delete(self, key: str) -> None: ...


class MemoryLocalStore:
    """In-process storage for tests and non-interactive contexts."""

    def __init__(self):
        self._data: dict[str, bytes] = {}

    def read(self, key: str) -> Optional[bytes]:
        return self._data.get(key)

    def write(self, key: str, data: bytes) -> None:
        self._data[key] = bytes(data)

    def delete(self, key: str) -> None:
        self._data.pop(key, None)


class FileLocalStore:
    """
    One JSON file per key under a directory.

    Writes go through a temp file and os.replace, so a crash mid-write
    leaves the previous payload intact.
    """

    def __init__(self, directory: str | Path | None = None):
        if directory is None:
            directory = os.environ.get("CART_STORAGE_DIR") or Path.home() / ".storefront"
        self.directory = Path(directory)

    def _path(self, key: str) -> Path:
        return self.directory / f"{key}.json"

    def read(self, key: str) -> Optional[bytes]:
        path = self._path(key)
        if not path.exists():
            return None
        return path.read_bytes()

    def write(self, key: str, data: bytes) -> None:
        self.directory.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(dir=self.directory, prefix=f".{key}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "wb") as fh:
                fh.write(data)
            os.replace(tmp_name, self._path(key))
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise

    def delete(self, key: str) -> None:
        self._path(key).unlink(missing_ok=True)


class RedisLocalStore:
    """
    Device-scoped storage in Upstash Redis.

    Keys are namespaced by device id and expire after TTL.LOCAL_CART.
    """

    def __init__(self, redis: Redis, device_id: str, ttl: int = TTL.LOCAL_CART):
        if not device_id:
            raise ValueError("device_id must be a non-empty string")
        self.redis = redis
        self.device_id = device_id
        self.ttl = ttl

    def read(self, key: str) -> Optional[bytes]:
        data = self.redis.get(RedisKeys.local_cart_key(self.device_id, key))
        if data is None:
            return None
        return data.encode("utf-8") if isinstance(data, str) else bytes(data)

    def write(self, key: str, data: bytes) -> None:
        self.redis.set(
            RedisKeys.local_cart_key(self.device_id, key),
            data.decode("utf-8"),
            ex=self.ttl,
        )

    def delete(self, key: str) -> None:
        self.redis.delete(RedisKeys.local_cart_key(self.device_id, key))


# ==================== REMOTE STORES ====================

class RemoteCartStore(Protocol):
    """Per-user cart snapshots. put() only touches items and updated_at."""

    async def get(self, identity: str) -> Optional[RemoteCartSnapshot]: ...

    async def put(self, identity: str, items: Sequence[LineItem]) -> None: ...


class MemoryRemoteCartStore:
    """Remote store kept in a dict of records, with field-level merge on put."""

    def __init__(self, records: Optional[dict[str, dict]] = None):
        self.records: dict[str, dict] = records if records is not None else {}

    async def get(self, identity: str) -> Optional[RemoteCartSnapshot]:
        record = self.records.get(identity)
        if record is None:
            return None
        return RemoteCartSnapshot.from_record(record)

    async def put(self, identity: str, items: Sequence[LineItem]) -> None:
        record = self.records.setdefault(identity, {})
        record.update({
            "items": [item.to_dict() for item in items],
            "updated_at": datetime.now(UTC).isoformat(),
        })


class SupabaseRemoteCartStore:
    """
    Remote carts in the Supabase ``carts`` table.

    Schema: carts(user_id text primary key, items jsonb, updated_at timestamptz).
    Upserts send only items/updated_at, so other columns on the row survive.
    """

    def __init__(self, client: AsyncClient, table: str = Tables.CARTS):
        self.client = client
        self.table = table

    async def get(self, identity: str) -> Optional[RemoteCartSnapshot]:
        result = await (
            self.client.table(self.table)
            .select("items, updated_at")
            .eq("user_id", identity)
            .limit(1)
            .execute()
        )
        if not result.data:
            return None

        snapshot = RemoteCartSnapshot.from_record(result.data[0])
        if snapshot is None:
            logger.warning(f"Malformed remote cart for user {sanitize_id_for_logging(identity)}")
        return snapshot

    async def put(self, identity: str, items: Sequence[LineItem]) -> None:
        await (
            self.client.table(self.table)
            .upsert(
                {
                    "user_id": identity,
                    "items": [item.to_dict() for item in items],
                    "updated_at": datetime.now(UTC).isoformat(),
                },
                on_conflict="user_id",
            )
            .execute()
        )


# ==================== FACTORIES ====================

def get_redis_local_store(device_id: str) -> RedisLocalStore:
    """Device-scoped local store on the shared Upstash client."""
    return RedisLocalStore(db.get_redis_sync(), device_id=device_id)


async def get_remote_cart_store() -> SupabaseRemoteCartStore:
    """Remote cart store on the shared async Supabase client."""
    return SupabaseRemoteCartStore(await db.get_supabase())
