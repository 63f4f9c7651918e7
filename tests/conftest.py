"""Pytest configuration and fixtures"""
import os
import pytest
from typing import Any, Dict, List, Optional

# Set test environment variables
os.environ.setdefault("SUPABASE_URL", "https://test.supabase.co")
os.environ.setdefault("SUPABASE_SERVICE_ROLE_KEY", "test_key")
os.environ.setdefault("UPSTASH_REDIS_REST_URL", "https://test.upstash.io")
os.environ.setdefault("UPSTASH_REDIS_REST_TOKEN", "test_token")
os.environ.setdefault("PUBLIC_BASE_URL", "https://cervezas.test")

from storefront.cart import CartStore, ItemDescriptor, MemoryLocalStore, MemoryRemoteCartStore


class FailingLocalStore:
    """Local store whose every operation raises, like a full or disabled storage."""

    def __init__(self):
        self.calls: List[str] = []

    def read(self, key: str) -> Optional[bytes]:
        self.calls.append("read")
        raise OSError("storage disabled")

    def write(self, key: str, data: bytes) -> None:
        self.calls.append("write")
        raise OSError("quota exceeded")

    def delete(self, key: str) -> None:
        self.calls.append("delete")
        raise OSError("storage disabled")


class FailingRemoteStore:
    """Remote store that is unreachable."""

    async def get(self, identity: str):
        raise ConnectionError("remote unreachable")

    async def put(self, identity: str, items) -> None:
        raise ConnectionError("remote unreachable")


class _Result:
    def __init__(self, data):
        self.data = data


class FakeSupabaseTable:
    """Minimal async query builder over a dict of rows keyed by user_id."""

    def __init__(self, rows: Dict[str, Dict[str, Any]], calls: List):
        self.rows = rows
        self.calls = calls
        self._mode: Optional[str] = None
        self._value: Optional[str] = None
        self._payload: Optional[Dict[str, Any]] = None
        self._on_conflict: Optional[str] = None

    def select(self, *_):
        self._mode = "select"
        return self

    def upsert(self, payload: Dict[str, Any], on_conflict: str = ""):
        self._mode = "upsert"
        self._payload = payload
        self._on_conflict = on_conflict
        return self

    def eq(self, _field: str, value: str):
        self._value = value
        return self

    def limit(self, *_):
        return self

    async def execute(self):
        if self._mode == "select":
            row = self.rows.get(self._value)
            return _Result([row] if row else [])
        if self._mode == "upsert":
            self.calls.append((self._on_conflict, dict(self._payload)))
            row = self.rows.setdefault(self._payload["user_id"], {})
            row.update(self._payload)
            return _Result([row])
        return _Result([])


class FakeSupabaseClient:
    def __init__(self, rows: Optional[Dict[str, Dict[str, Any]]] = None):
        self.rows = rows if rows is not None else {}
        self.calls: List = []
        self.tables: List[str] = []

    def table(self, name: str):
        self.tables.append(name)
        return FakeSupabaseTable(self.rows, self.calls)


@pytest.fixture
def local_store():
    """In-memory device storage"""
    return MemoryLocalStore()


@pytest.fixture
def remote_store():
    """In-memory remote cart store"""
    return MemoryRemoteCartStore()


@pytest.fixture
def store(local_store, remote_store):
    """Cart store wired to in-memory local and remote stores"""
    return CartStore(local_store=local_store, remote_store=remote_store)


@pytest.fixture
def notifications(store):
    """Records every items snapshot the store publishes"""
    received: List = []
    store.subscribe(received.append)
    return received


@pytest.fixture
def ipa():
    """Sample beer"""
    return ItemDescriptor(id="ipa-1", name="IPA", price=3490)


@pytest.fixture
def stout():
    """Sample beer"""
    return ItemDescriptor(
        id="cz-stout-002",
        name="Stout Andina 330ml",
        price=3290,
        image="/images/scout330.jpg.jpg",
    )
