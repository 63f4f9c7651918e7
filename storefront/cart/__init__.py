"""Cart package: models, storage backends, store and session lifecycle."""
from .models import CartSyncState, ItemDescriptor, LineItem, RemoteCartSnapshot
from .session import cart_session, sign_in, sign_out
from .storage import (
    FileLocalStore,
    LocalStore,
    MemoryLocalStore,
    MemoryRemoteCartStore,
    RedisLocalStore,
    RemoteCartStore,
    SupabaseRemoteCartStore,
    get_redis_local_store,
    get_remote_cart_store,
)
from .store import CART_STORAGE_KEY, CartStore, merge_items

__all__ = [
    "CART_STORAGE_KEY",
    "CartStore",
    "CartSyncState",
    "FileLocalStore",
    "ItemDescriptor",
    "LineItem",
    "LocalStore",
    "MemoryLocalStore",
    "MemoryRemoteCartStore",
    "RedisLocalStore",
    "RemoteCartSnapshot",
    "RemoteCartStore",
    "SupabaseRemoteCartStore",
    "cart_session",
    "get_redis_local_store",
    "get_remote_cart_store",
    "merge_items",
    "sign_in",
    "sign_out",
]
