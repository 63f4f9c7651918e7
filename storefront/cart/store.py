"""
Cart Store - in-memory cart with local persistence and remote merge.

The in-memory items are authoritative for the session. The local store
and the remote store are mirrors:

- every mutation writes the local store synchronously (best-effort)
- merge_remote() folds the remote snapshot in with additive quantities
- sync() overwrites the remote items with the in-memory ones

Storage failures never reach the caller; they are logged and absorbed.
"""
from decimal import Decimal
from typing import Callable, Optional

from storefront.errors import ERROR_INVALID_QUANTITY
from storefront.logging import get_logger, sanitize_id_for_logging

from .models import (
    CartSyncState,
    ItemDescriptor,
    LineItem,
    deserialize_items,
    serialize_items,
)
from .storage import LocalStore, RemoteCartStore

logger = get_logger(__name__)

CART_STORAGE_KEY = "cart"

CartItems = tuple[LineItem, ...]
Subscriber = Callable[[CartItems], None]


class CartStore:
    """
    Shopping cart owned by a single UI control flow.

    No internal locking: callers serialize their own calls. merge_remote()
    and sync() suspend once on the remote store; the cart stays readable
    and mutable meanwhile.
    """

    def __init__(
        self,
        local_store: Optional[LocalStore] = None,
        remote_store: Optional[RemoteCartStore] = None,
        storage_key: str = CART_STORAGE_KEY,
    ):
        self.local_store = local_store
        self.remote_store = remote_store
        self.storage_key = storage_key
        self._items: CartItems = ()
        self._identity: Optional[str] = None
        self._state = CartSyncState.DETACHED
        self._subscribers: list[Subscriber] = []

    # ==================== READ ACCESS ====================

    @property
    def items(self) -> CartItems:
        """Immutable snapshot of the current line items."""
        return self._items

    @property
    def identity(self) -> Optional[str]:
        return self._identity

    @property
    def state(self) -> CartSyncState:
        return self._state

    def get(self, item_id: str) -> Optional[LineItem]:
        return next((item for item in self._items if item.id == item_id), None)

    def total(self) -> Decimal:
        """Sum of price x qty over all line items, unrounded."""
        return sum((item.total_price for item in self._items), Decimal("0"))

    @property
    def total_items(self) -> int:
        """Number of units across all lines."""
        return sum(item.qty for item in self._items)

    # ==================== SUBSCRIPTIONS ====================

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        """
        Register a callback invoked with the new items after every mutation.

        Returns:
            Function that removes the subscription (safe to call twice)
        """
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    def unsubscribe_all(self) -> None:
        self._subscribers.clear()

    def _notify(self) -> None:
        items = self._items
        # Iterate over a copy: callbacks registered now wait for the next change
        for callback in list(self._subscribers):
            try:
                callback(items)
            except Exception as e:
                logger.warning(f"Cart subscriber {callback!r} failed: {e}", exc_info=True)

    # ==================== LOCAL PERSISTENCE ====================

    def _load_local(self) -> CartItems:
        if self.local_store is None:
            return ()
        try:
            raw = self.local_store.read(self.storage_key)
        except Exception as e:
            logger.warning(f"Local cart read failed: {e}", exc_info=True)
            return ()
        if not raw:
            return ()
        try:
            return deserialize_items(raw)
        except (ValueError, RecursionError) as e:
            logger.warning(f"Corrupted local cart, starting empty: {e}")
            return ()

    def _persist_local(self) -> None:
        if self.local_store is None:
            return
        try:
            if self._items:
                self.local_store.write(self.storage_key, serialize_items(self._items))
            else:
                self.local_store.delete(self.storage_key)
        except Exception as e:
            logger.warning(f"Local cart write failed: {e}", exc_info=True)

    def _commit(self, items: CartItems) -> None:
        """Replace items, persist locally, then notify."""
        self._items = items
        if self._state == CartSyncState.SYNCED:
            self._state = CartSyncState.MERGED
        self._persist_local()
        self._notify()

    # ==================== MUTATIONS ====================

    def hydrate(self) -> CartItems:
        """Load the cart from the local store, replacing in-memory state."""
        self._items = self._load_local()
        logger.debug(f"Cart hydrated with {len(self._items)} line(s)")
        self._notify()
        return self._items

    def add(self, item: ItemDescriptor, quantity: int = 1) -> CartItems:
        """
        Add units of a product.

        Existing lines keep their metadata and grow by ``quantity``;
        new products are appended.

        Raises:
            ValueError: if quantity is not a positive integer
        """
        if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity < 1:
            raise ValueError(ERROR_INVALID_QUANTITY)

        existing = self.get(item.id)
        if existing is not None:
            items = tuple(
                line.with_qty(line.qty + quantity) if line.id == item.id else line
                for line in self._items
            )
        else:
            items = self._items + (LineItem.from_descriptor(item, quantity),)

        self._commit(items)
        return self._items

    def set_quantity(self, item_id: str, quantity: int) -> CartItems:
        """
        Replace a line's quantity; quantity <= 0 removes the line.

        Raises:
            ValueError: if quantity is not an integer
        """
        if isinstance(quantity, bool) or not isinstance(quantity, int):
            raise ValueError(ERROR_INVALID_QUANTITY)
        if quantity <= 0:
            items = tuple(line for line in self._items if line.id != item_id)
        else:
            items = tuple(
                line.with_qty(quantity) if line.id == item_id else line
                for line in self._items
            )
        self._commit(items)
        return self._items

    def remove(self, item_id: str) -> CartItems:
        """Remove a line if present."""
        self._commit(tuple(line for line in self._items if line.id != item_id))
        return self._items

    def clear(self) -> CartItems:
        """Empty the cart and delete the stored payload."""
        self._commit(())
        return self._items

    # ==================== REMOTE ====================

    def attach(self, identity: Optional[str]) -> None:
        """
        Associate a user identity, or detach with None.

        Never merges or syncs by itself: on sign-in call attach(uid) and
        then merge_remote().
        """
        self._identity = identity or None
        self._state = CartSyncState.ATTACHED if self._identity else CartSyncState.DETACHED
        logger.debug(f"Cart attached to user {sanitize_id_for_logging(self._identity)}")

    async def merge_remote(self) -> bool:
        """
        Merge the attached user's remote snapshot into the cart.

        Quantities add up per identity; name, price and image come from the
        remote line when both sides hold the product. Calling this twice
        without a sync() in between counts the remote quantities twice.

        Returns:
            True if a remote snapshot was merged
        """
        identity = self._identity
        if identity is None or self.remote_store is None:
            logger.debug("merge_remote skipped: no identity attached")
            return False

        if self._state == CartSyncState.MERGED:
            logger.warning(
                f"Merging remote cart again for user {sanitize_id_for_logging(identity)} "
                "before sync; remote quantities will be counted twice"
            )

        try:
            snapshot = await self.remote_store.get(identity)
        except Exception as e:
            logger.warning(f"Remote cart fetch failed: {e}", exc_info=True)
            return False

        if snapshot is None:
            return False
        if identity != self._identity:
            # Identity changed while the fetch was suspended
            logger.info("Discarding remote cart fetched for a detached identity")
            return False

        # Read local items only now so additions made during the fetch are kept
        self._state = CartSyncState.MERGED
        self._commit(merge_items(self._items, snapshot.items))
        logger.info(
            f"Merged remote cart for user {sanitize_id_for_logging(identity)}: "
            f"{len(snapshot.items)} remote line(s), {len(self._items)} after merge"
        )
        return True

    async def sync(self) -> bool:
        """
        Overwrite the attached user's remote items with the current cart.

        Returns:
            True if the remote write succeeded
        """
        identity = self._identity
        if identity is None or self.remote_store is None:
            logger.debug("sync skipped: no identity attached")
            return False

        items = self._items
        try:
            await self.remote_store.put(identity, items)
        except Exception as e:
            logger.warning(f"Remote cart sync failed: {e}", exc_info=True)
            return False

        # Only mark synced if nothing changed while the write was in flight
        if identity == self._identity and items == self._items:
            self._state = CartSyncState.SYNCED
        return True


def merge_items(local: CartItems, remote: CartItems) -> CartItems:
    """
    Identity union with additive quantities and remote-preferred metadata.

    Local lines keep their order; remote-only lines follow in remote order.
    """
    remote_by_id = {item.id: item for item in remote}
    merged: list[LineItem] = []
    seen: set[str] = set()

    for line in local:
        other = remote_by_id.get(line.id)
        if other is None:
            merged.append(line)
        else:
            merged.append(other.with_qty(line.qty + other.qty))
        seen.add(line.id)

    merged.extend(item for item in remote if item.id not in seen)
    return tuple(merged)
