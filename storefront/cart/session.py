"""Cart session lifecycle and the sign-in/sign-out protocol.

One CartStore per application session:

    with cart_session(local_store=FileLocalStore(), remote_store=remote) as cart:
        cart.add(ItemDescriptor(id="cz-ipa-001", name="IPA Patagonia 473ml", price=3490))
        session = await checkout.create_preference(cart.items)

Sign-in is two explicit steps, attach then merge, and the store reports
CartSyncState.ATTACHED in between. Nothing syncs unless asked.
"""
from contextlib import contextmanager
from typing import Iterator, Optional

from storefront.logging import get_logger

from .storage import LocalStore, RemoteCartStore
from .store import CartStore, Subscriber

logger = get_logger(__name__)


@contextmanager
def cart_session(
    local_store: Optional[LocalStore] = None,
    remote_store: Optional[RemoteCartStore] = None,
    subscribers: tuple[Subscriber, ...] = (),
) -> Iterator[CartStore]:
    """
    Construct and hydrate a CartStore for the session, tear it down on exit.

    Subscribers are registered before hydration so they see the initial
    cart. Teardown drops subscribers and identity; the local payload is
    kept, clearing it is the caller's decision.
    """
    store = CartStore(local_store=local_store, remote_store=remote_store)
    for callback in subscribers:
        store.subscribe(callback)
    store.hydrate()
    try:
        yield store
    finally:
        store.unsubscribe_all()
        store.attach(None)
        logger.debug("Cart session closed")


async def sign_in(store: CartStore, identity: str, sync: bool = False) -> bool:
    """
    Attach the user and merge their remote cart.

    With sync=True the merged cart is written back, so a later sign-in
    does not count the same remote quantities again.

    Returns:
        True if a remote snapshot was merged
    """
    store.attach(identity)
    merged = await store.merge_remote()
    if sync:
        await store.sync()
    return merged


def sign_out(store: CartStore, clear: bool = False) -> None:
    """Detach the user; optionally empty the device cart too."""
    store.attach(None)
    if clear:
        store.clear()
