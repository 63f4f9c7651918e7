"""
Storefront Core Module

This package contains the storefront's core components:
- db: Remote clients (Supabase + Upstash Redis)
- cart: Cart store with local persistence and remote merge
- checkout: Mercado Pago preference creation
- money: Decimal helpers for prices

Note: Imports are lazy so the cart core loads without the remote
client libraries being configured.
"""

__all__ = [
    "CartStore",
    "get_supabase",
    "get_redis_sync",
    "CheckoutService",
]


def __getattr__(name):
    """Lazy attribute access for clean module loading."""
    if name == "CartStore":
        from storefront.cart import CartStore
        return CartStore
    elif name == "get_supabase":
        from storefront.db import get_supabase
        return get_supabase
    elif name == "get_redis_sync":
        from storefront.db import get_redis_sync
        return get_redis_sync
    elif name == "CheckoutService":
        from storefront.checkout import CheckoutService
        return CheckoutService
    raise AttributeError(f"module 'storefront' has no attribute '{name}'")
