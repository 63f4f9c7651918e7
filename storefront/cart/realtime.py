"""Cart Events - cross-tab cart.updated broadcasting.

Subscribe a CartEventPublisher to a CartStore and every committed change
is appended to a Redis Stream that other tabs/processes can read.

Uses the sync Upstash client since cart notifications are synchronous.
"""

import json

from upstash_redis import Redis

from storefront import db
from storefront.db import TTL, RedisKeys
from storefront.logging import get_logger

from .models import LineItem

logger = get_logger(__name__)

CART_UPDATED_EVENT = "cart.updated"


class CartEventPublisher:
    """Store subscriber that emits cart.updated events to a Redis Stream."""

    def __init__(self, redis: Redis, channel: str, maxlen: int = TTL.CART_EVENTS_MAXLEN):
        if not channel:
            raise ValueError("channel must be a non-empty string")
        self.redis = redis
        self.channel = channel
        self.maxlen = maxlen

    @property
    def stream_key(self) -> str:
        return RedisKeys.cart_events_key(self.channel)

    def __call__(self, items: tuple[LineItem, ...]) -> None:
        try:
            payload = {
                "event": CART_UPDATED_EVENT,
                "channel": self.channel,
                "items": [item.to_dict() for item in items],
            }
            self.redis.xadd(
                self.stream_key,
                "*",
                {"data": json.dumps(payload, ensure_ascii=False)},
                maxlen=self.maxlen,
            )
            logger.debug(f"Emitted {CART_UPDATED_EVENT} on {self.channel}")
        except Exception as e:
            logger.warning(f"Failed to emit {CART_UPDATED_EVENT}: {e}", exc_info=True)


def decode_cart_event(fields: dict) -> dict | None:
    """Decode one stream entry's fields back to the event payload."""
    raw = fields.get("data") if isinstance(fields, dict) else None
    if not raw:
        return None
    try:
        payload = json.loads(raw)
    except (ValueError, RecursionError):
        logger.warning("Skipping undecodable cart event")
        return None
    if not isinstance(payload, dict) or payload.get("event") != CART_UPDATED_EVENT:
        return None
    return payload


def get_cart_event_publisher(channel: str) -> CartEventPublisher:
    """Publisher on the shared Upstash client."""
    return CartEventPublisher(db.get_redis_sync(), channel=channel)
