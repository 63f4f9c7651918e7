"""Cart models with Decimal-based pricing."""
import json
from dataclasses import dataclass, field, replace
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Iterable, Optional

from storefront.errors import ERROR_INVALID_ITEM_ID, ERROR_INVALID_PRICE, ERROR_INVALID_QUANTITY
from storefront.logging import get_logger
from storefront.money import multiply, parse_price, to_decimal, to_json_number

logger = get_logger(__name__)


class CartSyncState(str, Enum):
    """Where the cart stands relative to the remote per-user snapshot."""
    DETACHED = "detached"  # no identity, guest cart
    ATTACHED = "attached"  # identity attached, not yet merged
    MERGED = "merged"  # remote merged in, local changes not yet synced
    SYNCED = "synced"  # remote holds the current items


@dataclass(frozen=True)
class ItemDescriptor:
    """Product fields passed to CartStore.add (everything but the quantity)."""
    id: str
    name: str
    price: Decimal
    image: Optional[str] = None

    def __post_init__(self):
        if not self.id or not isinstance(self.id, str):
            raise ValueError(ERROR_INVALID_ITEM_ID)
        price = parse_price(self.price)
        if price is None or price < 0:
            raise ValueError(ERROR_INVALID_PRICE)
        object.__setattr__(self, "price", price)


@dataclass(frozen=True)
class LineItem:
    """Single product line in the cart."""
    id: str
    name: str
    price: Decimal
    qty: int
    image: Optional[str] = None

    def __post_init__(self):
        object.__setattr__(self, "price", to_decimal(self.price))

    @property
    def total_price(self) -> Decimal:
        """Price for all units, unrounded."""
        return multiply(self.price, self.qty)

    @classmethod
    def from_descriptor(cls, item: ItemDescriptor, qty: int) -> "LineItem":
        return cls(id=item.id, name=item.name, price=item.price, qty=qty, image=item.image)

    def with_qty(self, qty: int) -> "LineItem":
        return replace(self, qty=qty)

    def to_dict(self) -> dict:
        """Convert to the JSON shape kept in local storage and the remote table."""
        data = {
            "id": self.id,
            "name": self.name,
            "price": to_json_number(self.price),
            "qty": self.qty,
        }
        if self.image:
            data["image"] = self.image
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "LineItem":
        """
        Create from a stored dictionary.

        Raises:
            ValueError: if the record cannot form a valid line item
        """
        if not isinstance(data, dict):
            raise ValueError("line item must be an object")

        item_id = data.get("id")
        if not item_id or not isinstance(item_id, str):
            raise ValueError(ERROR_INVALID_ITEM_ID)

        qty = data.get("qty")
        if isinstance(qty, bool) or not isinstance(qty, int) or qty < 1:
            raise ValueError(ERROR_INVALID_QUANTITY)

        price = parse_price(data.get("price"))
        if price is None or price < 0:
            raise ValueError(ERROR_INVALID_PRICE)

        image = data.get("image")
        return cls(
            id=item_id,
            name=str(data.get("name") or ""),
            price=price,
            qty=qty,
            image=image if isinstance(image, str) and image else None,
        )


@dataclass(frozen=True)
class RemoteCartSnapshot:
    """Per-user cart record held by the remote store."""
    items: tuple[LineItem, ...] = field(default_factory=tuple)
    updated_at: Optional[datetime] = None

    @classmethod
    def from_record(cls, record: Any) -> Optional["RemoteCartSnapshot"]:
        """
        Build from a remote record.

        A record without an ``items`` list is malformed and treated as absent.
        """
        if not isinstance(record, dict) or not isinstance(record.get("items"), list):
            return None
        return cls(
            items=parse_items(record["items"]),
            updated_at=_parse_timestamp(record.get("updated_at")),
        )


def parse_items(records: Iterable[Any]) -> tuple[LineItem, ...]:
    """
    Parse stored line item records.

    Malformed entries are skipped. Repeated identities are folded into one
    line (quantities summed, first occurrence keeps its position).
    """
    items: dict[str, LineItem] = {}
    for record in records:
        try:
            item = LineItem.from_dict(record)
        except ValueError as e:
            logger.warning(f"Skipping malformed cart entry: {e}")
            continue
        existing = items.get(item.id)
        items[item.id] = existing.with_qty(existing.qty + item.qty) if existing else item
    return tuple(items.values())


def serialize_items(items: Iterable[LineItem]) -> bytes:
    """Serialize line items to the local storage payload."""
    return json.dumps([item.to_dict() for item in items], ensure_ascii=False).encode("utf-8")


def deserialize_items(payload: bytes | str) -> tuple[LineItem, ...]:
    """
    Parse a local storage payload.

    Raises:
        ValueError: if the payload is not a JSON list
    """
    data = json.loads(payload)
    if not isinstance(data, list):
        raise ValueError("cart payload must be a list")
    return parse_items(data)


def _parse_timestamp(value: Any) -> Optional[datetime]:
    if isinstance(value, datetime):
        return value
    if isinstance(value, str) and value:
        try:
            return datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            return None
    return None
