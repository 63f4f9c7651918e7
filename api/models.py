"""
Pydantic models for API request/response schemas.

Line items use the same JSON shape the storefront keeps in localStorage.
"""
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, Field

from storefront.cart import LineItem


class CheckoutItem(BaseModel):
    """One cart line sent by the storefront."""
    id: str = Field(min_length=1)
    name: str
    price: Decimal = Field(ge=0)
    qty: int = Field(ge=1)
    image: Optional[str] = None

    def to_line_item(self) -> LineItem:
        return LineItem(id=self.id, name=self.name, price=self.price, qty=self.qty, image=self.image)


class CheckoutRequest(BaseModel):
    """Cart snapshot to pay for."""
    items: List[CheckoutItem]


class CheckoutResponse(BaseModel):
    """Preference created at Mercado Pago; redirect the browser to init_point."""
    id: str
    init_point: str
