"""Checkout Service - Mercado Pago Checkout Pro preferences.

Turns a cart snapshot into a payment preference and returns the
redirect target (init_point). The cart store never calls this; the
UI/API layer passes CartStore.items in.
"""

import os
from dataclasses import dataclass
from typing import Sequence

import httpx
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from storefront.cart.models import LineItem
from storefront.errors import ERROR_CHECKOUT_EMPTY, CheckoutError, CheckoutNotConfiguredError
from storefront.logging import get_logger
from storefront.money import to_float

logger = get_logger(__name__)

MERCADOPAGO_API_URL = "https://api.mercadopago.com"
STATEMENT_DESCRIPTOR = "CervezaArtesana"


@dataclass(frozen=True)
class CheckoutSession:
    id: str
    init_point: str


class CheckoutService:
    """Creates Mercado Pago preferences from cart line items."""

    def __init__(self):
        self.access_token = os.environ.get("MP_ACCESS_TOKEN", "")
        self.api_url = os.environ.get("MERCADOPAGO_API_URL", MERCADOPAGO_API_URL)
        self.base_url = os.environ.get("PUBLIC_BASE_URL", "http://localhost:4321")
        self.currency = os.environ.get("CHECKOUT_CURRENCY", "CLP")

        # HTTP client (lazy init)
        self._http_client: httpx.AsyncClient | None = None

    @property
    def is_configured(self) -> bool:
        return bool(self.access_token)

    async def _get_http_client(self) -> httpx.AsyncClient:
        """Lazy creation of shared httpx client with timeouts."""
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(
                timeout=httpx.Timeout(10.0, connect=5.0, read=10.0, write=10.0),
                limits=httpx.Limits(max_connections=10, max_keepalive_connections=5),
            )
        return self._http_client

    async def aclose(self) -> None:
        if self._http_client is not None:
            await self._http_client.aclose()
            self._http_client = None

    def build_preference(self, items: Sequence[LineItem]) -> dict:
        """Preference body for the given line items."""
        base = self.base_url.rstrip("/")
        return {
            "items": [
                {
                    "title": item.name,
                    "quantity": item.qty,
                    "unit_price": to_float(item.price),
                    "currency_id": self.currency,
                }
                for item in items
            ],
            "back_urls": {
                "success": f"{base}/?pago=ok",
                "failure": f"{base}/?pago=fail",
                "pending": f"{base}/?pago=pending",
            },
            "auto_return": "approved",
            "statement_descriptor": STATEMENT_DESCRIPTOR,
        }

    @retry(
        retry=retry_if_exception_type(httpx.TransportError),
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=1, max=4),
        reraise=True,
    )
    async def _post_preference(self, body: dict) -> httpx.Response:
        client = await self._get_http_client()
        return await client.post(
            f"{self.api_url.rstrip('/')}/checkout/preferences",
            json=body,
            headers={"Authorization": f"Bearer {self.access_token}"},
        )

    async def create_preference(self, items: Sequence[LineItem]) -> CheckoutSession:
        """
        Create a checkout preference for the cart snapshot.

        Raises:
            CheckoutNotConfiguredError: MP_ACCESS_TOKEN missing
            CheckoutError: empty cart, transport failure or provider rejection
        """
        if not self.is_configured:
            raise CheckoutNotConfiguredError()
        if not items:
            raise CheckoutError(ERROR_CHECKOUT_EMPTY)

        try:
            response = await self._post_preference(self.build_preference(items))
        except httpx.HTTPError as e:
            logger.error(f"Mercado Pago request failed: {e}")
            raise CheckoutError(f"Mercado Pago unreachable: {e}") from e

        if response.is_error:
            logger.error(f"Mercado Pago error {response.status_code}: {response.text[:200]}")
            raise CheckoutError(f"Mercado Pago error: {response.text}", status_code=response.status_code)

        try:
            data = response.json()
        except ValueError as e:
            logger.error(f"Mercado Pago returned a non-JSON body: {response.text[:200]}")
            raise CheckoutError("Mercado Pago returned an unreadable response") from e
        if not isinstance(data, dict) or not data.get("init_point"):
            raise CheckoutError("Mercado Pago response has no init_point")

        logger.info(f"Checkout preference {data.get('id')} created for {len(items)} line(s)")
        return CheckoutSession(id=str(data.get("id", "")), init_point=data["init_point"])


# Lazy singleton
_checkout_service: CheckoutService | None = None


def get_checkout_service() -> CheckoutService:
    """Get CheckoutService singleton."""
    global _checkout_service
    if _checkout_service is None:
        _checkout_service = CheckoutService()
    return _checkout_service


async def shutdown_checkout_service() -> None:
    """Close the singleton's HTTP client."""
    global _checkout_service
    if _checkout_service is not None:
        await _checkout_service.aclose()
        _checkout_service = None
