"""
Common Error Constants

Centralized error messages shared by the cart core, checkout and API.
"""

# Cart errors
ERROR_INVALID_QUANTITY = "quantity must be a positive integer"
ERROR_INVALID_PRICE = "price must be a non-negative number"
ERROR_INVALID_ITEM_ID = "item id must be a non-empty string"

# Checkout errors
ERROR_CHECKOUT_EMPTY = "Cart is empty"
ERROR_CHECKOUT_NOT_CONFIGURED = "MP_ACCESS_TOKEN is not configured"
ERROR_CHECKOUT_FAILED = "Could not start checkout"


class CheckoutError(Exception):
    """Raised when a checkout session cannot be created."""

    def __init__(self, message: str = ERROR_CHECKOUT_FAILED, status_code: int | None = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class CheckoutNotConfiguredError(CheckoutError):
    """Raised when payment provider credentials are missing."""

    def __init__(self, message: str = ERROR_CHECKOUT_NOT_CONFIGURED):
        super().__init__(message)
