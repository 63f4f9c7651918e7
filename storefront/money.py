"""
Money Utilities - Decimal operations for prices.

Prices are kept as Decimal inside the cart and converted to JSON
numbers only at storage and API boundaries.
"""
from decimal import Decimal, InvalidOperation
from typing import Union

Numeric = Union[str, int, float, Decimal]


def to_decimal(value: Union[Numeric, None]) -> Decimal:
    """
    Convert any value to Decimal safely.

    Args:
        value: Value to convert (str, int, float, Decimal, or None)

    Returns:
        Decimal representation of the value, or Decimal("0") if None/invalid
    """
    if value is None:
        return Decimal("0")

    if isinstance(value, Decimal):
        return value

    if isinstance(value, bool):
        return Decimal("0")

    try:
        if isinstance(value, float):
            # Go through str to keep the literal the user typed (0.1, not 0.1000000000000000055...)
            return Decimal(str(value))
        return Decimal(value)
    except (InvalidOperation, ValueError, TypeError):
        return Decimal("0")


def parse_price(value: object) -> Decimal | None:
    """
    Strict variant of to_decimal for untrusted payloads.

    Returns None instead of zero when the value is not a finite number.
    """
    if isinstance(value, bool) or not isinstance(value, (str, int, float, Decimal)):
        return None
    try:
        result = Decimal(str(value)) if isinstance(value, float) else Decimal(value)
    except (InvalidOperation, ValueError, TypeError):
        return None
    if not result.is_finite():
        return None
    return result


def multiply(value: Numeric, factor: Numeric) -> Decimal:
    """Safe multiplication of monetary value by a factor."""
    return to_decimal(value) * to_decimal(factor)


def to_float(value: Numeric) -> float:
    """
    Convert Decimal to float for external APIs.

    Use only at API boundaries, not for internal calculations.
    """
    return float(to_decimal(value))


def to_json_number(value: Numeric) -> int | float:
    """Convert a price to the JSON number the storefront frontend stores (3490, not 3490.0)."""
    decimal_value = to_decimal(value)
    if decimal_value == decimal_value.to_integral_value():
        return int(decimal_value)
    return float(decimal_value)
