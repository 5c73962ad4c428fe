"""Decimal helpers shared by models, engines and services."""

from decimal import ROUND_HALF_UP, Decimal

DEFAULT_ROUNDING = ROUND_HALF_UP


def to_decimal(value: Decimal | int | str) -> Decimal:
    """Coerce to Decimal without passing through float."""
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        raise TypeError("Monetary and FTE values must not be floats")
    return Decimal(str(value))


def round_currency(amount: Decimal, places: int = 2) -> Decimal:
    """Round half-up to the given number of decimal places."""
    return to_decimal(amount).quantize(Decimal(1).scaleb(-places), rounding=DEFAULT_ROUNDING)


def strip_trailing_zeros(value: Decimal) -> Decimal:
    """30000.00 -> 30000, 33.3300 -> 33.33, never in exponent form."""
    value = to_decimal(value)
    if value == value.to_integral_value():
        return value.quantize(Decimal(1))
    return value.normalize()
