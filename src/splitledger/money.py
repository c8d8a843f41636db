"""Money helpers: 2-decimal rounding and integer-cent conversion.

All ledger arithmetic happens in integer cents; Decimal values only appear at
the model/storage boundary, always quantized to two fractional digits.
"""

from decimal import ROUND_FLOOR, ROUND_HALF_UP, Decimal

CENT = Decimal("0.01")
ZERO = Decimal("0.00")


def to_decimal(value: Decimal | int | float | str) -> Decimal:
    """
    Coerce a user-supplied amount into a Decimal.

    Floats go through ``str`` so 0.1 stays 0.1. Thousands separators are
    stripped from strings ("1,250.50").
    """
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        return Decimal(str(value))
    if isinstance(value, str):
        return Decimal(value.replace(",", "").strip())
    return Decimal(value)


def round_money(value: Decimal | int | float | str) -> Decimal:
    """Round to 2 decimals using ROUND_HALF_UP."""
    return to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def floor_money(value: Decimal) -> Decimal:
    """Round down to 2 decimals."""
    return value.quantize(CENT, rounding=ROUND_FLOOR)


def to_cents(amount: Decimal | int | float | str) -> int:
    """
    Convert an amount to integer cents.

    Args:
        amount: Amount in major units

    Returns:
        Amount in cents (ROUND_HALF_UP)
    """
    return int(round_money(amount) * 100)


def from_cents(cents: int) -> Decimal:
    """Convert integer cents back to a 2-decimal amount."""
    return (Decimal(cents) / 100).quantize(CENT)
