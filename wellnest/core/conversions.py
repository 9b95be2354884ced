"""Conversion helpers for settings values and money amounts."""

from decimal import Decimal, ROUND_HALF_UP, InvalidOperation
from typing import Optional

CENT = Decimal("0.01")


def coerce_int(value: object) -> Optional[int]:
    """Return an int for valid string/int inputs, otherwise None."""
    if value is None:
        return None
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        try:
            return int(value.strip())
        except (TypeError, ValueError):
            return None
    return None


def to_money(value: object) -> Decimal:
    """Quantize a price-like value to cents. Floats go through str() to avoid binary noise."""
    if isinstance(value, Decimal):
        amount = value
    else:
        try:
            amount = Decimal(str(value))
        except InvalidOperation as exc:
            raise ValueError(f"Invalid amount: {value!r}") from exc
    return amount.quantize(CENT, rounding=ROUND_HALF_UP)


def format_amount(value: object) -> str:
    """Two-decimal string, e.g. "10.00"."""
    return f"{to_money(value):.2f}"
