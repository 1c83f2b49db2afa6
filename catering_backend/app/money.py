"""Minor-unit money helpers.

Amounts travel through the domain as integer cents. Conversion to
:class:`~decimal.Decimal` happens only where values leave the process: the
database layer (``NUMERIC(12, 2)`` columns) and API responses.
"""
from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Union

_CENT = Decimal("0.01")

AmountLike = Union[Decimal, int, str, float]


def to_cents(amount: AmountLike) -> int:
    """Convert a decimal currency amount into integer cents."""

    if isinstance(amount, float):
        amount = repr(amount)
    try:
        value = Decimal(amount)
    except (InvalidOperation, TypeError) as exc:
        raise ValueError(f"Invalid currency amount: {amount!r}") from exc
    if not value.is_finite():
        raise ValueError(f"Invalid currency amount: {amount!r}")
    return int((value.quantize(_CENT, rounding=ROUND_HALF_UP) * 100).to_integral_value())


def to_decimal(cents: int) -> Decimal:
    """Convert integer cents into a two-place decimal amount."""

    return (Decimal(int(cents)) / 100).quantize(_CENT)


__all__ = ["AmountLike", "to_cents", "to_decimal"]
