"""Utilities for working with reward amounts."""

from __future__ import annotations

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Optional, Union

CENT = Decimal("0.01")
ZERO = Decimal("0.00")

AmountLike = Union[Decimal, int, float, str]


def to_decimal(value: AmountLike) -> Decimal:
    """Convert ``value`` to a :class:`~decimal.Decimal` with two decimal places."""

    if isinstance(value, bool):
        raise TypeError("Booleans are not valid reward amounts.")
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, (int, float)):
        result = Decimal(str(value))
    elif isinstance(value, str):
        try:
            result = Decimal(value.strip())
        except InvalidOperation as exc:
            raise ValueError(f"Invalid amount: {value!r}") from exc
    else:
        raise TypeError(f"Unsupported amount type: {type(value)!r}")

    if not result.is_finite():
        raise ValueError(f"Invalid amount: {value!r}")
    return result.quantize(CENT, rounding=ROUND_HALF_UP)


def optional_amount(value: Optional[AmountLike]) -> Optional[Decimal]:
    """Normalise an optional reward; ``None`` stays ``None``."""

    if value is None:
        return None
    return require_positive(to_decimal(value), allow_zero=True)


def require_positive(amount: Decimal, *, allow_zero: bool = False) -> Decimal:
    """Ensure ``amount`` is positive (or non-negative when ``allow_zero`` is true)."""

    if allow_zero:
        if amount < ZERO:
            raise ValueError("Amount must be zero or greater.")
    else:
        if amount <= ZERO:
            raise ValueError("Amount must be greater than zero.")
    return amount


def is_creditable(amount: Optional[Decimal]) -> bool:
    return amount is not None and amount > ZERO


__all__ = ["AmountLike", "CENT", "ZERO", "is_creditable", "optional_amount", "require_positive", "to_decimal"]
