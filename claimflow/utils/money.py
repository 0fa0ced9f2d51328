"""
Fixed-point money helpers.

All monetary amounts are ``Decimal`` values carrying two fractional digits.
Rounding is banker's rounding (ROUND_HALF_EVEN) so that rounding residue does
not drift in one direction across many claim lines.
"""

from decimal import ROUND_HALF_EVEN, Decimal, InvalidOperation
from typing import Iterable, Union

CENTS = Decimal("0.01")
ZERO = Decimal("0.00")
# Largest amount accepted on a claim line
MAX_AMOUNT = Decimal("1000000000000.00")

MoneyLike = Union[Decimal, int, str]


def to_money(value: MoneyLike) -> Decimal:
    """Quantize a value to cents using ROUND_HALF_EVEN."""
    if isinstance(value, float):
        raise TypeError("Binary floats are not accepted for money; use Decimal or str")
    try:
        amount = value if isinstance(value, Decimal) else Decimal(value)
    except InvalidOperation as e:
        raise ValueError(f"Not a monetary amount: {value!r}") from e
    if not amount.is_finite():
        raise ValueError(f"Not a monetary amount: {value!r}")
    try:
        return amount.quantize(CENTS, rounding=ROUND_HALF_EVEN)
    except InvalidOperation as e:
        raise ValueError(f"Amount out of range: {value!r}") from e


def is_cent_amount(value: Decimal) -> bool:
    """True for finite, non-negative amounts up to MAX_AMOUNT with at most two decimals."""
    if not value.is_finite() or value < 0 or value > MAX_AMOUNT:
        return False
    return value == value.quantize(CENTS)


def sum_money(amounts: Iterable[Decimal]) -> Decimal:
    """Sum already-quantized amounts, returning ``0.00`` for an empty input."""
    return to_money(sum(amounts, ZERO))
