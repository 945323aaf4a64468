from __future__ import annotations

from decimal import ROUND_HALF_EVEN, Decimal
from fractions import Fraction
from typing import Union

DECIMALS = 4
_QUANTUM = Decimal(1).scaleb(-DECIMALS)


def round_metric(value: Union[Fraction, float, int]) -> float:
    """Round to 4 decimals, half-to-even, through exact decimal arithmetic.

    Fractions are converted without passing through a binary float, so the
    result depends only on the exact ratio.
    """
    if isinstance(value, Fraction):
        d = Decimal(value.numerator) / Decimal(value.denominator)
    else:
        d = Decimal(repr(float(value))) if isinstance(value, float) else Decimal(value)
    return float(d.quantize(_QUANTUM, rounding=ROUND_HALF_EVEN))


def ratio(num: int, den: int) -> Fraction:
    """num/den with 0/0 (and x/0) defined as 0."""
    if den == 0:
        return Fraction(0)
    return Fraction(num, den)
