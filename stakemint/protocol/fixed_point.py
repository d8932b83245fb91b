# MIT License
# Copyright (c) 2025 Hashborn

"""
Scaled-integer helpers.

Staked amounts, power scores and rewards are plain ints counted in the
smallest unit of their asset (10**decimals per whole token). Decimal is only
used at the edges, to parse and display human amounts.
"""

from decimal import Decimal, InvalidOperation
from typing import Union


def parse_units(value: Union[str, int, Decimal], decimals: int) -> int:
    """
    Convert a human amount ("1000", "0.03") to smallest units.

    Raises:
        ValueError: If the value is negative, malformed, or finer than `decimals`
    """
    try:
        amount = Decimal(str(value))
    except InvalidOperation:
        raise ValueError(f"Invalid amount: {value!r}")

    if not amount.is_finite() or amount < 0:
        raise ValueError(f"Invalid amount: {value!r}")

    scaled = amount * (Decimal(10) ** decimals)
    if scaled != scaled.to_integral_value():
        raise ValueError(f"Amount {value} has more than {decimals} decimals")
    return int(scaled)


def format_units(amount: int, decimals: int) -> str:
    """Render smallest units as a human amount without trailing zeros."""
    whole, frac = divmod(amount, 10 ** decimals)
    if frac == 0:
        return str(whole)
    return f"{whole}.{str(frac).rjust(decimals, '0').rstrip('0')}"


def mul_div(a: int, b: int, denominator: int) -> int:
    """floor(a * b / denominator); a zero denominator yields 0."""
    if denominator == 0:
        return 0
    return (a * b) // denominator


def checked_add(a: int, b: int) -> int:
    if a < 0 or b < 0:
        raise OverflowError(f"Negative operand in unsigned add: {a} + {b}")
    return a + b


def checked_sub(a: int, b: int) -> int:
    if b > a:
        raise OverflowError(f"Unsigned underflow: {a} - {b}")
    return a - b


def saturating_sub(a: int, b: int) -> int:
    return a - b if a > b else 0
