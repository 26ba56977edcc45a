"""
Monetary helpers for order totals and payment splits.

Amounts are Decimals in whole currency units (som has no minor unit in
practice). Percentages are rounded half-up to the unit, matching how cashiers
round service charges by hand.

Key Principles:
1. NEVER use float for money
2. Round once, at the point a derived amount is produced
3. Split components are stored exactly as the cashier entered them
"""

from decimal import Decimal, ROUND_HALF_UP
from typing import Dict, Optional, Union

ZERO = Decimal("0")
UNIT = Decimal("1")

SPLIT_KEYS = ("cash", "card", "click")

Number = Union[Decimal, str, int, float]


def to_decimal(amount: Optional[Number]) -> Decimal:
    """
    Convert any numeric input to Decimal. None becomes 0.

    Examples:
        >>> to_decimal("12.5")
        Decimal('12.5')
        >>> to_decimal(0.1)
        Decimal('0.1')
    """
    if amount is None:
        return ZERO
    if isinstance(amount, Decimal):
        return amount
    if isinstance(amount, float):
        # str() first to avoid binary float artefacts
        amount = str(amount)
    return Decimal(amount)


def round_amount(amount: Number) -> Decimal:
    """
    Round to whole currency units, half away from zero.

    Examples:
        >>> round_amount("6500.4")
        Decimal('6500')
        >>> round_amount("6500.5")
        Decimal('6501')
    """
    return to_decimal(amount).quantize(UNIT, rounding=ROUND_HALF_UP)


def percentage_of(amount: Number, percent: Number) -> Decimal:
    """
    ``round(amount * percent / 100)``.

    Examples:
        >>> percentage_of(65000, 10)
        Decimal('6500')
    """
    percent = to_decimal(percent)
    if percent == ZERO:
        return ZERO
    return round_amount(to_decimal(amount) * percent / Decimal("100"))


def normalize_split(split: Optional[Dict[str, Number]]) -> Dict[str, Decimal]:
    """
    Coerce a cash/card/click split into Decimals, filling missing keys with 0.

    Unknown keys are rejected so typos do not silently vanish from reports.
    """
    split = split or {}
    unknown = set(split) - set(SPLIT_KEYS)
    if unknown:
        raise ValueError(f"Unknown payment split keys: {sorted(unknown)}")

    normalized = {}
    for key in SPLIT_KEYS:
        value = to_decimal(split.get(key))
        if value < ZERO:
            raise ValueError(f"Payment split '{key}' cannot be negative")
        normalized[key] = value
    return normalized


def split_total(split: Optional[Dict[str, Number]]) -> Decimal:
    """Sum of every component of a payment split."""
    return sum((to_decimal(v) for v in (split or {}).values()), ZERO)

