"""
Money helpers.

Amounts cross the API as decimal currency units (floats) and are stored and
summed as integer cents so re-aggregation never drifts.
"""

from __future__ import annotations

from decimal import Decimal, ROUND_HALF_UP
from typing import Optional


def to_cents(amount) -> Optional[int]:
    if amount is None:
        return None
    if isinstance(amount, bool):
        raise ValueError("Invalid monetary amount")
    quantized = Decimal(str(amount)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
    return int(quantized * 100)


def from_cents(cents: Optional[int]) -> Optional[float]:
    if cents is None:
        return None
    return float(Decimal(cents) / 100)
