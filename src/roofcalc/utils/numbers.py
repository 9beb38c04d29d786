"""Rounding helpers shared by the variables builders and pricing engine."""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal


def round_half_up(value: float, places: int = 2) -> float:
    """Round *value* half away from zero to *places* decimals.

    ``round()`` uses banker's rounding, which shifts cent totals on exact
    halves (``round(0.125, 2) == 0.12``).
    """
    quantum = Decimal(1).scaleb(-places)
    return float(Decimal(repr(value)).quantize(quantum, rounding=ROUND_HALF_UP))


def round_cents(value: float) -> float:
    """Round a money or quantity value to two decimals."""
    return round_half_up(value, 2)
