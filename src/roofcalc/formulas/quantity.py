"""Quantity-with-waste calculation used by line-item pricing.

This is the lenient entry point: a bad or stale template formula never
breaks estimate generation, it falls back to a configured quantity.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from roofcalc.formulas.errors import FormulaError
from roofcalc.formulas.evaluator import evaluate
from roofcalc.variables import RoofVariables

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class QuantityResult:
    """Quantity derived for one line item.

    Attributes:
        quantity: Non-negative base quantity.
        quantity_with_waste: ``quantity * waste_factor``.
        formula_used: The formula on success, ``None`` when the fallback
            quantity was used.
        error: Why a supplied formula was rejected, if it was.
    """

    quantity: float
    quantity_with_waste: float
    formula_used: str | None
    error: FormulaError | None = None

    @property
    def fell_back(self) -> bool:
        """True when a formula was supplied but could not be used."""
        return self.error is not None


def calculate_quantity_with_waste(
    formula: str | None,
    variables: RoofVariables,
    waste_factor: float = 1.0,
    fallback_quantity: float = 0.0,
) -> QuantityResult:
    """Evaluate *formula* and apply *waste_factor*.  Never raises ``FormulaError``.

    - No formula: the fallback quantity is used and ``formula_used`` is None.
    - Formula fails for any reason: same as no formula; the error is kept
      on the result for callers that want to report it.
    - Negative quantities (``10-SQ`` on a large roof) clamp to zero.
    """
    quantity = fallback_quantity
    formula_used: str | None = None
    error: FormulaError | None = None

    if formula:
        try:
            quantity = evaluate(formula, variables)
            formula_used = formula
        except FormulaError as exc:
            logger.debug("Falling back to %s for formula %r: %s", fallback_quantity, formula, exc)
            error = exc

    quantity = max(0.0, quantity)
    return QuantityResult(
        quantity=quantity,
        quantity_with_waste=quantity * waste_factor,
        formula_used=formula_used,
        error=error,
    )
