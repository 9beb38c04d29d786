"""Roof quantity formula parsing and evaluation.

Public API::

    from roofcalc.formulas import evaluate, validate, calculate_quantity_with_waste
"""

from roofcalc.formulas.catalog import (
    COMMON_FORMULAS,
    KNOWN_VARIABLES,
    get_known_variables,
    get_suggested_formula,
)
from roofcalc.formulas.errors import (
    FormulaDivisionByZeroError,
    FormulaError,
    FormulaSyntaxError,
    NonFiniteResultError,
    UnknownVariableError,
)
from roofcalc.formulas.evaluator import evaluate, evaluate_tree, resolve_variable
from roofcalc.formulas.parser import (
    FormulaValidation,
    extract_variables,
    format_formula,
    parse_formula,
    tokenize,
    validate,
)
from roofcalc.formulas.quantity import QuantityResult, calculate_quantity_with_waste

__all__ = [
    "COMMON_FORMULAS",
    "KNOWN_VARIABLES",
    "FormulaDivisionByZeroError",
    "FormulaError",
    "FormulaSyntaxError",
    "FormulaValidation",
    "NonFiniteResultError",
    "QuantityResult",
    "UnknownVariableError",
    "calculate_quantity_with_waste",
    "evaluate",
    "evaluate_tree",
    "extract_variables",
    "format_formula",
    "get_known_variables",
    "get_suggested_formula",
    "parse_formula",
    "resolve_variable",
    "tokenize",
    "validate",
]
