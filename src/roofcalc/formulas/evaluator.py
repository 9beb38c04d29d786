"""Tree-walking evaluator for parsed quantity formulas.

Variables resolve against a ``RoofVariables`` record, either as a flat
field (``SQ``, ``GUTTER_LF``) or as a slope-indexed field whose name is a
slope key followed by a per-slope field (``F1SQ`` -> ``slopes["F1"].SQ``).
"""

from __future__ import annotations

import logging
import math
import re

from lark import Token, Tree

from roofcalc.formulas.errors import (
    FormulaDivisionByZeroError,
    FormulaError,
    FormulaSyntaxError,
    NonFiniteResultError,
    UnknownVariableError,
)
from roofcalc.formulas.parser import parse_formula
from roofcalc.variables import FLAT_FIELDS, SLOPE_FIELDS, RoofVariables

logger = logging.getLogger(__name__)

_FLAT = frozenset(FLAT_FIELDS)
_SLOPE = frozenset(SLOPE_FIELDS)
SLOPE_REF_RE = re.compile(r"^([A-Z]+[0-9]+)([A-Z_]+)$")


def resolve_variable(name: str, variables: RoofVariables) -> float:
    """Resolve an identifier against roof variables, case-insensitively.

    Raises:
        UnknownVariableError: If neither a flat nor a slope-indexed field
            matches.  Missing slopes are never defaulted to zero.
    """
    key = name.upper()
    if key in _FLAT:
        return float(getattr(variables, key))

    match = SLOPE_REF_RE.match(key)
    if match:
        slope_key, field_name = match.groups()
        slope = variables.slopes.get(slope_key)
        if slope is not None and field_name in _SLOPE:
            return float(getattr(slope, field_name))

    raise UnknownVariableError(key)


def evaluate_tree(tree: Tree, variables: RoofVariables) -> float:
    """Evaluate a parsed formula tree.

    Nodes are visited bottom-up from ``Tree.iter_subtrees()``, so long
    operator chains and repeated unary minus never hit the interpreter
    recursion limit.

    Args:
        tree: Parse tree from ``parse_formula()``.
        variables: Roof variables to resolve names against.

    Returns:
        The computed value, always finite.
    """
    values: dict[int, float] = {}
    for node in tree.iter_subtrees():
        operands = [
            _eval_token(child, variables) if isinstance(child, Token) else values[id(child)]
            for child in node.children
        ]
        values[id(node)] = _eval_node(node.data, operands)
    result = values[id(tree)]
    if not math.isfinite(result):
        raise NonFiniteResultError(result)
    return result


def evaluate(formula: str, variables: RoofVariables) -> float:
    """Parse and evaluate *formula* against *variables*.

    A blank formula evaluates to ``0``.  Every other failure is raised as a
    ``FormulaError`` subclass.  Plain mappings must go through
    ``as_roof_variables()`` first.
    """
    if not isinstance(variables, RoofVariables):
        raise TypeError(f"expected RoofVariables, got {type(variables).__name__}")
    if not formula or not formula.strip():
        return 0.0
    try:
        return evaluate_tree(parse_formula(formula), variables)
    except FormulaError as exc:
        logger.debug("Formula evaluation error for %r: %s", formula, exc)
        raise


def _eval_node(rule: str, operands: list[float]) -> float:
    """Apply one tree node to its already evaluated children."""
    # start, number and var each wrap a single value
    if rule in ("start", "number", "var"):
        return operands[0]

    if rule == "add":
        return operands[0] + operands[1]
    if rule == "sub":
        return operands[0] - operands[1]
    if rule == "mul":
        return operands[0] * operands[1]
    if rule == "div":
        if operands[1] == 0:
            raise FormulaDivisionByZeroError()
        return operands[0] / operands[1]
    if rule == "neg":
        return -operands[0]

    raise FormulaError(f"Unknown node type: {rule}")


def _eval_token(token: Token, v: RoofVariables) -> float:
    if token.type == "NUMBER":
        return float(token)
    if token.type == "NAME":
        return resolve_variable(str(token), v)
    raise FormulaSyntaxError(f"unexpected token {str(token)!r}", position=token.start_pos)
