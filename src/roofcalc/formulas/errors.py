"""Error types for formula parsing and evaluation."""

from __future__ import annotations


class FormulaError(Exception):
    """Base class for all formula-related errors.

    Attributes:
        kind: Stable classification used as a log error code.
    """

    kind = "formula_error"


class FormulaSyntaxError(FormulaError):
    """Malformed formula: disallowed character or grammar violation.

    Attributes:
        position: Character position where the error was detected.
    """

    kind = "syntax_error"

    def __init__(self, message: str, position: int | None = None) -> None:
        self.position = position
        full = f"Formula syntax error: {message}"
        if position is not None:
            full += f" (at position {position})"
        super().__init__(full)


class UnknownVariableError(FormulaError):
    """Identifier that resolves to neither a roof nor a slope variable.

    Attributes:
        name: The normalized (upper-case) identifier.
    """

    kind = "unknown_variable"

    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"Unknown variable: {name!r}")


class FormulaDivisionByZeroError(FormulaError):
    """Right-hand operand of ``/`` evaluated to exactly zero."""

    kind = "division_by_zero"

    def __init__(self, message: str = "Division by zero in formula") -> None:
        super().__init__(message)


class NonFiniteResultError(FormulaError):
    """Evaluation produced ``inf`` or ``nan``."""

    kind = "non_finite_result"

    def __init__(self, value: float) -> None:
        self.value = value
        super().__init__(f"Formula result is not finite: {value!r}")
