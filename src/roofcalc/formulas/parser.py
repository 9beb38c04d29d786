"""Lark-based parser for roof quantity formulas.

Supports:
- Number literals: ``12``, ``1.10``, ``.5``
- Variable references: ``SQ``, ``eave``, ``F1SQ`` (case-insensitive)
- Binary ``+ - * /`` and unary minus
- Parentheses to any depth

Nothing else is part of the grammar.  Any character outside the allowed
alphabet is rejected by the lexer before a parse tree exists.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field

from lark import Lark, Token, Tree
from lark.exceptions import UnexpectedInput

from roofcalc.formulas.errors import FormulaSyntaxError

# LALR(1) grammar for quantity formulas.
# Operator precedence (lowest to highest):
#   1. Addition/subtraction: + -      (left-associative)
#   2. Multiplication/division: * /   (left-associative)
#   3. Unary minus: -                 (may repeat: --10)
#   4. Atoms: number, variable, parenthesized expr
GRAMMAR = r"""
start: sum

?sum: product
    | sum "+" product  -> add
    | sum "-" product  -> sub

?product: unary
    | product "*" unary  -> mul
    | product "/" unary  -> div

?unary: atom
    | "-" unary  -> neg

?atom: NUMBER  -> number
    | NAME     -> var
    | "(" sum ")"

NUMBER: /[0-9]+(\.[0-9]*)?|\.[0-9]+/
NAME: /[A-Za-z_][A-Za-z0-9_]*/

WS: /[ \t\r\n]+/
%ignore WS
"""

_parser = Lark(GRAMMAR, parser="lalr", lexer="basic", start="start")


def _syntax_error(exc: UnexpectedInput) -> FormulaSyntaxError:
    pos = getattr(exc, "pos_in_stream", None)
    if pos is not None and pos < 0:
        pos = None
    token = getattr(exc, "token", None)
    if isinstance(token, Token) and token.type in ("$END", "<EOF>"):
        return FormulaSyntaxError("unexpected end of formula", position=pos)
    char = getattr(exc, "char", None)
    if char is not None:
        return FormulaSyntaxError(f"unexpected character {char!r}", position=pos)
    if isinstance(token, Token):
        return FormulaSyntaxError(f"unexpected token {str(token)!r}", position=pos)
    return FormulaSyntaxError(str(exc), position=pos)


def tokenize(text: str) -> list[Token]:
    """Split a formula into tokens without parsing it.

    Token types are ``NUMBER``, ``NAME`` and the anonymous operator
    terminals (``PLUS``, ``MINUS``, ``STAR``, ``SLASH``, ``LPAR``, ``RPAR``).
    Whitespace is dropped; blank input yields an empty list.

    Raises:
        FormulaSyntaxError: On any character outside the formula alphabet.
    """
    try:
        return list(_parser.lex(text))
    except UnexpectedInput as exc:
        raise _syntax_error(exc) from exc


def parse_formula(text: str) -> Tree:
    """Parse a formula string into a Lark Tree.

    Args:
        text: The formula text, e.g. ``"(SQ - 5) * 0.9"``.

    Returns:
        A Lark parse tree rooted at ``start``.

    Raises:
        FormulaSyntaxError: If the formula has invalid syntax.  Blank input
            is a syntax error here; ``evaluate`` treats it as zero before
            parsing.
    """
    try:
        return _parser.parse(text)
    except UnexpectedInput as exc:
        raise _syntax_error(exc) from exc


def extract_variables(tree: Tree) -> list[str]:
    """Return referenced variable names from a parse tree.

    Names are upper-cased, de-duplicated and listed in order of first
    appearance in the source text.
    """
    names = sorted(
        (
            child
            for subtree in tree.iter_subtrees()
            for child in subtree.children
            if isinstance(child, Token) and child.type == "NAME"
        ),
        key=lambda t: t.start_pos,
    )
    seen: dict[str, None] = {}
    for token in names:
        seen.setdefault(str(token).upper(), None)
    return list(seen)


@dataclass(frozen=True)
class FormulaValidation:
    """Outcome of an author-time formula check."""

    valid: bool
    required_variables: list[str] = field(default_factory=list)
    error: str | None = None


def validate(formula: str | None) -> FormulaValidation:
    """Check a formula's structure without a variable context.

    Never raises.  A blank formula is valid and requires nothing.  Whether
    the referenced variables exist is only known at evaluation time.
    """
    if formula is None or not formula.strip():
        return FormulaValidation(valid=True)
    try:
        tree = parse_formula(formula)
    except FormulaSyntaxError as exc:
        return FormulaValidation(valid=False, error=str(exc))
    return FormulaValidation(valid=True, required_variables=extract_variables(tree))


def format_formula(formula: str) -> str:
    """Format a formula for display: ``SQ*1.1`` -> ``SQ × 1.1``."""
    text = formula.replace("+", " + ").replace("-", " - ")
    text = text.replace("*", " × ").replace("/", " ÷ ")
    return re.sub(r"\s+", " ", text).strip()
