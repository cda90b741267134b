"""
Safe expression evaluation for condition nodes.

Expressions are a restricted boolean/arithmetic grammar evaluated with
simpleeval against a flat variable map: comparisons, boolean operators,
arithmetic, literals, variable names and a small function whitelist. No
attribute access, imports, definitions or I/O.
"""

import ast
import logging
from typing import Any

from simpleeval import SimpleEval

from flowguard.errors import UnsafeExpression

logger = logging.getLogger(__name__)

MAX_EXPRESSION_LENGTH = 1000


def _contains(haystack: Any, needle: Any) -> bool:
    return bool(haystack) and needle in haystack


def _length(value: Any) -> int:
    return len(value) if value is not None else 0


SAFE_FUNCTIONS = {
    "contains": _contains,
    "length": _length,
    "abs": abs,
    "min": min,
    "max": max,
    "round": round,
}

LITERAL_NAMES = {
    "true": True,
    "false": False,
    "null": None,
    "True": True,
    "False": False,
    "None": None,
}


class _RestrictedEval(SimpleEval):
    def __init__(self, names: dict[str, Any]):
        super().__init__(functions=dict(SAFE_FUNCTIONS), names=names)
        # Flat variable map only: no attribute access (and so no method calls)
        self.nodes.pop(ast.Attribute, None)


def evaluate_expression(expression: str, variables: dict[str, Any] | None = None) -> Any:
    """
    Evaluate ``expression`` against ``variables``.

    Example:
        evaluate_expression("count > 5 and status == 'ok'", {"count": 7, "status": "ok"})
        # True

    Raises:
        UnsafeExpression: on any parse or evaluation failure, including
            unknown names and disallowed constructs
    """
    if not isinstance(expression, str) or not expression.strip():
        raise UnsafeExpression("Expression must be a non-empty string")
    if len(expression) > MAX_EXPRESSION_LENGTH:
        raise UnsafeExpression(f"Expression longer than {MAX_EXPRESSION_LENGTH} characters")

    names = {**LITERAL_NAMES, **(variables or {})}
    try:
        return _RestrictedEval(names).eval(expression.strip())
    except Exception as e:
        logger.warning(f"Rejected expression {expression!r}: {type(e).__name__}: {e}")
        raise UnsafeExpression(f"{type(e).__name__}: {e}") from e
