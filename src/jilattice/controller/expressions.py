"""
Custom Geometry Expressions
===========================
Safe evaluation of the user formulas used by the custom grid shapes.

Why is this file needed?
------------------------
1. Syntax: formulas are written in calculator notation (`x^2`, `√`, `π`, `≤`);
   `preprocess` rewrites them to Python syntax.
2. Safety: the parsed tree is checked against a whitelist of node types and
   function names before it is compiled, and evaluation runs without builtins.
3. Robustness: any failure (syntax, unknown name, math domain error, a
   non-finite result) yields None, which callers treat as "no match".
"""
from __future__ import annotations

import ast
import logging
import math
import re
from functools import lru_cache
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple

logger = logging.getLogger(__name__)

_PHI = 1.61803398875


def _sign(x: float) -> float:
    return float((x > 0) - (x < 0))


def _cbrt(x: float) -> float:
    return math.copysign(abs(x) ** (1.0 / 3.0), x)


def _log(x: float, base: Optional[float] = None) -> float:
    return math.log(x) if base is None else math.log(x, base)


def _floor(x: float) -> float:
    return float(math.floor(x))


def _ceil(x: float) -> float:
    return float(math.ceil(x))


def _round(x: float) -> float:
    return float(round(x))


FUNCTIONS: Dict[str, Callable[..., float]] = {
    "sin": math.sin, "cos": math.cos, "tan": math.tan,
    "asin": math.asin, "acos": math.acos, "atan": math.atan, "atan2": math.atan2,
    "sinh": math.sinh, "cosh": math.cosh, "tanh": math.tanh,
    "exp": math.exp, "log": _log, "ln": math.log, "log2": math.log2, "log10": math.log10,
    "sqrt": math.sqrt, "cbrt": _cbrt, "pow": math.pow, "hypot": math.hypot,
    "abs": abs, "min": min, "max": max, "floor": _floor, "ceil": _ceil,
    "round": _round, "sign": _sign, "mod": math.fmod,
}

CONSTANTS: Dict[str, float] = {
    "pi": math.pi,
    "e": math.e,
    "tau": math.tau,
    "phi": _PHI,
    "inf": math.inf,
}

_ALLOWED_NODES: Tuple[type, ...] = (
    ast.Expression, ast.BinOp, ast.UnaryOp, ast.BoolOp, ast.Compare, ast.IfExp,
    ast.Call, ast.Name, ast.Load, ast.Constant,
    ast.Add, ast.Sub, ast.Mult, ast.Div, ast.FloorDiv, ast.Mod, ast.Pow,
    ast.USub, ast.UAdd, ast.Not, ast.And, ast.Or,
    ast.Eq, ast.NotEq, ast.Lt, ast.LtE, ast.Gt, ast.GtE,
)

_REPLACEMENTS: Tuple[Tuple[str, str], ...] = (
    ("−", "-"), ("–", "-"), ("—", "-"),
    ("×", "*"), ("⋅", "*"), ("·", "*"),
    ("÷", "/"),
    ("π", "pi"), ("τ", "tau"), ("φ", "phi"), ("∞", "inf"),
    ("≤", "<="), ("≥", ">="), ("≠", "!="),
    ("²", "^2"), ("³", "^3"),
    ("&&", " and "), ("||", " or "),
)

_SQRT_RE = re.compile(r"√\s*([a-zA-Z0-9_.]+)")


def preprocess(source: str) -> str:
    """Rewrite calculator notation into Python expression syntax."""
    text = source
    for old, new in _REPLACEMENTS:
        text = text.replace(old, new)
    text = text.replace("√(", "sqrt(")
    text = _SQRT_RE.sub(r"sqrt(\1)", text)
    text = text.replace("^", "**")
    return text.strip()


def _validate(tree: ast.AST) -> None:
    for node in ast.walk(tree):
        if not isinstance(node, _ALLOWED_NODES):
            raise ValueError(f"Unsupported syntax: {type(node).__name__}")
        if isinstance(node, ast.Constant) and not isinstance(node.value, (int, float)):
            raise ValueError(f"Unsupported constant: {node.value!r}")
        if isinstance(node, ast.Call):
            if not isinstance(node.func, ast.Name) or node.func.id not in FUNCTIONS:
                raise ValueError("Only whitelisted functions may be called.")
            if node.keywords:
                raise ValueError("Keyword arguments are not supported.")


_AS_FLOAT = "__as_float__"


class _FloatLiterals(ast.NodeTransformer):
    """
    Keep every intermediate value a float so that huge powers overflow instead
    of growing forever. Integer literals become floats; comparisons and `not`
    (which yield bools) are wrapped in a float conversion.
    """

    def visit_Constant(self, node: ast.Constant) -> ast.Constant:
        if isinstance(node.value, int) and not isinstance(node.value, bool):
            return ast.copy_location(ast.Constant(float(node.value)), node)
        return node

    def _as_float(self, node: ast.expr) -> ast.Call:
        call = ast.Call(func=ast.Name(id=_AS_FLOAT, ctx=ast.Load()), args=[node], keywords=[])
        return ast.copy_location(call, node)

    def visit_Compare(self, node: ast.Compare) -> ast.Call:
        return self._as_float(self.generic_visit(node))

    def visit_UnaryOp(self, node: ast.UnaryOp) -> ast.expr:
        node = self.generic_visit(node)
        return self._as_float(node) if isinstance(node.op, ast.Not) else node


class CompiledExpression:
    """A validated, compiled scalar formula."""

    def __init__(self, source: str):
        self.source = source
        self.error: Optional[str] = None
        self._code = None
        text = preprocess(source or "")
        if not text:
            self.error = "Empty expression"
            return
        try:
            tree = ast.parse(text, mode="eval")
            _validate(tree)
            tree = ast.fix_missing_locations(_FloatLiterals().visit(tree))
            self._code = compile(tree, "<lattice-expr>", "eval")
        except (SyntaxError, ValueError) as e:
            self.error = str(e)
            logger.warning(f"Rejected expression '{source}': {e}")

    @property
    def is_valid(self) -> bool:
        return self._code is not None

    def evaluate(self, context: Mapping[str, float]) -> Optional[float]:
        """Return the finite float value, or None when evaluation fails."""
        if self._code is None:
            return None
        namespace: Dict[str, Any] = {**FUNCTIONS, **CONSTANTS, _AS_FLOAT: float}
        namespace.update({k: float(v) for k, v in context.items()})
        try:
            value = eval(self._code, {"__builtins__": {}}, namespace)
            number = float(value)
        except (ArithmeticError, ValueError, TypeError, NameError, OverflowError):
            return None
        return number if math.isfinite(number) else None


@lru_cache(maxsize=64)
def compile_expression(source: str) -> CompiledExpression:
    return CompiledExpression(source)


def split_top_level(source: str, separator: str = ",") -> List[str]:
    """Split on separators that are not nested inside parentheses."""
    parts: List[str] = []
    depth = 0
    current: List[str] = []
    for ch in source:
        if ch == "(":
            depth += 1
        elif ch == ")":
            depth = max(0, depth - 1)
        if ch == separator and depth == 0:
            parts.append("".join(current))
            current = []
            continue
        current.append(ch)
    parts.append("".join(current))
    return [p.strip() for p in parts if p.strip()]


_COMPONENT_PREFIX = re.compile(r"^[xyz]\s*=\s*", re.IGNORECASE)


@lru_cache(maxsize=16)
def compile_vector_expression(source: str) -> Optional[Tuple[CompiledExpression, ...]]:
    """
    Compile "x=f(t), y=g(t), z=h(t)" into three scalar formulas.

    Returns None when fewer than three components are present.
    """
    parts = split_top_level((source or "").strip())
    if len(parts) < 3:
        logger.warning(f"Parametric expression needs three components: '{source}'")
        return None
    return tuple(compile_expression(_COMPONENT_PREFIX.sub("", p)) for p in parts[:3])


def evaluate_vector(
    components: Tuple[CompiledExpression, ...],
    context: Mapping[str, float],
) -> Optional[Tuple[float, float, float]]:
    values = [c.evaluate(context) for c in components]
    if any(v is None for v in values):
        return None
    return values[0], values[1], values[2]
