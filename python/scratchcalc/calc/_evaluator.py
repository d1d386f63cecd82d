"""SheetEvaluator: line-by-line evaluation of a scratch document.

Every pass walks the whole document top to bottom. Each non-blank line is
either ``name = expression`` or a bare expression; bare expressions are bound
under a synthesized name (``anon<line>``) so later lines can refer to them.
Expressions are Python expression syntax restricted to arithmetic, bitwise
and comparison operators, conditionals and calls to built-in math functions
(see :mod:`scratchcalc.calc._parser`). A failing line is recorded with its
error and never stops the rest of the pass.
"""

from __future__ import annotations

import ast
import logging
import math
import operator
import re
from typing import Any, Callable, Iterable

from scratchcalc.calc._environment import MISSING, Environment
from scratchcalc.calc._errors import CalcError, EvaluationError
from scratchcalc.calc._functions import (
    MAX_INT_BITS,
    MAX_STRING_LENGTH,
    check_int_size,
    check_power,
)
from scratchcalc.calc._parser import (
    DEFAULT_ANONYMOUS_PREFIX,
    ExpressionCompiler,
    ParsedLine,
    classify_line,
)
from scratchcalc.calc._protocol import LineKind, LineRecord, NumberFormat, SheetResult

logger = logging.getLogger(__name__)

# Exceptions an operation or built-in may raise on bad operands.
_RUNTIME_ERRORS = (ArithmeticError, ValueError, TypeError, RecursionError, MemoryError)

# printf-style field: "%%" or flags, width, precision
_PRINTF_FIELD_RE = re.compile(r"%(?:%|[#0 +\-]*(\d*)(?:\.(\d*))?)")

# ---------------------------------------------------------------------------
# Operators
# ---------------------------------------------------------------------------

_BINARY_OPS: dict[type[ast.operator], Callable[[Any, Any], Any]] = {
    ast.Add: operator.add,
    ast.Sub: operator.sub,
    ast.Mult: operator.mul,
    ast.Div: operator.truediv,
    ast.FloorDiv: operator.floordiv,
    ast.Mod: operator.mod,
    ast.Pow: operator.pow,
    ast.LShift: operator.lshift,
    ast.RShift: operator.rshift,
    ast.BitAnd: operator.and_,
    ast.BitOr: operator.or_,
    ast.BitXor: operator.xor,
}

_UNARY_OPS: dict[type[ast.unaryop], Callable[[Any], Any]] = {
    ast.UAdd: operator.pos,
    ast.USub: operator.neg,
    ast.Not: operator.not_,
    ast.Invert: operator.invert,
}

_COMPARE_OPS: dict[type[ast.cmpop], Callable[[Any, Any], Any]] = {
    ast.Eq: operator.eq,
    ast.NotEq: operator.ne,
    ast.Lt: operator.lt,
    ast.LtE: operator.le,
    ast.Gt: operator.gt,
    ast.GtE: operator.ge,
}


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _check_printf_fields(template: str) -> None:
    limit = MAX_STRING_LENGTH
    for match in _PRINTF_FIELD_RE.finditer(template):
        for digits in match.groups():
            if digits and (len(digits) > len(str(limit)) or int(digits) > limit):
                raise ValueError(
                    f"format width or precision exceeds {limit} characters"
                )


def _precheck_binary(op: ast.operator, left: Any, right: Any) -> None:
    """Reject operations whose result would be too large to even build."""
    if isinstance(op, ast.Mod) and isinstance(left, str):
        _check_printf_fields(left)
    elif isinstance(op, ast.Pow):
        check_power(left, right)
    elif isinstance(op, ast.LShift):
        if _is_int(left) and _is_int(right) and left and right > 0:
            if left.bit_length() + right > MAX_INT_BITS:
                raise OverflowError(f"integer result exceeds {MAX_INT_BITS} bits")
    elif isinstance(op, ast.Mult):
        for text, count in ((left, right), (right, left)):
            if isinstance(text, str) and _is_int(count):
                if len(text) * count > MAX_STRING_LENGTH:
                    raise ValueError(
                        f"string result exceeds {MAX_STRING_LENGTH} characters"
                    )


def _check_result(value: Any) -> Any:
    if _is_int(value):
        return check_int_size(value)
    if isinstance(value, str) and len(value) > MAX_STRING_LENGTH:
        raise ValueError(f"string result exceeds {MAX_STRING_LENGTH} characters")
    if isinstance(value, complex):
        # e.g. (-8) ** 0.5
        raise ValueError("complex results are not supported")
    return value


# ---------------------------------------------------------------------------
# Display formatting
# ---------------------------------------------------------------------------


def _is_integral(value: Any) -> bool:
    if _is_int(value):
        return True
    return isinstance(value, float) and math.isfinite(value) and value.is_integer()


def format_value(value: Any, number_format: NumberFormat | str = NumberFormat.DEC) -> str:
    """Render a computed value for display.

    Integral numbers (ints and whole floats, never bools) render as lowercase
    ``0x`` hex in HEX mode; everything else uses its natural ``str`` form.
    """
    fmt = NumberFormat.parse(number_format)
    if fmt is NumberFormat.HEX and _is_integral(value):
        return hex(int(value))
    if _is_int(value):
        try:
            return str(value)
        except ValueError:
            # past the interpreter's int -> str digit limit
            return hex(value)
    return str(value)


# ---------------------------------------------------------------------------
# Evaluator
# ---------------------------------------------------------------------------


class SheetEvaluator:
    """Evaluates scratch documents against a session Environment.

    Usage::

        env = Environment()
        evaluator = SheetEvaluator()
        outcomes, display_texts = evaluator.evaluate(["x = 2 + 3", "x * 2"], env)
        display_texts[2]  # "10"
    """

    def __init__(
        self,
        anonymous_prefix: str = DEFAULT_ANONYMOUS_PREFIX,
        compiler: ExpressionCompiler | None = None,
    ) -> None:
        if not anonymous_prefix.isidentifier():
            raise ValueError(f"Anonymous prefix must be an identifier: {anonymous_prefix!r}")
        self.anonymous_prefix = anonymous_prefix
        self._compiler = compiler if compiler is not None else ExpressionCompiler()

    def evaluate(
        self,
        lines: Iterable[str],
        env: Environment,
        number_format: NumberFormat | str = NumberFormat.DEC,
    ) -> SheetResult:
        """Evaluate every line in order, updating *env* as lines succeed.

        Returns ``(outcomes, display_texts)`` keyed by 1-based line number.
        Blank and comment lines produce no entry.
        """
        fmt = NumberFormat.parse(number_format)
        outcomes: dict[int, LineRecord] = {}
        display_texts: dict[int, str] = {}

        for line_number, line in enumerate(lines, start=1):
            parsed = classify_line(line, line_number, self.anonymous_prefix)
            if parsed.kind in (LineKind.BLANK, LineKind.COMMENT):
                continue
            record = self.evaluate_line(parsed, env, fmt)
            outcomes[line_number] = record
            if record.display_text is not None:
                display_texts[line_number] = record.display_text

        return SheetResult(outcomes, display_texts)

    def evaluate_line(
        self,
        parsed: ParsedLine,
        env: Environment,
        number_format: NumberFormat = NumberFormat.DEC,
    ) -> LineRecord:
        """Evaluate one classified line. Binds the result only on success."""
        try:
            compiled = self._compiler.compile(parsed.expression)
            value = self._eval_node(compiled.tree.body, env)
        except CalcError as e:
            return self._error_record(parsed, e)
        except _RUNTIME_ERRORS as e:
            err = EvaluationError(str(e) or type(e).__name__, parsed.line_number)
            return self._error_record(parsed, err)

        if parsed.name is not None:
            env.set(parsed.name, value)
        return LineRecord(
            line_number=parsed.line_number,
            kind=parsed.kind,
            name=parsed.name,
            expression=parsed.expression,
            value=value,
            display_text=format_value(value, number_format),
        )

    @staticmethod
    def _error_record(parsed: ParsedLine, error: CalcError) -> LineRecord:
        if error.line_number is None:
            error.line_number = parsed.line_number
        logger.debug("Cannot evaluate line %d: %s", parsed.line_number, error)
        return LineRecord(
            line_number=parsed.line_number,
            kind=parsed.kind,
            name=parsed.name,
            expression=parsed.expression,
            error=str(error),
            error_type=type(error),
        )

    # ------------------------------------------------------------------
    # Tree walking
    # ------------------------------------------------------------------

    def _eval_node(self, node: ast.expr, env: Environment) -> Any:
        """Recursively evaluate a validated expression node."""
        if isinstance(node, ast.Constant):
            return node.value

        if isinstance(node, ast.Name):
            value = env.get(node.id)
            if value is MISSING:
                raise EvaluationError(f"name {node.id!r} is not defined")
            return value

        if isinstance(node, ast.BinOp):
            left = self._eval_node(node.left, env)
            right = self._eval_node(node.right, env)
            _precheck_binary(node.op, left, right)
            return _check_result(_BINARY_OPS[type(node.op)](left, right))

        if isinstance(node, ast.UnaryOp):
            operand = self._eval_node(node.operand, env)
            return _check_result(_UNARY_OPS[type(node.op)](operand))

        if isinstance(node, ast.BoolOp):
            # Short-circuit, returning the deciding operand like Python does
            result: Any = None
            for value_node in node.values:
                result = self._eval_node(value_node, env)
                if isinstance(node.op, ast.And) and not result:
                    return result
                if isinstance(node.op, ast.Or) and result:
                    return result
            return result

        if isinstance(node, ast.Compare):
            left = self._eval_node(node.left, env)
            for op, comparator in zip(node.ops, node.comparators):
                right = self._eval_node(comparator, env)
                if not _COMPARE_OPS[type(op)](left, right):
                    return False
                left = right
            return True

        if isinstance(node, ast.IfExp):
            if self._eval_node(node.test, env):
                return self._eval_node(node.body, env)
            return self._eval_node(node.orelse, env)

        if isinstance(node, ast.Call):
            func = self._eval_node(node.func, env)
            if not callable(func):
                raise EvaluationError(f"{type(func).__name__!r} object is not callable")
            args = [self._eval_node(arg, env) for arg in node.args]
            return _check_result(func(*args))

        # Unreachable for validated trees
        raise EvaluationError(f"cannot evaluate {type(node).__name__}")


_default_evaluator = SheetEvaluator()


def evaluate_sheet(
    lines: Iterable[str],
    env: Environment,
    number_format: NumberFormat | str = NumberFormat.DEC,
) -> SheetResult:
    """Evaluate a document with the default evaluator (``anon`` prefix)."""
    return _default_evaluator.evaluate(lines, env, number_format)
