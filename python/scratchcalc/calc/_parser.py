"""Line parser: assignment detection + restricted expression compilation."""

from __future__ import annotations

import ast
import re
from collections import OrderedDict
from dataclasses import dataclass

from scratchcalc.calc._errors import CompileError, ParseError
from scratchcalc.calc._protocol import LineKind

DEFAULT_ANONYMOUS_PREFIX = "anon"
COMPILE_CACHE_SIZE = 512

# ---------------------------------------------------------------------------
# Line classification
# ---------------------------------------------------------------------------

# name = rest, where "=" is not the start of "=="
_ASSIGNMENT_RE = re.compile(r"^\s*([A-Za-z_][A-Za-z0-9_]*)\s*=(?!=)\s*(.*?)\s*$")


@dataclass(frozen=True)
class ParsedLine:
    """A classified line, before compilation."""

    line_number: int
    kind: LineKind
    name: str | None = None
    expression: str = ""


def classify_line(
    line: str,
    line_number: int,
    anonymous_prefix: str = DEFAULT_ANONYMOUS_PREFIX,
) -> ParsedLine:
    """Classify one line of a document.

    Bare expressions get a synthesized name built from the line number, so
    the same expression binds a different name when it moves to another line.
    """
    stripped = line.strip()
    if not stripped:
        return ParsedLine(line_number, LineKind.BLANK)
    if stripped.startswith("#"):
        return ParsedLine(line_number, LineKind.COMMENT)

    m = _ASSIGNMENT_RE.match(line)
    if m:
        return ParsedLine(line_number, LineKind.ASSIGNMENT, m.group(1), m.group(2))

    return ParsedLine(
        line_number,
        LineKind.EXPRESSION,
        f"{anonymous_prefix}{line_number}",
        stripped,
    )


# ---------------------------------------------------------------------------
# Expression whitelist
# ---------------------------------------------------------------------------

_ALLOWED_NODES: tuple[type[ast.AST], ...] = (
    ast.Expression,
    ast.Constant,
    ast.Name,
    ast.Load,
    ast.UnaryOp,
    ast.BinOp,
    ast.BoolOp,
    ast.Compare,
    ast.IfExp,
    ast.Call,
    # operators
    ast.Add,
    ast.Sub,
    ast.Mult,
    ast.Div,
    ast.FloorDiv,
    ast.Mod,
    ast.Pow,
    ast.LShift,
    ast.RShift,
    ast.BitAnd,
    ast.BitOr,
    ast.BitXor,
    ast.UAdd,
    ast.USub,
    ast.Not,
    ast.Invert,
    ast.And,
    ast.Or,
    ast.Eq,
    ast.NotEq,
    ast.Lt,
    ast.LtE,
    ast.Gt,
    ast.GtE,
)

_CONSTANT_TYPES = (bool, int, float, str)

_NODE_DESCRIPTIONS: dict[type[ast.AST], str] = {
    ast.Attribute: "attribute access",
    ast.Subscript: "subscripts",
    ast.Slice: "slices",
    ast.Lambda: "lambda",
    ast.ListComp: "comprehensions",
    ast.SetComp: "comprehensions",
    ast.DictComp: "comprehensions",
    ast.GeneratorExp: "generator expressions",
    ast.JoinedStr: "f-strings",
    ast.NamedExpr: "assignment expressions",
    ast.Tuple: "tuples",
    ast.List: "lists",
    ast.Dict: "dicts",
    ast.Set: "sets",
    ast.Starred: "starred arguments",
    ast.keyword: "keyword arguments",
    ast.Is: "identity comparison",
    ast.IsNot: "identity comparison",
    ast.In: "membership tests",
    ast.NotIn: "membership tests",
    ast.MatMult: "matrix multiplication",
    ast.Await: "await",
    ast.Yield: "yield",
    ast.YieldFrom: "yield",
}


def _describe(node: ast.AST) -> str:
    return _NODE_DESCRIPTIONS.get(type(node), type(node).__name__)


def _validate(tree: ast.Expression) -> None:
    """Raise CompileError for any construct outside the expression grammar."""
    for node in ast.walk(tree):
        if isinstance(node, ast.Call):
            if node.keywords:
                raise CompileError("unsupported syntax: keyword arguments")
            if not isinstance(node.func, ast.Name):
                raise CompileError("unsupported syntax: only named functions can be called")
        if isinstance(node, ast.Constant) and not isinstance(node.value, _CONSTANT_TYPES):
            raise CompileError(f"unsupported literal: {node.value!r}")
        if not isinstance(node, _ALLOWED_NODES):
            raise CompileError(f"unsupported syntax: {_describe(node)}")


# ---------------------------------------------------------------------------
# Compilation
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class CompiledExpression:
    """A validated expression tree ready for evaluation."""

    source: str
    tree: ast.Expression


def compile_expression(source: str) -> CompiledExpression:
    """Parse and validate a single expression.

    Raises ParseError for an empty expression and CompileError for malformed
    or disallowed syntax.
    """
    text = source.strip()
    if not text:
        raise ParseError("empty expression")
    try:
        tree = ast.parse(text, mode="eval")
    except SyntaxError as e:
        msg = e.msg or "invalid syntax"
        if e.offset:
            msg = f"{msg} (col {e.offset})"
        raise CompileError(msg) from e
    except (ValueError, RecursionError) as e:
        raise CompileError(str(e) or "invalid expression") from e
    except MemoryError as e:
        # deeply nested input exhausts the parser stack
        raise CompileError("expression too complex") from e
    _validate(tree)
    return CompiledExpression(source=text, tree=tree)


class ExpressionCompiler:
    """Compiles expressions, caching successful results by source text."""

    def __init__(self, cache_size: int = COMPILE_CACHE_SIZE) -> None:
        self._cache: OrderedDict[str, CompiledExpression] = OrderedDict()
        self._cache_size = cache_size

    def compile(self, source: str) -> CompiledExpression:
        cached = self._cache.get(source)
        if cached is not None:
            self._cache.move_to_end(source)
            return cached
        compiled = compile_expression(source)
        self._cache[source] = compiled
        if len(self._cache) > self._cache_size:
            self._cache.popitem(last=False)
        return compiled

    def clear(self) -> None:
        self._cache.clear()

    def __len__(self) -> int:
        return len(self._cache)
