"""scratchcalc.calc - line-by-line expression evaluation for scratch documents."""

from scratchcalc.calc._environment import MISSING, Environment
from scratchcalc.calc._errors import (
    CalcError,
    CompileError,
    EvaluationError,
    ParseError,
    UnknownSessionError,
)
from scratchcalc.calc._evaluator import SheetEvaluator, evaluate_sheet, format_value
from scratchcalc.calc._functions import BUILTIN_WHITELIST, BuiltinRegistry, is_builtin
from scratchcalc.calc._parser import (
    CompiledExpression,
    ExpressionCompiler,
    ParsedLine,
    classify_line,
    compile_expression,
)
from scratchcalc.calc._protocol import (
    CalcHost,
    LineKind,
    LineRecord,
    NumberFormat,
    RenderStyle,
    SheetResult,
)

__all__ = [
    "BUILTIN_WHITELIST",
    "BuiltinRegistry",
    "CalcError",
    "CalcHost",
    "CompileError",
    "CompiledExpression",
    "Environment",
    "EvaluationError",
    "ExpressionCompiler",
    "LineKind",
    "LineRecord",
    "MISSING",
    "NumberFormat",
    "ParseError",
    "ParsedLine",
    "RenderStyle",
    "SheetEvaluator",
    "SheetResult",
    "UnknownSessionError",
    "classify_line",
    "compile_expression",
    "evaluate_sheet",
    "format_value",
    "is_builtin",
]
