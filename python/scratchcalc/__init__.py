"""scratchcalc: turn a scratch document into a live calculator.

Usage::

    from scratchcalc import Environment, SheetEvaluator

    env = Environment()
    outcomes, display_texts = SheetEvaluator().evaluate(
        ["width = 0x40", "height = 3", "width * height"], env, "hex",
    )
    print(display_texts[3])  # 0xc0

    # Editor-style hosts go through a SessionRegistry
    from scratchcalc import SessionRegistry

    registry = SessionRegistry(host)
    registry.on_content_changed(buffer_id, buffer_lines)
    registry.toggle_format(buffer_id)
"""

from scratchcalc._console import ConsoleHost
from scratchcalc._session import CalcSession, SessionRegistry
from scratchcalc.calc import (
    CalcError,
    CalcHost,
    CompileError,
    Environment,
    EvaluationError,
    LineKind,
    LineRecord,
    NumberFormat,
    ParseError,
    RenderStyle,
    SheetEvaluator,
    SheetResult,
    UnknownSessionError,
    evaluate_sheet,
    format_value,
)

__version__ = "0.1.0"

__all__ = [
    "__version__",
    "CalcError",
    "CalcHost",
    "CalcSession",
    "CompileError",
    "ConsoleHost",
    "Environment",
    "EvaluationError",
    "LineKind",
    "LineRecord",
    "NumberFormat",
    "ParseError",
    "RenderStyle",
    "SessionRegistry",
    "SheetEvaluator",
    "SheetResult",
    "UnknownSessionError",
    "evaluate_sheet",
    "format_value",
]
