"""Line records, pass results and the CalcHost protocol."""

from __future__ import annotations

import math
from dataclasses import dataclass, fields
from enum import Enum
from typing import Any, Hashable, NamedTuple, Protocol, runtime_checkable

from scratchcalc.calc._errors import CalcError


class LineKind(Enum):
    BLANK = "blank"
    COMMENT = "comment"
    ASSIGNMENT = "assignment"
    EXPRESSION = "expression"


class NumberFormat(Enum):
    """Display format for integral numeric values."""

    DEC = "dec"
    HEX = "hex"

    @classmethod
    def parse(cls, text: str | NumberFormat) -> NumberFormat:
        """Accept ``dec``/``hex`` and their long spellings, case-insensitively."""
        if isinstance(text, NumberFormat):
            return text
        key = str(text).strip().lower()
        if key in ("dec", "decimal"):
            return cls.DEC
        if key in ("hex", "hexadecimal"):
            return cls.HEX
        raise ValueError(f"Invalid number format: {text!r}")

    def toggled(self) -> NumberFormat:
        return NumberFormat.DEC if self is NumberFormat.HEX else NumberFormat.HEX


class RenderStyle(Enum):
    VALUE = "value"
    ERROR = "error"
    HIGHLIGHT = "highlight"


def _same_value(a: Any, b: Any) -> bool:
    if isinstance(a, float) and isinstance(b, float) and math.isnan(a) and math.isnan(b):
        return True
    return a == b


@dataclass(frozen=True)
class LineRecord:
    """Outcome of evaluating one non-blank line in a pass."""

    line_number: int  # 1-based
    kind: LineKind
    name: str | None
    expression: str
    value: Any = None
    error: str | None = None
    error_type: type[CalcError] | None = None
    display_text: str | None = None  # None for error records

    def __eq__(self, other: object) -> bool:
        # A NaN result equals itself so unchanged lines compare equal across passes
        if not isinstance(other, LineRecord):
            return NotImplemented
        return all(
            _same_value(getattr(self, f.name), getattr(other, f.name))
            for f in fields(self)
        )

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def outcome(self) -> dict[str, Any]:
        if self.error is not None:
            return {"error": self.error}
        return {"value": self.value, "name": self.name}


class SheetResult(NamedTuple):
    """Result of one evaluation pass, unpackable as ``(outcomes, display_texts)``."""

    outcomes: dict[int, LineRecord]  # line_number -> record
    display_texts: dict[int, str]  # line_number -> formatted value

    @property
    def errors(self) -> list[LineRecord]:
        return [rec for rec in self.outcomes.values() if not rec.ok]

    @property
    def values(self) -> dict[str, Any]:
        """name -> value for every line that succeeded in this pass."""
        return {
            rec.name: rec.value
            for rec in self.outcomes.values()
            if rec.ok and rec.name is not None
        }


@runtime_checkable
class CalcHost(Protocol):
    """Outbound interface to the editor (or any buffer-like host)."""

    def render(
        self,
        document_id: Hashable,
        line_number: int,
        text: str,
        style: RenderStyle,
    ) -> None:
        """Show *text* beside *line_number* (1-based)."""
        ...

    def clear_renders(self, document_id: Hashable) -> None:
        """Remove every annotation previously rendered for the document."""
        ...

    def notify(self, document_id: Hashable, message: str, is_error: bool = False) -> None:
        """Show a status message to the user."""
        ...

    def set_clipboard(self, text: str) -> None:
        ...
