"""Error classes for sheet evaluation.

Line-level errors (``ParseError``, ``CompileError``, ``EvaluationError``) are
raised inside a pass and caught per line; they end up as the ``error`` of a
:class:`~scratchcalc.calc.LineRecord` and never reach the host.
"""

from __future__ import annotations


class CalcError(Exception):
    """Base class for all scratchcalc errors."""

    def __init__(self, message: str, line_number: int | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.line_number = line_number

    def __str__(self) -> str:
        return self.message


class ParseError(CalcError):
    """A line does not yield a usable expression (e.g. ``x =``)."""


class CompileError(CalcError):
    """Malformed or disallowed expression syntax."""


class EvaluationError(CalcError):
    """The expression compiled but failed while being evaluated."""


class UnknownSessionError(CalcError, KeyError):
    """No session is open for the given document id."""

    def __str__(self) -> str:
        return self.message
