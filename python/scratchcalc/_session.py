"""Sessions: one Environment + display state per open document.

A host (editor plugin, terminal UI, ...) keeps one :class:`SessionRegistry`
and forwards document events to it. The registry runs evaluation passes and
pushes annotations back through the host's :class:`~scratchcalc.calc.CalcHost`
methods.
"""

from __future__ import annotations

import logging
from typing import Hashable, Iterable

from scratchcalc.calc._environment import Environment
from scratchcalc.calc._errors import UnknownSessionError
from scratchcalc.calc._evaluator import SheetEvaluator
from scratchcalc.calc._functions import BuiltinRegistry
from scratchcalc.calc._parser import DEFAULT_ANONYMOUS_PREFIX
from scratchcalc.calc._protocol import (
    CalcHost,
    LineRecord,
    NumberFormat,
    RenderStyle,
    SheetResult,
)

logger = logging.getLogger(__name__)

INVALID_FORMAT_MESSAGE = "Invalid format. Use 'dec' or 'hex'."


class CalcSession:
    """Evaluation state for a single document."""

    def __init__(
        self,
        document_id: Hashable,
        number_format: NumberFormat = NumberFormat.DEC,
        evaluator: SheetEvaluator | None = None,
        builtins: BuiltinRegistry | None = None,
    ) -> None:
        self.document_id = document_id
        self.environment = Environment(builtins)
        self.number_format = number_format
        self._evaluator = evaluator or SheetEvaluator()
        self._lines: list[str] = []
        self._result = SheetResult({}, {})

    @property
    def lines(self) -> list[str]:
        return list(self._lines)

    @property
    def result(self) -> SheetResult:
        """Result of the most recent pass."""
        return self._result

    def update(self, lines: Iterable[str]) -> SheetResult:
        """Replace the document text and run a pass."""
        self._lines = list(lines)
        return self.refresh()

    def refresh(self) -> SheetResult:
        """Re-run a pass over the last known lines."""
        self._result = self._evaluator.evaluate(
            self._lines, self.environment, self.number_format,
        )
        return self._result

    def set_format(self, number_format: NumberFormat | str) -> SheetResult:
        self.number_format = NumberFormat.parse(number_format)
        return self.refresh()

    def toggle_format(self) -> SheetResult:
        return self.set_format(self.number_format.toggled())

    def record(self, line_number: int) -> LineRecord | None:
        return self._result.outcomes.get(line_number)

    def display_text(self, line_number: int) -> str | None:
        return self._result.display_texts.get(line_number)


class SessionRegistry:
    """Sessions keyed by an opaque document id, with explicit teardown.

    Usage::

        registry = SessionRegistry(host)
        registry.on_content_changed(buf, ["x = 2 + 3", "x * 2"])
        registry.toggle_format(buf)
        registry.copy_value(buf, 2)
        registry.close_session(buf)

    Calls for one document must not overlap; the registry does no locking.
    """

    def __init__(
        self,
        host: CalcHost,
        default_format: NumberFormat | str = NumberFormat.DEC,
        anonymous_prefix: str = DEFAULT_ANONYMOUS_PREFIX,
        builtins: BuiltinRegistry | None = None,
    ) -> None:
        self._host = host
        self._sessions: dict[Hashable, CalcSession] = {}
        self._evaluator = SheetEvaluator(anonymous_prefix)
        self._builtins = builtins
        self.default_format = NumberFormat.parse(default_format)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def open_session(self, document_id: Hashable) -> CalcSession:
        """Return the session for *document_id*, creating it if needed."""
        session = self._sessions.get(document_id)
        if session is None:
            session = CalcSession(
                document_id,
                number_format=self.default_format,
                evaluator=self._evaluator,
                builtins=self._builtins,
            )
            self._sessions[document_id] = session
            logger.debug("Opened session %r", document_id)
        return session

    def close_session(self, document_id: Hashable) -> bool:
        """Discard a document's environment and display state."""
        if self._sessions.pop(document_id, None) is None:
            return False
        logger.debug("Closed session %r", document_id)
        return True

    def get_session(self, document_id: Hashable) -> CalcSession:
        try:
            return self._sessions[document_id]
        except KeyError:
            raise UnknownSessionError(f"No session for document {document_id!r}") from None

    def __contains__(self, document_id: object) -> bool:
        return document_id in self._sessions

    def __len__(self) -> int:
        return len(self._sessions)

    # ------------------------------------------------------------------
    # Host events
    # ------------------------------------------------------------------

    def on_content_changed(
        self, document_id: Hashable, lines: Iterable[str],
    ) -> SheetResult:
        """Re-evaluate the whole document and re-render its annotations."""
        session = self.open_session(document_id)
        result = session.update(lines)
        self._render(session)
        return result

    def set_format(
        self, document_id: Hashable, number_format: NumberFormat | str,
    ) -> NumberFormat | None:
        """Switch the number format, re-evaluate and report it to the user.

        An unknown format string is reported through the host and leaves the
        session unchanged (returns None).
        """
        session = self.get_session(document_id)
        try:
            fmt = NumberFormat.parse(number_format)
        except ValueError:
            self._host.notify(document_id, INVALID_FORMAT_MESSAGE, True)
            return None
        session.set_format(fmt)
        self._render(session)
        self._announce_format(session)
        return fmt

    def toggle_format(self, document_id: Hashable) -> NumberFormat:
        session = self.get_session(document_id)
        session.toggle_format()
        self._render(session)
        self._announce_format(session)
        return session.number_format

    def get_last_display_text(
        self, document_id: Hashable, line_number: int,
    ) -> str | None:
        session = self._sessions.get(document_id)
        if session is None:
            return None
        return session.display_text(line_number)

    def highlight(self, document_id: Hashable, line_number: int) -> bool:
        """Re-render with *line_number*'s value highlighted.

        Returns False (and renders nothing new) if that line has no value.
        """
        session = self.get_session(document_id)
        if session.display_text(line_number) is None:
            return False
        self._render(session, highlight_line=line_number)
        return True

    def copy_value(self, document_id: Hashable, line_number: int) -> str | None:
        """Put a line's display text on the host clipboard.

        Normal rendering is restored afterwards, undoing any highlight.
        """
        session = self.get_session(document_id)
        text = session.display_text(line_number)
        if text is None:
            return None
        self._host.set_clipboard(text)
        self._render(session)
        return text

    # ------------------------------------------------------------------
    # Rendering
    # ------------------------------------------------------------------

    def _render(self, session: CalcSession, highlight_line: int | None = None) -> None:
        doc = session.document_id
        self._host.clear_renders(doc)
        for line_number, record in sorted(session.result.outcomes.items()):
            if record.error is not None:
                self._host.render(doc, line_number, record.error, RenderStyle.ERROR)
            elif record.display_text is not None:
                style = (
                    RenderStyle.HIGHLIGHT if line_number == highlight_line
                    else RenderStyle.VALUE
                )
                self._host.render(doc, line_number, record.display_text, style)

    def _announce_format(self, session: CalcSession) -> None:
        logger.debug(
            "Session %r format: %s", session.document_id, session.number_format.value,
        )
        self._host.notify(
            session.document_id, f"Format: {session.number_format.value}", False,
        )
