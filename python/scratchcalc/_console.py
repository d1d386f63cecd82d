"""Terminal host: keeps annotations in memory and prints them beside lines."""

from __future__ import annotations

import sys
from typing import Hashable, TextIO

from scratchcalc.calc._protocol import RenderStyle

_MARKERS = {
    RenderStyle.VALUE: "# =>",
    RenderStyle.HIGHLIGHT: "# ==>",
    RenderStyle.ERROR: "# !!",
}


class ConsoleHost:
    """CalcHost implementation for the command line.

    There is no system clipboard here; copied text is kept on
    ``self.clipboard`` and echoed to the output stream.
    """

    def __init__(self, out: TextIO | None = None) -> None:
        self.out = out or sys.stdout
        self.annotations: dict[Hashable, dict[int, tuple[str, RenderStyle]]] = {}
        self.messages: list[tuple[str, bool]] = []
        self.clipboard: str | None = None

    def render(
        self,
        document_id: Hashable,
        line_number: int,
        text: str,
        style: RenderStyle,
    ) -> None:
        self.annotations.setdefault(document_id, {})[line_number] = (text, style)

    def clear_renders(self, document_id: Hashable) -> None:
        self.annotations.pop(document_id, None)

    def notify(self, document_id: Hashable, message: str, is_error: bool = False) -> None:
        self.messages.append((message, is_error))
        stream = sys.stderr if is_error else self.out
        print(message, file=stream)

    def set_clipboard(self, text: str) -> None:
        self.clipboard = text
        print(f"Copied: {text}", file=self.out)

    def annotation(self, document_id: Hashable, line_number: int) -> str | None:
        """The marker-prefixed annotation for one line, if any."""
        entry = self.annotations.get(document_id, {}).get(line_number)
        if entry is None:
            return None
        text, style = entry
        return f"{_MARKERS[style]} {text}"

    def annotate(self, document_id: Hashable, lines: list[str]) -> list[str]:
        """Return *lines* with their annotations appended in an aligned column."""
        width = max((len(line.rstrip()) for line in lines), default=0)
        out: list[str] = []
        for line_number, line in enumerate(lines, start=1):
            note = self.annotation(document_id, line_number)
            if note is None:
                out.append(line.rstrip())
            else:
                out.append(f"{line.rstrip():<{width}}  {note}")
        return out
