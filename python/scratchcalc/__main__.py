"""scratchcalc entry point: annotate a file, or run an interactive scratch pad."""

from __future__ import annotations

import argparse
import logging
import sys
from typing import Callable, TextIO

from scratchcalc._console import ConsoleHost
from scratchcalc._session import SessionRegistry
from scratchcalc.calc._parser import DEFAULT_ANONYMOUS_PREFIX
from scratchcalc.calc._protocol import NumberFormat

_DOCUMENT = "<stdin>"
_REPL_HELP = ":hex  :dec  :toggle  :copy N  :show  :vars  :clear  :quit"


def _read_source(path: str) -> str:
    if path == "-":
        return sys.stdin.read()
    with open(path, "r", encoding="utf-8") as handle:
        return handle.read()


def run_file(
    path: str,
    number_format: NumberFormat,
    anonymous_prefix: str,
    strict: bool = False,
    out: TextIO | None = None,
) -> int:
    out = out or sys.stdout
    try:
        source = _read_source(path)
    except OSError as exc:
        print(f"Failed to read {path}: {exc}", file=sys.stderr)
        return 1

    host = ConsoleHost(out)
    registry = SessionRegistry(
        host, default_format=number_format, anonymous_prefix=anonymous_prefix,
    )
    lines = source.splitlines()
    result = registry.on_content_changed(path, lines)
    for line in host.annotate(path, lines):
        print(line, file=out)
    registry.close_session(path)

    if strict and result.errors:
        return 2
    return 0


def run_repl(
    number_format: NumberFormat,
    anonymous_prefix: str,
    input_fn: Callable[[str], str] = input,
    out: TextIO | None = None,
) -> int:
    """Each entered line is appended to the document, which is then re-evaluated."""
    out = out or sys.stdout
    host = ConsoleHost(out)
    registry = SessionRegistry(
        host, default_format=number_format, anonymous_prefix=anonymous_prefix,
    )
    lines: list[str] = []
    registry.open_session(_DOCUMENT)
    print(f"scratchcalc. Commands: {_REPL_HELP}", file=out)

    while True:
        try:
            line = input_fn(">>> ")
        except EOFError:
            print(file=out)
            break

        stripped = line.strip()
        if stripped.startswith(":"):
            command, _, arg = stripped[1:].partition(" ")
            if command in ("q", "quit", "exit"):
                break
            if command in ("hex", "dec"):
                registry.set_format(_DOCUMENT, command)
            elif command == "toggle":
                registry.toggle_format(_DOCUMENT)
            elif command == "copy":
                try:
                    line_number = int(arg) if arg else len(lines)
                except ValueError:
                    print(f"Not a line number: {arg!r}", file=sys.stderr)
                    continue
                if registry.copy_value(_DOCUMENT, line_number) is None:
                    print(f"No value on line {line_number}", file=sys.stderr)
            elif command == "show":
                for annotated in host.annotate(_DOCUMENT, lines):
                    print(annotated, file=out)
            elif command == "vars":
                env = registry.get_session(_DOCUMENT).environment
                for name in env.names():
                    print(f"{name} = {env.get(name)!r}", file=out)
            elif command == "clear":
                registry.close_session(_DOCUMENT)
                registry.open_session(_DOCUMENT)
                host.clear_renders(_DOCUMENT)
                lines.clear()
            else:
                print(f"Unknown command :{command}. Commands: {_REPL_HELP}", file=sys.stderr)
            continue

        lines.append(line)
        registry.on_content_changed(_DOCUMENT, lines)
        note = host.annotation(_DOCUMENT, len(lines))
        if note is not None:
            print(note, file=out)

    registry.close_session(_DOCUMENT)
    return 0


def run_cli(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        prog="scratchcalc",
        description="Evaluate a scratch document line by line.",
    )
    parser.add_argument("document", nargs="?", help="File to evaluate ('-' for stdin); omit for a REPL")
    parser.add_argument(
        "--format", dest="number_format", default="dec",
        help="Number format for whole values: dec or hex (default: dec)",
    )
    parser.add_argument("--hex", action="store_true", help="Shorthand for --format hex")
    parser.add_argument(
        "--prefix", default=DEFAULT_ANONYMOUS_PREFIX,
        help="Name prefix for bare expression results (default: %(default)s)",
    )
    parser.add_argument("--strict", action="store_true", help="Exit with status 2 if any line fails")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    try:
        number_format = NumberFormat.HEX if args.hex else NumberFormat.parse(args.number_format)
    except ValueError as exc:
        parser.error(str(exc))
    if not args.prefix.isidentifier():
        parser.error(f"--prefix must be an identifier: {args.prefix!r}")

    if args.document is None:
        return run_repl(number_format, args.prefix)
    return run_file(args.document, number_format, args.prefix, strict=args.strict)


if __name__ == "__main__":
    raise SystemExit(run_cli())
