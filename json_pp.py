# json_pp.py
# Pretty-prints JSON without loading it all in memory
#
# =============================================================================
#  TRANSCODE PIPELINE
# =============================================================================
#
# Parser and formatter run in lock-step: pull one event, write it, drop it.
# Memory therefore depends on nesting depth only, never on how many elements
# the document holds.
#
#   stdin -> Lexer -> PullParser -> PrettyFormatter -> CatchBrokenPipe -> stdout
#
# Exit codes: 0 on success or when the reader of stdout went away early,
# 1 on malformed input or an I/O failure, 2 on bad arguments (argparse).
#
# =============================================================================

import argparse
import os
import sys
from contextlib import nullcontext
from typing import BinaryIO, List, Optional

from json_formatter import INDENT_SIZE_DEFAULT, PrettyFormatter, write_all
from json_parser import DEPTH_LIMIT_DEFAULT, PullParser
from lexer import CHUNK_SIZE_DEFAULT, ParseError
from pipe_sink import CatchBrokenPipe

# ---------------------------------------------------------------------------
# ERRORS
# ---------------------------------------------------------------------------
class TranscodeError(Exception):
    """The pipeline stopped; `__cause__` holds the ParseError or OSError."""
    def __init__(self, cause: BaseException):
        super().__init__("Transcoding error")
        self.__cause__ = cause

# ---------------------------------------------------------------------------
# PIPELINE
# ---------------------------------------------------------------------------
def transcode(source: BinaryIO, writer, *, indent_size: int = INDENT_SIZE_DEFAULT,
              max_depth: Optional[int] = DEPTH_LIMIT_DEFAULT,
              chunk_size: int = CHUNK_SIZE_DEFAULT) -> None:
    """
    Read one JSON document from `source` and write it pretty-printed to
    `writer`, followed by a newline. The first parse or I/O error ends the
    run as a TranscodeError.
    """
    formatter = PrettyFormatter(writer, indent_size)
    try:
        for event in PullParser(source, max_depth=max_depth, chunk_size=chunk_size):
            formatter.write_event(event)
        formatter.finish()
    except (ParseError, OSError) as exc:
        raise TranscodeError(exc) from exc


def dump_events(source: BinaryIO, writer, *, max_depth: Optional[int] = DEPTH_LIMIT_DEFAULT,
                chunk_size: int = CHUNK_SIZE_DEFAULT) -> None:
    """Write one line per parser event instead of formatting."""
    try:
        for event in PullParser(source, max_depth=max_depth, chunk_size=chunk_size):
            line = event.kind.name if event.value is None else f"{event.kind.name} {event.value!r}"
            write_all(writer, line.encode("utf-8") + b"\n")
        writer.flush()
    except (ParseError, OSError) as exc:
        raise TranscodeError(exc) from exc

# ---------------------------------------------------------------------------
# DIAGNOSTICS
# ---------------------------------------------------------------------------
def print_error(exc: BaseException, file=None) -> None:
    """Print `exc` then one 'Because:' line per link of its cause chain."""
    file = file or sys.stderr
    print(f"Error: {exc}", file=file)
    cause = exc.__cause__
    while cause is not None:
        print(f"Because: {cause}", file=file)
        cause = cause.__cause__


def _silence_stdout() -> None:
    # Point fd 1 at /dev/null so the interpreter's final flush cannot hit EPIPE again.
    devnull = os.open(os.devnull, os.O_WRONLY)
    os.dup2(devnull, sys.stdout.fileno())
    os.close(devnull)


def _release_stdout(writer: CatchBrokenPipe) -> None:
    """
    Hand partial output to stdout after a failed run. If stdout cannot take
    it, silence fd 1 so the leftover buffer is not flushed again at exit.
    """
    try:
        writer.flush()
    except OSError:
        _silence_stdout()

# ---------------------------------------------------------------------------
# CLI ENTRYPOINT
# ---------------------------------------------------------------------------
def _non_negative_int(text: str) -> int:
    try:
        value = int(text)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid integer: {text!r}") from None
    if value < 0:
        raise argparse.ArgumentTypeError(f"must be non-negative: {value}")
    return value


def _open_input(path: Optional[str]):
    if path is None or path == "-":
        return nullcontext(sys.stdin.buffer)
    return open(path, "rb")


def _cli(argv: List[str]) -> int:
    ap = argparse.ArgumentParser(prog="json-pp",
                                 description="Pretty-prints JSON without loading it all in memory.")
    ap.add_argument("file", nargs="?", help="JSON file to format (default: standard input)")
    ap.add_argument("--indent-size", type=_non_negative_int, default=INDENT_SIZE_DEFAULT,
                    help="indentation size in number of spaces (default: %(default)s)")
    ap.add_argument("--max-depth", type=_non_negative_int, default=DEPTH_LIMIT_DEFAULT,
                    help="maximum nesting depth, 0 for no limit (default: %(default)s)")
    ap.add_argument("--debug", action="store_true", help="dump the event stream instead of formatting")
    args = ap.parse_args(argv)

    writer = CatchBrokenPipe(sys.stdout.buffer)
    try:
        with _open_input(args.file) as source:
            if args.debug:
                dump_events(source, writer, max_depth=args.max_depth)
            else:
                transcode(source, writer, indent_size=args.indent_size, max_depth=args.max_depth)
    except TranscodeError as exc:
        if writer.broken_pipe:
            _silence_stdout()
            return 0
        print_error(exc)
        _release_stdout(writer)
        return 1
    except OSError as exc:
        print_error(exc)
        return 1
    return 0


def main() -> None:
    sys.exit(_cli(sys.argv[1:]))

# ---------------------------------------------------------------------------
# MAIN GUARD
# ---------------------------------------------------------------------------
if __name__ == "__main__":
    main()
