# json_formatter.py
# Pretty-printing formatter: turns parser events into indented JSON bytes
#
# =============================================================================
#  FORMATTER IMPLEMENTATION: ONE BUFFER PER EVENT
# =============================================================================
#
# The formatter keeps one flag per open container ("has a child been written
# yet") plus a marker for a just-written key. Each event becomes one buffer
# handed to the writer, repeated until fully written; nothing is held here.
#
# Layout matches the common two-space pretty style:
#
#   {
#     "a": 1,
#     "b": [
#       1
#     ]
#   }
#
# Empty containers stay closed up as {} and [].
#
# =============================================================================

from json.encoder import encode_basestring
from typing import List

from json_parser import Event, EventKind

# ---------------------------------------------------------------------------
# CONSTANTS AND TUNABLES
# ---------------------------------------------------------------------------
INDENT_SIZE_DEFAULT = 2

_OPENERS = {EventKind.BEGIN_OBJECT: b"{", EventKind.BEGIN_ARRAY: b"["}
_CLOSERS = {EventKind.END_OBJECT: b"}", EventKind.END_ARRAY: b"]"}


def quote(text: str) -> bytes:
    """JSON string literal for `text`, UTF-8 encoded, non-ASCII left as is."""
    return encode_basestring(text).encode("utf-8")


def write_all(writer, data: bytes) -> None:
    """
    Write every byte of `data`, repeating short writes.

    Raw writers (FileIO, unbuffered stdout) may accept only part of the
    buffer and return the count; a writer returning None is taken to have
    written everything.
    """
    while data:
        written = writer.write(data)
        if written is None or written >= len(data):
            return
        data = memoryview(data)[written:]


def scalar_bytes(event: Event) -> bytes:
    kind = event.kind
    if kind is EventKind.STRING:
        return quote(event.value)
    if kind is EventKind.NUMBER:
        return event.value.encode("ascii")
    if kind is EventKind.BOOL:
        return b"true" if event.value else b"false"
    if kind is EventKind.NULL:
        return b"null"
    raise ValueError(f"not a scalar event: {event!r}")

# ---------------------------------------------------------------------------
# FORMATTER
# ---------------------------------------------------------------------------
class PrettyFormatter:
    """
    Write events to `writer` (anything with write(bytes) and flush()).

    `indent_size` is the number of spaces per nesting level; 0 keeps one
    element per line with no indentation.
    """
    def __init__(self, writer, indent_size: int = INDENT_SIZE_DEFAULT):
        if indent_size < 0:
            raise ValueError(f"indent_size must be non-negative: {indent_size}")
        self._writer = writer
        self._indent = b" " * indent_size
        self._has_child: List[bool] = []
        self._after_key = False

    @property
    def depth(self) -> int:
        return len(self._has_child)

    def _value_prefix(self) -> bytes:
        """Separator, newline and indentation owed before a value."""
        if self._after_key:
            self._after_key = False
            return b""
        if not self._has_child:
            return b""
        sep = b",\n" if self._has_child[-1] else b"\n"
        self._has_child[-1] = True
        return sep + self._indent * len(self._has_child)

    def write_event(self, event: Event) -> None:
        kind = event.kind

        if kind in _OPENERS:
            out = self._value_prefix() + _OPENERS[kind]
            self._has_child.append(False)

        elif kind in _CLOSERS:
            if not self._has_child:
                raise ValueError(f"unbalanced {kind.name} at depth 0")
            had_child = self._has_child.pop()
            if had_child:
                out = b"\n" + self._indent * len(self._has_child) + _CLOSERS[kind]
            else:
                out = _CLOSERS[kind]

        elif kind is EventKind.KEY:
            if not self._has_child:
                raise ValueError("KEY outside of an object")
            sep = b",\n" if self._has_child[-1] else b"\n"
            self._has_child[-1] = True
            self._after_key = True
            out = sep + self._indent * len(self._has_child) + quote(event.value) + b": "

        else:
            out = self._value_prefix() + scalar_bytes(event)

        write_all(self._writer, out)

    def finish(self) -> None:
        """Terminate the document with one newline and flush."""
        if self._has_child:
            raise ValueError(f"document ended with {len(self._has_child)} open container(s)")
        write_all(self._writer, b"\n")
        self._writer.flush()
