# json_parser.py
# Streaming pull parser: turns a JSON byte stream into structural events
#
# =============================================================================
#  PARSER IMPLEMENTATION: EXPLICIT-STACK STATE MACHINE
# =============================================================================
#
# The parser is a pull parser: every next() call consumes tokens from the
# lexer until exactly one event can be produced, then suspends. Nothing is
# built; the only state kept between events is the stack of open containers
# and what the grammar expects next.
#
# 1. JSON grammar is LL(1): the current state plus one token always decides
#    the next step, so no lookahead buffer is needed [RFC 8259].
# 2. Nesting lives in a list rather than the call stack, and a depth limit
#    (default 128) stops pathological input with a DepthLimitError
#    [hypertextbookshop.com, Parser Error Handling and Recovery].
# 3. Numbers are passed through as their source text, never converted.
#
# =============================================================================
#  REFERENCES
# =============================================================================
# [1] RFC 8259 - The JavaScript Object Notation (JSON) standard
# [2] hypertextbookshop.com - Parser Error Handling and Recovery
# =============================================================================

from enum import Enum
from typing import BinaryIO, Iterator, List, NamedTuple, Optional

from lexer import CHUNK_SIZE_DEFAULT, DepthLimitError, Lexer, ParseError, Token

# ---------------------------------------------------------------------------
# CONSTANTS AND TUNABLES
# ---------------------------------------------------------------------------
DEPTH_LIMIT_DEFAULT = 128   # Matches serde_json's recursion limit

# Parser states
_VALUE       = 0   # any value
_FIRST_VALUE = 1   # value or ']' right after '['
_FIRST_KEY   = 2   # key or '}' right after '{'
_KEY         = 3   # key after ','
_AFTER_VALUE = 4   # ',' or the closing bracket of the innermost container

_OBJECT = "{"
_ARRAY  = "["

# ---------------------------------------------------------------------------
# EVENT RECORD
# ---------------------------------------------------------------------------
class EventKind(Enum):
    BEGIN_OBJECT = "begin_object"
    KEY          = "key"
    BEGIN_ARRAY  = "begin_array"
    END_ARRAY    = "end_array"
    END_OBJECT   = "end_object"
    NULL         = "null"
    BOOL         = "bool"
    NUMBER       = "number"
    STRING       = "string"


class Event(NamedTuple):
    """
    One structural unit of a JSON document.

    `value` is the decoded text for KEY and STRING, the verbatim literal for
    NUMBER, a bool for BOOL, and None for everything else.
    """
    kind: EventKind
    value: object = None


BEGIN_OBJECT = Event(EventKind.BEGIN_OBJECT)
BEGIN_ARRAY  = Event(EventKind.BEGIN_ARRAY)
END_OBJECT   = Event(EventKind.END_OBJECT)
END_ARRAY    = Event(EventKind.END_ARRAY)
NULL         = Event(EventKind.NULL)

_CLOSERS = {_OBJECT: "}", _ARRAY: "]"}

# ---------------------------------------------------------------------------
# PULL PARSER
# ---------------------------------------------------------------------------
class PullParser:
    """
    Iterator of Events over one JSON document read from `source`.

    Single use: once exhausted (or after an error) it yields nothing more.
    `max_depth` of None or 0 disables the nesting limit.
    """
    def __init__(self, source: BinaryIO, *, max_depth: Optional[int] = DEPTH_LIMIT_DEFAULT,
                 chunk_size: int = CHUNK_SIZE_DEFAULT):
        self._lexer = Lexer(source, chunk_size)
        self._max_depth = max_depth or None
        self._stack: List[str] = []
        self._events = self._run()

    def __iter__(self):
        return self

    def __next__(self) -> Event:
        return next(self._events)

    @property
    def depth(self) -> int:
        """Number of currently open containers."""
        return len(self._stack)

    def _next_token(self) -> Token:
        tok = self._lexer.next_token()
        if tok is None:
            raise self._lexer.error("unexpected end of input", self._lexer.offset)
        return tok

    def _unexpected(self, tok: Token, expected: str) -> ParseError:
        kind, value, pos = tok
        return self._lexer.error(f"unexpected token {kind} '{value}' - expected {expected}", pos)

    def _open(self, container: str, pos: int) -> None:
        if self._max_depth is not None and len(self._stack) >= self._max_depth:
            raise self._lexer.error(f"depth limit exceeded (max {self._max_depth})", pos, DepthLimitError)
        self._stack.append(container)

    def _run(self) -> Iterator[Event]:
        stack = self._stack
        state = _VALUE
        while True:
            tok = self._next_token()
            kind, value, pos = tok

            if state == _FIRST_VALUE and value == "]" and kind == "BRACKET":
                stack.pop()
                yield END_ARRAY
                state = _AFTER_VALUE

            elif state in (_VALUE, _FIRST_VALUE):
                if kind == "BRACE" and value == "{":
                    self._open(_OBJECT, pos)
                    yield BEGIN_OBJECT
                    state = _FIRST_KEY
                    continue
                if kind == "BRACKET" and value == "[":
                    self._open(_ARRAY, pos)
                    yield BEGIN_ARRAY
                    state = _FIRST_VALUE
                    continue
                if kind == "STRING":
                    yield Event(EventKind.STRING, value)
                elif kind == "NUMBER":
                    yield Event(EventKind.NUMBER, value)
                elif kind == "LITERAL":
                    yield NULL if value is None else Event(EventKind.BOOL, value)
                else:
                    raise self._lexer.error(f"unexpected token {kind} '{value}' - value expected", pos)
                state = _AFTER_VALUE

            elif state in (_KEY, _FIRST_KEY):
                if state == _FIRST_KEY and kind == "BRACE" and value == "}":
                    stack.pop()
                    yield END_OBJECT
                    state = _AFTER_VALUE
                elif kind == "STRING":
                    colon = self._next_token()
                    if colon.kind != "COLON":
                        raise self._unexpected(colon, "COLON ':'")
                    yield Event(EventKind.KEY, value)
                    state = _VALUE
                    continue
                else:
                    raise self._unexpected(tok, "STRING")

            else: # _AFTER_VALUE
                top = stack[-1]
                if kind == "COMMA":
                    state = _KEY if top == _OBJECT else _VALUE
                    continue
                if value != _CLOSERS[top] or kind not in ("BRACE", "BRACKET"):
                    raise self._unexpected(tok, f"COMMA or '{_CLOSERS[top]}'")
                stack.pop()
                yield END_OBJECT if top == _OBJECT else END_ARRAY

            if not stack:
                break

        trailing = self._lexer.next_token()
        if trailing is not None:
            raise self._lexer.error("extra data after root value", trailing.offset)

# ---------------------------------------------------------------------------
# PUBLIC API
# ---------------------------------------------------------------------------
def iter_events(source: BinaryIO, *, max_depth: Optional[int] = DEPTH_LIMIT_DEFAULT,
                chunk_size: int = CHUNK_SIZE_DEFAULT) -> Iterator[Event]:
    """Yield the events of the JSON document in `source`."""
    return PullParser(source, max_depth=max_depth, chunk_size=chunk_size)
