# lexer.py
# Chunked byte-stream JSON lexer feeding the pull parser in json_parser.py
#
# =============================================================================
#  LEXER IMPLEMENTATION: CHUNKED SCANNING OVER A BYTE STREAM
# =============================================================================
#
# The lexer never sees the whole document. It holds one read chunk plus the
# token currently being scanned, and drops consumed bytes on every refill.
#
# 1. Each token kind is recognised by its first byte, then extended with a
#    single character-class regex run [craftinginterpreters.com, Scanning].
# 2. A run that reaches the end of the buffer is resumed after a refill, so
#    tokens may straddle chunk boundaries.
# 3. Offsets are absolute byte offsets into the input. Line and column are
#    derived on demand from the retained buffer plus a running line count.
#
# =============================================================================

import re
from typing import BinaryIO, NamedTuple, Optional, Tuple

# ---------------------------------------------------------------------------
# CONSTANTS AND TUNABLES
# ---------------------------------------------------------------------------
CHUNK_SIZE_DEFAULT = 65536   # 64 KiB per read

# ---------------------------------------------------------------------------
# REGEX BLUEPRINT
# ---------------------------------------------------------------------------
_WHITESPACE_RUN = re.compile(rb"[ \t\n\r]*")
_STRING_RUN     = re.compile(rb'[^"\\\x00-\x1F]*')
_NUMBER_RUN     = re.compile(rb"[-+.eE0-9]*")
_WORD_RUN       = re.compile(rb"[a-zA-Z0-9_]*")
_NUMBER         = re.compile(rb"-?(?:0|[1-9][0-9]*)(?:\.[0-9]+)?(?:[eE][+-]?[0-9]+)?")

_PUNCTUATION = {
    ord("{"): "BRACE",
    ord("}"): "BRACE",
    ord("["): "BRACKET",
    ord("]"): "BRACKET",
    ord(","): "COMMA",
    ord(":"): "COLON",
}
_LITERALS = {b"true": True, b"false": False, b"null": None}
_SIMPLE_ESCAPES = {
    ord('"'): b'"',
    ord("\\"): b"\\",
    ord("/"): b"/",
    ord("b"): b"\b",
    ord("f"): b"\f",
    ord("n"): b"\n",
    ord("r"): b"\r",
    ord("t"): b"\t",
}
_HEX_DIGITS = b"0123456789abcdefABCDEF"

_QUOTE     = ord('"')
_BACKSLASH = ord("\\")

# ---------------------------------------------------------------------------
# ERRORS
# ---------------------------------------------------------------------------
class ParseError(ValueError):
    """
    Input bytes do not form valid JSON.

    Carries the absolute byte `offset` of the problem along with a 1-based
    `line` and byte `column`.
    """
    def __init__(self, msg: str, offset: int, line: int, column: int):
        super().__init__(msg, offset, line, column)
        self.msg = msg
        self.offset = offset
        self.line = line
        self.column = column

    def __str__(self) -> str:
        return f"{self.msg} at line {self.line} column {self.column} (offset {self.offset})"


class DepthLimitError(ParseError):
    """Containers nested deeper than the configured maximum."""

# ---------------------------------------------------------------------------
# TOKEN RECORD
# ---------------------------------------------------------------------------
class Token(NamedTuple):
    """
    Immutable token record: (kind, value, absolute_offset).

    STRING values are decoded text, NUMBER values the verbatim literal,
    LITERAL values True/False/None, punctuation values the character itself.
    """
    kind: str
    value: object
    offset: int

# ---------------------------------------------------------------------------
# LEXER
# ---------------------------------------------------------------------------
class Lexer:
    """
    Pull tokens one at a time from a binary stream.

    `source` needs a `read(n)` method; `read1(n)` is preferred when present so
    that a pipe delivers whatever is available instead of blocking for a
    full chunk.
    """
    def __init__(self, source: BinaryIO, chunk_size: int = CHUNK_SIZE_DEFAULT):
        if chunk_size < 1:
            raise ValueError(f"chunk_size must be positive: {chunk_size}")
        self._read = getattr(source, "read1", source.read)
        self._chunk_size = chunk_size
        self._buf = bytearray()
        self._pos = 0          # index of the next unconsumed byte in _buf
        self._base = 0         # absolute offset of _buf[0]
        self._line = 1         # line number at _buf[0]
        self._line_start = 0   # absolute offset where that line begins
        self._eof = False

    def __iter__(self):
        return self

    def __next__(self) -> Token:
        tok = self.next_token()
        if tok is None:
            raise StopIteration
        return tok

    @property
    def offset(self) -> int:
        """Absolute offset of the next unconsumed byte."""
        return self._base + self._pos

    def position(self, offset: int) -> Tuple[int, int]:
        """Line and column for an offset still held in the buffer."""
        idx = offset - self._base
        newlines = self._buf.count(b"\n", 0, idx)
        if not newlines:
            return self._line, offset - self._line_start + 1
        return self._line + newlines, idx - self._buf.rindex(b"\n", 0, idx)

    def error(self, msg: str, offset: int, cls=ParseError) -> ParseError:
        line, column = self.position(offset)
        return cls(msg, offset, line, column)

    # -----------------------------------------------------------------------
    # BUFFER MANAGEMENT
    # -----------------------------------------------------------------------
    def _fill(self) -> bool:
        """
        Append one chunk in place, discarding everything before `_pos`.
        Returns False once the source is exhausted.
        """
        if self._eof:
            return False
        chunk = self._read(self._chunk_size)
        if not chunk:
            self._eof = True
            return False
        consumed = self._pos
        if consumed:
            newlines = self._buf.count(b"\n", 0, consumed)
            if newlines:
                self._line += newlines
                self._line_start = self._base + self._buf.rindex(b"\n", 0, consumed) + 1
            self._base += consumed
            del self._buf[:consumed]
            self._pos = 0
        self._buf += chunk
        return True

    def _scan_run(self, pattern: "re.Pattern[bytes]", k: int) -> int:
        """
        Extend `pattern` from token-relative index `k` across refills.
        Returns the token-relative end of the run.
        """
        while True:
            k = pattern.match(self._buf, self._pos + k).end() - self._pos
            if self._pos + k < len(self._buf) or not self._fill():
                return k

    def _skip_whitespace(self) -> bool:
        # Whitespace is consumed as it is matched so a long run never accumulates.
        while True:
            self._pos = _WHITESPACE_RUN.match(self._buf, self._pos).end()
            if self._pos < len(self._buf):
                return True
            if not self._fill():
                return False

    # -----------------------------------------------------------------------
    # TOKENS
    # -----------------------------------------------------------------------
    def next_token(self) -> Optional[Token]:
        """Return the next token, or None at end of input."""
        if not self._skip_whitespace():
            return None
        start = self.offset
        c = self._buf[self._pos]

        kind = _PUNCTUATION.get(c)
        if kind is not None:
            self._pos += 1
            return Token(kind, chr(c), start)
        if c == _QUOTE:
            return Token("STRING", self._scan_string(start), start)
        if c == ord("-") or ord("0") <= c <= ord("9"):
            return Token("NUMBER", self._scan_number(start), start)
        if ord("a") <= c <= ord("z"):
            return Token("LITERAL", self._scan_literal(start), start)
        raise self.error(f"invalid character {bytes([c])!r}", start)

    def _scan_number(self, start: int) -> str:
        end = self._scan_run(_NUMBER_RUN, 0)
        literal = self._buf[self._pos:self._pos + end]
        if not _NUMBER.fullmatch(literal):
            raise self.error(f"invalid number '{literal.decode('ascii')}'", start)
        self._pos += end
        return literal.decode("ascii")

    def _scan_literal(self, start: int):
        end = self._scan_run(_WORD_RUN, 0)
        word = bytes(self._buf[self._pos:self._pos + end])
        try:
            value = _LITERALS[word]
        except KeyError:
            raise self.error(f"invalid literal '{word.decode('ascii')}'", start) from None
        self._pos += end
        return value

    def _scan_string(self, start: int) -> str:
        """
        Scan from the opening quote to the closing quote and unescape.

        Only locates the string boundary and rejects raw control characters;
        escape validation happens in `_unescape` on the complete raw bytes.
        """
        k = 1
        while True:
            k = self._scan_run(_STRING_RUN, k)
            i = self._pos + k
            if i >= len(self._buf):
                raise self.error("unterminated string", start)
            c = self._buf[i]
            if c == _QUOTE:
                break
            if c == _BACKSLASH:
                if i + 1 >= len(self._buf) and not self._fill():
                    raise self.error("trailing backslash in string", start + k)
                k += 2
                continue
            raise self.error(f"control character {bytes([c])!r} in string", start + k)

        raw = bytes(self._buf[self._pos + 1:self._pos + k])
        text = self._unescape(raw, start + 1)
        self._pos += k + 1
        return text

    def _unescape(self, raw: bytes, offset: int) -> str:
        """
        Decode the bytes between the quotes of a string token.

        Rejects, with the offset of the escape:
        1) Escape syntax - unknown single escape, short or non-hex unicode escape.
        2) Unicode correctness - unpaired surrogate code points.
        3) Encoding - bytes that are not UTF-8.
        """
        if b"\\" not in raw:
            return self._decode(raw, offset)

        parts = []
        i = 0
        while True:
            j = raw.find(b"\\", i)
            if j < 0:
                parts.append(raw[i:])
                break
            parts.append(raw[i:j])
            esc = raw[j + 1]
            if esc == ord("u"):
                code = self._hex_escape(raw, j, offset)
                i = j + 6
                if 0xD800 <= code <= 0xDBFF:
                    if raw[i:i + 2] != b"\\u":
                        raise self.error("unpaired surrogate in string", offset + j)
                    low = self._hex_escape(raw, i, offset)
                    if not 0xDC00 <= low <= 0xDFFF:
                        raise self.error("unpaired surrogate in string", offset + j)
                    code = 0x10000 + ((code - 0xD800) << 10) + (low - 0xDC00)
                    i += 6
                elif 0xDC00 <= code <= 0xDFFF:
                    raise self.error("unpaired surrogate in string", offset + j)
                parts.append(chr(code).encode("utf-8"))
            elif esc in _SIMPLE_ESCAPES:
                parts.append(_SIMPLE_ESCAPES[esc])
                i = j + 2
            else:
                raise self.error(f"invalid escape \\{chr(esc)}", offset + j)
        return self._decode(b"".join(parts), offset)

    def _hex_escape(self, raw: bytes, j: int, offset: int) -> int:
        hexpart = raw[j + 2:j + 6]
        if len(hexpart) < 4:
            raise self.error("short unicode escape", offset + j)
        if not all(c in _HEX_DIGITS for c in hexpart):
            seq = raw[j:j + 6].decode("utf-8", "replace")
            raise self.error(f"invalid hex escape {seq}", offset + j)
        return int(hexpart, 16)

    def _decode(self, raw: bytes, offset: int) -> str:
        try:
            return raw.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise self.error(f"invalid UTF-8 in string: {exc.reason}", offset) from None
