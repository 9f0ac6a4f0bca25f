import errno
import io
import json
import tracemalloc

import pytest

import json_pp
from json_pp import TranscodeError, dump_events, print_error, transcode
from lexer import DepthLimitError, ParseError
from pipe_sink import CatchBrokenPipe

SAMPLE = '{"a":1,"b":[1,2,3]}'

DOCUMENTS = [
    SAMPLE,
    "[]",
    "{}",
    '"just a string"',
    "-0.5e-7",
    '{"nested": {"deeper": [[], {}, [{"x": null}]], "flag": false}, "s": "tab\\there"}',
    '[1, [2, [3, [4, [5]]]], {"a": {"b": {"c": {}}}}]',
    '{"unicode": "caf\\u00e9 \\ud83d\\ude00", "raw": "日本語", "esc": "\\"\\\\\\/\\b\\f\\n\\r\\t"}',
]


def _pp(text, **kwargs):
    out = io.BytesIO()
    transcode(io.BytesIO(text.encode("utf-8")), out, **kwargs)
    return out.getvalue().decode("utf-8")


class NullWriter:
    """Counts bytes and drops them."""
    def __init__(self):
        self.count = 0

    def write(self, data):
        self.count += len(data)
        return len(data)

    def flush(self):
        pass


class PipeClosingWriter:
    """Accepts `limit` bytes, then fails like a pipe whose reader exited."""
    def __init__(self, limit):
        self.limit = limit
        self.data = bytearray()
        self.failures = 0

    def write(self, data):
        if len(self.data) + len(data) > self.limit:
            self.failures += 1
            raise BrokenPipeError(errno.EPIPE, "Broken pipe")
        self.data += data
        return len(data)

    def flush(self):
        pass


def test_sample_document():
    assert _pp(SAMPLE) == '{\n  "a": 1,\n  "b": [\n    1,\n    2,\n    3\n  ]\n}\n'


@pytest.mark.parametrize("text", DOCUMENTS)
def test_output_reparses_to_same_document(text):
    assert json.loads(_pp(text)) == json.loads(text)


@pytest.mark.parametrize("indent_size", [0, 2, 4])
@pytest.mark.parametrize("text", DOCUMENTS)
def test_formatting_is_idempotent(text, indent_size):
    once = _pp(text, indent_size=indent_size)
    assert _pp(once, indent_size=indent_size) == once


def test_matches_stdlib_pretty_printer():
    doc = {"a": [1, 2, {"b": None, "c": [True, False]}], "d": {}, "e": [], "f": "é"}
    text = json.dumps(doc, separators=(",", ":"))
    assert _pp(text, indent_size=3) == json.dumps(doc, indent=3, ensure_ascii=False) + "\n"


@pytest.mark.parametrize("literal", ["1.50000", "1E+2", "123456789012345678901234567890", "-0", "1e-400"])
def test_numbers_preserved_exactly(literal):
    assert _pp(f"[{literal}]") == f"[\n  {literal}\n]\n"


@pytest.mark.parametrize("text", ["{}", "[]", " { } ", "[\n]"])
def test_empty_containers(text):
    assert _pp(text) == text.strip().replace(" ", "").replace("\n", "") + "\n"


def test_parse_error_is_wrapped_with_cause():
    with pytest.raises(TranscodeError) as ei:
        _pp('{"a":}')
    cause = ei.value.__cause__
    assert isinstance(cause, ParseError)
    assert (cause.line, cause.column) == (1, 6)
    assert str(ei.value) == "Transcoding error"


def test_depth_limit_is_a_parse_error():
    with pytest.raises(TranscodeError) as ei:
        _pp("[[[]]]", max_depth=2)
    assert isinstance(ei.value.__cause__, DepthLimitError)


def test_output_stops_at_first_error():
    out = io.BytesIO()
    with pytest.raises(TranscodeError):
        transcode(io.BytesIO(b"[1, 2, oops, 3]"), out)
    assert out.getvalue() == b"[\n  1,\n  2"


def test_broken_pipe_flagged_and_stops_pipeline():
    data = b"[" + b",".join(b"1" for _ in range(10000)) + b"]"
    writer = PipeClosingWriter(limit=100)
    sink = CatchBrokenPipe(writer)
    with pytest.raises(TranscodeError) as ei:
        transcode(io.BytesIO(data), sink)
    assert isinstance(ei.value.__cause__, BrokenPipeError)
    assert sink.broken_pipe
    assert writer.failures == 1
    assert len(writer.data) <= 100


def test_write_error_not_flagged_as_broken_pipe():
    class DiskFull:
        def write(self, data):
            raise OSError(errno.ENOSPC, "No space left on device")

        def flush(self):
            pass

    sink = CatchBrokenPipe(DiskFull())
    with pytest.raises(TranscodeError) as ei:
        transcode(io.BytesIO(b"[1]"), sink)
    assert ei.value.__cause__.errno == errno.ENOSPC
    assert not sink.broken_pipe


def test_memory_independent_of_flat_array_length():
    def peak(count):
        data = b"[" + b",".join(b"12345" for _ in range(count)) + b"]"
        source = io.BytesIO(data)
        tracemalloc.start()
        try:
            transcode(source, NullWriter(), chunk_size=4096)
            return tracemalloc.get_traced_memory()[1]
        finally:
            tracemalloc.stop()

    small = peak(1000)
    large = peak(200000)
    assert large < 256 * 1024
    assert large < small + 16 * 1024


def test_deep_nesting_without_recursion():
    depth = 20000
    out = NullWriter()
    transcode(io.BytesIO(b"[" * depth + b"]" * depth), out, max_depth=0, indent_size=0)
    assert out.count == 4 * depth - 1


def test_dump_events():
    out = io.BytesIO()
    dump_events(io.BytesIO(b'{"k": [1, true, null]}'), out)
    assert out.getvalue().decode("utf-8").splitlines() == [
        "BEGIN_OBJECT", "KEY 'k'", "BEGIN_ARRAY", "NUMBER '1'", "BOOL True", "NULL", "END_ARRAY", "END_OBJECT"]


def test_print_error_walks_cause_chain():
    try:
        _pp("[1 2]")
    except TranscodeError as exc:
        err = io.StringIO()
        print_error(exc, file=err)
    lines = err.getvalue().splitlines()
    assert len(lines) == 2
    assert lines[0] == "Error: Transcoding error"
    assert lines[1] == "Because: unexpected token NUMBER '2' - expected COMMA or ']' at line 1 column 4 (offset 3)"


def test_default_indent_is_two():
    assert json_pp.INDENT_SIZE_DEFAULT == 2
