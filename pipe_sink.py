# pipe_sink.py
# Output wrapper that remembers when the reading end of a pipe went away
#
# A consumer that stops reading early (`json-pp < big.json | head`) makes the
# next write fail with EPIPE. That is a normal way for a pipeline to end, so
# the wrapper records it in a sticky flag for the caller to check, and still
# re-raises so that no further output is produced.

import errno
from typing import Callable, TypeVar

T = TypeVar("T")


def is_broken_pipe(exc: BaseException) -> bool:
    """True if `exc` means the receiving end of the output has closed."""
    if isinstance(exc, BrokenPipeError):
        return True
    return isinstance(exc, OSError) and exc.errno == errno.EPIPE


class CatchBrokenPipe:
    """
    Wrap any object with write(bytes) and flush().

    `broken_pipe` starts False and becomes True on the first write or flush
    that fails with a broken pipe; it is never reset.
    """
    def __init__(self, writer):
        self.writer = writer
        self.broken_pipe = False

    def _catch(self, fn: Callable[..., T], *args) -> T:
        try:
            return fn(*args)
        except OSError as exc:
            if is_broken_pipe(exc):
                self.broken_pipe = True
            raise

    def write(self, data: bytes) -> int:
        return self._catch(self.writer.write, data)

    def flush(self) -> None:
        self._catch(self.writer.flush)
