"""In-memory byte pipe joining an archive producer to a concurrent consumer.

One thread writes into :attr:`Pipe.writer` while another reads from
:attr:`Pipe.reader`. The buffer is bounded, so a fast producer waits for the
consumer. Closing either end with an error makes the other end observe that
error instead of blocking forever.
"""

from __future__ import annotations

import threading
from collections import deque

DEFAULT_MAX_BUFFER = 1024 * 1024


class Pipe:
    """A bounded, thread-safe byte pipe."""

    def __init__(self, max_buffer: int = DEFAULT_MAX_BUFFER):
        if max_buffer <= 0:
            raise ValueError("max_buffer must be positive")
        self._cond = threading.Condition()
        self._chunks: deque[bytes] = deque()
        self._size = 0
        self._max_buffer = max_buffer
        self._write_closed = False
        self._write_error: BaseException | None = None
        self._read_closed = False
        self._read_error: BaseException | None = None
        self.reader = PipeReader(self)
        self.writer = PipeWriter(self)

    def cancel(self, error: BaseException | None = None) -> None:
        """Close both ends at once, waking any blocked reader or writer.

        Both sides then raise error, or BrokenPipeError when none is given.
        """
        error = error or BrokenPipeError("pipe cancelled")
        with self._cond:
            self._close_write(error)
            self._close_read(error)

    def _write(self, data: bytes) -> int:
        with self._cond:
            while self._size >= self._max_buffer and not self._read_closed and not self._write_closed:
                self._cond.wait()
            if self._read_closed:
                raise self._read_error or BrokenPipeError("read end of pipe closed")
            if self._write_closed:
                raise ValueError("write to closed pipe")
            if data:
                self._chunks.append(bytes(data))
                self._size += len(data)
                self._cond.notify_all()
            return len(data)

    def _read(self, size: int) -> bytes:
        with self._cond:
            while not self._chunks and not self._write_closed and not self._read_closed:
                self._cond.wait()
            if self._read_closed:
                raise self._read_error or ValueError("read from closed pipe")
            if not self._chunks:
                if self._write_error is not None:
                    raise self._write_error
                return b""
            out = bytearray()
            while self._chunks and (size < 0 or len(out) < size):
                chunk = self._chunks.popleft()
                want = len(chunk) if size < 0 else size - len(out)
                if len(chunk) > want:
                    self._chunks.appendleft(chunk[want:])
                    chunk = chunk[:want]
                out += chunk
            self._size -= len(out)
            self._cond.notify_all()
            return bytes(out)

    def _close_write(self, error: BaseException | None) -> None:
        with self._cond:
            if not self._write_closed:
                self._write_closed = True
                self._write_error = error
            self._cond.notify_all()

    def _close_read(self, error: BaseException | None) -> None:
        with self._cond:
            if not self._read_closed:
                self._read_closed = True
                self._read_error = error
                self._chunks.clear()
                self._size = 0
            self._cond.notify_all()


class PipeWriter:
    """Write end of a :class:`Pipe`. Not seekable."""

    def __init__(self, pipe: Pipe):
        self._pipe = pipe

    def write(self, data: bytes) -> int:
        return self._pipe._write(data)

    def flush(self) -> None:
        pass

    def close(self, error: BaseException | None = None) -> None:
        """Signal end of data. If error is given, readers raise it after draining."""
        self._pipe._close_write(error)

    @property
    def closed(self) -> bool:
        return self._pipe._write_closed


class PipeReader:
    """Read end of a :class:`Pipe`."""

    def __init__(self, pipe: Pipe):
        self._pipe = pipe

    def read(self, size: int | None = -1) -> bytes:
        """Read up to size bytes, blocking until data, end of stream or an error.

        A negative size reads until the writer closes the pipe.
        """
        if size == 0:
            return b""
        if size is None or size < 0:
            parts = []
            while True:
                chunk = self._pipe._read(-1)
                if not chunk:
                    return b"".join(parts)
                parts.append(chunk)
        return self._pipe._read(size)

    def readable(self) -> bool:
        return True

    def close(self, error: BaseException | None = None) -> None:
        """Stop reading. Pending and future writes raise error or BrokenPipeError."""
        self._pipe._close_read(error)

    @property
    def closed(self) -> bool:
        return self._pipe._read_closed

    def __iter__(self):
        while True:
            chunk = self.read(64 * 1024)
            if not chunk:
                return
            yield chunk
