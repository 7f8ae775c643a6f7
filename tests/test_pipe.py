"""Tests for the bounded in-memory byte pipe."""

import threading

import pytest

from biome.sync.pipe import Pipe


def test_write_then_read():
    pipe = Pipe()
    pipe.writer.write(b"hello ")
    pipe.writer.write(b"world")
    pipe.writer.close()
    assert pipe.reader.read() == b"hello world"
    assert pipe.reader.read(10) == b""


def test_partial_reads():
    pipe = Pipe()
    pipe.writer.write(b"abcdef")
    assert pipe.reader.read(0) == b""
    assert pipe.reader.read(2) == b"ab"
    assert pipe.reader.read(10) == b"cdef"


def test_writer_blocks_until_reader_drains():
    pipe = Pipe(max_buffer=4)
    pipe.writer.write(b"1234")
    done = threading.Event()

    def write_more():
        pipe.writer.write(b"5678")
        done.set()

    t = threading.Thread(target=write_more)
    t.start()
    assert not done.wait(0.1)
    assert pipe.reader.read(4) == b"1234"
    t.join(5)
    assert done.is_set()
    assert pipe.reader.read(4) == b"5678"


def test_concurrent_stream():
    pipe = Pipe(max_buffer=16)
    payload = bytes(range(256)) * 64
    received = bytearray()

    def consume():
        for chunk in pipe.reader:
            received.extend(chunk)

    t = threading.Thread(target=consume)
    t.start()
    for i in range(0, len(payload), 100):
        pipe.writer.write(payload[i : i + 100])
    pipe.writer.close()
    t.join(5)
    assert bytes(received) == payload


def test_writer_error_reaches_reader_after_data():
    pipe = Pipe()
    pipe.writer.write(b"partial")
    pipe.writer.close(RuntimeError("producer failed"))
    assert pipe.reader.read(7) == b"partial"
    with pytest.raises(RuntimeError, match="producer failed"):
        pipe.reader.read(1)


def test_reader_close_breaks_writer():
    pipe = Pipe()
    pipe.reader.close()
    with pytest.raises(BrokenPipeError):
        pipe.writer.write(b"x")


def test_reader_error_reaches_blocked_writer():
    pipe = Pipe(max_buffer=1)
    pipe.writer.write(b"x")
    errors = []

    def write_blocked():
        try:
            pipe.writer.write(b"y")
        except Exception as e:
            errors.append(e)

    t = threading.Thread(target=write_blocked)
    t.start()
    pipe.reader.close(ValueError("consumer failed"))
    t.join(5)
    assert len(errors) == 1
    assert str(errors[0]) == "consumer failed"


def test_cancel_wakes_blocked_reader():
    pipe = Pipe()
    errors = []

    def read_blocked():
        try:
            pipe.reader.read(1)
        except Exception as e:
            errors.append(e)

    t = threading.Thread(target=read_blocked)
    t.start()
    pipe.cancel(KeyError("stop"))
    t.join(5)
    assert len(errors) == 1
    assert isinstance(errors[0], KeyError)


def test_cancel_wakes_blocked_writer_with_error():
    pipe = Pipe(max_buffer=2)
    pipe.writer.write(b"12")
    errors = []

    def write_blocked():
        try:
            pipe.writer.write(b"34")
        except Exception as e:
            errors.append(e)

    t = threading.Thread(target=write_blocked)
    t.start()
    assert not errors
    pipe.cancel(KeyError("stop"))
    t.join(5)
    assert not t.is_alive()
    assert len(errors) == 1
    assert isinstance(errors[0], KeyError)
    with pytest.raises(KeyError):
        pipe.reader.read(1)


def test_write_after_close():
    pipe = Pipe()
    pipe.writer.close()
    with pytest.raises(ValueError):
        pipe.writer.write(b"x")
    assert pipe.writer.closed


def test_invalid_buffer_size():
    with pytest.raises(ValueError):
        Pipe(max_buffer=0)
