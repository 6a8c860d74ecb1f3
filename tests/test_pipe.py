import gc
import threading

import pytest

from blockfs.pipe import RING_BUFFER_SIZE, Pipe, PipeRingBuffer, make_pipe


def test_new_buffer_is_empty():
    ring = PipeRingBuffer()
    assert ring.available_read() == 0
    assert ring.available_write() == RING_BUFFER_SIZE


def test_buffer_fills_up():
    ring = PipeRingBuffer()
    for byte in range(RING_BUFFER_SIZE):
        ring.write_byte(byte)
    assert ring.available_write() == 0
    assert ring.available_read() == RING_BUFFER_SIZE
    with pytest.raises(BufferError):
        ring.write_byte(1)


def test_read_empty_buffer_raises():
    ring = PipeRingBuffer()
    with pytest.raises(BufferError):
        ring.read_byte()


def test_fifo_with_wraparound():
    ring = PipeRingBuffer()
    first = bytes(range(20))
    for byte in first:
        ring.write_byte(byte)
    assert bytes(ring.read_byte() for _ in range(20)) == first
    second = bytes(range(100, 130))
    for byte in second:
        ring.write_byte(byte)
    assert ring.available_read() == len(second)
    assert ring.available_read() + ring.available_write() == RING_BUFFER_SIZE
    assert bytes(ring.read_byte() for _ in range(len(second))) == second
    assert ring.available_read() == 0


def test_write_end_not_set_raises():
    with pytest.raises(RuntimeError):
        PipeRingBuffer().all_write_ends_closed()


def test_make_pipe_ends():
    read_end, write_end = make_pipe()
    assert (read_end.readable, read_end.writable) == (True, False)
    assert (write_end.readable, write_end.writable) == (False, True)
    assert read_end.buffer is write_end.buffer


def test_read_after_writer_closes_returns_partial():
    read_end, write_end = make_pipe()
    assert write_end.write(b"hello") == 5
    write_end.close()
    assert read_end.read(100) == b"hello"
    assert read_end.read(10) == b""


def test_discarded_write_end_counts_as_closed():
    read_end, write_end = make_pipe()
    assert read_end.buffer.all_write_ends_closed() is False
    del write_end
    gc.collect()
    assert read_end.buffer.all_write_ends_closed() is True


def test_wrong_direction_raises():
    read_end, write_end = make_pipe()
    with pytest.raises(PermissionError):
        read_end.write(b"x")
    with pytest.raises(PermissionError):
        write_end.read(1)


def test_closed_end_rejects_use():
    read_end, write_end = make_pipe()
    write_end.close()
    with pytest.raises(ValueError):
        write_end.write(b"x")


def test_large_transfer_between_threads():
    read_end, write_end = make_pipe()
    payload = bytes(i % 251 for i in range(RING_BUFFER_SIZE * 10 + 7))
    received = []

    def reader():
        received.append(read_end.read(len(payload)))

    thread = threading.Thread(target=reader)
    thread.start()
    assert write_end.write(payload) == len(payload)
    thread.join(timeout=10)
    assert not thread.is_alive()
    assert received == [payload]


def test_reader_waits_until_close():
    read_end, write_end = make_pipe()
    received = []

    def reader():
        received.append(read_end.read(50))

    thread = threading.Thread(target=reader)
    thread.start()
    assert write_end.write(b"abc") == 3
    assert write_end.write(b"def") == 3
    write_end.close()
    thread.join(timeout=10)
    assert not thread.is_alive()
    assert received == [b"abcdef"]
    assert read_end.read(5) == b""
    assert read_end.buffer.all_write_ends_closed() is True


def test_pipe_from_shared_buffer():
    ring = PipeRingBuffer()
    writer = Pipe(False, True, ring)
    reader = Pipe(True, False, ring)
    ring.set_write_end(writer)
    assert writer.write(b"data") == 4
    assert reader.read(4) == b"data"