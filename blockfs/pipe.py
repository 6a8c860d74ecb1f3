"""A bounded byte pipe with blocking read and write ends."""

from __future__ import annotations

import threading
import weakref
from enum import Enum

RING_BUFFER_SIZE = 32


class RingBufferStatus(Enum):
    FULL = "full"
    EMPTY = "empty"
    NORMAL = "normal"


class PipeRingBuffer:
    """The shared ring buffer behind a pipe's two ends."""

    def __init__(self) -> None:
        self._arr = bytearray(RING_BUFFER_SIZE)
        self._head = 0
        self._tail = 0
        self.status = RingBufferStatus.EMPTY
        self._write_end: weakref.ReferenceType[Pipe] | None = None
        self.condition = threading.Condition()

    def set_write_end(self, write_end: "Pipe") -> None:
        """Remember the write end without keeping it alive."""
        self._write_end = weakref.ref(write_end)

    def write_byte(self, byte: int) -> None:
        if self.status is RingBufferStatus.FULL:
            raise BufferError("ring buffer is full")
        self.status = RingBufferStatus.NORMAL
        self._arr[self._tail] = byte
        self._tail = (self._tail + 1) % RING_BUFFER_SIZE
        if self._tail == self._head:
            self.status = RingBufferStatus.FULL

    def read_byte(self) -> int:
        """Remove and return the oldest byte."""
        if self.status is RingBufferStatus.EMPTY:
            raise BufferError("ring buffer is empty")
        self.status = RingBufferStatus.NORMAL
        byte = self._arr[self._head]
        self._head = (self._head + 1) % RING_BUFFER_SIZE
        if self._head == self._tail:
            self.status = RingBufferStatus.EMPTY
        return byte

    def available_read(self) -> int:
        """Number of bytes waiting to be read."""
        if self.status is RingBufferStatus.EMPTY:
            return 0
        if self._tail > self._head:
            return self._tail - self._head
        return self._tail + RING_BUFFER_SIZE - self._head

    def available_write(self) -> int:
        """Number of bytes that can be written without waiting."""
        if self.status is RingBufferStatus.FULL:
            return 0
        return RING_BUFFER_SIZE - self.available_read()

    def all_write_ends_closed(self) -> bool:
        """True once the write end has been closed or discarded."""
        if self._write_end is None:
            raise RuntimeError("write end was never set")
        write_end = self._write_end()
        return write_end is None or write_end.closed


class Pipe:
    """One end of a pipe."""

    def __init__(self, readable: bool, writable: bool, buffer: PipeRingBuffer) -> None:
        self.readable = readable
        self.writable = writable
        self.buffer = buffer
        self.closed = False

    @classmethod
    def read_end_with_buffer(cls, buffer: PipeRingBuffer) -> "Pipe":
        return cls(True, False, buffer)

    @classmethod
    def write_end_with_buffer(cls, buffer: PipeRingBuffer) -> "Pipe":
        return cls(False, True, buffer)

    def _check_open(self) -> None:
        if self.closed:
            raise ValueError("pipe end is closed")

    def read(self, size: int) -> bytes:
        """Read ``size`` bytes, waiting for them; fewer once the writer closes."""
        if not self.readable:
            raise PermissionError("pipe end is not readable")
        self._check_open()
        if size < 0:
            raise ValueError("size must not be negative")
        out = bytearray()
        if size == 0:
            return b""
        ring = self.buffer
        with ring.condition:
            while len(out) < size:
                available = ring.available_read()
                if available == 0:
                    if ring.all_write_ends_closed():
                        break
                    ring.condition.wait()
                    continue
                for _ in range(min(available, size - len(out))):
                    out.append(ring.read_byte())
                ring.condition.notify_all()
        return bytes(out)

    def write(self, data: bytes) -> int:
        """Write all of ``data``, waiting for room as needed."""
        if not self.writable:
            raise PermissionError("pipe end is not writable")
        self._check_open()
        ring = self.buffer
        written = 0
        with ring.condition:
            while written < len(data):
                available = ring.available_write()
                if available == 0:
                    ring.condition.wait()
                    continue
                for byte in data[written:written + available]:
                    ring.write_byte(byte)
                    written += 1
                ring.condition.notify_all()
        return written

    def close(self) -> None:
        """Close this end and wake anyone waiting on the pipe."""
        with self.buffer.condition:
            self.closed = True
            self.buffer.condition.notify_all()


def make_pipe() -> tuple[Pipe, Pipe]:
    """Create a pipe and return its (read end, write end)."""
    buffer = PipeRingBuffer()
    read_end = Pipe.read_end_with_buffer(buffer)
    write_end = Pipe.write_end_with_buffer(buffer)
    buffer.set_write_end(write_end)
    return read_end, write_end