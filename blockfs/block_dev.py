"""Block device interface and an in-memory implementation."""

from __future__ import annotations

from abc import ABC, abstractmethod

BLOCK_SZ = 512


class BlockDevice(ABC):
    """A device addressed in fixed-size blocks of ``BLOCK_SZ`` bytes."""

    @abstractmethod
    def read_block(self, block_id: int) -> bytes:
        """Return the contents of block ``block_id``."""

    @abstractmethod
    def write_block(self, block_id: int, data: bytes) -> None:
        """Replace the contents of block ``block_id`` with ``data``."""


class MemoryBlockDevice(BlockDevice):
    """A block device backed by a ``bytearray``."""

    def __init__(self, num_blocks: int) -> None:
        if num_blocks < 0:
            raise ValueError("number of blocks must not be negative")
        self.num_blocks = num_blocks
        self._storage = bytearray(num_blocks * BLOCK_SZ)

    def _span(self, block_id: int) -> slice:
        if not 0 <= block_id < self.num_blocks:
            raise IndexError(f"block {block_id} out of range")
        start = block_id * BLOCK_SZ
        return slice(start, start + BLOCK_SZ)

    def read_block(self, block_id: int) -> bytes:
        return bytes(self._storage[self._span(block_id)])

    def write_block(self, block_id: int, data: bytes) -> None:
        if len(data) != BLOCK_SZ:
            raise ValueError("Not a complete block!")
        self._storage[self._span(block_id)] = data