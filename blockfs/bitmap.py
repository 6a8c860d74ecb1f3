"""Allocation bitmap spread over a run of disk blocks."""

from __future__ import annotations

from .block_cache import get_block_cache
from .block_dev import BLOCK_SZ, BlockDevice

BLOCK_BITS = BLOCK_SZ * 8


def _decompose(bit: int) -> tuple[int, int, int]:
    """Split a bit number into (block, byte within block, bit within byte)."""
    block_pos, bit = divmod(bit, BLOCK_BITS)
    byte_pos, inner_pos = divmod(bit, 8)
    return block_pos, byte_pos, inner_pos


def _trailing_ones(value: int) -> int:
    return (~value & (value + 1)).bit_length() - 1


class Bitmap:
    """A bitmap of ``blocks`` blocks starting at ``start_block_id``.

    Bits are stored as little-endian 64-bit words, so bit ``n`` of a block
    lives in byte ``n // 8`` at position ``n % 8``.
    """

    def __init__(self, start_block_id: int, blocks: int) -> None:
        self.start_block_id = start_block_id
        self.blocks = blocks

    def alloc(self, device: BlockDevice) -> int | None:
        """Set the lowest clear bit and return its number, or None if full."""
        for block_id in range(self.blocks):
            with get_block_cache(self.start_block_id + block_id, device) as cache:
                content = cache.read(0, BLOCK_SZ)
                for byte_pos, value in enumerate(content):
                    if value != 0xFF:
                        inner_pos = _trailing_ones(value)
                        cache.write(byte_pos, bytes([value | (1 << inner_pos)]))
                        return block_id * BLOCK_BITS + byte_pos * 8 + inner_pos
        return None

    def dealloc(self, device: BlockDevice, bit: int) -> None:
        """Clear an allocated bit; raise ValueError if it was not set."""
        if not 0 <= bit < self.maximum():
            raise ValueError(f"bit {bit} outside bitmap")
        block_pos, byte_pos, inner_pos = _decompose(bit)
        with get_block_cache(self.start_block_id + block_pos, device) as cache:
            value = cache.read(byte_pos, 1)[0]
            mask = 1 << inner_pos
            if not value & mask:
                raise ValueError(f"bit {bit} is not allocated")
            cache.write(byte_pos, bytes([value & ~mask]))

    def maximum(self) -> int:
        """Number of bits the bitmap can hold."""
        return self.blocks * BLOCK_BITS