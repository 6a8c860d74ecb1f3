import pytest

from blockfs.bitmap import BLOCK_BITS, Bitmap
from blockfs.block_cache import block_cache_sync_all
from blockfs.block_dev import BLOCK_SZ, MemoryBlockDevice


def test_maximum():
    assert Bitmap(1, 2).maximum() == 2 * BLOCK_SZ * 8
    assert BLOCK_BITS == BLOCK_SZ * 8


def test_allocations_are_sequential_and_distinct():
    device = MemoryBlockDevice(3)
    bitmap = Bitmap(1, 1)
    bits = [bitmap.alloc(device) for _ in range(20)]
    assert bits == sorted(bits)
    assert len(set(bits)) == len(bits)
    assert bits[0] == 0


def test_first_allocation_sets_low_bit_on_disk():
    device = MemoryBlockDevice(2)
    Bitmap(1, 1).alloc(device)
    block_cache_sync_all()
    stored = device.read_block(1)
    assert stored[0] == 0x01
    assert stored[1:] == bytes(BLOCK_SZ - 1)
    assert device.read_block(0) == bytes(BLOCK_SZ)


def test_full_bitmap_returns_none():
    device = MemoryBlockDevice(1)
    bitmap = Bitmap(0, 1)
    bits = [bitmap.alloc(device) for _ in range(bitmap.maximum())]
    assert bits == list(range(bitmap.maximum()))
    assert bitmap.alloc(device) is None


def test_allocation_spills_into_next_block():
    device = MemoryBlockDevice(2)
    bitmap = Bitmap(0, 2)
    for _ in range(BLOCK_BITS):
        bitmap.alloc(device)
    assert bitmap.alloc(device) == BLOCK_BITS


def test_dealloc_frees_bit_for_reuse():
    device = MemoryBlockDevice(1)
    bitmap = Bitmap(0, 1)
    bits = [bitmap.alloc(device) for _ in range(10)]
    bitmap.dealloc(device, bits[4])
    assert bitmap.alloc(device) == bits[4]
    assert bitmap.alloc(device) == bits[-1] + 1


def test_dealloc_unallocated_bit_raises():
    device = MemoryBlockDevice(1)
    bitmap = Bitmap(0, 1)
    with pytest.raises(ValueError):
        bitmap.dealloc(device, 5)


def test_dealloc_out_of_range_raises():
    device = MemoryBlockDevice(1)
    bitmap = Bitmap(0, 1)
    with pytest.raises(ValueError):
        bitmap.dealloc(device, bitmap.maximum())


def test_double_dealloc_raises():
    device = MemoryBlockDevice(1)
    bitmap = Bitmap(0, 1)
    bit = bitmap.alloc(device)
    bitmap.dealloc(device, bit)
    with pytest.raises(ValueError):
        bitmap.dealloc(device, bit)