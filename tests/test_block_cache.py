import pytest

from blockfs.block_cache import (
    BlockCache,
    BlockCacheManager,
    CacheExhaustedError,
    block_cache_sync_all,
    get_block_cache,
)
from blockfs.block_dev import BLOCK_SZ, MemoryBlockDevice


def test_cache_loads_block_contents():
    device = MemoryBlockDevice(2)
    device.write_block(1, b"\xab" * BLOCK_SZ)
    cache = BlockCache(1, device)
    assert cache.read(0, BLOCK_SZ) == b"\xab" * BLOCK_SZ
    assert cache.modified is False


def test_write_is_deferred_until_sync():
    device = MemoryBlockDevice(1)
    cache = BlockCache(0, device)
    cache.write(10, b"hello")
    assert cache.read(10, 5) == b"hello"
    assert device.read_block(0) == bytes(BLOCK_SZ)
    cache.sync()
    assert device.read_block(0)[10:15] == b"hello"
    assert cache.modified is False


def test_sync_without_changes_leaves_device_alone():
    device = MemoryBlockDevice(1)
    cache = BlockCache(0, device)
    device.write_block(0, b"\x07" * BLOCK_SZ)
    cache.sync()
    assert device.read_block(0) == b"\x07" * BLOCK_SZ


@pytest.mark.parametrize("offset,size", [(BLOCK_SZ - 3, 4), (-1, 1), (BLOCK_SZ, 1)])
def test_out_of_block_access_raises(offset, size):
    cache = BlockCache(0, MemoryBlockDevice(1))
    with pytest.raises(ValueError):
        cache.read(offset, size)
    with pytest.raises(ValueError):
        cache.write(offset, b"x" * size)


def test_manager_returns_same_cache_for_same_block():
    device = MemoryBlockDevice(4)
    manager = BlockCacheManager(4)
    first = manager.get_block_cache(2, device)
    assert manager.get_block_cache(2, device) is first
    assert len(manager) == 1


def test_manager_separates_devices():
    manager = BlockCacheManager(4)
    a, b = MemoryBlockDevice(1), MemoryBlockDevice(1)
    assert manager.get_block_cache(0, a) is not manager.get_block_cache(0, b)
    assert len(manager) == 2


def test_eviction_writes_back_dirty_block():
    device = MemoryBlockDevice(4)
    manager = BlockCacheManager(2)
    manager.get_block_cache(0, device).write(0, b"dirty")
    manager.get_block_cache(1, device)
    manager.get_block_cache(2, device)
    assert len(manager) == 2
    assert device.read_block(0)[:5] == b"dirty"


def test_eviction_skips_caches_in_use():
    device = MemoryBlockDevice(4)
    manager = BlockCacheManager(2)
    first = manager.get_block_cache(0, device)
    second = manager.get_block_cache(1, device)
    with first:
        manager.get_block_cache(2, device)
    assert manager.get_block_cache(0, device) is first
    assert manager.get_block_cache(1, device) is not second


def test_exhausted_cache_raises():
    device = MemoryBlockDevice(4)
    manager = BlockCacheManager(2)
    with manager.get_block_cache(0, device), manager.get_block_cache(1, device):
        with pytest.raises(CacheExhaustedError):
            manager.get_block_cache(2, device)


def test_sync_all_flushes_every_block():
    device = MemoryBlockDevice(3)
    manager = BlockCacheManager(3)
    for block_id in range(3):
        manager.get_block_cache(block_id, device).write(0, bytes([block_id + 1]))
    manager.sync_all()
    assert [device.read_block(i)[0] for i in range(3)] == [1, 2, 3]


def test_shared_manager_functions():
    device = MemoryBlockDevice(2)
    cache = get_block_cache(1, device)
    assert get_block_cache(1, device) is cache
    cache.write(0, b"shared")
    block_cache_sync_all()
    assert device.read_block(1)[:6] == b"shared"


def test_invalid_capacity():
    with pytest.raises(ValueError):
        BlockCacheManager(0)