"""In-memory cache of disk blocks with write-back on sync or eviction."""

from __future__ import annotations

import threading
from collections import deque

from .block_dev import BLOCK_SZ, BlockDevice

BLOCK_CACHE_SIZE = 16


class CacheExhaustedError(RuntimeError):
    """Raised when every cached block is in use and none can be evicted."""


class BlockCache:
    """One block held in memory.

    Using the cache as a context manager marks it in use, so the manager
    will not evict it while the ``with`` block runs.
    """

    def __init__(self, block_id: int, device: BlockDevice) -> None:
        self.block_id = block_id
        self.device = device
        self._data = bytearray(device.read_block(block_id))
        self.modified = False
        self._users = 0
        self.lock = threading.RLock()

    def __enter__(self) -> "BlockCache":
        self.lock.acquire()
        self._users += 1
        return self

    def __exit__(self, *exc_info) -> None:
        self._users -= 1
        self.lock.release()

    @property
    def in_use(self) -> bool:
        return self._users > 0

    @staticmethod
    def _check_range(offset: int, size: int) -> None:
        if offset < 0 or size < 0 or offset + size > BLOCK_SZ:
            raise ValueError(
                f"range {offset}..{offset + size} exceeds block size {BLOCK_SZ}"
            )

    def read(self, offset: int, size: int) -> bytes:
        """Return ``size`` bytes starting at ``offset``."""
        self._check_range(offset, size)
        return bytes(self._data[offset:offset + size])

    def write(self, offset: int, data: bytes) -> None:
        """Overwrite bytes at ``offset`` and mark the block dirty."""
        self._check_range(offset, len(data))
        self.modified = True
        self._data[offset:offset + len(data)] = data

    def sync(self) -> None:
        """Write the block back to the device if it was modified."""
        if self.modified:
            self.modified = False
            self.device.write_block(self.block_id, bytes(self._data))


class BlockCacheManager:
    """A bounded set of block caches, evicted oldest first."""

    def __init__(self, capacity: int = BLOCK_CACHE_SIZE) -> None:
        if capacity < 1:
            raise ValueError("capacity must be positive")
        self.capacity = capacity
        self._queue: deque[BlockCache] = deque()
        self._lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._queue)

    def get_block_cache(self, block_id: int, device: BlockDevice) -> BlockCache:
        """Return the cache for a block, loading it if needed."""
        with self._lock:
            for cache in self._queue:
                if cache.block_id == block_id and cache.device is device:
                    return cache
            if len(self._queue) == self.capacity:
                victim = next((c for c in self._queue if not c.in_use), None)
                if victim is None:
                    raise CacheExhaustedError("Run out of BlockCache!")
                self._queue.remove(victim)
                victim.sync()
            cache = BlockCache(block_id, device)
            self._queue.append(cache)
            return cache

    def sync_all(self) -> None:
        """Write every dirty cached block back to its device."""
        with self._lock:
            for cache in self._queue:
                cache.sync()


_MANAGER = BlockCacheManager()


def get_block_cache(block_id: int, device: BlockDevice) -> BlockCache:
    """Return a block from the shared cache manager."""
    return _MANAGER.get_block_cache(block_id, device)


def block_cache_sync_all() -> None:
    """Flush every block held by the shared cache manager."""
    _MANAGER.sync_all()