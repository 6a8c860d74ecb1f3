"""File system creation, opening and block allocation."""

from __future__ import annotations

import threading

from .bitmap import BLOCK_BITS, Bitmap
from .block_cache import block_cache_sync_all, get_block_cache
from .block_dev import BLOCK_SZ, BlockDevice
from .layout import (
    DISK_INODE_SIZE,
    SUPER_BLOCK_SIZE,
    DiskInode,
    DiskInodeType,
    SuperBlock,
    decode_super_block,
)
from .vfs import Inode


class FileSystemError(Exception):
    """Raised when an image is invalid or space runs out."""


class FileSystem:
    """An open file system: its device, bitmaps and region boundaries."""

    def __init__(
        self,
        device: BlockDevice,
        inode_bitmap: Bitmap,
        data_bitmap: Bitmap,
        inode_area_start_block: int,
        data_area_start_block: int,
    ) -> None:
        self.device = device
        self.inode_bitmap = inode_bitmap
        self.data_bitmap = data_bitmap
        self.inode_area_start_block = inode_area_start_block
        self.data_area_start_block = data_area_start_block
        self.lock = threading.RLock()

    @classmethod
    def _from_super_block(cls, device: BlockDevice, sb: SuperBlock) -> "FileSystem":
        inode_total_blocks = sb.inode_bitmap_blocks + sb.inode_area_blocks
        return cls(
            device,
            Bitmap(1, sb.inode_bitmap_blocks),
            Bitmap(1 + inode_total_blocks, sb.data_bitmap_blocks),
            1 + sb.inode_bitmap_blocks,
            1 + inode_total_blocks + sb.data_bitmap_blocks,
        )

    def root_inode(self) -> Inode:
        """The root directory."""
        block_id, block_offset = self.get_disk_inode_pos(0)
        return Inode(block_id, block_offset, self, self.device)

    def get_disk_inode_pos(self, inode_id: int) -> tuple[int, int]:
        """Block and byte offset where inode ``inode_id`` is stored."""
        inodes_per_block = BLOCK_SZ // DISK_INODE_SIZE
        block, index = divmod(inode_id, inodes_per_block)
        return self.inode_area_start_block + block, index * DISK_INODE_SIZE

    def get_data_block_id(self, data_block_id: int) -> int:
        """Disk block of the ``data_block_id``-th block in the data area."""
        return self.data_area_start_block + data_block_id

    def alloc_inode(self) -> int:
        inode_id = self.inode_bitmap.alloc(self.device)
        if inode_id is None:
            raise FileSystemError("no free inodes")
        return inode_id

    def alloc_data(self) -> int:
        """Allocate a data block and return its disk block id."""
        bit = self.data_bitmap.alloc(self.device)
        if bit is None:
            raise FileSystemError("no free data blocks")
        return bit + self.data_area_start_block

    def dealloc_data(self, block_id: int) -> None:
        """Zero a data block and return it to the free pool."""
        with get_block_cache(block_id, self.device) as cache:
            cache.write(0, bytes(BLOCK_SZ))
        self.data_bitmap.dealloc(self.device, block_id - self.data_area_start_block)


def create_filesystem(
    device: BlockDevice, total_blocks: int, inode_bitmap_blocks: int
) -> FileSystem:
    """Format ``device`` with a fresh file system and return it."""
    if inode_bitmap_blocks < 1:
        raise ValueError("at least one inode bitmap block is required")
    inode_num = inode_bitmap_blocks * BLOCK_BITS
    inode_area_blocks = (inode_num * DISK_INODE_SIZE + BLOCK_SZ - 1) // BLOCK_SZ
    inode_total_blocks = inode_bitmap_blocks + inode_area_blocks

    data_total_blocks = total_blocks - 1 - inode_total_blocks
    if data_total_blocks < 0:
        raise ValueError("too few blocks for the super block and inode area")
    data_bitmap_blocks = (data_total_blocks + BLOCK_BITS) // (BLOCK_BITS + 1)
    data_area_blocks = data_total_blocks - data_bitmap_blocks

    sb = SuperBlock(
        total_blocks,
        inode_bitmap_blocks,
        inode_area_blocks,
        data_bitmap_blocks,
        data_area_blocks,
    )
    fs = FileSystem._from_super_block(device, sb)

    zero = bytes(BLOCK_SZ)
    for block_id in range(total_blocks):
        with get_block_cache(block_id, device) as cache:
            cache.write(0, zero)

    with get_block_cache(0, device) as cache:
        cache.write(0, sb.to_bytes())

    if fs.alloc_inode() != 0:
        raise FileSystemError("root inode was not allocated first")
    block_id, block_offset = fs.get_disk_inode_pos(0)
    with get_block_cache(block_id, device) as cache:
        cache.write(block_offset, DiskInode(DiskInodeType.DIRECTORY).to_bytes())

    block_cache_sync_all()
    return fs


def open_filesystem(device: BlockDevice) -> FileSystem:
    """Open a file system already written to ``device``."""
    with get_block_cache(0, device) as cache:
        sb = decode_super_block(cache.read(0, SUPER_BLOCK_SIZE))
    if not sb.is_valid():
        raise FileSystemError("Error loading EFS!")
    return FileSystem._from_super_block(device, sb)