"""On-disk structures: super block, inodes and directory entries."""

from __future__ import annotations

import struct
from dataclasses import dataclass, field
from enum import IntEnum
from typing import Iterable

from .block_cache import get_block_cache
from .block_dev import BLOCK_SZ, BlockDevice

EFS_MAGIC = 0x3B800001
INODE_DIRECT_COUNT = 28
NAME_LENGTH_LIMIT = 27
INODE_INDIRECT1_COUNT = BLOCK_SZ // 4
INODE_INDIRECT2_COUNT = INODE_INDIRECT1_COUNT * INODE_INDIRECT1_COUNT
DIRECT_BOUND = INODE_DIRECT_COUNT
INDIRECT1_BOUND = DIRECT_BOUND + INODE_INDIRECT1_COUNT
INDIRECT2_BOUND = INDIRECT1_BOUND + INODE_INDIRECT2_COUNT

_SUPER_BLOCK_FORMAT = struct.Struct("<6I")
_DISK_INODE_FORMAT = struct.Struct(f"<I{INODE_DIRECT_COUNT}IIII")
_DIR_ENTRY_FORMAT = struct.Struct(f"<{NAME_LENGTH_LIMIT + 1}sI")
_U32 = struct.Struct("<I")

SUPER_BLOCK_SIZE = _SUPER_BLOCK_FORMAT.size
DISK_INODE_SIZE = _DISK_INODE_FORMAT.size
DIRENT_SZ = _DIR_ENTRY_FORMAT.size


@dataclass
class SuperBlock:
    """The first block of the file system, describing its regions."""

    total_blocks: int
    inode_bitmap_blocks: int
    inode_area_blocks: int
    data_bitmap_blocks: int
    data_area_blocks: int
    magic: int = field(default=EFS_MAGIC, repr=False)

    def is_valid(self) -> bool:
        return self.magic == EFS_MAGIC

    def to_bytes(self) -> bytes:
        return _SUPER_BLOCK_FORMAT.pack(
            self.magic,
            self.total_blocks,
            self.inode_bitmap_blocks,
            self.inode_area_blocks,
            self.data_bitmap_blocks,
            self.data_area_blocks,
        )


def decode_super_block(data: bytes) -> SuperBlock:
    """Parse a super block from the start of ``data``."""
    if len(data) < SUPER_BLOCK_SIZE:
        raise ValueError("super block data too short")
    magic, total, ibm, iarea, dbm, darea = _SUPER_BLOCK_FORMAT.unpack_from(data)
    return SuperBlock(total, ibm, iarea, dbm, darea, magic=magic)


class DiskInodeType(IntEnum):
    FILE = 0
    DIRECTORY = 1


def _data_blocks(size: int) -> int:
    return (size + BLOCK_SZ - 1) // BLOCK_SZ


def total_blocks(size: int) -> int:
    """Data and index blocks needed to hold ``size`` bytes."""
    data_blocks = _data_blocks(size)
    total = data_blocks
    if data_blocks > INODE_DIRECT_COUNT:
        total += 1
    if data_blocks > INDIRECT1_BOUND:
        total += 1
        total += (
            data_blocks - INDIRECT1_BOUND + INODE_INDIRECT1_COUNT - 1
        ) // INODE_INDIRECT1_COUNT
    return total


def _read_u32(device: BlockDevice, block_id: int, index: int) -> int:
    with get_block_cache(block_id, device) as cache:
        return _U32.unpack(cache.read(index * 4, 4))[0]


@dataclass
class DiskInode:
    """An inode as stored on disk, with direct and indirect block indexes."""

    type_: DiskInodeType = DiskInodeType.FILE
    size: int = 0
    direct: list[int] = field(default_factory=lambda: [0] * INODE_DIRECT_COUNT)
    indirect1: int = 0
    indirect2: int = 0

    def is_dir(self) -> bool:
        return self.type_ == DiskInodeType.DIRECTORY

    def is_file(self) -> bool:
        return self.type_ == DiskInodeType.FILE

    def data_blocks(self) -> int:
        return _data_blocks(self.size)

    def blocks_num_needed(self, new_size: int) -> int:
        """Extra blocks, data and index, needed to grow to ``new_size``."""
        if new_size < self.size:
            raise ValueError("new size is smaller than the current size")
        return total_blocks(new_size) - total_blocks(self.size)

    def get_block_id(self, inner_id: int, device: BlockDevice) -> int:
        """Disk block holding the ``inner_id``-th data block of the inode."""
        if inner_id < 0:
            raise ValueError("block index must not be negative")
        if inner_id < INODE_DIRECT_COUNT:
            return self.direct[inner_id]
        if inner_id < INDIRECT1_BOUND:
            return _read_u32(device, self.indirect1, inner_id - INODE_DIRECT_COUNT)
        last = inner_id - INDIRECT1_BOUND
        outer, inner = divmod(last, INODE_INDIRECT1_COUNT)
        indirect1 = _read_u32(device, self.indirect2, outer)
        return _read_u32(device, indirect1, inner)

    def increase_size(
        self, new_size: int, new_blocks: Iterable[int], device: BlockDevice
    ) -> None:
        """Grow to ``new_size``, taking data and index blocks from ``new_blocks``."""
        if new_size < self.size:
            raise ValueError("new size is smaller than the current size")
        supply = iter(new_blocks)

        def take() -> int:
            try:
                return next(supply)
            except StopIteration:
                raise ValueError("not enough blocks supplied") from None

        current = self.data_blocks()
        self.size = new_size
        total = self.data_blocks()

        while current < min(total, INODE_DIRECT_COUNT):
            self.direct[current] = take()
            current += 1

        if total <= INODE_DIRECT_COUNT:
            return
        if current == INODE_DIRECT_COUNT:
            self.indirect1 = take()
        current -= INODE_DIRECT_COUNT
        total -= INODE_DIRECT_COUNT

        with get_block_cache(self.indirect1, device) as indirect1:
            while current < min(total, INODE_INDIRECT1_COUNT):
                indirect1.write(current * 4, _U32.pack(take()))
                current += 1

        if total <= INODE_INDIRECT1_COUNT:
            return
        if current == INODE_INDIRECT1_COUNT:
            self.indirect2 = take()
        current -= INODE_INDIRECT1_COUNT
        total -= INODE_INDIRECT1_COUNT

        a0, b0 = divmod(current, INODE_INDIRECT1_COUNT)
        a1, b1 = divmod(total, INODE_INDIRECT1_COUNT)
        with get_block_cache(self.indirect2, device) as indirect2:
            while a0 < a1 or (a0 == a1 and b0 < b1):
                if b0 == 0:
                    indirect2.write(a0 * 4, _U32.pack(take()))
                entry = _U32.unpack(indirect2.read(a0 * 4, 4))[0]
                with get_block_cache(entry, device) as indirect1:
                    indirect1.write(b0 * 4, _U32.pack(take()))
                b0 += 1
                if b0 == INODE_INDIRECT1_COUNT:
                    b0 = 0
                    a0 += 1

    def clear_size(self, device: BlockDevice) -> list[int]:
        """Empty the inode and return every block it used."""
        freed: list[int] = []
        data_blocks = self.data_blocks()
        self.size = 0

        direct_used = min(data_blocks, INODE_DIRECT_COUNT)
        freed.extend(self.direct[:direct_used])
        self.direct[:direct_used] = [0] * direct_used

        if data_blocks <= INODE_DIRECT_COUNT:
            return freed
        freed.append(self.indirect1)
        data_blocks -= INODE_DIRECT_COUNT

        with get_block_cache(self.indirect1, device) as indirect1:
            count = min(data_blocks, INODE_INDIRECT1_COUNT)
            freed.extend(_U32.unpack_from(indirect1.read(i * 4, 4))[0] for i in range(count))
        self.indirect1 = 0

        if data_blocks <= INODE_INDIRECT1_COUNT:
            return freed
        freed.append(self.indirect2)
        data_blocks -= INODE_INDIRECT1_COUNT

        if data_blocks > INODE_INDIRECT2_COUNT:
            raise ValueError("inode larger than the index can describe")
        a1, b1 = divmod(data_blocks, INODE_INDIRECT1_COUNT)
        with get_block_cache(self.indirect2, device) as indirect2:
            outer = struct.unpack(f"<{INODE_INDIRECT1_COUNT}I", indirect2.read(0, BLOCK_SZ))
            for entry in outer[:a1]:
                freed.append(entry)
                with get_block_cache(entry, device) as indirect1:
                    freed.extend(
                        struct.unpack(f"<{INODE_INDIRECT1_COUNT}I", indirect1.read(0, BLOCK_SZ))
                    )
            if b1 > 0:
                entry = outer[a1]
                freed.append(entry)
                with get_block_cache(entry, device) as indirect1:
                    freed.extend(struct.unpack(f"<{b1}I", indirect1.read(0, b1 * 4)))
        self.indirect2 = 0
        return freed

    def read_at(self, offset: int, size: int, device: BlockDevice) -> bytes:
        """Read up to ``size`` bytes from ``offset``, stopping at end of file."""
        if offset < 0 or size < 0:
            raise ValueError("offset and size must not be negative")
        start = offset
        end = min(offset + size, self.size)
        parts: list[bytes] = []
        while start < end:
            block_end = min((start // BLOCK_SZ + 1) * BLOCK_SZ, end)
            block_id = self.get_block_id(start // BLOCK_SZ, device)
            with get_block_cache(block_id, device) as cache:
                parts.append(cache.read(start % BLOCK_SZ, block_end - start))
            start = block_end
        return b"".join(parts)

    def write_at(self, offset: int, data: bytes, device: BlockDevice) -> int:
        """Write ``data`` at ``offset`` within the current size; return bytes written."""
        if offset < 0:
            raise ValueError("offset must not be negative")
        start = offset
        end = min(offset + len(data), self.size)
        if start > end:
            raise ValueError("offset beyond end of file")
        written = 0
        while start < end:
            block_end = min((start // BLOCK_SZ + 1) * BLOCK_SZ, end)
            chunk = block_end - start
            block_id = self.get_block_id(start // BLOCK_SZ, device)
            with get_block_cache(block_id, device) as cache:
                cache.write(start % BLOCK_SZ, data[written:written + chunk])
            written += chunk
            start = block_end
        return written

    def to_bytes(self) -> bytes:
        return _DISK_INODE_FORMAT.pack(
            self.size, *self.direct, self.indirect1, self.indirect2, int(self.type_)
        )


def decode_disk_inode(data: bytes) -> DiskInode:
    """Parse an inode from the start of ``data``."""
    if len(data) < DISK_INODE_SIZE:
        raise ValueError("inode data too short")
    fields = _DISK_INODE_FORMAT.unpack_from(data)
    size = fields[0]
    direct = list(fields[1:1 + INODE_DIRECT_COUNT])
    indirect1, indirect2, type_value = fields[1 + INODE_DIRECT_COUNT:]
    return DiskInode(DiskInodeType(type_value), size, direct, indirect1, indirect2)


@dataclass(frozen=True)
class DirEntry:
    """A directory entry: a name and the inode it refers to."""

    name: str = ""
    inode_number: int = 0

    def __post_init__(self) -> None:
        encoded = self.name.encode("utf-8")
        if len(encoded) > NAME_LENGTH_LIMIT:
            raise ValueError(f"name longer than {NAME_LENGTH_LIMIT} bytes")
        if b"\0" in encoded:
            raise ValueError("name must not contain NUL")

    def to_bytes(self) -> bytes:
        return _DIR_ENTRY_FORMAT.pack(self.name.encode("utf-8"), self.inode_number)


def decode_dir_entry(data: bytes) -> DirEntry:
    """Parse a directory entry from the start of ``data``."""
    if len(data) < DIRENT_SZ:
        raise ValueError("directory entry data too short")
    raw_name, inode_number = _DIR_ENTRY_FORMAT.unpack_from(data)
    if b"\0" not in raw_name:
        raise ValueError("directory entry name is not terminated")
    name = raw_name.split(b"\0", 1)[0].decode("utf-8")
    return DirEntry(name, inode_number)