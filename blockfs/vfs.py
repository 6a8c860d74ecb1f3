"""Inodes as seen by users of the file system: a flat root directory of files."""

from __future__ import annotations

from contextlib import contextmanager
from typing import TYPE_CHECKING, Iterator

from .block_cache import block_cache_sync_all, get_block_cache
from .block_dev import BlockDevice
from .layout import (
    DIRENT_SZ,
    DISK_INODE_SIZE,
    DirEntry,
    DiskInode,
    DiskInodeType,
    decode_dir_entry,
    decode_disk_inode,
    total_blocks,
)

if TYPE_CHECKING:
    from .fs import FileSystem


class Inode:
    """A handle on one on-disk inode, located by block and byte offset."""

    def __init__(
        self, block_id: int, block_offset: int, fs: "FileSystem", device: BlockDevice
    ) -> None:
        self.block_id = block_id
        self.block_offset = block_offset
        self.fs = fs
        self.device = device

    def __repr__(self) -> str:
        return f"Inode(block_id={self.block_id}, block_offset={self.block_offset})"

    def _read_disk_inode(self) -> DiskInode:
        with get_block_cache(self.block_id, self.device) as cache:
            return decode_disk_inode(cache.read(self.block_offset, DISK_INODE_SIZE))

    @contextmanager
    def _modify_disk_inode(self) -> Iterator[DiskInode]:
        with get_block_cache(self.block_id, self.device) as cache:
            disk_inode = decode_disk_inode(cache.read(self.block_offset, DISK_INODE_SIZE))
            yield disk_inode
            cache.write(self.block_offset, disk_inode.to_bytes())

    def _entries(self, disk_inode: DiskInode) -> Iterator[DirEntry]:
        if not disk_inode.is_dir():
            raise NotADirectoryError("inode is not a directory")
        for index in range(disk_inode.size // DIRENT_SZ):
            raw = disk_inode.read_at(index * DIRENT_SZ, DIRENT_SZ, self.device)
            if len(raw) != DIRENT_SZ:
                raise RuntimeError("truncated directory entry")
            yield decode_dir_entry(raw)

    def _find_inode_id(self, name: str, disk_inode: DiskInode) -> int | None:
        return next(
            (entry.inode_number for entry in self._entries(disk_inode) if entry.name == name),
            None,
        )

    def _inode_at(self, inode_id: int) -> "Inode":
        block_id, block_offset = self.fs.get_disk_inode_pos(inode_id)
        return Inode(block_id, block_offset, self.fs, self.device)

    def _increase_size(self, new_size: int, disk_inode: DiskInode) -> None:
        if new_size < disk_inode.size:
            return
        needed = disk_inode.blocks_num_needed(new_size)
        blocks = [self.fs.alloc_data() for _ in range(needed)]
        disk_inode.increase_size(new_size, blocks, self.device)

    def find(self, name: str) -> "Inode | None":
        """Look up ``name`` in this directory."""
        with self.fs.lock:
            inode_id = self._find_inode_id(name, self._read_disk_inode())
            return None if inode_id is None else self._inode_at(inode_id)

    def create(self, name: str) -> "Inode | None":
        """Create an empty file named ``name``; return None if it already exists."""
        DirEntry(name, 0)
        with self.fs.lock:
            if self._find_inode_id(name, self._read_disk_inode()) is not None:
                return None

            new_inode_id = self.fs.alloc_inode()
            block_id, block_offset = self.fs.get_disk_inode_pos(new_inode_id)
            with get_block_cache(block_id, self.device) as cache:
                cache.write(block_offset, DiskInode(DiskInodeType.FILE).to_bytes())

            with self._modify_disk_inode() as directory:
                file_count = directory.size // DIRENT_SZ
                self._increase_size((file_count + 1) * DIRENT_SZ, directory)
                directory.write_at(
                    file_count * DIRENT_SZ,
                    DirEntry(name, new_inode_id).to_bytes(),
                    self.device,
                )

            block_cache_sync_all()
            return Inode(block_id, block_offset, self.fs, self.device)

    def ls(self) -> list[str]:
        """Names in this directory, in the order they were created."""
        with self.fs.lock:
            return [entry.name for entry in self._entries(self._read_disk_inode())]

    def read_at(self, offset: int, size: int) -> bytes:
        """Read up to ``size`` bytes from ``offset``."""
        with self.fs.lock:
            return self._read_disk_inode().read_at(offset, size, self.device)

    def write_at(self, offset: int, data: bytes) -> int:
        """Write ``data`` at ``offset``, growing the file as needed."""
        with self.fs.lock:
            with self._modify_disk_inode() as disk_inode:
                self._increase_size(offset + len(data), disk_inode)
                written = disk_inode.write_at(offset, data, self.device)
            block_cache_sync_all()
            return written

    def clear(self) -> None:
        """Truncate the file to zero length and free its blocks."""
        with self.fs.lock:
            with self._modify_disk_inode() as disk_inode:
                size = disk_inode.size
                freed = disk_inode.clear_size(self.device)
                if len(freed) != total_blocks(size):
                    raise RuntimeError("freed block count does not match inode size")
                for block_id in freed:
                    self.fs.dealloc_data(block_id)
            block_cache_sync_all()