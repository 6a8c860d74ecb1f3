"""Build a file system image from a directory of application binaries."""

from __future__ import annotations

import argparse
import sys
import threading
from pathlib import Path
from typing import BinaryIO, Sequence

from .block_cache import block_cache_sync_all
from .block_dev import BLOCK_SZ, BlockDevice
from .fs import create_filesystem

IMAGE_NAME = "fs.img"
IMAGE_BLOCKS = 16 * 2048
INODE_BITMAP_BLOCKS = 1


class BlockFile(BlockDevice):
    """A block device stored in an open binary file."""

    def __init__(self, file: BinaryIO) -> None:
        self._file = file
        self._lock = threading.Lock()

    def read_block(self, block_id: int) -> bytes:
        if block_id < 0:
            raise ValueError("block id must not be negative")
        with self._lock:
            self._file.seek(block_id * BLOCK_SZ)
            data = self._file.read(BLOCK_SZ)
        if len(data) != BLOCK_SZ:
            raise OSError("Not a complete block!")
        return data

    def write_block(self, block_id: int, data: bytes) -> None:
        if block_id < 0:
            raise ValueError("block id must not be negative")
        if len(data) != BLOCK_SZ:
            raise ValueError("Not a complete block!")
        with self._lock:
            self._file.seek(block_id * BLOCK_SZ)
            written = self._file.write(data)
        if written != BLOCK_SZ:
            raise OSError("Not a complete block!")


def _strip_extension(file_name: str) -> str:
    dot = file_name.find(".")
    if dot < 0:
        raise ValueError(f"source file {file_name!r} has no extension")
    return file_name[:dot]


def pack(source: str | Path, target: str | Path) -> list[str]:
    """Pack the applications named by ``source`` into ``target``/fs.img.

    Each file in ``source`` names an application by its stem; the binary of
    that name is read from ``target``. Returns the names packed, in order.
    """
    source = Path(source)
    target = Path(target)
    apps = sorted(_strip_extension(entry.name) for entry in source.iterdir())

    image_path = target / IMAGE_NAME
    image_path.touch(exist_ok=True)
    with open(image_path, "r+b") as image:
        image.truncate(IMAGE_BLOCKS * BLOCK_SZ)
        device = BlockFile(image)
        fs = create_filesystem(device, IMAGE_BLOCKS, INODE_BITMAP_BLOCKS)
        root = fs.root_inode()
        for app in apps:
            data = (target / app).read_bytes()
            inode = root.create(app)
            if inode is None:
                raise FileExistsError(f"application {app!r} packed twice")
            inode.write_at(0, data)
        block_cache_sync_all()
    return apps


def main(argv: Sequence[str] | None = None) -> int:
    parser = argparse.ArgumentParser(prog="blockfs-pack", description="FileSystem packer")
    parser.add_argument(
        "-s", "--source", required=True, help="Executable source dir (with trailing slash)"
    )
    parser.add_argument(
        "-t", "--target", required=True, help="Executable target dir (with trailing slash)"
    )
    args = parser.parse_args(argv)
    print(f"src_path = {args.source}\ntarget_path = {args.target}")
    try:
        pack(args.source, args.target)
    except (OSError, ValueError) as error:
        print(f"Error when packing fs! {error}", file=sys.stderr)
        return 1
    return 0