"""A block-based file system with a block cache, bitmaps, inodes and an image packer,
plus a byte pipe, Sv39 address types and a physical frame allocator."""

__version__ = "0.1.0"

__all__ = [
    "address",
    "bitmap",
    "block_cache",
    "block_dev",
    "frame_allocator",
    "fs",
    "layout",
    "packer",
    "pipe",
    "vfs",
]