# blockfs

blockfs is a small block-based file system. It works on any block device,
such as an in-memory device or a plain image file. The disk is laid out as
five regions, in this order:

1. a super block
2. an inode bitmap
3. an inode area
4. a data bitmap
5. a data area

Blocks are 512 bytes. There is one flat root directory, and all files live
in it. A shared block cache holds up to 16 blocks. When the cache is full,
it evicts the oldest block that is not in use. It writes a dirty block back
to the device when the block is synced or evicted.

## Installation

```
pip install .
```

## Building an image from a directory of programs

```
blockfs-pack --source apps/ --target build/
```

For each entry in `apps/`, the packer removes everything from the first `.`
in the entry's name onwards. It then reads the file with that bare name
from `build/` and stores it in `build/fs.img`. Files are added in sorted
order. The image is 16 MiB, which is 32768 blocks of 512 bytes, and has one
inode bitmap block.

The command prints the source and target paths. If packing fails with a
file or value error, it prints an error to standard error and exits with
status 1.

From Python, `blockfs.packer.pack(source, target)` does the same job and
returns the list of names it packed.

## Using the library

```python
from blockfs.block_dev import MemoryBlockDevice
from blockfs.fs import create_filesystem, open_filesystem

device = MemoryBlockDevice(4096)
create_filesystem(device, 4096, 1)

fs = open_filesystem(device)
root = fs.root_inode()

hello = root.create("hello")
hello.write_at(0, b"Hello, world!")
print(root.ls())                           # ['hello']
print(root.find("hello").read_at(0, 233))  # b'Hello, world!'

hello.clear()                              # frees every data block of the file
```

`Inode` methods:

- `create(name)` returns `None` if the name already exists.
- `find(name)` returns `None` if no entry has that name.
- `write_at(offset, data)` grows the file as needed and returns the number
  of bytes written.
- `read_at(offset, size)` stops at the end of the file.

Names can be at most 27 bytes of UTF-8.

`open_filesystem` raises `blockfs.fs.FileSystemError` when the super block
has the wrong magic number. Allocation raises the same error when inodes or
data blocks run out.

For a block device backed by a file, use `blockfs.packer.BlockFile`. It
wraps a file object that is open for binary reading and writing. To make
your own device, subclass `blockfs.block_dev.BlockDevice` and implement
`read_block(block_id)` and `write_block(block_id, data)`.

## Other pieces

- `blockfs.block_cache`: `BlockCache`, `BlockCacheManager`,
  `get_block_cache()` and `block_cache_sync_all()`. The manager raises
  `CacheExhaustedError` when every cached block is in use.
- `blockfs.bitmap.Bitmap`: allocates and frees bits across a run of bitmap
  blocks.
- `blockfs.layout`: the on-disk structures `SuperBlock`, `DiskInode` and
  `DirEntry`. It also has `decode_super_block`, `decode_disk_inode`,
  `decode_dir_entry` and `total_blocks`.
- `blockfs.pipe`: `make_pipe()` returns a read end and a write end that
  share a 32-byte ring buffer. `Pipe.read` and `Pipe.write` block until they
  can proceed. A read returns early once the write end is closed or
  discarded.
- `blockfs.address`: Sv39 addresses and page numbers (`PhysAddr`,
  `VirtAddr`, `PhysPageNum`, `VirtPageNum`) and `VPNRange`.
- `blockfs.frame_allocator.StackFrameAllocator`: a stack-based allocator for
  physical frame numbers. It raises `FrameAllocationError` when frames run
  out or when it is asked to free a frame that was never allocated.

## What it does not do

- It has no subdirectories and no way to delete or rename a file. A file
  can only be cleared.
- It does not mount an image into the host operating system.
- The address and frame allocator modules only compute page numbers. They
  do not build or walk page tables.

## Running the tests

```
pip install .[test]
pytest
```