import pytest

from blockfs.block_cache import get_block_cache
from blockfs.block_dev import BLOCK_SZ, MemoryBlockDevice
from blockfs.fs import FileSystemError, create_filesystem, open_filesystem
from blockfs.layout import (
    DISK_INODE_SIZE,
    SUPER_BLOCK_SIZE,
    decode_disk_inode,
    decode_super_block,
)


@pytest.fixture
def device():
    return MemoryBlockDevice(4096)


@pytest.fixture
def efs(device):
    return create_filesystem(device, 4096, 1)


def test_super_block_regions_cover_device(device, efs):
    sb = decode_super_block(device.read_block(0)[:SUPER_BLOCK_SIZE])
    assert sb.is_valid()
    assert sb.total_blocks == 4096
    assert sb.inode_bitmap_blocks == 1
    assert (
        1
        + sb.inode_bitmap_blocks
        + sb.inode_area_blocks
        + sb.data_bitmap_blocks
        + sb.data_area_blocks
        == sb.total_blocks
    )


def test_open_matches_created_layout(device, efs):
    opened = open_filesystem(device)
    assert opened.inode_area_start_block == efs.inode_area_start_block
    assert opened.data_area_start_block == efs.data_area_start_block
    assert opened.get_disk_inode_pos(7) == efs.get_disk_inode_pos(7)


def test_open_blank_device_fails():
    with pytest.raises(FileSystemError):
        open_filesystem(MemoryBlockDevice(64))


def test_too_few_blocks_rejected():
    with pytest.raises(ValueError):
        create_filesystem(MemoryBlockDevice(64), 64, 1)


def test_root_inode_is_empty_directory(device, efs):
    block_id, offset = efs.get_disk_inode_pos(0)
    raw = device.read_block(block_id)[offset:offset + DISK_INODE_SIZE]
    disk_inode = decode_disk_inode(raw)
    assert disk_inode.is_dir()
    assert disk_inode.size == 0
    assert efs.root_inode().ls() == []


def test_next_inode_after_root(efs):
    assert efs.alloc_inode() == 1


def test_inode_positions(efs):
    first_block, first_offset = efs.get_disk_inode_pos(0)
    assert first_block == efs.inode_area_start_block
    assert first_offset == 0
    assert efs.get_disk_inode_pos(1) == (first_block, DISK_INODE_SIZE)
    per_block = BLOCK_SZ // DISK_INODE_SIZE
    assert efs.get_disk_inode_pos(per_block) == (first_block + 1, 0)


def test_first_data_block_is_start_of_data_area(efs):
    assert efs.alloc_data() == efs.get_data_block_id(0)
    assert efs.alloc_data() == efs.get_data_block_id(1)


def test_dealloc_data_zeroes_and_reuses(device, efs):
    block = efs.alloc_data()
    with get_block_cache(block, device) as cache:
        cache.write(0, b"dirty")
    efs.dealloc_data(block)
    with get_block_cache(block, device) as cache:
        assert cache.read(0, BLOCK_SZ) == bytes(BLOCK_SZ)
    assert efs.alloc_data() == block


def test_dealloc_unallocated_raises(efs):
    with pytest.raises(ValueError):
        efs.dealloc_data(efs.get_data_block_id(5))


def test_created_file_listed_by_root(efs):
    efs.root_inode().create("filea")
    assert efs.root_inode().ls() == ["filea"]