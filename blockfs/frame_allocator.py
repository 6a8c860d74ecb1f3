"""Physical frame allocator handing out page numbers from a stack."""

from __future__ import annotations

import logging

from .address import PhysPageNum

logger = logging.getLogger(__name__)


class FrameAllocationError(RuntimeError):
    """Raised when frames run out or a frame is freed that was not allocated."""


class StackFrameAllocator:
    """Allocates frames from a contiguous range, reusing freed ones last-in first-out."""

    def __init__(self) -> None:
        self.current = 0
        self.end = 0
        self.recycled: list[int] = []

    def init(self, start: PhysPageNum, end: PhysPageNum) -> None:
        """Hand out frames from ``start`` up to, not including, ``end``."""
        self.current = int(start)
        self.end = int(end)
        logger.info("last %d Physical Frames.", self.end - self.current)

    def alloc(self) -> PhysPageNum:
        """Return a free frame, preferring the most recently freed one."""
        if self.recycled:
            return PhysPageNum(self.recycled.pop())
        if self.current == self.end:
            raise FrameAllocationError("out of physical frames")
        self.current += 1
        return PhysPageNum(self.current - 1)

    def alloc_more(self, pages: int) -> list[PhysPageNum]:
        """Take ``pages`` fresh contiguous frames, highest first."""
        if pages < 0:
            raise ValueError("page count must not be negative")
        if self.current + pages >= self.end:
            raise FrameAllocationError(f"cannot allocate {pages} contiguous frames")
        self.current += pages
        return [PhysPageNum(self.current - x) for x in range(1, pages + 1)]

    def dealloc(self, ppn: PhysPageNum) -> None:
        """Return a frame to the allocator."""
        value = int(ppn)
        if value >= self.current or value in self.recycled:
            raise FrameAllocationError(f"Frame ppn={value:#x} has not been allocated!")
        self.recycled.append(value)