"""Sv39 physical and virtual addresses, page numbers and page ranges."""

from __future__ import annotations

from functools import total_ordering
from typing import Iterator

PAGE_SIZE = 0x1000
PAGE_SIZE_BITS = 12

PA_WIDTH_SV39 = 56
VA_WIDTH_SV39 = 39
PPN_WIDTH_SV39 = PA_WIDTH_SV39 - PAGE_SIZE_BITS
VPN_WIDTH_SV39 = VA_WIDTH_SV39 - PAGE_SIZE_BITS

_USIZE_MASK = (1 << 64) - 1
_INDEX_BITS = 9
_INDEX_MASK = (1 << _INDEX_BITS) - 1


@total_ordering
class _Number:
    """An integer truncated to a fixed bit width, ordered within its own kind."""

    __slots__ = ("value",)
    _WIDTH = 64
    _PREFIX = ""

    def __init__(self, value: int) -> None:
        self.value = int(value) & ((1 << self._WIDTH) - 1)

    def __int__(self) -> int:
        return self.value

    def __eq__(self, other: object) -> bool:
        if type(other) is not type(self):
            return NotImplemented
        return self.value == other.value

    def __lt__(self, other: object) -> bool:
        if type(other) is not type(self):
            return NotImplemented
        return self.value < other.value

    def __hash__(self) -> int:
        return hash((type(self).__name__, self.value))

    def __repr__(self) -> str:
        return f"{self._PREFIX}:{self.value:#x}"


class _PageNumber(_Number):
    __slots__ = ()

    def __add__(self, steps: int):
        if not isinstance(steps, int):
            return NotImplemented
        return type(self)(self.value + steps)


def _page_offset(value: int) -> int:
    return value & (PAGE_SIZE - 1)


def _ceil_pages(value: int) -> int:
    return -(-value // PAGE_SIZE)


class PhysPageNum(_PageNumber):
    """A physical page number (44 bits in Sv39)."""

    __slots__ = ()
    _WIDTH = PPN_WIDTH_SV39
    _PREFIX = "PPN"

    def __init__(self, value: int) -> None:
        super().__init__(value)

    def addr(self) -> "PhysAddr":
        """The physical address of the start of the page."""
        return PhysAddr(self.value << PAGE_SIZE_BITS)

    @classmethod
    def from_addr(cls, addr: "PhysAddr") -> "PhysPageNum":
        """The page starting at ``addr``; the address must be page aligned."""
        if not addr.aligned():
            raise ValueError(f"{addr!r} is not page aligned")
        return addr.floor()


class VirtPageNum(_PageNumber):
    """A virtual page number (27 bits in Sv39)."""

    __slots__ = ()
    _WIDTH = VPN_WIDTH_SV39
    _PREFIX = "VPN"

    def __init__(self, value: int) -> None:
        super().__init__(value)

    def addr(self) -> "VirtAddr":
        """The virtual address of the start of the page."""
        return VirtAddr(self.value << PAGE_SIZE_BITS)

    def indexes(self) -> tuple[int, int, int]:
        """The three 9-bit page-table indexes, top level first."""
        vpn = self.value
        return (
            (vpn >> (2 * _INDEX_BITS)) & _INDEX_MASK,
            (vpn >> _INDEX_BITS) & _INDEX_MASK,
            vpn & _INDEX_MASK,
        )

    @classmethod
    def from_addr(cls, addr: "VirtAddr") -> "VirtPageNum":
        """The page starting at ``addr``; the address must be page aligned."""
        if not addr.aligned():
            raise ValueError(f"{addr!r} is not page aligned")
        return addr.floor()


class PhysAddr(_Number):
    """A physical address (56 bits in Sv39)."""

    __slots__ = ()
    _WIDTH = PA_WIDTH_SV39
    _PREFIX = "PA"

    def __init__(self, value: int) -> None:
        super().__init__(value)

    def floor(self) -> PhysPageNum:
        """The page containing this address."""
        return PhysPageNum(self.value // PAGE_SIZE)

    def ceil(self) -> PhysPageNum:
        """The first page starting at or after this address."""
        return PhysPageNum(_ceil_pages(self.value))

    def page_offset(self) -> int:
        """Offset of the address within its page."""
        return _page_offset(self.value)

    def aligned(self) -> bool:
        """True if the address is at the start of a page."""
        return self.page_offset() == 0


class VirtAddr(_Number):
    """A virtual address (39 bits in Sv39)."""

    __slots__ = ()
    _WIDTH = VA_WIDTH_SV39
    _PREFIX = "VA"

    def __init__(self, value: int) -> None:
        super().__init__(value)

    def floor(self) -> VirtPageNum:
        """The page containing this address."""
        return VirtPageNum(self.value // PAGE_SIZE)

    def ceil(self) -> VirtPageNum:
        """The first page starting at or after this address."""
        return VirtPageNum(_ceil_pages(self.value))

    def page_offset(self) -> int:
        """Offset of the address within its page."""
        return _page_offset(self.value)

    def aligned(self) -> bool:
        """True if the address is at the start of a page."""
        return self.page_offset() == 0

    def __int__(self) -> int:
        """The address as a 64-bit value, sign-extended from bit 38."""
        if self.value >= 1 << (VA_WIDTH_SV39 - 1):
            return self.value | (~((1 << VA_WIDTH_SV39) - 1) & _USIZE_MASK)
        return self.value


class VPNRange:
    """A half-open range of virtual page numbers."""

    __slots__ = ("start", "end")

    def __init__(self, start: VirtPageNum, end: VirtPageNum) -> None:
        if start > end:
            raise ValueError(f"start {start!r} > end {end!r}!")
        self.start = start
        self.end = end

    def __iter__(self) -> Iterator[VirtPageNum]:
        return (VirtPageNum(v) for v in range(self.start.value, self.end.value))

    def __len__(self) -> int:
        return self.end.value - self.start.value

    def __contains__(self, vpn: object) -> bool:
        return isinstance(vpn, VirtPageNum) and self.start <= vpn < self.end

    def __repr__(self) -> str:
        return f"VPNRange({self.start!r}, {self.end!r})"