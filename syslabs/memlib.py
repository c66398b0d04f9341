"""A simulated memory system with a single growable heap.

The heap lives inside a byte buffer and is addressed with plain integers
starting at ``base``.  Address 0 is never part of the heap, so it can serve
as the null pointer inside heap words.
"""

from __future__ import annotations

import mmap

MAX_HEAP = 20 * (1 << 20)
DEFAULT_BASE = 0x10000000
WORD_SIZE = 4


class MemoryExhausted(MemoryError):
    """Raised when the simulated heap cannot be grown as requested."""


class SimulatedMemory:
    """A model of a process heap that grows through :meth:`sbrk`."""

    def __init__(self, max_heap: int = MAX_HEAP, base: int = DEFAULT_BASE) -> None:
        if max_heap < 0:
            raise ValueError("max_heap must not be negative")
        if base <= 0 or base % 8:
            raise ValueError("base must be a positive multiple of 8")
        if base + max_heap > 0xFFFFFFFF:
            raise ValueError("heap addresses must fit in a 32-bit word")
        self.max_heap = max_heap
        self.base = base
        self._data = bytearray()
        self._brk = 0

    def sbrk(self, incr: int) -> int:
        """Extend the heap by ``incr`` bytes and return the old break address."""
        if incr < 0 or self._brk + incr > self.max_heap:
            raise MemoryExhausted("mem_sbrk failed. Ran out of memory...")
        old_brk = self.base + self._brk
        self._brk += incr
        if len(self._data) < self._brk:
            self._data.extend(bytes(self._brk - len(self._data)))
        return old_brk

    def reset_brk(self) -> None:
        """Make the heap empty again."""
        self._brk = 0

    def heap_lo(self) -> int:
        """Address of the first heap byte."""
        return self.base

    def heap_hi(self) -> int:
        """Address of the last heap byte."""
        return self.base + self._brk - 1

    def heapsize(self) -> int:
        """Current heap size in bytes."""
        return self._brk

    def pagesize(self) -> int:
        """Page size of the host system."""
        return mmap.PAGESIZE

    def _offset(self, addr: int, size: int) -> int:
        offset = addr - self.base
        if size < 0 or offset < 0 or offset + size > self._brk:
            raise IndexError(
                f"access of {size} bytes at {addr:#x} lies outside the heap"
            )
        return offset

    def get_word(self, addr: int) -> int:
        """Read the unsigned 32-bit little-endian word at ``addr``."""
        offset = self._offset(addr, WORD_SIZE)
        return int.from_bytes(self._data[offset:offset + WORD_SIZE], "little")

    def put_word(self, addr: int, value: int) -> None:
        """Store ``value`` as an unsigned 32-bit little-endian word at ``addr``."""
        offset = self._offset(addr, WORD_SIZE)
        self._data[offset:offset + WORD_SIZE] = (value & 0xFFFFFFFF).to_bytes(
            WORD_SIZE, "little"
        )

    def read(self, addr: int, size: int) -> bytes:
        """Return ``size`` bytes starting at ``addr``."""
        offset = self._offset(addr, size)
        return bytes(self._data[offset:offset + size])

    def write(self, addr: int, data: bytes) -> None:
        """Copy ``data`` into the heap starting at ``addr``."""
        offset = self._offset(addr, len(data))
        self._data[offset:offset + len(data)] = data

    def fill(self, addr: int, value: int, size: int) -> None:
        """Set ``size`` bytes starting at ``addr`` to the low byte of ``value``."""
        offset = self._offset(addr, size)
        self._data[offset:offset + size] = bytes([value & 0xFF]) * size