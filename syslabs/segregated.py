"""Allocator with segregated free lists, one per size class."""

from __future__ import annotations

from collections.abc import Iterator

from syslabs.allocator import CHUNKSIZE, DSIZE, WSIZE, Allocator, adjusted_size, pack
from syslabs.memlib import SimulatedMemory

_CLASS_LIMITS = (8, 16, 32, 64, 128, 256, 512, 2048, 4096)
NUM_CLASSES = len(_CLASS_LIMITS) + 1


def size_class(size: int) -> int:
    """Index of the free list that holds blocks of ``size`` bytes."""
    for index, limit in enumerate(_CLASS_LIMITS):
        if size <= limit:
            return index
    return NUM_CLASSES - 1


class SegregatedListAllocator(Allocator):
    """Keeps free blocks in size-class lists, each sorted by block size.

    The list heads live at the very start of the heap.  Within a free block
    the first payload word links to the previous free block of the same
    class and the second to the next; 0 ends a list.
    """

    def __init__(self, memory: SimulatedMemory) -> None:
        super().__init__(memory)
        self._heap_list = 0
        self._bins = 0

    def init(self) -> None:
        """Write the list heads, prologue and epilogue, then add a free chunk."""
        start = self.memory.sbrk(14 * WSIZE)
        for word in range(NUM_CLASSES + 1):
            self._put(start + word * WSIZE, 0)
        self._put(start + 11 * WSIZE, pack(DSIZE, 1))
        self._put(start + 12 * WSIZE, pack(DSIZE, 1))
        self._put(start + 13 * WSIZE, pack(0, 1))
        self._bins = start
        self._heap_list = start + 12 * WSIZE
        self._extend_heap(CHUNKSIZE // DSIZE)

    def malloc(self, size: int) -> int | None:
        """Allocate ``size`` bytes from the smallest suitable size class."""
        if size == 0:
            return None
        asize = adjusted_size(size)
        bp = self._find_fit(asize)
        if bp is None:
            bp = self._extend_heap(max(asize, CHUNKSIZE) // DSIZE)
        self._place(bp, asize)
        return bp

    def free(self, ptr: int | None) -> None:
        """Mark the block free, merge it and file it in its size class."""
        if ptr is None:
            return
        self._set_tags(ptr, self._block_size(ptr), 0)
        self._put(self._next_node(ptr), 0)
        self._put(ptr, 0)
        self._coalesce(ptr)

    def realloc(self, ptr: int | None, size: int) -> int | None:
        """Resize the block at ``ptr``, keeping it when the block size matches."""
        if size == 0:
            self.free(ptr)
            return None
        if ptr is None:
            return self.malloc(size)
        if self._block_size(ptr) == adjusted_size(size):
            return ptr
        return super().realloc(ptr, size)

    @staticmethod
    def _next_node(bp: int) -> int:
        return bp + WSIZE

    def _bin(self, size: int) -> int:
        return self._bins + size_class(size) * WSIZE

    def _class_blocks(self, index: int) -> Iterator[int]:
        bp = self._get(self._bins + index * WSIZE)
        while bp:
            yield bp
            bp = self._get(self._next_node(bp))

    def _extend_heap(self, words: int) -> int:
        size = (words + 1) * DSIZE if words % 2 else words * DSIZE
        bp = self.memory.sbrk(size)
        # The old epilogue becomes the header of the new block.
        self._set_tags(bp, size, 0)
        self._put(self._next_node(bp), 0)
        self._put(bp, 0)
        self._put(self._hdrp(self._next_blkp(bp)), pack(0, 1))
        return self._coalesce(bp)

    def _coalesce(self, bp: int) -> int:
        prev_alloc = self._tag_alloc(self._ftrp(self._prev_blkp(bp)))
        next_alloc = self._tag_alloc(self._hdrp(self._next_blkp(bp)))
        size = self._block_size(bp)

        if prev_alloc and next_alloc:
            pass
        elif prev_alloc:
            size += self._block_size(self._next_blkp(bp))
            self._unlink(self._next_blkp(bp))
            self._put(self._hdrp(bp), pack(size, 0))
            self._put(self._ftrp(bp), pack(size, 0))
        elif next_alloc:
            size += self._block_size(self._prev_blkp(bp))
            self._unlink(self._prev_blkp(bp))
            self._put(self._ftrp(bp), pack(size, 0))
            self._put(self._hdrp(self._prev_blkp(bp)), pack(size, 0))
            bp = self._prev_blkp(bp)
        else:
            next_bp = self._next_blkp(bp)
            size += self._tag_size(self._ftrp(next_bp)) + self._block_size(
                self._prev_blkp(bp)
            )
            self._unlink(self._prev_blkp(bp))
            self._unlink(next_bp)
            self._put(self._ftrp(next_bp), pack(size, 0))
            self._put(self._hdrp(self._prev_blkp(bp)), pack(size, 0))
            bp = self._prev_blkp(bp)
        self._insert(bp)
        return bp

    def _find_fit(self, asize: int) -> int | None:
        for index in range(size_class(asize), NUM_CLASSES):
            for bp in self._class_blocks(index):
                if self._block_size(bp) >= asize:
                    return bp
        return None

    def _place(self, bp: int, asize: int) -> None:
        csize = self._block_size(bp)
        self._unlink(bp)
        if csize - asize >= 2 * DSIZE:
            self._set_tags(bp, asize, 1)
            rest = self._next_blkp(bp)
            self._set_tags(rest, csize - asize, 0)
            self._put(self._next_node(rest), 0)
            self._put(rest, 0)
            self._coalesce(rest)
        else:
            self._set_tags(bp, csize, 1)

    def _insert(self, bp: int) -> None:
        size = self._block_size(bp)
        head = self._bin(size)
        prev = 0
        nxt = self._get(head)
        while nxt and self._block_size(nxt) < size:
            prev = nxt
            nxt = self._get(self._next_node(nxt))
        if prev == 0:
            self._put(head, bp)
        else:
            self._put(self._next_node(prev), bp)
        self._put(bp, prev)
        self._put(self._next_node(bp), nxt)
        if nxt:
            self._put(nxt, bp)

    def _unlink(self, bp: int) -> None:
        head = self._bin(self._block_size(bp))
        prev = self._get(bp)
        nxt = self._get(self._next_node(bp))
        if prev == 0:
            if nxt:
                self._put(nxt, 0)
            self._put(head, nxt)
        else:
            if nxt:
                self._put(nxt, prev)
            self._put(self._next_node(prev), nxt)
        self._put(bp, 0)
        self._put(self._next_node(bp), 0)