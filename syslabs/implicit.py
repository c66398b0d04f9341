"""First-fit allocator over an implicit list of boundary-tagged blocks."""

from __future__ import annotations

from syslabs.allocator import CHUNKSIZE, DSIZE, WSIZE, Allocator, adjusted_size, pack
from syslabs.memlib import SimulatedMemory


class ImplicitListAllocator(Allocator):
    """Walks every block in address order to find a free one that fits."""

    def __init__(self, memory: SimulatedMemory) -> None:
        super().__init__(memory)
        self._heap_list = 0

    def init(self) -> None:
        """Write the prologue and epilogue, then add a first free chunk."""
        start = self.memory.sbrk(4 * WSIZE)
        self._put(start, 0)
        self._put(start + WSIZE, pack(DSIZE, 1))
        self._put(start + 2 * WSIZE, pack(DSIZE, 1))
        self._put(start + 3 * WSIZE, pack(0, 1))
        self._heap_list = start + 2 * WSIZE
        self._extend_heap(CHUNKSIZE // WSIZE)

    def malloc(self, size: int) -> int | None:
        """Allocate ``size`` bytes, growing the heap when nothing fits."""
        if size == 0:
            return None
        asize = adjusted_size(size)
        bp = self._find_fit(asize)
        if bp is None:
            bp = self._extend_heap(max(asize, CHUNKSIZE) // WSIZE)
        self._place(bp, asize)
        return bp

    def free(self, ptr: int | None) -> None:
        """Mark the block free and merge it with free neighbours."""
        if ptr is None:
            return
        self._set_tags(ptr, self._block_size(ptr), 0)
        self._coalesce(ptr)

    def realloc(self, ptr: int | None, size: int) -> int | None:
        """Move the block to a new one of ``size`` bytes, keeping its data."""
        if size == 0:
            self.free(ptr)
            return None
        if ptr is None:
            return self.malloc(size)
        newptr = self.malloc(size)
        if newptr is None:
            return None
        keep = min(size, self._block_size(ptr))
        self.memory.write(newptr, self.memory.read(ptr, keep))
        self.free(ptr)
        return newptr

    def _extend_heap(self, words: int) -> int:
        size = (words + 1) * WSIZE if words % 2 else words * WSIZE
        bp = self.memory.sbrk(size)
        # The old epilogue becomes the header of the new block.
        self._set_tags(bp, size, 0)
        self._put(self._hdrp(self._next_blkp(bp)), pack(0, 1))
        return self._coalesce(bp)

    def _coalesce(self, bp: int) -> int:
        prev_alloc = self._tag_alloc(self._ftrp(self._prev_blkp(bp)))
        next_alloc = self._tag_alloc(self._hdrp(self._next_blkp(bp)))
        size = self._block_size(bp)

        if prev_alloc and next_alloc:
            return bp
        if prev_alloc:
            size += self._block_size(self._next_blkp(bp))
            self._put(self._hdrp(bp), pack(size, 0))
            self._put(self._ftrp(bp), pack(size, 0))
        elif next_alloc:
            size += self._block_size(self._prev_blkp(bp))
            self._put(self._ftrp(bp), pack(size, 0))
            self._put(self._hdrp(self._prev_blkp(bp)), pack(size, 0))
            bp = self._prev_blkp(bp)
        else:
            next_bp = self._next_blkp(bp)
            size += self._tag_size(self._ftrp(next_bp)) + self._block_size(
                self._prev_blkp(bp)
            )
            self._put(self._ftrp(next_bp), pack(size, 0))
            self._put(self._hdrp(self._prev_blkp(bp)), pack(size, 0))
            bp = self._prev_blkp(bp)
        return bp

    def _find_fit(self, asize: int) -> int | None:
        bp = self._heap_list
        while (size := self._block_size(bp)) > 0:
            if not self._tag_alloc(self._hdrp(bp)) and asize <= size:
                return bp
            bp = self._next_blkp(bp)
        return None

    def _place(self, bp: int, asize: int) -> None:
        csize = self._block_size(bp)
        if csize - asize >= 2 * DSIZE:
            self._set_tags(bp, asize, 1)
            rest = self._next_blkp(bp)
            self._set_tags(rest, csize - asize, 0)
        else:
            self._set_tags(bp, csize, 1)