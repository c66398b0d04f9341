"""First-fit allocator with an explicit LIFO list of free blocks."""

from __future__ import annotations

from collections.abc import Iterator

from syslabs.allocator import CHUNKSIZE, DSIZE, WSIZE, Allocator, adjusted_size, pack
from syslabs.memlib import SimulatedMemory


class ExplicitListAllocator(Allocator):
    """Keeps free blocks in a doubly linked list stored in their payloads.

    The first payload word of a free block links to the previous free block,
    the second to the next; 0 ends the list.
    """

    def __init__(self, memory: SimulatedMemory) -> None:
        super().__init__(memory)
        self._heap_list = 0
        self._root = 0

    def init(self) -> None:
        """Write the list root, prologue and epilogue, then add a free chunk."""
        start = self.memory.sbrk(6 * WSIZE)
        self._put(start, 0)
        self._put(start + WSIZE, 0)
        self._put(start + 2 * WSIZE, 0)
        self._put(start + 3 * WSIZE, pack(DSIZE, 1))
        self._put(start + 4 * WSIZE, pack(DSIZE, 1))
        self._put(start + 5 * WSIZE, pack(0, 1))
        self._root = start + WSIZE
        self._heap_list = start + 4 * WSIZE
        self._extend_heap(CHUNKSIZE // DSIZE)

    def malloc(self, size: int) -> int | None:
        """Allocate ``size`` bytes from the first free block that fits."""
        if size == 0:
            return None
        asize = adjusted_size(size)
        bp = self._find_fit(asize)
        if bp is None:
            bp = self._extend_heap(max(asize, CHUNKSIZE) // DSIZE)
        self._place(bp, asize)
        return bp

    def free(self, ptr: int | None) -> None:
        """Mark the block free, merge it and push it on the free list."""
        if ptr is None:
            return
        self._set_tags(ptr, self._block_size(ptr), 0)
        self._put(self._next_node(ptr), 0)
        self._put(ptr, 0)
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

    def free_block_count(self) -> int:
        """Number of blocks currently on the free list."""
        return sum(1 for _ in self._free_blocks())

    def _free_blocks(self) -> Iterator[int]:
        bp = self._get(self._root)
        while bp:
            yield bp
            bp = self._get(self._next_node(bp))

    @staticmethod
    def _next_node(bp: int) -> int:
        return bp + WSIZE

    def _extend_heap(self, words: int) -> int:
        size = (words + 1) * DSIZE if words % 2 else words * DSIZE
        bp = self.memory.sbrk(size)
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
        self._push(bp)
        return bp

    def _find_fit(self, asize: int) -> int | None:
        return next(
            (bp for bp in self._free_blocks() if self._block_size(bp) >= asize),
            None,
        )

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

    def _push(self, bp: int) -> None:
        head = self._get(self._root)
        if head:
            self._put(head, bp)
        self._put(self._next_node(bp), head)
        self._put(self._root, bp)

    def _unlink(self, bp: int) -> None:
        prev = self._get(bp)
        nxt = self._get(self._next_node(bp))
        if prev == 0:
            if nxt:
                self._put(nxt, 0)
            self._put(self._root, nxt)
        else:
            if nxt:
                self._put(nxt, prev)
            self._put(self._next_node(prev), nxt)
        self._put(bp, 0)
        self._put(self._next_node(bp), 0)