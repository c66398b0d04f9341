import random

import pytest

from syslabs.memlib import MemoryExhausted, SimulatedMemory
from syslabs.segregated import SegregatedListAllocator, size_class


@pytest.fixture
def allocator():
    alloc = SegregatedListAllocator(SimulatedMemory())
    alloc.init()
    return alloc


@pytest.mark.parametrize(
    "size, expected",
    [
        (1, 0),
        (8, 0),
        (9, 1),
        (16, 1),
        (17, 2),
        (32, 2),
        (64, 3),
        (128, 4),
        (256, 5),
        (512, 6),
        (513, 7),
        (2048, 7),
        (2049, 8),
        (4096, 8),
        (4097, 9),
    ],
)
def test_size_class(size, expected):
    assert size_class(size) == expected


def test_malloc_zero_returns_none(allocator):
    assert allocator.malloc(0) is None


def test_malloc_is_aligned_and_inside_heap(allocator):
    mem = allocator.memory
    for size in (1, 7, 8, 9, 100, 1000, 5000):
        p = allocator.malloc(size)
        assert p % 8 == 0
        assert mem.heap_lo() <= p
        assert p + size - 1 <= mem.heap_hi()


def test_allocations_do_not_overlap(allocator):
    sizes = [3, 24, 100, 17, 600, 9, 2100, 50]
    ranges = sorted((allocator.malloc(s), s) for s in sizes)
    for (lo1, s1), (lo2, _) in zip(ranges, ranges[1:]):
        assert lo1 + s1 <= lo2


def test_free_then_malloc_reuses_block(allocator):
    p = allocator.malloc(40)
    allocator.malloc(40)
    allocator.free(p)
    assert allocator.malloc(40) == p


def test_free_none_is_ignored(allocator):
    before = allocator.memory.heapsize()
    allocator.free(None)
    p = allocator.malloc(16)
    assert allocator.memory.heapsize() == before
    assert p % 8 == 0


def test_freed_neighbours_coalesce(allocator):
    heap = allocator.memory.heapsize()
    a = allocator.malloc(1000)
    b = allocator.malloc(1000)
    c = allocator.malloc(1000)
    allocator.free(b)
    allocator.free(a)
    allocator.free(c)
    big = allocator.malloc(3000)
    assert big == a
    assert allocator.memory.heapsize() == heap


def test_repeated_small_cycles_do_not_grow_heap(allocator):
    heap = allocator.memory.heapsize()
    for _ in range(200):
        blocks = [allocator.malloc(n) for n in (8, 24, 72, 130)]
        for p in reversed(blocks):
            allocator.free(p)
    assert allocator.memory.heapsize() == heap


def test_large_request_grows_heap(allocator):
    heap = allocator.memory.heapsize()
    p = allocator.malloc(10000)
    assert allocator.memory.heapsize() > heap
    assert p + 10000 - 1 <= allocator.memory.heap_hi()


def test_realloc_grow_preserves_data(allocator):
    mem = allocator.memory
    p = allocator.malloc(20)
    mem.write(p, bytes(range(20)))
    allocator.malloc(20)
    q = allocator.realloc(p, 300)
    assert mem.read(q, 20) == bytes(range(20))


def test_realloc_shrink_preserves_prefix(allocator):
    mem = allocator.memory
    p = allocator.malloc(200)
    data = bytes(i % 251 for i in range(200))
    mem.write(p, data)
    q = allocator.realloc(p, 50)
    assert mem.read(q, 50) == data[:50]


def test_realloc_same_block_size_keeps_pointer(allocator):
    p = allocator.malloc(10)
    assert allocator.realloc(p, 16) == p


def test_realloc_none_allocates(allocator):
    p = allocator.realloc(None, 32)
    assert p % 8 == 0
    assert allocator.memory.heap_lo() <= p <= allocator.memory.heap_hi()


def test_realloc_zero_frees(allocator):
    p = allocator.malloc(64)
    assert allocator.realloc(p, 0) is None
    assert allocator.malloc(64) == p


def test_exhaustion_raises():
    alloc = SegregatedListAllocator(SimulatedMemory(max_heap=8192))
    alloc.init()
    with pytest.raises(MemoryExhausted):
        alloc.malloc(100000)