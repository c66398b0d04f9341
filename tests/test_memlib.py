import mmap

import pytest

from syslabs.memlib import MemoryExhausted, SimulatedMemory


def test_sbrk_returns_old_break_and_grows_heap():
    mem = SimulatedMemory(max_heap=1024, base=0x1000)
    assert mem.sbrk(16) == 0x1000
    assert mem.sbrk(32) == 0x1000 + 16
    assert mem.heapsize() == 48
    assert mem.heap_lo() == 0x1000
    assert mem.heap_hi() == 0x1000 + 48 - 1


def test_sbrk_negative_raises():
    mem = SimulatedMemory(max_heap=1024, base=0x1000)
    with pytest.raises(MemoryExhausted):
        mem.sbrk(-8)


def test_sbrk_past_limit_raises_and_keeps_heap():
    mem = SimulatedMemory(max_heap=64, base=0x1000)
    mem.sbrk(64)
    with pytest.raises(MemoryExhausted):
        mem.sbrk(1)
    assert mem.heapsize() == 64


def test_memory_exhausted_is_memory_error():
    mem = SimulatedMemory(max_heap=0, base=0x1000)
    with pytest.raises(MemoryError):
        mem.sbrk(1)


def test_reset_brk_empties_heap():
    mem = SimulatedMemory(max_heap=1024, base=0x1000)
    mem.sbrk(100)
    mem.reset_brk()
    assert mem.heapsize() == 0
    assert mem.sbrk(8) == mem.heap_lo()


def test_pagesize_matches_host():
    assert SimulatedMemory().pagesize() == mmap.PAGESIZE


def test_word_round_trip_is_little_endian():
    mem = SimulatedMemory(max_heap=64, base=0x1000)
    mem.sbrk(8)
    mem.put_word(0x1000, 0x11223344)
    assert mem.get_word(0x1000) == 0x11223344
    assert mem.read(0x1000, 4) == bytes([0x44, 0x33, 0x22, 0x11])


def test_put_word_truncates_to_32_bits():
    mem = SimulatedMemory(max_heap=64, base=0x1000)
    mem.sbrk(4)
    mem.put_word(0x1000, (1 << 32) + 7)
    assert mem.get_word(0x1000) == 7


def test_access_outside_heap_raises():
    mem = SimulatedMemory(max_heap=64, base=0x1000)
    mem.sbrk(8)
    with pytest.raises(IndexError):
        mem.get_word(0x1000 + 6)
    with pytest.raises(IndexError):
        mem.put_word(0x1000 - 4, 1)
    with pytest.raises(IndexError):
        mem.read(0x1000, 9)


def test_write_and_fill_round_trip():
    mem = SimulatedMemory(max_heap=64, base=0x1000)
    mem.sbrk(16)
    mem.write(0x1000, b"abcdef")
    assert mem.read(0x1000, 6) == b"abcdef"
    mem.fill(0x1002, 0x1FF, 3)
    assert mem.read(0x1000, 6) == b"ab\xff\xff\xfff"


def test_data_survives_reset_and_regrow():
    mem = SimulatedMemory(max_heap=64, base=0x1000)
    mem.sbrk(8)
    mem.write(0x1000, b"xyz")
    mem.reset_brk()
    mem.sbrk(8)
    assert mem.read(0x1000, 3) == b"xyz"


@pytest.mark.parametrize("base", [0, -8, 0x1001])
def test_invalid_base_rejected(base):
    with pytest.raises(ValueError):
        SimulatedMemory(max_heap=64, base=base)