import pytest

from syslabs.trace import (
    OpType,
    RangeError,
    RangeList,
    Trace,
    TraceFormatError,
    TraceOp,
    read_trace,
)

HEAP_LO = 0x1000
HEAP_HI = 0x1FFF


def _write(tmp_path, text, name="t.rep"):
    path = tmp_path / name
    path.write_text(text)
    return path


def test_read_trace_parses_header_and_ops(tmp_path):
    path = _write(
        tmp_path,
        "20000\n2\n5\n1\na 0 512\na 1 128\nr 0 640\nf 1\nf 0\n",
    )
    trace = read_trace(path)
    assert (trace.sugg_heapsize, trace.num_ids, trace.num_ops, trace.weight) == (
        20000,
        2,
        5,
        1,
    )
    assert trace.ops == [
        TraceOp(OpType.ALLOC, 0, 512),
        TraceOp(OpType.ALLOC, 1, 128),
        TraceOp(OpType.REALLOC, 0, 640),
        TraceOp(OpType.FREE, 1),
        TraceOp(OpType.FREE, 0),
    ]


def test_read_trace_accepts_string_path_and_sizes_block_tables(tmp_path):
    path = _write(tmp_path, "0 3 3 1 a 0 1 a 1 2 a 2 3")
    trace = read_trace(str(path))
    assert len(trace.blocks) == trace.num_ids
    assert len(trace.block_sizes) == trace.num_ids
    assert all(block is None for block in trace.blocks)


def test_trace_constructed_directly_has_block_tables():
    trace = Trace(0, 2, 1, 1, [TraceOp(OpType.ALLOC, 1, 8)])
    assert trace.blocks == [None, None]
    assert trace.block_sizes == [0, 0]


def test_read_trace_bogus_type(tmp_path):
    path = _write(tmp_path, "0 1 1 1 x 0 8")
    with pytest.raises(TraceFormatError, match="Bogus type character"):
        read_trace(path)


def test_read_trace_op_count_mismatch(tmp_path):
    path = _write(tmp_path, "0 1 3 1 a 0 8 f 0")
    with pytest.raises(TraceFormatError):
        read_trace(path)


def test_read_trace_id_count_mismatch(tmp_path):
    path = _write(tmp_path, "0 3 2 1 a 0 8 f 0")
    with pytest.raises(TraceFormatError):
        read_trace(path)


def test_read_trace_truncated_request(tmp_path):
    path = _write(tmp_path, "0 1 1 1 a 0")
    with pytest.raises(TraceFormatError):
        read_trace(path)


def test_read_trace_truncated_header(tmp_path):
    path = _write(tmp_path, "0 1")
    with pytest.raises(TraceFormatError):
        read_trace(path)


def test_read_trace_non_numeric(tmp_path):
    path = _write(tmp_path, "0 1 1 1 a zero 8")
    with pytest.raises(TraceFormatError):
        read_trace(path)


def test_read_trace_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        read_trace(tmp_path / "absent.rep")


def test_range_add_records_extent():
    ranges = RangeList()
    extent = ranges.add(HEAP_LO + 8, 16, HEAP_LO, HEAP_HI, 8)
    assert (extent.lo, extent.hi) == (HEAP_LO + 8, HEAP_LO + 8 + 16 - 1)
    assert list(ranges) == [extent]


def test_range_newest_first():
    ranges = RangeList()
    first = ranges.add(HEAP_LO, 8, HEAP_LO, HEAP_HI, 8)
    second = ranges.add(HEAP_LO + 64, 8, HEAP_LO, HEAP_HI, 8)
    assert list(ranges) == [second, first]


def test_range_misaligned():
    ranges = RangeList()
    with pytest.raises(RangeError, match="not aligned to 8 bytes"):
        ranges.add(HEAP_LO + 4, 8, HEAP_LO, HEAP_HI, 8)
    assert len(ranges) == 0


@pytest.mark.parametrize(
    "lo,size",
    [(HEAP_LO - 8, 8), (HEAP_HI - 7, 16), (HEAP_HI + 1, 8)],
)
def test_range_outside_heap(lo, size):
    ranges = RangeList()
    with pytest.raises(RangeError, match="lies outside heap"):
        ranges.add(lo, size, HEAP_LO, HEAP_HI, 8)


def test_range_overlap():
    ranges = RangeList()
    ranges.add(HEAP_LO, 32, HEAP_LO, HEAP_HI, 8)
    with pytest.raises(RangeError, match="overlaps another payload"):
        ranges.add(HEAP_LO + 16, 32, HEAP_LO, HEAP_HI, 8)
    assert len(ranges) == 1


def test_range_nonpositive_size():
    with pytest.raises(ValueError):
        RangeList().add(HEAP_LO, 0, HEAP_LO, HEAP_HI, 8)


def test_range_remove_allows_reuse():
    ranges = RangeList()
    ranges.add(HEAP_LO, 32, HEAP_LO, HEAP_HI, 8)
    ranges.remove(HEAP_LO)
    assert len(ranges) == 0
    ranges.add(HEAP_LO, 32, HEAP_LO, HEAP_HI, 8)
    assert len(ranges) == 1


def test_range_remove_unknown_is_ignored():
    ranges = RangeList()
    ranges.add(HEAP_LO, 8, HEAP_LO, HEAP_HI, 8)
    ranges.remove(HEAP_LO + 64)
    assert [extent.lo for extent in ranges] == [HEAP_LO]


def test_range_clear():
    ranges = RangeList()
    ranges.add(HEAP_LO, 8, HEAP_LO, HEAP_HI, 8)
    ranges.add(HEAP_LO + 16, 8, HEAP_LO, HEAP_HI, 8)
    ranges.clear()
    assert list(ranges) == []