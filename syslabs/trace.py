"""Allocator trace files and the bookkeeping used to check allocated payloads."""

from __future__ import annotations

import enum
import os
from collections.abc import Iterator
from dataclasses import dataclass, field

HEADER_FIELDS = 4


class OpType(enum.Enum):
    """Kind of allocator request in a trace."""

    ALLOC = "a"
    FREE = "f"
    REALLOC = "r"


@dataclass(frozen=True)
class TraceOp:
    """One allocator request: its kind, block id and byte size."""

    type: OpType
    index: int
    size: int = 0


@dataclass
class Trace:
    """A parsed trace file plus the per-block state used while replaying it."""

    sugg_heapsize: int
    num_ids: int
    num_ops: int
    weight: int
    ops: list[TraceOp]
    blocks: list[int | None] = field(init=False, repr=False)
    block_sizes: list[int] = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self.blocks = [None] * max(self.num_ids, 0)
        self.block_sizes = [0] * max(self.num_ids, 0)


class TraceFormatError(ValueError):
    """Raised when a trace file does not follow the trace format."""


class RangeError(ValueError):
    """Raised when a payload returned by an allocator is not acceptable."""


@dataclass(frozen=True)
class Range:
    """Inclusive extent of one allocated payload."""

    lo: int
    hi: int


class RangeList:
    """The extents of all currently allocated payloads, newest first."""

    def __init__(self) -> None:
        self._ranges: list[Range] = []

    def __iter__(self) -> Iterator[Range]:
        return iter(self._ranges)

    def __len__(self) -> int:
        return len(self._ranges)

    def add(
        self, lo: int, size: int, heap_lo: int, heap_hi: int, alignment: int
    ) -> Range:
        """Check a new payload of ``size`` bytes at ``lo`` and remember it."""
        if size <= 0:
            raise ValueError("size must be positive")
        hi = lo + size - 1

        if lo % alignment:
            raise RangeError(
                f"Payload address ({lo:#x}) not aligned to {alignment} bytes"
            )

        if not (heap_lo <= lo <= heap_hi and heap_lo <= hi <= heap_hi):
            raise RangeError(
                f"Payload ({lo:#x}:{hi:#x}) lies outside heap "
                f"({heap_lo:#x}:{heap_hi:#x})"
            )

        for other in self._ranges:
            if other.lo <= lo <= other.hi or other.lo <= hi <= other.hi:
                raise RangeError(
                    f"Payload ({lo:#x}:{hi:#x}) overlaps another payload "
                    f"({other.lo:#x}:{other.hi:#x})"
                )

        extent = Range(lo, hi)
        self._ranges.insert(0, extent)
        return extent

    def remove(self, lo: int) -> None:
        """Forget the payload that starts at ``lo``, if there is one."""
        for position, extent in enumerate(self._ranges):
            if extent.lo == lo:
                del self._ranges[position]
                return

    def clear(self) -> None:
        """Forget every payload."""
        self._ranges.clear()


def _parse_int(token: str, what: str, path: str, unsigned: bool = False) -> int:
    try:
        value = int(token)
    except ValueError:
        raise TraceFormatError(f"Bad {what} ({token}) in tracefile {path}") from None
    if unsigned and value < 0:
        raise TraceFormatError(f"Negative {what} ({token}) in tracefile {path}")
    return value


def read_trace(path: str | os.PathLike[str]) -> Trace:
    """Read and validate the trace file at ``path``."""
    path = os.fspath(path)
    with open(path, encoding="ascii") as stream:
        tokens = iter(stream.read().split())

    def take(what: str) -> str:
        token = next(tokens, None)
        if token is None:
            raise TraceFormatError(f"Missing {what} in tracefile {path}")
        return token

    sugg_heapsize, num_ids, num_ops, weight = (
        _parse_int(take(name), name, path)
        for name in ("heap size", "id count", "op count", "weight")
    )

    ops: list[TraceOp] = []
    max_index = 0
    for word in tokens:
        kind = word[0]
        if kind in ("a", "r"):
            index = _parse_int(take("block index"), "block index", path, True)
            size = _parse_int(take("block size"), "block size", path, True)
            ops.append(TraceOp(OpType(kind), index, size))
            max_index = max(max_index, index)
        elif kind == "f":
            index = _parse_int(take("block index"), "block index", path, True)
            ops.append(TraceOp(OpType.FREE, index))
        else:
            raise TraceFormatError(
                f"Bogus type character ({kind}) in tracefile {path}"
            )

    if max_index != num_ids - 1:
        raise TraceFormatError(
            f"Tracefile {path} declares {num_ids} ids but uses ids up to {max_index}"
        )
    if len(ops) != num_ops:
        raise TraceFormatError(
            f"Tracefile {path} declares {num_ops} requests but holds {len(ops)}"
        )
    return Trace(sugg_heapsize, num_ids, num_ops, weight, ops)