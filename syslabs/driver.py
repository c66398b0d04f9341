"""Replay allocator traces to check correctness, utilization and speed."""

from __future__ import annotations

import getopt
import math
import os
import sys
import time
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from typing import TextIO

from syslabs.allocator import ALIGNMENT, Allocator, TeamError
from syslabs.explicit import ExplicitListAllocator
from syslabs.implicit import ImplicitListAllocator
from syslabs.memlib import MemoryExhausted, SimulatedMemory
from syslabs.segregated import SegregatedListAllocator
from syslabs.trace import OpType, RangeError, RangeList, Trace, TraceFormatError, read_trace

DEFAULT_TRACEDIR = "./traces/"
TRACE_SUFFIX = ".rep"
DEFAULT_UTIL_WEIGHT = 0.6
DEFAULT_LIBC_THROUGHPUT = 600e3
TIMING_RUNS = 3

ALLOCATORS: dict[str, type[Allocator]] = {
    "implicit": ImplicitListAllocator,
    "explicit": ExplicitListAllocator,
    "segregated": SegregatedListAllocator,
}
DEFAULT_ALLOCATOR = "segregated"


def _line_number(opnum: int) -> int:
    # Four header lines precede the first request; lines count from 1.
    return opnum + 5


@dataclass
class Stats:
    """Results of running one allocator on one trace.

    ``secs`` and ``util`` are meaningful only when ``valid`` is true.
    """

    ops: float = 0.0
    valid: bool = False
    secs: float = 0.0
    util: float = 0.0


class Evaluator:
    """Runs traces against allocators and reports the errors it finds."""

    def __init__(self, out: TextIO | None = None, verbose: int = 0) -> None:
        self.out = sys.stdout if out is None else out
        self.verbose = verbose
        self.errors = 0

    def _say(self, text: str) -> None:
        self.out.write(text)

    def malloc_error(self, tracenum: int, opnum: int, msg: str) -> None:
        """Count and report an error made by the allocator under test."""
        self.errors += 1
        self._say(f"ERROR [trace {tracenum}, line {_line_number(opnum)}]: {msg}\n")

    def mm_valid(
        self, trace: Trace, tracenum: int, allocator: Allocator, ranges: RangeList
    ) -> bool:
        """Replay ``trace`` and check every block the allocator hands out."""
        memory = allocator.memory
        memory.reset_brk()
        ranges.clear()

        try:
            allocator.init()
        except MemoryExhausted:
            self.malloc_error(tracenum, 0, "mm_init failed.")
            return False

        for opnum, op in enumerate(trace.ops):
            index, size = op.index, op.size
            fill = index & 0xFF

            if op.type is OpType.ALLOC:
                try:
                    p = allocator.malloc(size)
                except MemoryExhausted:
                    p = None
                if p is None:
                    self.malloc_error(tracenum, opnum, "mm_malloc failed.")
                    return False
                if not self._add_range(ranges, memory, p, size, tracenum, opnum):
                    return False
                memory.fill(p, fill, size)
                trace.blocks[index] = p
                trace.block_sizes[index] = size

            elif op.type is OpType.REALLOC:
                oldp = trace.blocks[index]
                try:
                    newp = allocator.realloc(oldp, size)
                except MemoryExhausted:
                    newp = None
                if newp is None:
                    self.malloc_error(tracenum, opnum, "mm_realloc failed.")
                    return False
                if oldp is not None:
                    ranges.remove(oldp)
                if not self._add_range(ranges, memory, newp, size, tracenum, opnum):
                    return False
                kept = min(size, trace.block_sizes[index])
                if any(byte != fill for byte in memory.read(newp, kept)):
                    self.malloc_error(
                        tracenum,
                        opnum,
                        "mm_realloc did not preserve the data from old block",
                    )
                    return False
                memory.fill(newp, fill, size)
                trace.blocks[index] = newp
                trace.block_sizes[index] = size

            else:
                p = trace.blocks[index]
                if p is not None:
                    ranges.remove(p)
                allocator.free(p)

        return True

    def _add_range(
        self,
        ranges: RangeList,
        memory: SimulatedMemory,
        lo: int,
        size: int,
        tracenum: int,
        opnum: int,
    ) -> bool:
        try:
            ranges.add(lo, size, memory.heap_lo(), memory.heap_hi(), ALIGNMENT)
        except RangeError as exc:
            self.malloc_error(tracenum, opnum, str(exc))
            return False
        return True

    def mm_util(self, trace: Trace, allocator: Allocator) -> float:
        """Peak live payload bytes divided by the final heap size."""
        allocator.memory.reset_brk()
        try:
            allocator.init()
        except MemoryExhausted:
            raise RuntimeError("mm_init failed in eval_mm_util") from None

        total = 0
        peak = 0
        for op in trace.ops:
            index = op.index
            if op.type is OpType.ALLOC:
                p = self._checked(allocator.malloc, op.size, "mm_malloc failed in eval_mm_util")
                trace.blocks[index] = p
                trace.block_sizes[index] = op.size
                total += op.size
                peak = max(peak, total)
            elif op.type is OpType.REALLOC:
                oldsize = trace.block_sizes[index]
                newp = self._checked(
                    lambda n: allocator.realloc(trace.blocks[index], n),
                    op.size,
                    "mm_realloc failed in eval_mm_util",
                )
                trace.blocks[index] = newp
                trace.block_sizes[index] = op.size
                total += op.size - oldsize
                peak = max(peak, total)
            else:
                allocator.free(trace.blocks[index])
                total -= trace.block_sizes[index]

        return peak / allocator.memory.heapsize()

    @staticmethod
    def _checked(call: Callable[[int], int | None], size: int, msg: str) -> int:
        try:
            p = call(size)
        except MemoryExhausted:
            p = None
        if p is None:
            raise RuntimeError(msg)
        return p

    def mm_speed(self, trace: Trace, allocator: Allocator) -> None:
        """Replay ``trace`` with no checking, for timing."""
        allocator.memory.reset_brk()
        try:
            allocator.init()
        except MemoryExhausted:
            raise RuntimeError("mm_init failed in eval_mm_speed") from None

        for op in trace.ops:
            index = op.index
            if op.type is OpType.ALLOC:
                trace.blocks[index] = self._checked(
                    allocator.malloc, op.size, "mm_malloc error in eval_mm_speed"
                )
            elif op.type is OpType.REALLOC:
                trace.blocks[index] = self._checked(
                    lambda n: allocator.realloc(trace.blocks[index], n),
                    op.size,
                    "mm_realloc error in eval_mm_speed",
                )
            else:
                allocator.free(trace.blocks[index])

    def libc_valid(self, trace: Trace, tracenum: int) -> bool:
        """Check that the host allocator can run ``trace`` to completion."""
        blocks: dict[int, bytearray] = {}
        for opnum, op in enumerate(trace.ops):
            try:
                self._libc_step(blocks, op.type, op.index, op.size)
            except MemoryError:
                what = "realloc" if op.type is OpType.REALLOC else "malloc"
                self.malloc_error(tracenum, opnum, f"libc {what} failed")
                raise
        return True

    def libc_speed(self, trace: Trace) -> None:
        """Replay ``trace`` on the host allocator, for timing."""
        blocks: dict[int, bytearray] = {}
        for op in trace.ops:
            self._libc_step(blocks, op.type, op.index, op.size)

    @staticmethod
    def _libc_step(
        blocks: dict[int, bytearray], kind: OpType, index: int, size: int
    ) -> None:
        if kind is OpType.ALLOC:
            blocks[index] = bytearray(size)
        elif kind is OpType.REALLOC:
            old = blocks.get(index, bytearray())
            new = bytearray(size)
            kept = min(size, len(old))
            new[:kept] = old[:kept]
            blocks[index] = new
        else:
            blocks.pop(index, None)


def _kops(ops: float, secs: float) -> float:
    return (ops / 1e3) / secs if secs > 0 else math.inf


def format_results(stats: Sequence[Stats], errors: int) -> str:
    """The per-trace performance table followed by a total line."""
    lines = ["%5s%7s %5s%8s%10s%6s" % ("trace", " valid", "util", "ops", "secs", "Kops")]
    secs = ops = util = 0.0
    for i, s in enumerate(stats):
        if s.valid:
            lines.append(
                "%2d%10s%5.0f%%%8.0f%10.6f%6.0f"
                % (i, "yes", s.util * 100.0, s.ops, s.secs, _kops(s.ops, s.secs))
            )
            secs += s.secs
            ops += s.ops
            util += s.util
        else:
            lines.append("%2d%10s%6s%8s%10s%6s" % (i, "no", "-", "-", "-", "-"))

    if errors == 0 and stats:
        lines.append(
            "%12s%5.0f%%%8.0f%10.6f%6.0f"
            % ("Total       ", (util / len(stats)) * 100.0, ops, secs, _kops(ops, secs))
        )
    else:
        lines.append("%12s%6s%8s%10s%6s" % ("Total       ", "-", "-", "-", "-"))
    return "\n".join(lines) + "\n"


def performance_index(
    stats: Sequence[Stats],
    util_weight: float = DEFAULT_UTIL_WEIGHT,
    libc_throughput: float = DEFAULT_LIBC_THROUGHPUT,
) -> tuple[float, float, float]:
    """Return the utilization part, the throughput part and the index out of 100."""
    if not stats:
        raise ValueError("no statistics to score")
    secs = sum(s.secs for s in stats)
    ops = sum(s.ops for s in stats)
    avg_util = sum(s.util for s in stats) / len(stats)
    throughput = ops / secs if secs > 0 else math.inf

    p1 = util_weight * avg_util
    if throughput > libc_throughput:
        p2 = 1.0 - util_weight
    else:
        p2 = (1.0 - util_weight) * (throughput / libc_throughput)
    return p1, p2, (p1 + p2) * 100.0


def time_call(func: Callable[[], object]) -> float:
    """Best wall-clock time in seconds over a few runs of ``func``."""
    best = math.inf
    for _ in range(TIMING_RUNS):
        start = time.perf_counter()
        func()
        best = min(best, time.perf_counter() - start)
    return best


_USAGE = """\
Usage: mdriver [-hvVal] [-f <file>] [-t <dir>] [-m <allocator>]
Options
\t-a         Don't check the team structure.
\t-f <file>  Use <file> as the trace file.
\t-g         Generate summary info for autograder.
\t-h         Print this message.
\t-l         Run libc malloc as well.
\t-m <name>  Allocator to test: implicit, explicit or segregated.
\t-t <dir>   Directory to find default traces.
\t-v         Print per-trace performance breakdowns.
\t-V         Print additional debug info.
"""


def _usage() -> None:
    sys.stderr.write(_USAGE)


def _load(tracedir: str, name: str, verbose: int) -> Trace:
    if verbose > 1:
        print(f"Reading tracefile: {name}")
    return read_trace(os.path.join(tracedir, name))


def main(argv: Sequence[str] | None = None) -> int:
    """Run the trace-driven allocator evaluation; return the exit status."""
    args = sys.argv[1:] if argv is None else list(argv)
    try:
        opts, _ = getopt.getopt(args, "f:t:m:hvVgal")
    except getopt.GetoptError:
        _usage()
        return 1

    tracedir = DEFAULT_TRACEDIR
    tracefiles: list[str] | None = None
    team_check = True
    run_libc = False
    autograder = False
    verbose = 0
    allocator_name = DEFAULT_ALLOCATOR

    for opt, value in opts:
        if opt == "-g":
            autograder = True
        elif opt == "-f":
            tracedir = "./"
            tracefiles = [value]
        elif opt == "-t":
            if tracefiles is None:
                tracedir = value if value.endswith("/") else value + "/"
        elif opt == "-m":
            if value not in ALLOCATORS:
                _usage()
                return 1
            allocator_name = value
        elif opt == "-a":
            team_check = False
        elif opt == "-l":
            run_libc = True
        elif opt == "-v":
            verbose = 1
        elif opt == "-V":
            verbose = 2
        elif opt == "-h":
            _usage()
            return 0

    allocator_cls = ALLOCATORS[allocator_name]
    if team_check:
        try:
            for line in allocator_cls.team.check():
                print(line)
        except TeamError as exc:
            print(exc)
            return 1

    if tracefiles is None:
        try:
            tracefiles = sorted(
                name for name in os.listdir(tracedir) if name.endswith(TRACE_SUFFIX)
            )
        except OSError as exc:
            print(f"Could not list {tracedir}: {exc.strerror}")
            return 1
        print(f"Using default tracefiles in {tracedir}")
        if not tracefiles:
            print(f"No tracefiles found in {tracedir}")
            return 1

    evaluator = Evaluator(sys.stdout, verbose)

    try:
        if run_libc:
            if verbose > 1:
                print("\nTesting libc malloc")
            libc_stats = []
            for i, name in enumerate(tracefiles):
                trace = _load(tracedir, name, verbose)
                stats = Stats(ops=trace.num_ops)
                if verbose > 1:
                    print("Checking libc malloc for correctness, ", end="")
                stats.valid = evaluator.libc_valid(trace, i)
                if stats.valid:
                    if verbose > 1:
                        print("and performance.")
                    stats.secs = time_call(lambda t=trace: evaluator.libc_speed(t))
                libc_stats.append(stats)
            if verbose:
                print("\nResults for libc malloc:")
                print(format_results(libc_stats, evaluator.errors), end="")

        if verbose > 1:
            print("\nTesting mm malloc")

        allocator = allocator_cls(SimulatedMemory())
        ranges = RangeList()
        mm_stats = []
        for i, name in enumerate(tracefiles):
            trace = _load(tracedir, name, verbose)
            stats = Stats(ops=trace.num_ops)
            if verbose > 1:
                print("Checking mm_malloc for correctness, ", end="")
            stats.valid = evaluator.mm_valid(trace, i, allocator, ranges)
            if stats.valid:
                if verbose > 1:
                    print("efficiency, ", end="")
                stats.util = evaluator.mm_util(trace, allocator)
                if verbose > 1:
                    print("and performance.")
                stats.secs = time_call(
                    lambda t=trace: evaluator.mm_speed(t, allocator)
                )
            mm_stats.append(stats)
    except OSError as exc:
        print(f"Could not open {exc.filename} in read_trace: {exc.strerror}")
        return 1
    except (TraceFormatError, RuntimeError) as exc:
        print(exc)
        return 1
    except MemoryError as exc:
        print(f"System message: {exc}")
        return 1

    if verbose:
        print("\nResults for mm malloc:")
        print(format_results(mm_stats, evaluator.errors), end="")
        print()

    numcorrect = sum(1 for s in mm_stats if s.valid)
    if evaluator.errors == 0:
        p1, p2, perfindex = performance_index(mm_stats)
        print(
            "Perf index = %.0f (util) + %.0f (thru) = %.0f/100"
            % (p1 * 100, p2 * 100, perfindex)
        )
    else:
        perfindex = 0.0
        print(f"Terminated with {evaluator.errors} errors")

    if autograder:
        print(f"correct:{numcorrect}")
        print("perfidx:%.0f" % perfindex)
    return 0