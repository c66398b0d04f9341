# syslabs

Two small systems-programming workbenches in one package.

## Heap allocators

Allocators manage a simulated heap, `syslabs.memlib.SimulatedMemory`, that
only grows through `sbrk` (20 MiB at most by default) and is addressed with
plain integers. Running out of room raises `syslabs.memlib.MemoryExhausted`.

Three allocators are included, each with `init`, `malloc`, `free` and
`realloc`. All use boundary tags (a header and footer word per block),
8-byte alignment and a minimum block of 16 bytes, and grow the heap in
4096-byte chunks:

* `syslabs.implicit.ImplicitListAllocator` – first-fit search over every
  block in address order;
* `syslabs.explicit.ExplicitListAllocator` – first-fit over an explicit LIFO
  free list; `free_block_count()` reports the list length;
* `syslabs.segregated.SegregatedListAllocator` – ten free lists by size class
  (see `syslabs.segregated.size_class`), each kept in size order; `realloc`
  keeps the block in place when its size would not change.

`malloc(0)` returns `None`; `realloc(p, 0)` frees `p`; `realloc(None, n)`
behaves like `malloc(n)`.

```python
from syslabs.memlib import SimulatedMemory
from syslabs.segregated import SegregatedListAllocator

memory = SimulatedMemory()
allocator = SegregatedListAllocator(memory)
allocator.init()
p = allocator.malloc(100)
p = allocator.realloc(p, 200)
allocator.free(p)
```

## The trace grader: `mdriver`

`mdriver` replays allocation traces against an allocator. For each trace it
checks that every payload is aligned, lies inside the heap, overlaps no other
live payload, and that `realloc` keeps the old data. It then measures space
utilisation (peak live payload bytes divided by the final heap size) and
throughput (best of three timed runs), and prints a performance index out of
100: 60 % utilisation, 40 % throughput measured against 600 000 operations
per second.

```
mdriver -f path/to/trace.rep -v
mdriver -t traces -m explicit
```

Without `-f`, every `*.rep` file in the trace directory (`./traces/` by
default) is run, in name order.

| option      | meaning                                                 |
|-------------|---------------------------------------------------------|
| `-a`        | don't check the team information                        |
| `-f <file>` | use `<file>` as the single trace file                   |
| `-t <dir>`  | directory holding the traces (ignored after `-f`)       |
| `-m <name>` | allocator: `implicit`, `explicit` or `segregated` (default) |
| `-g`        | print `correct:` and `perfidx:` lines for an autograder |
| `-l`        | also replay the traces with Python's own allocation     |
| `-v`        | print a per-trace breakdown                             |
| `-V`        | print additional debug output                           |
| `-h`        | print the help text                                     |

A trace file starts with four integers – suggested heap size, number of block
ids, number of operations and weight – followed by the operations:

```
a <id> <size>    allocate <size> bytes as block <id>
r <id> <size>    reallocate block <id> to <size> bytes
f <id>           free block <id>
```

`syslabs.trace.read_trace` parses such a file and raises
`syslabs.trace.TraceFormatError` if it is malformed or its counts do not
match. `syslabs.driver.Evaluator`, `format_results` and `performance_index`
can be used directly from Python.

## The shell: `tsh`

```
tsh          # interactive, with the "tsh> " prompt
tsh -p       # no prompt, handy when driven by a script
tsh -v       # extra diagnostic output
```

Give a program by its path; end the line with `&` to run it in the
background. Text in single quotes is one argument. Each job runs in its own
process group; ctrl-c and ctrl-z are forwarded to the foreground job.

```
tsh> /bin/echo hello
tsh> /bin/sleep 10 &
tsh> jobs
tsh> fg %1
```

Built-ins: `jobs`, `bg`, `fg` (each of the last two takes a process id or
`%jobid`) and `quit`. At most 16 jobs are tracked at a time.

The helper commands `myspin <n>`, `mysplit <n>`, `myint <n>` and `mystop <n>`
exercise job control: they sleep for `<n>` seconds and then, respectively,
exit, wait on a forked child that sleeps, interrupt themselves with SIGINT,
or stop their process group with SIGTSTP.

## What the shell does not do

`tsh` does not search `PATH` (a bare name such as `ls` is reported as
"Command not found"), and has no pipes, redirection, variables or scripting.
It needs a POSIX system.

## Tests

```
pip install ".[test]"
pytest
```