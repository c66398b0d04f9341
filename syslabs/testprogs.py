"""Small programs that exercise a job-control shell."""

from __future__ import annotations

import os
import signal
import sys
import time
from collections.abc import Sequence

from syslabs.parse import _atoi


def spin(secs: int) -> None:
    """Sleep for ``secs`` seconds in one-second chunks."""
    for _ in range(secs):
        time.sleep(1)


def _seconds(prog: str, argv: Sequence[str] | None) -> int | None:
    args = sys.argv[1:] if argv is None else list(argv)
    if len(args) != 1:
        sys.stderr.write(f"Usage: {prog} <n>\n")
        return None
    return _atoi(args[0])


def myint(argv: Sequence[str] | None = None) -> int:
    """Sleep ``n`` seconds, then interrupt this process with SIGINT."""
    secs = _seconds("myint", argv)
    if secs is None:
        return 0
    spin(secs)
    signal.signal(signal.SIGINT, signal.SIG_DFL)
    try:
        os.kill(os.getpid(), signal.SIGINT)
    except OSError:
        sys.stderr.write("kill (int) error")
    return 0


def myspin(argv: Sequence[str] | None = None) -> int:
    """Sleep ``n`` seconds."""
    secs = _seconds("myspin", argv)
    if secs is not None:
        spin(secs)
    return 0


def mysplit(argv: Sequence[str] | None = None) -> int:
    """Fork a child that sleeps ``n`` seconds and wait for it."""
    secs = _seconds("mysplit", argv)
    if secs is None:
        return 0
    sys.stdout.flush()
    sys.stderr.flush()
    pid = os.fork()
    if pid == 0:
        try:
            spin(secs)
        finally:
            os._exit(0)
    os.waitpid(pid, 0)
    return 0


def mystop(argv: Sequence[str] | None = None) -> int:
    """Sleep ``n`` seconds, then stop this process's group with SIGTSTP."""
    secs = _seconds("mystop", argv)
    if secs is None:
        return 0
    spin(secs)
    signal.signal(signal.SIGTSTP, signal.SIG_DFL)
    try:
        os.kill(-os.getpid(), signal.SIGTSTP)
    except OSError:
        sys.stderr.write("kill (tstp) error")
    return 0