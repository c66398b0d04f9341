"""A tiny shell with job control."""

from __future__ import annotations

import getopt
import os
import signal
import sys
import time
from collections.abc import Sequence
from typing import NoReturn, TextIO

from syslabs.jobs import MAXJOBS, JobList, JobState
from syslabs.parse import _atoi, parseline

PROMPT = "tsh> "
_WAIT_INTERVAL = 0.001

_USAGE = """\
Usage: shell [-hvp]
   -h   print this message
   -v   print additional diagnostic information
   -p   do not emit a command prompt
"""


class Shell:
    """Reads command lines, runs built-ins and starts jobs in their own groups."""

    def __init__(
        self, verbose: bool = False, emit_prompt: bool = True, out: TextIO | None = None
    ) -> None:
        self.verbose = verbose
        self.emit_prompt = emit_prompt
        self.out = sys.stdout if out is None else out
        self.jobs = JobList(MAXJOBS, verbose)
        self.jobs.out = self.out

    def _say(self, text: str) -> None:
        self.out.write(text)

    def _fail(self, msg: str) -> NoReturn:
        self._say(f"{msg}\n")
        self.out.flush()
        raise SystemExit(1)

    def eval(self, cmdline: str) -> None:
        """Run one command line: a built-in at once, anything else as a job."""
        argv, bg = parseline(cmdline)
        if not argv:
            return
        if self.builtin_cmd(argv):
            return

        mask = {signal.SIGCHLD}
        self.out.flush()
        sys.stdout.flush()
        # SIGCHLD stays blocked until the job is in the table, so a quick
        # child cannot be reaped before it has been added.
        signal.pthread_sigmask(signal.SIG_BLOCK, mask)
        try:
            pid = os.fork()
            if pid == 0:
                self._exec_child(argv, mask)
            self.jobs.add(pid, JobState.BG if bg else JobState.FG, cmdline)
        finally:
            signal.pthread_sigmask(signal.SIG_UNBLOCK, mask)

        if bg:
            self._say(f"[{self.jobs.pid_to_jid(pid)}] ({pid}) {cmdline}")
        else:
            self.waitfg(pid)

    @staticmethod
    def _exec_child(argv: list[str], mask: set[signal.Signals]) -> NoReturn:
        try:
            signal.pthread_sigmask(signal.SIG_UNBLOCK, mask)
            os.setpgid(0, 0)
            try:
                os.execve(argv[0], argv, os.environ)
            except OSError:
                os.write(1, f"{argv[0]}: Command not found\n".encode())
        finally:
            os._exit(0)

    def builtin_cmd(self, argv: list[str]) -> bool:
        """Run a built-in command; return whether ``argv`` was one."""
        name = argv[0]
        if name == "quit":
            raise SystemExit(0)
        if name == "&":
            return True
        if name in ("bg", "fg"):
            self.do_bgfg(argv)
            return True
        if name == "jobs":
            self._say(self.jobs.list_jobs())
            return True
        return False

    def do_bgfg(self, argv: list[str]) -> None:
        """Continue a job, in the background (``bg``) or foreground (``fg``)."""
        if len(argv) < 2:
            self._say(f"{argv[0]} command requires PID or %jobid argument\n")
            return
        ident = argv[1]
        if ident.startswith("%"):
            jid = _atoi(ident[1:])
            job = self.jobs.get_by_jid(jid)
            if job is None:
                self._say(f"%{jid}: No such job\n")
                return
        elif ident[:1].isdigit():
            pid = _atoi(ident)
            job = self.jobs.get_by_pid(pid)
            if job is None:
                self._say(f"({pid}): No such process\n")
                return
        else:
            self._say(f"{argv[0]}: argument must be a PID or %jobid\n")
            return

        self._signal_group(job.pid, signal.SIGCONT)
        if argv[0] == "bg":
            job.state = JobState.BG
            self._say(f"[{job.jid}] ({job.pid}) {job.cmdline}")
        else:
            job.state = JobState.FG
            self.waitfg(job.pid)

    @staticmethod
    def _signal_group(pid: int, signum: int) -> None:
        try:
            os.kill(-pid, signum)
        except OSError:
            pass

    def waitfg(self, pid: int) -> None:
        """Wait until ``pid`` is no longer the foreground job."""
        while pid == self.jobs.fg_pid():
            time.sleep(_WAIT_INTERVAL)

    def sigchld_handler(self, signum: int | None, frame: object) -> None:
        """Reap every child that has ended or stopped and update the job table."""
        while True:
            try:
                pid, status = os.waitpid(-1, os.WNOHANG | os.WUNTRACED)
            except ChildProcessError:
                return
            except OSError as exc:
                self._fail(f"waitpid error: {exc.strerror}")
            if pid <= 0:
                return
            if os.WIFEXITED(status):
                self.jobs.delete(pid)
            elif os.WIFSIGNALED(status):
                self._say(
                    f"Job [{self.jobs.pid_to_jid(pid)}] ({pid}) "
                    f"terminated by signal {os.WTERMSIG(status)}\n"
                )
                self.jobs.delete(pid)
            elif os.WIFSTOPPED(status):
                self._say(
                    f"Job [{self.jobs.pid_to_jid(pid)}] ({pid}) "
                    f"stopped by signal {os.WSTOPSIG(status)}\n"
                )
                job = self.jobs.get_by_pid(pid)
                if job is not None:
                    job.state = JobState.ST

    def sigint_handler(self, signum: int | None, frame: object) -> None:
        """Pass ctrl-c on to the foreground job's process group."""
        pid = self.jobs.fg_pid()
        if pid:
            self._signal_group(pid, signal.SIGINT)

    def sigtstp_handler(self, signum: int | None, frame: object) -> None:
        """Pass ctrl-z on to the foreground job's process group."""
        pid = self.jobs.fg_pid()
        if pid:
            job = self.jobs.get_by_pid(pid)
            if job is not None and job.state is JobState.ST:
                return
            self._signal_group(pid, signal.SIGTSTP)

    def sigquit_handler(self, signum: int | None, frame: object) -> NoReturn:
        """Leave the shell when told to by SIGQUIT."""
        self._fail("Terminating after receipt of SIGQUIT signal")

    def install_handlers(self) -> None:
        """Install the shell's handlers for SIGINT, SIGTSTP, SIGCHLD and SIGQUIT."""
        signal.signal(signal.SIGINT, self.sigint_handler)
        signal.signal(signal.SIGTSTP, self.sigtstp_handler)
        signal.signal(signal.SIGCHLD, self.sigchld_handler)
        signal.signal(signal.SIGQUIT, self.sigquit_handler)

    def run(self, stream: TextIO) -> None:
        """Read and evaluate command lines from ``stream`` until end of file."""
        while True:
            if self.emit_prompt:
                self._say(PROMPT)
                self.out.flush()
            try:
                line = stream.readline()
            except OSError:
                self._fail("fgets error")
            if not line:
                self.out.flush()
                return
            self.eval(line)
            self.out.flush()


def _usage() -> None:
    sys.stdout.write(_USAGE)


def main(argv: Sequence[str] | None = None) -> int:
    """Start the interactive shell; return its exit status."""
    args = sys.argv[1:] if argv is None else list(argv)
    try:
        opts, _ = getopt.getopt(args, "hvp")
    except getopt.GetoptError:
        _usage()
        return 1

    verbose = False
    emit_prompt = True
    for opt, _value in opts:
        if opt == "-h":
            _usage()
            return 1
        if opt == "-v":
            verbose = True
        elif opt == "-p":
            emit_prompt = False

    # Send error output to stdout so a driver reading the pipe sees all of it.
    sys.stdout.flush()
    os.dup2(1, 2)

    shell = Shell(verbose, emit_prompt)
    shell.install_handlers()
    try:
        shell.run(sys.stdin)
    except SystemExit as exc:
        return exc.code if isinstance(exc.code, int) else 1
    return 0