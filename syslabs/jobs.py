"""The job table of a job-control shell."""

from __future__ import annotations

import enum
import sys
from collections.abc import Iterator
from dataclasses import dataclass
from typing import TextIO

MAXJOBS = 16


class JobState(enum.IntEnum):
    """Where a job is running.

    A job moves FG -> ST on ctrl-z, ST -> FG or BG -> FG on ``fg`` and
    ST -> BG on ``bg``.  At most one job is in the FG state.
    """

    UNDEF = 0
    FG = 1
    BG = 2
    ST = 3


_STATE_LABELS = {
    JobState.BG: "Running",
    JobState.FG: "Foreground",
    JobState.ST: "Stopped",
}


@dataclass
class Job:
    """One job: its process id, job id, state and the line that started it."""

    pid: int
    jid: int
    state: JobState
    cmdline: str


class JobList:
    """A fixed number of job slots, filled from the first free one."""

    def __init__(self, max_jobs: int = MAXJOBS, verbose: bool = False) -> None:
        if max_jobs < 1:
            raise ValueError("max_jobs must be positive")
        self.max_jobs = max_jobs
        self.verbose = verbose
        self.out: TextIO | None = None
        self.next_jid = 1
        self._slots: list[Job | None] = [None] * max_jobs

    def __iter__(self) -> Iterator[Job]:
        return (job for job in self._slots if job is not None)

    def __len__(self) -> int:
        return sum(1 for _ in self)

    def _write(self, text: str) -> None:
        (self.out or sys.stdout).write(text)

    def add(self, pid: int, state: JobState, cmdline: str) -> Job | None:
        """Add a job; return it, or ``None`` if the pid is bad or the table is full."""
        if pid < 1:
            return None
        for slot, current in enumerate(self._slots):
            if current is None:
                job = Job(pid, self.next_jid, JobState(state), cmdline)
                self.next_jid += 1
                if self.next_jid > self.max_jobs:
                    self.next_jid = 1
                self._slots[slot] = job
                if self.verbose:
                    self._write(f"Added job [{job.jid}] {job.pid} {job.cmdline}\n")
                return job
        self._write("Tried to create too many jobs\n")
        return None

    def delete(self, pid: int) -> bool:
        """Remove the job with process id ``pid``; return whether one was found."""
        if pid < 1:
            return False
        for slot, job in enumerate(self._slots):
            if job is not None and job.pid == pid:
                self._slots[slot] = None
                self.next_jid = self.max_jid() + 1
                return True
        return False

    def max_jid(self) -> int:
        """Largest job id in use, or 0."""
        return max((job.jid for job in self), default=0)

    def fg_pid(self) -> int:
        """Process id of the foreground job, or 0 if there is none."""
        return next((job.pid for job in self if job.state is JobState.FG), 0)

    def get_by_pid(self, pid: int) -> Job | None:
        """The job with process id ``pid``, if any."""
        if pid < 1:
            return None
        return next((job for job in self if job.pid == pid), None)

    def get_by_jid(self, jid: int) -> Job | None:
        """The job with job id ``jid``, if any."""
        if jid < 1:
            return None
        return next((job for job in self if job.jid == jid), None)

    def pid_to_jid(self, pid: int) -> int:
        """Job id of the job with process id ``pid``, or 0."""
        job = self.get_by_pid(pid)
        return job.jid if job is not None else 0

    def list_jobs(self) -> str:
        """The job listing printed by the ``jobs`` command."""
        parts = []
        for slot, job in enumerate(self._slots):
            if job is None:
                continue
            label = _STATE_LABELS.get(job.state)
            if label is None:
                state = f"listjobs: Internal error: job[{slot}].state={int(job.state)} "
            else:
                state = f"{label} "
            parts.append(f"[{job.jid}] ({job.pid}) {state}{job.cmdline}")
        return "".join(parts)