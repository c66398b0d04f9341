"""Common pieces of the boundary-tag heap allocators."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass

from syslabs.memlib import SimulatedMemory

ALIGNMENT = 8
WSIZE = 4
DSIZE = 8
CHUNKSIZE = 1 << 12


class TeamError(ValueError):
    """Raised when the team description is incomplete."""


@dataclass(frozen=True)
class Team:
    """The people responsible for an allocator."""

    teamname: str
    name1: str
    id1: str
    name2: str = ""
    id2: str = ""

    def check(self) -> list[str]:
        """Validate the team and return the lines that describe it."""
        if not self.teamname:
            raise TeamError(
                "ERROR: Please provide the information about your team."
            )
        lines = [f"Team Name:{self.teamname}"]
        if not self.name1 or not self.id1:
            raise TeamError("ERROR.  You must fill in all team member 1 fields!")
        lines.append(f"Member 1 :{self.name1}:{self.id1}")
        if bool(self.name2) != bool(self.id2):
            raise TeamError(
                "ERROR.  You must fill in all or none of the team member 2 ID fields!"
            )
        if self.name2:
            lines.append(f"Member 2 :{self.name2}:{self.id2}")
        return lines


DEFAULT_TEAM = Team("ateam", "Team Member", "member@example.com")


def pack(size: int, alloc: int) -> int:
    """Combine a block size and its allocated bit into one tag word."""
    return size | alloc


def adjusted_size(size: int) -> int:
    """Block size needed for a ``size``-byte payload, tags and alignment included."""
    if size < 0:
        raise ValueError("size must not be negative")
    if size <= DSIZE:
        return 2 * DSIZE
    return DSIZE * ((size + DSIZE + (DSIZE - 1)) // DSIZE)


class Allocator(ABC):
    """An allocator that manages blocks inside a :class:`SimulatedMemory`.

    Pointers are integer addresses; ``None`` stands for the null pointer.
    Running out of simulated memory raises :class:`MemoryExhausted`.
    """

    team: Team = DEFAULT_TEAM

    def __init__(self, memory: SimulatedMemory) -> None:
        self.memory = memory

    @abstractmethod
    def init(self) -> None:
        """Lay out an empty heap in the (freshly reset) memory."""

    @abstractmethod
    def malloc(self, size: int) -> int | None:
        """Allocate a payload of ``size`` bytes; ``None`` when size is 0."""

    @abstractmethod
    def free(self, ptr: int | None) -> None:
        """Release the block whose payload starts at ``ptr``."""

    def realloc(self, ptr: int | None, size: int) -> int | None:
        """Move the payload at ``ptr`` into a block of ``size`` bytes."""
        if size == 0:
            self.free(ptr)
            return None
        if ptr is None:
            return self.malloc(size)
        newptr = self.malloc(size)
        if newptr is None:
            return None
        copy = min(size, self._block_size(ptr))
        self.memory.write(newptr, self.memory.read(ptr, copy))
        self.free(ptr)
        return newptr

    # Boundary-tag helpers shared by the concrete allocators.

    def _get(self, addr: int) -> int:
        return self.memory.get_word(addr)

    def _put(self, addr: int, value: int) -> None:
        self.memory.put_word(addr, value)

    @staticmethod
    def _hdrp(bp: int) -> int:
        return bp - WSIZE

    def _tag_size(self, addr: int) -> int:
        return self._get(addr) & ~0x7

    def _tag_alloc(self, addr: int) -> int:
        return self._get(addr) & 0x1

    def _block_size(self, bp: int) -> int:
        return self._tag_size(bp - WSIZE)

    def _ftrp(self, bp: int) -> int:
        return bp + self._block_size(bp) - DSIZE

    def _next_blkp(self, bp: int) -> int:
        return bp + self._block_size(bp)

    def _prev_blkp(self, bp: int) -> int:
        return bp - self._tag_size(bp - DSIZE)

    def _set_tags(self, bp: int, size: int, alloc: int) -> None:
        self._put(self._hdrp(bp), pack(size, alloc))
        self._put(self._ftrp(bp), pack(size, alloc))