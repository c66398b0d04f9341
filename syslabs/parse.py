"""Splitting of shell command lines into arguments."""

from __future__ import annotations

import re

_LEADING_INT = re.compile(r"\s*([+-]?\d+)")


def _atoi(text: str) -> int:
    """Leading decimal integer of ``text``, or 0 if it has none."""
    match = _LEADING_INT.match(text)
    return int(match.group(1)) if match else 0


def _next_delimiter(buf: str, pos: int) -> tuple[int, int]:
    if pos < len(buf) and buf[pos] == "'":
        pos += 1
        return pos, buf.find("'", pos)
    return pos, buf.find(" ", pos)


def _skip_spaces(buf: str, pos: int) -> int:
    while pos < len(buf) and buf[pos] == " ":
        pos += 1
    return pos


def parseline(cmdline: str) -> tuple[list[str], bool]:
    """Split a command line into arguments and say whether it asks for background.

    The last character (normally the newline) is treated as a space.  Text in
    single quotes forms one argument.  A blank line counts as background.
    """
    buf = cmdline[:-1] + " " if cmdline else ""
    pos = _skip_spaces(buf, 0)
    argv: list[str] = []
    pos, delim = _next_delimiter(buf, pos)
    while delim != -1:
        argv.append(buf[pos:delim])
        pos = _skip_spaces(buf, delim + 1)
        pos, delim = _next_delimiter(buf, pos)

    if not argv:
        return argv, True
    bg = argv[-1].startswith("&")
    if bg:
        argv.pop()
    return argv, bg