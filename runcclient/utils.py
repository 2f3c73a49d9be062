"""Small helpers: pid files and parsing of ``ps`` table output."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from os import PathLike

_ASCII_SPACE = re.compile(r"[\t\n\f\r ]+")
_DECIMAL = re.compile(r"[+-]?[0-9]+")


@dataclass
class TopResults:
    """Structured ``ps`` output: column headers and one row per process."""

    headers: list[str] = field(default_factory=list)
    processes: list[list[str]] = field(default_factory=list)


def read_pid_file(path: str | PathLike[str]) -> int:
    """Return the pid stored in the file at *path*.

    The file must hold nothing but a decimal number; surrounding whitespace
    is rejected with ``ValueError``.
    """
    with open(path, "rb") as handle:
        text = handle.read().decode("ascii")
    if not _DECIMAL.fullmatch(text):
        raise ValueError(f"invalid pid {text!r} in {path}")
    return int(text)


def _fields_ascii(text: str) -> list[str]:
    """Split on ASCII whitespace only (tab, newline, form feed, CR, space)."""
    return [part for part in _ASCII_SPACE.split(text) if part]


def parse_ps_output(output: bytes | str) -> TopResults:
    """Parse the table printed by ``runc ps --format table``.

    Rows whose PID column is ``-`` are skipped. Everything from the last
    header onwards is joined into a single column, since the command line
    may contain spaces.
    """
    text = output.decode("utf-8", "replace") if isinstance(output, (bytes, bytearray)) else output
    lines = text.split("\n")
    headers = _fields_ascii(lines[0])
    pid_index = max((i for i, name in enumerate(headers) if name == "PID"), default=-1)
    last = len(headers) - 1

    result = TopResults(headers=headers)
    for line in lines[1:]:
        if not line:
            continue
        fields = _fields_ascii(line)
        if pid_index < 0 or pid_index >= len(fields):
            raise ValueError(f"ps output line has no PID column: {line!r}")
        if fields[pid_index] == "-":
            continue
        if len(fields) < last:
            raise ValueError(f"ps output line has too few columns: {line!r}")
        result.processes.append(fields[:last] + [" ".join(fields[last:])])
    return result