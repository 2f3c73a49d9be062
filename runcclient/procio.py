"""Standard streams handed to a runc child process."""

from __future__ import annotations

import logging
import os
import sys
from contextlib import suppress
from dataclasses import dataclass
from typing import Any, BinaryIO, Optional

from runcclient.command import Command

_log = logging.getLogger(__name__)


@dataclass
class _Pipe:
    read: BinaryIO
    write: BinaryIO

    @classmethod
    def create(cls) -> _Pipe:
        read_fd, write_fd = os.pipe()
        return cls(open(read_fd, "rb", buffering=0), open(write_fd, "wb", buffering=0))

    def close(self) -> None:
        try:
            self.write.close()
        finally:
            self.read.close()


class ProcessIO:
    """Streams for a child process and the ends kept by the caller.

    ``stdin`` is the end the caller writes to, ``stdout`` and ``stderr``
    the ends it reads from; any of them may be ``None``.
    """

    @property
    def stdin(self) -> Any:
        return None

    @property
    def stdout(self) -> Any:
        return None

    @property
    def stderr(self) -> Any:
        return None

    def _child_ends(self) -> tuple[Any, Any, Any]:
        return (None, None, None)

    def apply(self, command: Command) -> None:
        """Attach the child's ends to *command*; missing ends leave it unchanged."""
        for name, stream in zip(("stdin", "stdout", "stderr"), self._child_ends()):
            if stream is not None:
                setattr(command, name, stream)

    def close(self) -> None:
        """Release every stream held; the base class holds none."""
        return None

    def close_after_start(self) -> None:
        """Release the child's ends once the child has started; the base holds none."""
        return None

    def __enter__(self) -> ProcessIO:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()


class PipeIO(ProcessIO):
    """Anonymous pipes connecting the caller with the child."""

    def __init__(
        self,
        stdin_pipe: Optional[_Pipe] = None,
        stdout_pipe: Optional[_Pipe] = None,
        stderr_pipe: Optional[_Pipe] = None,
    ) -> None:
        self._in = stdin_pipe
        self._out = stdout_pipe
        self._err = stderr_pipe

    @property
    def stdin(self) -> Optional[BinaryIO]:
        return self._in.write if self._in is not None else None

    @property
    def stdout(self) -> Optional[BinaryIO]:
        return self._out.read if self._out is not None else None

    @property
    def stderr(self) -> Optional[BinaryIO]:
        return self._err.read if self._err is not None else None

    def _child_ends(self) -> tuple[Any, Any, Any]:
        return (
            self._in.read if self._in is not None else None,
            self._out.write if self._out is not None else None,
            self._err.write if self._err is not None else None,
        )

    def apply(self, command: Command) -> None:
        """Connect the child's stdin to a pipe read end and its output to write ends."""
        if self._in is not None:
            command.stdin = self._in.read
        if self._out is not None:
            command.stdout = self._out.write
        if self._err is not None:
            command.stderr = self._err.write

    def close(self) -> None:
        """Close every pipe; the first failure is raised after all are closed."""
        first: Optional[OSError] = None
        for pipe in (self._in, self._out, self._err):
            if pipe is None:
                continue
            try:
                pipe.close()
            except OSError as exc:
                first = first or exc
        if first is not None:
            raise first

    def close_after_start(self) -> None:
        """Close the write ends of the output pipes so reads see end of file."""
        for pipe in (self._out, self._err):
            if pipe is not None:
                with suppress(OSError):
                    pipe.write.close()


class StdIO(ProcessIO):
    """The child shares this process's standard streams."""

    @property
    def stdin(self) -> Any:
        return sys.stdin

    @property
    def stdout(self) -> Any:
        return sys.stdout

    @property
    def stderr(self) -> Any:
        return sys.stderr

    def apply(self, command: Command) -> None:
        """Give the child descriptors 0, 1 and 2 of this process."""
        command.stdin = 0
        command.stdout = 1
        command.stderr = 2


class NullIO(ProcessIO):
    """Child output goes to the null device; stdin is left untouched."""

    def __init__(self, devnull: BinaryIO) -> None:
        self._devnull = devnull

    def apply(self, command: Command) -> None:
        """Point the child's stdout and stderr at the null device."""
        command.stdout = self._devnull
        command.stderr = self._devnull

    def close(self) -> None:
        """Close the null device, ignoring any failure."""
        with suppress(OSError):
            self._devnull.close()

    def close_after_start(self) -> None:
        """Close the null device once the child holds its own copy."""
        self._devnull.close()


def _chown(handle: BinaryIO, uid: int, gid: int, label: str) -> None:
    try:
        os.fchown(handle.fileno(), uid, gid)
    except OSError as exc:
        # chown on an anonymous pipe fails with EINVAL on macOS
        if sys.platform == "darwin":
            _log.debug("failed to chown %s, ignored: %s", label, exc)
            return
        raise OSError(exc.errno, f"failed to chown {label}: {exc.strerror}") from exc


def new_pipe_io(
    uid: int,
    gid: int,
    *,
    open_stdin: bool = True,
    open_stdout: bool = True,
    open_stderr: bool = True,
) -> PipeIO:
    """Create pipes for the chosen streams, with the child's ends owned by *uid*:*gid*."""
    if sys.platform == "win32":
        raise OSError("pipe IO is not supported on Windows")
    created: list[_Pipe] = []
    ends: list[Optional[_Pipe]] = []
    try:
        for label, wanted, child_end in (
            ("stdin", open_stdin, "read"),
            ("stdout", open_stdout, "write"),
            ("stderr", open_stderr, "write"),
        ):
            if not wanted:
                ends.append(None)
                continue
            pipe = _Pipe.create()
            created.append(pipe)
            _chown(getattr(pipe, child_end), uid, gid, label)
            ends.append(pipe)
    except BaseException:
        for pipe in created:
            with suppress(OSError):
                pipe.close()
        raise
    return PipeIO(*ends)


def new_stdio() -> StdIO:
    """Return IO that shares this process's standard streams."""
    return StdIO()


def new_null_io() -> NullIO:
    """Return IO that sends the child's output to the null device."""
    return NullIO(open(os.devnull, "rb"))