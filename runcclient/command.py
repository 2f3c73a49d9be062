"""Description of a runc invocation and how to start it as a child process."""

from __future__ import annotations

import os
import subprocess
import sys
import threading
from dataclasses import dataclass, field
from typing import Any, Callable, Optional

_CHUNK = 64 * 1024


def filter_env(env: list[str], *args: str) -> list[str]:
    """Return the ``NAME=value`` entries of *env* whose name is not in *args*."""
    prefixes = tuple(f"{name}=" for name in args)
    return [entry for entry in env if not (prefixes and entry.startswith(prefixes))]


def base_environment() -> list[str]:
    """Return this process's environment as ``NAME=value`` entries.

    On Linux ``NOTIFY_SOCKET`` is dropped: it changes runc's behaviour and
    should only be present when runc is started by systemd.
    """
    env = [f"{name}={value}" for name, value in os.environ.items()]
    if sys.platform.startswith("linux"):
        env = filter_env(env, "NOTIFY_SOCKET")
    return env


def _env_mapping(env: list[str]) -> dict[str, str]:
    mapping: dict[str, str] = {}
    for entry in env:
        name, sep, value = entry.partition("=")
        if sep:
            mapping[name] = value
    return mapping


def _copy_target(stream: Any) -> Any:
    """Return *stream* if it must be fed through a pipe, else ``None``."""
    if stream is None or isinstance(stream, int):
        return None
    try:
        stream.fileno()
    except (AttributeError, OSError, ValueError):
        return stream if hasattr(stream, "write") else None
    return None


def _fileno(handle: Any) -> int:
    return handle if isinstance(handle, int) else handle.fileno()


def _pump(source: Any, sink: Any) -> None:
    with source:
        while chunk := source.read1(_CHUNK):
            sink.write(chunk)


def _feed(sink: Any, data: bytes) -> None:
    try:
        with sink:
            sink.write(data)
    except BrokenPipeError:
        pass


def _child_setup(extra_fds: list[int], setpgid: bool) -> Optional[Callable[[], None]]:
    if not extra_fds and not setpgid:
        return None
    import fcntl

    def setup() -> None:
        if setpgid:
            os.setpgid(0, 0)
        if extra_fds:
            floor = 3 + len(extra_fds)
            temps = [fcntl.fcntl(fd, fcntl.F_DUPFD, floor) for fd in extra_fds]
            for target, temp in enumerate(temps, start=3):
                os.dup2(temp, target)
                os.close(temp)

    return setup


class _CopyingPopen(subprocess.Popen):
    """A ``Popen`` whose ``wait`` also waits for its stream copiers."""

    _copiers: tuple[threading.Thread, ...] = ()

    def wait(self, timeout: Optional[float] = None) -> int:
        code = super().wait(timeout)
        for copier in self._copiers:
            copier.join()
        return code


@dataclass
class Command:
    """A program invocation with its streams, environment and extra files.

    ``stdin`` may be bytes, which are written to the child and then closed.
    ``stdout`` and ``stderr`` may be writable objects without a file
    descriptor (such as ``io.BytesIO``); output is copied into them, and
    when both name the same object the streams are combined. Entries of
    ``extra_files`` appear in the child as descriptors 3, 4, ...
    ``pdeath_signal`` is kept for callers that choose how to start the
    process; it is not applied here.
    """

    args: list[str]
    env: Optional[list[str]] = None
    stdin: Any = None
    stdout: Any = None
    stderr: Any = None
    extra_files: list[Any] = field(default_factory=list)
    setpgid: bool = False
    pdeath_signal: int = 0
    process: Optional[subprocess.Popen] = field(default=None, repr=False, compare=False)

    def program(self) -> str:
        """Return the program name the command runs."""
        return self.args[0]

    def popen(self) -> subprocess.Popen:
        """Start the process and return it; its ``wait`` also drains copied output."""
        if self.process is not None:
            raise RuntimeError("command already started")

        stdin_data: Optional[bytes] = None
        stdin = self.stdin
        if isinstance(stdin, (bytes, bytearray, memoryview)):
            stdin_data = bytes(stdin)
            stdin = subprocess.PIPE

        out_sink = _copy_target(self.stdout)
        err_sink = _copy_target(self.stderr)
        stdout = subprocess.PIPE if out_sink is not None else self.stdout
        if err_sink is not None and err_sink is out_sink:
            stderr = subprocess.STDOUT
            err_sink = None
        elif err_sink is not None:
            stderr = subprocess.PIPE
        else:
            stderr = self.stderr

        extra = [_fileno(handle) for handle in self.extra_files]
        env = self.env if self.env is not None else base_environment()

        process = _CopyingPopen(
            self.args,
            stdin=stdin,
            stdout=stdout,
            stderr=stderr,
            env=_env_mapping(env),
            close_fds=False,
            preexec_fn=_child_setup(extra, self.setpgid),
        )

        copiers = []
        if stdin_data is not None:
            copiers.append(threading.Thread(target=_feed, args=(process.stdin, stdin_data)))
        if out_sink is not None:
            copiers.append(threading.Thread(target=_pump, args=(process.stdout, out_sink)))
        if err_sink is not None:
            copiers.append(threading.Thread(target=_pump, args=(process.stderr, err_sink)))
        for copier in copiers:
            copier.daemon = True
            copier.start()
        process._copiers = tuple(copiers)

        self.process = process
        return process