"""Options for runc subcommands, version parsing and the exit error."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, BinaryIO, Callable, Optional, Protocol

from runcclient.procio import ProcessIO

CheckpointAction = Callable[[list[str]], list[str]]
StartedCallback = Callable[[int], None]


class LogFormat(str, Enum):
    """Log formats runc can write."""

    NONE = ""
    JSON = "json"
    TEXT = "text"


class CgroupMode(str, Enum):
    """How cgroups are handled when checkpointing a container."""

    SOFT = "soft"
    FULL = "full"
    STRICT = "strict"


class HasPath(Protocol):
    """Anything that exposes the path of a console socket."""

    @property
    def path(self) -> str: ...


class ExitError(Exception):
    """A runc process exited with a non-zero status."""

    def __init__(self, status: int, program: str = "", output: str = "") -> None:
        self.status = status
        self.program = program
        self.output = output
        super().__init__(status)

    def __str__(self) -> str:
        text = f"exit status {self.status}"
        if self.program:
            text = f"{self.program} did not terminate successfully: {text}"
        if self.output:
            text = f"{text}: {self.output}"
        return text


@dataclass(frozen=True)
class Version:
    """Versions of runc, its commit and the runtime spec it implements."""

    runc: str = ""
    commit: str = ""
    spec: str = ""


def parse_version(data: bytes | str) -> Version:
    """Parse the output of ``runc --version``.

    Output that does not start with ``runc version`` gives an empty version.
    """
    text = data.decode("utf-8", "replace") if isinstance(data, (bytes, bytearray)) else data
    first, *rest = text.strip().split("\n")
    prefix = "runc version "
    if not first.startswith(prefix):
        return Version()
    commit = spec = ""
    for part in rest:
        if part.startswith("commit: "):
            commit = part[len("commit: "):]
        elif part.startswith("spec: "):
            spec = part[len("spec: "):]
    return Version(runc=first[len(prefix):], commit=commit, spec=spec)


def leave_running(args: list[str]) -> list[str]:
    """Keep the container running after the checkpoint completes."""
    return [*args, "--leave-running"]


def pre_dump(args: list[str]) -> list[str]:
    """Make a pre-dump that a later checkpoint completes."""
    return [*args, "--pre-dump"]


def _pid_file_args(pid_file: str | os.PathLike[str]) -> list[str]:
    if not pid_file:
        return []
    return ["--pid-file", os.path.abspath(os.fspath(pid_file))]


def _console_args(console_socket: Optional[HasPath]) -> list[str]:
    if console_socket is None:
        return []
    return ["--console-socket", console_socket.path]


@dataclass
class CreateOpts:
    """Options for ``runc create`` and ``runc run``.

    ``extra_files`` are passed to the child as descriptors 3 and up; when
    it is a list, even an empty one, ``--preserve-fds`` is given.
    ``started`` is called with the child's pid once it is running.
    """

    io: Optional[ProcessIO] = None
    pid_file: str = ""
    console_socket: Optional[HasPath] = None
    detach: bool = False
    no_pivot: bool = False
    no_new_keyring: bool = False
    extra_files: Optional[list[Any]] = None
    started: Optional[StartedCallback] = None
    extra_args: list[str] = field(default_factory=list)

    def args(self) -> list[str]:
        """Return the command-line flags for these options."""
        out = _pid_file_args(self.pid_file)
        out += _console_args(self.console_socket)
        if self.no_pivot:
            out.append("--no-pivot")
        if self.no_new_keyring:
            out.append("--no-new-keyring")
        if self.detach:
            out.append("--detach")
        if self.extra_files is not None:
            out += ["--preserve-fds", str(len(self.extra_files))]
        out += self.extra_args
        return out


@dataclass
class ExecOpts:
    """Options for ``runc exec``."""

    io: Optional[ProcessIO] = None
    pid_file: str = ""
    console_socket: Optional[HasPath] = None
    detach: bool = False
    started: Optional[StartedCallback] = None
    extra_args: list[str] = field(default_factory=list)

    def args(self) -> list[str]:
        """Return the command-line flags for these options."""
        out = _console_args(self.console_socket)
        if self.detach:
            out.append("--detach")
        out += _pid_file_args(self.pid_file)
        out += self.extra_args
        return out


@dataclass
class DeleteOpts:
    """Options for ``runc delete``."""

    force: bool = False
    extra_args: list[str] = field(default_factory=list)

    def args(self) -> list[str]:
        """Return the command-line flags for these options."""
        out = ["--force"] if self.force else []
        return out + self.extra_args


@dataclass
class KillOpts:
    """Options for ``runc kill``."""

    all: bool = False
    extra_args: list[str] = field(default_factory=list)

    def args(self) -> list[str]:
        """Return the command-line flags for these options."""
        out = ["--all"] if self.all else []
        return out + self.extra_args


@dataclass
class CheckpointOpts:
    """Options for a criu checkpoint through ``runc checkpoint``.

    ``status_file`` receives a NUL byte from criu once lazy pages are ready.
    """

    image_path: str = ""
    work_dir: str = ""
    parent_path: str = ""
    allow_open_tcp: bool = False
    skip_inflight_tcp: bool = False
    allow_external_unix_sockets: bool = False
    allow_terminal: bool = False
    criu_page_server: str = ""
    file_locks: bool = False
    cgroups: Optional[CgroupMode] = None
    empty_namespaces: list[str] = field(default_factory=list)
    lazy_pages: bool = False
    status_file: Optional[BinaryIO] = None
    extra_args: list[str] = field(default_factory=list)

    def args(self) -> list[str]:
        """Return the command-line flags for these options."""
        out: list[str] = []
        if self.image_path:
            out += ["--image-path", self.image_path]
        if self.work_dir:
            out += ["--work-path", self.work_dir]
        if self.parent_path:
            out += ["--parent-path", self.parent_path]
        if self.allow_open_tcp:
            out.append("--tcp-established")
        if self.allow_external_unix_sockets:
            out.append("--ext-unix-sk")
        if self.skip_inflight_tcp:
            out.append("--skip-in-flight")
        if self.allow_terminal:
            out.append("--shell-job")
        if self.criu_page_server:
            out += ["--page-server", self.criu_page_server]
        if self.file_locks:
            out.append("--file-locks")
        if self.cgroups:
            out += ["--manage-cgroups-mode", CgroupMode(self.cgroups).value]
        for namespace in self.empty_namespaces:
            out += ["--empty-ns", namespace]
        if self.lazy_pages:
            out.append("--lazy-pages")
        out += self.extra_args
        return out


@dataclass
class RestoreOpts:
    """Options for ``runc restore``: checkpoint options plus restore-only flags."""

    checkpoint: CheckpointOpts = field(default_factory=CheckpointOpts)
    io: Optional[ProcessIO] = None
    detach: bool = False
    pid_file: str = ""
    no_subreaper: bool = False
    no_pivot: bool = False
    console_socket: Optional[HasPath] = None
    extra_args: list[str] = field(default_factory=list)

    def args(self) -> list[str]:
        """Return the command-line flags for these options."""
        out = self.checkpoint.args()
        if self.detach:
            out.append("--detach")
        out += _pid_file_args(self.pid_file)
        out += _console_args(self.console_socket)
        if self.no_pivot:
            out.append("--no-pivot")
        if self.no_subreaper:
            out.append("-no-subreaper")
        out += self.extra_args
        return out