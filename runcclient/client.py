"""Client that drives the runc command line."""

from __future__ import annotations

import io
import json
import os
import sys
import tempfile
from collections.abc import Iterator, Mapping
from contextlib import suppress
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Any, Optional

from runcclient.command import Command, base_environment
from runcclient.container import Container
from runcclient.events import Event, Stats
from runcclient.monitor import DEFAULT_MONITOR, ExitHandle, ProcessMonitor
from runcclient.options import (
    CheckpointAction,
    CheckpointOpts,
    CreateOpts,
    DeleteOpts,
    ExecOpts,
    ExitError,
    KillOpts,
    LogFormat,
    RestoreOpts,
    StartedCallback,
    Version,
    parse_version,
)
from runcclient.procio import ProcessIO
from runcclient.utils import TopResults, parse_ps_output

DEFAULT_COMMAND = "runc"


def _text(data: bytes) -> str:
    return data.decode("utf-8", "replace").strip()


def _json_lines(stream: Any) -> Iterator[Any]:
    """Yield one decoded JSON value for every non-blank line of *stream*."""
    for line in stream:
        if line.strip():
            yield json.loads(line)


@dataclass
class Runc:
    """Runs runc subcommands.

    ``command`` overrides the runc binary; when empty, ``DEFAULT_COMMAND``
    is used. ``rootless`` of ``None`` leaves the choice to runc.
    ``setpgid`` and ``pdeath_signal`` only take effect on Linux.
    """

    command: str = ""
    root: str = ""
    debug: bool = False
    log: str = ""
    log_format: LogFormat = LogFormat.NONE
    pdeath_signal: int = 0
    setpgid: bool = False
    systemd_cgroup: bool = False
    rootless: Optional[bool] = None
    extra_args: list[str] = field(default_factory=list)
    monitor: ProcessMonitor = field(default=DEFAULT_MONITOR, repr=False, compare=False)

    def args(self) -> list[str]:
        """Return the global flags placed before every subcommand."""
        out: list[str] = []
        if self.root:
            out += ["--root", self.root]
        if self.debug:
            out.append("--debug")
        if self.log:
            out += ["--log", self.log]
        if self.log_format:
            out += ["--log-format", LogFormat(self.log_format).value]
        if self.systemd_cgroup:
            out.append("--systemd-cgroup")
        if self.rootless is not None:
            out.append(f"--rootless={'true' if self.rootless else 'false'}")
        out += self.extra_args
        return out

    # -- process plumbing -------------------------------------------------

    def _command(self, *args: str) -> Command:
        linux = sys.platform.startswith("linux")
        return Command(
            args=[self.command or DEFAULT_COMMAND, *self.args(), *args],
            env=base_environment(),
            setpgid=self.setpgid and linux,
            pdeath_signal=self.pdeath_signal if linux else 0,
        )

    def _start(self, cmd: Command) -> ExitHandle:
        if self.pdeath_signal:
            return self.monitor.start_locked(cmd)
        return self.monitor.start(cmd)

    def _wait_checked(self, cmd: Command, handle: ExitHandle) -> int:
        status = self.monitor.wait(cmd, handle)
        if status != 0:
            raise ExitError(status, cmd.program())
        return status

    def _output(
        self, cmd: Command, combined: bool, started: Optional[StartedCallback] = None
    ) -> bytes:
        buffer = io.BytesIO()
        cmd.stdout = buffer
        if combined:
            cmd.stderr = buffer
        handle = self._start(cmd)
        if started is not None:
            started(cmd.process.pid)
        status = self.monitor.wait(cmd, handle)
        data = buffer.getvalue()
        if status != 0:
            raise ExitError(status, cmd.program(), _text(data) if combined else "")
        return data

    def _run_or_error(self, cmd: Command) -> None:
        if cmd.stdout is not None or cmd.stderr is not None:
            self._wait_checked(cmd, self._start(cmd))
            return
        self._output(cmd, True)

    def _start_with_io(
        self, cmd: Command, process_io: Optional[ProcessIO], started: Optional[StartedCallback]
    ) -> int:
        handle = self._start(cmd)
        if started is not None:
            started(cmd.process.pid)
        if process_io is not None:
            process_io.close_after_start()
        return self._wait_checked(cmd, handle)

    # -- subcommands ------------------------------------------------------

    def list(self) -> list[Container]:
        """Return every container under the runc root directory."""
        data = self._output(self._command("list", "--format=json"), False)
        return [Container.from_dict(item) for item in json.loads(data) or []]

    def state(self, container_id: str) -> Container:
        """Return the state of one container."""
        data = self._output(self._command("state", container_id), True)
        return Container.from_dict(json.loads(data))

    def create(self, container_id: str, bundle: str, opts: Optional[CreateOpts] = None) -> None:
        """Create a container from *bundle* without starting its process."""
        opts = opts or CreateOpts()
        cmd = self._command("create", "--bundle", bundle, *opts.args(), container_id)
        if opts.io is not None:
            opts.io.apply(cmd)
        cmd.extra_files = list(opts.extra_files or [])
        if cmd.stdout is None and cmd.stderr is None:
            self._output(cmd, True)
            return
        self._start_with_io(cmd, opts.io, None)

    def start(self, container_id: str) -> None:
        """Start a created container."""
        self._run_or_error(self._command("start", container_id))

    def exec(
        self, container_id: str, spec: Mapping[str, Any], opts: Optional[ExecOpts] = None
    ) -> None:
        """Run another process, described by an OCI process *spec*, in the container."""
        opts = opts or ExecOpts()
        runtime_dir = os.environ.get("XDG_RUNTIME_DIR") or None
        with tempfile.NamedTemporaryFile(
            "w", prefix="runc-process", dir=runtime_dir, delete=False
        ) as handle:
            spec_path = handle.name
            try:
                json.dump(spec, handle)
                handle.write("\n")
            except BaseException:
                handle.close()
                os.remove(spec_path)
                raise
        try:
            cmd = self._command("exec", "--process", spec_path, *opts.args(), container_id)
            if opts.io is not None:
                opts.io.apply(cmd)
            if cmd.stdout is None and cmd.stderr is None:
                self._output(cmd, True, opts.started)
                return
            self._start_with_io(cmd, opts.io, opts.started)
        finally:
            with suppress(OSError):
                os.remove(spec_path)

    def run(self, container_id: str, bundle: str, opts: Optional[CreateOpts] = None) -> int:
        """Create, start and delete a container, returning its exit status.

        A non-zero status raises :class:`ExitError` carrying that status.
        """
        opts = opts or CreateOpts()
        cmd = self._command("run", "--bundle", bundle, *opts.args(), container_id)
        if opts.io is not None:
            opts.io.apply(cmd)
        cmd.extra_files = list(opts.extra_files or [])
        handle = self._start(cmd)
        if opts.started is not None:
            opts.started(cmd.process.pid)
        return self._wait_checked(cmd, handle)

    def delete(self, container_id: str, opts: Optional[DeleteOpts] = None) -> None:
        """Delete a container."""
        extra = opts.args() if opts is not None else []
        self._run_or_error(self._command("delete", *extra, container_id))

    def kill(self, container_id: str, sig: int, opts: Optional[KillOpts] = None) -> None:
        """Send signal *sig* to the container."""
        extra = opts.args() if opts is not None else []
        self._run_or_error(self._command("kill", *extra, container_id, str(int(sig))))

    def _start_events(self, *args: str) -> tuple[Command, ExitHandle]:
        import subprocess

        cmd = self._command("events", *args)
        cmd.stdout = subprocess.PIPE
        return cmd, self._start(cmd)

    def _finish_events(self, cmd: Command, handle: ExitHandle) -> None:
        with suppress(OSError):
            cmd.process.stdout.close()
        self.monitor.wait(cmd, handle)

    def stats(self, container_id: str) -> Optional[Stats]:
        """Return one snapshot of the container's resource statistics."""
        cmd, handle = self._start_events("--stats", container_id)
        try:
            for value in _json_lines(cmd.process.stdout):
                return Event.from_dict(value).stats
            raise EOFError("no statistics received from runc events")
        finally:
            self._finish_events(cmd, handle)

    def events(self, container_id: str, interval: float | timedelta) -> Iterator[Event]:
        """Start streaming events and statistics for the container.

        The returned iterator ends when runc exits. A line that cannot be
        decoded gives a final event of type ``"error"`` with ``err`` set.
        """
        seconds = interval.total_seconds() if isinstance(interval, timedelta) else interval
        cmd, handle = self._start_events(f"--interval={int(seconds)}s", container_id)
        return self._event_stream(cmd, handle)

    def _event_stream(self, cmd: Command, handle: ExitHandle) -> Iterator[Event]:
        try:
            for line in cmd.process.stdout:
                if not line.strip():
                    continue
                try:
                    event = Event.from_dict(json.loads(line))
                except (ValueError, TypeError) as exc:
                    yield Event(type="error", err=exc)
                    return
                yield event
        finally:
            self._finish_events(cmd, handle)

    def pause(self, container_id: str) -> None:
        """Pause every process in the container."""
        self._run_or_error(self._command("pause", container_id))

    def resume(self, container_id: str) -> None:
        """Resume a paused container."""
        self._run_or_error(self._command("resume", container_id))

    def ps(self, container_id: str) -> list[int]:
        """Return the pids of the processes in the container."""
        data = self._output(self._command("ps", "--format", "json", container_id), True)
        return list(json.loads(data) or [])

    def top(self, container_id: str, ps_options: str = "") -> TopResults:
        """Return the full ``ps`` table for the processes in the container."""
        cmd = self._command("ps", "--format", "table", container_id, ps_options)
        return parse_ps_output(self._output(cmd, True))

    def checkpoint(
        self, container_id: str, opts: Optional[CheckpointOpts] = None, *args: CheckpointAction
    ) -> None:
        """Checkpoint the container with criu; *args* are actions such as ``leave_running``."""
        argv = ["checkpoint"]
        extra_files: list[Any] = []
        if opts is not None:
            argv += opts.args()
            if opts.status_file is not None:
                # the first extra file becomes descriptor 3 in the child
                extra_files = [opts.status_file]
                argv += ["--status-fd", "3"]
        for action in args:
            argv = action(argv)
        cmd = self._command(*argv, container_id)
        cmd.extra_files = extra_files
        self._run_or_error(cmd)

    def restore(self, container_id: str, bundle: str, opts: Optional[RestoreOpts] = None) -> int:
        """Restore a container from a checkpoint, returning the exit status.

        A non-zero status raises :class:`ExitError` carrying that status.
        """
        argv = ["restore"]
        if opts is not None:
            argv += opts.args()
        argv += ["--bundle", bundle]
        cmd = self._command(*argv, container_id)
        process_io = opts.io if opts is not None else None
        if process_io is not None:
            process_io.apply(cmd)
        return self._start_with_io(cmd, process_io, None)

    def update(self, container_id: str, resources: Optional[Mapping[str, Any]]) -> None:
        """Apply new resource limits, given as an OCI resources object."""
        cmd = self._command("update", "--resources=-", container_id)
        cmd.stdin = (json.dumps(resources) + "\n").encode()
        self._run_or_error(cmd)

    def version(self) -> Version:
        """Return the versions reported by ``runc --version``."""
        return parse_version(self._output(self._command("--version"), False))

    def features(self) -> dict[str, Any]:
        """Return the features the runtime implements, as decoded JSON."""
        return json.loads(self._output(self._command("features"), False))