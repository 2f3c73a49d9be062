"""Starting runc child processes and collecting their exit status."""

from __future__ import annotations

import queue
import subprocess
import threading
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

from runcclient.command import Command


@dataclass(frozen=True)
class Exit:
    """How and when a process ended."""

    timestamp: datetime
    pid: int
    status: int


class ExitHandle:
    """Delivers the :class:`Exit` of a started process once it ends."""

    def __init__(self) -> None:
        self._done = threading.Event()
        self._exit: Optional[Exit] = None

    def _set(self, exit_info: Exit) -> None:
        self._exit = exit_info
        self._done.set()

    def result(self, timeout: Optional[float] = None) -> Exit:
        """Block until the process has exited and return its exit information."""
        if not self._done.wait(timeout):
            raise TimeoutError("process has not exited yet")
        assert self._exit is not None
        return self._exit


def _exit_status(process: subprocess.Popen) -> int:
    try:
        code = process.wait()
    except OSError:
        return 255
    # a process killed by a signal has no exit status
    return -1 if code < 0 else code


def _watch(process: subprocess.Popen, handle: ExitHandle) -> None:
    status = _exit_status(process)
    handle._set(Exit(timestamp=datetime.now(timezone.utc), pid=process.pid, status=status))


class ProcessMonitor:
    """Starts commands and reports their exits through an :class:`ExitHandle`."""

    def start(self, command: Command) -> ExitHandle:
        """Start *command* and watch for its exit in the background."""
        process = command.popen()
        handle = ExitHandle()
        threading.Thread(target=_watch, args=(process, handle), daemon=True).start()
        return handle

    def start_locked(self, command: Command) -> ExitHandle:
        """Start *command* from a dedicated thread that lives until the child exits.

        Used when the parent thread matters to the child, as with a
        parent-death signal.
        """
        started: queue.Queue[Optional[BaseException]] = queue.Queue(maxsize=1)
        handle = ExitHandle()

        def run() -> None:
            try:
                process = command.popen()
            except BaseException as exc:
                started.put(exc)
                return
            started.put(None)
            _watch(process, handle)

        threading.Thread(target=run, daemon=True).start()
        error = started.get()
        if error is not None:
            raise error
        return handle

    def wait(self, command: Command, handle: ExitHandle) -> int:
        """Block until the process behind *handle* exits and return its status."""
        return handle.result().status


DEFAULT_MONITOR = ProcessMonitor()