"""A unix socket that receives the pty master created by runc."""

from __future__ import annotations

import array
import errno
import os
import shutil
import socket
import stat
import tempfile
from contextlib import suppress
from typing import BinaryIO, Optional

_MAX_NAME_LEN = 4096


class ConsoleSocket:
    """Listens on a unix socket for the pty master sent by runc."""

    def __init__(self, listener: socket.socket, path: str, rmdir: bool = False) -> None:
        self._listener = listener
        self._path = path
        self._rmdir = rmdir
        self._closed = False

    @property
    def path(self) -> str:
        """Path of the socket on disk."""
        return self._path

    def receive_master(self) -> BinaryIO:
        """Block until a pty master arrives and return it as an open file."""
        conn, _ = self._listener.accept()
        with conn:
            fd = _recv_fd(conn)
        if not os.isatty(fd):
            os.close(fd)
            raise OSError(errno.ENOTTY, "provided file is not a console")
        return open(fd, "r+b", buffering=0)

    def close(self) -> None:
        """Close the socket and remove it, with its directory for temporary sockets."""
        if self._closed:
            return
        self._closed = True
        error: Optional[OSError] = None
        try:
            self._listener.close()
        except OSError as exc:
            error = exc
        try:
            if self._rmdir:
                shutil.rmtree(os.path.dirname(self._path))
            else:
                with suppress(FileNotFoundError):
                    os.unlink(self._path)
        except OSError as exc:
            error = error or exc
        if error is not None:
            raise error

    def __enter__(self) -> ConsoleSocket:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()


def _recv_fd(conn: socket.socket) -> int:
    """Receive exactly one descriptor sent with its file name as payload."""
    fds = array.array("i")
    data, ancdata, _flags, _addr = conn.recvmsg(_MAX_NAME_LEN, socket.CMSG_SPACE(fds.itemsize))
    for level, kind, payload in ancdata:
        if level == socket.SOL_SOCKET and kind == socket.SCM_RIGHTS:
            fds.frombytes(payload[: len(payload) - len(payload) % fds.itemsize])
    try:
        if len(data) >= _MAX_NAME_LEN or not ancdata:
            raise OSError(
                f"recvfd: incorrect number of bytes read (n={len(data)} oobn={len(ancdata)})"
            )
        if len(ancdata) != 1:
            raise OSError(f"recvfd: number of SCMs is not 1: {len(ancdata)}")
        if len(fds) != 1:
            raise OSError(f"recvfd: number of fds is not 1: {len(fds)}")
    except OSError:
        for fd in fds:
            with suppress(OSError):
                os.close(fd)
        raise
    return fds[0]


def _listen(path: str) -> socket.socket:
    listener = socket.socket(socket.AF_UNIX, socket.SOCK_STREAM)
    try:
        listener.bind(path)
        listener.listen()
    except OSError:
        listener.close()
        raise
    return listener


def new_console_socket(path: str | os.PathLike[str]) -> ConsoleSocket:
    """Listen on a unix socket at *path* for a pty master."""
    absolute = os.path.abspath(os.fspath(path))
    return ConsoleSocket(_listen(absolute), absolute)


def new_temp_console_socket() -> ConsoleSocket:
    """Listen on a socket in a new temporary directory, removed again on close.

    The directory is created under ``$XDG_RUNTIME_DIR`` when that is set,
    and the socket then gets mode 0755 with the sticky bit.
    """
    runtime_dir = os.environ.get("XDG_RUNTIME_DIR", "")
    directory = tempfile.mkdtemp(prefix="pty", dir=runtime_dir or None)
    absolute = os.path.abspath(os.path.join(directory, "pty.sock"))
    try:
        listener = _listen(absolute)
    except OSError:
        shutil.rmtree(directory, ignore_errors=True)
        raise
    try:
        if runtime_dir:
            os.chmod(absolute, 0o755 | stat.S_ISVTX)
    except OSError:
        listener.close()
        shutil.rmtree(directory, ignore_errors=True)
        raise
    return ConsoleSocket(listener, absolute, rmdir=True)