import errno
import os
import sys
from unittest.mock import patch

import pytest

from runcclient.command import Command
from runcclient.procio import NullIO, PipeIO, StdIO, new_null_io, new_pipe_io, new_stdio

ECHO = "import sys; sys.stdout.buffer.write(sys.stdin.buffer.read())"


def test_pipe_io_round_trip_through_child():
    pio = new_pipe_io(os.getuid(), os.getgid())
    cmd = Command(args=[sys.executable, "-c", ECHO])
    pio.apply(cmd)
    proc = cmd.popen()
    pio.close_after_start()
    data = b"through the pipes"
    pio.stdin.write(data)
    pio.stdin.close()
    out = pio.stdout.read()
    assert proc.wait() == 0
    assert out == data
    pio.close()


def test_pipe_io_apply_sets_child_ends():
    pio = new_pipe_io(os.getuid(), os.getgid())
    cmd = Command(args=["x"])
    pio.apply(cmd)
    assert "r" in cmd.stdin.mode
    assert "w" in cmd.stdout.mode
    assert "w" in cmd.stderr.mode
    assert cmd.stdout is not cmd.stderr
    pio.close()


def test_pipe_io_without_stdout():
    pio = new_pipe_io(os.getuid(), os.getgid(), open_stdout=False)
    assert pio.stdout is None
    cmd = Command(args=["x"])
    pio.apply(cmd)
    assert cmd.stdout is None
    assert cmd.stdin is not None and cmd.stderr is not None
    pio.close()


def test_pipe_io_close_after_start_closes_output_write_ends():
    pio = new_pipe_io(os.getuid(), os.getgid())
    cmd = Command(args=["x"])
    pio.apply(cmd)
    pio.close_after_start()
    assert cmd.stdout.closed and cmd.stderr.closed
    assert not cmd.stdin.closed
    assert pio.stdout.read() == b""
    pio.close()


def test_pipe_io_close_closes_everything():
    with new_pipe_io(os.getuid(), os.getgid()) as pio:
        handles = [pio.stdin, pio.stdout, pio.stderr]
    assert all(handle.closed for handle in handles)


def test_chown_failure_is_raised_on_linux():
    failure = PermissionError(errno.EPERM, "Operation not permitted")
    with patch("sys.platform", "linux"), patch("os.fchown", side_effect=failure):
        with pytest.raises(OSError, match="failed to chown stdin"):
            new_pipe_io(0, 0)


def test_chown_failure_is_ignored_on_darwin():
    failure = OSError(errno.EINVAL, "Invalid argument")
    with patch("sys.platform", "darwin"), patch("os.fchown", side_effect=failure):
        pio = new_pipe_io(0, 0)
    assert isinstance(pio, PipeIO)
    cmd = Command(args=["x"])
    pio.apply(cmd)
    cmd.stdout.write(b"ok")
    pio.close_after_start()
    assert pio.stdout.read() == b"ok"
    assert pio.stderr.read() == b""
    pio.close()


def test_pipe_io_rejected_on_windows():
    with patch("sys.platform", "win32"):
        with pytest.raises(OSError, match="Windows"):
            new_pipe_io(0, 0)


def test_stdio_uses_process_descriptors():
    sio = new_stdio()
    assert isinstance(sio, StdIO)
    cmd = Command(args=["x"])
    sio.apply(cmd)
    assert (cmd.stdin, cmd.stdout, cmd.stderr) == (0, 1, 2)
    assert sio.stdout is sys.stdout
    assert sio.close() is None


def test_null_io_sets_only_output():
    nio = new_null_io()
    assert isinstance(nio, NullIO)
    assert (nio.stdin, nio.stdout, nio.stderr) == (None, None, None)
    cmd = Command(args=["x"])
    nio.apply(cmd)
    assert cmd.stdin is None
    assert cmd.stdout is cmd.stderr
    assert cmd.stdout.name == os.devnull
    nio.close_after_start()
    assert cmd.stdout.closed
    nio.close()
    assert cmd.stdout.closed