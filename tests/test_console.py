import os
import shutil
import socket
import stat
import tempfile
import threading

import pytest

from runcclient.console import ConsoleSocket, new_console_socket, new_temp_console_socket


@pytest.fixture
def short_dir():
    directory = tempfile.mkdtemp(dir="/tmp")
    yield directory
    shutil.rmtree(directory, ignore_errors=True)


def _send(path, payload, fds):
    def run():
        with socket.socket(socket.AF_UNIX, socket.SOCK_STREAM) as client:
            client.connect(path)
            if fds:
                socket.send_fds(client, [payload], fds)
            else:
                client.sendall(payload)

    thread = threading.Thread(target=run)
    thread.start()
    return thread


def _check_socket(expected_sticky):
    sock = new_temp_console_socket()
    mode = os.stat(sock.path).st_mode
    assert stat.S_ISSOCK(mode)
    assert (mode & stat.S_ISVTX) == expected_sticky
    return sock


def _ensure_cleanup(sock):
    path = sock.path
    sock.close()
    assert not os.path.exists(path)
    assert not os.path.exists(os.path.dirname(path))


def test_temp_console(monkeypatch):
    monkeypatch.setenv("XDG_RUNTIME_DIR", "")
    sock = _check_socket(0)
    _ensure_cleanup(sock)


def test_temp_console_with_xdg_runtime_dir(monkeypatch, short_dir):
    monkeypatch.setenv("XDG_RUNTIME_DIR", short_dir)
    sock = _check_socket(stat.S_ISVTX)
    assert os.path.dirname(os.path.dirname(sock.path)) == short_dir
    _ensure_cleanup(sock)


def test_console_socket_relative_path(monkeypatch, short_dir):
    monkeypatch.chdir(short_dir)
    with new_console_socket("c.sock") as sock:
        assert isinstance(sock, ConsoleSocket)
        assert sock.path == os.path.join(os.getcwd(), "c.sock")
        assert stat.S_ISSOCK(os.stat(sock.path).st_mode)
    assert not os.path.exists(sock.path)
    assert os.path.isdir(short_dir)


def test_receive_master_returns_terminal(short_dir):
    master, slave = os.openpty()
    try:
        with new_console_socket(os.path.join(short_dir, "c.sock")) as sock:
            sender = _send(sock.path, b"/dev/pts/console", [master])
            console = sock.receive_master()
            sender.join()
        with console:
            assert os.isatty(console.fileno())
            assert console.fileno() != master
    finally:
        os.close(master)
        os.close(slave)


def test_receive_master_rejects_non_terminal(short_dir):
    read_fd, write_fd = os.pipe()
    try:
        with new_console_socket(os.path.join(short_dir, "c.sock")) as sock:
            sender = _send(sock.path, b"pipe", [read_fd])
            with pytest.raises(OSError, match="not a console"):
                sock.receive_master()
            sender.join()
    finally:
        os.close(read_fd)
        os.close(write_fd)


def test_receive_master_without_descriptor(short_dir):
    with new_console_socket(os.path.join(short_dir, "c.sock")) as sock:
        sender = _send(sock.path, b"name only", [])
        with pytest.raises(OSError, match="incorrect number of bytes read"):
            sock.receive_master()
        sender.join()


def test_receive_master_with_two_descriptors(short_dir):
    read_fd, write_fd = os.pipe()
    try:
        with new_console_socket(os.path.join(short_dir, "c.sock")) as sock:
            sender = _send(sock.path, b"two", [read_fd, write_fd])
            with pytest.raises(OSError, match="recvfd"):
                sock.receive_master()
            sender.join()
    finally:
        os.close(read_fd)
        os.close(write_fd)