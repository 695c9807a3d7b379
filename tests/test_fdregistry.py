import os
import socket

import pytest

from webserv.fdregistry import FileDescriptorRegistry


def test_set_and_close_fd_closes_descriptor():
    registry = FileDescriptorRegistry()
    read_end, write_end = os.pipe()
    try:
        assert registry.set_fd(read_end) is True
        assert read_end in registry
        assert registry.close_fd(read_end) is True
        assert read_end not in registry
        with pytest.raises(OSError):
            os.fstat(read_end)
    finally:
        os.close(write_end)


def test_close_unknown_fd_reports_and_returns_false(capsys):
    registry = FileDescriptorRegistry()
    assert registry.close_fd(987654) is False
    assert "987654 not found" in capsys.readouterr().err


def test_limit_is_enforced(capsys):
    registry = FileDescriptorRegistry(limit=1)
    read_end, write_end = os.pipe()
    try:
        assert registry.set_fd(read_end) is True
        assert registry.set_fd(write_end) is False
        assert len(registry) == 1
        assert "File descriptor limit reached" in capsys.readouterr().err
    finally:
        registry.cleanup()
        os.close(write_end)


def test_cleanup_closes_sockets_and_pipes():
    registry = FileDescriptorRegistry()
    left, right = socket.socketpair()
    read_end, write_end = os.pipe()
    registry.set_fd(left)
    registry.set_fd(read_end)
    registry.cleanup()
    assert left.fileno() == -1
    assert len(registry) == 0
    with pytest.raises(OSError):
        os.fstat(read_end)
    right.close()
    os.close(write_end)


def test_context_manager_cleans_up():
    left, right = socket.socketpair()
    with FileDescriptorRegistry() as registry:
        registry.set_fd(left)
    assert left.fileno() == -1
    right.close()