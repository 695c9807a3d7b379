import select
import socket

import pytest

from webserv.listener import Server, create_listener_socket, create_listeners
from webserv.server_config import ServerConfig


def test_from_config_copies_settings():
    config = ServerConfig(name="example", port_host=[("8080", "127.0.0.1")])
    server = Server.from_config(config)
    assert server.name == "example"
    assert server.port_host == [("8080", "127.0.0.1")]
    server.port_host.append(("9090", "0.0.0.0"))
    assert config.port_host == [("8080", "127.0.0.1")]
    assert server.listeners == []


def test_add_listener_appends():
    server = Server()
    first, second = object(), object()
    server.add_listener(first)
    server.add_listener(second)
    assert server.listeners == [first, second]


def test_create_listener_socket_listens():
    listener = create_listener_socket("0", "127.0.0.1")
    try:
        host, port = listener.getsockname()[:2]
        assert host == "127.0.0.1"
        assert listener.gettimeout() == 0.0
        with socket.create_connection((host, port), timeout=2):
            readable, _, _ = select.select([listener], [], [], 2)
            assert readable == [listener]
            conn, _ = listener.accept()
            conn.close()
    finally:
        listener.close()


def test_create_listener_socket_bad_service():
    with pytest.raises(OSError):
        create_listener_socket("notaport", "127.0.0.1")


def test_create_listeners_shares_sockets():
    first = Server(port_host=[("0", "127.0.0.1")])
    second = Server(port_host=[("0", "127.0.0.1")])
    made = create_listeners([first, second])
    try:
        assert list(made) == [("0", "127.0.0.1")]
        assert first.listeners == [made[("0", "127.0.0.1")]]
        assert second.listeners[0] is first.listeners[0]
    finally:
        for sock in made.values():
            sock.close()


def test_create_listeners_without_addresses():
    server = Server()
    assert create_listeners([server]) == {}
    assert server.listeners == []