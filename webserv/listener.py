"""Servers built from configurations, and the sockets they listen on."""

from __future__ import annotations

import copy
import socket
from dataclasses import dataclass, field, fields
from typing import Iterable

from webserv.server_config import ServerConfig


@dataclass
class Server(ServerConfig):
    """A configured server together with its listening sockets."""

    listeners: list[socket.socket] = field(default_factory=list)

    @classmethod
    def from_config(cls, config: ServerConfig) -> Server:
        """Build a server holding its own copy of ``config``."""
        values = {
            item.name: copy.deepcopy(getattr(config, item.name))
            for item in fields(ServerConfig)
            if item.init
        }
        return cls(**values)

    def add_listener(self, sock: socket.socket) -> None:
        self.listeners.append(sock)


def create_listener_socket(port: str, host: str | None) -> socket.socket:
    """Bind a non-blocking TCP socket to ``host``:``port`` and start listening."""
    try:
        candidates = socket.getaddrinfo(
            host, port, socket.AF_UNSPEC, socket.SOCK_STREAM, 0, socket.AI_PASSIVE
        )
    except socket.gaierror as exc:
        raise OSError(f"Server getaddrinfo: {exc.strerror}") from exc
    last_error: OSError | None = None
    for family, socktype, proto, _, address in candidates:
        try:
            sock = socket.socket(family, socktype, proto)
        except OSError as exc:
            last_error = exc
            continue
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        try:
            sock.bind(address)
        except OSError as exc:
            sock.close()
            last_error = exc
            continue
        try:
            sock.setblocking(False)
            sock.listen(socket.SOMAXCONN)
        except OSError as exc:
            sock.close()
            raise OSError(f"Server listen: {exc.strerror}") from exc
        return sock
    reason = last_error.strerror if last_error is not None else "no usable address"
    raise OSError(f"Server bind_to_socket: {reason}")


def create_listeners(
    servers: Iterable[Server],
) -> dict[tuple[str, str], socket.socket]:
    """Give every server a socket per address, sharing sockets between servers.

    Returns the sockets created, keyed by (port, host).
    """
    made: dict[tuple[str, str], socket.socket] = {}
    for server in servers:
        for port_host in server.port_host:
            sock = made.get(port_host)
            if sock is None:
                port, host = port_host
                sock = create_listener_socket(port, host)
                made[port_host] = sock
            server.add_listener(sock)
    return made