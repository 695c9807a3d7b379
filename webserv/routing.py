"""Choosing the server and location block that serve a request."""

from __future__ import annotations

import ipaddress
from typing import Any, Iterable

from webserv.errors import ErrorCodeClientError
from webserv.location import Location

_HOST_KEY = "Host:"
_HOST_END = " \t\n\r"


def num_ip_to_string(addr: int) -> str:
    """Dotted-quad form of an IPv4 address given as a host-order integer."""
    return str(ipaddress.IPv4Address(addr))


def _request_host(header: str) -> str:
    start = header.find(_HOST_KEY)
    if start == -1:
        return ""
    rest = header[start + len(_HOST_KEY):].lstrip(" \t")
    end = next((i for i, char in enumerate(rest) if char in _HOST_END), len(rest))
    return rest[:end]


def select_server(client: Any, servers: Iterable[Any], ip: str, port: int) -> Any:
    """Pick the server for the address the client connected to.

    A server listening on the address whose name equals the request's Host
    wins; otherwise the first server listening on the address is used.
    """
    client.used_server = None
    hostname = _request_host(client.header)
    for server in servers:
        for server_port, host in server.port_host:
            if ("0.0.0.0" in host or ip in host) and str(port) == server_port:
                if hostname == server.name:
                    client.used_server = server
                    return server
                if client.used_server is None:
                    client.used_server = server
    return client.used_server


def select_location(client: Any) -> Location:
    """Pick the first location whose path prefixes the request path."""
    server = client.used_server
    if server is not None:
        for path, location in server.locations:
            if client.request_path.startswith(path):
                client.location = location
                return location
    raise ErrorCodeClientError(
        client, 400, "Couldn't find location block: malformed request"
    )


def extract_header(header: str, key: str) -> str:
    """Value following ``key`` and one separator up to the end of its line."""
    start = header.find(key)
    if start == -1:
        return ""
    start += len(key) + 1
    if start > len(header):
        return ""
    end = header.find("\r\n", start)
    return header[start:] if end == -1 else header[start:end]