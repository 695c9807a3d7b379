"""Validation of the request line."""

from __future__ import annotations

import re
from typing import Any, Iterable

from webserv.errors import ErrorCodeClientError
from webserv.location import Method
from webserv.routing import select_location, select_server

PATH_MAX = 4096
NAME_MAX = 255

_PERCENT = re.compile(r"%([0-9A-Fa-f]{2})(?=.)", re.DOTALL)
_METHODS = {
    "HEAD": Method.HEAD,
    "GET": Method.GET,
    "POST": Method.POST,
    "DELETE": Method.DELETE,
}


def percent_decode(text: str) -> str:
    """Decode ``%XX`` escapes that are followed by at least one character."""
    return _PERCENT.sub(lambda match: chr(int(match.group(1), 16)), text)


def normalize_request_path(path: str) -> str:
    """Resolve ``.`` and ``..`` segments; ``..`` never climbs above the root."""
    if not path.startswith("/"):
        raise ValueError(f"Invalid HTTP path: {path}")
    segments: list[str] = []
    for segment in path.split("/"):
        if segment in ("", "."):
            continue
        if segment == "..":
            if segments:
                segments.pop()
            continue
        segments.append(segment)
    normalized = "/" + "/".join(segments)
    if path.endswith("/") and len(normalized) > 1:
        normalized += "/"
    return normalized


def check_allowed_method(method: str, allowed: Method) -> Method:
    """The method's flag when ``allowed`` contains it, otherwise an empty flag."""
    bit = _METHODS.get(method)
    if bit is None or not allowed & bit:
        return Method(0)
    return bit


def _check_lengths(client: Any) -> None:
    if len(client.request_path) > PATH_MAX:
        raise ErrorCodeClientError(client, 414, "URI too long")
    if any(len(segment) > NAME_MAX for segment in client.request_path.split("/")):
        raise ErrorCodeClientError(client, 414, "URI too long")


def validate_head(client: Any, servers: Iterable[Any]) -> None:
    """Parse and check the request line, choosing server and location."""
    method, path, version = (client.header.split() + ["", "", ""])[:3]
    client.method = method
    client.version = version
    client.request_path = percent_decode(path)
    if not (client.method and client.request_path and client.version):
        raise ErrorCodeClientError(client, 400, "Malformed request line")
    ip, port = client.local_address
    select_server(client, servers, ip, port)
    select_location(client)
    client.use_method = check_allowed_method(
        client.method, client.location.allowed_methods
    )
    if not client.use_method:
        raise ErrorCodeClientError(client, 405, f"Method not allowed: {client.method}")
    try:
        client.request_path = normalize_request_path(client.request_path)
    except ValueError as exc:
        raise ErrorCodeClientError(
            client, 400, f"Invalid HTTP path: {client.request_path}"
        ) from exc
    _check_lengths(client)
    if client.version != "HTTP/1.1":
        raise ErrorCodeClientError(client, 400, f"Invalid version: {client.version}")