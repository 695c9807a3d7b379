"""Reading request headers and serving the request they describe."""

from __future__ import annotations

import contextlib
import errno
import os
import stat
import sys
from typing import Any

from webserv.body import ContentType, get_content_type, handle_chunks
from webserv.client import ParseState
from webserv.directives import AutoIndex
from webserv.errors import ClientError, ErrorCodeClientError
from webserv.location import Method
from webserv.transfer import GetTransfer, PostTransfer, process_http_body
from webserv.utils import get_file_length, stoull_safe
from webserv.validation import validate_head

_ENCODING = "latin-1"
_HEADER_END = "\r\n\r\n"
_FAVICON = "/favicon.ico"
_FAVICON_REPLACEMENT = "/favicon.svg"

RESPONSE_CODES = {
    200: "OK",
    400: "Bad Request",
    403: "Forbidden",
    404: "Not Found",
    405: "Method Not Allowed",
    413: "Payload Too Large",
    414: "URI Too Long",
    431: "Request Header Fields Too Large",
    500: "Internal Server Error",
    501: "Not Implemented",
    502: "Bad Gateway",
    503: "Service Unavailable",
    504: "Gateway Timeout",
}

MIME_TYPES = {
    "html": "text/html",
    "htm": "text/html",
    "css": "text/css",
    "js": "application/javascript",
    "json": "application/json",
    "png": "image/png",
    "jpg": "image/jpeg",
    "jpeg": "image/jpeg",
    "gif": "image/gif",
    "svg": "image/svg+xml",
    "ico": "image/x-icon",
    "pdf": "application/pdf",
    "txt": "text/plain",
    "mp4": "video/mp4",
    "webm": "video/webm",
    "xml": "application/xml",
}
DEFAULT_MIME_TYPE = "application/octet-stream"

_SAFE_FILENAME_CHARS = (
    ("%20", " "),
    ("%21", "!"),
    ("%24", "$"),
    ("%25", "%"),
    ("%26", "&"),
)

_DELETE_ERROR_CODES = {
    errno.EACCES: 403,
    errno.EPERM: 403,
    errno.EROFS: 403,
    errno.ENOENT: 404,
    errno.ENOTDIR: 404,
    errno.EISDIR: 405,
}


def _as_text(data: str | bytes) -> str:
    return data.decode(_ENCODING) if isinstance(data, bytes) else data


def _send(client: Any, text: str) -> None:
    """Send a whole reply; a failing socket is left for the event loop to find."""
    if client.sock is None:
        return
    with contextlib.suppress(OSError):
        client.sock.sendall(text.encode(_ENCODING))


def _read_connection(client: Any) -> None:
    index = client.header.find("Connection:")
    if index == -1:
        return
    if client.header.find("close\r\n", index) != -1:
        client.keep_alive = False
    elif client.header.find("keep-alive\r\n", index) != -1:
        client.keep_alive = True
    else:
        raise ErrorCodeClientError(
            client, 400, f"Invalid Connection header value: {client.header[index:]}"
        )


def _body_headers_complete(client: Any) -> bool:
    """True once the part headers of a POST body have fully arrived."""
    client.body_end = client.body.find(_HEADER_END)
    if client.body_end == -1:
        return False
    client.header_parse_state = ParseState.BODY_READY
    return True


def parse_http_header(client: Any, data: str | bytes) -> bool:
    """Collect header data; return True when the request is ready to handle.

    The servers to route between are taken from ``client.servers``.
    """
    client.header += _as_text(data)
    header_end = client.header.find(_HEADER_END)
    if header_end == -1:
        return False
    split = header_end + len(_HEADER_END)
    client.body = client.header[split:]
    client.header = client.header[:split]
    _read_connection(client)
    validate_head(client, getattr(client, "servers", ()))
    parse_headers(client)
    if "\0" in client.header:
        raise ErrorCodeClientError(client, 400, "Null bytes not allowed in HTTP request")
    root = client.location.root_dir
    if root.endswith("/"):
        client.root_path = root + client.request_path[1:]
    else:
        client.root_path = root + client.request_path
    decode_safe_filename_chars(client)
    if client.method == "POST":
        if client.header_fields.get("Transfer-Encoding") == "chunked":
            client.header_parse_state = ParseState.BODY_CHUNKED
            return True
        client.header_parse_state = ParseState.BODY_AWAITING
        return _body_headers_complete(client)
    client.header_parse_state = ParseState.BODY_READY
    return True


def parse_http_body(client: Any, data: str | bytes) -> bool:
    """Collect body data; return True once the part headers are complete."""
    client.body += _as_text(data)
    return _body_headers_complete(client)


def parse_headers(client: Any) -> dict[str, str]:
    """Split the header lines into ``client.header_fields``."""
    header = client.header
    start = 0
    while start < len(header):
        end = header.find("\r\n", start)
        if end == -1:
            raise ErrorCodeClientError(
                client,
                400,
                "Malformed HTTP request: header line not properly terminated",
            )
        line = header[start:end]
        if not line:
            break
        key, colon, value = line.partition(":")
        if colon:
            client.header_fields[key.strip(" \t")] = value.strip(" \t")
        start = end + 2
    return client.header_fields


def decode_safe_filename_chars(client: Any) -> str:
    """Decode the escapes allowed in file names; any other ``%`` is an error."""
    path = client.root_path
    for escape, char in _SAFE_FILENAME_CHARS:
        while escape in path:
            path = path.replace(escape, char, 1)
    client.root_path = path
    if "%" in path:
        raise ErrorCodeClientError(client, 400, f"bad filename given by client:{path}")
    return path


def find_index_file(client: Any) -> None:
    """Point ``client.root_path`` at the first readable index page."""
    for page in client.location.index_pages:
        try:
            status = os.stat(page)
        except OSError:
            continue
        if not stat.S_ISREG(status.st_mode):
            continue
        if not os.access(page, os.R_OK):
            print(f"locateRequestedFile: cannot read {page}", file=sys.stderr)
            continue
        client.root_path = page
        return
    if client.location.autoindex_mode != AutoIndex.ON:
        raise ErrorCodeClientError(client, 404, "couldn't find index page")


def locate_requested_file(client: Any) -> None:
    """Check that the requested path exists, resolving directories to an index."""
    try:
        status = os.stat(client.root_path)
    except OSError as exc:
        raise ErrorCodeClientError(
            client,
            404,
            f"Couldn't find file: {client.root_path}, because: {exc.strerror}",
        ) from exc
    if stat.S_ISDIR(status.st_mode):
        find_index_file(client)
    elif stat.S_ISREG(status.st_mode):
        if not os.access(client.root_path, os.R_OK):
            print(f"locateRequestedFile: cannot read {client.root_path}", file=sys.stderr)
    else:
        raise ErrorCodeClientError(
            client, 404, "Forbidden: Not a regular file or directory"
        )


def get_mime_type(path: str) -> str:
    """MIME type for the extension after the last dot of ``path``."""
    dot = path.rfind(".")
    if dot != -1:
        mime = MIME_TYPES.get(path[dot + 1:])
        if mime is not None:
            return mime
    return DEFAULT_MIME_TYPE


def http_response(client: Any, code: int, path: str, file_size: int) -> str:
    """The status line and headers of a reply."""
    reason = RESPONSE_CODES.get(code)
    if reason is None:
        raise ValueError("Couldn't find code")
    lines = [f"HTTP/1.1 {code} {reason}"]
    if path:
        lines.append(f"Content-Type: {get_mime_type(path)}")
    lines.append(f"Content-Length: {file_size}")
    lines.append(f"Connection: {'keep-alive' if client.keep_alive else 'close'}")
    return "\r\n".join(lines) + "\r\n\r\n"


def get_content_length(client: Any) -> int:
    """Read and check the Content-Length header."""
    value = client.header_fields.get("Content-Length")
    if value is None:
        raise ClientError("Broken POST request")
    try:
        length = stoull_safe(value)
    except ValueError as exc:
        raise ClientError(str(exc)) from exc
    if length > client.location.client_body_size:
        raise ErrorCodeClientError(
            client, 413, f"Content-Length exceeds maximum allowed: {length}"
        )
    if length == 0:
        raise ClientError("Content-Length cannot be zero.")
    client.content_length = length
    return length


def get(client: Any) -> GetTransfer:
    """Start sending the requested file."""
    locate_requested_file(client)
    try:
        file = open(client.root_path, "rb")
    except OSError as exc:
        raise ClientError("open failed") from exc
    try:
        file_size = get_file_length(client.root_path)
    except ClientError:
        file.close()
        raise
    header = http_response(client, 200, client.root_path, file_size)
    return GetTransfer(client, file, header, file_size)


def _head(client: Any) -> None:
    locate_requested_file(client)
    _send(client, http_response(client, 200, "txt", 0))


def _post(client: Any) -> PostTransfer | None:
    if client.header_parse_state == ParseState.BODY_CHUNKED:
        handle_chunks(client)
        return None
    if client.header_parse_state != ParseState.BODY_READY:
        return None
    if get_content_type(client) is not ContentType.MULTIPART:
        raise ClientError(
            f"Unsupported Content-Type: {client.header_fields.get('Content-Type')}"
        )
    if "Content-Length" in client.header_fields:
        get_content_length(client)
    return process_http_body(client)


def _delete(client: Any) -> None:
    try:
        os.remove("." + client.request_path)
    except OSError as exc:
        code = _DELETE_ERROR_CODES.get(exc.errno, 500)
        raise ErrorCodeClientError(
            client, code, f"Remove failed: {exc.strerror}"
        ) from exc
    body = "File deleted"
    _send(client, http_response(client, 200, "txt", len(body)) + body)
    client.http_cleanup()


def handle_request(client: Any) -> GetTransfer | PostTransfer | None:
    """Serve a fully parsed request.

    Returns the transfer that still has data to move, or None when the
    reply has been sent already.
    """
    favicon = client.root_path.find(_FAVICON)
    if favicon != -1:
        client.root_path = client.root_path[:favicon] + _FAVICON_REPLACEMENT
    if "Host" not in client.header_fields:
        raise ErrorCodeClientError(
            client, 400, f"Host header is missing in request: {client.header}"
        )
    method = client.use_method
    if method == Method.HEAD:
        _head(client)
        return None
    if method == Method.GET:
        return get(client)
    if method == Method.POST:
        return _post(client)
    if method == Method.DELETE:
        _delete(client)
        return None
    raise ErrorCodeClientError(client, 405, f"Method Not Allowed: {client.method}")