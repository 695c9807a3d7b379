"""Moving file data between disk and client sockets.

A :class:`GetTransfer` streams a response header and a file to a client a
piece at a time. A :class:`PostTransfer` writes an uploaded multipart body
to disk as it arrives, stopping at the closing boundary.
"""

from __future__ import annotations

import os
from typing import Any, BinaryIO

from webserv.body import get_body_info
from webserv.client import DISCONNECT_DELAY_SECONDS
from webserv.errors import ClientError, ErrorCodeClientError

CLIENT_BUFFER_SIZE = 20
_ENCODING = "latin-1"
_UPLOAD_FLAGS = os.O_WRONLY | os.O_TRUNC | os.O_CREAT
_UPLOAD_MODE = 0o700


def _as_text(data: str | bytes) -> str:
    return data.decode(_ENCODING) if isinstance(data, bytes) else data


def _send(client: Any, data: bytes) -> None:
    """Send a whole reply; a failing socket is left for the event loop to find."""
    if client.sock is None:
        return
    try:
        client.sock.sendall(data)
    except OSError:
        pass


def post_success_response(client: Any) -> str:
    """The reply that confirms a finished upload, naming the stored file."""
    body = client.root_path + "\n"
    connection = "keep-alive" if client.keep_alive else "close"
    return (
        "HTTP/1.1 200 OK\r\n"
        "Content-Type: text/plain\r\n"
        f"Connection: {connection}\r\n"
        f"Content-Length: {len(body)}\r\n"
        "\r\n"
        f"{body}"
    )


def _finish_upload(client: Any, file: BinaryIO) -> None:
    file.close()
    _send(client, post_success_response(client).encode(_ENCODING))
    print(f"POST success, clientFD: {client.fd}, rootpath: {client.root_path}")


def _error_post_transfer(
    client: Any, code: int, message: str, file: BinaryIO, exc: OSError
) -> ErrorCodeClientError:
    """Remove the partial upload, close it and build the error to raise."""
    try:
        os.remove(client.root_path)
    except OSError:
        print(f"remove failed on file:{client.root_path}")
    try:
        file.close()
    except OSError:
        pass
    return ErrorCodeClientError(
        client, code, f"{message}{exc.strerror}, on file: {client.root_path}"
    )


def _split_point(buffer: str, boundary: str) -> tuple[int, int]:
    """How much of ``buffer`` is file data, and where the boundary is (-1 if absent).

    Without a boundary everything but a tail long enough to hold the start
    of one is file data. With a boundary, the data ends at the last CRLF
    before it.
    """
    found = buffer.find(boundary)
    size = max(len(buffer) - (len(boundary) + 6), 0)
    if found != -1:
        crlf = buffer.rfind("\r\n", 0, found + 1)
        if crlf > 0:
            size = crlf
    return size, found


def _write_data(client: Any, file: BinaryIO, data: str) -> int:
    try:
        file.write(data.encode(_ENCODING))
    except OSError as exc:
        raise _error_post_transfer(
            client, 500, "write failed post request: ", file, exc
        ) from exc
    return len(data)


class GetTransfer:
    """Send a response header followed by the contents of an open file."""

    def __init__(
        self,
        client: Any,
        file: BinaryIO | None,
        response_header: str,
        file_size: int,
        buffer_size: int = CLIENT_BUFFER_SIZE,
    ) -> None:
        self.client = client
        self.file = file
        self.buffer = response_header.encode(_ENCODING)
        self.header_size = len(self.buffer)
        self.file_size = file_size
        self.buffer_size = buffer_size
        self.offset = 0
        self.bytes_read_total = 0
        self.wants_write = True

    def read_to_buf(self) -> None:
        """Read the next piece of the file into the send buffer."""
        if self.file is None:
            return
        try:
            data = self.file.read(self.buffer_size)
        except OSError as exc:
            raise ClientError(f"handlingTransfer read: {exc.strerror}") from exc
        self.bytes_read_total += len(data)
        if data:
            self.buffer += data
            self.wants_write = True
        if not data or self.bytes_read_total >= self.file_size:
            self.file.close()
            self.file = None

    def handle(self) -> bool:
        """Send what can be sent; return True once everything has gone out."""
        self.read_to_buf()
        if self.client.sock is None:
            raise ClientError("handlingTransfer send: client has no socket")
        try:
            sent = self.client.sock.send(self.buffer)
        except OSError as exc:
            raise ClientError(f"handlingTransfer send: {exc.strerror}") from exc
        self.offset += sent
        self.client.set_disconnect_time(DISCONNECT_DELAY_SECONDS)
        if self.offset >= self.file_size + self.header_size:
            print(
                f"completed get request for file: {self.client.root_path}, "
                f"on fd: {self.client.fd}"
            )
            self.wants_write = False
            return True
        self.buffer = self.buffer[sent:]
        return False


class PostTransfer:
    """Write the rest of an uploaded multipart file as its data arrives."""

    def __init__(
        self,
        client: Any,
        file: BinaryIO,
        bytes_written: int = 0,
        file_size: int = 0,
        buffer: str = "",
    ) -> None:
        self.client = client
        self.file = file
        self.bytes_written_total = bytes_written
        self.file_size = file_size
        self.buffer = buffer
        self.found_ending_boundary = False
        self.wants_write = False

    def handle(self, data: str | bytes) -> bool:
        """Take newly received data; return True when the upload is complete."""
        client = self.client
        boundary = client.body_boundary
        self.buffer += _as_text(data)
        if self.found_ending_boundary:
            if self.buffer.find("\r\n") != -1:
                return True
            if len(self.buffer) - len(boundary) > 4:
                raise ErrorCodeClientError(
                    client,
                    400,
                    "couldn't find \\r\\n after ending boundary in post request",
                )
        write_size, boundary_found = _split_point(self.buffer, boundary)
        if write_size > 0:
            self.bytes_written_total += _write_data(
                client, self.file, self.buffer[:write_size]
            )
            self.buffer = self.buffer[write_size:]
        if boundary_found == -1:
            return False
        self.buffer = self.buffer[len(boundary) + 4:]
        _finish_upload(client, self.file)
        self.wants_write = False
        self.found_ending_boundary = True
        found_return = self.buffer.find("\r\n")
        if found_return == -1:
            if len(self.buffer) > 1:
                raise ErrorCodeClientError(
                    client, 400, "after post boundary and \\r\\n found more characters"
                )
            return False
        if found_return + 2 < len(self.buffer):
            raise ErrorCodeClientError(
                client, 400, "after post boundary and \\r\\n found more characters"
            )
        return True


def _file_content(client: Any) -> str:
    """The part of the multipart body that follows the part headers."""
    get_body_info(client)
    body = client.body
    headers_end = body.find("\r\n\r\n", body.find("Content-Type: "))
    if headers_end == -1:
        return ""
    return body[headers_end + 4:]


def process_http_body(client: Any) -> PostTransfer | None:
    """Start storing an uploaded file.

    Returns None when the whole file was in the body already, otherwise the
    transfer that receives the rest.
    """
    content = _file_content(client)
    client.root_path = f"{client.root_path}/{client.filename}"
    try:
        fd = os.open(client.root_path, _UPLOAD_FLAGS, _UPLOAD_MODE)
    except PermissionError as exc:
        raise ErrorCodeClientError(
            client, 403, f"access not permitted for post on file: {client.root_path}"
        ) from exc
    except OSError as exc:
        raise ErrorCodeClientError(
            client,
            500,
            f"couldn't open file because: {exc.strerror}, on file: {client.root_path}",
        ) from exc
    file = os.fdopen(fd, "wb")
    write_size, boundary_found = _split_point(content, client.body_boundary)
    written = 0
    if write_size > 0:
        written = _write_data(client, file, content[:write_size])
    if boundary_found != -1:
        _finish_upload(client, file)
        client.http_cleanup()
        return None
    total = client.content_length or len(content)
    return PostTransfer(client, file, written, total, content[written:])