"""Request bodies: content types, multipart headers and chunked encoding."""

from __future__ import annotations

import re
import string
from enum import Enum
from typing import Any

from webserv.errors import ClientError, ErrorCodeClientError

_UINT64_MAX = 2**64 - 1
_HEX_PREFIX = re.compile(r"\s*(?:0[xX])?([0-9A-Fa-f]+)")
_FILENAME_KEY = 'filename="'


class ContentType(Enum):
    UNSUPPORTED = 0
    FORM_URLENCODED = 1
    JSON = 2
    TEXT = 3
    MULTIPART = 4


_SIMPLE_TYPES = {
    "application/x-www-form-urlencoded": ContentType.FORM_URLENCODED,
    "application/json": ContentType.JSON,
    "text/plain": ContentType.TEXT,
}


def get_content_type(client: Any) -> ContentType:
    """Classify the request's Content-Type and record type and boundary."""
    value = client.header_fields.get("Content-Type")
    if value is None:
        raise ClientError("Missing Content-Type")
    simple = _SIMPLE_TYPES.get(value)
    if simple is not None:
        client.content_type = value
        return simple
    if not value.startswith("multipart/form-data"):
        return ContentType.UNSUPPORTED
    semi = value.find(";")
    if semi == -1:
        raise ClientError(f"Malformed HTTP header line: {value}")
    client.content_type = value[:semi]
    boundary_pos = value.find("boundary=", semi)
    if boundary_pos == -1:
        raise ClientError("Malformed multipart Content-Type: boundary not found")
    client.body_boundary = value[boundary_pos + len("boundary="):]
    return ContentType.MULTIPART


def get_body_info(client: Any) -> str:
    """Read the uploaded file's name from the multipart part headers."""
    body = client.body
    cd_pos = body.find("Content-Disposition:")
    if cd_pos == -1:
        raise ClientError("Content-Disposition header not found in multipart body")
    cd_end = body.find("\r\n", cd_pos)
    cd_line = body[cd_pos:] if cd_end == -1 else body[cd_pos:cd_end]
    fn_pos = cd_line.find(_FILENAME_KEY)
    if fn_pos == -1:
        raise ClientError("Filename not found in Content-Disposition header")
    fn_start = fn_pos + len(_FILENAME_KEY)
    fn_end = cd_line.find('"', fn_start)
    filename = cd_line[fn_start:] if fn_end == -1 else cd_line[fn_start:fn_end]
    if not filename:
        raise ClientError("Filename is empty in Content-Disposition header")
    client.filename = filename
    if body.find("Content-Type: ") == -1:
        raise ClientError(
            "Content-Type header not found in multipart/form-data body part"
        )
    return filename


def validate_chunk_size_line(text: str) -> None:
    """Check that a chunk-size line is a non-empty run of hex digits."""
    if not text or not all(char in string.hexdigits for char in text):
        raise ValueError(f"Invalid chunk size given: {text}")


def parse_chunk_size(text: str) -> int:
    """Value of the leading hexadecimal number, 0 when there is none."""
    match = _HEX_PREFIX.match(text)
    if match is None:
        return 0
    return min(int(match.group(1), 16), _UINT64_MAX)


def parse_chunk_str(text: str, chunk_size: int) -> str:
    """Check chunk data followed by CRLF; return the data."""
    if len(text) - 2 != chunk_size:
        raise ValueError("Chunk data does not match declared chunk size")
    if text[chunk_size:chunk_size + 2] != "\r\n":
        raise ValueError("chunk data missing CRLF")
    return text[:chunk_size]


def handle_chunks(client: Any) -> bool:
    """Decode complete chunks from ``client.body`` into ``client.file_content``.

    Decoding resumes at ``client.chunk_pos``. Returns True once the final
    zero-length chunk has been read, False when more data is needed.
    """
    while True:
        rest = client.body[client.chunk_pos:]
        crlf = rest.find("\r\n")
        if crlf == -1:
            return False
        size_line = rest[:crlf]
        try:
            validate_chunk_size_line(size_line)
            size = parse_chunk_size(size_line)
            data_start = crlf + 2
            data_end = data_start + size + 2
            if len(rest) < data_end:
                return False
            data = parse_chunk_str(rest[data_start:data_end], size)
        except ValueError as exc:
            raise ErrorCodeClientError(client, 400, str(exc)) from exc
        client.file_content += data
        client.chunk_pos += data_end
        if size == 0:
            return True