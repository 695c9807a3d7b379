"""Small filesystem and number helpers."""

from __future__ import annotations

import os
import string
import sys

from webserv.errors import ClientError

_UINT64_MAX = 2**64 - 1


def directory_check(path: str | os.PathLike[str]) -> bool:
    """Return True when ``path`` can be opened as a directory."""
    try:
        with os.scandir(path):
            pass
    except OSError as exc:
        print(f"opendir: {exc.strerror}", file=sys.stderr)
        return False
    return True


def get_file_length(filename: str | os.PathLike[str]) -> int:
    """Return the size of ``filename`` in bytes."""
    try:
        return os.stat(filename).st_size
    except OSError as exc:
        raise ClientError(f"couldn't stat file: {filename}") from exc


def stoull_safe(value: str) -> int:
    """Convert a string of decimal digits to an unsigned 64-bit integer."""
    if not value:
        raise ValueError('Given buffer_size for Webserv is ""')
    if not all(char in string.digits for char in value):
        raise ValueError(
            f"Given buffer_size for Webserv contains non-digit characters: {value}"
        )
    number = int(value)
    if number > _UINT64_MAX:
        raise ValueError(f"Given buffer_size for Webserv is out of range: {value}")
    return number