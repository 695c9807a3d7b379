"""Bookkeeping of the descriptors the server has open."""

from __future__ import annotations

import contextlib
import os
import sys
from typing import Any

RESERVED_FDS = 5
FD_LIMIT = 1024 - RESERVED_FDS


def _close(handle: Any) -> None:
    if isinstance(handle, int):
        os.close(handle)
    else:
        handle.close()


class FileDescriptorRegistry:
    """Tracks open descriptors (integers or objects with ``close``)."""

    def __init__(self, limit: int = FD_LIMIT) -> None:
        self._limit = limit
        self._fds: list[Any] = []

    def __contains__(self, fd: object) -> bool:
        return fd in self._fds

    def __len__(self) -> int:
        return len(self._fds)

    def __enter__(self) -> FileDescriptorRegistry:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.cleanup()

    def set_fd(self, fd: Any) -> bool:
        """Register ``fd``; return False when the limit is already reached."""
        if len(self._fds) >= self._limit:
            print("File descriptor limit reached", file=sys.stderr)
            return False
        self._fds.append(fd)
        return True

    def close_fd(self, fd: Any) -> bool:
        """Close and forget ``fd``; return False if it was not registered."""
        if fd not in self._fds:
            print(f"File descriptor {fd} not found in the vector.", file=sys.stderr)
            return False
        self._fds.remove(fd)
        _close(fd)
        return True

    def cleanup(self) -> None:
        """Close every registered descriptor."""
        for fd in self._fds:
            if fd != -1:
                with contextlib.suppress(OSError):
                    _close(fd)
        self._fds.clear()