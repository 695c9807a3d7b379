"""State kept for one connected client."""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from enum import IntEnum
from typing import Any

from webserv.location import Location, Method

DISCONNECT_DELAY_SECONDS = 5


class ParseState(IntEnum):
    """How far the current request has been read."""

    HEADER_AWAITING = 0
    BODY_CHUNKED = 1
    BODY_AWAITING = 2
    BODY_READY = 3


def _default_deadline() -> float:
    return time.monotonic() + DISCONNECT_DELAY_SECONDS


@dataclass
class Client:
    """A connection and the request currently being read from it.

    Request text is held as ``str`` decoded with latin-1, so every byte
    received maps onto exactly one character.
    """

    fd: int
    sock: Any = None
    local_address: tuple[str, int] = ("0.0.0.0", 0)
    used_server: Any = None
    location: Location = field(default_factory=Location)
    upload_path: str = ""
    header_parse_state: ParseState = ParseState.HEADER_AWAITING
    header: str = ""
    body: str = ""
    method: str = ""
    use_method: Method = Method(0)
    request_path: str = ""
    root_path: str = ""
    version: str = ""
    content_length: int = 0
    body_end: int = -1
    chunk_pos: int = 0
    content_type: str = ""
    body_boundary: str = ""
    filename: str = ""
    path_filename: str = ""
    file_content: str = ""
    disconnect_time: float = field(default_factory=_default_deadline)
    keep_alive: bool = True
    header_fields: dict[str, str] = field(default_factory=dict)

    def set_disconnect_time(self, seconds: float) -> None:
        """Drop the client ``seconds`` from now unless it becomes active again."""
        self.disconnect_time = time.monotonic() + seconds

    def reset_request_state(self) -> None:
        """Forget the current request; connection settings are kept."""
        self.header_parse_state = ParseState.HEADER_AWAITING
        self.header = ""
        self.body = ""
        self.method = ""
        self.request_path = ""
        self.root_path = ""
        self.version = ""
        self.content_length = 0
        self.content_type = ""
        self.body_boundary = ""
        self.filename = ""
        self.path_filename = ""
        self.file_content = ""
        self.header_fields.clear()

    def http_cleanup(self) -> None:
        """Prepare for the next request on a kept-alive connection."""
        self.header_parse_state = ParseState.HEADER_AWAITING
        self.header = ""
        self.body = ""
        self.request_path = ""
        self.method = ""
        self.content_length = 0
        self.header_fields.clear()
        self.root_path = ""
        self.set_disconnect_time(DISCONNECT_DELAY_SECONDS)