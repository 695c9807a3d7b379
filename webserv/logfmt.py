"""Formatting helpers for request logging."""

from __future__ import annotations

import time

RED = "\033[31m"
MAGENTA = "\033[35m"
RESET = "\033[0m"

_ESCAPES = {
    "\r": f"{RED}\\r{RESET}",
    "\n": f"{MAGENTA}\\n\n{RESET}",
    "\t": f"{RED}\\t{RESET}",
}


def escape_special_chars(text: str) -> str:
    """Make carriage returns, newlines and tabs visible, in colour."""
    return "".join(_ESCAPES.get(char, char) for char in text)


def time_date() -> str:
    """Current local time as ``[YYYY-MM-DD HH:MM:SS] ``."""
    return time.strftime("[%Y-%m-%d %H:%M:%S] ", time.localtime())


def http_request_logger(text: str) -> str:
    """Print a timestamped, escaped log line for a request and return it."""
    result = f"{time_date()}[client <ip>:<port>] {escape_special_chars(text)}"
    print(f"httprequestlogerr: {result}")
    return result