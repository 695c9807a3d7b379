"""Directives shared by server and location blocks of the configuration file.

Every directive handler receives the remainder of the current configuration
line, consumes what it recognises and returns a :class:`DirectiveResult`:
``done`` tells whether the terminating semicolon was consumed and ``rest`` is
what is left of the line.
"""

from __future__ import annotations

import os
import re
from dataclasses import dataclass, field
from enum import IntEnum
from typing import NamedTuple

SPACE = " \t\f\v\r"
SIZE_MAX = 2**64 - 1
DEFAULT_ERROR_CODES = (400, 403, 404, 405, 413, 414, 431, 500, 501, 502, 503, 504)
DEFAULT_ERROR_PAGE_DIR = "./webPages/defaultErrorPages"

_TOKEN_END = SPACE + ";"
_NAME_STOP = SPACE + ";#?&%=+\\:"
_INT_PREFIX = re.compile(r"[ \t\n\v\f\r]*([+-]?[0-9]+)")
_INT_MIN, _INT_MAX = -(2**31), 2**31 - 1


class AutoIndex(IntEnum):
    NOT_FOUND = -1
    OFF = 0
    ON = 1


class DirectiveResult(NamedTuple):
    done: bool
    rest: str


def _char_at(text: str, index: int) -> str:
    """Character at ``index``, or NUL past the end of the text."""
    return text[index] if 0 <= index < len(text) else "\0"


def _find_first_of(text: str, chars: str, start: int = 0) -> int | None:
    return next(
        (i for i, char in enumerate(text[start:], start) if char in chars), None
    )


def _find_first_not_of(text: str, chars: str, start: int = 0) -> int | None:
    return next(
        (i for i, char in enumerate(text[start:], start) if char not in chars), None
    )


def _leading_int(text: str) -> tuple[int, int]:
    """Parse a leading decimal int; return the value and the end position."""
    match = _INT_PREFIX.match(text)
    if match is None:
        raise ValueError(f"no number found in: {text}")
    value = int(match.group(1))
    if not _INT_MIN <= value <= _INT_MAX:
        raise ValueError(f"number out of range: {match.group(1)}")
    return value, match.end()


@dataclass
class BaseConfig:
    """Settings that both server and location blocks may carry."""

    autoindex_mode: AutoIndex = AutoIndex.NOT_FOUND
    client_body_size: int = 0
    root_dir: str = ""
    redirect: tuple[int, str] = (0, "")
    error_pages: dict[int, str] = field(default_factory=dict)
    index_pages: list[str] = field(default_factory=list)
    line_nbr: int = 0
    _pending_codes: list[int] = field(default_factory=list, init=False, repr=False)
    _found_page: bool = field(default=False, init=False, repr=False)

    def _error(self, message: str) -> ValueError:
        return ValueError(f"{self.line_nbr}: {message}")

    def _parse_int(self, line: str, directive: str) -> tuple[int, int]:
        try:
            return _leading_int(line)
        except ValueError as exc:
            raise self._error(f"{directive}: {exc}") from exc

    def _near_end_of_line(self, line: str, pos: int, directive: str) -> DirectiveResult:
        k = _find_first_not_of(line, SPACE, pos)
        if k is None:
            return DirectiveResult(False, line)
        if line[k] != ";":
            raise self._error(
                f"{directive}: invalid input found before semi colon: {line[k]}"
            )
        return DirectiveResult(True, line[k + 1:])

    def root(self, line: str) -> DirectiveResult:
        if self.root_dir:
            raise self._error("root: tried setting second root")
        if _char_at(line, 0) != "/":
            raise self._error(f"root: first character must be /: {line}")
        end = _find_first_of(line, _TOKEN_END)
        if end is None:
            self.root_dir = line
            return DirectiveResult(False, line)
        self.root_dir = line[:end]
        return self._near_end_of_line(line, end, "root")

    def _set_error_page(self, line: str) -> DirectiveResult:
        if not self._pending_codes:
            raise self._error("error_page: no error codes in config for error_page")
        end = _find_first_of(line, _NAME_STOP)
        if end is None:
            end = len(line)
        elif line[end] not in _TOKEN_END:
            raise self._error("error_page: invalid character found after error_page")
        page = line[:end]
        for code in self._pending_codes:
            self.error_pages[code] = page
        self._pending_codes.clear()
        self._found_page = True
        return DirectiveResult(False, line[end:])

    def error_page(self, line: str) -> DirectiveResult:
        first = _char_at(line, 0)
        if self._found_page:
            if first != ";":
                raise self._error(
                    "error_page: invalid input found after error page given"
                )
            self._found_page = False
            return DirectiveResult(True, line[1:])
        if first == "/":
            return self._set_error_page(line)
        if first == ";":
            raise self._error("error_page: no error page given for error codes")
        code, pos = self._parse_int(line, "error_page")
        if not 300 <= code <= 599:
            raise self._error(
                "error_page: error code invalid must be between 300 and 599"
            )
        self._pending_codes.append(code)
        if pos + 1 > len(line):
            raise self._error("error_page: expected input after error code")
        return DirectiveResult(False, line[pos + 1:])

    def client_max_body_size(self, line: str) -> DirectiveResult:
        first = _char_at(line, 0)
        if first not in "0123456789":
            raise self._error(
                f"client_max_body_size: first character must be digit: {first}"
            )
        value, length = self._parse_int(line, "client_max_body_size")
        size = value if value != 0 else SIZE_MAX
        line = line[length:]
        unit = _char_at(line, 0)
        if unit in "kKmMgG;":
            unit = unit.lower()
            line = unit + line[1:]
            exponent = {"k": 1, "m": 2, "g": 3}.get(unit, 0)
            size = (size * 1024**exponent) & SIZE_MAX
        elif unit not in _TOKEN_END:
            raise self._error(
                f"client_max_body_size: invalid character found after value: {unit}"
            )
        self.client_body_size = size
        if unit == ";":
            return DirectiveResult(True, line[1:])
        return self._near_end_of_line(line, 1, "client_max_body_size")

    def index_page(self, line: str) -> DirectiveResult:
        if _char_at(line, 0) == ";":
            if not self.index_pages:
                raise self._error("index: no index given for indexPage")
            return DirectiveResult(True, line[1:])
        length = _find_first_not_of(line, _NAME_STOP)
        if length == 0:
            raise self._error("index: invalid index given after index")
        if length is None:
            length = len(line)
        self.index_pages.append(line[:length])
        return DirectiveResult(False, line[length + 1:])

    def auto_index(self, line: str) -> DirectiveResult:
        end = _find_first_of(line, _TOKEN_END)
        if end is None:
            end = len(line)
        word = line[:end]
        if word.startswith("on"):
            self.autoindex_mode = AutoIndex.ON
        elif word.startswith("off"):
            self.autoindex_mode = AutoIndex.OFF
        else:
            raise self._error(f"autoIndex: expected on/off after autoindex: {word}")
        return self._near_end_of_line(line, end, "autoIndex")

    def return_redirect(self, line: str) -> DirectiveResult:
        code, target = self.redirect
        first = _char_at(line, 0)
        if first in "0123456789":
            value, length = self._parse_int(line, "return")
            if not (301 <= value <= 303 or 307 <= value <= 308):
                raise self._error("return: invalid error code given")
            if target:
                raise self._error("return: cant have multiple return redirects")
            if code != 0:
                raise self._error("return: can't have multiple error code redirects")
            self.redirect = (value, target)
            return DirectiveResult(False, line[length:])
        if first == ";":
            if code == 0 or not target:
                raise self._error("return: not enough valid arguments given")
            return DirectiveResult(True, line[1:])
        end = _find_first_of(line, _NAME_STOP)
        if end == 0:
            raise self._error("return: invalid character found")
        if code == 0:
            raise self._error("return: no error code given")
        if target:
            raise self._error("return: multiple error pages given")
        if end is None:
            end = len(line)
        self.redirect = (code, line[:end])
        return DirectiveResult(False, line[end:])

    def set_default_error_pages(self) -> None:
        """Fill in missing error pages and check that every page is readable."""
        for code in DEFAULT_ERROR_CODES:
            page = self.error_pages.get(code)
            if page is None:
                page = f"{DEFAULT_ERROR_PAGE_DIR}/{code}.html"
            else:
                page = (self.root_dir + page)[1:]
                if page.startswith("/"):
                    page = page[1:]
            self.error_pages[code] = page
            if not os.access(page, os.R_OK):
                raise ValueError(f"couldn't open error page:{page}")