"""Location blocks of the configuration file."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import IntFlag

from webserv.directives import (
    _TOKEN_END,
    SPACE,
    AutoIndex,
    BaseConfig,
    DirectiveResult,
    _char_at,
    _find_first_of,
)

_PATH_END = SPACE + "{"
_BAD_FILENAME = "*?|><:\\"
_METHOD_END_TOKENS = ("{", "deny", "all", ";", "}")


class Method(IntFlag):
    HEAD = 1
    GET = 2
    POST = 4
    DELETE = 8


_METHOD_BITS = {
    "HEAD": Method.HEAD,
    "GET": Method.GET,
    "POST": Method.POST,
    "DELETE": Method.DELETE,
}
_ALL_METHODS = Method.HEAD | Method.GET | Method.POST | Method.DELETE


@dataclass
class Location(BaseConfig):
    """A location block: settings for request paths under one prefix."""

    allowed_methods: Method = Method(0)
    upload_store_path: str = ""
    cgi_extension: str = ""
    cgi_executable: str = ""
    location_path: str = ""
    _method_end_index: int = field(default=0, init=False, repr=False)

    def get_location_path(self, line: str) -> tuple[str, str]:
        """Read the block's path; return it and the rest of the line."""
        end = _find_first_of(line, _PATH_END)
        if end is None:
            end = len(line)
        path = line[:end]
        if not path.startswith("/"):
            raise self._error(
                f"location path: invalid location path given for location block: {path}"
            )
        self.location_path = path
        return path, line[end:]

    def _check_method_end(self, line: str) -> tuple[bool, bool, str]:
        """Match the ``{ deny all; }`` tail; return (matched, finished, rest)."""
        token = _METHOD_END_TOKENS[self._method_end_index]
        if line.startswith(token):
            if not self.allowed_methods:
                raise self._error("limit_except: No methods given for limit_except")
            line = line[len(token):]
            self._method_end_index += 1
            finished = self._method_end_index == len(_METHOD_END_TOKENS)
            if finished:
                self._method_end_index = 0
            return True, finished, line
        if self._method_end_index != 0:
            raise self._error(
                f"limit_except: couldn't find: {token}. after limit_except"
            )
        return False, False, line

    def methods(self, line: str) -> DirectiveResult:
        matched, finished, line = self._check_method_end(line)
        if matched:
            return DirectiveResult(finished, line)
        end = _find_first_of(line, _PATH_END)
        if end is None:
            end = len(line)
        bit = _METHOD_BITS.get(line[:end])
        if bit is None:
            raise self._error(
                "limit_except: Invalid methods given after limit_exept"
            )
        if self.allowed_methods & bit:
            raise self._error("limit_except: Method given already entered before")
        self.allowed_methods |= bit
        return DirectiveResult(False, line[end:])

    def index_page(self, line: str) -> DirectiveResult:
        if _char_at(line, 0) == ";":
            return DirectiveResult(True, line[1:])
        end = _find_first_of(line, _TOKEN_END + _BAD_FILENAME)
        if end is None:
            end = len(line)
        if _char_at(line, end) in _BAD_FILENAME:
            raise ValueError("invalid character found in filename")
        self.index_pages.append(line[:end])
        return DirectiveResult(False, line[end:])

    def _single_value(self, line: str, directive: str) -> tuple[str, DirectiveResult]:
        end = _find_first_of(line, _TOKEN_END)
        if end is None:
            return line, DirectiveResult(False, line)
        return line[:end], self._near_end_of_line(line, end, directive)

    def upload_store(self, line: str) -> DirectiveResult:
        if self.upload_store_path:
            raise self._error("upload_store: setting second upload_store in block")
        self.upload_store_path, result = self._single_value(line, "upload_store")
        return result

    def extension(self, line: str) -> DirectiveResult:
        if self.cgi_extension:
            raise self._error("extension: tried creating second extension")
        self.cgi_extension, result = self._single_value(line, "extension")
        return result

    def cgi_path(self, line: str) -> DirectiveResult:
        if self.cgi_executable:
            raise self._error("cgi_path: tried creating second cgi_path")
        self.cgi_executable, result = self._single_value(line, "cgi_path")
        return result

    def set_default_location(self, parent: BaseConfig) -> None:
        """Inherit unset settings from the enclosing server block."""
        if self.autoindex_mode == AutoIndex.NOT_FOUND:
            self.autoindex_mode = parent.autoindex_mode
        if not self.root_dir:
            self.root_dir = parent.root_dir
        else:
            self.root_dir = "." + self.root_dir
        if self.root_dir.endswith("/") and len(self.root_dir) > 2:
            self.root_dir = self.root_dir[:-1]
        if self.location_path.endswith("/") and len(self.location_path) > 1:
            self.location_path = self.location_path[:-1]
        if len(self.root_dir) > 2:
            self.location_path = self.root_dir + self.location_path
        else:
            self.location_path = "." + self.location_path
        if self.client_body_size == 0:
            self.client_body_size = parent.client_body_size
        if self.redirect[0] == 0:
            self.redirect = parent.redirect
        for code, page in parent.error_pages.items():
            self.error_pages.setdefault(code, page)
        if not self.index_pages:
            self.index_pages = list(parent.index_pages)
        if not self.allowed_methods:
            self.allowed_methods = _ALL_METHODS
        separator = "" if self.root_dir.endswith("/") else "/"
        self.index_pages = [
            self.root_dir + separator + page for page in self.index_pages
        ]
        if not self.upload_store_path:
            self.upload_store_path = self.root_dir
        self.set_default_error_pages()