"""Server blocks of the configuration file."""

from __future__ import annotations

from dataclasses import dataclass, field

from webserv.directives import (
    SPACE,
    AutoIndex,
    BaseConfig,
    DirectiveResult,
    _find_first_not_of,
)
from webserv.location import Location

_DIGITS_AND_DOTS = "0123456789."
_TOKEN_END = SPACE + ";"
DEFAULT_ROOT = "/var/www"
DEFAULT_BODY_SIZE = 1024 * 1024
DEFAULT_LISTEN = "80;"


def skip_space(line: str) -> str:
    """Drop leading whitespace, leaving an all-whitespace line untouched."""
    start = _find_first_not_of(line, SPACE)
    if start is None:
        return line
    return line[start:]


@dataclass
class ServerConfig(BaseConfig):
    """A server block: listening addresses, a name and its locations."""

    port_host: list[tuple[str, str]] = field(default_factory=list)
    locations: list[tuple[str, Location]] = field(default_factory=list)
    name: str = ""

    def listen_hostname(self, line: str) -> DirectiveResult:
        """Handle ``listen [host:]port``."""
        skip_host = _find_first_not_of(line, _DIGITS_AND_DOTS)
        index = _find_first_not_of(line, SPACE + _DIGITS_AND_DOTS)
        hostname = "0.0.0.0"
        if index is None or line[index] == ";":
            dot = line.find(".")
            if dot != -1 and (skip_host is None or dot < skip_host):
                raise self._error("listen: port contains . character")
        elif line[index] == ":":
            hostname = line[:skip_host]
            line = line[skip_host + 1:]
        else:
            raise self._error(
                f"listen: invalid character found after listen: {line[index]}"
            )
        port, end = self._parse_int(line, "listen")
        if port <= 0 or port > 65535:
            raise self._error(
                "listen: invalid port entered for listen should be between "
                f"1 and 65535: {port}"
            )
        str_port = line[:end]
        if (str_port, hostname) in self.port_host:
            raise self._error(
                "listen: Parsing: tried setting same port and hostname twice: "
                f"{str_port} {hostname}"
            )
        self.port_host.append((str_port, hostname))
        return self._near_end_of_line(line, end, "listen")

    def server_name(self, line: str) -> DirectiveResult:
        """Handle ``server_name name``."""
        if self.name:
            raise self._error("server_name: Parsing: tried setting server_name twice")
        end = next((i for i, char in enumerate(line) if char in _TOKEN_END), None)
        if end is None:
            self.name = line
            return DirectiveResult(False, line)
        self.name = line[:end]
        return self._near_end_of_line(line, end, "server_name")

    def add_location(self, location: Location, path: str) -> None:
        """Insert a location, keeping longer paths before shorter ones."""
        for position, (existing, _) in enumerate(self.locations):
            if existing == path:
                raise self._error(
                    "addLocation: Parsing: tried adding location with same path "
                    f"twice: {path}"
                )
            if len(existing) < len(path):
                self.locations.insert(position, (path, location))
                return
        self.locations.append((path, location))

    def set_default_conf(self) -> None:
        """Fill in defaults for everything the block left unset."""
        if not self.root_dir:
            self.root_dir = DEFAULT_ROOT
        if self.root_dir.endswith("/"):
            self.root_dir = self.root_dir[:-1]
        self.root_dir = "." + self.root_dir
        if self.client_body_size == 0:
            self.client_body_size = DEFAULT_BODY_SIZE
        if self.autoindex_mode == AutoIndex.NOT_FOUND:
            self.autoindex_mode = AutoIndex.OFF
        if not self.port_host:
            self.listen_hostname(DEFAULT_LISTEN)
        for _, location in self.locations:
            location.set_default_location(self)
        if all(path != "/" for path, _ in self.locations):
            location = Location()
            location.set_default_location(self)
            self.locations.insert(0, ("/", location))
        self.set_default_error_pages()