"""Reading the configuration file into server configurations."""

from __future__ import annotations

from collections import deque
from pathlib import Path
from typing import Any, Callable, Mapping

from webserv.directives import SPACE, AutoIndex, BaseConfig, DirectiveResult, _char_at
from webserv.location import Location, Method
from webserv.server_config import ServerConfig, skip_space

Handler = Callable[[Any, str], DirectiveResult]

_SERVER_CMDS: dict[str, Handler] = {
    "listen": ServerConfig.listen_hostname,
    "root": ServerConfig.root,
    "client_max_body_size": ServerConfig.client_max_body_size,
    "server_name": ServerConfig.server_name,
    "autoindex": ServerConfig.auto_index,
}
_SERVER_WHILE_CMDS: dict[str, Handler] = {
    "error_page": ServerConfig.error_page,
    "return": ServerConfig.return_redirect,
}
_LOCATION_CMDS: dict[str, Handler] = {
    "root": Location.root,
    "client_max_body_size": Location.client_max_body_size,
    "autoindex": Location.auto_index,
    "upload_store": Location.upload_store,
}
_LOCATION_WHILE_CMDS: dict[str, Handler] = {
    "error_page": Location.error_page,
    "limit_except": Location.methods,
    "return": Location.return_redirect,
    "index": Location.index_page,
}


def _content_start(line: str) -> int | None:
    """Index of the first meaningful character, or None for blank/comment lines."""
    start = next((i for i, char in enumerate(line) if char not in SPACE), None)
    if start is None or line[start] == "#":
        return None
    return start


class ConfigParser:
    """Parse a configuration file; the result is in :attr:`configs`."""

    def __init__(self, path: str | Path) -> None:
        self.configs: list[ServerConfig] = []
        self._valid_syntax = False
        try:
            text = Path(path).read_text(encoding="utf-8")
        except OSError as exc:
            raise ValueError(f"inputfile couldn't be opened: {path}") from exc
        self._lines: deque[tuple[int, str]] = deque()
        for number, raw in enumerate(text.split("\n"), 1):
            start = _content_start(raw)
            if start is None:
                continue
            self._lines.append((number, raw[start:].split("#", 1)[0]))
        while self._lines:
            number, line = self._lines[0]
            if not line.startswith("server"):
                raise ValueError(f"{number}: Invalid line found expecting server: {line}")
            self._server_check()

    @property
    def _front(self) -> tuple[int, str]:
        if not self._lines:
            raise ValueError("No closing bracket found after block")
        return self._lines[0]

    def _set_front_text(self, text: str) -> None:
        number, _ = self._front
        self._lines[0] = (number, text)

    def _skip_line(
        self, line: str, force_skip: bool, conf: BaseConfig, strip: bool
    ) -> str:
        if force_skip or all(char in SPACE for char in line):
            if len(self._lines) <= 1:
                raise ValueError(
                    f"No closing bracket found after block: {self._front[0]}"
                )
            self._lines.popleft()
            conf.line_nbr, line = self._lines[0]
        return skip_space(line) if strip else line

    def _continue_block(self) -> bool:
        number, text = self._front
        if not self._valid_syntax:
            raise ValueError(f"{number}: invalid syntax: {text}")
        if text.startswith("}"):
            text = text[1:]
            if _content_start(text) is None:
                self._lines.popleft()
            else:
                self._set_front_text(text)
            return False
        return True

    def _cmd_check(self, line: str, block: BaseConfig, name: str, handler: Handler) -> str:
        line = self._skip_line(line[len(name):], False, block, False)
        if _char_at(line, 0) not in SPACE:
            raise ValueError(f"{self._front[0]}: no space found after command")
        result = handler(block, skip_space(line))
        line = result.rest
        if not result.done:
            line = self._skip_line(line, True, block, False)
            if _char_at(line, 0) != ";":
                raise ValueError(f"{self._front[0]}: no semi colon found after input")
            line = line[1:]
        return self._skip_line(line, False, block, False)

    def _while_cmd_check(
        self, line: str, block: BaseConfig, name: str, handler: Handler
    ) -> str:
        line = line[len(name):]
        if _char_at(line, 0) not in SPACE + "\n":
            raise ValueError(f"{self._front[0]}: no space found after command")
        run = 0
        while True:
            run += 1
            line = self._skip_line(line, False, block, True)
            result = handler(block, line)
            line = self._skip_line(result.rest, False, block, True)
            if result.done:
                if run == 1:
                    raise ValueError(f"no arguments after{name}")
                return line

    def _location_check(self, line: str, block: BaseConfig) -> str:
        if not isinstance(block, ServerConfig):
            raise ValueError(
                f"{self._front[0]}: location block can only be used in server block"
            )
        location = Location(line_nbr=self._front[0])
        line = line[len("location"):]
        if _char_at(line, 0) not in SPACE:
            raise ValueError(f"{self._front[0]}: no space found after command")
        line = self._skip_line(line, False, block, True)
        path, line = location.get_location_path(line)
        line = self._skip_line(line, False, block, True)
        if _char_at(line, 0) != "{":
            raise ValueError(
                f"{self._front[0]}: couldn't find opening curly bracket for location"
            )
        line = self._skip_line(line[1:], False, block, False)
        self._set_front_text(line)
        self._read_block(location, _LOCATION_CMDS, _LOCATION_WHILE_CMDS)
        line = self._front[1]
        block.add_location(location, path)
        self._valid_syntax = True
        return line

    def _read_block(
        self,
        block: BaseConfig,
        cmds: Mapping[str, Handler],
        while_cmds: Mapping[str, Handler],
    ) -> None:
        line = self._front[1]
        while True:
            self._valid_syntax = False
            line = skip_space(line)
            for name in sorted(cmds):
                if line.startswith(name):
                    self._valid_syntax = True
                    line = self._cmd_check(line, block, name, cmds[name])
            if not self._valid_syntax:
                for name in sorted(while_cmds):
                    if line.startswith(name):
                        line = self._while_cmd_check(line, block, name, while_cmds[name])
                        self._valid_syntax = True
            if line.startswith("location") and not self._valid_syntax:
                line = self._location_check(line, block)
            if not self._continue_block():
                return

    def _server_check(self) -> None:
        number, text = self._front
        conf = ServerConfig(line_nbr=number)
        line = self._skip_line(text[len("server"):], False, conf, True)
        if _char_at(line, 0) != "{":
            raise ValueError(
                f"{conf.line_nbr}: Couldn't find opening curly bracket server block"
            )
        line = self._skip_line(line[1:], False, conf, False)
        self._set_front_text(line)
        self._read_block(conf, _SERVER_CMDS, _SERVER_WHILE_CMDS)
        conf.set_default_conf()
        self.configs.append(conf)

    def print_all(self) -> None:
        """Print a summary of every parsed server and location."""
        for config in self.configs:
            print(f"Server Name: {config.name}")
            print("Port and Host:")
            for port, host in config.port_host:
                print(f"  Port: {port}, Host: {host}")
            _print_common(config)
            for path, location in config.locations:
                print(f"location: Path: {path}")
                _print_common(location)
                methods = " ".join(
                    method.name
                    for method in (Method.HEAD, Method.GET, Method.POST, Method.DELETE)
                    if location.allowed_methods & method
                )
                print(f"  Methods: {methods}")
                print(f"  Upload Store: {location.upload_store_path}")
                print(f"  CGI Extension: {location.cgi_extension}")
                print(f"  CGI Path: {location.cgi_executable}")


def _print_common(config: BaseConfig) -> None:
    print(f"  Root: {config.root_dir}")
    print(f"  Client Max Body Size: {config.client_body_size}")
    autoindex = "True" if config.autoindex_mode == AutoIndex.ON else "False"
    print(f"  Auto Index: {autoindex}")
    code, target = config.redirect
    print(f"  Return Redirect: {code} -> {target}")
    print(f"  Index Pages: {' '.join(config.index_pages)}")


def parse_config(path: str | Path) -> list[ServerConfig]:
    """Parse the configuration file at ``path`` into server configurations."""
    return ConfigParser(path).configs