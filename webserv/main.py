"""Command-line entry point that starts the web server."""

from __future__ import annotations

import contextlib
import signal
import sys
from typing import Iterator, Sequence

from webserv.listener import Server, create_listeners
from webserv.parsing import parse_config
from webserv.runner import WebServer
from webserv.transfer import CLIENT_BUFFER_SIZE
from webserv.utils import stoull_safe

DEFAULT_CONFIG = "config/default.conf"


def _open_listeners(servers: list[Server]) -> None:
    try:
        create_listeners(servers)
    except OSError:
        closed: set[int] = set()
        for server in servers:
            for sock in server.listeners:
                if id(sock) not in closed:
                    sock.close()
                    closed.add(id(sock))
        raise


@contextlib.contextmanager
def _sigint_stops(server: WebServer) -> Iterator[None]:
    def handler(signum: int, frame: object) -> None:
        print("sigint received stopping webserver")
        server.stop()

    try:
        previous = signal.signal(signal.SIGINT, handler)
    except ValueError as exc:
        print(f"Error setting up signal handler: {exc}", file=sys.stderr)
        previous = None
    try:
        yield
    finally:
        if previous is not None:
            signal.signal(signal.SIGINT, previous)


def main(argv: Sequence[str] | None = None) -> int:
    """Start serving the configuration named on the command line.

    Arguments: an optional configuration file and an optional receive
    buffer size.
    """
    args = sys.argv[1:] if argv is None else list(argv)
    config_path = args[0] if args else DEFAULT_CONFIG
    try:
        buffer_size = stoull_safe(args[1]) if len(args) == 2 else CLIENT_BUFFER_SIZE
        configs = parse_config(config_path)
        servers = [Server.from_config(config) for config in configs]
        _open_listeners(servers)
        server = WebServer(servers, buffer_size=buffer_size, watch_stdin=True)
    except (ValueError, OSError) as exc:
        print(exc, file=sys.stderr)
        return 1
    with server, _sigint_stops(server):
        return server.run()


if __name__ == "__main__":
    sys.exit(main())