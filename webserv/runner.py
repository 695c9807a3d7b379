"""The event loop that accepts clients and serves their requests."""

from __future__ import annotations

import contextlib
import os
import selectors
import socket
import sys
import threading
import time
from enum import Enum
from typing import Iterable

from webserv.client import DISCONNECT_DELAY_SECONDS, Client, ParseState
from webserv.error_response import handle_error_client
from webserv.errors import ClientError, ErrorCodeClientError
from webserv.fdregistry import FileDescriptorRegistry
from webserv.listener import Server
from webserv.request import handle_request, parse_http_body, parse_http_header
from webserv.transfer import CLIENT_BUFFER_SIZE, GetTransfer, PostTransfer

BAD_REQUEST_MESSAGE = (
    "400 Bad Request, <html><body><h1>400 Bad Request</h1></body></html>"
)
POLL_INTERVAL = 1.0
_STDIN_READ_SIZE = 1023
_MAX_SNOOZE = 20

Transfer = GetTransfer | PostTransfer


class _Kind(Enum):
    LISTENER = "listener"
    CLIENT = "client"
    STDIN = "stdin"
    WAKEUP = "wakeup"


def send_error_response(sock: socket.socket | None, message: str) -> bytes:
    """Send a bodyless reply with status ``message``; return the bytes built."""
    response = f"HTTP/1.1 {message}\r\nContent-Length: 0\r\n\r\n".encode("latin-1")
    if sock is not None:
        with contextlib.suppress(OSError):
            sock.sendall(response)
    return response


def _close_transfer(transfer: Transfer) -> None:
    file = transfer.file
    if file is not None:
        with contextlib.suppress(OSError):
            file.close()


class WebServer:
    """Accepts connections on the servers' listeners and serves every client."""

    def __init__(
        self,
        servers: Iterable[Server],
        buffer_size: int = CLIENT_BUFFER_SIZE,
        watch_stdin: bool = False,
        registry: FileDescriptorRegistry | None = None,
        poll_interval: float = POLL_INTERVAL,
    ) -> None:
        if buffer_size <= 0:
            raise ValueError(f"buffer size must be positive: {buffer_size}")
        self.servers = list(servers)
        self.buffer_size = buffer_size
        self.poll_interval = poll_interval
        self.registry = registry if registry is not None else FileDescriptorRegistry()
        self.clients: dict[int, Client] = {}
        self.transfers: dict[int, Transfer] = {}
        self._stop_requested = threading.Event()
        self._selector = selectors.DefaultSelector()
        self._wake_read, self._wake_write = socket.socketpair()
        self._wake_read.setblocking(False)
        self._wake_write.setblocking(False)
        self._selector.register(self._wake_read, selectors.EVENT_READ, _Kind.WAKEUP)
        self._register_listeners()
        if watch_stdin:
            self._register_stdin()

    def __enter__(self) -> WebServer:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self._shutdown()

    def _register_listeners(self) -> None:
        seen: set[int] = set()
        for server in self.servers:
            for listener in server.listeners:
                fd = listener.fileno()
                if fd in seen:
                    continue
                self._selector.register(listener, selectors.EVENT_READ, _Kind.LISTENER)
                self.registry.set_fd(listener)
                seen.add(fd)

    def _register_stdin(self) -> None:
        try:
            self._selector.register(sys.stdin, selectors.EVENT_READ, _Kind.STDIN)
        except (ValueError, OSError) as exc:
            print(f"Failed to watch stdin: {exc}", file=sys.stderr)

    def run(self) -> int:
        """Serve until :meth:`stop` is called; return the exit status."""
        while not self._stop_requested.is_set():
            self._expire_clients()
            try:
                events = self._selector.select(self.poll_interval)
            except InterruptedError:
                break
            try:
                self._handle_events(events)
            except (ClientError, ValueError, OSError) as exc:
                print(exc, file=sys.stderr)
        print("\rGracefully stopping... (press Ctrl+C again to force)")
        self._shutdown()
        return 0

    def stop(self) -> None:
        """Ask the event loop to finish; safe to call from a signal handler."""
        self._stop_requested.set()
        with contextlib.suppress(OSError):
            self._wake_write.send(b"\0")

    def accept_connection(self, listener: socket.socket) -> None:
        """Accept every connection waiting on ``listener``."""
        while True:
            try:
                sock, address = listener.accept()
            except BlockingIOError:
                break
            except OSError as exc:
                print(f"accept: {exc.strerror}", file=sys.stderr)
                break
            sock.setblocking(True)
            fd = sock.fileno()
            host, port = address[0], address[1]
            print(f"Accepted connection on descriptor {fd}(host={host}, port={port})")
            try:
                self._selector.register(sock, selectors.EVENT_READ, _Kind.CLIENT)
            except (ValueError, OSError) as exc:
                print(f"epoll_ctl: {exc}", file=sys.stderr)
                sock.close()
                break
            if not self.registry.set_fd(sock):
                self._selector.unregister(sock)
                sock.close()
                break
            local = sock.getsockname()
            client = Client(fd=fd, sock=sock, local_address=(local[0], local[1]))
            client.servers = self.servers
            client.set_disconnect_time(DISCONNECT_DELAY_SECONDS)
            self.clients[fd] = client

    def receive_client_data(self, client: Client) -> bytes:
        """Read the next piece of data the client sent."""
        client.set_disconnect_time(DISCONNECT_DELAY_SECONDS)
        try:
            data = client.sock.recv(self.buffer_size)
        except OSError as exc:
            print(f"recv: {exc.strerror}", file=sys.stderr)
            self.cleanup_client(client)
            raise ErrorCodeClientError(client, 0, f"recv: {exc.strerror}") from exc
        if not data:
            raise ErrorCodeClientError(client, 0, "kicking out client after read of 0")
        return data

    def process_client_request(self, client: Client) -> None:
        """Read from the client and serve the request once it is complete."""
        try:
            data = self.receive_client_data(client)
            client.set_disconnect_time(DISCONNECT_DELAY_SECONDS)
            state = client.header_parse_state
            if state == ParseState.HEADER_AWAITING:
                ready = parse_http_header(client, data)
            elif state == ParseState.BODY_CHUNKED:
                client.body += data.decode("latin-1")
                ready = True
            elif state == ParseState.BODY_AWAITING:
                ready = parse_http_body(client, data)
            else:
                ready = True
            if not ready:
                return
            transfer = handle_request(client)
            if transfer is not None:
                self._add_transfer(transfer)
            elif client.header_parse_state == ParseState.BODY_READY:
                client.http_cleanup()
                if not client.keep_alive:
                    self.cleanup_client(client)
        except (ClientError, ValueError, OSError) as exc:
            print(exc, file=sys.stderr)
            print("caught message in processclient request")
            send_error_response(client.sock, BAD_REQUEST_MESSAGE)

    def cleanup_client(self, client: Client) -> None:
        """Drop the client: its transfer, its socket and its state."""
        if self.clients.pop(client.fd, None) is None:
            return
        print(f"cleaning up client with fd:{client.fd}")
        self._drop_transfer(client.fd)
        with contextlib.suppress(KeyError, ValueError):
            self._selector.unregister(client.sock)
        if not self.registry.close_fd(client.sock):
            with contextlib.suppress(OSError):
                client.sock.close()

    def _drop_transfer(self, fd: int) -> None:
        transfer = self.transfers.pop(fd, None)
        if transfer is not None:
            _close_transfer(transfer)

    def _set_events(self, client: Client, events: int) -> None:
        with contextlib.suppress(KeyError, ValueError):
            self._selector.modify(client.sock, events, _Kind.CLIENT)

    def _add_transfer(self, transfer: Transfer) -> None:
        client = transfer.client
        self._drop_transfer(client.fd)
        self.transfers[client.fd] = transfer
        if isinstance(transfer, GetTransfer):
            self._set_events(client, selectors.EVENT_WRITE)
        else:
            self._set_events(client, selectors.EVENT_READ)

    def _run_transfer(self, client: Client, events: int) -> None:
        transfer = self.transfers[client.fd]
        client.set_disconnect_time(DISCONNECT_DELAY_SECONDS)
        finished = False
        try:
            if isinstance(transfer, GetTransfer) and events & selectors.EVENT_WRITE:
                finished = transfer.handle()
            elif isinstance(transfer, PostTransfer) and events & selectors.EVENT_READ:
                finished = transfer.handle(self.receive_client_data(client))
        except (ClientError, ValueError, OSError) as exc:
            print(exc, file=sys.stderr)
            finished = True
        if not finished:
            return
        if not client.keep_alive:
            self.cleanup_client(client)
            return
        self._drop_transfer(client.fd)
        client.http_cleanup()
        self._set_events(client, selectors.EVENT_READ)

    def _handle_error(self, error: ErrorCodeClientError) -> None:
        client = error.client
        if client.fd not in self.clients:
            return
        try:
            transfer = handle_error_client(error)
        except (ClientError, ValueError, OSError) as exc:
            print(exc, file=sys.stderr)
            transfer = None
        if transfer is None:
            self.cleanup_client(client)
        else:
            self._add_transfer(transfer)

    def _handle_stdin(self) -> None:
        try:
            data = os.read(sys.stdin.fileno(), _STDIN_READ_SIZE)
        except OSError:
            data = b""
        if not data:
            with contextlib.suppress(KeyError, ValueError):
                self._selector.unregister(sys.stdin)
            return
        words = data.decode("latin-1").split()
        try:
            snooze = int(words[0], 16) if words else 0
        except ValueError:
            return
        if 0 < snooze < _MAX_SNOOZE:
            print(f"sleep for {snooze} seconds")
            time.sleep(snooze)
            print("no more snoozing")

    def _drain_wakeup(self) -> None:
        with contextlib.suppress(OSError):
            while self._wake_read.recv(4096):
                pass

    def _handle_events(self, events: list[tuple[selectors.SelectorKey, int]]) -> None:
        for key, mask in events:
            try:
                kind = key.data
                if kind is _Kind.WAKEUP:
                    self._drain_wakeup()
                elif kind is _Kind.STDIN:
                    self._handle_stdin()
                elif kind is _Kind.LISTENER:
                    self.accept_connection(key.fileobj)
                else:
                    client = self.clients.get(key.fd)
                    if client is None:
                        continue
                    if key.fd in self.transfers:
                        self._run_transfer(client, mask)
                    elif mask & selectors.EVENT_READ:
                        self.process_client_request(client)
            except ErrorCodeClientError as error:
                self._handle_error(error)

    def _expire_clients(self) -> None:
        now = time.monotonic()
        for client in list(self.clients.values()):
            if client.disconnect_time <= now:
                self.cleanup_client(client)

    def _shutdown(self) -> None:
        for client in list(self.clients.values()):
            self.cleanup_client(client)
        for fd in list(self.transfers):
            self._drop_transfer(fd)
        with contextlib.suppress(KeyError, ValueError, OSError):
            self._selector.close()
        for sock in (self._wake_read, self._wake_write):
            with contextlib.suppress(OSError):
                sock.close()
        self.registry.cleanup()