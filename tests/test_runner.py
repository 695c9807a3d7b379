import socket
import threading

import pytest

from webserv.error_response import ERR400
from webserv.errors import ErrorCodeClientError
from webserv.listener import Server
from webserv.runner import BAD_REQUEST_MESSAGE, WebServer, send_error_response


@pytest.fixture
def listener():
    sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
    sock.bind(("127.0.0.1", 0))
    sock.listen()
    sock.setblocking(False)
    yield sock
    sock.close()


@pytest.fixture
def connected(listener):
    with WebServer([], buffer_size=4096) as server:
        peer = socket.create_connection(listener.getsockname(), timeout=5)
        server.accept_connection(listener)
        client = next(iter(server.clients.values()))
        yield server, client, peer
        peer.close()


def _read_all(sock):
    chunks = []
    while True:
        data = sock.recv(4096)
        if not data:
            return b"".join(chunks)
        chunks.append(data)


def test_send_error_response_wire_format():
    left, right = socket.socketpair()
    with left, right:
        sent = send_error_response(left, "400 Bad Request")
        assert sent == b"HTTP/1.1 400 Bad Request\r\nContent-Length: 0\r\n\r\n"
        assert right.recv(4096) == sent


def test_send_error_response_on_closed_socket_still_builds_reply():
    left, right = socket.socketpair()
    right.close()
    left.close()
    sent = send_error_response(left, BAD_REQUEST_MESSAGE)
    assert sent.startswith(b"HTTP/1.1 400 Bad Request, <html>")
    assert sent.endswith(b"\r\nContent-Length: 0\r\n\r\n")


def test_buffer_size_must_be_positive():
    with pytest.raises(ValueError):
        WebServer([], buffer_size=0)


def test_accept_connection_registers_client(connected, listener):
    server, client, _ = connected
    assert len(server.clients) == 1
    assert server.clients[client.fd] is client
    assert client.local_address == listener.getsockname()
    assert client.servers == []


def test_receive_client_data_returns_sent_bytes(connected):
    server, client, peer = connected
    peer.sendall(b"hello")
    assert server.receive_client_data(client) == b"hello"


def test_receive_client_data_on_hangup_raises_code_zero(connected):
    server, client, peer = connected
    peer.close()
    with pytest.raises(ErrorCodeClientError) as info:
        server.receive_client_data(client)
    assert info.value.error_code == 0


def test_cleanup_client_is_idempotent(connected):
    server, client, _ = connected
    server.cleanup_client(client)
    assert client.fd not in server.clients
    assert client.sock.fileno() == -1
    server.cleanup_client(client)
    assert server.clients == {}


def test_partial_header_is_kept(connected):
    server, client, peer = connected
    peer.sendall(b"GET / HT")
    server.process_client_request(client)
    assert client.header == "GET / HT"
    assert client.fd in server.clients


def test_request_without_matching_location_raises_400(connected):
    server, client, peer = connected
    peer.sendall(b"GET / HTTP/1.1\r\nHost: localhost\r\n\r\n")
    with pytest.raises(ErrorCodeClientError) as info:
        server.process_client_request(client)
    assert info.value.error_code == 400
    assert client.method == "GET"


def test_run_replies_with_builtin_error_page_and_stops(listener):
    server_block = Server()
    server_block.add_listener(listener)
    server = WebServer([server_block], poll_interval=0.1)
    result = []
    thread = threading.Thread(target=lambda: result.append(server.run()))
    thread.start()
    try:
        with socket.create_connection(listener.getsockname(), timeout=5) as peer:
            peer.sendall(b"GET / HTTP/1.1\r\nHost: localhost\r\n\r\n")
            reply = _read_all(peer)
    finally:
        server.stop()
        thread.join(5)
    assert not thread.is_alive()
    assert result == [0]
    assert reply.startswith(b"HTTP/1.1 400 Bad Request\r\n")
    assert b"Connection: close\r\n" in reply
    assert reply.endswith(ERR400.encode("latin-1"))


def test_stop_before_run_returns_immediately():
    server = WebServer([])
    server.stop()
    assert server.run() == 0