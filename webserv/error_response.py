"""Replying to a client after a request failed with an HTTP status code."""

from __future__ import annotations

import sys

from webserv.errors import ClientError, ErrorCodeClientError
from webserv.request import _send, http_response
from webserv.transfer import GetTransfer
from webserv.utils import get_file_length

ERR400 = (
    "<html>\n"
    "  <head><title>400 Bad Request</title></head>\n"
    "  <body>\n"
    "    <h1>400 Bad Request</h1>\n"
    "    <p>Your browser sent a request that this server could not understand.</p>\n"
    "  </body>\n"
    "</html>"
)
ERR500 = (
    "<html>\n"
    "  <head><title>500 Internal Server Error</title></head>\n"
    "  <body>\n"
    "    <h1>500 Internal Server Error</h1>\n"
    "    <p>The server encountered an internal error and was unable to complete "
    "your request.</p>\n"
    "  </body>\n"
    "</html>"
)
_BUILTIN_PAGES = {400: ERR400, 500: ERR500}


def handle_error_client(error: ErrorCodeClientError) -> GetTransfer | None:
    """Reply to the client with the error page for ``error``.

    Returns the transfer that sends a configured error page. None means the
    client is to be dropped: either the error asked for no reply (code 0) or
    a built-in page has been sent and the connection closes.
    """
    client = error.client
    code = error.error_code
    print(f"errorCodeClient: {error.message}", file=sys.stderr)
    if code == 0:
        return None
    page = error.error_pages.get(code)
    if page is None:
        body = _BUILTIN_PAGES.get(code)
        if body is None:
            raise ValueError(f"invalid error code given in code: {code}")
        client.keep_alive = False
        _send(client, http_response(client, code, ".html", len(body)) + body)
        return None
    try:
        file = open(page, "rb")
    except OSError as exc:
        raise ClientError(f"couldn't open error page: {page}") from exc
    try:
        file_size = get_file_length(page)
    except ClientError:
        file.close()
        raise
    client.root_path = page
    response = http_response(client, code, page, file_size)
    return GetTransfer(client, file, response, file_size)