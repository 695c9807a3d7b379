"""Exceptions raised while serving a client request."""

from __future__ import annotations

from typing import Any


class ClientError(Exception):
    """A request that cannot be served; the client gets a generic 400 reply."""


class LengthRequiredError(ClientError):
    """A request body was sent without a usable length."""


class ErrorCodeClientError(Exception):
    """A request failure that maps onto a specific HTTP status code.

    The error pages of the client's matched location are captured when the
    error is raised, so that the reply is built from the configuration that
    was in force at that moment. An error code of 0 means the client is to be
    dropped without any reply.
    """

    def __init__(self, client: Any, error_code: int, message: str) -> None:
        super().__init__(message)
        self.client = client
        self.error_code = int(error_code)
        self.message = message
        self.error_pages: dict[int, str] = dict(client.location.error_pages)

    def __str__(self) -> str:
        return self.message