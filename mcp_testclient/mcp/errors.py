"""Error types raised by MCP transports and the protocol client."""

from __future__ import annotations

from typing import Any

from mcp_testclient.config.defaults import INVALID_PARAMS, METHOD_NOT_FOUND


class MCPClientError(Exception):
    """Base error for everything raised by this package."""


class TransportError(MCPClientError):
    """The byte stream or the worker process failed."""


class SpawnError(TransportError):
    """The worker executable could not be launched."""

    def __init__(self, argv: list[str], reason: str) -> None:
        self.argv = list(argv)
        self.reason = reason
        super().__init__(f"Failed to spawn worker {argv[0] if argv else '?'}: {reason}")


class ConnectionClosedError(TransportError):
    """The connection went away while a request was still pending."""


class HandshakeError(MCPClientError):
    """The initialize exchange was rejected or malformed."""

    def __init__(self, message: str, *, code: int | None = None) -> None:
        self.code = code
        super().__init__(message)


class NotConnectedError(MCPClientError):
    """An operation was attempted while the client is not ready."""


class AlreadyConnectedError(MCPClientError):
    """connect() was called again without an intervening close()."""


class RequestTimeoutError(MCPClientError, TimeoutError):
    def __init__(self, method: str, timeout: float) -> None:
        self.method = method
        self.timeout = timeout
        super().__init__(f"Request {method} timed out after {timeout:g}s")


class ProtocolError(MCPClientError):
    """A JSON-RPC error object returned by the worker for one request."""

    def __init__(
        self,
        code: int,
        message: str,
        data: Any = None,
        *,
        method: str | None = None,
    ) -> None:
        self.code = code
        self.message = message
        self.data = data
        self.method = method
        super().__init__(f"MCP error {code}: {message}")

    @property
    def is_invalid_params(self) -> bool:
        return self.code == INVALID_PARAMS

    @property
    def is_method_not_found(self) -> bool:
        return self.code == METHOD_NOT_FOUND
