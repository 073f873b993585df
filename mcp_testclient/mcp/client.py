"""MCP protocol client: handshake, request correlation and typed tool operations."""

from __future__ import annotations

import asyncio
import copy
import functools
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any

from pydantic import ValidationError

from mcp_testclient.config.defaults import (
    CLIENT_CAPABILITIES,
    INTERNAL_ERROR,
    INVALID_REQUEST,
    METHOD_NOT_FOUND,
    SUPPORTED_PROTOCOL_VERSIONS,
)
from mcp_testclient.config.settings import ClientSettings, get_settings
from mcp_testclient.mcp.errors import (
    AlreadyConnectedError,
    ConnectionClosedError,
    HandshakeError,
    NotConnectedError,
    ProtocolError,
    RequestTimeoutError,
    TransportError,
)
from mcp_testclient.mcp.protocol_models import (
    ToolCallResult,
    ToolDescriptor,
    parse_tool_call_result,
    parse_tools_list_response,
)
from mcp_testclient.mcp.transports.base import MCPTransport
from mcp_testclient.schemas.jsonrpc import (
    Implementation,
    InitializeParams,
    InitializeResult,
    JSONRPCErrorResponse,
    JSONRPCNotification,
    JSONRPCRequest,
    JSONRPCResponse,
)

logger = logging.getLogger(__name__)

_WORKER_LOG_LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "notice": logging.INFO,
    "warning": logging.WARNING,
    "error": logging.ERROR,
    "critical": logging.CRITICAL,
    "alert": logging.CRITICAL,
    "emergency": logging.CRITICAL,
}


class ClientState(str, Enum):
    DISCONNECTED = "disconnected"
    HANDSHAKING = "handshaking"
    READY = "ready"
    CLOSED = "closed"


@dataclass
class PendingRequest:
    request_id: int
    method: str
    future: asyncio.Future


class ProtocolClient:
    """One MCP session over one transport at a time.

    Requests are correlated by an integer id that increases for the lifetime of the
    connection. Any number of requests may be in flight; each resolves when the
    response carrying its id arrives, in whatever order the worker answers.
    """

    def __init__(
        self,
        *,
        client_name: str | None = None,
        client_version: str | None = None,
        capabilities: dict[str, Any] | None = None,
        request_timeout: float | None = None,
        settings: ClientSettings | None = None,
    ) -> None:
        settings = settings or get_settings()
        self._client_info = Implementation(
            name=client_name or settings.client_name,
            version=client_version or settings.client_version,
        )
        self._capabilities = copy.deepcopy(
            capabilities if capabilities is not None else CLIENT_CAPABILITIES
        )
        self._protocol_version = settings.protocol_version
        self._request_timeout = (
            request_timeout if request_timeout is not None else settings.request_timeout_seconds
        )
        self._handshake_timeout = settings.handshake_timeout_seconds

        self._state = ClientState.DISCONNECTED
        self._transport: MCPTransport | None = None
        self._pending: dict[int, PendingRequest] = {}
        self._request_id = 0
        self._background_tasks: set[asyncio.Task] = set()

        self._server_info: Implementation | None = None
        self._server_capabilities: dict[str, Any] = {}
        self._negotiated_version: str | None = None
        self._instructions: str | None = None
        self._tools: tuple[ToolDescriptor, ...] = ()

    async def __aenter__(self) -> "ProtocolClient":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    @property
    def state(self) -> ClientState:
        return self._state

    @property
    def capabilities(self) -> dict[str, Any]:
        return copy.deepcopy(self._capabilities)

    @property
    def server_info(self) -> Implementation | None:
        return self._server_info

    @property
    def server_capabilities(self) -> dict[str, Any]:
        return dict(self._server_capabilities)

    @property
    def protocol_version(self) -> str | None:
        return self._negotiated_version

    @property
    def instructions(self) -> str | None:
        return self._instructions

    @property
    def tools(self) -> list[ToolDescriptor]:
        """Snapshot from the most recent list_tools() call."""
        return list(self._tools)

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    async def connect(self, transport: MCPTransport) -> None:
        """Open the transport and complete the initialize handshake."""
        if self._state in (ClientState.HANDSHAKING, ClientState.READY):
            raise AlreadyConnectedError(
                f"Client is already {self._state.value}; call close() before connecting again"
            )
        self._transport = transport
        self._pending = {}
        self._request_id = 0
        self._state = ClientState.HANDSHAKING
        transport.on_message(functools.partial(self._handle_message, transport))
        transport.on_close(functools.partial(self._handle_connection_lost, transport))

        try:
            await transport.open()
            params = InitializeParams(
                protocolVersion=self._protocol_version,
                capabilities=self.capabilities,
                clientInfo=self._client_info,
            )
            raw = await self._send_request(
                "initialize",
                params.model_dump(exclude_none=True),
                timeout=self._handshake_timeout,
            )
            self._apply_initialize_result(raw)
            await self._send_notification("notifications/initialized")
        except ProtocolError as exc:
            error = HandshakeError(f"Worker rejected initialize: {exc.message}", code=exc.code)
            await self._shutdown(error)
            raise error from exc
        except RequestTimeoutError as exc:
            error = HandshakeError(f"Worker did not answer initialize within {exc.timeout:g}s")
            await self._shutdown(error)
            raise error from exc
        except HandshakeError as exc:
            await self._shutdown(exc)
            raise
        except BaseException:
            await self._shutdown(ConnectionClosedError("Connection attempt failed"))
            raise

        if self._transport is not transport:
            raise ConnectionClosedError("Connection closed during handshake")
        self._state = ClientState.READY
        logger.info(
            "MCP handshake complete: server=%s protocol=%s",
            self._server_info.name if self._server_info else "?",
            self._negotiated_version,
        )

    async def close(self) -> None:
        """Tear down the connection; pending requests fail with ConnectionClosedError."""
        if self._transport is None:
            return
        await self._shutdown(ConnectionClosedError("Connection closed by client"))

    async def ping(self, *, timeout: float | None = None) -> None:
        self._require_ready()
        await self._send_request("ping", None, timeout=timeout)

    async def list_tools(self, *, timeout: float | None = None) -> list[ToolDescriptor]:
        """Query the worker for its tools, following pagination cursors."""
        self._require_ready()
        tools: list[ToolDescriptor] = []
        cursor: str | None = None
        while True:
            params = {"cursor": cursor} if cursor else {}
            raw = await self._send_request("tools/list", params, timeout=timeout)
            page, cursor = parse_tools_list_response(raw if isinstance(raw, dict) else {})
            tools.extend(page)
            if cursor is None:
                break
        self._tools = tuple(tools)
        return tools

    async def call_tool(
        self,
        name: str,
        arguments: dict[str, Any] | None = None,
        *,
        timeout: float | None = None,
    ) -> ToolCallResult:
        """Invoke a tool.

        Raises ProtocolError when the worker rejects the call (unknown tool, schema
        validation failure, or the tool refusing the input); the invalid-params code
        -32602 covers both schema and policy rejections.
        """
        self._require_ready()
        raw = await self._send_request(
            "tools/call",
            {"name": name, "arguments": arguments if arguments is not None else {}},
            timeout=timeout,
        )
        return parse_tool_call_result(raw if isinstance(raw, dict) else {})

    async def get_prompt(self, name: str, *, timeout: float | None = None) -> ToolCallResult:
        # Calling a tool with no arguments makes it describe itself
        return await self.call_tool(name, {}, timeout=timeout)

    def _require_ready(self) -> None:
        if self._state is not ClientState.READY or self._transport is None:
            raise NotConnectedError(
                f"Client is {self._state.value}; connect() must succeed before this call"
            )

    def _apply_initialize_result(self, raw: Any) -> None:
        try:
            result = InitializeResult.model_validate(raw)
        except ValidationError as exc:
            raise HandshakeError(f"Malformed initialize result: {exc.errors()[0]['msg']}") from exc
        if result.protocolVersion not in SUPPORTED_PROTOCOL_VERSIONS:
            raise HandshakeError(
                f"Server's protocol version is not supported: {result.protocolVersion}"
            )
        self._negotiated_version = result.protocolVersion
        self._server_capabilities = result.capabilities
        self._server_info = result.serverInfo
        self._instructions = result.instructions

    def _next_id(self) -> int:
        self._request_id += 1
        return self._request_id

    async def _send_request(
        self, method: str, params: dict | None, *, timeout: float | None = None
    ) -> Any:
        transport = self._transport
        if transport is None:
            raise NotConnectedError("No active connection")
        request_id = self._next_id()
        future: asyncio.Future = asyncio.get_running_loop().create_future()
        self._pending[request_id] = PendingRequest(request_id=request_id, method=method, future=future)
        message = JSONRPCRequest(id=request_id, method=method, params=params)
        try:
            await transport.write(message.model_dump(exclude_none=True))
        except TransportError as exc:
            self._pending.pop(request_id, None)
            await self._shutdown(exc)
            raise

        wait_for = timeout if timeout is not None else self._request_timeout
        try:
            return await asyncio.wait_for(future, timeout=wait_for)
        except asyncio.TimeoutError:
            # No cancellation is sent; a late reply is discarded as unknown
            raise RequestTimeoutError(method, wait_for) from None
        finally:
            self._pending.pop(request_id, None)

    async def _send_notification(self, method: str, params: dict | None = None) -> None:
        transport = self._transport
        if transport is None:
            raise NotConnectedError("No active connection")
        message = JSONRPCNotification(method=method, params=params)
        await transport.write(message.model_dump(exclude_none=True))

    def _handle_message(self, transport: MCPTransport, message: dict[str, Any]) -> None:
        if transport is not self._transport:
            logger.debug("Ignoring message from a previous connection: %s", message)
            return
        if "method" in message:
            if "id" in message:
                self._spawn(self._answer_worker_request(message))
            else:
                self._handle_notification(message)
            return
        if "id" not in message:
            logger.warning("Discarding message without id or method: %s", message)
            return

        request_id = message.get("id")
        pending = self._pending.pop(request_id, None) if isinstance(request_id, int) else None
        if pending is None or pending.future.done():
            logger.warning("Discarding response for unknown request id %r", request_id)
            return

        if "error" in message:
            try:
                err = JSONRPCErrorResponse.model_validate(message).error
            except ValidationError:
                pending.future.set_exception(
                    ProtocolError(INTERNAL_ERROR, f"Malformed error response: {message.get('error')!r}", method=pending.method)
                )
                return
            logger.debug("Request %s (%s) failed: %s %s", request_id, pending.method, err.code, err.message)
            pending.future.set_exception(
                ProtocolError(err.code, err.message, err.data, method=pending.method)
            )
        elif "result" in message:
            try:
                result = JSONRPCResponse.model_validate(message).result
            except ValidationError as exc:
                pending.future.set_exception(
                    ProtocolError(INTERNAL_ERROR, f"Malformed response: {exc.errors()[0]['msg']}", method=pending.method)
                )
                return
            pending.future.set_result(result)
        else:
            pending.future.set_exception(
                ProtocolError(INVALID_REQUEST, "Response has neither result nor error", method=pending.method)
            )

    def _handle_notification(self, message: dict[str, Any]) -> None:
        method = message.get("method")
        params = message.get("params") if isinstance(message.get("params"), dict) else {}
        if method == "notifications/message":
            level = _WORKER_LOG_LEVELS.get(str(params.get("level", "info")), logging.INFO)
            logger.log(level, "worker log [%s]: %s", params.get("logger", "-"), params.get("data"))
            return
        logger.debug("Worker notification %s: %s", method, params)

    async def _answer_worker_request(self, message: dict[str, Any]) -> None:
        transport = self._transport
        if transport is None:
            return
        request_id = message.get("id")
        method = message.get("method")
        if method == "ping":
            reply: dict[str, Any] = {"jsonrpc": "2.0", "id": request_id, "result": {}}
        else:
            logger.warning("Worker sent unsupported request %s", method)
            reply = {
                "jsonrpc": "2.0",
                "id": request_id,
                "error": {"code": METHOD_NOT_FOUND, "message": f"Method not found: {method}"},
            }
        try:
            await transport.write(reply)
        except TransportError as exc:
            logger.warning("Failed to answer worker request %s: %s", method, exc)

    def _handle_connection_lost(self, transport: MCPTransport, error: Exception) -> None:
        if transport is not self._transport:
            logger.debug("Ignoring connection loss from a previous transport: %s", error)
            return
        self._transport = None
        logger.warning("Connection to worker lost: %s", error)
        self._state = ClientState.CLOSED
        self._fail_pending(error)
        self._spawn(transport.close())

    def _spawn(self, coro) -> None:
        task = asyncio.get_running_loop().create_task(coro)
        self._background_tasks.add(task)
        task.add_done_callback(self._background_tasks.discard)

    def _fail_pending(self, error: Exception) -> None:
        pending, self._pending = self._pending, {}
        for entry in pending.values():
            if entry.future.done():
                continue
            if isinstance(error, ConnectionClosedError):
                exc: Exception = error
            else:
                exc = ConnectionClosedError(f"{entry.method} aborted: {error}")
                exc.__cause__ = error
            entry.future.set_exception(exc)

    async def _shutdown(self, error: Exception) -> None:
        transport, self._transport = self._transport, None
        previous = self._state
        self._state = ClientState.CLOSED
        self._fail_pending(error)
        if transport is None:
            return
        try:
            await transport.close()
        finally:
            if previous is ClientState.READY:
                logger.info("Disconnected from MCP worker")
