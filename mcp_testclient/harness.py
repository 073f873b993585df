"""Test client that launches a tool-server worker over stdio and drives one MCP session."""

from __future__ import annotations

import logging
from typing import Any

from mcp_testclient.config.defaults import DYNAMIC_PORT, PORT_FLAG
from mcp_testclient.config.logging import configure_logging
from mcp_testclient.config.settings import ClientSettings, get_settings
from mcp_testclient.mcp.client import ProtocolClient
from mcp_testclient.mcp.protocol_models import ToolCallResult, ToolDescriptor
from mcp_testclient.mcp.transports import build_transport
from mcp_testclient.mcp.transports.base import MCPTransport

logger = logging.getLogger(__name__)


def ensure_port_argument(args: list[str]) -> list[str]:
    """Append ``--port 0`` in place unless the caller already chose a port."""
    has_port = any(a == PORT_FLAG or a.startswith(f"{PORT_FLAG}=") for a in args)
    if not has_port:
        args.extend([PORT_FLAG, DYNAMIC_PORT])
    return args


class WorkerTestClient:
    def __init__(
        self,
        cli_entry_point: str | None = None,
        *,
        command: str | None = None,
        env: dict[str, str] | None = None,
        settings: ClientSettings | None = None,
    ) -> None:
        settings = settings or get_settings()
        configure_logging(settings.log_level)
        self._cli_entry_point = cli_entry_point or settings.worker_entry_point
        self._command = command or settings.worker_command
        self._env = env
        self._client = ProtocolClient(settings=settings)
        self._transport: MCPTransport | None = None
        self._server_port: int | None = None

    async def __aenter__(self) -> "WorkerTestClient":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    @property
    def client(self) -> ProtocolClient:
        return self._client

    @property
    def transport(self) -> MCPTransport | None:
        return self._transport

    async def connect(self, args: list[str] | None = None) -> int:
        """Start the worker with the given command line arguments."""
        if args is None:
            args = []
        ensure_port_argument(args)
        argv = [self._cli_entry_point, *args]
        logger.info("Starting MCP worker with args: %s", argv)

        config: dict[str, Any] = {"command": self._command, "args": argv}
        if self._env is not None:
            config["env"] = self._env
        transport = build_transport("stdio", config)
        # The client tears the transport down itself if the handshake fails
        await self._client.connect(transport)
        self._transport = transport
        logger.info("Connected to MCP worker")

        # Port information isn't available from the stdio transport
        self._server_port = None
        return self._server_port or 0

    async def connect_server(self, args: list[str] | None = None) -> int:
        """Connect with "server" as the first worker argument."""
        return await self.connect(["server", *(args or [])])

    def get_port(self) -> int | None:
        return self._server_port

    async def close(self) -> None:
        if self._transport is None:
            logger.info("Transport not initialized, skipping close.")
            return
        try:
            await self._client.close()
        finally:
            self._transport = None
        logger.info("Disconnected from MCP worker")

    async def list_tools(self) -> list[ToolDescriptor]:
        return await self._client.list_tools()

    async def call_tool(
        self,
        name: str,
        args: dict[str, Any] | None = None,
        *,
        timeout: float | None = None,
    ) -> ToolCallResult:
        return await self._client.call_tool(name, args or {}, timeout=timeout)

    async def get_prompt(self, name: str) -> ToolCallResult:
        """Call a tool with no arguments to read back its prompt text."""
        return await self._client.get_prompt(name)
