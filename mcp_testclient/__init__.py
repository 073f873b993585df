"""Stdio MCP client and test harness for tool-server workers."""

from mcp_testclient.harness import WorkerTestClient, ensure_port_argument
from mcp_testclient.mcp.client import ClientState, ProtocolClient
from mcp_testclient.mcp.errors import (
    AlreadyConnectedError,
    ConnectionClosedError,
    HandshakeError,
    MCPClientError,
    NotConnectedError,
    ProtocolError,
    RequestTimeoutError,
    SpawnError,
    TransportError,
)
from mcp_testclient.mcp.protocol_models import ContentItem, ToolCallResult, ToolDescriptor

__version__ = "0.1.0"

__all__ = [
    "AlreadyConnectedError",
    "ClientState",
    "ConnectionClosedError",
    "ContentItem",
    "HandshakeError",
    "MCPClientError",
    "NotConnectedError",
    "ProtocolClient",
    "ProtocolError",
    "RequestTimeoutError",
    "SpawnError",
    "ToolCallResult",
    "ToolDescriptor",
    "TransportError",
    "WorkerTestClient",
    "ensure_port_argument",
]
