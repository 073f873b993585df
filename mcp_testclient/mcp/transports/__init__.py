"""MCP transport adapters: stdio (spawned worker) and http (worker serving on a port)."""

from __future__ import annotations

from typing import Any, Callable

from mcp_testclient.mcp.transports.base import MCPTransport
from mcp_testclient.mcp.transports.http_transport import HttpTransport
from mcp_testclient.mcp.transports.stdio import StdioTransport

TransportFactory = Callable[[dict[str, Any]], MCPTransport]

_transport_factory_registry: dict[str, TransportFactory] = {}


def register_transport_factory(name: str, factory: TransportFactory) -> None:
    """Register a transport factory. name is e.g. 'stdio', 'http'."""
    _transport_factory_registry[name.lower().strip()] = factory


def build_transport(name: str, config: dict[str, Any]) -> MCPTransport:
    key = name.lower().strip()
    if key == "streamable-http":
        key = "http"
    factory = _transport_factory_registry.get(key)
    if factory is None:
        raise NotImplementedError(f"No transport factory registered for: {name}")
    return factory(config)


def _stdio_from_config(config: dict[str, Any]) -> StdioTransport:
    command = config.get("command")
    if not isinstance(command, str) or not command:
        raise ValueError("stdio transport requires a 'command'")
    args_in = config.get("args")
    args = [str(a) for a in args_in] if isinstance(args_in, list) else []
    env = config.get("env")
    cwd = config.get("cwd")
    return StdioTransport(
        command,
        args,
        env=env if isinstance(env, dict) else None,
        cwd=cwd if isinstance(cwd, str) else None,
    )


def _http_from_config(config: dict[str, Any]) -> HttpTransport:
    url = config.get("url")
    if not isinstance(url, str) or not url:
        raise ValueError("http transport requires a 'url'")
    headers = config.get("headers")
    return HttpTransport(url, headers=headers if isinstance(headers, dict) else None)


register_transport_factory("stdio", _stdio_from_config)
register_transport_factory("http", _http_from_config)

__all__ = [
    "HttpTransport",
    "MCPTransport",
    "StdioTransport",
    "build_transport",
    "register_transport_factory",
]
