"""MCP transport protocol: framing and lifecycle, no interpretation of messages."""

from __future__ import annotations

from typing import Any, Callable, Protocol

MessageHandler = Callable[[dict[str, Any]], None]
CloseHandler = Callable[[Exception], None]


class MCPTransport(Protocol):
    """Protocol for MCP transport implementations."""

    @property
    def is_open(self) -> bool: ...

    async def open(self) -> None: ...

    async def write(self, message: dict[str, Any]) -> None: ...

    def on_message(self, handler: MessageHandler) -> None: ...

    def on_close(self, handler: CloseHandler) -> None: ...

    async def close(self) -> None: ...
