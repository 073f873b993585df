"""JSON-RPC 2.0 envelopes and MCP handshake payloads exchanged with the worker."""

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field


class JSONRPCRequest(BaseModel):
    jsonrpc: Literal["2.0"] = "2.0"
    id: int | str
    method: str = Field(min_length=1)
    params: dict[str, Any] | None = None


class JSONRPCNotification(BaseModel):
    jsonrpc: Literal["2.0"] = "2.0"
    method: str = Field(min_length=1)
    params: dict[str, Any] | None = None


class ErrorData(BaseModel):
    model_config = ConfigDict(extra="allow")

    code: int
    message: str
    data: Any = None


class JSONRPCResponse(BaseModel):
    model_config = ConfigDict(extra="allow")

    jsonrpc: str = "2.0"
    id: int | str
    result: Any = None


class JSONRPCErrorResponse(BaseModel):
    model_config = ConfigDict(extra="allow")

    jsonrpc: str = "2.0"
    id: int | str | None = None
    error: ErrorData


class Implementation(BaseModel):
    model_config = ConfigDict(extra="allow")

    name: str
    version: str
    title: str | None = None


class InitializeParams(BaseModel):
    protocolVersion: str
    capabilities: dict[str, Any]
    clientInfo: Implementation


class InitializeResult(BaseModel):
    model_config = ConfigDict(extra="allow")

    protocolVersion: str = Field(min_length=1)
    capabilities: dict[str, Any]
    serverInfo: Implementation | None = None
    instructions: str | None = None
