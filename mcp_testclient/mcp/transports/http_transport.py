"""MCP HTTP transport: POST JSON-RPC to a worker's endpoint, dispatch JSON or SSE replies."""

from __future__ import annotations

import json
import logging
from typing import Any

import httpx

from mcp_testclient.config.settings import ClientSettings, get_settings
from mcp_testclient.mcp.errors import ConnectionClosedError, TransportError
from mcp_testclient.mcp.transports.base import CloseHandler, MessageHandler

logger = logging.getLogger(__name__)

SESSION_HEADER = "mcp-session-id"


class HttpTransport:
    """Connects to a worker serving MCP over HTTP (streamable-http, request/response only)."""

    def __init__(
        self,
        url: str,
        *,
        headers: dict[str, str] | None = None,
        settings: ClientSettings | None = None,
        http_transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        settings = settings or get_settings()
        self._url = url.rstrip("/")
        self._headers = dict(headers) if isinstance(headers, dict) else {}
        self._timeout = settings.http_timeout_seconds
        self._http_transport = http_transport
        self._client: httpx.AsyncClient | None = None
        self._session_id: str | None = None
        self._message_handler: MessageHandler | None = None

    @property
    def url(self) -> str:
        return self._url

    @property
    def session_id(self) -> str | None:
        return self._session_id

    @property
    def is_open(self) -> bool:
        return self._client is not None

    def on_message(self, handler: MessageHandler) -> None:
        self._message_handler = handler

    def on_close(self, handler: CloseHandler) -> None:
        """No-op: request failures surface from write() as TransportError."""

    async def open(self) -> None:
        if self._client is not None:
            raise TransportError("Transport is already open")
        self._client = httpx.AsyncClient(timeout=self._timeout, transport=self._http_transport)

    async def write(self, message: dict[str, Any]) -> None:
        """POST one message; every JSON-RPC message in the reply goes to the handler."""
        if self._client is None:
            raise ConnectionClosedError("HTTP transport is not open")
        expects_reply = "id" in message and "method" in message
        for reply in await self._post(message, allow_empty_response=not expects_reply):
            self._dispatch(reply)

    async def close(self) -> None:
        client = self._client
        if client is None:
            return
        self._client = None
        try:
            if self._session_id:
                try:
                    await client.delete(self._url, headers=self._request_headers())
                except httpx.HTTPError as exc:
                    logger.warning("MCP HTTP session teardown failed: url=%s error=%s", self._url, exc)
        finally:
            self._session_id = None
            await client.aclose()

    def _request_headers(self) -> dict[str, str]:
        headers = {
            "Content-Type": "application/json",
            "Accept": "application/json, text/event-stream",
            **self._headers,
        }
        if self._session_id:
            headers[SESSION_HEADER] = self._session_id
        return headers

    def _dispatch(self, message: dict[str, Any]) -> None:
        if self._message_handler is None:
            logger.warning("No message handler registered; dropping %s", message)
            return
        self._message_handler(message)

    async def _post(
        self, payload: dict, *, allow_empty_response: bool = False
    ) -> list[dict[str, Any]]:
        assert self._client is not None
        try:
            response = await self._client.post(self._url, json=payload, headers=self._request_headers())
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            body = (e.response.text or "")[:300]
            raise TransportError(
                f"HTTP {e.response.status_code} from {self._url}: {body}"
            ) from e
        except httpx.HTTPError as e:
            raise TransportError(f"HTTP request to {self._url} failed: {e}") from e

        session_id = response.headers.get(SESSION_HEADER)
        if session_id:
            self._session_id = session_id

        body = response.text or ""
        if not body.strip():
            if allow_empty_response:
                return []
            logger.warning("MCP HTTP empty response: url=%s status=%s", self._url, response.status_code)
            raise TransportError(
                f"Empty response from {self._url} (status {response.status_code})"
            )
        try:
            parsed = json.loads(body)
        except json.JSONDecodeError as e:
            messages = self._extract_json_from_sse(body)
            if messages:
                return messages
            preview = body[:500].replace("\n", " ")
            if len(body) > 500:
                preview += "..."
            logger.warning(
                "MCP HTTP invalid JSON: url=%s status=%s body_len=%d preview=%s",
                self._url, response.status_code, len(body), preview[:100],
            )
            raise TransportError(
                f"Invalid JSON from server (status {response.status_code}). Body: {preview}"
            ) from e
        if isinstance(parsed, list):
            return [m for m in parsed if isinstance(m, dict)]
        return [parsed] if isinstance(parsed, dict) else []

    @staticmethod
    def _extract_json_from_sse(body: str) -> list[dict[str, Any]]:
        # Support SSE-framed MCP responses such as:
        # event: message
        # data: {"jsonrpc":"2.0", ...}
        normalized = body.replace("\r\n", "\n").replace("\r", "\n")
        messages: list[dict[str, Any]] = []
        for block in normalized.split("\n\n"):
            if not block.strip():
                continue
            data_lines: list[str] = []
            for line in block.split("\n"):
                if line.startswith("data:"):
                    data_lines.append(line[5:].lstrip())
            if not data_lines:
                continue
            payload = "\n".join(data_lines).strip()
            if not payload or payload == "[DONE]":
                continue
            try:
                parsed = json.loads(payload)
            except json.JSONDecodeError:
                continue
            if isinstance(parsed, dict):
                messages.append(parsed)
        return messages
