"""End-to-end tests: the harness launches the stdio fake worker and drives real sessions."""

import asyncio

import pytest

from mcp_testclient.harness import WorkerTestClient, ensure_port_argument
from mcp_testclient.mcp.client import ClientState
from mcp_testclient.mcp.errors import (
    ConnectionClosedError,
    HandshakeError,
    NotConnectedError,
    ProtocolError,
    SpawnError,
)


def _run(scenario, **client_kwargs) -> None:
    async def wrapper():
        async with WorkerTestClient(**client_kwargs) as client:
            await scenario(client)

    asyncio.run(wrapper())


def test_ensure_port_argument_appends_dynamic_port_in_place() -> None:
    args = ["server"]
    returned = ensure_port_argument(args)
    assert returned is args
    assert args == ["server", "--port", "0"]


def test_ensure_port_argument_keeps_caller_port() -> None:
    assert ensure_port_argument(["server", "--port", "8080"]) == ["server", "--port", "8080"]
    assert ensure_port_argument(["--port=9000"]) == ["--port=9000"]


def test_connect_to_server_with_default_configuration() -> None:
    async def scenario(client: WorkerTestClient):
        port = await client.connect_server()
        assert port == 0
        assert client.get_port() is None
        assert client.transport.argv[-3:] == ["server", "--port", "0"]
        tools = await client.list_tools()
        assert tools
        assert "deepwiki_fetch" in [t.name for t in tools]

    _run(scenario)


def test_caller_args_are_mutated_with_default_port() -> None:
    args: list[str] = ["server"]

    async def scenario(client: WorkerTestClient):
        await client.connect(args)

    _run(scenario)
    assert args == ["server", "--port", "0"]


def test_fetch_content_from_deepwiki_url() -> None:
    async def scenario(client: WorkerTestClient):
        await client.connect_server()
        tools = await client.list_tools()
        assert "deepwiki_fetch" in [t.name for t in tools]

        result = await client.call_tool(
            "deepwiki_fetch",
            {
                "url": "https://deepwiki.com/antiwork/gumroad/3.1-navigation-components",
                "maxDepth": 1,
                "mode": "pages",
            },
            timeout=30,
        )
        assert "navigation-components" in result.content[0].text

    _run(scenario)


def test_non_deepwiki_url_is_rejected_with_invalid_params() -> None:
    async def scenario(client: WorkerTestClient):
        await client.connect_server()
        with pytest.raises(ProtocolError) as excinfo:
            await client.call_tool(
                "deepwiki_fetch", {"url": "https://example.com/some/path", "maxDepth": 0}
            )
        assert excinfo.value.code == -32602
        assert excinfo.value.message == "Only deepwiki.com domains are allowed"

    _run(scenario)


def test_missing_url_is_a_schema_validation_error() -> None:
    async def scenario(client: WorkerTestClient):
        await client.connect_server()
        with pytest.raises(ProtocolError) as excinfo:
            await client.call_tool("deepwiki_fetch", {"maxDepth": 1, "mode": "pages"})
        assert excinfo.value.code == -32602
        assert "Missing required property: url" in excinfo.value.message
        assert "Request failed schema validation" in excinfo.value.message

    _run(scenario)


def test_unknown_tool_is_rejected() -> None:
    async def scenario(client: WorkerTestClient):
        await client.connect_server()
        with pytest.raises(ProtocolError, match="not_a_tool"):
            await client.call_tool("not_a_tool")
        # The session stays usable after a rejected call
        assert [t.name for t in await client.list_tools()]

    _run(scenario)


def test_get_prompt_calls_tool_without_arguments() -> None:
    async def scenario(client: WorkerTestClient):
        await client.connect_server()
        prompt = await client.get_prompt("echo")
        assert "Echo back" in prompt.text_output

    _run(scenario)


def test_concurrent_calls_answered_in_reverse_order() -> None:
    async def scenario(client: WorkerTestClient):
        await client.connect_server()
        slow = asyncio.create_task(client.call_tool("echo", {"text": "slow", "delay": 0.5}))
        fast = asyncio.create_task(client.call_tool("echo", {"text": "fast"}))
        done, _ = await asyncio.wait({slow, fast}, return_when=asyncio.FIRST_COMPLETED)
        assert done == {fast}
        assert (await fast).text_output == "fast"
        assert (await slow).text_output == "slow"

    _run(scenario)


def test_paginated_tool_listing_is_collected_in_order() -> None:
    async def scenario(client: WorkerTestClient):
        await client.connect_server(["--page-size", "1"])
        names = [t.name for t in await client.list_tools()]
        assert names == ["deepwiki_fetch", "echo", "big_output", "exit_worker"]

    _run(scenario)


def test_worker_crash_fails_pending_call_and_closes_session() -> None:
    async def scenario(client: WorkerTestClient):
        await client.connect_server()
        pending = asyncio.create_task(client.call_tool("echo", {"text": "late", "delay": 5}))
        with pytest.raises(ConnectionClosedError):
            await client.call_tool("exit_worker", {"code": 2})
        with pytest.raises(ConnectionClosedError):
            await pending
        assert client.client.state is ClientState.CLOSED
        with pytest.raises(NotConnectedError):
            await client.list_tools()

    _run(scenario)


def test_rejected_handshake_does_not_leave_a_session() -> None:
    async def scenario(client: WorkerTestClient):
        with pytest.raises(HandshakeError, match="Unsupported client"):
            await client.connect_server(["--reject-initialize"])
        assert client.transport is None
        assert client.client.state is ClientState.CLOSED

    _run(scenario)


def test_missing_worker_command_raises_spawn_error() -> None:
    async def scenario(client: WorkerTestClient):
        with pytest.raises(SpawnError):
            await client.connect_server()

    _run(scenario, command="/nonexistent/node")


def test_close_twice_and_close_without_connect_are_harmless() -> None:
    async def scenario():
        never_connected = WorkerTestClient()
        await never_connected.close()

        client = WorkerTestClient()
        await client.connect_server()
        await client.close()
        await client.close()
        assert client.client.state is ClientState.CLOSED
        with pytest.raises(NotConnectedError):
            await client.call_tool("echo", {"text": "x"})

    asyncio.run(scenario())


def test_reconnect_after_close_starts_a_fresh_worker() -> None:
    async def scenario(client: WorkerTestClient):
        await client.connect_server()
        first_pid = client.transport.pid
        await client.close()
        await client.connect_server()
        assert client.transport.pid != first_pid
        assert [t.name for t in await client.list_tools()]

    _run(scenario)
