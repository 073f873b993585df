from mcp_testclient.mcp.protocol_models import (
    parse_tool_call_result,
    parse_tools_list_response,
)


def test_parse_tools_list_skips_nameless_entries_and_keeps_order() -> None:
    tools, cursor = parse_tools_list_response(
        {
            "tools": [
                {"name": "deepwiki_fetch", "inputSchema": {"type": "object", "required": ["url"]}},
                {"description": "no name"},
                "not-a-dict",
                {"name": "echo", "input_schema": {"type": "object"}},
                {"name": "bare"},
            ]
        }
    )
    assert [t.name for t in tools] == ["deepwiki_fetch", "echo", "bare"]
    assert tools[0].required_arguments == ["url"]
    assert tools[1].input_schema == {"type": "object"}
    assert tools[2].input_schema == {}
    assert cursor is None


def test_parse_tools_list_returns_next_cursor() -> None:
    tools, cursor = parse_tools_list_response({"tools": [], "nextCursor": "abc"})
    assert tools == []
    assert cursor == "abc"


def test_parse_tools_list_tolerates_garbage() -> None:
    assert parse_tools_list_response({"tools": "nope", "nextCursor": ""}) == ([], None)


def test_parse_tool_call_result_keeps_content_order_and_kinds() -> None:
    result = parse_tool_call_result(
        {
            "content": [
                {"type": "text", "text": "# antiwork/gumroad/3.1-navigation-components"},
                {"type": "image", "data": "aGVsbG8=", "mimeType": "image/png"},
                {
                    "type": "resource",
                    "resource": {"uri": "file:///a.md", "text": "body", "mimeType": "text/markdown"},
                },
                {"type": "text", "text": "second"},
            ],
            "structuredContent": {"pages": 1},
        }
    )
    assert [c.kind for c in result.content] == ["text", "image", "resource", "text"]
    assert result.content[1].data == "aGVsbG8="
    assert result.content[1].mime_type == "image/png"
    assert result.content[2].uri == "file:///a.md"
    assert result.content[2].text == "body"
    # Only text items contribute to text_output
    assert result.text_output == "# antiwork/gumroad/3.1-navigation-components\nsecond"
    assert result.structured_content == {"pages": 1}
    assert result.is_error is False


def test_parse_tool_call_result_carries_is_error_flag() -> None:
    result = parse_tool_call_result(
        {"content": [{"type": "text", "text": "upstream 500"}], "isError": True}
    )
    assert result.is_error is True
    assert result.text_output == "upstream 500"


def test_parse_tool_call_result_falls_back_to_top_level_text() -> None:
    result = parse_tool_call_result({"text": "legacy"})
    assert result.content[0].kind == "text"
    assert result.text_output == "legacy"
