from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class ToolDescriptor:
    name: str
    description: str | None
    input_schema: dict

    @property
    def required_arguments(self) -> list[str]:
        required = self.input_schema.get("required", [])
        return [str(r) for r in required] if isinstance(required, list) else []


@dataclass(frozen=True)
class ContentItem:
    kind: str
    text: str | None = None
    data: str | None = None
    mime_type: str | None = None
    uri: str | None = None
    raw: dict = field(default_factory=dict, repr=False, compare=False)


@dataclass(frozen=True)
class ToolCallResult:
    content: list[ContentItem]
    is_error: bool = False
    structured_content: dict | None = None

    @property
    def text_output(self) -> str:
        """Concatenated text of every text item, in order."""
        return "\n".join(item.text for item in self.content if item.kind == "text" and item.text)


def parse_tools_list_response(payload: dict) -> tuple[list[ToolDescriptor], str | None]:
    """Return the tools on one tools/list page and the cursor for the next page."""
    tools_raw = payload.get("tools", [])
    if not isinstance(tools_raw, list):
        tools_raw = []
    tools: list[ToolDescriptor] = []
    for item in tools_raw:
        if not isinstance(item, dict):
            continue
        name = str(item.get("name", "")).strip()
        if not name:
            continue
        schema = item.get("inputSchema")
        if not isinstance(schema, dict):
            schema = item.get("input_schema") if isinstance(item.get("input_schema"), dict) else {}
        description = item.get("description")
        tools.append(
            ToolDescriptor(
                name=name,
                description=description if isinstance(description, str) else None,
                input_schema=schema,
            )
        )
    cursor = payload.get("nextCursor")
    return tools, cursor if isinstance(cursor, str) and cursor else None


def _parse_content_item(part: dict[str, Any]) -> ContentItem:
    kind = str(part.get("type", "")) or "unknown"
    text = part.get("text")
    data = part.get("data")
    mime_type = part.get("mimeType")
    uri = part.get("uri")
    resource = part.get("resource")
    if kind == "resource" and isinstance(resource, dict):
        # Embedded resources carry their payload one level down
        text = resource.get("text", text)
        data = resource.get("blob", data)
        mime_type = resource.get("mimeType", mime_type)
        uri = resource.get("uri", uri)
    return ContentItem(
        kind=kind,
        text=text if isinstance(text, str) else None,
        data=data if isinstance(data, str) else None,
        mime_type=mime_type if isinstance(mime_type, str) else None,
        uri=uri if isinstance(uri, str) else None,
        raw=dict(part),
    )


def parse_tool_call_result(payload: dict) -> ToolCallResult:
    content_raw = payload.get("content", [])
    content: list[ContentItem] = []
    if isinstance(content_raw, list):
        for part in content_raw:
            if isinstance(part, dict):
                content.append(_parse_content_item(part))
    if not content:
        text_fallback = payload.get("text")
        if isinstance(text_fallback, str):
            content.append(ContentItem(kind="text", text=text_fallback))
    structured = payload.get("structuredContent")
    return ToolCallResult(
        content=content,
        is_error=bool(payload.get("isError", False)),
        structured_content=structured if isinstance(structured, dict) else None,
    )
