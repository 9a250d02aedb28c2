"""Result and content types returned by tool and resource handlers."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass
class TextContent:
    """A piece of plain text content."""

    text: str

    def to_dict(self) -> dict[str, Any]:
        return {"type": "text", "text": self.text}


def _plain(value: Any) -> Any:
    """Turn a value into plain JSON-compatible data, using ``to_dict`` where present."""
    to_dict = getattr(value, "to_dict", None)
    if callable(to_dict):
        return to_dict()
    if isinstance(value, (list, tuple)):
        return [_plain(item) for item in value]
    if isinstance(value, dict):
        return {key: _plain(item) for key, item in value.items()}
    return value


@dataclass
class CallToolResult:
    """The result of a tool call: content blocks plus optional structured content."""

    content: list[TextContent] = field(default_factory=list)
    structured_content: Any = None
    is_error: bool = False

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {"content": [item.to_dict() for item in self.content]}
        if self.structured_content is not None:
            result["structuredContent"] = _plain(self.structured_content)
        if self.is_error:
            result["isError"] = True
        return result

    def text(self) -> str:
        """Return the text of all text content blocks, joined by newlines."""
        return "\n".join(
            item.text for item in self.content if isinstance(item, TextContent)
        )


@dataclass
class ResourceContents:
    """The contents of a single resource."""

    uri: str
    mime_type: str = ""
    text: str = ""

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {"uri": self.uri}
        if self.mime_type:
            result["mimeType"] = self.mime_type
        if self.text:
            result["text"] = self.text
        return result


@dataclass
class ReadResourceResult:
    """The result of reading a resource."""

    contents: list[ResourceContents] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {"contents": [item.to_dict() for item in self.contents]}