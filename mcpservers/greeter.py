"""Greeting tool, prompt and embedded resource handlers, plus simple completion."""

from __future__ import annotations

import logging
from typing import Any, Mapping, TypeVar
from urllib.parse import urlparse

from .results import CallToolResult, ReadResourceResult, ResourceContents, TextContent

logger = logging.getLogger(__name__)

T = TypeVar("T")

EMBEDDED_RESOURCES: dict[str, str] = {
    "info": "This is the hello example server.",
}

_SUGGESTIONS: dict[str, list[str]] = {
    "ref/prompt": ["suggestion1", "suggestion2", "suggestion3"],
    "ref/resource": ["suggestion4", "suggestion5", "suggestion6"],
}


def _quoted(text: str) -> str:
    escaped = text.replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'


def say_hi(arguments: Mapping[str, Any] | None) -> CallToolResult:
    """Greet the person named by the ``name`` argument."""
    name = (arguments or {}).get("name") or ""
    return CallToolResult(content=[TextContent("Hi " + name)])


def prompt_hi(arguments: Mapping[str, str] | None) -> dict[str, Any]:
    """Build a prompt asking to say hi to the ``name`` argument."""
    name = (arguments or {}).get("name") or ""
    return {
        "description": "Code review prompt",
        "messages": [
            {"role": "user", "content": TextContent("Say hi to " + name).to_dict()},
        ],
    }


def _opaque(uri: str) -> tuple[str, str]:
    parsed = urlparse(uri)
    if parsed.netloc or parsed.path.startswith("/"):
        return parsed.scheme, ""
    return parsed.scheme, parsed.path


def read_embedded_resource(uri: str) -> ReadResourceResult:
    """Read an ``embedded:<key>`` resource from the built-in table."""
    scheme, key = _opaque(uri)
    if scheme != "embedded":
        raise ValueError(f"wrong scheme: {_quoted(scheme)}")
    text = EMBEDDED_RESOURCES.get(key)
    if text is None:
        raise LookupError(f"no embedded resource named {_quoted(key)}")
    return ReadResourceResult(
        contents=[ResourceContents(uri=uri, mime_type="text/plain", text=text)]
    )


def complete(ref_type: str) -> dict[str, Any]:
    """Return fixed completion suggestions for a prompt or resource reference."""
    suggestions = _SUGGESTIONS.get(ref_type)
    if suggestions is None:
        raise ValueError(f"unrecognized content type {ref_type}")
    return {
        "completion": {
            "hasMore": False,
            "total": len(suggestions),
            "values": list(suggestions),
        }
    }


def select_server(path: str, servers: Mapping[str, T]) -> T | None:
    """Pick the server registered for a request path, or None if there is none."""
    logger.info("Handling request for URL %s", path)
    return servers.get(path)