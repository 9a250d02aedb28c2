"""Knowledge-graph tools and a line-delimited JSON-RPC server that exposes them."""

from __future__ import annotations

import argparse
import json
import sys
from typing import Any, Callable, Mapping, TextIO

from .knowledge import (
    EntityNotFoundError,
    Entity,
    FileStore,
    KnowledgeBase,
    MemoryStore,
    Observation,
    Relation,
    StoreError,
)
from .results import CallToolResult, TextContent

SERVER_NAME = "memory"
PROTOCOL_VERSION = "2025-06-18"

TOOL_DESCRIPTIONS: dict[str, str] = {
    "create_entities": "Create multiple new entities in the knowledge graph",
    "create_relations": "Create multiple new relations between entities",
    "add_observations": "Add new observations to existing entities",
    "delete_entities": "Remove entities and their relations",
    "delete_observations": "Remove specific observations from entities",
    "delete_relations": "Remove specific relations from the graph",
    "read_graph": "Read the entire knowledge graph",
    "search_nodes": "Search for nodes based on query",
    "open_nodes": "Retrieve specific nodes by name",
}

_ENTITY_SCHEMA = {
    "type": "object",
    "properties": {
        "name": {"type": "string"},
        "entityType": {"type": "string"},
        "observations": {"type": "array", "items": {"type": "string"}},
    },
    "required": ["name"],
}
_RELATION_SCHEMA = {
    "type": "object",
    "properties": {
        "from": {"type": "string"},
        "to": {"type": "string"},
        "relationType": {"type": "string"},
    },
    "required": ["from", "to", "relationType"],
}
_OBSERVATION_SCHEMA = {
    "type": "object",
    "properties": {
        "entityName": {"type": "string"},
        "contents": {"type": "array", "items": {"type": "string"}},
        "observations": {"type": "array", "items": {"type": "string"}},
    },
    "required": ["entityName"],
}
_STRINGS = {"type": "array", "items": {"type": "string"}}


def _object_schema(**properties: Any) -> dict[str, Any]:
    schema: dict[str, Any] = {"type": "object", "properties": properties}
    if properties:
        schema["required"] = list(properties)
    return schema


_INPUT_SCHEMAS: dict[str, dict[str, Any]] = {
    "create_entities": _object_schema(entities={"type": "array", "items": _ENTITY_SCHEMA}),
    "create_relations": _object_schema(relations={"type": "array", "items": _RELATION_SCHEMA}),
    "add_observations": _object_schema(
        observations={"type": "array", "items": _OBSERVATION_SCHEMA}
    ),
    "delete_entities": _object_schema(entityNames=_STRINGS),
    "delete_observations": _object_schema(
        deletions={"type": "array", "items": _OBSERVATION_SCHEMA}
    ),
    "delete_relations": _object_schema(relations={"type": "array", "items": _RELATION_SCHEMA}),
    "read_graph": _object_schema(),
    "search_nodes": _object_schema(query={"type": "string"}),
    "open_nodes": _object_schema(names=_STRINGS),
}


def _items(arguments: Mapping[str, Any] | None, key: str) -> list[Any]:
    return list((arguments or {}).get(key) or [])


def _done(message: str, structured: Any = None) -> CallToolResult:
    return CallToolResult(content=[TextContent(message)], structured_content=structured)


class MemoryTools:
    """Tool handlers over a knowledge base; each takes the tool's JSON arguments."""

    def __init__(self, kb: KnowledgeBase) -> None:
        self.kb = kb

    def create_entities(self, arguments: Mapping[str, Any] | None) -> CallToolResult:
        entities = [Entity.from_dict(e) for e in _items(arguments, "entities")]
        created = self.kb.create_entities(entities)
        return _done("Entities created successfully", {"entities": created})

    def create_relations(self, arguments: Mapping[str, Any] | None) -> CallToolResult:
        relations = [Relation.from_dict(r) for r in _items(arguments, "relations")]
        created = self.kb.create_relations(relations)
        return _done("Relations created successfully", {"relations": created})

    def add_observations(self, arguments: Mapping[str, Any] | None) -> CallToolResult:
        observations = [Observation.from_dict(o) for o in _items(arguments, "observations")]
        added = self.kb.add_observations(observations)
        return _done("Observations added successfully", {"observations": added})

    def delete_entities(self, arguments: Mapping[str, Any] | None) -> CallToolResult:
        self.kb.delete_entities(_items(arguments, "entityNames"))
        return _done("Entities deleted successfully")

    def delete_observations(self, arguments: Mapping[str, Any] | None) -> CallToolResult:
        deletions = [Observation.from_dict(o) for o in _items(arguments, "deletions")]
        self.kb.delete_observations(deletions)
        return _done("Observations deleted successfully")

    def delete_relations(self, arguments: Mapping[str, Any] | None) -> CallToolResult:
        relations = [Relation.from_dict(r) for r in _items(arguments, "relations")]
        self.kb.delete_relations(relations)
        return _done("Relations deleted successfully")

    def read_graph(self, arguments: Mapping[str, Any] | None) -> CallToolResult:
        return _done("Graph read successfully", self.kb.load_graph())

    def search_nodes(self, arguments: Mapping[str, Any] | None) -> CallToolResult:
        query = (arguments or {}).get("query") or ""
        return _done("Nodes searched successfully", self.kb.search_nodes(query))

    def open_nodes(self, arguments: Mapping[str, Any] | None) -> CallToolResult:
        graph = self.kb.open_nodes(_items(arguments, "names"))
        return _done("Nodes opened successfully", graph)

    def call(self, name: str, arguments: Mapping[str, Any] | None) -> CallToolResult:
        """Run the tool called ``name``; raise ValueError for an unknown tool."""
        handlers: dict[str, Callable[[Mapping[str, Any] | None], CallToolResult]] = {
            "create_entities": self.create_entities,
            "create_relations": self.create_relations,
            "add_observations": self.add_observations,
            "delete_entities": self.delete_entities,
            "delete_observations": self.delete_observations,
            "delete_relations": self.delete_relations,
            "read_graph": self.read_graph,
            "search_nodes": self.search_nodes,
            "open_nodes": self.open_nodes,
        }
        handler = handlers.get(name)
        if handler is None:
            raise ValueError(f"unknown tool {name!r}")
        return handler(arguments)


class _RpcError(Exception):
    def __init__(self, code: int, message: str) -> None:
        super().__init__(message)
        self.code = code
        self.message = message


def _tool_definitions() -> list[dict[str, Any]]:
    return [
        {"name": name, "description": description, "inputSchema": _INPUT_SCHEMAS[name]}
        for name, description in TOOL_DESCRIPTIONS.items()
    ]


def _dispatch(tools: MemoryTools, method: str, params: Mapping[str, Any]) -> Any:
    if method == "initialize":
        return {
            "protocolVersion": params.get("protocolVersion") or PROTOCOL_VERSION,
            "capabilities": {"tools": {"listChanged": True}},
            "serverInfo": {"name": SERVER_NAME, "version": ""},
        }
    if method == "ping" or method.startswith("notifications/"):
        return {}
    if method == "tools/list":
        return {"tools": _tool_definitions()}
    if method == "tools/call":
        name = params.get("name")
        if name not in TOOL_DESCRIPTIONS:
            raise _RpcError(-32602, f"unknown tool {name!r}")
        arguments = params.get("arguments")
        if arguments is not None and not isinstance(arguments, dict):
            raise _RpcError(-32602, "tool arguments must be an object")
        try:
            result = tools.call(name, arguments)
        except (StoreError, EntityNotFoundError) as exc:
            result = CallToolResult(content=[TextContent(str(exc))], is_error=True)
        except (TypeError, AttributeError) as exc:
            raise _RpcError(-32602, f"invalid arguments: {exc}") from exc
        return result.to_dict()
    raise _RpcError(-32601, f"method not found: {method}")


def _error(msg_id: Any, code: int, message: str) -> dict[str, Any]:
    return {"jsonrpc": "2.0", "id": msg_id, "error": {"code": code, "message": message}}


def _handle(tools: MemoryTools, message: Any) -> dict[str, Any] | None:
    if not isinstance(message, dict):
        return _error(None, -32600, "invalid request")
    method = message.get("method")
    if method is None:
        return None  # a response from the peer; nothing to answer
    is_request = "id" in message
    msg_id = message.get("id")
    params = message.get("params") or {}
    try:
        if not isinstance(method, str) or not isinstance(params, dict):
            raise _RpcError(-32600, "invalid request")
        result = _dispatch(tools, method, params)
    except _RpcError as exc:
        return _error(msg_id, exc.code, exc.message) if is_request else None
    if not is_request:
        return None
    return {"jsonrpc": "2.0", "id": msg_id, "result": result}


def _serve(tools: MemoryTools, infile: TextIO, outfile: TextIO) -> None:
    for line in infile:
        line = line.strip()
        if not line:
            continue
        try:
            message = json.loads(line)
        except ValueError:
            reply: dict[str, Any] | None = _error(None, -32700, "parse error")
        else:
            reply = _handle(tools, message)
        if reply is not None:
            outfile.write(json.dumps(reply, ensure_ascii=False) + "\n")
            outfile.flush()


def main(argv: list[str] | None = None) -> int:
    """Serve the knowledge-graph tools over standard input and output."""
    parser = argparse.ArgumentParser(prog="mcp-memory")
    parser.add_argument(
        "--memory",
        default="",
        help="if set, persist the knowledge base to this file; "
        "otherwise it is stored in memory and lost on exit",
    )
    args = parser.parse_args(argv)
    store = FileStore(args.memory) if args.memory else MemoryStore()
    _serve(MemoryTools(KnowledgeBase(store)), sys.stdin, sys.stdout)
    return 0


if __name__ == "__main__":
    sys.exit(main())