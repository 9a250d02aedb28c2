"""Sequential thinking sessions: stepwise thoughts with revisions and branches."""

from __future__ import annotations

import argparse
import dataclasses
import json
import re
import secrets
import sys
import threading
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Mapping, TextIO
from urllib.parse import urlparse

from .results import CallToolResult, ReadResourceResult, ResourceContents, TextContent

SERVER_NAME = "sequential-thinking"
PROTOCOL_VERSION = "2025-06-18"
DEFAULT_ESTIMATED_STEPS = 5

_BASE32_ALPHABET = "ABCDEFGHIJKLMNOPQRSTUVWXYZ234567"
_FRACTION = re.compile(r"\.(\d+)")


class SessionNotFoundError(LookupError):
    """Raised when a thinking session does not exist."""

    def __init__(self, session_id: str) -> None:
        super().__init__(f"session {session_id} not found")
        self.session_id = session_id


def _now() -> datetime:
    return datetime.now().astimezone()


def _format_time(value: datetime) -> str:
    return value.isoformat()


def _parse_time(text: str) -> datetime:
    text = text.strip()
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    text = _FRACTION.sub(lambda m: "." + m.group(1)[:6].ljust(6, "0"), text, count=1)
    return datetime.fromisoformat(text)


@dataclass
class Thought:
    """A single step in the thinking process."""

    index: int
    content: str
    created: datetime = field(default_factory=_now)
    revised: bool = False
    parent_index: int | None = None

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "index": self.index,
            "content": self.content,
            "created": _format_time(self.created),
            "revised": self.revised,
        }
        if self.parent_index is not None:
            result["parentIndex"] = self.parent_index
        return result


def _thought_from_dict(data: Mapping[str, Any]) -> Thought:
    created = data.get("created")
    return Thought(
        index=int(data.get("index") or 0),
        content=data.get("content") or "",
        created=_parse_time(created) if created else _now(),
        revised=bool(data.get("revised")),
        parent_index=data.get("parentIndex"),
    )


@dataclass
class ThinkingSession:
    """An active thinking session."""

    id: str
    problem: str = ""
    thoughts: list[Thought] = field(default_factory=list)
    current_thought: int = 0
    estimated_total: int = 0
    status: str = "active"
    created: datetime = field(default_factory=_now)
    last_activity: datetime = field(default_factory=_now)
    branches: list[str] = field(default_factory=list)
    version: int = 0

    def clone(self) -> ThinkingSession:
        """Return a deep copy of the session."""
        return dataclasses.replace(
            self,
            thoughts=[dataclasses.replace(t) for t in self.thoughts],
            branches=list(self.branches),
        )

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "id": self.id,
            "problem": self.problem,
            "thoughts": [t.to_dict() for t in self.thoughts],
            "currentThought": self.current_thought,
            "estimatedTotal": self.estimated_total,
            "status": self.status,
            "created": _format_time(self.created),
            "lastActivity": _format_time(self.last_activity),
        }
        if self.branches:
            result["branches"] = list(self.branches)
        result["version"] = self.version
        return result

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> ThinkingSession:
        created = data.get("created")
        last_activity = data.get("lastActivity")
        return cls(
            id=data.get("id") or "",
            problem=data.get("problem") or "",
            thoughts=[_thought_from_dict(t) for t in data.get("thoughts") or []],
            current_thought=int(data.get("currentThought") or 0),
            estimated_total=int(data.get("estimatedTotal") or 0),
            status=data.get("status") or "",
            created=_parse_time(created) if created else _now(),
            last_activity=_parse_time(last_activity) if last_activity else _now(),
            branches=list(data.get("branches") or []),
            version=int(data.get("version") or 0),
        )


class SessionStore:
    """A thread-safe store of thinking sessions.

    Stored sessions are never modified in place: updates go through
    :meth:`compare_and_swap`, which works on a copy and replaces the stored
    session only if its version has not changed meanwhile.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._sessions: dict[str, ThinkingSession] = {}

    def session(self, session_id: str) -> ThinkingSession | None:
        """Return the stored session with this ID, or None."""
        with self._lock:
            return self._sessions.get(session_id)

    def set_session(self, session: ThinkingSession) -> None:
        with self._lock:
            self._sessions[session.id] = session

    def compare_and_swap(
        self,
        session_id: str,
        update: Callable[[ThinkingSession], ThinkingSession],
    ) -> None:
        """Apply ``update`` to a copy of the session and store the result atomically.

        The update is retried if another writer changed the session meanwhile.
        Exceptions raised by ``update`` propagate and leave the store unchanged.
        """
        while True:
            with self._lock:
                current = self._sessions.get(session_id)
                if current is None:
                    raise SessionNotFoundError(session_id)
                working = current.clone()
                old_version = current.version

            updated = update(working)

            with self._lock:
                current = self._sessions.get(session_id)
                if current is None:
                    raise SessionNotFoundError(session_id)
                if current.version != old_version:
                    continue
                updated.version = old_version + 1
                self._sessions[session_id] = updated
                return

    def sessions(self) -> list[ThinkingSession]:
        with self._lock:
            return list(self._sessions.values())

    def sessions_snapshot(self) -> list[ThinkingSession]:
        """Return deep copies of all sessions."""
        with self._lock:
            return [s.clone() for s in self._sessions.values()]

    def session_snapshot(self, session_id: str) -> ThinkingSession | None:
        """Return a deep copy of the session, or None if it does not exist."""
        with self._lock:
            session = self._sessions.get(session_id)
            return session.clone() if session is not None else None


def rand_text() -> str:
    """Return 26 random base32 characters (at least 128 bits of randomness)."""
    return "".join(_BASE32_ALPHABET[b % 32] for b in secrets.token_bytes(26))


def _text_result(text: str) -> CallToolResult:
    return CallToolResult(content=[TextContent(text)])


def start_thinking(
    store: SessionStore,
    problem: str,
    session_id: str = "",
    estimated_steps: int = 0,
) -> CallToolResult:
    """Begin a new thinking session for a problem."""
    session_id = session_id or rand_text()
    estimated_steps = estimated_steps or DEFAULT_ESTIMATED_STEPS
    now = _now()
    store.set_session(
        ThinkingSession(
            id=session_id,
            problem=problem,
            estimated_total=estimated_steps,
            status="active",
            created=now,
            last_activity=now,
        )
    )
    return _text_result(
        f"Started thinking session '{session_id}' for problem: {problem}\n"
        f"Estimated steps: {estimated_steps}\n"
        "Ready for your first thought."
    )


def continue_thinking(
    store: SessionStore,
    session_id: str,
    thought: str,
    next_needed: bool | None = None,
    revise_step: int | None = None,
    create_branch: bool = False,
    estimated_total: int = 0,
) -> CallToolResult:
    """Add the next thought, revise an earlier one, or branch the session."""
    if revise_step is not None:

        def revise(session: ThinkingSession) -> ThinkingSession:
            step_index = revise_step - 1
            if not 0 <= step_index < len(session.thoughts):
                raise ValueError(f"invalid step number: {revise_step}")
            target = session.thoughts[step_index]
            target.content = thought
            target.revised = True
            session.last_activity = _now()
            return session

        store.compare_and_swap(session_id, revise)
        return _text_result(
            f"Revised step {revise_step} in session '{session_id}':\n{thought}"
        )

    if create_branch:
        branch: dict[str, ThinkingSession] = {}

        def make_branch(session: ThinkingSession) -> ThinkingSession:
            branch_id = f"{session_id}_branch_{len(session.branches) + 1}"
            session.branches.append(branch_id)
            now = _now()
            session.last_activity = now
            branch["session"] = ThinkingSession(
                id=branch_id,
                problem=session.problem + " (Alternative branch)",
                thoughts=[dataclasses.replace(t) for t in session.thoughts],
                current_thought=len(session.thoughts),
                estimated_total=session.estimated_total,
                status="active",
                created=now,
                last_activity=now,
            )
            return session

        store.compare_and_swap(session_id, make_branch)
        branch_session = branch["session"]
        store.set_session(branch_session)
        return _text_result(
            f"Created branch '{branch_session.id}' from session '{session_id}'. "
            "You can now continue thinking in either session."
        )

    summary: dict[str, str] = {}

    def add_thought(session: ThinkingSession) -> ThinkingSession:
        thought_id = len(session.thoughts) + 1
        now = _now()
        session.thoughts.append(Thought(index=thought_id, content=thought, created=now))
        session.current_thought = thought_id
        session.last_activity = now
        if estimated_total > 0:
            session.estimated_total = estimated_total
        if next_needed is not None and not next_needed:
            session.status = "completed"

        progress = f"Step {thought_id}"
        if session.estimated_total > 0:
            progress += f" of ~{session.estimated_total}"
        summary["progress"] = progress
        summary["status"] = (
            "\n✓ Thinking process completed!"
            if session.status == "completed"
            else "\nReady for next thought..."
        )
        return session

    store.compare_and_swap(session_id, add_thought)
    return _text_result(
        f"Session '{session_id}' - {summary['progress']}:\n{thought}{summary['status']}"
    )


def review_thinking(store: SessionStore, session_id: str) -> CallToolResult:
    """Summarise the whole thinking process of a session."""
    session = store.session_snapshot(session_id)
    if session is None:
        raise SessionNotFoundError(session_id)

    lines = [
        f"=== Thinking Review: {session.id} ===",
        f"Problem: {session.problem}",
        f"Status: {session.status}",
        f"Steps: {len(session.thoughts)} of ~{session.estimated_total}",
    ]
    if session.branches:
        lines.append(f"Branches: {', '.join(session.branches)}")
    lines.append("")
    lines.append("--- Thought Sequence ---")
    for number, item in enumerate(session.thoughts, start=1):
        marker = " (revised)" if item.revised else ""
        lines.append(f"{number}. {item.content}{marker}")
    return _text_result("\n".join(lines) + "\n")


def thinking_history(store: SessionStore, uri: str) -> ReadResourceResult:
    """Read ``thinking://sessions`` (all sessions) or ``thinking://<id>`` as JSON."""
    try:
        parsed = urlparse(uri)
    except ValueError as exc:
        raise ValueError(f"invalid thinking resource URI: {uri}") from exc
    if parsed.scheme != "thinking":
        raise ValueError(f"invalid thinking resource URI scheme: {parsed.scheme}")

    target = parsed.netloc
    if target == "sessions":
        payload: Any = [s.to_dict() for s in store.sessions_snapshot()]
    else:
        session = store.session_snapshot(target)
        if session is None:
            raise SessionNotFoundError(target)
        payload = session.to_dict()

    text = json.dumps(payload, indent=2, ensure_ascii=False)
    return ReadResourceResult(
        contents=[ResourceContents(uri=uri, mime_type="application/json", text=text)]
    )


_TOOLS: list[dict[str, Any]] = [
    {
        "name": "start_thinking",
        "description": "Begin a new sequential thinking session for a complex problem",
        "inputSchema": {
            "type": "object",
            "properties": {
                "problem": {"type": "string"},
                "sessionId": {"type": "string"},
                "estimatedSteps": {"type": "integer"},
            },
            "required": ["problem"],
        },
    },
    {
        "name": "continue_thinking",
        "description": "Add the next thought step, revise a previous step, or create a branch",
        "inputSchema": {
            "type": "object",
            "properties": {
                "sessionId": {"type": "string"},
                "thought": {"type": "string"},
                "nextNeeded": {"type": "boolean"},
                "reviseStep": {"type": "integer"},
                "createBranch": {"type": "boolean"},
                "estimatedTotal": {"type": "integer"},
            },
            "required": ["sessionId", "thought"],
        },
    },
    {
        "name": "review_thinking",
        "description": "Review the complete thinking process for a session",
        "inputSchema": {
            "type": "object",
            "properties": {"sessionId": {"type": "string"}},
            "required": ["sessionId"],
        },
    },
]

_RESOURCES: list[dict[str, Any]] = [
    {
        "name": "thinking_sessions",
        "description": "Access thinking session data and history",
        "uri": "thinking://sessions",
        "mimeType": "application/json",
    }
]


class _RpcError(Exception):
    def __init__(self, code: int, message: str) -> None:
        super().__init__(message)
        self.code = code
        self.message = message


def _call_tool(store: SessionStore, name: str, args: Mapping[str, Any]) -> CallToolResult:
    if name == "start_thinking":
        return start_thinking(
            store,
            args.get("problem") or "",
            args.get("sessionId") or "",
            int(args.get("estimatedSteps") or 0),
        )
    if name == "continue_thinking":
        revise = args.get("reviseStep")
        return continue_thinking(
            store,
            args.get("sessionId") or "",
            args.get("thought") or "",
            next_needed=args.get("nextNeeded"),
            revise_step=int(revise) if revise is not None else None,
            create_branch=bool(args.get("createBranch")),
            estimated_total=int(args.get("estimatedTotal") or 0),
        )
    if name == "review_thinking":
        return review_thinking(store, args.get("sessionId") or "")
    raise _RpcError(-32602, f"unknown tool {name!r}")


def _dispatch(store: SessionStore, method: str, params: Mapping[str, Any]) -> Any:
    if method == "initialize":
        return {
            "protocolVersion": params.get("protocolVersion") or PROTOCOL_VERSION,
            "capabilities": {
                "tools": {"listChanged": True},
                "resources": {"listChanged": True},
            },
            "serverInfo": {"name": SERVER_NAME, "version": ""},
        }
    if method == "ping" or method.startswith("notifications/"):
        return {}
    if method == "tools/list":
        return {"tools": _TOOLS}
    if method == "resources/list":
        return {"resources": _RESOURCES}
    if method == "tools/call":
        arguments = params.get("arguments") or {}
        if not isinstance(arguments, dict):
            raise _RpcError(-32602, "tool arguments must be an object")
        try:
            result = _call_tool(store, params.get("name") or "", arguments)
        except (LookupError, ValueError, TypeError) as exc:
            result = CallToolResult(content=[TextContent(str(exc))], is_error=True)
        return result.to_dict()
    if method == "resources/read":
        try:
            return thinking_history(store, params.get("uri") or "").to_dict()
        except (LookupError, ValueError) as exc:
            raise _RpcError(-32002, str(exc)) from exc
    raise _RpcError(-32601, f"method not found: {method}")


def _error(msg_id: Any, code: int, message: str) -> dict[str, Any]:
    return {"jsonrpc": "2.0", "id": msg_id, "error": {"code": code, "message": message}}


def _handle(store: SessionStore, message: Any) -> dict[str, Any] | None:
    if not isinstance(message, dict):
        return _error(None, -32600, "invalid request")
    method = message.get("method")
    if method is None:
        return None
    is_request = "id" in message
    msg_id = message.get("id")
    params = message.get("params") or {}
    try:
        if not isinstance(method, str) or not isinstance(params, dict):
            raise _RpcError(-32600, "invalid request")
        result = _dispatch(store, method, params)
    except _RpcError as exc:
        return _error(msg_id, exc.code, exc.message) if is_request else None
    if not is_request:
        return None
    return {"jsonrpc": "2.0", "id": msg_id, "result": result}


def _serve(store: SessionStore, infile: TextIO, outfile: TextIO) -> None:
    for line in infile:
        line = line.strip()
        if not line:
            continue
        try:
            message = json.loads(line)
        except ValueError:
            reply: dict[str, Any] | None = _error(None, -32700, "parse error")
        else:
            reply = _handle(store, message)
        if reply is not None:
            outfile.write(json.dumps(reply, ensure_ascii=False) + "\n")
            outfile.flush()


def main(argv: list[str] | None = None) -> int:
    """Serve the sequential thinking tools over standard input and output."""
    parser = argparse.ArgumentParser(
        prog="mcp-sequential-thinking",
        description="Sequential thinking server speaking line-delimited JSON-RPC on stdio.",
    )
    parser.parse_args(argv)
    _serve(SessionStore(), sys.stdin, sys.stdout)
    return 0


if __name__ == "__main__":
    sys.exit(main())