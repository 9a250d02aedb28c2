# mcpservers

Small, self-contained servers and building blocks in the style of the Model
Context Protocol:

- **Knowledge-graph memory** (`mcpservers.knowledge`, `mcpservers.memory_tools`):
  entities, relations and observations kept in memory or in a JSON file, with
  tools to create, search, open and delete them.
- **Sequential thinking** (`mcpservers.thinking`): step-by-step thinking
  sessions that can be continued, revised, branched and reviewed.
- **Greeter** (`mcpservers.greeter`): a greeting tool, a greeting prompt, an
  embedded resource, fixed completions and path-based server selection.
- **Rate limiting** (`mcpservers.ratelimit`): a token-bucket `RateLimiter` and
  global, per-method and per-session middleware that raise `OverloadedError`
  when a limit is exceeded.
- **Results** (`mcpservers.results`): `TextContent`, `CallToolResult`,
  `ResourceContents` and `ReadResourceResult`, each with `to_dict()` giving its
  JSON form.

No third-party packages are needed at run time.

## Installation

```
pip install .
```

To run the test suite:

```
pip install ".[test]"
pytest
```

## Command-line servers

Two commands are installed. Each reads newline-delimited JSON-RPC 2.0 messages
from standard input and writes one reply per line to standard output. They
answer `initialize`, `ping`, `tools/list` and `tools/call`, ignore
notifications, and reply with a JSON-RPC error to unknown methods.

```
mcp-memory [--memory PATH]
mcp-thinking
```

`mcp-memory` serves the knowledge-graph tools `create_entities`,
`create_relations`, `add_observations`, `delete_entities`,
`delete_observations`, `delete_relations`, `read_graph`, `search_nodes` and
`open_nodes`. Without `--memory` the graph lives in memory and is lost on exit;
with `--memory PATH` it is stored in that file (created with mode 0600).
Storage failures and unknown entities come back as tool results with
`isError` set.

`mcp-thinking` serves the `start_thinking`, `continue_thinking` and
`review_thinking` tools, and also answers `resources/list` and
`resources/read` for `thinking://sessions` (all sessions) and
`thinking://<id>` (one session), returned as indented JSON.

## Library use

### Knowledge graph

```python
from mcpservers.knowledge import Entity, KnowledgeBase, MemoryStore, Relation

kb = KnowledgeBase(MemoryStore())
kb.create_entities([Entity("Alice", "Person", ["Likes coffee"]), Entity("Bob", "Person")])
kb.create_relations([Relation("Alice", "Bob", "friend")])
print(kb.search_nodes("coffee").to_dict())
```

`KnowledgeBase` works over any object with `read()` and `write(data)`;
`MemoryStore` and `FileStore(path)` are provided (a missing file reads as an
empty graph). Entities with a name already present and relations already
present (same from, to and type) are skipped, and `create_entities`,
`create_relations` and `add_observations` return only what was actually added.
`add_observations` raises `EntityNotFoundError` for an unknown entity;
`delete_observations` ignores unknown entities. Unreadable or malformed
storage raises `StoreError`. `search_nodes` matches case-insensitively on name,
type and observations; both it and `open_nodes` return only relations whose
two ends are among the returned entities.

`MemoryTools(kb)` exposes the same operations as tools taking JSON-style
argument dictionaries. `MemoryTools.call(name, arguments)` dispatches by tool
name (raising `ValueError` for an unknown one) and returns a `CallToolResult`
with a short success message and, where the tool produces it, structured
content.

### Sequential thinking

```python
from mcpservers.thinking import SessionStore, continue_thinking, review_thinking, start_thinking

store = SessionStore()
start_thinking(store, "How to implement binary search", "s1", 5)
continue_thinking(store, "s1", "Sort the input first")
print(review_thinking(store, "s1").text())
```

`start_thinking` generates a 26-character session ID (`rand_text()`) when none
is given and defaults to 5 estimated steps. `continue_thinking` adds a thought,
or with `revise_step` rewrites an earlier one (raising `ValueError` for a step
out of range), or with `create_branch=True` copies the session into a new
branch session named `<id>_branch_<n>`. Passing `next_needed=False` marks the
session completed. Sessions are updated with optimistic concurrency through
`SessionStore.compare_and_swap`; unknown sessions raise `SessionNotFoundError`.
`thinking_history(store, uri)` returns a `ReadResourceResult` for a
`thinking://` URI.

### Greeter

`say_hi({"name": "user"})` returns a result whose text is `Hi user`.
`prompt_hi` builds a one-message user prompt. `read_embedded_resource("embedded:info")`
reads the built-in text resource; another scheme raises `ValueError` and an
unknown key raises `LookupError`. `complete("ref/prompt")` and
`complete("ref/resource")` return three fixed suggestions each; other
reference types raise `ValueError`. `select_server(path, servers)` returns the
entry for a request path from a mapping, or `None`.

### Rate limiting

`RateLimiter(rate, burst)` is a token bucket that starts full, refills at
`rate` tokens per second up to `burst`, and whose `allow()` takes a token if
one is available; a rate of `math.inf` allows everything. Middleware wraps a
handler called as `handler(session, method, params)`:

- `global_rate_limiter_middleware(limiter)` limits every call with one limiter;
- `per_method_rate_limiter_middleware({"tools/call": limiter, ...})` limits
  only the listed methods;
- `per_session_rate_limiter_middleware(limit, burst)` gives each session ID its
  own limiter and lets calls from sessions without an ID through, logging a
  warning.

## What this package does not do

The servers speak only newline-delimited JSON-RPC over standard input and
output: there is no HTTP, streamable-HTTP or SSE transport, no client, and no
general server framework that the greeter handlers or the rate-limiting
middleware plug into. The greeter has no command of its own; its functions are
meant to be called from your own code.