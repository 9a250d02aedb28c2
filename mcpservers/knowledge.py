"""A knowledge graph of entities and relations with pluggable persistence."""

from __future__ import annotations

import json
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Iterable, Protocol


class StoreError(Exception):
    """Raised when the knowledge base cannot be read from or written to storage."""


class EntityNotFoundError(LookupError):
    """Raised when an operation names an entity that does not exist."""


@dataclass
class Entity:
    """A knowledge graph node with observations."""

    name: str
    entity_type: str = ""
    observations: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "entityType": self.entity_type,
            "observations": list(self.observations),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Entity:
        return cls(
            name=data.get("name") or "",
            entity_type=data.get("entityType") or "",
            observations=list(data.get("observations") or []),
        )

    def _copy(self) -> Entity:
        return Entity(self.name, self.entity_type, list(self.observations))


@dataclass(frozen=True)
class Relation:
    """A directed edge between two entities."""

    from_: str
    to: str
    relation_type: str

    def to_dict(self) -> dict[str, Any]:
        return {"from": self.from_, "to": self.to, "relationType": self.relation_type}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Relation:
        return cls(
            from_=data.get("from") or "",
            to=data.get("to") or "",
            relation_type=data.get("relationType") or "",
        )


@dataclass
class Observation:
    """Facts about an entity; ``observations`` is used for deletions."""

    entity_name: str
    contents: list[str] = field(default_factory=list)
    observations: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "entityName": self.entity_name,
            "contents": list(self.contents),
        }
        if self.observations:
            result["observations"] = list(self.observations)
        return result

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Observation:
        return cls(
            entity_name=data.get("entityName") or "",
            contents=list(data.get("contents") or []),
            observations=list(data.get("observations") or []),
        )


@dataclass
class KnowledgeGraph:
    """The complete graph: entities and the relations between them."""

    entities: list[Entity] = field(default_factory=list)
    relations: list[Relation] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "entities": [entity.to_dict() for entity in self.entities],
            "relations": [relation.to_dict() for relation in self.relations],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> KnowledgeGraph:
        return cls(
            entities=[Entity.from_dict(e) for e in data.get("entities") or []],
            relations=[Relation.from_dict(r) for r in data.get("relations") or []],
        )


class Store(Protocol):
    def read(self) -> bytes: ...

    def write(self, data: bytes) -> None: ...


class MemoryStore:
    """In-memory storage that does not persist across restarts."""

    def __init__(self) -> None:
        self._data = b""

    def read(self) -> bytes:
        return self._data

    def write(self, data: bytes) -> None:
        self._data = bytes(data)


class FileStore:
    """File-based storage; a missing file reads as empty."""

    def __init__(self, path: str | os.PathLike[str]) -> None:
        self.path = Path(path)

    def read(self) -> bytes:
        try:
            return self.path.read_bytes()
        except FileNotFoundError:
            return b""
        except OSError as exc:
            raise StoreError(f"failed to read file {self.path}: {exc}") from exc

    def write(self, data: bytes) -> None:
        try:
            fd = os.open(self.path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
            with os.fdopen(fd, "wb") as handle:
                handle.write(data)
        except OSError as exc:
            raise StoreError(f"failed to write file {self.path}: {exc}") from exc


def _entity_item(entity: Entity) -> dict[str, Any]:
    item: dict[str, Any] = {"type": "entity"}
    if entity.name:
        item["name"] = entity.name
    if entity.entity_type:
        item["entityType"] = entity.entity_type
    if entity.observations:
        item["observations"] = list(entity.observations)
    return item


def _relation_item(relation: Relation) -> dict[str, Any]:
    item: dict[str, Any] = {"type": "relation"}
    if relation.from_:
        item["from"] = relation.from_
    if relation.to:
        item["to"] = relation.to
    if relation.relation_type:
        item["relationType"] = relation.relation_type
    return item


def _connecting(relations: Iterable[Relation], names: set[str]) -> list[Relation]:
    return [r for r in relations if r.from_ in names and r.to in names]


class KnowledgeBase:
    """Manages entities and relations held in a store."""

    def __init__(self, store: Store) -> None:
        self.store = store

    def load_graph(self) -> KnowledgeGraph:
        try:
            data = self.store.read()
        except StoreError as exc:
            raise StoreError(f"failed to read from store: {exc}") from exc
        if not data:
            return KnowledgeGraph()
        try:
            items = json.loads(data)
            if not isinstance(items, list):
                raise ValueError("expected a JSON array")
        except ValueError as exc:
            raise StoreError(f"failed to unmarshal from store: {exc}") from exc

        graph = KnowledgeGraph()
        for item in items:
            if not isinstance(item, dict):
                raise StoreError("failed to unmarshal from store: item is not an object")
            kind = item.get("type")
            if kind == "entity":
                graph.entities.append(Entity.from_dict(item))
            elif kind == "relation":
                graph.relations.append(Relation.from_dict(item))
        return graph

    def save_graph(self, graph: KnowledgeGraph) -> None:
        items = [_entity_item(e) for e in graph.entities]
        items.extend(_relation_item(r) for r in graph.relations)
        data = json.dumps(items, separators=(",", ":"), ensure_ascii=False).encode()
        try:
            self.store.write(data)
        except StoreError as exc:
            raise StoreError(f"failed to write to store: {exc}") from exc

    def create_entities(self, entities: Iterable[Entity]) -> list[Entity]:
        """Add entities whose names are new; return those that were added."""
        graph = self.load_graph()
        names = {e.name for e in graph.entities}
        added: list[Entity] = []
        for entity in entities:
            if entity.name not in names:
                names.add(entity.name)
                added.append(entity._copy())
                graph.entities.append(entity._copy())
        self.save_graph(graph)
        return added

    def create_relations(self, relations: Iterable[Relation]) -> list[Relation]:
        """Add relations that are not already present; return those added."""
        graph = self.load_graph()
        existing = set(graph.relations)
        added: list[Relation] = []
        for relation in relations:
            if relation not in existing:
                existing.add(relation)
                added.append(relation)
                graph.relations.append(relation)
        self.save_graph(graph)
        return added

    def add_observations(self, observations: Iterable[Observation]) -> list[Observation]:
        """Append new observations to existing entities; return those added."""
        graph = self.load_graph()
        by_name = {}
        for entity in graph.entities:
            by_name.setdefault(entity.name, entity)
        results: list[Observation] = []
        for obs in observations:
            entity = by_name.get(obs.entity_name)
            if entity is None:
                raise EntityNotFoundError(f"entity with name {obs.entity_name} not found")
            new = []
            for content in obs.contents:
                if content not in entity.observations:
                    new.append(content)
                    entity.observations.append(content)
            results.append(Observation(entity_name=obs.entity_name, contents=new))
        self.save_graph(graph)
        return results

    def delete_entities(self, entity_names: Iterable[str]) -> None:
        """Remove entities and every relation touching them."""
        graph = self.load_graph()
        doomed = set(entity_names)
        graph.entities = [e for e in graph.entities if e.name not in doomed]
        graph.relations = [
            r for r in graph.relations if r.from_ not in doomed and r.to not in doomed
        ]
        self.save_graph(graph)

    def delete_observations(self, deletions: Iterable[Observation]) -> None:
        """Remove specific observations; unknown entities are ignored."""
        graph = self.load_graph()
        for deletion in deletions:
            entity = next((e for e in graph.entities if e.name == deletion.entity_name), None)
            if entity is None:
                continue
            doomed = set(deletion.observations)
            entity.observations = [o for o in entity.observations if o not in doomed]
        self.save_graph(graph)

    def delete_relations(self, relations: Iterable[Relation]) -> None:
        graph = self.load_graph()
        doomed = set(relations)
        graph.relations = [r for r in graph.relations if r not in doomed]
        self.save_graph(graph)

    def search_nodes(self, query: str) -> KnowledgeGraph:
        """Return entities matching the query (case-insensitive) and their relations."""
        graph = self.load_graph()
        needle = query.lower()

        def matches(entity: Entity) -> bool:
            return (
                needle in entity.name.lower()
                or needle in entity.entity_type.lower()
                or any(needle in o.lower() for o in entity.observations)
            )

        found = [e for e in graph.entities if matches(e)]
        names = {e.name for e in found}
        return KnowledgeGraph(found, _connecting(graph.relations, names))

    def open_nodes(self, names: Iterable[str]) -> KnowledgeGraph:
        """Return the named entities and the relations between them."""
        graph = self.load_graph()
        wanted = set(names)
        found = [e for e in graph.entities if e.name in wanted]
        found_names = {e.name for e in found}
        return KnowledgeGraph(found, _connecting(graph.relations, found_names))