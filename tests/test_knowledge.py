import json

import pytest

from mcpservers.knowledge import (
    Entity,
    EntityNotFoundError,
    FileStore,
    KnowledgeBase,
    KnowledgeGraph,
    MemoryStore,
    Observation,
    Relation,
    StoreError,
)


@pytest.fixture(params=["file", "memory"])
def store(request, tmp_path):
    if request.param == "file":
        return FileStore(tmp_path / "test-memory.json")
    return MemoryStore()


def test_knowledge_base_operations(store):
    kb = KnowledgeBase(store)

    graph = kb.load_graph()
    assert graph.entities == [] and graph.relations == []

    entities = [
        Entity("Alice", "Person", ["Likes coffee"]),
        Entity("Bob", "Person", ["Likes tea"]),
    ]
    assert len(kb.create_entities(entities)) == 2
    assert len(kb.load_graph().entities) == 2

    relations = [Relation("Alice", "Bob", "friend")]
    assert len(kb.create_relations(relations)) == 1

    added = kb.add_observations(
        [Observation("Alice", ["Works as developer", "Lives in New York"])]
    )
    assert len(added) == 1 and len(added[0].contents) == 2

    found = kb.search_nodes("developer")
    assert [e.name for e in found.entities] == ["Alice"]

    opened = kb.open_nodes(["Bob"])
    assert [e.name for e in opened.entities] == ["Bob"]

    kb.delete_observations([Observation("Alice", observations=["Works as developer"])])
    graph = kb.load_graph()
    alice = next(e for e in graph.entities if e.name == "Alice")
    assert "Works as developer" not in alice.observations

    kb.delete_relations(relations)
    assert kb.load_graph().relations == []

    kb.delete_entities(["Alice"])
    assert [e.name for e in kb.load_graph().entities] == ["Bob"]


def test_save_and_load_graph(store):
    kb = KnowledgeBase(store)
    graph = KnowledgeGraph(
        entities=[Entity("Charlie", "Person", ["Likes hiking"])],
        relations=[Relation("Charlie", "Mountains", "enjoys")],
    )
    kb.save_graph(graph)
    assert kb.load_graph() == graph


def test_malformed_file_data(tmp_path):
    path = tmp_path / "test-memory.json"
    path.write_bytes(b"invalid json")
    with pytest.raises(StoreError):
        KnowledgeBase(FileStore(path)).load_graph()


def test_duplicate_entities_and_relations(store):
    kb = KnowledgeBase(store)
    kb.create_entities([Entity("Dave", "Person", ["Plays guitar"])])
    new = kb.create_entities(
        [Entity("Dave", "Person", ["Sings well"]), Entity("Eve", "Person", ["Plays piano"])]
    )
    assert [e.name for e in new] == ["Eve"]

    kb.create_relations([Relation("Dave", "Eve", "friend")])
    new_relations = kb.create_relations(
        [Relation("Dave", "Eve", "friend"), Relation("Eve", "Dave", "friend")]
    )
    assert new_relations == [Relation("Eve", "Dave", "friend")]


def test_file_store_write_error(tmp_path):
    kb = KnowledgeBase(FileStore(tmp_path / "nonexistent" / "directory" / "file.json"))
    with pytest.raises(StoreError):
        kb.create_entities([Entity("TestEntity")])


def test_add_observation_to_missing_entity(store):
    kb = KnowledgeBase(store)
    kb.create_entities([Entity("RealEntity")])
    with pytest.raises(EntityNotFoundError) as info:
        kb.add_observations([Observation("NonExistentEntity", ["This shouldn't work"])])
    assert "entity with name NonExistentEntity not found" in str(info.value)


def test_file_formatting(store):
    kb = KnowledgeBase(store)
    kb.create_entities([Entity("FileTest", "TestEntity", ["Test observation"])])
    items = json.loads(store.read())
    assert len(items) == 1
    item = items[0]
    assert item["type"] == "entity"
    assert item["name"] == "FileTest"
    assert item["entityType"] == "TestEntity"
    assert item["observations"] == ["Test observation"]


def test_add_observations_skips_existing(store):
    kb = KnowledgeBase(store)
    kb.create_entities([Entity("Alice", "Person", ["Likes coffee"])])
    added = kb.add_observations([Observation("Alice", ["Likes coffee", "Reads"])])
    assert added[0].contents == ["Reads"]
    alice = kb.load_graph().entities[0]
    assert alice.observations == ["Likes coffee", "Reads"]


def test_delete_entities_removes_touching_relations(store):
    kb = KnowledgeBase(store)
    kb.create_entities([Entity("A"), Entity("B"), Entity("C")])
    kb.create_relations([Relation("A", "B", "x"), Relation("B", "C", "y")])
    kb.delete_entities(["A"])
    assert kb.load_graph().relations == [Relation("B", "C", "y")]


def test_search_is_case_insensitive_and_filters_relations(store):
    kb = KnowledgeBase(store)
    kb.create_entities([Entity("Alice", "Person"), Entity("Bob", "Robot")])
    kb.create_relations([Relation("Alice", "Bob", "knows")])
    result = kb.search_nodes("PERSON")
    assert [e.name for e in result.entities] == ["Alice"]
    assert result.relations == []


def test_open_nodes_includes_connecting_relations(store):
    kb = KnowledgeBase(store)
    kb.create_entities([Entity("A"), Entity("B")])
    kb.create_relations([Relation("A", "B", "r")])
    result = kb.open_nodes(["A", "B"])
    assert result.relations == [Relation("A", "B", "r")]


def test_missing_file_reads_empty(tmp_path):
    assert FileStore(tmp_path / "absent.json").read() == b""


def test_memory_store_round_trip():
    s = MemoryStore()
    s.write(b"[1]")
    assert s.read() == b"[1]"


def test_to_dict_round_trips():
    graph = KnowledgeGraph([Entity("A", "T", ["o"])], [Relation("A", "B", "r")])
    assert KnowledgeGraph.from_dict(graph.to_dict()) == graph
    obs = Observation("A", ["c"], ["d"])
    assert Observation.from_dict(obs.to_dict()) == obs
    assert "observations" not in Observation("A", ["c"]).to_dict()