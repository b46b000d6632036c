from __future__ import annotations

import pytest

from pubgraph.db.graph_store import GraphStore, GraphStoreError, InMemoryGraphStore


def test_in_memory_store_satisfies_protocol():
    assert isinstance(InMemoryGraphStore(), GraphStore)


def test_merge_entity_applies_properties_only_on_create():
    store = InMemoryGraphStore()
    assert store.merge_entity("Aspirin", on_create={"type": "Chemical"}) is True
    assert store.merge_entity("Aspirin", on_create={"type": "Drug"}) is False
    assert store.entities["Aspirin"] == {"name": "Aspirin", "type": "Chemical"}


def test_merge_relationship_requires_endpoints():
    store = InMemoryGraphStore()
    store.merge_entity("Aspirin", on_create={})
    with pytest.raises(GraphStoreError):
        store.merge_relationship("Aspirin", "TREATS", "Thrombosis", on_create={})


def test_merge_relationship_is_keyed_by_endpoints_and_type():
    store = InMemoryGraphStore()
    for name in ("Aspirin", "Thrombosis"):
        store.merge_entity(name, on_create={})
    assert store.merge_relationship("Aspirin", "TREATS", "Thrombosis", on_create={"source": "a"}) is True
    assert store.merge_relationship("Aspirin", "TREATS", "Thrombosis", on_create={"source": "b"}) is False
    assert store.merge_relationship("Aspirin", "PREVENTS", "Thrombosis", on_create={}) is True
    assert store.relationships[("Aspirin", "TREATS", "Thrombosis")] == {"source": "a"}
    assert store.counts() == {"entities": 2, "relationships": 2}
