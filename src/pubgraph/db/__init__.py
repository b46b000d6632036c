"""Graph persistence for extracted triples."""

from .graph_store import GraphStore, GraphStoreError, InMemoryGraphStore
from .ingest import GraphIngestor, IngestResult, InvalidTripleError, normalize_relationship
from .neo4j_store import Neo4jGraphStore

__all__ = [
    "GraphIngestor",
    "GraphStore",
    "GraphStoreError",
    "InMemoryGraphStore",
    "IngestResult",
    "InvalidTripleError",
    "Neo4jGraphStore",
    "normalize_relationship",
]
