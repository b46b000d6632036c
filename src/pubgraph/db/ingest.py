"""Merge extracted triples into a graph store, one independent unit per triple."""

from __future__ import annotations

import re
from collections.abc import Iterable
from dataclasses import dataclass
from typing import Optional

import structlog

from cli.telemetry import PipelineMetrics
from pubgraph.kg.triples import Triple

from .graph_store import GraphStore, GraphStoreError

logger = structlog.get_logger(__name__)

DEFAULT_SOURCE_TAG = "LLM_PubGraph"
EDGE_TYPE_SEPARATOR = "_"

_NON_ALPHANUMERIC = re.compile(r"[^A-Za-z0-9]")
_ALPHANUMERIC = re.compile(r"[A-Za-z0-9]")


class InvalidTripleError(ValueError):
    """Raised when a triple cannot be mapped onto graph elements."""


def normalize_relationship(relationship: str) -> str:
    """Return the storage-safe edge type for a free-text relationship.

    Every character outside ``[A-Za-z0-9]`` becomes ``_`` and the result is
    upper-cased, so ``"useful in treating"`` maps to ``USEFUL_IN_TREATING``.

    Raises:
        InvalidTripleError: the relationship has no alphanumeric character.
    """

    if not _ALPHANUMERIC.search(relationship or ""):
        raise InvalidTripleError(f"Relationship {relationship!r} yields no usable edge type")
    return _NON_ALPHANUMERIC.sub(EDGE_TYPE_SEPARATOR, relationship).upper()


@dataclass
class IngestResult:
    """Per-batch ingestion outcome."""

    ingested: int = 0
    failed: int = 0

    @property
    def attempted(self) -> int:
        return self.ingested + self.failed


class GraphIngestor:
    """Writes triples as ``Entity`` nodes joined by typed relationship edges."""

    def __init__(
        self,
        store: GraphStore,
        *,
        source_tag: str = DEFAULT_SOURCE_TAG,
        metrics: Optional[PipelineMetrics] = None,
    ) -> None:
        self._store = store
        self._source_tag = source_tag
        self._metrics = metrics

    def ingest(self, triples: Iterable[Triple]) -> IngestResult:
        """Merge each triple in order; a failing triple is logged and skipped."""

        result = IngestResult()
        for triple in triples:
            try:
                edge_type = self.ingest_one(triple)
            except (InvalidTripleError, GraphStoreError) as exc:
                result.failed += 1
                logger.error(
                    "graph_ingest.triple_failed",
                    subject=triple.subject,
                    relationship=triple.relationship,
                    edge_type=_safe_edge_type(triple.relationship),
                    object=triple.object,
                    error=str(exc),
                )
                continue
            result.ingested += 1
            logger.debug(
                "graph_ingest.triple_merged",
                subject=triple.subject,
                edge_type=edge_type,
                object=triple.object,
            )

        if self._metrics is not None:
            self._metrics.observe_triples(outcome="ingested", count=result.ingested)
            self._metrics.observe_triples(outcome="failed", count=result.failed)
        return result

    def ingest_one(self, triple: Triple) -> str:
        """Merge a single triple and return the edge type it was stored under."""

        if not triple.subject.strip() or not triple.object.strip():
            raise InvalidTripleError("Subject and object names must be non-empty")
        edge_type = normalize_relationship(triple.relationship)

        self._store.merge_entity(triple.subject, on_create={"type": triple.subject_type})
        self._store.merge_entity(triple.object, on_create={"type": triple.object_type})
        self._store.merge_relationship(
            triple.subject,
            edge_type,
            triple.object,
            on_create={
                "subject_qualifier": triple.subject_qualifier,
                "object_qualifier": triple.object_qualifier,
                "statement_qualifier": triple.statement_qualifier,
                "source": self._source_tag,
            },
        )
        return edge_type


def _safe_edge_type(relationship: str) -> str | None:
    try:
        return normalize_relationship(relationship)
    except InvalidTripleError:
        return None


__all__ = [
    "DEFAULT_SOURCE_TAG",
    "EDGE_TYPE_SEPARATOR",
    "GraphIngestor",
    "IngestResult",
    "InvalidTripleError",
    "normalize_relationship",
]
