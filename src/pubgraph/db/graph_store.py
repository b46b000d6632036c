"""Graph store contract: idempotent upserts with create-only properties."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Protocol, runtime_checkable


class GraphStoreError(RuntimeError):
    """Raised when the backing graph store rejects an operation or is unreachable."""


@runtime_checkable
class GraphStore(Protocol):
    """Minimal write surface the ingestor needs from a property graph.

    Both operations are "create if absent": the element is looked up by its key
    and ``on_create`` properties are applied only when the element did not
    exist. They return ``True`` when the element was created by this call.
    """

    def merge_entity(self, name: str, *, on_create: Mapping[str, Any]) -> bool:
        ...

    def merge_relationship(
        self,
        subject: str,
        rel_type: str,
        obj: str,
        *,
        on_create: Mapping[str, Any],
    ) -> bool:
        ...


@dataclass
class InMemoryGraphStore:
    """Dictionary-backed store implementing the contract by read-check-write."""

    entities: dict[str, dict[str, Any]] = field(default_factory=dict)
    relationships: dict[tuple[str, str, str], dict[str, Any]] = field(default_factory=dict)

    def merge_entity(self, name: str, *, on_create: Mapping[str, Any]) -> bool:
        if name in self.entities:
            return False
        self.entities[name] = {"name": name, **dict(on_create)}
        return True

    def merge_relationship(
        self,
        subject: str,
        rel_type: str,
        obj: str,
        *,
        on_create: Mapping[str, Any],
    ) -> bool:
        for endpoint in (subject, obj):
            if endpoint not in self.entities:
                raise GraphStoreError(f"Entity {endpoint!r} does not exist")
        key = (subject, rel_type, obj)
        if key in self.relationships:
            return False
        self.relationships[key] = dict(on_create)
        return True

    def counts(self) -> dict[str, int]:
        return {"entities": len(self.entities), "relationships": len(self.relationships)}

    def close(self) -> None:
        """Nothing to release; present for parity with persistent stores."""

    def __enter__(self) -> InMemoryGraphStore:
        return self

    def __exit__(self, exc_type, exc, tb) -> bool:
        self.close()
        return False


__all__ = ["GraphStore", "GraphStoreError", "InMemoryGraphStore"]
