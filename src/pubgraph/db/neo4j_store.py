"""Neo4j implementation of the graph store contract."""

from __future__ import annotations

import re
from collections.abc import Mapping
from typing import Any

import structlog
from neo4j import GraphDatabase
from neo4j.exceptions import DriverError, Neo4jError

from cli.sanitizer import mask_uri
from config.settings import Neo4jSettings

from .graph_store import GraphStoreError

logger = structlog.get_logger(__name__)

ENTITY_LABEL = "Entity"
_REL_TYPE_PATTERN = re.compile(r"^[A-Za-z0-9_]+$")

_ENTITY_CONSTRAINT_QUERY = (
    "CREATE CONSTRAINT entity_name_unique IF NOT EXISTS "
    f"FOR (e:{ENTITY_LABEL}) REQUIRE e.name IS UNIQUE"
)

_MERGE_ENTITY_QUERY = f"""
MERGE (e:{ENTITY_LABEL} {{name: $name}})
  ON CREATE SET e += $props
"""

# The relationship type cannot be parameterised; it is validated and backtick-quoted.
_MERGE_RELATIONSHIP_TEMPLATE = f"""
MATCH (s:{ENTITY_LABEL} {{name: $subject}})
MATCH (o:{ENTITY_LABEL} {{name: $object}})
MERGE (s)-[r:`{{rel_type}}`]->(o)
  ON CREATE SET r += $props
RETURN count(r) AS matched
"""

_COUNT_QUERIES = {
    "entities": f"MATCH (:{ENTITY_LABEL}) RETURN count(*) AS value",
    "relationships": f"MATCH (:{ENTITY_LABEL})-[r]->(:{ENTITY_LABEL}) RETURN count(r) AS value",
}


def _merge_entity_tx(tx: Any, name: str, props: dict[str, Any]) -> bool:
    result = tx.run(_MERGE_ENTITY_QUERY, name=name, props=props)
    summary = result.consume()
    return summary.counters.nodes_created > 0


def _merge_relationship_tx(
    tx: Any,
    query: str,
    subject: str,
    obj: str,
    props: dict[str, Any],
) -> bool:
    result = tx.run(query, subject=subject, object=obj, props=props)
    record = result.single()
    summary = result.consume()
    if record is None or not record["matched"]:
        raise GraphStoreError(
            f"Cannot create relationship: entity {subject!r} or {obj!r} does not exist"
        )
    return summary.counters.relationships_created > 0


def _count_tx(tx: Any, query: str) -> int:
    record = tx.run(query).single()
    if record is None:
        return 0
    return int(record["value"] or 0)


class Neo4jGraphStore:
    """Graph store holding one Neo4j session for its lifetime.

    Every upsert runs as its own managed write transaction, so a failed triple
    never rolls back previously ingested ones.
    """

    def __init__(
        self,
        driver: Any,
        *,
        database: str | None = None,
        owns_driver: bool = False,
    ) -> None:
        self._driver = driver
        self._database = database
        self._owns_driver = owns_driver
        self._session: Any = None

    @classmethod
    def connect(cls, settings: Neo4jSettings) -> Neo4jGraphStore:
        """Create a driver for ``settings``, verify connectivity, and open a session."""

        try:
            driver = GraphDatabase.driver(settings.uri, auth=settings.auth())
        except (DriverError, Neo4jError, ValueError) as exc:
            raise GraphStoreError(f"Unable to create Neo4j driver: {exc}") from exc
        store = cls(driver, database=settings.database, owns_driver=True)
        try:
            driver.verify_connectivity()
            store.open()
        except (DriverError, Neo4jError) as exc:
            store.close()
            raise GraphStoreError(
                f"Unable to connect to Neo4j at {mask_uri(settings.uri)}: {exc}"
            ) from exc
        logger.info(
            "neo4j.connected",
            uri=mask_uri(settings.uri),
            database=settings.database,
        )
        return store

    def open(self) -> None:
        if self._session is None:
            self._session = self._driver.session(database=self._database)

    def close(self) -> None:
        """Release the session and, when owned, the driver."""

        session, self._session = self._session, None
        try:
            if session is not None:
                session.close()
        finally:
            if self._owns_driver:
                self._driver.close()

    def __enter__(self) -> Neo4jGraphStore:
        self.open()
        return self

    def __exit__(self, exc_type, exc, tb) -> bool:
        self.close()
        return False

    def _require_session(self) -> Any:
        if self._session is None:
            raise GraphStoreError("Neo4j session is not open")
        return self._session

    def ensure_schema(self) -> None:
        """Create the entity name uniqueness constraint when permitted."""

        session = self._require_session()
        try:
            session.run(_ENTITY_CONSTRAINT_QUERY).consume()
        except (DriverError, Neo4jError) as exc:
            logger.warning("neo4j.constraint_failed", error=str(exc))

    def merge_entity(self, name: str, *, on_create: Mapping[str, Any]) -> bool:
        session = self._require_session()
        try:
            return bool(session.execute_write(_merge_entity_tx, name, dict(on_create)))
        except (DriverError, Neo4jError) as exc:
            raise GraphStoreError(f"Failed to merge entity {name!r}: {exc}") from exc

    def merge_relationship(
        self,
        subject: str,
        rel_type: str,
        obj: str,
        *,
        on_create: Mapping[str, Any],
    ) -> bool:
        if not _REL_TYPE_PATTERN.match(rel_type):
            raise GraphStoreError(f"Invalid relationship type {rel_type!r}")
        session = self._require_session()
        query = _MERGE_RELATIONSHIP_TEMPLATE.replace("{rel_type}", rel_type)
        try:
            return bool(
                session.execute_write(
                    _merge_relationship_tx, query, subject, obj, dict(on_create)
                )
            )
        except (DriverError, Neo4jError) as exc:
            raise GraphStoreError(
                f"Failed to merge relationship ({subject!r})-[{rel_type}]->({obj!r}): {exc}"
            ) from exc

    def counts(self) -> dict[str, int]:
        """Return entity and relationship totals; unavailable counts read as zero."""

        session = self._require_session()
        counts: dict[str, int] = {}
        for key, query in _COUNT_QUERIES.items():
            counts[key] = 0
            try:
                counts[key] = session.execute_read(_count_tx, query)
            except (DriverError, Neo4jError):
                logger.warning("neo4j.count_failed", query=key)
        return counts


__all__ = ["ENTITY_LABEL", "Neo4jGraphStore"]
