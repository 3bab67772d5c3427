"""Neo4j-backed knowledge store."""

import logging

from neo4j import Driver
from neo4j.exceptions import ConstraintError, DriverError, Neo4jError

from ..errors import ConfigurationError, StoreError
from ..models import CatalogCode, Container, DuplicateCandidate, Entry, Relation
from .base import KnowledgeStore, score_duplicates
from .connection import check_neo4j_connection, get_driver, init_schema

logger = logging.getLogger(__name__)


def _entry_props(entry: Entry) -> dict:
    props = entry.model_dump(mode="json")
    props["type_key"] = entry.type.strip().lower()
    props["title_key"] = entry.title.strip().lower()
    return props


def _to_entry(node) -> Entry:
    return Entry.model_validate(dict(node))


class Neo4jStore(KnowledgeStore):
    """Stores worlds, entries, codes and index documents as Neo4j nodes.

    Relations between entries are ``RELATES`` relationships. Sequence counters
    are ``CodeSequence`` nodes incremented in place inside a write transaction,
    which Neo4j serialises per node.
    """

    def __init__(self, driver: Driver | None = None):
        """Initialize the store.

        Args:
            driver: Optional Neo4j driver (created from settings if not provided)
        """
        self._driver = driver
        self._initialized = False

    @property
    def driver(self) -> Driver:
        """Get the Neo4j driver, creating if needed."""
        if self._driver is None:
            self._driver = get_driver()
            if self._driver is None:
                raise ConfigurationError("Cannot connect to Neo4j")
        return self._driver

    def initialize(self) -> None:
        """Initialize the graph schema."""
        if not self._initialized:
            try:
                init_schema(self.driver)
            except (Neo4jError, DriverError) as e:
                raise ConfigurationError(f"Cannot initialize Neo4j schema: {e}", cause=e) from e
            logger.debug("Neo4j schema initialized")
            self._initialized = True

    def close(self) -> None:
        if self._driver is not None:
            self._driver.close()
            self._driver = None

    def _read(self, cypher: str, **params) -> list:
        try:
            with self.driver.session() as session:
                return list(session.run(cypher, **params))
        except (Neo4jError, DriverError) as e:
            raise StoreError(f"Neo4j read failed: {e}", cause=e) from e

    def _write(self, cypher: str, **params) -> list:
        try:
            with self.driver.session() as session:
                return session.execute_write(lambda tx: list(tx.run(cypher, **params)))
        except ConstraintError as e:
            raise StoreError(f"Constraint violated: {e}", details=params, cause=e) from e
        except (Neo4jError, DriverError) as e:
            raise StoreError(f"Neo4j write failed: {e}", cause=e) from e

    def ping(self) -> bool:
        try:
            return check_neo4j_connection(self.driver)
        except ConfigurationError:
            return False

    # Containers

    def save_container(self, container: Container) -> Container:
        self._write(
            "MERGE (w:World {id: $id}) SET w += $props",
            id=container.id,
            props=container.model_dump(mode="json"),
        )
        return container

    def get_container(self, container_id: str) -> Container | None:
        records = self._read("MATCH (w:World {id: $id}) RETURN w", id=container_id)
        return Container.model_validate(dict(records[0]["w"])) if records else None

    def list_containers(self, hierarchy_id=None, owner_id=None) -> list[Container]:
        records = self._read(
            """
            MATCH (w:World)
            WHERE ($hierarchy_id IS NULL OR w.hierarchy_id = $hierarchy_id)
              AND ($owner_id IS NULL OR w.owner_id = $owner_id)
            RETURN w ORDER BY w.`order`
            """,
            hierarchy_id=hierarchy_id,
            owner_id=owner_id,
        )
        return [Container.model_validate(dict(r["w"])) for r in records]

    # Entries

    def get_entry(self, entry_id: str) -> Entry | None:
        records = self._read("MATCH (e:Entry {id: $id}) RETURN e", id=entry_id)
        return _to_entry(records[0]["e"]) if records else None

    def find_entry(self, entry_type: str, title: str) -> Entry | None:
        records = self._read(
            "MATCH (e:Entry {type_key: $type_key, title_key: $title_key}) RETURN e LIMIT 1",
            type_key=entry_type.strip().lower(),
            title_key=title.strip().lower(),
        )
        return _to_entry(records[0]["e"]) if records else None

    def insert_entry(self, entry: Entry) -> Entry:
        self._write("CREATE (e:Entry) SET e = $props", props=_entry_props(entry))
        return entry

    def update_entry(self, entry: Entry) -> Entry:
        records = self._write(
            "MATCH (e:Entry {id: $id}) SET e += $props, e.updated_at = toString(datetime()) RETURN e",
            id=entry.id,
            props=_entry_props(entry),
        )
        if not records:
            raise StoreError(f"Entry {entry.id} not found", details={"id": entry.id})
        return _to_entry(records[0]["e"])

    def delete_entry(self, entry_id: str) -> bool:
        records = self._write(
            """
            OPTIONAL MATCH (d:IndexDocument {entry_id: $id})
            DELETE d
            WITH count(*) AS removed
            MATCH (e:Entry {id: $id})
            DETACH DELETE e
            RETURN count(*) AS deleted
            """,
            id=entry_id,
        )
        return bool(records and records[0]["deleted"])

    def list_entries(self, owner_id=None) -> list[Entry]:
        records = self._read(
            "MATCH (e:Entry) WHERE $owner_id IS NULL OR e.owner_id = $owner_id RETURN e",
            owner_id=owner_id,
        )
        return [_to_entry(r["e"]) for r in records]

    def find_entries_by_titles(self, titles, limit=5, container_ids=None, owner_id=None) -> list[Entry]:
        keys = sorted({t.strip().lower() for t in titles if t and t.strip()})
        if not keys or limit <= 0 or (container_ids is not None and not container_ids):
            return []
        records = self._read(
            """
            MATCH (e:Entry)
            WHERE e.title_key IN $keys
              AND ($owner_id IS NULL OR e.owner_id = $owner_id)
              AND ($scope IS NULL OR e.container_id IN $scope)
            RETURN e LIMIT $limit
            """,
            keys=keys,
            owner_id=owner_id,
            scope=container_ids,
            limit=limit,
        )
        return [_to_entry(r["e"]) for r in records]

    def list_timeline(self, entry_types, container_id=None, layer=None, owner_id=None) -> list[Entry]:
        records = self._read(
            """
            MATCH (e:Entry)
            WHERE e.type_key IN $types
              AND ($container_id IS NULL OR e.container_id = $container_id)
              AND ($layer IS NULL OR e.temporal_layer = $layer)
              AND ($owner_id IS NULL OR e.owner_id = $owner_id)
            RETURN e
            ORDER BY e.start_date IS NOT NULL, e.start_date, e.created_at
            """,
            types=sorted({t.strip().lower() for t in entry_types}),
            container_id=container_id,
            layer=layer,
            owner_id=owner_id,
        )
        return [_to_entry(r["e"]) for r in records]

    def search_entries(self, keyword, container_ids=None, owner_id=None, limit=6) -> list[Entry]:
        if limit <= 0 or (container_ids is not None and not container_ids):
            return []
        records = self._read(
            """
            MATCH (e:Entry)
            WHERE ($owner_id IS NULL OR e.owner_id = $owner_id)
              AND ($scope IS NULL OR e.container_id IN $scope)
              AND (toLower(e.title) CONTAINS $kw
                   OR toLower(coalesce(e.summary, '')) CONTAINS $kw
                   OR any(t IN coalesce(e.tags, []) WHERE toLower(t) CONTAINS $kw)
                   OR toLower(coalesce(e.body, '')) CONTAINS $kw)
            RETURN e LIMIT $limit
            """,
            owner_id=owner_id,
            scope=container_ids,
            kw=keyword.lower(),
            limit=limit,
        )
        return [_to_entry(r["e"]) for r in records]

    # Catalog codes

    def codes_for_entry(self, entry_id: str) -> list[CatalogCode]:
        records = self._read("MATCH (c:CatalogCode {entry_id: $id}) RETURN c", id=entry_id)
        return [CatalogCode.model_validate(dict(r["c"])) for r in records]

    def codes_with_prefix(self, prefix: str) -> list[CatalogCode]:
        records = self._read(
            "MATCH (c:CatalogCode) WHERE c.code_key STARTS WITH $prefix RETURN c",
            prefix=prefix.lower(),
        )
        return [CatalogCode.model_validate(dict(r["c"])) for r in records]

    def get_code(self, code: str) -> CatalogCode | None:
        records = self._read("MATCH (c:CatalogCode {code_key: $key}) RETURN c", key=code.lower())
        return CatalogCode.model_validate(dict(records[0]["c"])) if records else None

    def next_sequence(self, prefix: str, floor: int = 0) -> int:
        records = self._write(
            """
            MERGE (s:CodeSequence {prefix: $prefix})
            ON CREATE SET s.value = $floor
            SET s.value = CASE WHEN s.value < $floor THEN $floor ELSE s.value END + 1
            RETURN s.value AS value
            """,
            prefix=prefix.lower(),
            floor=floor,
        )
        return int(records[0]["value"])

    def insert_code(self, code: CatalogCode) -> CatalogCode:
        props = code.model_dump()
        props["code_key"] = code.code.lower()
        self._write("CREATE (c:CatalogCode) SET c = $props", props=props)
        return code

    def repoint_codes(self, from_entry_id: str, to_entry_id: str) -> int:
        records = self._write(
            """
            MATCH (c:CatalogCode {entry_id: $from_id})
            SET c.entry_id = $to_id
            RETURN count(c) AS moved
            """,
            from_id=from_entry_id,
            to_id=to_entry_id,
        )
        return int(records[0]["moved"]) if records else 0

    # Relations

    def insert_relation(self, relation: Relation) -> Relation:
        self._write(
            """
            MATCH (s:Entry {id: $source_id})
            MATCH (t:Entry {id: $target_id})
            CREATE (s)-[:RELATES {type: $type, description: $description}]->(t)
            """,
            source_id=relation.source_id,
            target_id=relation.target_id,
            type=relation.type.value,
            description=relation.description,
        )
        return relation

    def relations_for_entry(self, entry_id: str) -> list[Relation]:
        records = self._read(
            """
            MATCH (s:Entry)-[r:RELATES]->(t:Entry)
            WHERE s.id = $id OR t.id = $id
            RETURN s.id AS source_id, t.id AS target_id, r.type AS type, r.description AS description
            """,
            id=entry_id,
        )
        return [Relation.model_validate(dict(r)) for r in records]

    def repoint_relations(self, from_entry_id: str, to_entry_id: str) -> int:
        records = self._write(
            """
            MATCH (w:Entry {id: $to_id})
            OPTIONAL MATCH (l:Entry {id: $from_id})-[r:RELATES]-(other:Entry)
            WITH w, l, r, other, startNode(r) = l AS outgoing
            FOREACH (_ IN CASE WHEN r IS NOT NULL AND other <> w AND outgoing THEN [1] ELSE [] END |
                CREATE (w)-[:RELATES {type: r.type, description: r.description}]->(other))
            FOREACH (_ IN CASE WHEN r IS NOT NULL AND other <> w AND NOT outgoing THEN [1] ELSE [] END |
                CREATE (other)-[:RELATES {type: r.type, description: r.description}]->(w))
            DELETE r
            RETURN count(r) AS moved
            """,
            from_id=from_entry_id,
            to_id=to_entry_id,
        )
        return int(records[0]["moved"]) if records else 0

    # Retrieval index

    def replace_index_document(self, entry_id: str, text: str) -> None:
        self._write(
            "MERGE (d:IndexDocument {entry_id: $id}) SET d.text = $text",
            id=entry_id,
            text=text,
        )

    def get_index_document(self, entry_id: str) -> str | None:
        records = self._read("MATCH (d:IndexDocument {entry_id: $id}) RETURN d.text AS text", id=entry_id)
        return records[0]["text"] if records else None

    # Reconciliation

    def find_potential_duplicates(self, threshold: float = 0.3) -> list[DuplicateCandidate]:
        return score_duplicates(self.list_entries(), threshold)
