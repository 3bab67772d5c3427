"""Neo4j connection management."""

from neo4j import GraphDatabase, Driver
from neo4j.exceptions import ServiceUnavailable, AuthError, Neo4jError

from lore_catalog.config import get_settings


def get_driver() -> Driver | None:
    """Get a Neo4j driver instance."""
    settings = get_settings()

    try:
        driver = GraphDatabase.driver(
            settings.neo4j_uri,
            auth=(settings.neo4j_user, settings.neo4j_password),
        )
        return driver
    except (ValueError, Neo4jError):
        return None


def check_neo4j_connection(driver: Driver | None = None) -> bool:
    """Check if Neo4j is reachable and credentials are valid."""
    owned = driver is None
    driver = driver or get_driver()
    if not driver:
        return False

    try:
        with driver.session() as session:
            session.run("RETURN 1")
        return True
    except (ServiceUnavailable, AuthError):
        return False
    finally:
        if owned:
            driver.close()


def init_schema(driver: Driver) -> None:
    """Initialize graph schema (indexes and constraints)."""
    constraints = [
        # Unique constraints
        "CREATE CONSTRAINT world_id IF NOT EXISTS FOR (w:World) REQUIRE w.id IS UNIQUE",
        "CREATE CONSTRAINT entry_id IF NOT EXISTS FOR (e:Entry) REQUIRE e.id IS UNIQUE",
        "CREATE CONSTRAINT code_key IF NOT EXISTS FOR (c:CatalogCode) REQUIRE c.code_key IS UNIQUE",
        "CREATE CONSTRAINT sequence_prefix IF NOT EXISTS FOR (s:CodeSequence) REQUIRE s.prefix IS UNIQUE",
        "CREATE CONSTRAINT index_entry IF NOT EXISTS FOR (d:IndexDocument) REQUIRE d.entry_id IS UNIQUE",
    ]

    indexes = [
        # Identity lookup
        "CREATE INDEX entry_identity IF NOT EXISTS FOR (e:Entry) ON (e.type_key, e.title_key)",
        "CREATE INDEX entry_owner IF NOT EXISTS FOR (e:Entry) ON (e.owner_id)",
        "CREATE INDEX code_entry IF NOT EXISTS FOR (c:CatalogCode) ON (c.entry_id)",
        "CREATE INDEX world_hierarchy IF NOT EXISTS FOR (w:World) ON (w.hierarchy_id)",
    ]

    with driver.session() as session:
        for statement in constraints + indexes:
            # IF NOT EXISTS makes these safe to re-run
            session.run(statement)
