"""Knowledge store port and adapters."""

from lore_catalog.config import get_settings
from lore_catalog.store.base import KnowledgeStore
from lore_catalog.store.memory import InMemoryStore


def get_store(backend: str | None = None) -> KnowledgeStore:
    """Create the store configured by ``store_backend``."""
    backend = backend or get_settings().store_backend
    if backend == "memory":
        return InMemoryStore()
    if backend == "neo4j":
        from lore_catalog.store.neo4j import Neo4jStore

        store = Neo4jStore()
        store.initialize()
        return store
    raise ValueError(f"Unknown store backend: {backend}")


__all__ = ["KnowledgeStore", "InMemoryStore", "get_store"]
