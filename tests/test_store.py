"""Tests for the knowledge store adapters."""

from unittest.mock import MagicMock

import pytest

from lore_catalog.errors import StoreError
from lore_catalog.models import CatalogCode, Entry
from lore_catalog.store import InMemoryStore, get_store
from lore_catalog.store.base import trailing_number
from lore_catalog.store.neo4j import Neo4jStore


class TestInMemoryStore:
    """Test the in-process adapter."""

    def test_find_entry_by_identity(self, store):
        entry = store.insert_entry(Entry(type="character", title="Ana"))
        assert store.find_entry(" CHARACTER ", "ana ").id == entry.id

    def test_returned_entries_are_copies(self, store):
        entry = store.insert_entry(Entry(type="character", title="Ana", tags=["a"]))
        fetched = store.get_entry(entry.id)
        fetched.tags.append("b")
        assert store.get_entry(entry.id).tags == ["a"]

    def test_next_sequence_floor(self, store):
        assert store.next_sequence("AV1-PS", floor=4) == 5
        assert store.next_sequence("av1-ps") == 6
        assert store.next_sequence("AV1-PS", floor=10) == 11

    def test_duplicate_code_rejected(self, store):
        store.insert_code(CatalogCode(entry_id="a", code="AV1-PS1"))
        with pytest.raises(StoreError):
            store.insert_code(CatalogCode(entry_id="b", code="av1-ps1"))

    def test_empty_scope_matches_nothing(self, store):
        store.insert_entry(Entry(type="character", title="Ana"))
        assert store.search_entries("ana") != []
        assert store.search_entries("ana", container_ids=[]) == []
        assert store.find_entries_by_titles(["Ana"], container_ids=[]) == []

    def test_title_lookup_scoped(self, store):
        store.insert_entry(Entry(type="character", title="Ana", container_id="w1", owner_id="owner-1"))
        store.insert_entry(Entry(type="location", title="ana", container_id="w2", owner_id="owner-2"))
        assert len(store.find_entries_by_titles(["ANA"])) == 2
        assert [e.type for e in store.find_entries_by_titles(["Ana"], container_ids=["w2"])] == ["location"]
        assert [e.type for e in store.find_entries_by_titles(["Ana"], owner_id="owner-1")] == ["character"]
        assert store.find_entries_by_titles(["Ana"], limit=0) == []

    def test_update_missing_entry(self, store):
        with pytest.raises(StoreError):
            store.update_entry(Entry(type="character", title="Ghost"))

    def test_delete_removes_index(self, store):
        entry = store.insert_entry(Entry(type="character", title="Ana"))
        store.replace_index_document(entry.id, "text")
        assert store.delete_entry(entry.id)
        assert store.get_index_document(entry.id) is None
        assert not store.delete_entry(entry.id)


class TestNeo4jStore:
    """Test the Neo4j adapter against a mocked driver."""

    def test_update_missing_entry(self):
        driver = MagicMock()
        session = driver.session.return_value.__enter__.return_value
        session.execute_write.return_value = []

        with pytest.raises(StoreError):
            Neo4jStore(driver=driver).update_entry(Entry(type="character", title="Ghost"))

    def test_next_sequence_returns_value(self):
        driver = MagicMock()
        session = driver.session.return_value.__enter__.return_value
        session.execute_write.return_value = [{"value": 3}]

        assert Neo4jStore(driver=driver).next_sequence("AV1-PS", floor=2) == 3

    def test_title_lookup_passes_scope(self):
        driver = MagicMock()
        session = driver.session.return_value.__enter__.return_value
        session.run.return_value = []

        Neo4jStore(driver=driver).find_entries_by_titles(["Ana"], container_ids=["w1"], owner_id="owner-1")

        params = session.run.call_args.kwargs
        assert params["keys"] == ["ana"]
        assert params["scope"] == ["w1"]
        assert params["owner_id"] == "owner-1"

    def test_empty_scope_skips_query(self):
        driver = MagicMock()
        store = Neo4jStore(driver=driver)
        assert store.find_entries_by_titles(["Ana"], container_ids=[]) == []
        assert store.search_entries("ana", limit=0) == []
        driver.session.assert_not_called()

    def test_timeline_query_orders_undated_first(self):
        driver = MagicMock()
        session = driver.session.return_value.__enter__.return_value
        session.run.return_value = []

        Neo4jStore(driver=driver).list_timeline(["Event", "evento"], layer="flashback")

        cypher = session.run.call_args.args[0]
        assert "ORDER BY e.start_date IS NOT NULL, e.start_date, e.created_at" in cypher
        assert session.run.call_args.kwargs["types"] == ["event", "evento"]
        assert session.run.call_args.kwargs["layer"] == "flashback"


class TestHelpers:
    def test_trailing_number(self):
        assert trailing_number("AV7-PS12") == 12
        assert trailing_number("AV7-PS") is None

    def test_get_store_memory(self):
        assert isinstance(get_store("memory"), InMemoryStore)

    def test_get_store_unknown(self):
        with pytest.raises(ValueError):
            get_store("sqlite")
