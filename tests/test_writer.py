"""Tests for the knowledge store writer."""

from unittest.mock import patch

import pytest

from lore_catalog.catalog.writer import KnowledgeWriter
from lore_catalog.errors import StoreError
from lore_catalog.models import ExtractedEntry, RelationType


def make(**fields) -> ExtractedEntry:
    return ExtractedEntry.model_validate(fields)


class TestKnowledgeWriter:
    """Test upsert, merge policy and side effects."""

    @pytest.fixture
    def writer(self, store):
        return KnowledgeWriter(store)

    def test_insert_new_entry(self, writer, store, world):
        report = writer.save_batch([make(type="Personagem", title=" Ana ", summary="Keeper.")], world, owner_id="owner-1")

        assert report.ok
        assert report.created == 1
        entry = store.get_entry(report.saved[0].entry_id)
        assert entry.type == "personagem"
        assert entry.title == "Ana"
        assert entry.container_id == world.id
        assert entry.owner_id == "owner-1"

    def test_empty_summary_does_not_overwrite(self, writer, store, world):
        writer.save_batch([make(type="character", title="Ana", summary="Keeper of the lamp.")], world)
        report = writer.save_batch([make(type="character", title="ana", summary="")], world)

        assert report.merged == 1
        assert store.find_entry("character", "Ana").summary == "Keeper of the lamp."

    def test_new_summary_does_not_overwrite(self, writer, store, world):
        writer.save_batch([make(type="character", title="Ana", summary="Old.")], world)
        writer.save_batch([make(type="character", title="Ana", summary="New.")], world)
        assert store.find_entry("character", "Ana").summary == "Old."

    def test_only_net_new_tags_added(self, writer, store, world):
        writer.save_batch([make(type="character", title="Ana", tags=["coast", "keeper"])], world)
        writer.save_batch([make(type="character", title="Ana", tags=["Keeper", "family"])], world)
        assert store.find_entry("character", "Ana").tags == ["coast", "keeper", "family"]

    def test_appears_in_accumulates(self, writer, store, world):
        writer.save_batch([make(type="character", title="Ana", appears_in="1")], world)
        writer.save_batch([make(type="character", title="Ana", appears_in="2")], world)
        writer.save_batch([make(type="character", title="Ana", appears_in="2")], world)
        assert store.find_entry("character", "Ana").appears_in == "1, 2"

    def test_temporal_filled_only_when_missing(self, writer, store, world):
        writer.save_batch([make(type="event", title="Flood", year=1990)], world)
        writer.save_batch([make(type="event", title="Flood", start_date="1991-04-02", date_precision="day")], world)
        writer.save_batch([make(type="event", title="Flood", start_date="2005", date_precision="year")], world)

        entry = store.find_entry("event", "Flood")
        assert entry.start_date == "1991-04-02"
        assert entry.year == 1991
        assert entry.date_precision.value == "day"

    def test_codes_assigned_with_episode(self, writer, world):
        report = writer.save_batch(
            [make(type="personagem", title="Ana"), make(type="personagem", title="Bia")],
            world,
            sub_number="7",
        )
        assert [s.code for s in report.saved] == ["AV7-PS1", "AV7-PS2"]

    def test_resave_keeps_code(self, writer, store, world):
        first = writer.save_batch([make(type="personagem", title="Ana")], world, sub_number=7)
        second = writer.save_batch([make(type="personagem", title="Ana")], world, sub_number=7)

        assert second.saved[0].code == first.saved[0].code == "AV7-PS1"
        assert len(store.codes_for_entry(first.saved[0].entry_id)) == 1

    def test_manual_code_wins(self, writer, world):
        report = writer.save_batch([make(type="personagem", title="Ana", codigo="LEG-01")], world, sub_number=7)
        assert report.saved[0].code == "LEG-01"

    def test_relations_saved_when_target_exists(self, writer, store, world):
        writer.save_batch([make(type="person", title="Maria")], world)
        report = writer.save_batch([make(
            type="person",
            title="João",
            relations=[
                {"type": "filho_de", "target_title": "maria"},
                {"type": "friend_of", "target_title": "Nobody"},
            ],
        )], world)

        relations = store.relations_for_entry(report.saved[0].entry_id)
        assert len(relations) == 1
        assert relations[0].type is RelationType.CHILD_OF

    def test_entry_is_indexed(self, writer, store, world):
        report = writer.save_batch([make(type="character", title="Ana", summary="Keeper.", body="Lives by the sea.")], world)
        assert store.get_index_document(report.saved[0].entry_id) == "Keeper.\n\nLives by the sea."

    def test_store_failure_stops_batch(self, writer, store, world):
        entries = [make(type="character", title=t) for t in ("A", "B", "C")]
        original = store.insert_entry

        def flaky(entry):
            if entry.title == "B":
                raise StoreError("disk full")
            return original(entry)

        with patch.object(store, "insert_entry", side_effect=flaky):
            report = writer.save_batch(entries, world)

        assert not report.ok
        assert report.failed_title == "B"
        assert [s.title for s in report.saved] == ["A"]
        assert store.find_entry("character", "C") is None

    def test_index_failure_does_not_stop_batch(self, writer, store, world):
        with patch.object(store, "replace_index_document", side_effect=StoreError("index down")):
            report = writer.save_batch(
                [make(type="character", title="A", summary="x"), make(type="character", title="B", summary="y")],
                world,
            )
        assert report.ok
        assert len(report.saved) == 2
