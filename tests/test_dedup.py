"""Tests for batch de-duplication."""

from lore_catalog.extract.dedup import deduplicate_entries, merge_bodies
from lore_catalog.models import ExtractedEntry


def make(**fields) -> ExtractedEntry:
    return ExtractedEntry.model_validate(fields)


class TestDeduplicateEntries:
    """Test merging entries from different segments."""

    def test_identity_ignores_case_and_whitespace(self):
        entries = [
            make(type="personagem", title="Ana", summary="Keeper."),
            make(type="PERSONAGEM", title=" ana ", body="Lives by the sea."),
        ]
        result = deduplicate_entries(entries)

        assert len(result) == 1
        assert result[0].title == "Ana"
        assert result[0].summary == "Keeper."
        assert result[0].body == "Lives by the sea."

    def test_different_types_kept_apart(self):
        entries = [make(type="character", title="Porto"), make(type="location", title="Porto")]
        assert len(deduplicate_entries(entries)) == 2

    def test_first_occurrence_order(self):
        entries = [
            make(type="character", title="B"),
            make(type="character", title="A"),
            make(type="character", title="b"),
        ]
        assert [e.title for e in deduplicate_entries(entries)] == ["B", "A"]

    def test_idempotent(self):
        entries = [
            make(type="character", title="Ana", body="Keeper of the lamp.", tags=["coast"]),
            make(type="Character", title="ANA", body="Sister of Bia.", tags=["family"]),
            make(type="location", title="Lighthouse", summary="Tall."),
        ]
        once = deduplicate_entries(entries)
        twice = deduplicate_entries(once)
        assert [e.model_dump() for e in twice] == [e.model_dump() for e in once]

    def test_singleton_passes_through(self):
        entry = make(type="character", title="  Ana ", summary="x")
        assert deduplicate_entries([entry]) == [entry]

    def test_tags_and_relations_unioned(self):
        entries = [
            make(type="character", title="Ana", tags=["coast", "keeper"],
                 relations=[{"type": "friend_of", "target_title": "Bia"}]),
            make(type="character", title="Ana", tags=["Keeper", "family"],
                 relations=[{"type": "friend_of", "target_title": "bia"},
                            {"type": "works_at", "target_title": "Lighthouse"}]),
        ]
        merged = deduplicate_entries(entries)[0]

        assert merged.tags == ["coast", "keeper", "family"]
        assert [r.target_title for r in merged.relations] == ["Bia", "Lighthouse"]

    def test_temporal_unit_from_member_with_start_date(self):
        entries = [
            make(type="event", title="Flood", year=1990, date_description="around 1990"),
            make(type="event", title="Flood", start_date="1991-04", end_date="1991-05", date_precision="month"),
        ]
        merged = deduplicate_entries(entries)[0]

        assert merged.start_date == "1991-04"
        assert merged.end_date == "1991-05"
        assert merged.year == 1991
        assert merged.date_description is None


class TestMergeBodies:
    """Test body concatenation."""

    def test_near_duplicate_skipped(self):
        body = (
            "Ana has kept the lighthouse since her father vanished at sea, "
            "climbing the iron stairs every evening to light the lamp."
        )
        assert merge_bodies([body, body + " She never left."]) == body

    def test_distinct_bodies_joined(self):
        assert merge_bodies(["One.", "Two."]) == "One.\n\nTwo."

    def test_empty_bodies_ignored(self):
        assert merge_bodies(["", "  ", "Text."]) == "Text."
