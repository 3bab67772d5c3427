"""Tests for reconciliation of duplicate entries."""

import pytest

from lore_catalog.errors import ReconciliationError
from lore_catalog.models import CatalogCode, Entry, Relation
from lore_catalog.reconcile.merge import find_duplicates, reconcile


class TestReconcile:
    """Test the merge of a loser into a winner."""

    @pytest.fixture
    def pair(self, store):
        winner = store.insert_entry(Entry(type="character", title="Ana Souza", summary="Keeper.", owner_id="o1"))
        loser = store.insert_entry(Entry(type="character", title="Ana Sousa", body="Lives by the sea.", owner_id="o1"))
        other = store.insert_entry(Entry(type="location", title="Lighthouse", owner_id="o1"))
        store.insert_code(CatalogCode(entry_id=winner.id, code="AV1-PS1"))
        store.insert_code(CatalogCode(entry_id=loser.id, code="AV2-PS4"))
        store.insert_code(CatalogCode(entry_id=loser.id, code="AV3-PS2"))
        store.insert_relation(Relation(source_id=loser.id, target_id=other.id, type="works_at"))
        store.insert_relation(Relation(source_id=winner.id, target_id=loser.id, type="sibling_of"))
        return winner, loser, other

    MERGED = {
        "tipo": "Character",
        "titulo": "Ana Souza",
        "resumo": "Keeper of the lamp.",
        "conteudo": "Lives by the sea.",
        "tags": ["coast"],
        "data_inicio": "1961",
    }

    def test_codes_move_to_winner(self, store, pair):
        winner, loser, _ = pair
        result = reconcile(store, winner.id, loser.id, self.MERGED)

        assert result.codes_moved == 2
        for code in ("AV2-PS4", "AV3-PS2"):
            assert store.get_code(code).entry_id == winner.id
        assert store.get_entry(loser.id) is None
        assert store.find_entry("character", "Ana Sousa") is None

    def test_winner_takes_merged_fields(self, store, pair):
        winner, loser, _ = pair
        reconcile(store, winner.id, loser.id, self.MERGED)

        updated = store.get_entry(winner.id)
        assert updated.type == "character"
        assert updated.summary == "Keeper of the lamp."
        assert updated.body == "Lives by the sea."
        assert updated.tags == ["coast"]
        assert updated.year == 1961

    def test_relations_repointed_without_self_loops(self, store, pair):
        winner, loser, other = pair
        reconcile(store, winner.id, loser.id, self.MERGED)

        relations = store.relations_for_entry(winner.id)
        assert [(r.source_id, r.target_id) for r in relations] == [(winner.id, other.id)]
        assert store.relations_for_entry(loser.id) == []

    def test_retry_is_safe(self, store, pair):
        winner, loser, _ = pair
        reconcile(store, winner.id, loser.id, self.MERGED)
        again = reconcile(store, winner.id, loser.id, self.MERGED)

        assert again.codes_moved == 0
        assert again.loser_deleted is False
        assert len(store.codes_for_entry(winner.id)) == 3

    def test_same_entry_rejected(self, store, pair):
        winner, _, _ = pair
        with pytest.raises(ReconciliationError):
            reconcile(store, winner.id, winner.id, self.MERGED)

    def test_missing_winner_rejected(self, store, pair):
        _, loser, _ = pair
        with pytest.raises(ReconciliationError):
            reconcile(store, "missing", loser.id, self.MERGED)
        assert store.get_entry(loser.id) is not None

    def test_identity_clash_rejected(self, store, pair):
        winner, loser, _ = pair
        with pytest.raises(ReconciliationError):
            reconcile(store, winner.id, loser.id, {"type": "location", "title": "lighthouse"})

    def test_malformed_record_rejected(self, store, pair):
        winner, loser, _ = pair
        with pytest.raises(ReconciliationError):
            reconcile(store, winner.id, loser.id, {"summary": "no title"})


class TestFindDuplicates:
    """Test duplicate surfacing."""

    def test_similar_titles_paired(self, store):
        a = store.insert_entry(Entry(type="character", title="Ana Souza"))
        b = store.insert_entry(Entry(type="character", title="Ana  Souza"))
        store.insert_entry(Entry(type="location", title="Ana Souza"))

        pairs = find_duplicates(store, threshold=0.9)

        assert len(pairs) == 1
        assert {pairs[0].id_a, pairs[0].id_b} == {a.id, b.id}

    def test_owner_filter_requires_both(self, store):
        store.insert_entry(Entry(type="character", title="Ana", owner_id="o1"))
        store.insert_entry(Entry(type="character", title="Ana", owner_id="o2"))
        mine_a = store.insert_entry(Entry(type="character", title="Bia Lima", owner_id="o1"))
        mine_b = store.insert_entry(Entry(type="character", title="Bia Lima", owner_id="o1"))

        pairs = find_duplicates(store, threshold=0.9, owner_id="o1")

        assert [(p.id_a, p.id_b) for p in pairs] == [(mine_a.id, mine_b.id)]

    def test_sorted_by_similarity(self, store):
        store.insert_entry(Entry(type="character", title="Ana Souza"))
        store.insert_entry(Entry(type="character", title="Ana Souza"))
        store.insert_entry(Entry(type="character", title="Ana Sousa"))

        pairs = find_duplicates(store, threshold=0.3)
        scores = [p.similarity for p in pairs]
        assert scores == sorted(scores, reverse=True)
        assert scores[0] == 1.0
