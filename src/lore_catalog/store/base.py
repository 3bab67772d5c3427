"""Storage port for the lore catalog.

The engine only talks to a ``KnowledgeStore``. Adapters map these calls onto a
concrete backend (Neo4j in production, an in-process store for tests and
single-user runs).
"""

import re
from abc import ABC, abstractmethod
from collections import defaultdict

from rapidfuzz import fuzz

from ..models import CatalogCode, Container, DuplicateCandidate, Entry, Relation


class KnowledgeStore(ABC):
    """Operations the cataloging engine needs from persistent storage."""

    @abstractmethod
    def ping(self) -> bool:
        """Return True if the backend is reachable."""

    # Containers

    @abstractmethod
    def save_container(self, container: Container) -> Container:
        """Insert or replace a container."""

    @abstractmethod
    def get_container(self, container_id: str) -> Container | None:
        """Point lookup by id."""

    @abstractmethod
    def list_containers(
        self,
        hierarchy_id: str | None = None,
        owner_id: str | None = None,
    ) -> list[Container]:
        """List containers, optionally under one hierarchy and owner, by order."""

    # Entries

    @abstractmethod
    def get_entry(self, entry_id: str) -> Entry | None:
        """Point lookup by id."""

    @abstractmethod
    def find_entry(self, entry_type: str, title: str) -> Entry | None:
        """Find the entry with this (type, title) identity across the whole store.

        Both parts compare case-insensitively after trimming.
        """

    @abstractmethod
    def insert_entry(self, entry: Entry) -> Entry:
        """Insert a new entry."""

    @abstractmethod
    def update_entry(self, entry: Entry) -> Entry:
        """Overwrite the stored fields of an existing entry."""

    @abstractmethod
    def delete_entry(self, entry_id: str) -> bool:
        """Delete an entry. Returns False if it was already gone."""

    @abstractmethod
    def list_entries(self, owner_id: str | None = None) -> list[Entry]:
        """All entries, optionally for one owner."""

    @abstractmethod
    def find_entries_by_titles(
        self,
        titles: list[str],
        limit: int = 5,
        container_ids: list[str] | None = None,
        owner_id: str | None = None,
    ) -> list[Entry]:
        """Entries whose title equals one of ``titles`` (case-insensitive).

        Scoped like ``search_entries``.
        """

    @abstractmethod
    def list_timeline(
        self,
        entry_types: list[str],
        container_id: str | None = None,
        layer: str | None = None,
        owner_id: str | None = None,
    ) -> list[Entry]:
        """Entries of ``entry_types`` ordered by start date, undated first, then creation time."""

    @abstractmethod
    def search_entries(
        self,
        keyword: str,
        container_ids: list[str] | None = None,
        owner_id: str | None = None,
        limit: int = 6,
    ) -> list[Entry]:
        """Case-insensitive substring match on title, summary, tags and body.

        ``container_ids=None`` means unscoped; an empty list matches nothing.
        """

    # Catalog codes

    @abstractmethod
    def codes_for_entry(self, entry_id: str) -> list[CatalogCode]:
        """Codes owned by an entry."""

    @abstractmethod
    def codes_with_prefix(self, prefix: str) -> list[CatalogCode]:
        """Codes starting with ``prefix`` (case-insensitive)."""

    @abstractmethod
    def get_code(self, code: str) -> CatalogCode | None:
        """Resolve a code string (case-insensitive)."""

    @abstractmethod
    def next_sequence(self, prefix: str, floor: int = 0) -> int:
        """Atomically advance the counter for ``prefix`` and return the new value.

        A counter that does not exist yet starts at ``floor``, so the first call
        returns ``floor + 1``. An existing counter below ``floor`` is raised to it.
        """

    @abstractmethod
    def insert_code(self, code: CatalogCode) -> CatalogCode:
        """Persist a code. Raises StoreError if the code string is taken."""

    @abstractmethod
    def repoint_codes(self, from_entry_id: str, to_entry_id: str) -> int:
        """Move every code owned by one entry to another. Returns the count moved."""

    # Relations

    @abstractmethod
    def insert_relation(self, relation: Relation) -> Relation:
        """Persist a relation."""

    @abstractmethod
    def relations_for_entry(self, entry_id: str) -> list[Relation]:
        """Relations where the entry is source or target."""

    @abstractmethod
    def repoint_relations(self, from_entry_id: str, to_entry_id: str) -> int:
        """Re-point relation ends from one entry to another, dropping self-loops."""

    # Retrieval index

    @abstractmethod
    def replace_index_document(self, entry_id: str, text: str) -> None:
        """Drop any indexed text for the entry, then store ``text``."""

    @abstractmethod
    def get_index_document(self, entry_id: str) -> str | None:
        """Indexed text for an entry, if any."""

    # Reconciliation

    @abstractmethod
    def find_potential_duplicates(self, threshold: float = 0.3) -> list[DuplicateCandidate]:
        """Pairs of entries that look like the same thing, best first."""


def trailing_number(code: str) -> int | None:
    """The numeral a code ends with, e.g. ``AV7-PS12`` -> 12."""
    match = re.search(r"(\d+)$", code)
    return int(match.group(1)) if match else None


def title_similarity(a: str, b: str) -> float:
    """Similarity of two titles in [0, 1]."""
    return fuzz.token_set_ratio(a.lower().strip(), b.lower().strip()) / 100.0


def score_duplicates(entries: list[Entry], threshold: float) -> list[DuplicateCandidate]:
    """Score same-type entry pairs by title similarity.

    Only pairs at or above ``threshold`` are returned, most similar first.
    """
    by_type: dict[str, list[Entry]] = defaultdict(list)
    for entry in entries:
        by_type[entry.type.strip().lower()].append(entry)

    candidates = []
    for group in by_type.values():
        for i, a in enumerate(group):
            for b in group[i + 1:]:
                score = title_similarity(a.title, b.title)
                if score >= threshold:
                    candidates.append(DuplicateCandidate(
                        id_a=a.id,
                        id_b=b.id,
                        title_a=a.title,
                        title_b=b.title,
                        similarity=round(score, 3),
                    ))

    candidates.sort(key=lambda c: c.similarity, reverse=True)
    return candidates
