"""In-process knowledge store.

Backs tests and single-user runs. A single re-entrant lock makes every call
atomic, including the per-prefix sequence counters.
"""

import threading
from datetime import datetime, timezone

from ..errors import StoreError
from ..models import CatalogCode, Container, DuplicateCandidate, Entry, Relation
from .base import KnowledgeStore, score_duplicates


def _norm(value: str) -> str:
    return value.strip().lower()


class InMemoryStore(KnowledgeStore):
    """Dictionary-backed implementation of :class:`KnowledgeStore`."""

    def __init__(self):
        self._lock = threading.RLock()
        self._containers: dict[str, Container] = {}
        self._entries: dict[str, Entry] = {}
        self._codes: dict[str, CatalogCode] = {}  # lower-cased code -> code
        self._sequences: dict[str, int] = {}  # lower-cased prefix -> last value
        self._relations: list[Relation] = []
        self._index: dict[str, str] = {}

    def ping(self) -> bool:
        return True

    # Containers

    def save_container(self, container: Container) -> Container:
        with self._lock:
            self._containers[container.id] = container.model_copy()
            return container

    def get_container(self, container_id: str) -> Container | None:
        with self._lock:
            container = self._containers.get(container_id)
            return container.model_copy() if container else None

    def list_containers(self, hierarchy_id=None, owner_id=None) -> list[Container]:
        with self._lock:
            found = [
                c.model_copy() for c in self._containers.values()
                if (hierarchy_id is None or c.hierarchy_id == hierarchy_id)
                and (owner_id is None or c.owner_id == owner_id)
            ]
        return sorted(found, key=lambda c: c.order)

    # Entries

    def get_entry(self, entry_id: str) -> Entry | None:
        with self._lock:
            entry = self._entries.get(entry_id)
            return entry.model_copy(deep=True) if entry else None

    def find_entry(self, entry_type: str, title: str) -> Entry | None:
        key = (_norm(entry_type), _norm(title))
        with self._lock:
            for entry in self._entries.values():
                if entry.identity == key:
                    return entry.model_copy(deep=True)
        return None

    def insert_entry(self, entry: Entry) -> Entry:
        with self._lock:
            if entry.id in self._entries:
                raise StoreError(f"Entry {entry.id} already exists", details={"id": entry.id})
            self._entries[entry.id] = entry.model_copy(deep=True)
            return entry

    def update_entry(self, entry: Entry) -> Entry:
        with self._lock:
            if entry.id not in self._entries:
                raise StoreError(f"Entry {entry.id} not found", details={"id": entry.id})
            entry = entry.model_copy(update={"updated_at": datetime.now(timezone.utc)}, deep=True)
            self._entries[entry.id] = entry
            return entry.model_copy(deep=True)

    def delete_entry(self, entry_id: str) -> bool:
        with self._lock:
            self._index.pop(entry_id, None)
            return self._entries.pop(entry_id, None) is not None

    def list_entries(self, owner_id=None) -> list[Entry]:
        with self._lock:
            return [
                e.model_copy(deep=True) for e in self._entries.values()
                if owner_id is None or e.owner_id == owner_id
            ]

    def find_entries_by_titles(self, titles, limit=5, container_ids=None, owner_id=None) -> list[Entry]:
        wanted = {_norm(t) for t in titles if t and t.strip()}
        if not wanted or limit <= 0:
            return []
        if container_ids is not None and not container_ids:
            return []
        scope = set(container_ids) if container_ids is not None else None
        with self._lock:
            found = [
                e.model_copy(deep=True)
                for e in self._entries.values()
                if _norm(e.title) in wanted
                and (owner_id is None or e.owner_id == owner_id)
                and (scope is None or e.container_id in scope)
            ]
        return found[:limit]

    def list_timeline(self, entry_types, container_id=None, layer=None, owner_id=None) -> list[Entry]:
        types = {t.strip().lower() for t in entry_types}
        with self._lock:
            found = [
                e.model_copy(deep=True)
                for e in self._entries.values()
                if e.type.strip().lower() in types
                and (container_id is None or e.container_id == container_id)
                and (layer is None or e.temporal_layer == layer)
                and (owner_id is None or e.owner_id == owner_id)
            ]
        return sorted(found, key=lambda e: (e.start_date is not None, e.start_date or "", e.created_at))

    def search_entries(self, keyword, container_ids=None, owner_id=None, limit=6) -> list[Entry]:
        if limit <= 0 or (container_ids is not None and not container_ids):
            return []
        needle = keyword.lower()
        scope = set(container_ids) if container_ids is not None else None
        results = []
        with self._lock:
            for entry in self._entries.values():
                if owner_id is not None and entry.owner_id != owner_id:
                    continue
                if scope is not None and entry.container_id not in scope:
                    continue
                haystack = (entry.title, entry.summary, ", ".join(entry.tags), entry.body)
                if any(needle in field.lower() for field in haystack):
                    results.append(entry.model_copy(deep=True))
                    if len(results) >= limit:
                        break
        return results

    # Catalog codes

    def codes_for_entry(self, entry_id: str) -> list[CatalogCode]:
        with self._lock:
            return [c.model_copy() for c in self._codes.values() if c.entry_id == entry_id]

    def codes_with_prefix(self, prefix: str) -> list[CatalogCode]:
        needle = prefix.lower()
        with self._lock:
            return [c.model_copy() for key, c in self._codes.items() if key.startswith(needle)]

    def get_code(self, code: str) -> CatalogCode | None:
        with self._lock:
            found = self._codes.get(code.lower())
            return found.model_copy() if found else None

    def next_sequence(self, prefix: str, floor: int = 0) -> int:
        key = prefix.lower()
        with self._lock:
            value = max(self._sequences.get(key, floor), floor) + 1
            self._sequences[key] = value
            return value

    def insert_code(self, code: CatalogCode) -> CatalogCode:
        key = code.code.lower()
        with self._lock:
            if key in self._codes:
                raise StoreError(f"Code {code.code} already exists", details={"code": code.code})
            self._codes[key] = code.model_copy()
            return code

    def repoint_codes(self, from_entry_id: str, to_entry_id: str) -> int:
        moved = 0
        with self._lock:
            for key, code in self._codes.items():
                if code.entry_id == from_entry_id:
                    self._codes[key] = code.model_copy(update={"entry_id": to_entry_id})
                    moved += 1
        return moved

    # Relations

    def insert_relation(self, relation: Relation) -> Relation:
        with self._lock:
            self._relations.append(relation.model_copy())
            return relation

    def relations_for_entry(self, entry_id: str) -> list[Relation]:
        with self._lock:
            return [
                r.model_copy() for r in self._relations
                if r.source_id == entry_id or r.target_id == entry_id
            ]

    def repoint_relations(self, from_entry_id: str, to_entry_id: str) -> int:
        moved = 0
        kept: list[Relation] = []
        with self._lock:
            for relation in self._relations:
                if from_entry_id in (relation.source_id, relation.target_id):
                    moved += 1
                    relation = relation.model_copy(update={
                        "source_id": to_entry_id if relation.source_id == from_entry_id else relation.source_id,
                        "target_id": to_entry_id if relation.target_id == from_entry_id else relation.target_id,
                    })
                    if relation.source_id == relation.target_id:
                        continue
                kept.append(relation)
            self._relations = kept
        return moved

    # Retrieval index

    def replace_index_document(self, entry_id: str, text: str) -> None:
        with self._lock:
            self._index.pop(entry_id, None)
            self._index[entry_id] = text

    def get_index_document(self, entry_id: str) -> str | None:
        with self._lock:
            return self._index.get(entry_id)

    # Reconciliation

    def find_potential_duplicates(self, threshold: float = 0.3) -> list[DuplicateCandidate]:
        return score_duplicates(self.list_entries(), threshold)
