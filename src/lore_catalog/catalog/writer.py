"""Write extracted entries into the knowledge store."""

import logging
from dataclasses import dataclass, field
from typing import Optional

from ..errors import EntrySaveError, StoreError
from ..index.indexer import Indexer
from ..models import Container, Entry, ExtractedEntry, Relation
from ..store.base import KnowledgeStore
from .codes import CodeAssigner
from .merge import STORE_MERGE, MergeStrategy

logger = logging.getLogger(__name__)

AUTO_RELATION_DESCRIPTION = "Generated automatically during extraction."


@dataclass
class SavedEntry:
    """One entry written by a batch."""
    entry_id: str
    title: str
    code: Optional[str] = None
    created: bool = True


@dataclass
class SaveReport:
    """Outcome of a save batch."""
    saved: list[SavedEntry] = field(default_factory=list)
    failed_title: Optional[str] = None
    error: Optional[str] = None

    @property
    def created(self) -> int:
        return sum(1 for s in self.saved if s.created)

    @property
    def merged(self) -> int:
        return sum(1 for s in self.saved if not s.created)

    @property
    def ok(self) -> bool:
        return self.failed_title is None

    def to_dict(self) -> dict:
        return {
            "ok": self.ok,
            "saved_count": len(self.saved),
            "created": self.created,
            "merged": self.merged,
            "saved": [
                {"entry_id": s.entry_id, "title": s.title, "code": s.code, "created": s.created}
                for s in self.saved
            ],
            "failed_title": self.failed_title,
            "error": self.error,
        }


def new_entry(
    incoming: ExtractedEntry,
    container: Optional[Container],
    owner_id: Optional[str],
) -> Entry:
    """Build a fresh stored entry from an extracted one."""
    return Entry(
        type=incoming.type.strip().lower(),
        title=incoming.title.strip(),
        summary=incoming.summary,
        body=incoming.body,
        tags=incoming.tags,
        appears_in=incoming.appears_in,
        image_url=incoming.image_url,
        container_id=container.id if container else None,
        owner_id=owner_id,
        **incoming.temporal.model_dump(),
    )


class KnowledgeWriter:
    """Upserts entries by global (type, title) identity.

    New identities are inserted into the ingesting container. Known identities
    are merged with the configured strategy, so existing prose is kept and only
    missing facts are filled in.

    Usage:
        writer = KnowledgeWriter(store)
        report = writer.save_batch(entries, world, sub_number="7", owner_id=user)
    """

    def __init__(
        self,
        store: KnowledgeStore,
        assigner: Optional[CodeAssigner] = None,
        indexer: Optional[Indexer] = None,
        strategy: MergeStrategy = STORE_MERGE,
    ):
        self.store = store
        self.assigner = assigner or CodeAssigner(store)
        self.indexer = indexer or Indexer(store)
        self.strategy = strategy

    def upsert(
        self,
        incoming: ExtractedEntry,
        container: Optional[Container],
        owner_id: Optional[str],
    ) -> tuple[Entry, bool]:
        """Insert or merge one entry. Returns the stored entry and whether it is new."""
        existing = self.store.find_entry(incoming.type, incoming.title)
        if existing is None:
            entry = self.store.insert_entry(new_entry(incoming, container, owner_id))
            logger.debug("Inserted %s '%s'", entry.type, entry.title)
            return entry, True

        merged, changed = self.strategy.merge(existing, incoming)
        if changed:
            merged = self.store.update_entry(merged)
            logger.debug("Merged into %s '%s'", merged.type, merged.title)
        return merged, False

    def assign_code(
        self,
        entry: Entry,
        incoming: ExtractedEntry,
        container: Optional[Container],
        sub_number,
    ) -> Optional[str]:
        """Manual code if one was extracted, else the next automatic one."""
        try:
            if incoming.code:
                code = self.assigner.assign_manual(entry.id, incoming.code)
            else:
                code = self.assigner.assign(entry.id, entry.type, container, sub_number)
        except StoreError as e:
            logger.warning("Could not assign a code to '%s': %s", entry.title, e)
            return None
        return code.code if code else None

    def save_relations(self, entry: Entry, incoming: ExtractedEntry) -> int:
        """Persist relations whose target title resolves to a stored entry."""
        saved = 0
        for relation in incoming.relations:
            targets = self.store.find_entries_by_titles([relation.target_title], limit=1)
            if not targets:
                logger.debug("Relation target '%s' not found", relation.target_title)
                continue
            self.store.insert_relation(Relation(
                source_id=entry.id,
                target_id=targets[0].id,
                type=relation.type,
                description=AUTO_RELATION_DESCRIPTION,
            ))
            saved += 1
        return saved

    def index(self, entry: Entry) -> None:
        try:
            self.indexer.index_entry(entry)
        except StoreError as e:
            logger.warning("Could not index '%s': %s", entry.title, e)

    def save_entry(
        self,
        incoming: ExtractedEntry,
        container: Optional[Container],
        sub_number=None,
        owner_id: Optional[str] = None,
    ) -> SavedEntry:
        """Save one entry with its code, relations and index document.

        Raises:
            EntrySaveError: If the entry itself cannot be written
        """
        try:
            entry, created = self.upsert(incoming, container, owner_id)
        except StoreError as e:
            raise EntrySaveError(incoming.title, cause=e) from e

        code = self.assign_code(entry, incoming, container, sub_number)

        try:
            self.save_relations(entry, incoming)
        except StoreError as e:
            logger.warning("Could not save relations of '%s': %s", entry.title, e)

        self.index(entry)
        return SavedEntry(entry_id=entry.id, title=entry.title, code=code, created=created)

    def save_batch(
        self,
        entries: list[ExtractedEntry],
        container: Optional[Container],
        sub_number=None,
        owner_id: Optional[str] = None,
    ) -> SaveReport:
        """Save entries in order, stopping at the first entry that cannot be written.

        Args:
            entries: De-duplicated entries
            container: World the batch is ingested into
            sub_number: Episode number used for catalog codes
            owner_id: Owner stamped on new entries

        Returns:
            Report of the saved entries and, on failure, the failing title
        """
        report = SaveReport()
        for incoming in entries:
            try:
                report.saved.append(self.save_entry(incoming, container, sub_number, owner_id))
            except EntrySaveError as e:
                logger.error("%s: %s", e, e.cause)
                report.failed_title = e.title
                report.error = str(e.cause or e)
                break

        logger.info(
            "Saved %d entries (%d new, %d merged)",
            len(report.saved), report.created, report.merged,
        )
        return report
