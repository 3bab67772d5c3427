"""End-to-end ingestion: text in, catalogued entries out."""

import logging
from dataclasses import dataclass, field
from typing import Callable, Optional

from .catalog.writer import KnowledgeWriter, SaveReport
from .errors import ConfigurationError
from .extract.dedup import deduplicate_entries
from .extract.extractor import EntryExtractor
from .llm import LLMClient
from .store.base import KnowledgeStore

logger = logging.getLogger(__name__)


@dataclass
class IngestReport:
    """Counts and save outcome of one ingestion."""
    extracted: int = 0
    unique: int = 0
    save: SaveReport = field(default_factory=SaveReport)

    def to_dict(self) -> dict:
        return {"extracted": self.extracted, "unique": self.unique, **self.save.to_dict()}


class IngestionPipeline:
    """Segment, extract, de-duplicate, then save into a container.

    Usage:
        pipeline = IngestionPipeline(store)
        report = pipeline.ingest(text, world.id, sub_number="7")
    """

    def __init__(
        self,
        store: KnowledgeStore,
        llm: Optional[LLMClient] = None,
        extractor: Optional[EntryExtractor] = None,
        writer: Optional[KnowledgeWriter] = None,
        progress_callback: Optional[Callable[[str], None]] = None,
    ):
        """Initialize the pipeline.

        Args:
            store: Knowledge store
            llm: Language model client (created from settings if not provided)
            extractor: Extractor override
            writer: Writer override
            progress_callback: Optional callback for progress updates
        """
        self.store = store
        self.llm = llm or LLMClient()
        self.extractor = extractor or EntryExtractor(llm=self.llm)
        self.writer = writer or KnowledgeWriter(store)
        self.progress = progress_callback or (lambda x: None)

    def verify(self) -> None:
        """Raise ConfigurationError unless the store and the model are reachable."""
        if not self.store.ping():
            raise ConfigurationError("Knowledge store is not reachable")
        if not self.llm.is_available:
            raise ConfigurationError(
                "Language model is not available",
                details={"provider": self.llm.provider, "model": self.llm.model},
            )

    def ingest(
        self,
        text: str,
        container_id: str,
        sub_number=None,
        owner_id: Optional[str] = None,
        allowed_types: Optional[list[str]] = None,
        type_descriptions: Optional[dict[str, str]] = None,
    ) -> IngestReport:
        """Catalogue the entries found in ``text``.

        Args:
            text: Document text
            container_id: World the entries are ingested into
            sub_number: Episode number, used for codes and provenance
            owner_id: Owner of new entries
            allowed_types: Entry types the model may produce
            type_descriptions: Optional instructions per type

        Returns:
            IngestReport

        Raises:
            ConfigurationError: If a dependency is unavailable or the world is unknown
        """
        self.verify()
        container = self.store.get_container(container_id)
        if container is None:
            raise ConfigurationError(f"World {container_id} not found", details={"id": container_id})

        self.progress("Extracting entries...")
        extracted = self.extractor.extract(
            text,
            allowed_types=allowed_types,
            type_descriptions=type_descriptions,
            appears_in=sub_number,
        )

        self.progress(f"De-duplicating {len(extracted)} entries...")
        entries = deduplicate_entries(extracted)

        self.progress(f"Saving {len(entries)} entries...")
        save = self.writer.save_batch(entries, container, sub_number=sub_number, owner_id=owner_id)

        report = IngestReport(extracted=len(extracted), unique=len(entries), save=save)
        logger.info("Ingested %d entries into %s", len(save.saved), container.name or container.id)
        return report
