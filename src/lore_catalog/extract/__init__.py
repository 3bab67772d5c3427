"""Entry extraction and batch de-duplication."""

from lore_catalog.extract.dedup import deduplicate_entries
from lore_catalog.extract.extractor import EntryExtractor, parse_entries

__all__ = ["EntryExtractor", "deduplicate_entries", "parse_entries"]
