"""Retrieval index maintenance."""

from lore_catalog.index.indexer import Indexer, build_document

__all__ = ["Indexer", "build_document"]
