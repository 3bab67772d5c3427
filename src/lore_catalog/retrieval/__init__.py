"""Keyword retrieval over stored entries."""

from lore_catalog.retrieval.retriever import FIXED_RELEVANCE, RetrievedEntry, Retriever, extract_keyword

__all__ = ["FIXED_RELEVANCE", "RetrievedEntry", "Retriever", "extract_keyword"]
