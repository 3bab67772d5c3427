"""Keyword retrieval.

A query is reduced to its first meaningful word, which is matched as a
case-insensitive substring of title, summary, tags and body. Results can be
scoped to one hierarchy (universe) and one owner. Scoping fails closed: a
hierarchy with no containers yields nothing rather than everything.
"""

import logging
import re
from typing import Optional

from pydantic import BaseModel

from ..config import get_settings
from ..models import Entry
from ..store.base import KnowledgeStore

logger = logging.getLogger(__name__)

# Keyword hits are not ranked
FIXED_RELEVANCE = 0.9

STOPWORDS = frozenset({
    # English
    "a", "an", "and", "are", "as", "at", "be", "by", "did", "do", "does", "for",
    "from", "has", "have", "how", "in", "is", "it", "of", "on", "or", "that",
    "the", "this", "to", "was", "were", "what", "when", "where", "which", "who",
    "why", "with",
    # Portuguese
    "o", "os", "as", "um", "uma", "uns", "umas", "de", "do", "da", "dos", "das",
    "em", "no", "na", "nos", "nas", "por", "para", "com", "sem", "e", "ou",
    "que", "quem", "qual", "quais", "quando", "onde", "como", "porque", "se",
    "foi", "era", "sao", "são", "é", "ao", "aos", "à", "às", "sobre",
})

_WORD = re.compile(r"[^\W_]+")


def extract_keyword(query: str) -> Optional[str]:
    """First word of the query that is not a stopword, lower-cased."""
    for word in _WORD.findall(query or ""):
        word = word.lower()
        if word not in STOPWORDS:
            return word
    return None


class RetrievedEntry(BaseModel):
    """A fact returned to the caller or fed to the consistency checker."""

    id: str
    title: str
    type: str
    content: str
    relevance: float = FIXED_RELEVANCE

    @property
    def source(self) -> str:
        return f"entry:{self.id}"


class Retriever:
    """Finds stored entries relevant to a free-text query.

    Usage:
        retriever = Retriever(store)
        facts = retriever.search("Where was Ana born?", hierarchy_id=universe.id)
    """

    def __init__(self, store: KnowledgeStore, limit: Optional[int] = None):
        self.store = store
        self.limit = get_settings().retrieval_limit if limit is None else limit

    def _content(self, entry: Entry) -> str:
        document = self.store.get_index_document(entry.id)
        if document:
            return document
        return f"{entry.summary}\n\n{entry.body}".strip()

    def scope(self, hierarchy_id: Optional[str], owner_id: Optional[str] = None) -> Optional[list[str]]:
        """Container ids a search is limited to; None when unscoped.

        With a hierarchy, only its containers held by ``owner_id`` (when given)
        are in scope, so an empty list means nothing may match.
        """
        if hierarchy_id is None:
            return None
        containers = self.store.list_containers(hierarchy_id=hierarchy_id, owner_id=owner_id)
        return [c.id for c in containers]

    def search(
        self,
        query: str,
        hierarchy_id: Optional[str] = None,
        owner_id: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> list[RetrievedEntry]:
        """Return entries matching the query's keyword.

        Args:
            query: Free-text question or statement
            hierarchy_id: Restrict to containers of this hierarchy
            owner_id: Restrict to entries of this owner
            limit: Maximum results (default from config)

        Returns:
            Matching entries, all with the same fixed relevance
        """
        keyword = extract_keyword(query)
        if keyword is None:
            return []

        container_ids = self.scope(hierarchy_id, owner_id)
        if container_ids is not None and not container_ids:
            logger.debug("Hierarchy %s has no containers", hierarchy_id)
            return []

        entries = self.store.search_entries(
            keyword,
            container_ids=container_ids,
            owner_id=owner_id,
            limit=self.limit if limit is None else limit,
        )
        logger.debug("Keyword '%s' matched %d entries", keyword, len(entries))
        return [
            RetrievedEntry(id=e.id, title=e.title, type=e.type, content=self._content(e))
            for e in entries
        ]
