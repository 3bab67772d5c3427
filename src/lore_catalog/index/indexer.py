"""Lexical retrieval index.

Every entry gets at most one index document: its summary and body. Writing a
document replaces whatever was indexed for the entry before.
"""

import logging
from typing import Optional

from ..config import get_settings
from ..models import Entry
from ..store.base import KnowledgeStore

logger = logging.getLogger(__name__)


def build_document(entry: Entry, max_chars: int) -> str:
    """Summary, a blank line, then the body; trimmed and truncated."""
    text = f"{entry.summary}\n\n{entry.body}".strip()
    return text[:max_chars]


class Indexer:
    """Keeps an entry's retrieval document in sync with its text."""

    def __init__(self, store: KnowledgeStore, max_chars: Optional[int] = None):
        self.store = store
        self.max_chars = get_settings().index_max_chars if max_chars is None else max_chars

    def index_entry(self, entry: Entry) -> bool:
        """Index one entry. Returns False when there is nothing to index."""
        document = build_document(entry, self.max_chars)
        if not document:
            logger.debug("Nothing to index for %s", entry.title)
            return False
        self.store.replace_index_document(entry.id, document)
        return True
