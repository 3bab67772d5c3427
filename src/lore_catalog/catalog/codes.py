"""Catalog code assignment.

Codes look like ``AV7-PS3``: container prefix, sub-container (episode) number,
a dash, the type prefix and a sequence number. One counter exists per
(container prefix, episode, type prefix) and an entry holds at most one code
under each prefix.
"""

import logging
import re
import unicodedata

from ..errors import StoreError
from ..models import CatalogCode, Container
from ..store.base import KnowledgeStore, trailing_number

logger = logging.getLogger(__name__)

DEFAULT_CONTAINER_PREFIX = "AV"
EMPTY_TYPE_PREFIX = "XX"

TYPE_PREFIX_MAP = {
    "character": "PS",
    "personagem": "PS",
    "location": "LO",
    "local": "LO",
    "concept": "CC",
    "conceito": "CC",
    "event": "EV",
    "evento": "EV",
    "media": "MD",
    "midia": "MD",
    "organization": "EM",
    "company": "EM",
    "empresa": "EM",
    "agency": "AG",
    "agencia": "AG",
    "anomalous_record": "RA",
    "registro_anomalo": "RA",
    "registro anomalo": "RA",
    "script": "RT",
    "roteiro": "RT",
    "object": "OB",
    "objeto": "OB",
}


def strip_accents(value: str) -> str:
    normalized = unicodedata.normalize("NFD", value)
    return "".join(ch for ch in normalized if not unicodedata.combining(ch))


def container_prefix(container: Container | None) -> str:
    """Short upper-case code for a container.

    An explicit alphabetic prefix of 2-5 letters wins. Otherwise the first
    letters of up to two words of the name are used, and "AV" when there is
    no usable name.
    """
    if container is None:
        return DEFAULT_CONTAINER_PREFIX

    explicit = (container.prefix or "").strip()
    if explicit.isalpha() and 2 <= len(explicit) <= 5:
        return explicit.upper()

    words = re.findall(r"[A-Za-z]+", strip_accents(container.name or ""))
    if not words:
        return DEFAULT_CONTAINER_PREFIX
    return "".join(word[0] for word in words[:2]).upper()


def type_prefix(entry_type: str) -> str:
    """Two-letter code for an entry type."""
    key = strip_accents(entry_type or "").strip().lower()
    if key in TYPE_PREFIX_MAP:
        return TYPE_PREFIX_MAP[key]

    letters = re.sub(r"[^a-z]", "", key)
    if not letters:
        return EMPTY_TYPE_PREFIX
    if len(letters) == 1:
        return (letters * 2).upper()
    return letters[:2].upper()


def normalize_sub_number(value) -> int | None:
    """Episode number from an int or a string such as "Ep. 07"; None if absent."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    digits = re.sub(r"\D+", "", str(value))
    return int(digits) if digits else None


def build_prefix(container: Container | None, sub_number: int, entry_type: str) -> str:
    return f"{container_prefix(container)}{sub_number}-{type_prefix(entry_type)}"


def _matches_prefix(code: str, prefix: str) -> bool:
    return re.fullmatch(re.escape(prefix) + r"\d+", code, flags=re.IGNORECASE) is not None


class CodeAssigner:
    """Assigns catalog codes through a store's atomic per-prefix counters.

    Usage:
        assigner = CodeAssigner(store)
        code = assigner.assign(entry.id, "character", world, "7")  # "AV7-PS1"
    """

    def __init__(self, store: KnowledgeStore):
        self.store = store

    def existing_code(self, entry_id: str, prefix: str) -> CatalogCode | None:
        """The code the entry already holds under ``prefix``, if any."""
        for code in self.store.codes_for_entry(entry_id):
            if _matches_prefix(code.code, prefix):
                return code
        return None

    def highest_sequence(self, prefix: str) -> int:
        """Greatest sequence number in use under ``prefix`` (0 if none)."""
        numbers = [
            trailing_number(c.code)
            for c in self.store.codes_with_prefix(prefix)
            if _matches_prefix(c.code, prefix)
        ]
        return max((n for n in numbers if n is not None), default=0)

    def assign(
        self,
        entry_id: str,
        entry_type: str,
        container: Container | None,
        sub_number,
    ) -> CatalogCode | None:
        """Give an entry its code under (container, episode, type).

        Args:
            entry_id: Owning entry
            entry_type: Entry type, mapped to the type prefix
            container: Owning container, mapped to the container prefix
            sub_number: Episode number; without one no code is assigned

        Returns:
            The new code, the entry's existing code under the same prefix, or
            None when there is no episode number
        """
        number = normalize_sub_number(sub_number)
        if number is None:
            return None

        prefix = build_prefix(container, number, entry_type)
        held = self.existing_code(entry_id, prefix)
        if held is not None:
            logger.debug("Entry %s already holds %s", entry_id, held.code)
            return held

        # The counter is seeded from codes written before counters existed, and
        # skips forward if a code it produces is already taken.
        floor = self.highest_sequence(prefix)
        for _ in range(3):
            sequence = self.store.next_sequence(prefix, floor=floor)
            code = CatalogCode(entry_id=entry_id, code=f"{prefix}{sequence}")
            try:
                self.store.insert_code(code)
            except StoreError:
                if self.store.get_code(code.code) is None:
                    raise
                floor = self.highest_sequence(prefix)
                continue
            logger.info("Assigned %s to entry %s", code.code, entry_id)
            return code

        raise StoreError(f"Could not allocate a code under {prefix}", details={"prefix": prefix})

    def assign_manual(self, entry_id: str, code: str) -> CatalogCode | None:
        """Record an explicitly chosen code for an entry.

        Returns None when the code is blank; an existing identical code owned by
        the same entry is returned unchanged.
        """
        code = (code or "").strip()
        if not code:
            return None
        existing = self.store.get_code(code)
        if existing is not None:
            if existing.entry_id == entry_id:
                return existing
            raise StoreError(f"Code {code} belongs to another entry", details={"code": code})
        return self.store.insert_code(CatalogCode(entry_id=entry_id, code=code))
