"""LLM-based entry extraction.

Each segment of a document goes to the language model with the same extraction
instruction. Segments are processed in parallel; results are gathered back in
document order. Whatever the model returns is validated against
``ExtractedEntry`` before it leaves this module.
"""

import json
import logging
import re
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Optional

from pydantic import ValidationError

from ..config import Settings, get_settings
from ..ingest.splitter import split_into_segments
from ..llm import LLMClient, LLMError
from ..models import ExtractedEntry

logger = logging.getLogger(__name__)

DEFAULT_ENTRY_TYPES = [
    "character",
    "location",
    "event",
    "object",
    "concept",
    "organization",
    "script",
]

EXTRACTION_SYSTEM_PROMPT = """You are the lore extraction engine of a fictional universe catalog.
Break the text into a list of JSON records ("entries"), one for EVERY entity it mentions.

Principles:
1. Completeness: identify every entity mentioned, even in passing.
2. Categories with a description are instructions; follow them exactly.
3. Whenever entities interact, record a relation between them.
4. Fill every field you can.

CATEGORIES:
{categories}

FIELDS:
- type: one of the categories above
- title: the entity's name as written in the text
- summary: one or two short sentences
- body: the complete, detailed description; write @Name to link another entry
- tags: 4-7 relevant tags
- year: in-world year as an integer, or null
- start_date, end_date: ISO-like dates (YYYY, YYYY-MM or YYYY-MM-DD), or null
- date_precision: day, month, year, decade, century, vague or unknown
- temporal_layer: main_line, flashback, flashforward, alternate or myth
- date_description: free-text description of when it happens, or null
- relations: list of {{"type": ..., "target_title": ...}} using types such as
  child_of, parent_of, friend_of, enemy_of, works_at, employs, located_in, contains

Respond with a single JSON object: {{"entries": [...]}}"""

EXTRACTION_USER_PROMPT = """Segment {index} of {total}.

Extract the entries from the text below:

{text}"""


def normalize_episode(value) -> str:
    """Reduce an episode label such as "Ep. 07" to its number ("7")."""
    digits = re.sub(r"\D+", "", str(value or ""))
    return str(int(digits)) if digits else ""


def format_categories(
    allowed_types: list[str],
    type_descriptions: Optional[dict[str, str]] = None,
) -> str:
    """Render the category section of the extraction instruction."""
    descriptions = type_descriptions or {}
    sections = []
    for slug in allowed_types:
        description = descriptions.get(slug) or "(infer the meaning from the category name)"
        sections.append(f"### {slug.upper()}\n{description}")
    return "\n\n".join(sections)


def load_type_descriptions(path: str | Path) -> dict[str, str]:
    """Read per-type extraction instructions from a JSON file.

    The file holds either an object mapping each type to its description, or a
    list of category records with ``slug`` and ``description``. Types keep file
    order.

    Raises:
        ValueError: If the file is not valid JSON or has neither shape
    """
    data = json.loads(Path(path).read_text(encoding="utf-8"))
    if isinstance(data, list):
        try:
            data = {item["slug"]: item.get("description") or "" for item in data}
        except (KeyError, TypeError, AttributeError) as e:
            raise ValueError("category records need a 'slug'") from e
    if not isinstance(data, dict):
        raise ValueError("expected an object of type descriptions or a list of categories")
    return {str(slug).strip().lower(): str(text or "").strip() for slug, text in data.items() if str(slug).strip()}


def parse_entries(payload) -> list[ExtractedEntry]:
    """Validate raw model output into entries, dropping malformed records.

    Accepts ``{"entries": [...]}``, the legacy ``{"fichas": [...]}`` wrapper or a
    bare list.
    """
    if isinstance(payload, dict):
        records = payload.get("entries", payload.get("fichas"))
    else:
        records = payload
    if not isinstance(records, list):
        return []

    entries = []
    for record in records:
        try:
            entries.append(ExtractedEntry.model_validate(record))
        except ValidationError as e:
            logger.warning("Dropping malformed entry: %s", e.errors()[0].get("msg", e))
    return entries


class EntryExtractor:
    """Extracts catalog entries from document text.

    Usage:
        extractor = EntryExtractor()
        entries = extractor.extract(text, appears_in="7")
    """

    def __init__(
        self,
        llm: Optional[LLMClient] = None,
        settings: Optional[Settings] = None,
    ):
        """Initialize the extractor.

        Args:
            llm: Language model client (created from settings if not provided)
            settings: Settings override
        """
        self.settings = settings or get_settings()
        self.llm = llm or LLMClient()

    def _messages(self, segment: str, index: int, total: int, categories: str) -> list[dict]:
        return [
            {"role": "system", "content": EXTRACTION_SYSTEM_PROMPT.format(categories=categories)},
            {"role": "user", "content": EXTRACTION_USER_PROMPT.format(index=index, total=total, text=segment)},
        ]

    def extract_segment(self, segment: str, index: int, total: int, categories: str) -> list[ExtractedEntry]:
        """Extract entries from one segment. Failures yield an empty list."""
        try:
            return self._extract_segment(segment, index, total, categories)
        except Exception:
            logger.exception("Segment %d/%d: extraction failed", index, total)
            return []

    def _extract_segment(self, segment: str, index: int, total: int, categories: str) -> list[ExtractedEntry]:
        try:
            response = self.llm.chat(
                self._messages(segment, index, total, categories),
                temperature=self.settings.extraction_temperature,
                max_tokens=self.settings.extraction_max_tokens,
                json_mode=True,
            )
        except LLMError as e:
            logger.warning("Segment %d/%d: model call failed: %s", index, total, e)
            return []

        payload = self.llm.extract_json(response)
        if payload is None:
            logger.warning("Segment %d/%d: response was not JSON", index, total)
            return []

        entries = parse_entries(payload)
        logger.debug("Segment %d/%d: %d entries", index, total, len(entries))
        return entries

    def extract(
        self,
        text: str,
        allowed_types: Optional[list[str]] = None,
        type_descriptions: Optional[dict[str, str]] = None,
        appears_in=None,
    ) -> list[ExtractedEntry]:
        """Extract entries from a whole document.

        Args:
            text: Document text
            allowed_types: Entry types the model may produce
            type_descriptions: Optional instructions per type
            appears_in: Episode label stamped onto every entry

        Returns:
            Entries from all segments, in segment order (not yet deduplicated)
        """
        if not text or not text.strip():
            return []

        segments = split_into_segments(text, self.settings.segment_max_chars)
        categories = format_categories(allowed_types or DEFAULT_ENTRY_TYPES, type_descriptions)
        total = len(segments)
        logger.info("Extracting from %d segment(s)", total)

        workers = max(1, min(self.settings.extraction_workers, total))
        with ThreadPoolExecutor(max_workers=workers) as pool:
            futures = [
                pool.submit(self.extract_segment, segment, i, total, categories)
                for i, segment in enumerate(segments, start=1)
            ]
            results = [future.result() for future in futures]

        entries = [entry for batch in results for entry in batch]

        episode = normalize_episode(appears_in) if appears_in is not None else ""
        if episode:
            entries = [entry.model_copy(update={"appears_in": episode}) for entry in entries]

        logger.info("Extracted %d entries", len(entries))
        return entries
