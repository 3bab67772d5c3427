"""Merge entries extracted from different segments of one ingestion batch."""

from collections import OrderedDict

from ..models import ExtractedEntry, ExtractedRelation
from ..models.entries import normalize_tags

# Leading characters compared when deciding whether a body repeats another
NEAR_DUPLICATE_PREFIX = 80

BODY_SEPARATOR = "\n\n"


def _is_near_duplicate(candidate: str, accumulated: str) -> bool:
    prefix = candidate[:NEAR_DUPLICATE_PREFIX].lower()
    return prefix in accumulated.lower()


def merge_bodies(bodies: list[str]) -> str:
    """Concatenate distinct bodies, skipping ones whose opening is already present."""
    merged = ""
    for body in bodies:
        body = body.strip()
        if not body or _is_near_duplicate(body, merged):
            continue
        merged = f"{merged}{BODY_SEPARATOR}{body}" if merged else body
    return merged


def merge_relations(groups: list[list[ExtractedRelation]]) -> list[ExtractedRelation]:
    seen: set[tuple[str, str]] = set()
    merged = []
    for relations in groups:
        for relation in relations:
            if relation.key not in seen:
                seen.add(relation.key)
                merged.append(relation)
    return merged


def _temporal_source(group: list[ExtractedEntry]) -> ExtractedEntry:
    """The member whose date fields win, as a unit."""
    for entry in group:
        if entry.has_start_date:
            return entry
    for entry in group:
        if entry.year is not None or entry.date_description:
            return entry
    return group[0]


def merge_group(group: list[ExtractedEntry]) -> ExtractedEntry:
    """Collapse entries sharing one identity into a single entry."""
    if len(group) == 1:
        return group[0]

    first = group[0]
    temporal = _temporal_source(group)

    return first.model_copy(update={
        "type": first.type.strip(),
        "title": first.title.strip(),
        "summary": next((e.summary for e in group if e.summary.strip()), ""),
        "body": merge_bodies([e.body for e in group]),
        "tags": normalize_tags([tag for e in group for tag in e.tags]),
        "relations": merge_relations([e.relations for e in group]),
        "image_url": next((e.image_url for e in group if e.image_url), None),
        "code": next((e.code for e in group if e.code), None),
        "appears_in": next((e.appears_in for e in group if e.appears_in), ""),
        **temporal.temporal.model_dump(),
    })


def deduplicate_entries(entries: list[ExtractedEntry]) -> list[ExtractedEntry]:
    """Merge entries that share a (type, title) identity.

    Identity compares the lower-cased, trimmed type and title. Output keeps the
    order in which identities first appear, and running this on its own output
    changes nothing.

    Args:
        entries: Flat list of entries from all segments

    Returns:
        One entry per identity
    """
    groups: OrderedDict[tuple[str, str], list[ExtractedEntry]] = OrderedDict()
    for entry in entries:
        groups.setdefault(entry.identity, []).append(entry)

    return [merge_group(group) for group in groups.values()]
