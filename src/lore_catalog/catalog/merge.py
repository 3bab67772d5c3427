"""Field merge policies applied when an ingested entry meets a stored one.

The store favours what is already curated: existing prose is never
overwritten, while tags, provenance and missing dates keep accumulating. Each
rule is a named policy so the asymmetry is visible where it is used:

    STORE_MERGE = MergeStrategy(PreferExistingProse(), FillMissingTemporal())
"""

from ..models import Entry, ExtractedEntry
from ..models.entries import normalize_tags

APPEARS_IN_SEPARATOR = ", "


def union_tags(existing: list[str], incoming: list[str]) -> list[str]:
    """Existing tags followed by the net-new incoming ones."""
    return normalize_tags(list(existing) + list(incoming))


def merge_appears_in(old: str, new: str, separator: str = APPEARS_IN_SEPARATOR) -> str:
    """Merge two provenance strings by substring containment.

    A value already contained in the other is dropped; otherwise both are kept.
    """
    old = (old or "").strip()
    new = (new or "").strip()
    if not new or new in old:
        return old
    if not old or old in new:
        return new
    return f"{old}{separator}{new}"


class FieldPolicy:
    """Computes field updates for a stored entry from an incoming one."""

    name = "field-policy"

    def updates(self, existing: Entry, incoming: ExtractedEntry) -> dict:
        raise NotImplementedError


class PreferExistingProse(FieldPolicy):
    """Stored summary/body/image win; tags are unioned; provenance accumulates."""

    name = "prefer-existing-prose"

    def updates(self, existing: Entry, incoming: ExtractedEntry) -> dict:
        changes: dict = {}
        if not existing.summary.strip() and incoming.summary.strip():
            changes["summary"] = incoming.summary
        if not existing.body.strip() and incoming.body.strip():
            changes["body"] = incoming.body
        if not existing.image_url and incoming.image_url:
            changes["image_url"] = incoming.image_url

        tags = union_tags(existing.tags, incoming.tags)
        if tags != existing.tags:
            changes["tags"] = tags

        appears_in = merge_appears_in(existing.appears_in, incoming.appears_in)
        if appears_in != existing.appears_in:
            changes["appears_in"] = appears_in
        return changes


class FillMissingTemporal(FieldPolicy):
    """Take the incoming date unit only when the stored entry has no start date.

    The unit (year, dates, precision, layer, description) moves as a whole so
    fields from different sources are never mixed. A bare year fills in when the
    stored year is empty.
    """

    name = "fill-missing-temporal"

    def updates(self, existing: Entry, incoming: ExtractedEntry) -> dict:
        if not existing.has_start_date and incoming.has_start_date:
            return incoming.temporal.model_dump()
        if existing.year is None and incoming.year is not None:
            return {"year": incoming.year}
        return {}


class MergeStrategy:
    """Apply field policies in order to produce the merged stored entry."""

    def __init__(self, *policies: FieldPolicy):
        self.policies = policies

    @property
    def name(self) -> str:
        return " + ".join(p.name for p in self.policies)

    def merge(self, existing: Entry, incoming: ExtractedEntry) -> tuple[Entry, bool]:
        """Return the merged entry and whether anything changed."""
        changes: dict = {}
        for policy in self.policies:
            changes.update(policy.updates(existing, incoming))
        if not changes:
            return existing, False
        return existing.model_copy(update=changes), True


STORE_MERGE = MergeStrategy(PreferExistingProse(), FillMissingTemporal())
