"""Data models for the lore catalog."""

from lore_catalog.models.entries import (
    CatalogCode,
    Container,
    DatePrecision,
    DuplicateCandidate,
    Entry,
    ExtractedEntry,
    MergedRecord,
    TemporalFields,
    TemporalLayer,
    identity_key,
)
from lore_catalog.models.relations import ExtractedRelation, Relation, RelationType

__all__ = [
    "CatalogCode",
    "Container",
    "DatePrecision",
    "DuplicateCandidate",
    "Entry",
    "ExtractedEntry",
    "ExtractedRelation",
    "MergedRecord",
    "Relation",
    "RelationType",
    "TemporalFields",
    "TemporalLayer",
    "identity_key",
]
