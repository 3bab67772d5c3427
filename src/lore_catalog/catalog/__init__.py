"""Catalog codes, merge policies and the store writer."""

from lore_catalog.catalog.codes import CodeAssigner, build_prefix, container_prefix, type_prefix
from lore_catalog.catalog.merge import STORE_MERGE, FillMissingTemporal, MergeStrategy, PreferExistingProse
from lore_catalog.catalog.writer import KnowledgeWriter, SaveReport

__all__ = [
    "CodeAssigner",
    "FillMissingTemporal",
    "KnowledgeWriter",
    "MergeStrategy",
    "PreferExistingProse",
    "STORE_MERGE",
    "SaveReport",
    "build_prefix",
    "container_prefix",
    "type_prefix",
]
