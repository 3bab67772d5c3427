"""Text ingestion and segmentation."""

from lore_catalog.ingest.loader import load_document
from lore_catalog.ingest.splitter import iter_segments, split_into_segments

__all__ = ["load_document", "iter_segments", "split_into_segments"]
