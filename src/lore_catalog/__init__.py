"""Lore Catalog - turn narrative documents into a cataloged, checkable lore base."""

__version__ = "0.1.0"
