"""Human-mediated merging of duplicate entries."""

from lore_catalog.reconcile.merge import ReconcileResult, find_duplicates, reconcile

__all__ = ["ReconcileResult", "find_duplicates", "reconcile"]
