"""Exceptions raised by the cataloging engine.

Only failures that must stop the caller are raised. Per-segment extraction,
code assignment and indexing problems are logged where they happen instead.
"""

from typing import Any, Optional


class LoreCatalogError(Exception):
    """Base exception for lore catalog errors."""

    def __init__(
        self,
        message: str,
        details: Optional[dict[str, Any]] = None,
        cause: Optional[Exception] = None,
    ):
        """Initialize the error.

        Args:
            message: Technical description of the failure
            details: Extra context (ids, titles) for diagnostics
            cause: Original exception, if any
        """
        self.details = details or {}
        self.cause = cause
        super().__init__(message)


class ConfigurationError(LoreCatalogError):
    """Raised when the store or the language model is not reachable."""


class StoreError(LoreCatalogError):
    """Raised by store adapters when a read or write fails."""


class EntrySaveError(LoreCatalogError):
    """Raised when a single entry cannot be written."""

    def __init__(self, title: str, cause: Optional[Exception] = None):
        super().__init__(
            f"Failed to save entry '{title}'",
            details={"title": title},
            cause=cause,
        )
        self.title = title


class ReconciliationError(LoreCatalogError):
    """Raised when a reconciliation merge cannot be applied."""
