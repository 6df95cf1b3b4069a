"""
Cosmo - Error Taxonomy
=======================
Every failure the pipeline raises derives from ``CosmoError`` so entry
points can report them uniformly.  Nothing here is retried or
suppressed by the core; errors surface to the immediate caller.
"""

from __future__ import annotations

from typing import Any


class CosmoError(Exception):
    """Base class for all pipeline errors."""


class ProviderError(CosmoError):
    """An embedding or completion call failed or returned malformed data."""


class IndexMissingError(CosmoError):
    """A vector query was attempted before the similarity index exists."""

    def __init__(self, collection: str, index_name: str) -> None:
        self.collection = collection
        self.index_name = index_name
        super().__init__(f"Vector index '{index_name}' does not exist on collection '{collection}'. Run reconciliation first.")


class BulkWriteError(CosmoError):
    """
    One or more staged upserts were rejected by the backend.

    Attributes
    ----------
    failed
        The staged operations the backend reported as rejected.
    details
        Raw error details from the backend (write errors, counts).
    """

    def __init__(self, message: str, failed: list[Any], details: dict[str, Any] | None = None) -> None:
        self.failed = failed
        self.details = details or {}
        super().__init__(message)
