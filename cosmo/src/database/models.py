"""
Cosmo - Storage Data Model
===========================
Plain value types shared by the storage adapter, the reconciler and the
search engine.

``Record`` stays a plain ``dict`` — records are owned by the storage
backend and the pipeline only reads and writes individual fields.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

# ── Type Aliases ──────────────────────────────────────────────────────
Record = dict[str, Any]
Vector = list[float]
ChatMessage = dict[str, str]  # {"role": "system"|"user"|"assistant", "content": "..."}


@dataclass(frozen=True)
class IndexDescriptor:
    """
    Parameters of the similarity index over the embedding field.

    Created once per collection when absent, otherwise reused as-is.
    Changing any parameter requires dropping and recreating the index.
    """

    name: str
    field: str
    dimensions: int
    similarity: str = "COS"
    num_lists: int = 1
    kind: str = "vector-ivf"

    @classmethod
    def from_settings(cls, settings: Any) -> "IndexDescriptor":
        return cls(
            name=settings.VECTOR_INDEX_NAME,
            field=settings.VECTOR_FIELD,
            dimensions=settings.EMBEDDING_DIMENSIONS,
            similarity=settings.VECTOR_SIMILARITY,
            num_lists=settings.VECTOR_NUM_LISTS,
            kind=settings.VECTOR_INDEX_KIND,
        )


@dataclass(frozen=True)
class StagedUpsert:
    """One ``update <fields> where id = match`` operation awaiting a bulk write."""

    match: Any
    set_fields: dict[str, Any]
    upsert: bool = True


@dataclass
class SearchResult:
    """A single ranked match: similarity score (higher is closer) + record."""

    score: float
    record: Record = field(default_factory=dict)
