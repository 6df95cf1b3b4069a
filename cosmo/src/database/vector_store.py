"""
Cosmo - VectorSearchEngine
===========================
Top-k similarity retrieval over an indexed collection:

    query text → EmbeddingGenerator → index check → ANN top-k → ranked results

Design decisions:
  • **Dependency Injection** — the embedding generator and the collection
    are injected, never hard-coded, so the engine is testable with an
    in-memory store and a deterministic embedder.
  • **Index check before query** — a collection without the similarity
    index raises ``IndexMissingError`` instead of returning an empty or
    backend-specific failure.
  • **Vectors stripped by default** — returned records drop the embedding
    field unless ``INCLUDE_VECTORS`` is set.

Usage:
    engine = VectorSearchEngine(generator, settings)
    results = await engine.search(products, "yellow bikes", k=3)
"""

from __future__ import annotations

import time
from typing import Any

from cosmo.src.core.embedder import EmbeddingGenerator
from cosmo.src.core.exceptions import IndexMissingError
from cosmo.src.database.collection_store import CollectionStore
from cosmo.src.database.models import IndexDescriptor, SearchResult
from cosmo.src.utils.logger import get_logger
from cosmo.src.utils.text_utils import strip_fields

logger = get_logger(__name__)


class VectorSearchEngine:
    """
    Executes approximate top-k queries against a collection's vector index.

    Parameters
    ----------
    generator
        ``EmbeddingGenerator`` used to embed the query text.
    settings
        Supplies the index descriptor and ``INCLUDE_VECTORS``.
    """

    __slots__ = ("_generator", "_index", "_include_vectors")

    def __init__(self, generator: EmbeddingGenerator, settings: Any) -> None:
        self._generator = generator
        self._index = IndexDescriptor.from_settings(settings)
        self._include_vectors: bool = settings.INCLUDE_VECTORS


    async def search(self, collection: CollectionStore, query_text: str, k: int) -> list[SearchResult]:
        """
        Return at most *k* matches for *query_text*, best first.

        Raises
        ------
        ValueError
            If ``k < 1``.
        ProviderError
            If the query cannot be embedded.
        IndexMissingError
            If the collection has no index named by the descriptor.
        """
        if k < 1:
            raise ValueError(f"k must be ≥ 1, got {k}")

        t_start = time.perf_counter()
        query_vector = await self._generator.embed(query_text)

        if not await collection.index_exists(self._index.name):
            raise IndexMissingError(collection.name, self._index.name)

        results = await collection.vector_search(query_vector, self._index.field, k)

        # Best first; ties keep backend order.
        results = sorted(results, key=lambda r: r.score, reverse=True)[:k]

        if not self._include_vectors:
            results = [SearchResult(score=r.score, record=strip_fields(r.record, (self._index.field,))) for r in results]

        search_ms = (time.perf_counter() - t_start) * 1000
        logger.info("[SEARCH] '%s' k=%d → %d result(s) in %.1fms", collection.name, k, len(results), search_ms)
        return results
