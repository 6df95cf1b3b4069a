"""
Cosmo - VectorIndexReconciler
==============================
Batch maintenance pipeline that guarantees every record in a collection
carries a current embedding and that the similarity index exists:

    scan → strip old vector → serialize → embed → stage upsert
         → bulk write (chunked) → ensure index

Key design decisions:
    • **No feedback** – the previous embedding field is removed before
      the record is serialized, so a vector never ends up embedded as text.
    • **Idempotent** – every write is an id-keyed ``$set`` upsert and the
      index is only created when absent.  Re-running is always safe.
    • **Bounded concurrency** – embedding calls run through an
      ``asyncio.Semaphore`` of ``MAX_WORKERS``; staged operations keep
      scan order regardless of completion order.
    • **Explicit failure policy** – ``"fail"`` aborts before any write,
      ``"skip"`` writes everything else and reports the failed ids.
    • **Decoupled progress** – progress goes to an observer callback
      every ``PROGRESS_INTERVAL`` records; logging is just the default.

Usage:
    from cosmo.src.core.reconciler import VectorIndexReconciler
    reconciler = VectorIndexReconciler(generator, settings)
    summary = await reconciler.reconcile(products)
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any, Literal

from cosmo.src.core.embedder import EmbeddingGenerator
from cosmo.src.core.exceptions import ProviderError
from cosmo.src.database.collection_store import CollectionStore
from cosmo.src.database.models import IndexDescriptor, Record, StagedUpsert, Vector
from cosmo.src.utils.logger import get_logger
from cosmo.src.utils.text_utils import serialize_record

logger = get_logger(__name__)

# (processed, total, collection_name)
ProgressCallback = Callable[[int, int, str], None]
ErrorPolicy = Literal["fail", "skip"]


def log_progress(processed: int, total: int, collection_name: str) -> None:
    """Default progress observer."""
    logger.info("[RECONCILE] Generated %d content vectors of %d in the '%s' collection", processed, total, collection_name)


@dataclass
class ReconcileSummary:
    """Outcome of one ``reconcile`` run."""

    collection: str
    total_records: int = 0
    embedded: int = 0
    written: int = 0
    failed_ids: list[Any] = field(default_factory=list)
    index_created: bool = False
    elapsed_seconds: float = 0.0


class VectorIndexReconciler:
    """
    Backfills embeddings and ensures the vector index for a collection.

    Parameters
    ----------
    generator
        ``EmbeddingGenerator`` used for every record.
    settings
        Supplies the index descriptor, id field, ``MAX_WORKERS``,
        ``BULK_WRITE_BATCH_SIZE``, ``PROGRESS_INTERVAL`` and
        ``ON_EMBED_ERROR``.
    progress
        Observer invoked every ``PROGRESS_INTERVAL`` records and on the
        last one.  Defaults to a log line.
    on_error
        Overrides ``settings.ON_EMBED_ERROR``.
    """

    def __init__(self, generator: EmbeddingGenerator, settings: Any, progress: ProgressCallback | None = None, on_error: ErrorPolicy | None = None) -> None:
        self._generator = generator
        self._index = IndexDescriptor.from_settings(settings)
        self._id_field: str = settings.ID_FIELD
        self._max_workers: int = settings.MAX_WORKERS
        self._batch_size: int = settings.BULK_WRITE_BATCH_SIZE
        self._interval: int = settings.PROGRESS_INTERVAL
        self._on_error: ErrorPolicy = on_error or settings.ON_EMBED_ERROR
        self._progress = progress or log_progress

    # ══════════════════════════════════════════════════════════════════
    #  PUBLIC ENTRY POINT
    # ══════════════════════════════════════════════════════════════════

    async def reconcile(self, collection: CollectionStore, filter: dict[str, Any] | None = None) -> ReconcileSummary:
        """
        Embed every record matched by *filter* (all by default) and
        ensure the vector index exists.

        Raises
        ------
        ProviderError
            Under the ``"fail"`` policy, on the first record that cannot
            be embedded.  Nothing is written in that case.
        BulkWriteError
            If the backend rejects staged upserts.
        """
        t_start = time.perf_counter()
        summary = ReconcileSummary(collection=collection.name)

        records = await collection.find(filter or {})
        summary.total_records = len(records)
        logger.info("[RECONCILE] Generating content vectors for %d record(s) in '%s' (workers=%d, on_error=%s)", len(records), collection.name, self._max_workers, self._on_error)

        # ── 1. Embed + stage ───────────────────────────────────────────
        staged = await self._stage_all(records, collection.name, summary)
        summary.embedded = len(staged)

        # ── 2. Bulk write ──────────────────────────────────────────────
        if staged:
            logger.info("[RECONCILE] Persisting %d content vector(s) in '%s' using bulk upserts", len(staged), collection.name)
            for start in range(0, len(staged), self._batch_size):
                chunk = staged[start : start + self._batch_size]
                summary.written += await collection.bulk_write(chunk)
            logger.info("[RECONCILE] Finished persisting content vectors to '%s'", collection.name)

        # ── 3. Ensure index ────────────────────────────────────────────
        summary.index_created = await self._ensure_index(collection)

        summary.elapsed_seconds = round(time.perf_counter() - t_start, 2)
        logger.info("[RECONCILE] '%s' complete — %d embedded, %d failed, index_created=%s in %.2fs", collection.name, summary.embedded, len(summary.failed_ids), summary.index_created, summary.elapsed_seconds)
        return summary

    # ══════════════════════════════════════════════════════════════════
    #  EMBEDDING + STAGING
    # ══════════════════════════════════════════════════════════════════

    async def _stage_all(self, records: list[Record], collection_name: str, summary: ReconcileSummary) -> list[StagedUpsert]:
        """Embed *records* concurrently and return their upserts in scan order."""
        total = len(records)
        if total == 0:
            return []

        semaphore = asyncio.Semaphore(self._max_workers)
        processed = 0

        async def worker(record: Record) -> Vector | None:
            nonlocal processed
            async with semaphore:
                try:
                    vector = await self._generator.embed(self.text_for(record))
                except ProviderError as exc:
                    if self._on_error == "fail":
                        raise
                    logger.warning("[RECONCILE] Skipping record %r: %s", record.get(self._id_field), exc)
                    vector = None

            processed += 1
            if processed % self._interval == 0 or processed == total:
                self._progress(processed, total, collection_name)
            return vector

        tasks = [asyncio.create_task(worker(record)) for record in records]
        try:
            vectors = await asyncio.gather(*tasks)
        except BaseException:
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            logger.error("[RECONCILE] Aborted '%s' after %d of %d record(s); nothing written.", collection_name, processed, total)
            raise

        staged: list[StagedUpsert] = []
        for record, vector in zip(records, vectors):
            if vector is None:
                summary.failed_ids.append(record.get(self._id_field))
                continue
            staged.append(StagedUpsert(match=record[self._id_field], set_fields={self._index.field: vector}, upsert=True))
        return staged


    def text_for(self, record: Record) -> str:
        """Serialized record content to embed, never including the old vector."""
        return serialize_record(record, exclude=(self._index.field,))

    # ══════════════════════════════════════════════════════════════════
    #  INDEX
    # ══════════════════════════════════════════════════════════════════

    async def _ensure_index(self, collection: CollectionStore) -> bool:
        """Create the vector index when absent.  Returns True if created."""
        logger.info("[RECONCILE] Checking if vector index '%s' exists in '%s'", self._index.name, collection.name)
        if await collection.index_exists(self._index.name):
            logger.info("[RECONCILE] Vector index already exists on '%s' field in '%s'", self._index.field, collection.name)
            return False

        await collection.create_index(self._index)
        logger.info("[RECONCILE] Created vector index '%s' on '%s' field in '%s' (similarity=%s, dimensions=%d, lists=%d)", self._index.name, self._index.field, collection.name, self._index.similarity, self._index.dimensions, self._index.num_lists)
        return True
