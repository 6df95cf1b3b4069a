"""Tests for VectorIndexReconciler — backfill, idempotency, failure policy, index reconciliation."""

from __future__ import annotations

import pytest
from conftest import BIKE_RECORDS, InMemoryCollectionStore, KeywordEmbeddingProvider, make_settings

from cosmo.src.core.embedder import EmbeddingGenerator
from cosmo.src.core.exceptions import BulkWriteError, ProviderError
from cosmo.src.core.reconciler import VectorIndexReconciler


def _reconciler(settings, provider=None, **kwargs) -> VectorIndexReconciler:
    generator = EmbeddingGenerator(provider or KeywordEmbeddingProvider(), settings)
    return VectorIndexReconciler(generator, settings, **kwargs)


def _many_records(n: int) -> list[dict]:
    return [{"_id": f"P-{i:03d}", "name": f"Product {i}", "category": "bike" if i % 2 else "saddle"} for i in range(n)]


class TestBackfill:
    @pytest.mark.asyncio
    async def test_every_record_gets_vector(self, settings, bike_store):
        summary = await _reconciler(settings).reconcile(bike_store)

        assert summary.total_records == 3
        assert summary.embedded == 3
        assert summary.failed_ids == []
        for record in bike_store.records.values():
            assert len(record["embedding"]) == settings.EMBEDDING_DIMENSIONS
            assert all(isinstance(v, float) for v in record["embedding"])

    @pytest.mark.asyncio
    async def test_one_staged_upsert_per_record_in_scan_order(self, settings, bike_store):
        await _reconciler(settings).reconcile(bike_store)

        assert len(bike_store.bulk_write_calls) == 1
        ops = bike_store.bulk_write_calls[0]
        assert [op.match for op in ops] == ["BK-1", "BK-2", "SE-1"]
        assert all(op.upsert for op in ops)
        assert all(set(op.set_fields) == {"embedding"} for op in ops)

    @pytest.mark.asyncio
    async def test_bulk_writes_chunked(self):
        settings = make_settings(BULK_WRITE_BATCH_SIZE=4)
        store = InMemoryCollectionStore("products", _many_records(10))
        summary = await _reconciler(settings).reconcile(store)

        assert [len(call) for call in store.bulk_write_calls] == [4, 4, 2]
        assert summary.written == 10
        assert all("embedding" in r for r in store.records.values())

    @pytest.mark.asyncio
    async def test_never_embeds_previous_vector(self, settings, bike_store):
        provider = KeywordEmbeddingProvider()
        bike_store.records["BK-1"]["embedding"] = [9.0, 9.0, 9.0, 9.0, 9.0]

        await _reconciler(settings, provider).reconcile(bike_store)

        assert len(provider.calls) == 3
        for text in provider.calls:
            assert "embedding" not in text
            assert "9.0" not in text

    def test_serialization_is_stable(self, settings):
        reconciler = _reconciler(settings)
        a = {"_id": "X", "name": "Road Bike", "price": 10.5}
        b = {"price": 10.5, "name": "Road Bike", "_id": "X", "embedding": [1.0]}
        assert reconciler.text_for(a) == reconciler.text_for(b)

    @pytest.mark.asyncio
    async def test_empty_collection(self, settings):
        store = InMemoryCollectionStore("empty")
        summary = await _reconciler(settings).reconcile(store)

        assert summary.total_records == 0
        assert store.bulk_write_calls == []
        assert summary.index_created is True

    @pytest.mark.asyncio
    async def test_filter_limits_scan(self, settings, bike_store):
        bike_store.records["BK-1"]["embedding"] = [1.0, 0.0, 1.0, 0.0, 0.0]
        provider = KeywordEmbeddingProvider()

        summary = await _reconciler(settings, provider).reconcile(bike_store, filter={"embedding": {"$exists": False}})

        assert summary.total_records == 2
        assert len(provider.calls) == 2


class TestIdempotency:
    @pytest.mark.asyncio
    async def test_rerun_yields_identical_vectors_and_single_index(self, settings, bike_store):
        reconciler = _reconciler(settings)

        first = await reconciler.reconcile(bike_store)
        vectors_after_first = {k: list(v["embedding"]) for k, v in bike_store.records.items()}
        second = await reconciler.reconcile(bike_store)

        assert first.index_created is True
        assert second.index_created is False
        assert bike_store.create_index_calls == 1
        assert {k: v["embedding"] for k, v in bike_store.records.items()} == vectors_after_first

    @pytest.mark.asyncio
    async def test_already_indexed_collection_still_writes(self, settings, bike_store):
        reconciler = _reconciler(settings)
        await reconciler.reconcile(bike_store)
        bike_store.create_index_calls = 0
        bike_store.bulk_write_calls.clear()

        summary = await reconciler.reconcile(bike_store)

        assert bike_store.create_index_calls == 0
        assert len(bike_store.bulk_write_calls) == 1
        assert summary.written == 3

    @pytest.mark.asyncio
    async def test_index_descriptor_from_settings(self, settings, bike_store):
        await _reconciler(settings).reconcile(bike_store)
        descriptor = bike_store.indexes["VectorSearchIndex"]
        assert descriptor.field == "embedding"
        assert descriptor.similarity == "COS"
        assert descriptor.dimensions == settings.EMBEDDING_DIMENSIONS
        assert descriptor.num_lists == 1
        assert descriptor.kind == "vector-ivf"


class TestFailurePolicy:
    @pytest.mark.asyncio
    async def test_fail_fast_writes_nothing(self, settings, bike_store):
        provider = KeywordEmbeddingProvider(fail_on=("Saddle",))

        with pytest.raises(ProviderError):
            await _reconciler(settings, provider).reconcile(bike_store)

        assert bike_store.bulk_write_calls == []
        assert bike_store.create_index_calls == 0
        assert all("embedding" not in r for r in bike_store.records.values())

    @pytest.mark.asyncio
    async def test_skip_writes_others_and_reports_failed_ids(self, settings, bike_store):
        provider = KeywordEmbeddingProvider(fail_on=("Saddle",))

        summary = await _reconciler(settings, provider, on_error="skip").reconcile(bike_store)

        assert summary.failed_ids == ["SE-1"]
        assert summary.embedded == 2
        assert "embedding" in bike_store.records["BK-1"]
        assert "embedding" in bike_store.records["BK-2"]
        assert "embedding" not in bike_store.records["SE-1"]
        assert summary.index_created is True

    @pytest.mark.asyncio
    async def test_skip_policy_from_settings(self, bike_store):
        settings = make_settings(ON_EMBED_ERROR="skip")
        provider = KeywordEmbeddingProvider(fail_on=("Mountain",))

        summary = await _reconciler(settings, provider).reconcile(bike_store)

        assert summary.failed_ids == ["BK-2"]

    @pytest.mark.asyncio
    async def test_resume_from_failed_ids(self, settings, bike_store):
        flaky = KeywordEmbeddingProvider(fail_on=("Saddle",))
        summary = await _reconciler(settings, flaky, on_error="skip").reconcile(bike_store)

        retry = await _reconciler(settings).reconcile(bike_store, filter={"_id": {"$in": summary.failed_ids}})

        assert retry.total_records == 1
        assert all("embedding" in r for r in bike_store.records.values())

    @pytest.mark.asyncio
    async def test_bulk_write_rejection_surfaces(self, settings, bike_store):
        bike_store.reject_ids = {"BK-2"}

        with pytest.raises(BulkWriteError) as excinfo:
            await _reconciler(settings).reconcile(bike_store)

        assert [op.match for op in excinfo.value.failed] == ["BK-2"]


class TestProgress:
    @pytest.mark.asyncio
    async def test_progress_every_interval_and_at_end(self):
        settings = make_settings(MAX_WORKERS=1)
        store = InMemoryCollectionStore("products", _many_records(60))
        events: list[tuple[int, int, str]] = []

        await _reconciler(settings, progress=lambda done, total, name: events.append((done, total, name))).reconcile(store)

        assert events == [(25, 60, "products"), (50, 60, "products"), (60, 60, "products")]

    @pytest.mark.asyncio
    async def test_concurrent_workers_cover_all_records(self):
        settings = make_settings(MAX_WORKERS=8)
        store = InMemoryCollectionStore("products", _many_records(40))
        events: list[int] = []

        summary = await _reconciler(settings, progress=lambda done, total, name: events.append(done)).reconcile(store)

        assert summary.embedded == 40
        assert events[-1] == 40
        assert [op.match for op in store.bulk_write_calls[0]] == [f"P-{i:03d}" for i in range(40)]
