"""
Shared test doubles and fixtures.

The doubles satisfy the pipeline's capability protocols without any
network access:

    KeywordEmbeddingProvider  — deterministic bag-of-keywords vectors
    InMemoryCollectionStore   — cosine top-k over stored records
    GroundedChatModel         — answers with the SKUs found in its system prompt
"""

from __future__ import annotations

import copy
import math
import re
from typing import Any

import pytest
from langchain_core.messages import AIMessage

from cosmo.config.settings import Settings
from cosmo.src.core.exceptions import BulkWriteError
from cosmo.src.database.models import IndexDescriptor, Record, SearchResult, StagedUpsert

VOCABULARY = ("bike", "saddle", "road", "mountain", "weather")

BIKE_RECORDS: list[Record] = [
    {"_id": "BK-1", "sku": "BK-1", "name": "Road Bike"},
    {"_id": "BK-2", "sku": "BK-2", "name": "Mountain Bike"},
    {"_id": "SE-1", "sku": "SE-1", "name": "Saddle"},
]

_SKU_RE = re.compile(r'"sku":"([^"]+)"')


# ── Providers ────────────────────────────────────────────────────────────────


class KeywordEmbeddingProvider:
    """One dimension per vocabulary word: how often it occurs in the text."""

    def __init__(self, vocabulary: tuple[str, ...] = VOCABULARY, fail_on: tuple[str, ...] = ()) -> None:
        self.vocabulary = vocabulary
        self.fail_on = fail_on
        self.calls: list[str] = []

    async def aembed_query(self, text: str, **kwargs: Any) -> list[float]:
        self.calls.append(text)
        if any(marker in text for marker in self.fail_on):
            raise RuntimeError("provider unavailable")
        lowered = text.lower()
        return [float(lowered.count(word)) for word in self.vocabulary]


class StaticEmbeddingProvider:
    """Returns a fixed payload, for malformed-response tests."""

    def __init__(self, payload: Any) -> None:
        self.payload = payload

    async def aembed_query(self, text: str, **kwargs: Any) -> Any:
        return self.payload


class GroundedChatModel:
    """Lists the SKUs present in the system prompt, or refuses when there are none."""

    def __init__(self, refusal: str = "I don't know.") -> None:
        self.refusal = refusal
        self.calls: list[list[Any]] = []

    async def ainvoke(self, input: Any, **kwargs: Any) -> AIMessage:
        self.calls.append(list(input))
        skus = _SKU_RE.findall(input[0].content)
        if not skus:
            return AIMessage(content=self.refusal)
        return AIMessage(content="Here are some bikes: " + ", ".join(skus))


class FailingChatModel:
    def __init__(self) -> None:
        self.calls = 0

    async def ainvoke(self, input: Any, **kwargs: Any) -> AIMessage:
        self.calls += 1
        raise RuntimeError("quota exceeded")


# ── Store ────────────────────────────────────────────────────────────────────


def _cosine(a: list[float], b: list[float]) -> float:
    norm_a = math.sqrt(sum(x * x for x in a))
    norm_b = math.sqrt(sum(x * x for x in b))
    if norm_a == 0 or norm_b == 0:
        return 0.0
    return sum(x * y for x, y in zip(a, b)) / (norm_a * norm_b)


def _matches(record: Record, filter: dict[str, Any]) -> bool:
    for key, cond in filter.items():
        if isinstance(cond, dict) and "$exists" in cond:
            if (key in record) != cond["$exists"]:
                return False
        elif isinstance(cond, dict) and "$in" in cond:
            if record.get(key) not in cond["$in"]:
                return False
        elif record.get(key) != cond:
            return False
    return True


class InMemoryCollectionStore:
    """``CollectionStore`` over a dict, with call counters for assertions."""

    def __init__(self, name: str = "products", records: list[Record] | None = None, id_field: str = "_id") -> None:
        self._name = name
        self._id_field = id_field
        self.records: dict[Any, Record] = {r[id_field]: copy.deepcopy(r) for r in records or []}
        self.indexes: dict[str, IndexDescriptor] = {}
        self.create_index_calls = 0
        self.bulk_write_calls: list[list[StagedUpsert]] = []
        self.reject_ids: set[Any] = set()

    @property
    def name(self) -> str:
        return self._name

    async def find(self, filter: dict[str, Any] | None = None) -> list[Record]:
        return [copy.deepcopy(r) for r in self.records.values() if _matches(r, filter or {})]

    async def bulk_write(self, operations: list[StagedUpsert]) -> int:
        self.bulk_write_calls.append(list(operations))
        failed = [op for op in operations if op.match in self.reject_ids]
        for op in operations:
            if op in failed:
                continue
            if op.match not in self.records:
                if not op.upsert:
                    continue
                self.records[op.match] = {self._id_field: op.match}
            self.records[op.match].update(copy.deepcopy(op.set_fields))
        if failed:
            raise BulkWriteError(f"{len(failed)} upsert(s) rejected", failed=failed)
        return len(operations)

    async def index_exists(self, name: str) -> bool:
        return name in self.indexes

    async def create_index(self, descriptor: IndexDescriptor) -> None:
        self.create_index_calls += 1
        if descriptor.name in self.indexes:
            raise RuntimeError(f"index {descriptor.name} already exists")
        self.indexes[descriptor.name] = descriptor

    async def vector_search(self, vector: list[float], field: str, k: int) -> list[SearchResult]:
        scored = [SearchResult(score=_cosine(vector, r[field]), record=copy.deepcopy(r)) for r in self.records.values() if field in r]
        scored.sort(key=lambda r: r.score, reverse=True)
        return scored[:k]


# ── Fixtures ─────────────────────────────────────────────────────────────────


def make_settings(**overrides: Any) -> Settings:
    values: dict[str, Any] = {
        "GOOGLE_API_KEY": "test-key",
        "MONGO_URI": "mongodb://localhost:27017",
        "EMBEDDING_DIMENSIONS": len(VOCABULARY),
        "PROVIDER_TIMEOUT_SECONDS": 2.0,
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


@pytest.fixture
def settings() -> Settings:
    return make_settings()


@pytest.fixture
def provider() -> KeywordEmbeddingProvider:
    return KeywordEmbeddingProvider()


@pytest.fixture
def bike_store() -> InMemoryCollectionStore:
    return InMemoryCollectionStore("products", BIKE_RECORDS)
