"""
Cosmo - Collection Store
=========================
Async storage adapter over a MongoDB-API collection (Azure Cosmos DB for
MongoDB vCore) via ``motor``.  It exposes only the contract the pipeline
needs:

  • ``find``           — full or filtered scan
  • ``bulk_write``     — unordered batch of id-keyed upserts
  • ``index_exists``   — look up an index by name
  • ``create_index``   — create the ``cosmosSearch`` vector index
  • ``vector_search``  — approximate top-k query over the vector field

Design decisions:
  • **Singleton client** — ``_get_mongo_client()`` caches one
    ``AsyncIOMotorClient`` per URI for the life of the process.
  • **Structural typing** — the pipeline depends on the
    ``CollectionStore`` protocol, so tests inject an in-memory store.

Usage:
    from cosmo.src.database.collection_store import MongoCollectionStore
    products = MongoCollectionStore.from_settings(settings, "products")
    docs = await products.find({})
"""

from __future__ import annotations

from typing import Any, Protocol, runtime_checkable

import motor.motor_asyncio
from pymongo import UpdateOne
from pymongo.errors import BulkWriteError as MongoBulkWriteError

from cosmo.src.core.exceptions import BulkWriteError
from cosmo.src.database.models import IndexDescriptor, Record, SearchResult, StagedUpsert, Vector
from cosmo.src.utils.logger import get_logger

logger = get_logger(__name__)


# ── Store Protocol ────────────────────────────────────────────────────

@runtime_checkable
class CollectionStore(Protocol):
    """Structural type for any collection the pipeline can index and search."""

    @property
    def name(self) -> str: ...

    async def find(self, filter: dict[str, Any] | None = None) -> list[Record]: ...

    async def bulk_write(self, operations: list[StagedUpsert]) -> int: ...

    async def index_exists(self, name: str) -> bool: ...

    async def create_index(self, descriptor: IndexDescriptor) -> None: ...

    async def vector_search(self, vector: Vector, field: str, k: int) -> list[SearchResult]: ...


# ── MongoDB Singleton Client ──────────────────────────────────────────

_mongo_clients: dict[str, motor.motor_asyncio.AsyncIOMotorClient] = {}


def _get_mongo_client(uri: str) -> motor.motor_asyncio.AsyncIOMotorClient:
    """Return (or create) the process-wide async client for *uri*."""
    if uri not in _mongo_clients:
        _mongo_clients[uri] = motor.motor_asyncio.AsyncIOMotorClient(uri)
        logger.info("MongoDB async client created (singleton).")
    return _mongo_clients[uri]


def close_mongo_clients() -> None:
    """Close every cached client (entry points call this on shutdown)."""
    for client in _mongo_clients.values():
        client.close()
    _mongo_clients.clear()
    logger.info("Disconnected from MongoDB.")


# ── Motor-backed store ────────────────────────────────────────────────

class MongoCollectionStore:
    """
    ``CollectionStore`` implementation for one named collection.

    Parameters
    ----------
    database
        A motor database handle.
    name
        Collection name inside *database*.
    id_field
        Identifier field used to key upserts (``_id`` by default).
    """

    __slots__ = ("_db", "_collection", "_id_field")

    def __init__(self, database: motor.motor_asyncio.AsyncIOMotorDatabase, name: str, id_field: str = "_id") -> None:
        self._db = database
        self._collection = database[name]
        self._id_field = id_field


    @classmethod
    def from_settings(cls, settings: Any, name: str) -> "MongoCollectionStore":
        client = _get_mongo_client(settings.MONGO_URI.get_secret_value())
        return cls(client[settings.MONGO_DB_NAME], name, id_field=settings.ID_FIELD)


    @property
    def name(self) -> str:
        return self._collection.name


    async def find(self, filter: dict[str, Any] | None = None) -> list[Record]:
        """Return every record matching *filter* (all records by default)."""
        cursor = self._collection.find(filter or {})
        return await cursor.to_list(length=None)


    async def bulk_write(self, operations: list[StagedUpsert]) -> int:
        """
        Submit *operations* as one unordered bulk write.

        Returns
        -------
        int
            Matched + upserted document count.

        Raises
        ------
        BulkWriteError
            Carrying the staged operations the server rejected.
        """
        if not operations:
            return 0

        requests = [UpdateOne({self._id_field: op.match}, {"$set": op.set_fields}, upsert=op.upsert) for op in operations]
        try:
            result = await self._collection.bulk_write(requests, ordered=False)
        except MongoBulkWriteError as exc:
            write_errors = exc.details.get("writeErrors", [])
            failed = [operations[err["index"]] for err in write_errors if "index" in err]
            logger.error("Bulk write on '%s' rejected %d of %d operation(s).", self.name, len(failed), len(operations))
            raise BulkWriteError(f"{len(failed)} of {len(operations)} upsert(s) rejected on collection '{self.name}'", failed=failed, details=dict(exc.details)) from exc

        return result.matched_count + result.upserted_count


    async def index_exists(self, name: str) -> bool:
        indexes = await self._collection.index_information()
        return name in indexes


    async def create_index(self, descriptor: IndexDescriptor) -> None:
        """Create the ``cosmosSearch`` vector index described by *descriptor*."""
        await self._db.command({
            "createIndexes": self.name,
            "indexes": [
                {
                    "name": descriptor.name,
                    "key": {descriptor.field: "cosmosSearch"},
                    "cosmosSearchOptions": {
                        "kind": descriptor.kind,
                        "numLists": descriptor.num_lists,
                        "similarity": descriptor.similarity,
                        "dimensions": descriptor.dimensions,
                    },
                }
            ],
        })


    async def vector_search(self, vector: Vector, field: str, k: int) -> list[SearchResult]:
        """Run the top-k ``cosmosSearch`` aggregation and return ranked matches."""
        pipeline = [
            {
                "$search": {
                    "cosmosSearch": {"vector": vector, "path": field, "k": k},
                    "returnStoredSource": True,
                }
            },
            {"$project": {"similarityScore": {"$meta": "searchScore"}, "document": "$$ROOT"}},
        ]
        rows = await self._collection.aggregate(pipeline).to_list(length=k)
        return [SearchResult(score=float(row.get("similarityScore", 0.0)), record=row["document"]) for row in rows]


    def __repr__(self) -> str:
        return f"MongoCollectionStore(db='{self._db.name}', collection='{self.name}')"
