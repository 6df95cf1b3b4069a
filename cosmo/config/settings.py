"""
Cosmo - Centralized Configuration
==================================
Uses ``pydantic-settings`` (``BaseSettings``) to load *all* configuration
from environment variables and the project-level ``.env`` file.

Security
--------
- ``GOOGLE_API_KEY`` is typed as ``SecretStr`` and has **no default value**.
  If the key is missing at startup, Pydantic will raise a ``ValidationError``
  with a clear error message.  The raw value is never exposed in repr,
  logs, or tracebacks.
- ``MONGO_URI`` is also ``SecretStr`` — connection strings contain
  credentials and must never leak into logs.

Explicit wiring
---------------
Components never import a global settings object.  Entry points call
``get_settings()`` once and pass the instance into each constructor,
so tests can build a ``Settings`` by hand without touching the
environment.

Concurrency
-----------
``MAX_WORKERS`` bounds the number of in-flight embedding calls during
reconciliation (default 4 — the provider is I/O-bound).
"""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application-wide settings.

    Every field is loaded from environment variables (or ``.env``).
    Fields *without* a default are **required** — the app will refuse
    to start until they are provided.

    Attributes
    ----------
    GOOGLE_API_KEY : SecretStr
        API key for Google AI Studio (Gemini embeddings + chat).  **Required.**
    MONGO_URI : SecretStr
        MongoDB / Cosmos DB connection string.  **Required.**
        Contains credentials — never log raw value.
    MONGO_DB_NAME : str
        Database holding the product / customer / sales collections.
    EMBEDDING_DIMENSIONS : int
        Vector length requested from the provider and declared on the index.
    VECTOR_FIELD : str
        Record field the embedding is stored in.
    VECTOR_INDEX_NAME : str
        Name of the similarity index created over ``VECTOR_FIELD``.
    MIN_SIMILARITY_SCORE : float | None
        Optional relevance gate.  When set, retrievals whose best score is
        below it are answered with ``REFUSAL_PHRASE`` without an LLM call.
    ON_EMBED_ERROR : Literal["fail", "skip"]
        Reconciliation policy when a single record cannot be embedded.
    """

    # ── Environment Mode ───────────────────────────────────────────────
    ENV: Literal["dev", "prod"] = "dev"

    # ── API Keys (REQUIRED — no default) ───────────────────────────────
    GOOGLE_API_KEY: SecretStr

    # ── MongoDB (REQUIRED — no default) ────────────────────────────────
    MONGO_URI: SecretStr
    MONGO_DB_NAME: str = "cosmic_works"
    ID_FIELD: str = "_id"

    # ── Model Configuration ────────────────────────────────────────────
    EMBEDDING_MODEL: str = "models/gemini-embedding-001"
    EMBEDDING_DIMENSIONS: int = 1536
    LLM_MODEL: str = "gemini-2.0-flash"
    LLM_TEMPERATURE: float = 0.0
    PROVIDER_TIMEOUT_SECONDS: float = 30.0

    # ── Vector Index ───────────────────────────────────────────────────
    VECTOR_FIELD: str = "embedding"
    VECTOR_INDEX_NAME: str = "VectorSearchIndex"
    VECTOR_INDEX_KIND: str = "vector-ivf"
    VECTOR_SIMILARITY: Literal["COS", "L2", "IP"] = "COS"
    VECTOR_NUM_LISTS: int = 1

    # ── Retrieval ──────────────────────────────────────────────────────
    SEARCH_RESULTS_LIMIT: int = 3
    INCLUDE_VECTORS: bool = False
    MIN_SIMILARITY_SCORE: float | None = None

    # ── Reconciliation ─────────────────────────────────────────────────
    MAX_WORKERS: int = 4
    BULK_WRITE_BATCH_SIZE: int = 500
    PROGRESS_INTERVAL: int = 25
    ON_EMBED_ERROR: Literal["fail", "skip"] = "fail"

    # ── Persona ────────────────────────────────────────────────────────
    ASSISTANT_NAME: str = "Cosmo"
    STORE_NAME: str = "Cosmic Works"
    STORE_DOMAIN: str = "a bicycle and bicycle accessories store"
    REFUSAL_PHRASE: str = "I don't know."

    # ── Validators ─────────────────────────────────────────────────────

    @field_validator("EMBEDDING_DIMENSIONS")
    @classmethod
    def _dimensions_positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError(f"EMBEDDING_DIMENSIONS must be ≥ 1, got {v}")
        return v


    @field_validator("SEARCH_RESULTS_LIMIT", "VECTOR_NUM_LISTS", "BULK_WRITE_BATCH_SIZE", "PROGRESS_INTERVAL")
    @classmethod
    def _at_least_one(cls, v: int) -> int:
        if v < 1:
            raise ValueError(f"value must be ≥ 1, got {v}")
        return v


    @field_validator("MAX_WORKERS")
    @classmethod
    def _workers_range(cls, v: int) -> int:
        if not 1 <= v <= 32:
            raise ValueError(f"MAX_WORKERS must be 1–32, got {v}")
        return v


    @field_validator("PROVIDER_TIMEOUT_SECONDS")
    @classmethod
    def _timeout_positive(cls, v: float) -> float:
        if v <= 0:
            raise ValueError(f"PROVIDER_TIMEOUT_SECONDS must be > 0, got {v}")
        return v

    # ── Pydantic Settings Configuration ────────────────────────────────
    model_config = SettingsConfigDict(env_file=Path(__file__).resolve().parent.parent.parent / ".env", env_file_encoding="utf-8", extra="ignore")


@lru_cache
def get_settings() -> Settings:
    """Build the process-wide ``Settings`` once (entry points only)."""
    return Settings()
