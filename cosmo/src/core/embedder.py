"""
Cosmo - EmbeddingGenerator
===========================
Wraps the embedding provider: one text in, one fixed-length vector out.

  • One remote call per invocation, no local caching.
  • Every call carries a deadline (``PROVIDER_TIMEOUT_SECONDS``).
  • Failures are surfaced as ``ProviderError`` and never retried here;
    retry policy belongs to the provider client.
"""

from __future__ import annotations

import asyncio
import math
from numbers import Real
from typing import Any

from cosmo.src.core.exceptions import ProviderError
from cosmo.src.core.providers import EmbeddingProvider
from cosmo.src.database.models import Vector
from cosmo.src.utils.logger import get_logger

logger = get_logger(__name__)


class EmbeddingGenerator:
    """
    Converts arbitrary text into a ``dimensions``-long vector.

    Parameters
    ----------
    provider
        An ``EmbeddingProvider`` (e.g. ``GoogleGenerativeAIEmbeddings``).
    settings
        Supplies ``EMBEDDING_DIMENSIONS`` and ``PROVIDER_TIMEOUT_SECONDS``.
    """

    __slots__ = ("_provider", "_dimensions", "_timeout")

    def __init__(self, provider: EmbeddingProvider, settings: Any) -> None:
        self._provider = provider
        self._dimensions: int = settings.EMBEDDING_DIMENSIONS
        self._timeout: float = settings.PROVIDER_TIMEOUT_SECONDS


    @property
    def dimensions(self) -> int:
        return self._dimensions


    async def embed(self, text: str) -> Vector:
        """
        Embed *text*.

        Raises
        ------
        ValueError
            If *text* is empty or whitespace only.
        ProviderError
            If the provider call fails, exceeds the deadline, or returns
            something other than ``dimensions`` finite numbers.
        """
        if not text or not text.strip():
            raise ValueError("text to embed must be non-empty")

        try:
            raw = await asyncio.wait_for(self._provider.aembed_query(text, output_dimensionality=self._dimensions), timeout=self._timeout)
        except asyncio.TimeoutError as exc:
            raise ProviderError(f"Embedding call exceeded {self._timeout:.1f}s deadline") from exc
        except Exception as exc:
            logger.error("Embedding call failed: %s", exc)
            raise ProviderError(f"Embedding call failed: {exc}") from exc

        return self._validate(raw)


    def _validate(self, raw: object) -> Vector:
        """Check the payload is a vector of the configured length."""
        if raw is None or isinstance(raw, (str, bytes)) or not hasattr(raw, "__len__"):
            raise ProviderError("Embedding provider returned no vector")
        if len(raw) != self._dimensions:  # type: ignore[arg-type]
            raise ProviderError(f"Embedding provider returned {len(raw)} values, expected {self._dimensions}")  # type: ignore[arg-type]

        vector: Vector = []
        for value in raw:  # type: ignore[union-attr]
            if isinstance(value, bool) or not isinstance(value, Real) or not math.isfinite(value):
                raise ProviderError(f"Embedding provider returned a non-numeric value: {value!r}")
            vector.append(float(value))
        return vector
