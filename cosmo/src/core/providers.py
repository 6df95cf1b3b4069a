"""
Cosmo - Provider Capabilities
==============================
Structural types for the two remote capabilities the pipeline consumes,
plus factories that build the Gemini-backed implementations through
LangChain.

Any LangChain-compatible embeddings / chat model satisfies these
protocols, which keeps the core testable with in-memory doubles.
"""

from __future__ import annotations

from typing import Any, Protocol, runtime_checkable

from cosmo.src.utils.logger import get_logger

logger = get_logger(__name__)


@runtime_checkable
class EmbeddingProvider(Protocol):
    """Anything that can turn one text into an embedding vector asynchronously."""

    async def aembed_query(self, text: str, **kwargs: Any) -> list[float]: ...


@runtime_checkable
class ChatModel(Protocol):
    """Anything that answers a list of LangChain messages asynchronously."""

    async def ainvoke(self, input: Any, **kwargs: Any) -> Any: ...


def build_embedding_provider(settings: Any) -> EmbeddingProvider:
    """Initialise the Gemini embedding model via LangChain."""
    from langchain_google_genai import GoogleGenerativeAIEmbeddings

    embedder = GoogleGenerativeAIEmbeddings(model=settings.EMBEDDING_MODEL, google_api_key=settings.GOOGLE_API_KEY.get_secret_value())
    logger.info("Embedder initialised: %s (dimensions=%d)", settings.EMBEDDING_MODEL, settings.EMBEDDING_DIMENSIONS)
    return embedder


def build_chat_model(settings: Any) -> ChatModel:
    """Initialise the Gemini LLM via LangChain."""
    from langchain_google_genai import ChatGoogleGenerativeAI

    llm = ChatGoogleGenerativeAI(model=settings.LLM_MODEL, temperature=settings.LLM_TEMPERATURE, google_api_key=settings.GOOGLE_API_KEY.get_secret_value())
    logger.info("LLM initialised: %s (temperature=%.1f)", settings.LLM_MODEL, settings.LLM_TEMPERATURE)
    return llm
