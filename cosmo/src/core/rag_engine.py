"""
Cosmo - RAG Engine
===================
Orchestrates the Retrieval-Augmented Generation pipeline for the
closed-domain product assistant.

Flow
----
    1. Retrieve  → ``VectorSearchEngine.search`` (top-k over the collection)
    2. Gate      → empty or below ``MIN_SIMILARITY_SCORE`` → refusal phrase
    3. Assemble  → ``ContextAssembler`` (persona + product list)
    4. Messages  → [system, *history, user]
    5. Generate  → async LLM invocation, top response returned unmodified

Policy
------
The persona always instructs the model to refuse outside the retrieved
list.  The engine constrains the *input* only; it does not filter the
model's output.  The optional score gate is the one programmatic check:
when nothing relevant was retrieved the model is never called.

State
-----
``RAGOrchestrator`` holds no request-scoped state and keeps no history
between calls — safe for concurrent use.  Callers that want multi-turn
chat pass prior messages in ``history``.

Usage:
    rag = RAGOrchestrator(products, engine, assembler, llm, settings)
    answer = await rag.answer("What are the names and skus of some of the bikes you have?")
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Sequence
from typing import Any

from langchain_core.messages import AIMessage, BaseMessage, HumanMessage, SystemMessage

from cosmo.src.core.context import ContextAssembler
from cosmo.src.core.exceptions import ProviderError
from cosmo.src.core.providers import ChatModel
from cosmo.src.database.collection_store import CollectionStore
from cosmo.src.database.models import ChatMessage, SearchResult
from cosmo.src.database.vector_store import VectorSearchEngine
from cosmo.src.utils.logger import get_logger

logger = get_logger(__name__)

_ROLE_TO_MESSAGE: dict[str, type[BaseMessage]] = {
    "system": SystemMessage,
    "user": HumanMessage,
    "assistant": AIMessage,
}


class RAGOrchestrator:
    """
    End-to-end question answering over one collection.

    Parameters
    ----------
    collection
        The indexed ``CollectionStore`` to answer from.
    search_engine
        ``VectorSearchEngine`` for retrieval.
    assembler
        ``ContextAssembler`` for the grounding block.
    llm
        ``ChatModel`` (e.g. ``ChatGoogleGenerativeAI``).
    settings
        Supplies ``SEARCH_RESULTS_LIMIT``, ``MIN_SIMILARITY_SCORE``,
        ``REFUSAL_PHRASE`` and ``PROVIDER_TIMEOUT_SECONDS``.
    """

    __slots__ = ("_collection", "_search", "_assembler", "_llm", "_default_k", "_min_score", "_refusal", "_timeout")

    def __init__(self, collection: CollectionStore, search_engine: VectorSearchEngine, assembler: ContextAssembler, llm: ChatModel, settings: Any) -> None:
        self._collection = collection
        self._search = search_engine
        self._assembler = assembler
        self._llm = llm
        self._default_k: int = settings.SEARCH_RESULTS_LIMIT
        self._min_score: float | None = settings.MIN_SIMILARITY_SCORE
        self._refusal: str = settings.REFUSAL_PHRASE
        self._timeout: float = settings.PROVIDER_TIMEOUT_SECONDS


    async def answer(self, question: str, k: int | None = None, history: Sequence[ChatMessage] | None = None) -> str:
        """
        Answer *question* from the top-*k* matching records.

        Raises
        ------
        ValueError
            If *question* is blank or a history message has an unknown role.
        ProviderError
            If embedding or completion fails, or the completion is malformed.
        IndexMissingError
            If the collection has not been reconciled yet.
        """
        question = (question or "").strip()
        if not question:
            raise ValueError("question must not be empty")
        self._check_history(history)
        k = k if k is not None else self._default_k

        t_start = time.perf_counter()

        # ── 1. Retrieve ───────────────────────────────────────────────
        results = await self._search.search(self._collection, question, k)

        # ── 2. Relevance gate ─────────────────────────────────────────
        if not self._is_relevant(results):
            logger.warning("[RAG] No relevant context for question (results=%d, min_score=%s) — refusing.", len(results), self._min_score)
            return self._refusal

        # ── 3–4. Assemble prompt ──────────────────────────────────────
        context = self._assembler.assemble(results)
        messages = self.build_messages(context, question, history)

        # ── 5. Generate ───────────────────────────────────────────────
        t_llm = time.perf_counter()
        answer = await self._complete(messages)
        llm_ms = (time.perf_counter() - t_llm) * 1000

        total_ms = (time.perf_counter() - t_start) * 1000
        logger.info("[RAG] Answered from %d record(s): %d chars, llm=%.1fms, total=%.1fms", len(results), len(answer), llm_ms, total_ms)
        return answer


    @staticmethod
    def build_messages(context: str, question: str, history: Sequence[ChatMessage] | None = None) -> list[ChatMessage]:
        """Return ``[system(context), *history, user(question)]``."""
        messages: list[ChatMessage] = [{"role": "system", "content": context}]
        if history:
            messages.extend({"role": m["role"], "content": m["content"]} for m in history)
        messages.append({"role": "user", "content": question})
        return messages


    @staticmethod
    def _check_history(history: Sequence[ChatMessage] | None) -> None:
        for message in history or ():
            if message.get("role") not in _ROLE_TO_MESSAGE:
                raise ValueError(f"Unknown chat role: {message.get('role')!r}")


    def _is_relevant(self, results: list[SearchResult]) -> bool:
        if not results:
            return False
        if self._min_score is None:
            return True
        return results[0].score >= self._min_score


    async def _complete(self, messages: list[ChatMessage]) -> str:
        """Send *messages* to the chat model and return the top response text."""
        lc_messages = [self._to_langchain(m) for m in messages]
        try:
            response = await asyncio.wait_for(self._llm.ainvoke(lc_messages), timeout=self._timeout)
        except asyncio.TimeoutError as exc:
            raise ProviderError(f"Completion call exceeded {self._timeout:.1f}s deadline") from exc
        except Exception as exc:
            logger.exception("[RAG] LLM call failed.")
            raise ProviderError(f"Completion call failed: {exc}") from exc

        content = getattr(response, "content", None)
        # Gemini may return a list of content blocks instead of a plain string.
        if isinstance(content, list):
            content = "".join(block if isinstance(block, str) else str(block.get("text", "")) for block in content if isinstance(block, (str, dict)))
        if not isinstance(content, str):
            raise ProviderError(f"Completion provider returned no text content: {type(response).__name__}")
        return content


    @staticmethod
    def _to_langchain(message: ChatMessage) -> BaseMessage:
        message_cls = _ROLE_TO_MESSAGE.get(message["role"])
        if message_cls is None:
            raise ValueError(f"Unknown chat role: {message['role']!r}")
        return message_cls(content=message["content"])
