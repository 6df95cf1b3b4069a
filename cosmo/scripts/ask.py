"""
Cosmo - Ask / Search Script
============================
Ask the product assistant a question, or inspect the raw vector search
results behind an answer.

Usage:
    python -m cosmo.scripts.ask "What are the names and skus of some of the bikes you have?"
    python -m cosmo.scripts.ask "What products do you have that are yellow?" --search-only
    python -m cosmo.scripts.ask "Who bought a touring bike?" --collection customers --k 5
"""

from __future__ import annotations

import argparse
import asyncio
import sys
from pathlib import Path

_PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent
if str(_PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(_PROJECT_ROOT))

from dotenv import load_dotenv

load_dotenv(_PROJECT_ROOT / ".env")


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="ask", description="Cosmo — Retrieval-augmented answers over a product collection.")
    parser.add_argument("question", help="Natural-language question.")
    parser.add_argument("--collection", default="products", help="Collection to search (default: products).")
    parser.add_argument("--k", type=int, default=None, help="Number of records to retrieve (default: SEARCH_RESULTS_LIMIT).")
    parser.add_argument("--search-only", action="store_true", default=False, help="Print ranked matches instead of calling the LLM.")
    return parser.parse_args(argv)


def print_search_result(result: object) -> None:
    """Print one search result in a readable format."""
    record = result.record  # type: ignore[attr-defined]
    print(f"Similarity Score: {result.score}")  # type: ignore[attr-defined]
    print(f"Name: {record.get('name', 'N/A')}")
    print(f"Category: {record.get('categoryName', 'N/A')}")
    print(f"SKU: {record.get('sku', 'N/A')}")
    print(f"_id: {record.get('_id', 'N/A')}\n")


async def _run(args: argparse.Namespace) -> int:
    try:
        from cosmo.config.settings import get_settings

        settings = get_settings()
    except Exception as exc:
        print("\n[FATAL] Configuration error — check your .env file:\n")
        print(f"  {exc}")
        print()
        return 1

    from cosmo.src.core.context import ContextAssembler
    from cosmo.src.core.embedder import EmbeddingGenerator
    from cosmo.src.core.exceptions import CosmoError
    from cosmo.src.core.providers import build_chat_model, build_embedding_provider
    from cosmo.src.core.rag_engine import RAGOrchestrator
    from cosmo.src.database.collection_store import MongoCollectionStore, close_mongo_clients
    from cosmo.src.database.vector_store import VectorSearchEngine
    from cosmo.src.utils.logger import configure_logging, get_logger

    configure_logging(settings.ENV)
    logger = get_logger(__name__)
    k = args.k if args.k is not None else settings.SEARCH_RESULTS_LIMIT

    store = MongoCollectionStore.from_settings(settings, args.collection)
    engine = VectorSearchEngine(EmbeddingGenerator(build_embedding_provider(settings), settings), settings)

    try:
        if args.search_only:
            for result in await engine.search(store, args.question, k):
                print_search_result(result)
            return 0

        rag = RAGOrchestrator(store, engine, ContextAssembler(settings), build_chat_model(settings), settings)
        print(await rag.answer(args.question, k=k))
        return 0
    except (CosmoError, ValueError) as exc:
        logger.error("Request failed: %s", exc)
        return 1
    finally:
        close_mongo_clients()


def main(argv: list[str] | None = None) -> None:
    sys.exit(asyncio.run(_run(_parse_args(argv))))


if __name__ == "__main__":
    main()
