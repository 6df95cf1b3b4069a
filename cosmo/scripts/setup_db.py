"""
Cosmo - Vector Index Setup Script
==================================
CLI entry point that orchestrates:
    1. Load settings (fail-fast on missing ``GOOGLE_API_KEY`` / ``MONGO_URI``).
    2. Initialise the embedding model and the MongoDB collection(s).
    3. Run ``VectorIndexReconciler`` on every requested collection.
    4. Print a structured execution summary with timing breakdown.

Flags:
    --collection NAME  Collection to reconcile (repeatable, default: products).
    --workers N        Concurrent embedding calls (overrides MAX_WORKERS).
    --skip-failed      Skip records that cannot be embedded instead of aborting.
    --only-missing     Only embed records without a vector (resume a partial run).

Usage:
    python -m cosmo.scripts.setup_db
    python -m cosmo.scripts.setup_db --collection products --collection customers
    python -m cosmo.scripts.setup_db --only-missing --skip-failed
"""

from __future__ import annotations

import argparse
import asyncio
import sys
import time
from pathlib import Path

# ── Ensure project root is importable when run directly ────────────────
_PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent
if str(_PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(_PROJECT_ROOT))

from dotenv import load_dotenv

load_dotenv(_PROJECT_ROOT / ".env")


# ── CLI Argument Parsing ───────────────────────────────────────────────

def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="setup_db", description="Cosmo — Generate content vectors and ensure the vector index for one or more collections.")
    parser.add_argument("--collection", action="append", dest="collections", metavar="NAME", help="Collection to reconcile (repeatable, default: products).")
    parser.add_argument("--workers", type=int, default=None, help="Concurrent embedding calls (overrides MAX_WORKERS).")
    parser.add_argument("--skip-failed", action="store_true", default=False, help="Skip records whose embedding fails instead of aborting the run.")
    parser.add_argument("--only-missing", action="store_true", default=False, help="Only embed records that have no vector yet.")
    args = parser.parse_args(argv)
    args.collections = args.collections or ["products"]
    return args


# ── Main Orchestration ─────────────────────────────────────────────────

async def _run(args: argparse.Namespace) -> int:
    t_start = time.perf_counter()

    # ── 0. Load settings + .env ────────────────────────────────────────
    try:
        from cosmo.config.settings import get_settings

        settings = get_settings()
        if args.workers is not None:
            settings = type(settings).model_validate({**settings.model_dump(), "MAX_WORKERS": args.workers})
    except Exception as exc:
        print("\n[FATAL] Configuration error — check your .env file:\n")
        print(f"  {exc}")
        print()
        return 1

    from cosmo.src.core.embedder import EmbeddingGenerator
    from cosmo.src.core.exceptions import CosmoError
    from cosmo.src.core.providers import build_embedding_provider
    from cosmo.src.core.reconciler import ReconcileSummary, VectorIndexReconciler
    from cosmo.src.database.collection_store import MongoCollectionStore, close_mongo_clients
    from cosmo.src.utils.logger import configure_logging, get_logger

    configure_logging(settings.ENV)
    logger = get_logger(__name__)
    _print_header(settings, args)

    # ── 1. Initialise embedder (timed) ─────────────────────────────────
    t_embedder = time.perf_counter()
    try:
        generator = EmbeddingGenerator(build_embedding_provider(settings), settings)
    except Exception:
        logger.exception("Failed to initialise embedding model.")
        return 1
    embedder_ms = (time.perf_counter() - t_embedder) * 1000

    reconciler = VectorIndexReconciler(generator, settings, on_error="skip" if args.skip_failed else None)
    filter_ = {settings.VECTOR_FIELD: {"$exists": False}} if args.only_missing else None

    # ── 2. Reconcile each collection ───────────────────────────────────
    summaries: list[ReconcileSummary] = []
    exit_code = 0
    try:
        for name in args.collections:
            store = MongoCollectionStore.from_settings(settings, name)
            try:
                summaries.append(await reconciler.reconcile(store, filter=filter_))
            except CosmoError as exc:
                logger.error("Reconciliation of '%s' failed: %s", name, exc)
                exit_code = 1
                break
    finally:
        close_mongo_clients()

    # ── 3. Print execution summary ─────────────────────────────────────
    _print_footer(summaries, embedder_ms, time.perf_counter() - t_start)
    if any(s.failed_ids for s in summaries):
        exit_code = exit_code or 2
    return exit_code


def main(argv: list[str] | None = None) -> None:
    sys.exit(asyncio.run(_run(_parse_args(argv))))


# ── Pretty-print helpers ──────────────────────────────────────────────

def _print_header(settings: object, args: argparse.Namespace) -> None:
    mongo_uri_val = settings.MONGO_URI.get_secret_value()  # type: ignore[attr-defined]
    mongo_masked = mongo_uri_val.split("@")[-1] if "@" in mongo_uri_val else mongo_uri_val

    print()
    print("=" * 60)
    print("  COSMO — Vector Index Setup")
    print("=" * 60)
    print(f"  Environment  : {settings.ENV}")                   # type: ignore[attr-defined]
    print(f"  Embedding    : {settings.EMBEDDING_MODEL} ({settings.EMBEDDING_DIMENSIONS} dims)")  # type: ignore[attr-defined]
    print(f"  MongoDB      : {mongo_masked} (db: {settings.MONGO_DB_NAME})")  # type: ignore[attr-defined]
    print(f"  Collections  : {', '.join(args.collections)}")
    print(f"  Vector field : {settings.VECTOR_FIELD} → index '{settings.VECTOR_INDEX_NAME}'")  # type: ignore[attr-defined]
    print(f"  Workers      : {settings.MAX_WORKERS}")           # type: ignore[attr-defined]
    print(f"  Only missing : {args.only_missing}")
    print(f"  Skip failed  : {args.skip_failed}")
    print("=" * 60)
    print()


def _print_footer(summaries: list, embedder_ms: float, elapsed: float) -> None:
    print()
    print("=" * 60)
    print("  EXECUTION SUMMARY")
    print("-" * 60)
    for s in summaries:
        print(f"  [{s.collection}]")
        print(f"    Records scanned    : {s.total_records}")
        print(f"    Vectors written    : {s.embedded}")
        print(f"    Failed records     : {len(s.failed_ids)}")
        print(f"    Index created      : {s.index_created}")
        print(f"    Elapsed            : {s.elapsed_seconds:>8.2f}s")
    print("-" * 60)
    print(f"  Embedder init        : {embedder_ms:>8.1f}ms")
    print(f"  Total elapsed        : {elapsed:>8.2f}s")
    print("=" * 60)
    print()


# ── Entry point ────────────────────────────────────────────────────────

if __name__ == "__main__":
    main()
