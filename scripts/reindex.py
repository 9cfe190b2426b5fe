#!/usr/bin/env python
"""Rebuild the documentation vector index.

Usage:
    python scripts/reindex.py                    # Clear the index and rebuild
    python scripts/reindex.py --no-clear         # Upsert on top of existing records
    python scripts/reindex.py --docs-dir ./docs  # Index another directory
    python scripts/reindex.py --workers 4        # Process files concurrently
"""
import argparse
import asyncio
import sys
from pathlib import Path
from datetime import datetime

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from fabric_docs import config
from fabric_docs.errors import ConfigurationError, TransientProviderError
from fabric_docs.llm_client import OllamaEmbedder
from fabric_docs.logging_config import configure_logging
from fabric_docs.rag.ingest import IndexStats, IngestPipeline
from fabric_docs.rag.store_faiss import FAISSVectorStore
import structlog

logger = structlog.get_logger()


class ProgressReporter:
    """Simple progress reporter for CLI."""

    def __init__(self, verbose: bool = False):
        self.verbose = verbose
        self.start_time = None

    def start(self, message: str):
        """Start progress reporting."""
        self.start_time = datetime.now()
        print(f"\n{'=' * 60}")
        print(f"  {message}")
        print(f"{'=' * 60}\n")

    def update(self, current: int, total: int, file_path: Path):
        """Update progress."""
        percentage = (current / total) * 100 if total > 0 else 0
        bar_length = 40
        filled = int(bar_length * current / total) if total > 0 else 0
        bar = "#" * filled + "-" * (bar_length - filled)

        print(
            f"\r  [{bar}] {percentage:5.1f}% ({current}/{total}) {file_path.name[:30]:<30}",
            end="",
            flush=True,
        )

        if self.verbose:
            print()

    def finish(self, stats: IndexStats):
        """Print the run summary."""
        print("\n")
        elapsed_seconds = (datetime.now() - self.start_time).total_seconds()

        print(f"{'=' * 60}")
        print("  Indexing Complete")
        print(f"{'=' * 60}\n")
        print(f"  Files scanned:        {stats.files_scanned}")
        print(f"  Files indexed:        {stats.files_processed}")
        print(f"  Files skipped:        {stats.files_skipped}")
        print(f"  Files failed:         {stats.files_failed}")
        print(f"  Records deleted:      {stats.records_deleted}")
        print(f"  Chunks created:       {stats.chunks_created}")
        print(f"  Chunks upserted:      {stats.chunks_upserted}")
        print(f"  Time elapsed:         {elapsed_seconds:.1f}s")
        print(f"\n{'=' * 60}\n")

        if stats.failures:
            print(f"Warning: {len(stats.failures)} failure(s):")
            for failure in stats.failures:
                print(f"   {failure['path']}: {failure['error']}")
            print()


async def main():
    """Main entry point for reindex script."""
    parser = argparse.ArgumentParser(
        description="Rebuild the documentation vector index",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    parser.add_argument(
        "--docs-dir",
        type=Path,
        default=None,
        help=f"Docs directory (default: {config.DOCS_PATH})",
    )

    parser.add_argument(
        "--no-clear",
        action="store_true",
        help="Keep existing records instead of clearing the index first",
    )

    parser.add_argument(
        "--workers",
        type=int,
        default=None,
        help=f"Files processed concurrently (default: {config.INDEX_WORKERS})",
    )

    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Show verbose progress output",
    )

    args = parser.parse_args()

    configure_logging("DEBUG" if args.verbose else config.LOG_LEVEL)
    progress = ProgressReporter(verbose=args.verbose)
    docs_dir = args.docs_dir.resolve() if args.docs_dir else config.DOCS_PATH

    try:
        config.validate_config(for_indexing=True, docs_path=docs_dir)

        print("\nConfiguration:")
        print(f"   Docs directory:   {docs_dir}")
        print(f"   Index directory:  {config.DATA_DIR}")
        print(f"   Embedding model:  {config.EMBEDDING_MODEL}")
        print(f"   Upsert batch:     {config.UPSERT_BATCH_SIZE}")

        progress.start("Indexing Documentation")

        pipeline = IngestPipeline(
            embedder=OllamaEmbedder(),
            vector_store=FAISSVectorStore(),
            docs_dir=docs_dir,
            max_concurrent_files=args.workers,
        )

        stats = await pipeline.ingest_all(
            clear_existing=not args.no_clear,
            progress_callback=progress.update,
        )

        progress.finish(stats)

        if stats.files_failed > 0:
            sys.exit(1)

    except KeyboardInterrupt:
        print("\n\nIndexing cancelled by user.\n")
        sys.exit(1)

    except ConfigurationError as e:
        print(f"\nConfiguration error: {e}\n")
        sys.exit(2)

    except (FileNotFoundError, TransientProviderError) as e:
        print(f"\nError: {e}\n")
        logger.error("reindex_script_failed", error=str(e), error_type=type(e).__name__)
        sys.exit(1)


if __name__ == "__main__":
    asyncio.run(main())
