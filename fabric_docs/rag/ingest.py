"""Ingest pipeline for indexing markdown documentation.

Orchestrates:
- File discovery
- Clearing chunks left over from the previous run
- Frontmatter parsing and section chunking
- Embedding generation
- Batched vector upserts
"""
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional
from dataclasses import asdict, dataclass, field
import asyncio
import sqlite3
import structlog

from fabric_docs import config, db
from fabric_docs.errors import NoSectionsError, SkippableDocumentError, TransientProviderError
from fabric_docs.llm_client import OllamaEmbedder
from fabric_docs.rag.chunker import SectionChunker
from fabric_docs.rag.md_parser import MarkdownParser
from fabric_docs.rag.records import ChunkRecord, build_chunk_record
from fabric_docs.rag.store_faiss import FAISSVectorStore

logger = structlog.get_logger()

ProgressCallback = Callable[[int, int, Path], None]


@dataclass
class IndexStats:
    """Counters reported at the end of an indexing run."""

    files_scanned: int = 0
    files_processed: int = 0
    files_skipped: int = 0
    files_failed: int = 0
    chunks_created: int = 0
    chunks_upserted: int = 0
    embeddings_generated: int = 0
    records_deleted: int = 0
    failures: List[Dict[str, str]] = field(default_factory=list)

    def record_failure(self, path: Path, error: Exception) -> None:
        self.files_failed += 1
        self.failures.append({"path": str(path), "error": str(error)})

    def as_dict(self) -> Dict[str, Any]:
        return asdict(self)


class IngestPipeline:
    """Pipeline for indexing a directory of markdown docs into the vector store."""

    def __init__(
        self,
        embedder: OllamaEmbedder,
        vector_store: FAISSVectorStore,
        docs_dir: Path = None,
        batch_size: int = None,
        max_concurrent_files: int = None,
        parser: Optional[MarkdownParser] = None,
        chunker: Optional[SectionChunker] = None,
    ):
        """Initialize the ingest pipeline.

        Args:
            embedder: Embedding client
            vector_store: Destination vector store
            docs_dir: Directory containing markdown docs (default from config)
            batch_size: Records per upsert request (default from config)
            max_concurrent_files: Files processed at once (default from config)
            parser: Frontmatter parser
            chunker: Section chunker
        """
        self.embedder = embedder
        self.vector_store = vector_store
        self.docs_dir = Path(docs_dir or config.DOCS_PATH)
        self.batch_size = batch_size or config.UPSERT_BATCH_SIZE
        self.max_concurrent_files = max_concurrent_files or config.INDEX_WORKERS

        self.parser = parser or MarkdownParser()
        self.chunker = chunker or SectionChunker()

        self.stats = IndexStats()

        logger.info(
            "ingest_pipeline_initialized",
            docs_dir=str(self.docs_dir),
            batch_size=self.batch_size,
            max_concurrent_files=self.max_concurrent_files,
        )

    def discover_markdown_files(self) -> List[Path]:
        """Discover all markdown files in the docs directory.

        Returns:
            Sorted list of markdown file paths

        Raises:
            FileNotFoundError: If docs directory doesn't exist
        """
        if not self.docs_dir.exists():
            raise FileNotFoundError(f"Docs directory not found: {self.docs_dir}")

        md_files = sorted(p for p in self.docs_dir.rglob("*.md") if p.is_file())

        logger.info(
            "markdown_files_discovered",
            count=len(md_files),
            docs_dir=str(self.docs_dir),
        )

        return md_files

    def _relative_path(self, file_path: Path) -> str:
        try:
            return file_path.relative_to(self.docs_dir).as_posix()
        except ValueError:
            return file_path.as_posix()

    async def clear_index(self) -> int:
        """Delete every record from the previous run.

        Returns:
            Number of records deleted
        """
        existing = await self.vector_store.count()
        if existing == 0:
            logger.info("index_already_empty")
            return 0

        ids = await self.vector_store.list_ids(existing)
        if not ids:
            logger.warning("index_count_nonzero_but_no_ids", count=existing)
            return 0

        deleted = await self.vector_store.delete(ids)
        logger.info("index_cleared", deleted=deleted)
        return deleted

    async def build_file_chunks(self, file_path: Path) -> List[ChunkRecord]:
        """Run parse -> split -> enrich -> embed -> build for one file.

        Embeddings are requested in section order.

        Args:
            file_path: Path to markdown file

        Returns:
            Chunk records for the file

        Raises:
            SkippableDocumentError: Frontmatter unusable or no sections
            TransientProviderError: Embedding failed
            OSError: File could not be read
        """
        doc = self.parser.parse_file(file_path)
        sections = self.chunker.chunk_document(doc.body)

        if not sections:
            raise NoSectionsError(str(file_path))

        relative_path = self._relative_path(file_path)
        records = []
        for section in sections:
            if not (section.embed_text or "").strip():
                continue
            vector = await self.embedder.embed(section.embed_text)
            self.stats.embeddings_generated += 1

            record = build_chunk_record(doc.frontmatter, section, relative_path, vector)
            if record is not None:
                records.append(record)

        return records

    async def process_file(self, file_path: Path) -> List[ChunkRecord]:
        """Index one file, isolating any failure to that file.

        Args:
            file_path: Path to markdown file

        Returns:
            Chunk records, or an empty list if the file was skipped or failed
        """
        logger.info("ingesting_file", path=str(file_path))

        try:
            records = await self.build_file_chunks(file_path)

        except SkippableDocumentError as e:
            logger.warning(
                "file_skipped",
                path=str(file_path),
                reason=e.reason,
                missing_fields=e.context.get("missing_fields"),
            )
            self.stats.files_skipped += 1
            return []

        except Exception as e:
            # Read, decode and embedding errors only cost this file
            logger.error(
                "file_ingestion_failed",
                path=str(file_path),
                error=str(e),
                error_type=type(e).__name__,
            )
            self.stats.record_failure(file_path, e)
            return []

        self.stats.files_processed += 1
        self.stats.chunks_created += len(records)

        logger.info(
            "file_ingested",
            path=str(file_path),
            chunks_created=len(records),
        )

        return records

    async def upsert_in_batches(self, records: List[ChunkRecord]) -> int:
        """Upsert records in fixed-size batches.

        A failed batch is logged and the remaining batches still run.

        Returns:
            Number of records upserted
        """
        upserted = 0
        for i in range(0, len(records), self.batch_size):
            batch = records[i : i + self.batch_size]
            try:
                upserted += await self.vector_store.upsert(batch)
            except TransientProviderError as e:
                logger.error(
                    "upsert_batch_failed",
                    batch_start=i,
                    batch_size=len(batch),
                    error=str(e),
                )
                self.stats.failures.append(
                    {"path": f"<upsert batch {i // self.batch_size}>", "error": str(e)}
                )
                continue

            logger.debug("upsert_batch_completed", batch_start=i, batch_size=len(batch))

        return upserted

    async def ingest_all(
        self,
        clear_existing: bool = True,
        progress_callback: Optional[ProgressCallback] = None,
    ) -> IndexStats:
        """Index every markdown file under the docs directory.

        Args:
            clear_existing: Delete all previously stored chunks first
            progress_callback: Optional callback function(current, total, file_path)

        Returns:
            IndexStats for this run

        Raises:
            FileNotFoundError: If the docs directory is missing
            TransientProviderError: If the embedder or store cannot be set up
        """
        logger.info("starting_ingest_all", clear_existing=clear_existing)
        self.stats = IndexStats()

        if not self.embedder.is_ready:
            await self.embedder.warm_up()
        await self.vector_store.init_or_load(self.embedder.dimension)

        md_files = self.discover_markdown_files()
        self.stats.files_scanned = len(md_files)

        if clear_existing:
            self.stats.records_deleted = await self.clear_index()

        if not md_files:
            logger.warning("no_markdown_files_found", docs_dir=str(self.docs_dir))

        semaphore = asyncio.Semaphore(self.max_concurrent_files)
        total = len(md_files)

        async def run(idx: int, file_path: Path) -> List[ChunkRecord]:
            async with semaphore:
                if progress_callback:
                    progress_callback(idx, total, file_path)
                return await self.process_file(file_path)

        per_file = await asyncio.gather(
            *(run(idx, path) for idx, path in enumerate(md_files, 1))
        )
        records = [record for file_records in per_file for record in file_records]

        seen: Dict[str, str] = {}
        for record in records:
            previous = seen.get(record.id)
            if previous is not None:
                logger.warning(
                    "duplicate_chunk_id",
                    chunk_id=record.id,
                    file_path=record.metadata.get("file_path"),
                    previous_file_path=previous,
                )
            seen[record.id] = record.metadata.get("file_path", "")

        logger.info("chunks_collected", total_chunks=len(records), files=total)

        if records:
            self.stats.chunks_upserted = await self.upsert_in_batches(records)
        else:
            logger.info("no_chunks_collected_skipping_upsert")

        await self.vector_store.save_index()

        final_count = await self.vector_store.count()
        if final_count != self.stats.chunks_upserted and clear_existing:
            logger.warning(
                "final_count_mismatch",
                final_count=final_count,
                expected=self.stats.chunks_upserted,
            )

        try:
            db.insert_index_run(
                embedding_model=self.vector_store.embedding_model,
                embedding_dimension=self.vector_store.dimension,
                docs_directory=str(self.docs_dir),
                files_scanned=self.stats.files_scanned,
                files_failed=self.stats.files_failed,
                total_chunks=self.stats.chunks_upserted,
                metadata={
                    "files_processed": self.stats.files_processed,
                    "files_skipped": self.stats.files_skipped,
                    "embeddings_generated": self.stats.embeddings_generated,
                    "records_deleted": self.stats.records_deleted,
                },
                db_path=self.vector_store.db_path,
            )
        except sqlite3.Error as e:
            logger.error("index_run_record_failed", error=str(e))

        logger.info("ingest_all_completed", stats=self.stats.as_dict())

        return self.stats
