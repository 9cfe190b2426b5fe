"""FAISS vector store for semantic search.

Handles:
- Index initialization, loading and atomic saving
- Upsert and delete by string chunk id
- Top-K inner-product search (cosine on unit vectors) with metadata filters
- Chunk text and metadata persistence in SQLite
"""
import json
import os
import sqlite3
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional
import numpy as np
import faiss
import structlog

from fabric_docs import config, db
from fabric_docs.errors import VectorStoreError
from fabric_docs.rag.records import ChunkRecord

logger = structlog.get_logger()

INDEX_TYPE = "IndexIDMap2(IndexFlatIP)"


@dataclass
class QueryMatch:
    """One nearest-neighbour hit. Higher score = more relevant."""

    id: str
    score: float
    metadata: Optional[Dict[str, Any]] = None


def _matches_filter(metadata: Dict[str, Any], where: Dict[str, Any]) -> bool:
    for key, expected in where.items():
        value = metadata.get(key)
        if isinstance(value, list):
            if expected not in value:
                return False
        elif value != expected:
            return False
    return True


class FAISSVectorStore:
    """FAISS-backed vector store keyed by string chunk ids."""

    def __init__(
        self,
        index_dir: Path = None,
        embedding_model: str = None,
    ):
        """Initialize the FAISS vector store.

        Args:
            index_dir: Directory holding the index, metadata and chunk database
                (default: DATA_DIR)
            embedding_model: Embedding model name (default from config)
        """
        self.index_dir = Path(index_dir or config.DATA_DIR)
        self.embedding_model = embedding_model or config.EMBEDDING_MODEL

        self.index_path = self.index_dir / config.VECTOR_INDEX_PATH.name
        self.metadata_path = self.index_dir / config.METADATA_PATH.name
        self.db_path = self.index_dir / config.DB_PATH.name

        self.index: Optional[faiss.Index] = None
        self.dimension: Optional[int] = None
        self.metadata: Dict[str, Any] = {}
        self._next_vector_id = 0
        self._loaded_mtime: Optional[float] = None

        logger.info(
            "faiss_store_initialized",
            index_dir=str(self.index_dir),
            embedding_model=self.embedding_model,
        )

    @property
    def is_loaded(self) -> bool:
        return self.index is not None

    def _require_index(self) -> faiss.Index:
        if self.index is None:
            raise VectorStoreError("No index initialized. Call init_or_load() first.")
        return self.index

    async def init_new_index(self, dimension: int) -> None:
        """Initialize a new, empty index.

        Args:
            dimension: Embedding dimension
        """
        self.dimension = dimension
        self.index = faiss.IndexIDMap2(faiss.IndexFlatIP(dimension))
        self._next_vector_id = 0

        self.metadata = {
            "embedding_model": self.embedding_model,
            "embedding_dimension": self.dimension,
            "index_type": INDEX_TYPE,
            "vector_count": 0,
        }

        try:
            db.init_database(self.db_path)
        except sqlite3.Error as e:
            raise VectorStoreError(f"Failed to initialize chunk database: {e}") from e

        logger.info("faiss_index_initialized", dimension=dimension, index_type=INDEX_TYPE)

    async def load_index(self, expected_dimension: Optional[int] = None) -> None:
        """Load the index from disk.

        Args:
            expected_dimension: Current model's dimension, checked against the
                stored one when given

        Raises:
            FileNotFoundError: If index files don't exist
            VectorStoreError: On dimension mismatch or unreadable files
        """
        if not self.index_path.exists():
            raise FileNotFoundError(f"Index not found: {self.index_path}")

        if not self.metadata_path.exists():
            raise FileNotFoundError(f"Metadata not found: {self.metadata_path}")

        try:
            metadata = json.loads(self.metadata_path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            raise VectorStoreError(f"Failed to load metadata: {e}") from e

        stored_model = metadata.get("embedding_model")
        stored_dim = metadata.get("embedding_dimension")

        if expected_dimension is not None and expected_dimension != stored_dim:
            raise VectorStoreError(
                f"Dimension mismatch: index was built with {stored_model} "
                f"(dim={stored_dim}), but current model {self.embedding_model} "
                f"has dim={expected_dimension}. Please rebuild the index.",
                {"stored_dimension": stored_dim, "expected_dimension": expected_dimension},
            )

        try:
            mtime = self.index_path.stat().st_mtime
            index = faiss.read_index(str(self.index_path))
            db.init_database(self.db_path)
            next_id = db.get_max_vector_id(self.db_path) + 1
            self._drop_orphan_vectors(index)
        except (RuntimeError, sqlite3.Error) as e:
            raise VectorStoreError(f"Failed to load FAISS index: {e}") from e

        self.index = index
        self.metadata = metadata
        self.dimension = stored_dim
        self._next_vector_id = max(next_id, metadata.get("next_vector_id", 0))
        self._loaded_mtime = mtime

        logger.info(
            "faiss_index_loaded",
            dimension=self.dimension,
            vector_count=self.index.ntotal,
            model=stored_model,
        )

    def _drop_orphan_vectors(self, index: faiss.Index) -> None:
        """Remove vectors whose chunk row is gone.

        The chunk table commits on every write while the index only reaches
        disk on save_index(), so an interrupted run can leave a saved index
        holding vectors the table no longer knows.
        """
        stored = set(faiss.vector_to_array(index.id_map).tolist())
        orphans = stored - set(db.list_vector_ids(self.db_path))
        if not orphans:
            return

        index.remove_ids(np.array(sorted(orphans), dtype=np.int64))
        logger.warning(
            "orphan_vectors_removed",
            count=len(orphans),
            remaining=index.ntotal,
        )

    def _discard(self, chunk_ids: List[str], vector_ids: List[int]) -> None:
        """Drop a partially written batch from both the index and the table."""
        try:
            if vector_ids:
                self.index.remove_ids(np.array(vector_ids, dtype=np.int64))
            db.delete_chunks(chunk_ids, self.db_path)
        except (RuntimeError, sqlite3.Error) as e:
            logger.error("upsert_rollback_failed", error=str(e), count=len(chunk_ids))

    async def init_or_load(self, dimension: Optional[int] = None) -> None:
        """Load the existing index, or create a new one.

        Args:
            dimension: Embedding dimension; needed to create a new index and
                validated against a stored one

        Raises:
            VectorStoreError: If no index exists and no dimension is given,
                or on dimension mismatch
        """
        if self.index_path.exists() and self.metadata_path.exists():
            logger.info("existing_index_detected", path=str(self.index_path))
            await self.load_index(expected_dimension=dimension)
        elif dimension is None:
            raise VectorStoreError(
                f"No index found at {self.index_path} and no dimension given"
            )
        else:
            logger.info("no_index_found_initializing_new")
            await self.init_new_index(dimension)

    async def reload_if_changed(self) -> bool:
        """Reload the index if another process rewrote it since it was loaded.

        Returns:
            True if the index was reloaded
        """
        if not self.index_path.exists():
            return False
        mtime = self.index_path.stat().st_mtime
        if self._loaded_mtime is not None and mtime == self._loaded_mtime:
            return False
        logger.info("index_changed_on_disk_reloading", path=str(self.index_path))
        await self.load_index(expected_dimension=self.dimension)
        return True

    async def save_index(self) -> None:
        """Save the index and metadata to disk.

        Files are written next to their targets and renamed into place, so a
        reader never sees a half-written index.

        Raises:
            VectorStoreError: If save fails
        """
        index = self._require_index()
        self.index_dir.mkdir(parents=True, exist_ok=True)

        self.metadata["vector_count"] = index.ntotal
        self.metadata["next_vector_id"] = self._next_vector_id

        tmp_index = self.index_path.with_suffix(".index.tmp")
        tmp_metadata = self.metadata_path.with_suffix(".json.tmp")
        try:
            faiss.write_index(index, str(tmp_index))
            tmp_metadata.write_text(json.dumps(self.metadata, indent=2), encoding="utf-8")
            os.replace(tmp_metadata, self.metadata_path)
            os.replace(tmp_index, self.index_path)
        except (RuntimeError, OSError) as e:
            raise VectorStoreError(f"Failed to save FAISS index: {e}") from e

        self._loaded_mtime = self.index_path.stat().st_mtime

        logger.info(
            "faiss_index_saved",
            index_path=str(self.index_path),
            vector_count=index.ntotal,
        )

    async def upsert(self, records: List[ChunkRecord]) -> int:
        """Insert or replace records by id.

        A repeated id inside one call keeps the last record.

        Args:
            records: Chunk records with vectors

        Returns:
            Number of distinct ids written

        Raises:
            VectorStoreError: On dimension mismatch or storage failure
        """
        index = self._require_index()
        if not records:
            return 0

        latest: Dict[str, ChunkRecord] = {}
        for record in records:
            latest[record.id] = record
        unique = list(latest.values())

        vectors = np.array([r.vector for r in unique], dtype=np.float32)
        if vectors.ndim != 2 or vectors.shape[1] != self.dimension:
            raise VectorStoreError(
                f"Embedding dimension mismatch: expected {self.dimension}, "
                f"got {vectors.shape[-1] if vectors.ndim == 2 else 'ragged'}"
            )

        chunk_ids = [r.id for r in unique]
        existing: Dict[str, int] = {}
        vector_ids: List[int] = []
        try:
            existing = db.get_vector_ids(chunk_ids, self.db_path)

            if existing:
                index.remove_ids(np.array(list(existing.values()), dtype=np.int64))

            for record in unique:
                if record.id in existing:
                    vector_ids.append(existing[record.id])
                else:
                    vector_ids.append(self._next_vector_id)
                    self._next_vector_id += 1

            index.add_with_ids(vectors, np.array(vector_ids, dtype=np.int64))
            db.upsert_chunks(
                [
                    (record.id, vector_id, record.text, record.metadata)
                    for record, vector_id in zip(unique, vector_ids)
                ],
                self.db_path,
            )
        except (RuntimeError, sqlite3.Error) as e:
            # Neither side may keep part of the batch
            self._discard(chunk_ids, sorted(set(existing.values()) | set(vector_ids)))
            raise VectorStoreError(f"Upsert failed: {e}", {"count": len(unique)}) from e

        logger.info(
            "vectors_upserted",
            count=len(unique),
            replaced=len(existing),
            total_vectors=index.ntotal,
        )

        return len(unique)

    async def query(
        self,
        vector: List[float],
        top_k: int = None,
        include_metadata: bool = True,
        where: Optional[Dict[str, Any]] = None,
    ) -> List[QueryMatch]:
        """Search for the most similar stored vectors.

        Args:
            vector: Query vector (unit length)
            top_k: Number of results to return (default from config)
            include_metadata: Attach stored metadata to each match
            where: Exact-match metadata filter; list-valued fields match on
                membership

        Returns:
            Matches sorted by descending score

        Raises:
            VectorStoreError: If no index is loaded or the query fails
        """
        index = self._require_index()

        if top_k is None:
            top_k = config.RETRIEVAL_TOP_K

        query_vector = np.array([vector], dtype=np.float32)
        if query_vector.shape[1] != self.dimension:
            raise VectorStoreError(
                f"Query dimension mismatch: expected {self.dimension}, "
                f"got {query_vector.shape[1]}"
            )

        # Filtering happens after the search, so scan everything when filtering
        fetch_k = index.ntotal if where else min(top_k, index.ntotal)
        if fetch_k == 0:
            return []

        try:
            scores, ids = index.search(query_vector, fetch_k)
            hits = [
                (int(vector_id), float(score))
                for vector_id, score in zip(ids[0].tolist(), scores[0].tolist())
                if vector_id != -1
            ]
            rows = db.get_chunks_by_vector_ids([vid for vid, _ in hits], self.db_path)
        except (RuntimeError, sqlite3.Error) as e:
            raise VectorStoreError(f"Query failed: {e}") from e

        by_vector_id = {row["vector_id"]: row for row in rows}

        matches = []
        for vector_id, score in hits:
            row = by_vector_id.get(vector_id)
            if row is None:
                logger.warning("vector_id_missing_from_chunk_table", vector_id=vector_id)
                continue
            if where and not _matches_filter(row["metadata"], where):
                continue
            matches.append(
                QueryMatch(
                    id=row["chunk_id"],
                    score=score,
                    metadata=row["metadata"] if include_metadata else None,
                )
            )
            if len(matches) >= top_k:
                break

        logger.info("vector_search_completed", top_k=top_k, results_found=len(matches))

        return matches

    async def count(self) -> int:
        """Number of stored chunks.

        Read from the chunk table, the same source list_ids() and delete()
        use, so a clear never sees records it cannot list.
        """
        self._require_index()
        try:
            return db.get_chunk_count(self.db_path)
        except sqlite3.Error as e:
            raise VectorStoreError(f"Count failed: {e}") from e

    async def list_ids(self, limit: Optional[int] = None) -> List[str]:
        """List stored chunk ids, at most limit of them."""
        try:
            return db.list_chunk_ids(limit, self.db_path)
        except sqlite3.Error as e:
            raise VectorStoreError(f"Listing ids failed: {e}") from e

    async def delete(self, ids: List[str]) -> int:
        """Delete records by chunk id. Unknown ids are ignored.

        Returns:
            Number of records deleted
        """
        index = self._require_index()
        if not ids:
            return 0

        try:
            existing = db.get_vector_ids(ids, self.db_path)
            if existing:
                index.remove_ids(np.array(list(existing.values()), dtype=np.int64))
            deleted = db.delete_chunks(list(existing.keys()), self.db_path)
        except (RuntimeError, sqlite3.Error) as e:
            raise VectorStoreError(f"Delete failed: {e}", {"count": len(ids)}) from e

        logger.info("vectors_deleted", count=deleted, total_vectors=index.ntotal)
        return deleted

    def get_stats(self) -> Dict[str, Any]:
        """Get statistics about the vector store.

        Returns:
            Dictionary with store statistics
        """
        if self.index is None:
            return {
                "initialized": False,
                "vector_count": 0,
                "dimension": None,
            }

        return {
            "initialized": True,
            "vector_count": self.index.ntotal,
            "dimension": self.dimension,
            "embedding_model": self.embedding_model,
            "index_exists_on_disk": self.index_path.exists(),
            "metadata": self.metadata,
        }
