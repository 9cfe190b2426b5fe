"""SQLite storage for chunk metadata and indexing runs.

Stores:
- Chunk display text and metadata keyed by chunk id
- Mapping between string chunk ids and FAISS vector ids
- A record of each indexing run
"""
import sqlite3
import json
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional, Sequence, Tuple
from datetime import datetime, timezone
import structlog

from fabric_docs import config

logger = structlog.get_logger()

# SQLite caps the number of bound parameters per statement
_MAX_PARAMS = 500


def _batched(items: Sequence, size: int = _MAX_PARAMS) -> Iterator[Sequence]:
    for i in range(0, len(items), size):
        yield items[i : i + size]


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def get_connection(db_path: Optional[Path] = None) -> sqlite3.Connection:
    """Get a connection to the SQLite database.

    Args:
        db_path: Database file (default config.DB_PATH)

    Returns:
        sqlite3.Connection with row_factory set to sqlite3.Row
    """
    path = Path(db_path or config.DB_PATH)
    path.parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(path)
    conn.row_factory = sqlite3.Row
    return conn


def init_database(db_path: Optional[Path] = None) -> None:
    """Initialize the database schema.

    Creates tables if they don't exist:
    - chunks: chunk id, FAISS vector id, display text, metadata JSON
    - index_runs: one row per indexing run
    """
    conn = get_connection(db_path)
    cursor = conn.cursor()

    try:
        cursor.execute("""
            CREATE TABLE IF NOT EXISTS chunks (
                chunk_id TEXT PRIMARY KEY,
                vector_id INTEGER NOT NULL UNIQUE,
                content TEXT NOT NULL,
                metadata_json TEXT NOT NULL,
                created_at TEXT NOT NULL
            )
        """)

        cursor.execute("""
            CREATE TABLE IF NOT EXISTS index_runs (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                indexed_at TEXT NOT NULL,
                embedding_model TEXT NOT NULL,
                embedding_dimension INTEGER,
                docs_directory TEXT NOT NULL,
                files_scanned INTEGER NOT NULL,
                files_failed INTEGER NOT NULL,
                total_chunks INTEGER NOT NULL,
                metadata_json TEXT
            )
        """)

        conn.commit()
        logger.debug("database_initialized", db_path=str(db_path or config.DB_PATH))

    except sqlite3.Error as e:
        conn.rollback()
        logger.error("database_init_failed", error=str(e))
        raise
    finally:
        conn.close()


def upsert_chunks(
    rows: List[Tuple[str, int, str, Dict[str, Any]]],
    db_path: Optional[Path] = None,
) -> int:
    """Insert or replace chunk rows.

    Args:
        rows: (chunk_id, vector_id, content, metadata) tuples
        db_path: Database file override

    Returns:
        Number of rows written
    """
    if not rows:
        return 0

    conn = get_connection(db_path)
    cursor = conn.cursor()
    created_at = _now()

    try:
        cursor.executemany("""
            INSERT OR REPLACE INTO chunks (
                chunk_id, vector_id, content, metadata_json, created_at
            ) VALUES (?, ?, ?, ?, ?)
        """, [
            (chunk_id, vector_id, content, json.dumps(metadata), created_at)
            for chunk_id, vector_id, content, metadata in rows
        ])
        conn.commit()
        return len(rows)

    except sqlite3.Error as e:
        conn.rollback()
        logger.error("chunk_upsert_failed", error=str(e), count=len(rows))
        raise
    finally:
        conn.close()


def get_vector_ids(
    chunk_ids: Sequence[str], db_path: Optional[Path] = None
) -> Dict[str, int]:
    """Map chunk ids to their FAISS vector ids (unknown ids are omitted)."""
    if not chunk_ids:
        return {}

    conn = get_connection(db_path)
    try:
        mapping: Dict[str, int] = {}
        for batch in _batched(list(chunk_ids)):
            placeholders = ",".join("?" * len(batch))
            rows = conn.execute(
                f"SELECT chunk_id, vector_id FROM chunks WHERE chunk_id IN ({placeholders})",
                list(batch),
            ).fetchall()
            mapping.update({row["chunk_id"]: row["vector_id"] for row in rows})
        return mapping
    finally:
        conn.close()


def get_chunks_by_vector_ids(
    vector_ids: List[int], db_path: Optional[Path] = None
) -> List[Dict[str, Any]]:
    """Retrieve chunks by their FAISS vector IDs.

    Args:
        vector_ids: List of FAISS vector IDs to retrieve
        db_path: Database file override

    Returns:
        List of chunk dictionaries with a parsed "metadata" dict
    """
    if not vector_ids:
        return []

    conn = get_connection(db_path)
    cursor = conn.cursor()

    try:
        chunks = []
        for batch in _batched(list(vector_ids)):
            placeholders = ",".join("?" * len(batch))
            cursor.execute(f"""
                SELECT chunk_id, vector_id, content, metadata_json, created_at
                FROM chunks
                WHERE vector_id IN ({placeholders})
            """, list(batch))

            for row in cursor.fetchall():
                chunk = dict(row)
                chunk["metadata"] = json.loads(chunk.pop("metadata_json") or "{}")
                chunks.append(chunk)

        return chunks

    except sqlite3.Error as e:
        logger.error("chunks_retrieval_failed", error=str(e))
        raise
    finally:
        conn.close()


def list_chunk_ids(limit: Optional[int] = None, db_path: Optional[Path] = None) -> List[str]:
    """List stored chunk ids in insertion order of their vector ids."""
    conn = get_connection(db_path)
    try:
        if limit is None:
            rows = conn.execute("SELECT chunk_id FROM chunks ORDER BY vector_id").fetchall()
        else:
            rows = conn.execute(
                "SELECT chunk_id FROM chunks ORDER BY vector_id LIMIT ?", (limit,)
            ).fetchall()
        return [row["chunk_id"] for row in rows]
    finally:
        conn.close()


def delete_chunks(chunk_ids: Sequence[str], db_path: Optional[Path] = None) -> int:
    """Delete chunk rows by id.

    Returns:
        Number of rows deleted
    """
    if not chunk_ids:
        return 0

    conn = get_connection(db_path)
    cursor = conn.cursor()

    try:
        deleted = 0
        for batch in _batched(list(chunk_ids)):
            placeholders = ",".join("?" * len(batch))
            cursor.execute(
                f"DELETE FROM chunks WHERE chunk_id IN ({placeholders})", list(batch)
            )
            deleted += cursor.rowcount
        conn.commit()

        logger.info("chunks_deleted", count=deleted)
        return deleted

    except sqlite3.Error as e:
        conn.rollback()
        logger.error("chunks_delete_failed", error=str(e))
        raise
    finally:
        conn.close()


def get_chunk_count(db_path: Optional[Path] = None) -> int:
    """Get the total number of chunks in the database."""
    conn = get_connection(db_path)
    try:
        return conn.execute("SELECT COUNT(*) FROM chunks").fetchone()[0]
    finally:
        conn.close()


def list_vector_ids(db_path: Optional[Path] = None) -> List[int]:
    """All vector ids that have a chunk row."""
    conn = get_connection(db_path)
    try:
        rows = conn.execute("SELECT vector_id FROM chunks ORDER BY vector_id").fetchall()
        return [row["vector_id"] for row in rows]
    finally:
        conn.close()


def get_max_vector_id(db_path: Optional[Path] = None) -> int:
    """Highest vector id in use, or -1 for an empty table."""
    conn = get_connection(db_path)
    try:
        value = conn.execute("SELECT MAX(vector_id) FROM chunks").fetchone()[0]
        return -1 if value is None else value
    finally:
        conn.close()


def insert_index_run(
    embedding_model: str,
    embedding_dimension: Optional[int],
    docs_directory: str,
    files_scanned: int,
    files_failed: int,
    total_chunks: int,
    metadata: Optional[Dict[str, Any]] = None,
    db_path: Optional[Path] = None,
) -> int:
    """Record a completed indexing run.

    Args:
        embedding_model: Name of the embedding model used
        embedding_dimension: Dimension of the embeddings
        docs_directory: Docs root that was scanned
        files_scanned: Number of markdown files found
        files_failed: Number of files that errored
        total_chunks: Number of chunks upserted
        metadata: Optional extra stats
        db_path: Database file override

    Returns:
        ID of the inserted row
    """
    conn = get_connection(db_path)
    cursor = conn.cursor()

    try:
        cursor.execute("""
            INSERT INTO index_runs (
                indexed_at, embedding_model, embedding_dimension,
                docs_directory, files_scanned, files_failed,
                total_chunks, metadata_json
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?)
        """, (
            _now(),
            embedding_model,
            embedding_dimension,
            docs_directory,
            files_scanned,
            files_failed,
            total_chunks,
            json.dumps(metadata) if metadata else None,
        ))

        conn.commit()
        row_id = cursor.lastrowid
        logger.info("index_run_recorded", id=row_id, total_chunks=total_chunks)
        return row_id

    except sqlite3.Error as e:
        conn.rollback()
        logger.error("index_run_insert_failed", error=str(e))
        raise
    finally:
        conn.close()


def get_latest_index_run(db_path: Optional[Path] = None) -> Optional[Dict[str, Any]]:
    """Get the most recent indexing run, or None if nothing was indexed."""
    conn = get_connection(db_path)
    try:
        row = conn.execute(
            "SELECT * FROM index_runs ORDER BY id DESC LIMIT 1"
        ).fetchone()
        if row is None:
            return None
        run = dict(row)
        if run["metadata_json"]:
            run["metadata"] = json.loads(run["metadata_json"])
        return run
    finally:
        conn.close()
