"""Application configuration with sensible defaults."""
import os
from pathlib import Path

from fabric_docs.errors import ConfigurationError

# Paths
BASE_DIR = Path(__file__).parent.parent
DOCS_PATH = Path(os.getenv("DOCS_PATH", str(BASE_DIR / "_docs_fabric_ux"))).resolve()
DATA_DIR = Path(os.getenv("DATA_DIR", str(BASE_DIR / "data"))).resolve()

# Ollama configuration
OLLAMA_BASE_URL = os.getenv("OLLAMA_BASE_URL", "http://localhost:11434")
EMBEDDING_MODEL = os.getenv("EMBEDDING_MODEL", "all-minilm:latest")
EMBEDDING_TIMEOUT = float(os.getenv("EMBEDDING_TIMEOUT", "60.0"))

# Indexing
UPSERT_BATCH_SIZE = int(os.getenv("UPSERT_BATCH_SIZE", "100"))
INDEX_WORKERS = int(os.getenv("INDEX_WORKERS", "1"))  # 1 = strictly sequential

# Retrieval
RETRIEVAL_TOP_K = int(os.getenv("RETRIEVAL_TOP_K", "8"))

# Tool server
HOST = os.getenv("HOST", "127.0.0.1")
PORT = int(os.getenv("PORT", "8080"))
TOOL_TIMEOUT = float(os.getenv("TOOL_TIMEOUT", "30.0"))

# Storage
DB_PATH = DATA_DIR / "chunks.sqlite"
VECTOR_INDEX_PATH = DATA_DIR / "vectors.index"
METADATA_PATH = DATA_DIR / "metadata.json"

# Logging
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

_LOG_LEVELS = {"CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"}


def validate_config(for_indexing: bool = False, docs_path: Path = None) -> None:
    """Check required settings before any work starts.

    Args:
        for_indexing: Validate the indexing side (docs root must exist)
            instead of the serving side (index files must exist)
        docs_path: Docs root override (default DOCS_PATH)

    Raises:
        ConfigurationError: Listing every problem found
    """
    problems = []

    if not EMBEDDING_MODEL.strip():
        problems.append("EMBEDDING_MODEL is not set")
    if not OLLAMA_BASE_URL.strip():
        problems.append("OLLAMA_BASE_URL is not set")
    if LOG_LEVEL.upper() not in _LOG_LEVELS:
        problems.append(f"LOG_LEVEL must be one of {sorted(_LOG_LEVELS)}, got {LOG_LEVEL!r}")

    for name, value in (
        ("UPSERT_BATCH_SIZE", UPSERT_BATCH_SIZE),
        ("INDEX_WORKERS", INDEX_WORKERS),
        ("RETRIEVAL_TOP_K", RETRIEVAL_TOP_K),
        ("EMBEDDING_TIMEOUT", EMBEDDING_TIMEOUT),
        ("TOOL_TIMEOUT", TOOL_TIMEOUT),
    ):
        if value <= 0:
            problems.append(f"{name} must be positive, got {value}")

    if for_indexing:
        root = docs_path or DOCS_PATH
        if not root.is_dir():
            problems.append(f"Docs directory not found: {root}")
    elif not (VECTOR_INDEX_PATH.exists() and METADATA_PATH.exists()):
        problems.append(
            f"No vector index under {DATA_DIR}. Run scripts/reindex.py first."
        )

    if problems:
        raise ConfigurationError("; ".join(problems), {"problems": problems})
