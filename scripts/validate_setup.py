#!/usr/bin/env python
"""Validate setup - check dependencies, Ollama, docs and the stored index."""
import sys
import asyncio
import json
import sqlite3
from pathlib import Path

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

# Color codes for terminal output
GREEN = "\033[92m"
RED = "\033[91m"
YELLOW = "\033[93m"
BLUE = "\033[94m"
RESET = "\033[0m"


def print_success(msg):
    print(f"{GREEN}OK{RESET}   {msg}")


def print_error(msg):
    print(f"{RED}FAIL{RESET} {msg}")


def print_info(msg):
    print(f"{BLUE}..{RESET}   {msg}")


def print_warning(msg):
    print(f"{YELLOW}WARN{RESET} {msg}")


def print_section(title):
    print(f"\n{BLUE}{'=' * 60}{RESET}")
    print(f"{BLUE}{title:^60}{RESET}")
    print(f"{BLUE}{'=' * 60}{RESET}\n")


DEPENDENCIES = [
    ("quart", "Quart web framework"),
    ("httpx", "HTTP client"),
    ("faiss", "FAISS vector store"),
    ("numpy", "Vector math"),
    ("pydantic", "Data validation"),
    ("yaml", "Frontmatter parsing"),
    ("structlog", "Structured logging"),
]


def check_dependencies(errors):
    print_section("1. Dependencies")

    for module_name, description in DEPENDENCIES:
        try:
            __import__(module_name)
            print_success(f"{description:30} ({module_name})")
        except ImportError as e:
            print_error(f"{description:30} ({module_name}) - {e}")
            errors.append(f"Missing: {module_name}")


def check_configuration(config, errors):
    print_section("2. Configuration")

    print_info(f"Embedding model: {config.EMBEDDING_MODEL}")
    print_info(f"Ollama URL:      {config.OLLAMA_BASE_URL}")
    print_info(f"Docs directory:  {config.DOCS_PATH}")
    print_info(f"Data directory:  {config.DATA_DIR}")

    from fabric_docs.errors import ConfigurationError

    try:
        config.validate_config(for_indexing=True)
        print_success("Indexing configuration valid")
    except ConfigurationError as e:
        for problem in e.context["problems"]:
            print_error(problem)
            errors.append(problem)


async def check_ollama(config, errors):
    """Returns the embedding dimension, or None if Ollama is unusable."""
    print_section("3. Ollama Service")

    import httpx
    from fabric_docs.errors import EmbeddingError
    from fabric_docs.llm_client import OllamaClient, OllamaEmbedder

    client = OllamaClient()
    try:
        models = set(await client.list_models())
    except httpx.HTTPError as e:
        print_error(f"Cannot reach Ollama at {config.OLLAMA_BASE_URL}: {e}")
        print_info("  Make sure Ollama is running: ollama serve")
        errors.append("Ollama not reachable")
        return None

    print_success(f"Ollama service running ({len(models)} models installed)")

    if config.EMBEDDING_MODEL in models:
        print_success(f"Embedding model available: {config.EMBEDDING_MODEL}")
    else:
        print_error(f"Embedding model missing: {config.EMBEDDING_MODEL}")
        print_info(f"  Run: ollama pull {config.EMBEDDING_MODEL}")
        errors.append(f"Missing embedding model: {config.EMBEDDING_MODEL}")
        return None

    try:
        dimension = await OllamaEmbedder(client=client).warm_up()
    except EmbeddingError as e:
        print_error(f"Embedding probe failed: {e}")
        errors.append("Embedding probe failed")
        return None

    print_success(f"Embedding API working (dimension: {dimension})")
    return dimension


def check_docs(config, warnings):
    print_section("4. Documentation")

    if not config.DOCS_PATH.is_dir():
        # Already reported by the configuration check
        return

    count = sum(1 for p in config.DOCS_PATH.rglob("*.md") if p.is_file())
    if count:
        print_success(f"{count} markdown files under {config.DOCS_PATH}")
    else:
        print_warning(f"No markdown files under {config.DOCS_PATH}")
        warnings.append("Docs directory is empty")


def check_index(config, dimension, errors, warnings):
    print_section("5. Vector Index")

    from fabric_docs import db

    if not config.VECTOR_INDEX_PATH.exists():
        print_warning(f"No index at {config.VECTOR_INDEX_PATH}")
        print_info("  Run: python scripts/reindex.py")
        warnings.append("Index not built")
        return

    if not config.METADATA_PATH.exists():
        print_error(f"Index metadata missing: {config.METADATA_PATH} - rebuild the index")
        errors.append("Index metadata missing")
        return

    try:
        metadata = json.loads(config.METADATA_PATH.read_text(encoding="utf-8"))
    except ValueError as e:
        print_error(f"Index metadata unreadable: {e}")
        errors.append("Index metadata unreadable")
        return

    try:
        chunk_rows = db.get_chunk_count(config.DB_PATH)
    except sqlite3.Error as e:
        print_error(f"Chunk table unreadable at {config.DB_PATH}: {e}")
        errors.append("Chunk table unreadable")
        return

    vector_count = metadata.get("vector_count", 0)

    print_success(f"Index found: {vector_count} vectors, {chunk_rows} chunk rows")
    if vector_count != chunk_rows:
        print_error("Vector count and chunk table disagree - rebuild the index")
        errors.append("Index and chunk table out of sync")

    stored_dimension = metadata.get("embedding_dimension")
    if dimension is not None and stored_dimension != dimension:
        print_error(
            f"Index dimension {stored_dimension} does not match model dimension {dimension}"
        )
        errors.append("Dimension mismatch")

    last_run = db.get_latest_index_run(config.DB_PATH)
    if last_run:
        print_info(
            f"Last indexed {last_run['indexed_at']}: {last_run['files_scanned']} files, "
            f"{last_run['total_chunks']} chunks, {last_run['files_failed']} failed"
        )


async def main():
    print_section("fabric-docs - Setup Validation")

    errors = []
    warnings = []

    check_dependencies(errors)
    if errors:
        # Nothing below can import without the core libraries
        return errors, warnings

    from fabric_docs import config

    check_configuration(config, errors)
    dimension = await check_ollama(config, errors)
    check_docs(config, warnings)
    check_index(config, dimension, errors, warnings)

    print_section("Summary")

    if not errors:
        print_success("All checks passed!")
    else:
        print_error(f"Found {len(errors)} error(s):")
        for i, error in enumerate(errors, 1):
            print(f"  {i}. {error}")

    if warnings:
        print_warning(f"Found {len(warnings)} warning(s):")
        for i, warning in enumerate(warnings, 1):
            print(f"  {i}. {warning}")

    print()
    return errors, warnings


if __name__ == "__main__":
    errors, warnings = asyncio.run(main())
    sys.exit(1 if errors else 0)
