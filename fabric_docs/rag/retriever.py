"""Retriever for semantic search over indexed documentation.

Handles:
- Query embedding generation
- Vector search
- Rendering matches as display strings
"""
from typing import Any, Dict, List, Optional
import structlog

from fabric_docs import config
from fabric_docs.llm_client import OllamaEmbedder
from fabric_docs.rag.store_faiss import FAISSVectorStore, QueryMatch

logger = structlog.get_logger()

NO_RESULTS_MESSAGE = "No relevant documents found for your query."

PLACEHOLDERS = {
    "title": "Unknown Title",
    "file_path": "Unknown Path",
    "section": "Unknown Section",
    "text_content": "No text content found.",
}


def _field(metadata: Dict[str, Any], key: str) -> str:
    value = metadata.get(key)
    if value is None or (isinstance(value, str) and not value.strip()):
        return PLACEHOLDERS[key]
    return str(value)


def format_match(match: QueryMatch) -> str:
    """Render one match for display.

    Missing metadata fields fall back to placeholders instead of raising.
    """
    metadata = match.metadata or {}
    score = match.score if match.score is not None else 0.0

    return (
        f"Title: {_field(metadata, 'title')}\n"
        f"Source: {_field(metadata, 'file_path')}\n"
        f"Section: {_field(metadata, 'section')}\n"
        f"Similarity: {score:.4f}\n\n"
        f"{_field(metadata, 'text_content')}"
    )


def format_matches(matches: List[QueryMatch]) -> List[str]:
    """Render matches in the order given (best first).

    Args:
        matches: Matches sorted by descending score

    Returns:
        One string per match, or a single "no results" message when empty
    """
    if not matches:
        return [NO_RESULTS_MESSAGE]
    return [format_match(match) for match in matches]


class Retriever:
    """Semantic retriever: question in, scored matches out."""

    def __init__(
        self,
        embedder: OllamaEmbedder,
        vector_store: FAISSVectorStore,
        top_k: int = None,
    ):
        """Initialize the retriever.

        Args:
            embedder: Embedding client, must be warmed up before use
            vector_store: Loaded vector store
            top_k: Default number of results (default from config)
        """
        self.embedder = embedder
        self.vector_store = vector_store
        self.top_k = top_k or config.RETRIEVAL_TOP_K

        logger.info("retriever_initialized", top_k=self.top_k)

    @property
    def is_ready(self) -> bool:
        return self.embedder.is_ready and self.vector_store.is_loaded

    async def retrieve(
        self,
        query: str,
        top_k: Optional[int] = None,
        where: Optional[Dict[str, Any]] = None,
    ) -> List[QueryMatch]:
        """Retrieve the chunks most relevant to a query.

        Args:
            query: User question
            top_k: Number of results (overrides default)
            where: Optional metadata filter, e.g. {"area": "components"}

        Returns:
            Matches sorted by descending score

        Raises:
            EmbeddingError: If the query cannot be embedded
            VectorStoreError: If the search fails
        """
        top_k = top_k or self.top_k

        logger.info("retrieval_started", query_length=len(query), top_k=top_k)

        await self.vector_store.reload_if_changed()

        query_vector = await self.embedder.embed(query)
        matches = await self.vector_store.query(
            query_vector, top_k=top_k, include_metadata=True, where=where
        )

        logger.info(
            "retrieval_completed",
            results_returned=len(matches),
            top_score=matches[0].score if matches else None,
        )

        return matches
