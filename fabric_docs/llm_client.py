"""Ollama embedding client wrapper with error handling."""
import httpx
from typing import Dict, List, Optional
import numpy as np
import structlog

from fabric_docs import config
from fabric_docs.errors import EmbeddingError

logger = structlog.get_logger()


class OllamaClient:
    """Async client for the Ollama HTTP API."""

    def __init__(self, base_url: str = None, timeout: float = None):
        """Initialize Ollama client.

        Args:
            base_url: Ollama API base URL (defaults to config.OLLAMA_BASE_URL)
            timeout: Request timeout in seconds (defaults to config.EMBEDDING_TIMEOUT)
        """
        self.base_url = base_url or config.OLLAMA_BASE_URL
        self.timeout = timeout or config.EMBEDDING_TIMEOUT

    async def embeddings(
        self,
        prompt: str,
        model: str = None,
    ) -> Dict:
        """Generate embeddings for a text prompt.

        Args:
            prompt: Text to embed
            model: Model to use (defaults to config.EMBEDDING_MODEL)

        Returns:
            Response dict with 'embedding' list

        Raises:
            httpx.HTTPError: On API errors
        """
        model = model or config.EMBEDDING_MODEL

        payload = {
            "model": model,
            "prompt": prompt,
        }

        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                logger.debug(
                    "ollama_embedding_request",
                    model=model,
                    prompt_length=len(prompt),
                )

                response = await client.post(
                    f"{self.base_url}/api/embeddings",
                    json=payload,
                )
                response.raise_for_status()

                data = response.json()

                logger.debug(
                    "ollama_embedding_response",
                    model=model,
                    dimension=len(data.get("embedding", [])),
                )

                return data

        except httpx.HTTPError as e:
            logger.error("ollama_embedding_error", error=str(e), base_url=self.base_url)
            raise

    async def list_models(self) -> List[str]:
        """List all available Ollama models.

        Returns:
            List of model names

        Raises:
            httpx.HTTPError: On API errors
        """
        try:
            async with httpx.AsyncClient(timeout=5.0) as client:
                response = await client.get(f"{self.base_url}/api/tags")
                response.raise_for_status()
                data = response.json()
                return [m["name"] for m in data.get("models", [])]
        except httpx.HTTPError as e:
            logger.error("ollama_list_models_error", error=str(e))
            raise


class OllamaEmbedder:
    """Text -> unit-length vector, backed by an Ollama embedding model.

    The embedder is not ready until warm_up() has detected the model's
    dimension. Callers check is_ready instead of a shared global.
    """

    PROBE_TEXT = "test"

    def __init__(self, client: Optional[OllamaClient] = None, model: str = None):
        self.client = client or OllamaClient()
        self.model = model or config.EMBEDDING_MODEL
        self.dimension: Optional[int] = None

    @property
    def is_ready(self) -> bool:
        return self.dimension is not None

    async def warm_up(self) -> int:
        """Detect the embedding dimension and mark the embedder ready.

        Returns:
            Embedding dimension

        Raises:
            EmbeddingError: If the probe embedding fails
        """
        logger.info("detecting_embedding_dimension", model=self.model)
        vector = await self._embed_raw(self.PROBE_TEXT)
        self.dimension = len(vector)
        logger.info("embedding_dimension_detected", dimension=self.dimension)
        return self.dimension

    async def embed(self, text: str) -> List[float]:
        """Embed text and L2-normalize the result.

        Raises:
            EmbeddingError: On transport failure or an empty/zero vector
        """
        vector = np.asarray(await self._embed_raw(text), dtype=np.float32)

        norm = float(np.linalg.norm(vector))
        if norm == 0.0:
            raise EmbeddingError(
                "Zero-length embedding returned", {"model": self.model}
            )

        if self.dimension is not None and vector.shape[0] != self.dimension:
            raise EmbeddingError(
                f"Embedding dimension changed: expected {self.dimension}, "
                f"got {vector.shape[0]}",
                {"model": self.model},
            )

        return (vector / norm).tolist()

    async def _embed_raw(self, text: str) -> List[float]:
        try:
            response = await self.client.embeddings(prompt=text, model=self.model)
        except httpx.HTTPError as e:
            raise EmbeddingError(
                f"Failed to generate embedding: {e}", {"model": self.model}
            ) from e

        embedding = response.get("embedding") or []
        if not embedding:
            raise EmbeddingError(
                "Empty embedding returned from Ollama", {"model": self.model}
            )
        return embedding
