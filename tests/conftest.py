"""Pytest configuration and fixtures."""
import hashlib
from pathlib import Path
from typing import List, Optional, Set

import numpy as np
import pytest

from fabric_docs.errors import EmbeddingError
from fabric_docs.rag.store_faiss import FAISSVectorStore

DIMENSION = 8


class FakeEmbedder:
    """Deterministic stand-in for OllamaEmbedder.

    Each text maps to a unit vector seeded from its hash; texts containing a
    word in fail_on raise EmbeddingError.
    """

    def __init__(self, dimension: int = DIMENSION, ready: bool = True, fail_on: Optional[Set[str]] = None):
        self.dimension = dimension if ready else None
        self._dimension = dimension
        self.fail_on = fail_on or set()
        self.calls: List[str] = []

    @property
    def is_ready(self) -> bool:
        return self.dimension is not None

    async def warm_up(self) -> int:
        self.dimension = self._dimension
        return self.dimension

    async def embed(self, text: str) -> List[float]:
        self.calls.append(text)
        if any(word in text for word in self.fail_on):
            raise EmbeddingError("Embedding failed")
        seed = int.from_bytes(hashlib.sha256(text.encode("utf-8")).digest()[:8], "big")
        vector = np.random.default_rng(seed).normal(size=self._dimension)
        return (vector / np.linalg.norm(vector)).astype(np.float32).tolist()


def write_doc(root: Path, relative: str, content: str) -> Path:
    path = root / relative
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")
    return path


@pytest.fixture
def embedder() -> FakeEmbedder:
    return FakeEmbedder()


@pytest.fixture
def docs_dir(tmp_path: Path) -> Path:
    path = tmp_path / "docs"
    path.mkdir()
    return path


@pytest.fixture
async def store(tmp_path: Path) -> FAISSVectorStore:
    vector_store = FAISSVectorStore(index_dir=tmp_path / "index", embedding_model="fake-model")
    await vector_store.init_or_load(DIMENSION)
    return vector_store
