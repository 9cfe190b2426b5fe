"""Tests for retrieval and result formatting."""
import pytest

from fabric_docs.errors import EmbeddingError
from fabric_docs.rag.records import ChunkRecord
from fabric_docs.rag.retriever import NO_RESULTS_MESSAGE, Retriever, format_match, format_matches
from fabric_docs.rag.store_faiss import QueryMatch

from tests.conftest import FakeEmbedder


class TestFormatting:
    def test_empty_is_single_sentinel(self):
        assert format_matches([]) == [NO_RESULTS_MESSAGE]

    def test_full_match(self):
        match = QueryMatch(
            id="btn-section-usage",
            score=0.87654,
            metadata={
                "title": "Button",
                "file_path": "components/button.md",
                "section": "How to use",
                "text_content": "Press it.",
            },
        )

        assert format_match(match) == (
            "Title: Button\n"
            "Source: components/button.md\n"
            "Section: How to use\n"
            "Similarity: 0.8765\n\n"
            "Press it."
        )

    def test_missing_fields_use_placeholders(self):
        rendered = format_match(QueryMatch(id="x", score=0.5, metadata={"title": ""}))

        assert "Title: Unknown Title" in rendered
        assert "Source: Unknown Path" in rendered
        assert "Section: Unknown Section" in rendered
        assert rendered.endswith("No text content found.")

    def test_no_metadata_and_no_score(self):
        rendered = format_match(QueryMatch(id="x", score=None, metadata=None))

        assert "Similarity: 0.0000" in rendered

    def test_preserves_order(self):
        matches = [
            QueryMatch(id="a", score=0.9, metadata={"title": "A"}),
            QueryMatch(id="b", score=0.4, metadata={"title": "B"}),
        ]

        rendered = format_matches(matches)

        assert rendered[0].startswith("Title: A")
        assert rendered[1].startswith("Title: B")


def chunk(embedder_vector, chunk_id: str, **metadata) -> ChunkRecord:
    meta = {"chunk_id": chunk_id, "title": chunk_id, "text_content": chunk_id}
    meta.update(metadata)
    return ChunkRecord(id=chunk_id, vector=embedder_vector, text=chunk_id, metadata=meta)


class TestRetriever:
    async def test_exact_text_ranks_first(self, embedder, store):
        for text in ["buttons", "tables", "dialogs"]:
            await store.upsert([chunk(await embedder.embed(text), text)])
        retriever = Retriever(embedder, store, top_k=2)

        matches = await retriever.retrieve("tables")

        assert len(matches) == 2
        assert matches[0].id == "tables"
        assert matches[0].score == pytest.approx(1.0, abs=1e-5)

    async def test_top_k_override(self, embedder, store):
        for text in ["a", "b", "c"]:
            await store.upsert([chunk(await embedder.embed(text), text)])
        retriever = Retriever(embedder, store, top_k=1)

        assert len(await retriever.retrieve("a", top_k=3)) == 3

    async def test_where_filter(self, embedder, store):
        await store.upsert([chunk(await embedder.embed("a"), "a", area="components")])
        await store.upsert([chunk(await embedder.embed("b"), "b", area="patterns")])
        retriever = Retriever(embedder, store)

        matches = await retriever.retrieve("a", where={"area": "patterns"})

        assert [m.id for m in matches] == ["b"]

    async def test_embedding_error_propagates(self, store):
        retriever = Retriever(FakeEmbedder(fail_on={"bad"}), store)

        with pytest.raises(EmbeddingError):
            await retriever.retrieve("bad question")

    def test_is_ready(self, store):
        assert Retriever(FakeEmbedder(), store).is_ready
        assert not Retriever(FakeEmbedder(ready=False), store).is_ready
