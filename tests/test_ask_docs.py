"""Tests for the ask_documentation tool and the tool registry."""
import asyncio

import pytest
from pydantic import BaseModel

from fabric_docs.errors import VectorStoreError
from fabric_docs.rag.records import ChunkRecord
from fabric_docs.rag.retriever import NO_RESULTS_MESSAGE, Retriever
from fabric_docs.tools import Tool, ToolRegistry, build_ask_documentation_tool
from fabric_docs.tools.ask_docs import NOT_READY_MESSAGE, TOOL_NAME, AskDocumentationInput

from tests.conftest import FakeEmbedder


def make_registry(embedder, store, timeout=5) -> ToolRegistry:
    registry = ToolRegistry(timeout=timeout)
    registry.register(build_ask_documentation_tool(Retriever(embedder, store)))
    return registry


async def seed(embedder, store, count: int) -> None:
    records = []
    for i in range(count):
        text = f"chunk {i}"
        records.append(
            ChunkRecord(
                id=f"doc-section-{i}",
                vector=await embedder.embed(text),
                text=text,
                metadata={
                    "title": "Doc",
                    "file_path": "doc.md",
                    "section": f"S{i}",
                    "text_content": text,
                },
            )
        )
    await store.upsert(records)


class TestInputModel:
    def test_default_result_count(self):
        assert AskDocumentationInput(query="buttons").result_count == 8

    def test_alias_and_field_name(self):
        assert AskDocumentationInput.model_validate({"query": "q", "resultCount": 3}).result_count == 3
        assert AskDocumentationInput.model_validate({"query": "q", "result_count": 2}).result_count == 2

    def test_query_is_stripped(self):
        assert AskDocumentationInput(query="  spacing  ").query == "spacing"


class TestAskDocumentation:
    async def test_returns_formatted_matches(self, embedder, store):
        await seed(embedder, store, 3)
        registry = make_registry(embedder, store)

        result = await registry.execute_tool(TOOL_NAME, {"query": "chunk 1", "resultCount": 2})

        assert result.is_error is False
        assert len(result.content) == 2
        assert result.content[0].startswith("Title: Doc\nSource: doc.md\nSection: S1\n")

    async def test_defaults_to_eight_results(self, embedder, store):
        await seed(embedder, store, 10)
        registry = make_registry(embedder, store)

        result = await registry.execute_tool(TOOL_NAME, {"query": "chunk"})

        assert len(result.content) == 8

    async def test_empty_index_returns_sentinel(self, embedder, store):
        registry = make_registry(embedder, store)

        result = await registry.execute_tool(TOOL_NAME, {"query": "anything"})

        assert result.to_dict() == {"content": [NO_RESULTS_MESSAGE], "isError": False}

    async def test_not_ready(self, store):
        embedder = FakeEmbedder(ready=False)
        registry = make_registry(embedder, store)

        result = await registry.execute_tool(TOOL_NAME, {"query": "buttons"})

        assert result.to_dict() == {"content": [NOT_READY_MESSAGE], "isError": True}
        assert embedder.calls == []

    async def test_embedding_failure(self, store):
        registry = make_registry(FakeEmbedder(fail_on={"buttons"}), store)

        result = await registry.execute_tool(TOOL_NAME, {"query": "buttons"})

        assert result.is_error is True
        assert result.content == ["Error during search: Embedding failed"]

    async def test_store_failure(self, embedder, store, monkeypatch):
        async def broken_query(*args, **kwargs):
            raise VectorStoreError("index unavailable")

        monkeypatch.setattr(store, "query", broken_query)
        registry = make_registry(embedder, store)

        result = await registry.execute_tool(TOOL_NAME, {"query": "buttons"})

        assert result.is_error is True
        assert result.content == ["Error during search: index unavailable"]

    @pytest.mark.parametrize(
        "args",
        [{}, {"query": "   "}, {"query": "q", "resultCount": 0}, {"query": "q", "resultCount": "many"}],
    )
    async def test_invalid_input(self, embedder, store, args):
        registry = make_registry(embedder, store)

        result = await registry.execute_tool(TOOL_NAME, args)

        assert result.is_error is True
        assert result.content[0].startswith("Invalid input received:")
        assert embedder.calls == []


class EchoInput(BaseModel):
    text: str


class EchoOutput(BaseModel):
    content: list
    is_error: bool = False


class TestRegistry:
    def _registry(self, handler, timeout=5) -> ToolRegistry:
        registry = ToolRegistry(timeout=timeout)
        registry.register(
            Tool(
                name="echo",
                description="Echo text back",
                input_model=EchoInput,
                output_model=EchoOutput,
                handler=handler,
            )
        )
        return registry

    async def test_unknown_tool(self):
        result = await ToolRegistry().execute_tool("missing", {})

        assert result.is_error is True
        assert "missing" in result.content[0]

    async def test_describe_tools(self, embedder, store):
        registry = make_registry(embedder, store)

        (description,) = registry.describe_tools()

        assert description["name"] == TOOL_NAME
        assert "resultCount" in description["input_schema"]["properties"]
        assert description["input_schema"]["required"] == ["query"]

    async def test_handler_exception_becomes_error_result(self):
        async def handler(args):
            raise RuntimeError("kaboom")

        result = await self._registry(handler).execute_tool("echo", {"text": "hi"})

        assert result.is_error is True
        assert result.content == ['Error executing tool "echo": kaboom']

    async def test_timeout(self):
        async def handler(args):
            await asyncio.sleep(1)
            return EchoOutput(content=[args.text])

        result = await self._registry(handler, timeout=0.01).execute_tool("echo", {"text": "hi"})

        assert result.is_error is True
        assert "timeout" in result.content[0]

    async def test_empty_content_replaced(self):
        async def handler(args):
            return EchoOutput(content=[])

        result = await self._registry(handler).execute_tool("echo", {"text": "hi"})

        assert result.content == ["Tool 'echo' returned no content"]
