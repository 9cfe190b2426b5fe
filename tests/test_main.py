"""Tests for the Quart tool server."""
import pytest

from fabric_docs.main import create_app
from fabric_docs.rag.records import ChunkRecord
from fabric_docs.tools.ask_docs import NOT_READY_MESSAGE, TOOL_NAME

from tests.conftest import FakeEmbedder


@pytest.fixture
async def seeded_store(embedder, store):
    await store.upsert([
        ChunkRecord(
            id="btn-section-usage",
            vector=await embedder.embed("button usage"),
            text="Press it.",
            metadata={
                "title": "Button",
                "file_path": "components/button.md",
                "section": "How to use",
                "text_content": "Press it.",
            },
        )
    ])
    return store


@pytest.fixture
async def client(embedder, seeded_store):
    app = create_app(embedder=embedder, vector_store=seeded_store, validate_on_startup=False)
    async with app.test_app() as test_app:
        yield test_app.test_client()


async def test_list_tools(client):
    response = await client.get("/tools")

    assert response.status_code == 200
    data = await response.get_json()
    assert [tool["name"] for tool in data["tools"]] == [TOOL_NAME]


async def test_call_tool(client):
    response = await client.post(
        f"/tools/{TOOL_NAME}", json={"query": "button usage", "resultCount": 1}
    )

    assert response.status_code == 200
    data = await response.get_json()
    assert data["isError"] is False
    assert data["content"] == [
        "Title: Button\n"
        "Source: components/button.md\n"
        "Section: How to use\n"
        "Similarity: 1.0000\n\n"
        "Press it."
    ]


async def test_invalid_arguments_are_error_shaped(client):
    response = await client.post(f"/tools/{TOOL_NAME}", json={"query": ""})

    assert response.status_code == 200
    data = await response.get_json()
    assert data["isError"] is True
    assert data["content"][0].startswith("Invalid input received:")


async def test_non_object_body(client):
    response = await client.post(f"/tools/{TOOL_NAME}", json=["not", "an", "object"])

    assert response.status_code == 400
    assert (await response.get_json())["isError"] is True


async def test_unknown_tool(client):
    response = await client.post("/tools/nope", json={})

    assert response.status_code == 404
    assert (await response.get_json())["isError"] is True


async def test_health(client):
    live = await client.get("/health/live")
    ready = await client.get("/health/ready")

    assert live.status_code == 200
    assert ready.status_code == 200
    assert (await ready.get_json())["status"] == "healthy"


async def test_not_ready_before_warm_up(store):
    app = create_app(embedder=FakeEmbedder(ready=False), vector_store=store, validate_on_startup=False)
    client = app.test_client()

    ready = await client.get("/health/ready")
    response = await client.post(f"/tools/{TOOL_NAME}", json={"query": "buttons"})

    assert ready.status_code == 503
    assert (await response.get_json()) == {"content": [NOT_READY_MESSAGE], "isError": True}
