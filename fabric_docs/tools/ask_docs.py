"""ask_documentation tool: semantic search over the indexed docs."""
from typing import Awaitable, Callable, List
from pydantic import BaseModel, ConfigDict, Field, field_validator
import structlog

from fabric_docs.errors import TransientProviderError
from fabric_docs.rag.retriever import Retriever, format_matches
from fabric_docs.tools.registry import Tool

logger = structlog.get_logger()

TOOL_NAME = "ask_documentation"
NOT_READY_MESSAGE = "Embedding model is not ready. Please try again later."


class AskDocumentationInput(BaseModel):
    """Input for the ask_documentation tool."""
    model_config = ConfigDict(populate_by_name=True)

    query: str = Field(
        ..., description="The natural language question or topic to search for in the docs."
    )
    result_count: int = Field(
        8,
        gt=0,
        alias="resultCount",
        description="The maximum number of relevant document chunks to return.",
    )

    @field_validator("query")
    @classmethod
    def query_not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("query must not be empty")
        return value


class AskDocumentationOutput(BaseModel):
    """Output from the ask_documentation tool."""
    model_config = ConfigDict(populate_by_name=True)

    content: List[str]
    is_error: bool = Field(False, alias="isError")


AskDocumentationHandler = Callable[[AskDocumentationInput], Awaitable[AskDocumentationOutput]]


def create_ask_documentation_handler(retriever: Retriever) -> AskDocumentationHandler:
    """Build the tool handler around an injected retriever.

    Readiness comes from the retriever's embedder, checked on every call.
    """

    async def handler(args: AskDocumentationInput) -> AskDocumentationOutput:
        logger.info(
            "ask_documentation_called",
            query_preview=args.query[:100],
            result_count=args.result_count,
        )

        if not retriever.embedder.is_ready:
            logger.error("embedding_model_not_ready")
            return AskDocumentationOutput(content=[NOT_READY_MESSAGE], is_error=True)

        try:
            matches = await retriever.retrieve(args.query, top_k=args.result_count)
        except TransientProviderError as e:
            logger.error(
                "rag_pipeline_failed",
                error=str(e),
                error_type=type(e).__name__,
                query_preview=args.query[:100],
            )
            return AskDocumentationOutput(
                content=[f"Error during search: {e.message}"], is_error=True
            )

        return AskDocumentationOutput(content=format_matches(matches))

    return handler


def build_ask_documentation_tool(retriever: Retriever) -> Tool:
    """Tool definition ready for ToolRegistry.register()."""
    return Tool(
        name=TOOL_NAME,
        description="Queries the indexed documentation using semantic search.",
        input_model=AskDocumentationInput,
        output_model=AskDocumentationOutput,
        handler=create_ask_documentation_handler(retriever),
    )
