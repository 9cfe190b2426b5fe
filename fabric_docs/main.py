"""Quart application exposing the documentation tools over HTTP."""
from typing import Optional

from quart import Quart, jsonify, request
import structlog

from fabric_docs import config
from fabric_docs.llm_client import OllamaEmbedder
from fabric_docs.logging_config import configure_logging
from fabric_docs.rag.retriever import Retriever
from fabric_docs.rag.store_faiss import FAISSVectorStore
from fabric_docs.tools import ToolRegistry, build_ask_documentation_tool

logger = structlog.get_logger()


def create_app(
    embedder: Optional[OllamaEmbedder] = None,
    vector_store: Optional[FAISSVectorStore] = None,
    validate_on_startup: bool = True,
) -> Quart:
    """Build the app with its dependencies injected.

    Args:
        embedder: Embedding client (default: OllamaEmbedder from config)
        vector_store: Vector store (default: FAISSVectorStore from config)
        validate_on_startup: Run config.validate_config() before serving

    Returns:
        Configured Quart app
    """
    app = Quart(__name__)

    embedder = embedder or OllamaEmbedder()
    vector_store = vector_store or FAISSVectorStore()
    retriever = Retriever(embedder, vector_store)

    registry = ToolRegistry()
    registry.register(build_ask_documentation_tool(retriever))

    app.config["TOOL_REGISTRY"] = registry
    app.config["RETRIEVER"] = retriever

    @app.before_serving
    async def startup():
        """Fail fast on bad configuration, then load the model and index."""
        if validate_on_startup:
            config.validate_config(for_indexing=False)

        if not embedder.is_ready:
            await embedder.warm_up()
        if not vector_store.is_loaded:
            await vector_store.init_or_load(embedder.dimension)

        logger.info(
            "tool_server_ready",
            tools=[tool.name for tool in registry.list_tools()],
            vector_count=vector_store.get_stats()["vector_count"],
        )

    @app.route("/tools", methods=["GET"])
    async def list_tools():
        """List registered tools.

        Returns JSON:
        {
            "tools": [{"name": ..., "description": ..., "input_schema": {...}}]
        }
        """
        return jsonify({"tools": registry.describe_tools()})

    @app.route("/tools/<tool_name>", methods=["POST"])
    async def call_tool(tool_name: str):
        """Execute a tool.

        Expects a JSON object of tool arguments, e.g.
        {"query": "How do I use the button?", "resultCount": 5}

        Returns JSON:
        {"content": ["...", ...], "isError": false}
        """
        if registry.get_tool(tool_name) is None:
            logger.error("unknown_tool_requested", tool_name=tool_name)
            return jsonify({
                "content": [f"Tool '{tool_name}' not found"],
                "isError": True,
            }), 404

        args = await request.get_json(silent=True)
        if not isinstance(args, dict):
            return jsonify({
                "content": ["Invalid input received: request body must be a JSON object"],
                "isError": True,
            }), 400

        result = await registry.execute_tool(tool_name, args)
        return jsonify(result.to_dict())

    @app.route("/health/ready")
    async def health_ready():
        """Readiness probe - embedding model warmed up and index loaded."""
        checks = {
            "status": "healthy" if retriever.is_ready else "unhealthy",
            "embedder": embedder.is_ready,
            "index": vector_store.is_loaded,
        }
        return jsonify(checks), 200 if retriever.is_ready else 503

    @app.route("/health/live")
    async def health_live():
        """Liveness probe - check if app is running."""
        return jsonify({"status": "alive"}), 200

    @app.errorhandler(404)
    async def not_found(error):
        """Handle 404 errors."""
        return jsonify({"error": "Not found"}), 404

    @app.errorhandler(500)
    async def internal_error(error):
        """Handle 500 errors."""
        logger.error("internal_server_error", error=str(error))
        return jsonify({"error": "Internal server error"}), 500

    return app


configure_logging(config.LOG_LEVEL)
app = create_app()


if __name__ == "__main__":
    # For development - run under hypercorn in production
    app.run(host=config.HOST, port=config.PORT)
