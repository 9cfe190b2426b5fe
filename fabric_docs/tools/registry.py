"""Tool Registry for MCP-style tool calling.

Tools take a pydantic input model and return a pydantic output model with
`content` (list of display strings) and `is_error`. The registry validates
arguments, enforces a timeout and turns every failure into an error-shaped
result so a caller always gets something renderable.
"""
import asyncio
from dataclasses import dataclass, field
from typing import Callable, Awaitable, Dict, Any, List, Optional
from pydantic import BaseModel, ValidationError
import structlog

from fabric_docs import config
from fabric_docs.errors import ToolExecutionError

logger = structlog.get_logger()


@dataclass
class Tool:
    """Tool definition with input/output schemas and handler."""
    name: str
    description: str
    input_model: type[BaseModel]
    output_model: type[BaseModel]
    handler: Callable[[BaseModel], Awaitable[BaseModel]]


@dataclass
class ToolResult:
    """Result of a tool execution, in the wire shape clients expect."""
    content: List[str] = field(default_factory=list)
    is_error: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {"content": list(self.content), "isError": self.is_error}


class ToolRegistry:
    """Registry for available tools."""

    def __init__(self, timeout: Optional[float] = None):
        self.tools: Dict[str, Tool] = {}
        self._timeout = timeout or config.TOOL_TIMEOUT

    def register(self, tool: Tool) -> None:
        """Register a tool."""
        self.tools[tool.name] = tool
        logger.info("tool_registered", tool_name=tool.name)

    def get_tool(self, name: str) -> Optional[Tool]:
        """Get a tool by name."""
        return self.tools.get(name)

    def list_tools(self) -> list[Tool]:
        """List all registered tools."""
        return list(self.tools.values())

    def describe_tools(self) -> List[Dict[str, Any]]:
        """Names, descriptions and JSON input schemas of all tools."""
        return [
            {
                "name": tool.name,
                "description": tool.description,
                "input_schema": tool.input_model.model_json_schema(by_alias=True),
            }
            for tool in self.tools.values()
        ]

    async def execute_tool(self, tool_name: str, args: Dict[str, Any]) -> ToolResult:
        """Execute a tool with the given arguments.

        Args:
            tool_name: Name of the tool to execute
            args: Arguments to pass to the tool

        Returns:
            ToolResult; is_error is set on any failure
        """
        tool = self.get_tool(tool_name)

        if not tool:
            logger.error("tool_not_found", tool_name=tool_name)
            return ToolResult(content=[f"Tool '{tool_name}' not found"], is_error=True)

        try:
            validated_input = tool.input_model.model_validate(args or {})
        except ValidationError as e:
            logger.error("tool_input_invalid", tool_name=tool_name, errors=e.errors())
            return ToolResult(
                content=[f"Invalid input received: {_summarize(e)}"], is_error=True
            )

        try:
            async with asyncio.timeout(self._timeout):
                result = await tool.handler(validated_input)

        except asyncio.TimeoutError:
            logger.error("tool_timeout", tool_name=tool_name, timeout=self._timeout)
            return ToolResult(
                content=[f"Tool execution timeout after {self._timeout}s"],
                is_error=True,
            )

        except Exception as e:
            error = ToolExecutionError(tool_name, str(e))
            logger.exception("tool_execution_failed", tool_name=tool_name, error=str(e))
            return ToolResult(content=[error.message], is_error=True)

        tool_result = ToolResult(
            content=list(getattr(result, "content", []) or []),
            is_error=bool(getattr(result, "is_error", False)),
        )
        if not tool_result.content:
            tool_result.content = [f"Tool '{tool_name}' returned no content"]

        logger.info(
            "tool_executed",
            tool_name=tool_name,
            is_error=tool_result.is_error,
            items=len(tool_result.content),
        )

        return tool_result


def _summarize(error: ValidationError) -> str:
    parts = []
    for item in error.errors():
        location = ".".join(str(part) for part in item.get("loc", ())) or "input"
        parts.append(f"{location}: {item.get('msg', 'invalid')}")
    return "; ".join(parts)
