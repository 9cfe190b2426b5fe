"""Tools package."""
from fabric_docs.tools.registry import Tool, ToolResult, ToolRegistry
from fabric_docs.tools.ask_docs import build_ask_documentation_tool

__all__ = ["Tool", "ToolResult", "ToolRegistry", "build_ask_documentation_tool"]
