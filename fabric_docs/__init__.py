"""Semantic search over a Markdown documentation set, exposed as a tool."""

__version__ = "1.0.0"
