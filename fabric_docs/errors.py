"""Exception hierarchy for the documentation index.

Three families:
- SkippableDocumentError: one document is unusable, the run continues
- TransientProviderError: the embedding provider or vector store failed
- ConfigurationError: required settings are missing, fatal at startup
"""
from typing import Any, Dict, List, Optional


class AppError(Exception):
    """Base exception for all application errors."""

    def __init__(self, message: str, context: Optional[Dict[str, Any]] = None):
        """Initialize with a message and optional debugging context.

        Args:
            message: Human-readable error message
            context: Extra key/value pairs for logs
        """
        self.message = message
        self.context = context or {}
        super().__init__(message)


class ConfigurationError(AppError):
    """Raised when required configuration is absent or invalid."""


class SkippableDocumentError(AppError):
    """A document cannot be indexed and contributes zero chunks."""

    def __init__(self, path: str, reason: str, context: Optional[Dict[str, Any]] = None):
        context = dict(context or {})
        context["path"] = path
        super().__init__(f"Skipping {path}: {reason}", context)
        self.path = path
        self.reason = reason


class MissingFrontmatterError(SkippableDocumentError):
    """No header block, or the header block is not a YAML mapping."""

    def __init__(self, path: str, reason: str = "no frontmatter found"):
        super().__init__(path, reason)


class MissingRequiredFieldsError(SkippableDocumentError):
    """The header block lacks one or more required fields."""

    def __init__(self, path: str, missing_fields: List[str]):
        super().__init__(
            path,
            f"missing required frontmatter fields: {', '.join(missing_fields)}",
            {"missing_fields": list(missing_fields)},
        )
        self.missing_fields = list(missing_fields)


class NoSectionsError(SkippableDocumentError):
    """Splitting left no non-empty section."""

    def __init__(self, path: str):
        super().__init__(path, "no content sections found")


class TransientProviderError(AppError):
    """An external call (embedding or vector store) failed."""


class EmbeddingError(TransientProviderError):
    """Embedding generation failed or returned an unusable vector."""


class VectorStoreError(TransientProviderError):
    """A vector store operation failed."""


class ToolExecutionError(AppError):
    """A registered tool failed while executing."""

    def __init__(
        self,
        tool_name: str,
        message: str,
        context: Optional[Dict[str, Any]] = None,
    ):
        context = dict(context or {})
        context["tool_name"] = tool_name
        super().__init__(f'Error executing tool "{tool_name}": {message}', context)
        self.tool_name = tool_name
