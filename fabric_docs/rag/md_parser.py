"""Markdown parser for extracting frontmatter and body from .md files.

Handles:
- YAML frontmatter parsing
- Required field validation (id, title, area)
- Tag normalization
- Body offset bookkeeping against the raw text
"""
import re
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple
from dataclasses import dataclass, field
import yaml
import structlog

from fabric_docs.errors import MissingFrontmatterError, MissingRequiredFieldsError

logger = structlog.get_logger()

REQUIRED_FIELDS = ("id", "title", "area")


@dataclass
class FrontmatterRecord:
    """Validated document metadata from the header block."""

    id: str
    title: str
    area: str
    tags: List[str] = field(default_factory=list)
    last_updated: Optional[str] = None


@dataclass
class MarkdownDocument:
    """Parsed markdown document with frontmatter and raw body."""

    path: Path
    content: str
    frontmatter: FrontmatterRecord
    body_offset: int

    @property
    def body(self) -> str:
        """Body text after the header block, trimmed."""
        return self.content[self.body_offset :].strip()


def normalize_tags(raw: Any) -> List[str]:
    """Normalize tags given as a sequence or a comma-separated string.

    Empty and whitespace-only entries are dropped.

    Args:
        raw: Tag value from frontmatter (str, list, tuple or None)

    Returns:
        List of trimmed, non-empty tag strings
    """
    if raw is None:
        return []
    if isinstance(raw, str):
        items = raw.split(",")
    elif isinstance(raw, (list, tuple, set)):
        items = raw
    else:
        items = [raw]
    return [str(item).strip() for item in items if item is not None and str(item).strip()]


def _scalar_to_str(value: Any) -> Optional[str]:
    """Render a YAML scalar as a string; None for empty or non-scalar values."""
    if value is None or isinstance(value, (dict, list, tuple, set, bool)):
        return None
    if hasattr(value, "isoformat"):
        value = value.isoformat()
    text = str(value).strip()
    return text or None


class MarkdownParser:
    """Parser for markdown documents with a required frontmatter header."""

    # Header block must open on the very first line
    FRONTMATTER_PATTERN = re.compile(
        r"\A---[ \t]*\r?\n(.*?)\r?\n---[ \t]*(?:\r?\n|\Z)", re.DOTALL
    )

    def split_frontmatter(self, content: str) -> Tuple[Optional[Dict[str, Any]], int]:
        """Split raw text into a parsed header mapping and the body offset.

        Args:
            content: Full markdown content

        Returns:
            Tuple of (mapping or None, offset right after the header block).
            The offset is 0 when no header block exists.
        """
        match = self.FRONTMATTER_PATTERN.match(content)

        if not match:
            return None, 0

        yaml_content = match.group(1)
        try:
            data = yaml.safe_load(yaml_content)
        except yaml.YAMLError as e:
            logger.warning(
                "frontmatter_parse_error",
                error=str(e),
                yaml_preview=yaml_content[:100],
            )
            return None, match.end()

        if not isinstance(data, dict):
            logger.warning("frontmatter_not_a_mapping", yaml_preview=yaml_content[:100])
            return None, match.end()

        return data, match.end()

    def validate_frontmatter(self, data: Dict[str, Any], path: str) -> FrontmatterRecord:
        """Build a FrontmatterRecord, checking required fields.

        Args:
            data: Parsed header mapping
            path: Source path, for error reporting

        Returns:
            FrontmatterRecord with normalized tags

        Raises:
            MissingRequiredFieldsError: If id, title or area is missing or empty
        """
        values = {name: _scalar_to_str(data.get(name)) for name in REQUIRED_FIELDS}
        missing = [name for name in REQUIRED_FIELDS if values[name] is None]
        if missing:
            raise MissingRequiredFieldsError(path, missing)

        return FrontmatterRecord(
            id=values["id"],
            title=values["title"],
            area=values["area"],
            tags=normalize_tags(data.get("tags")),
            last_updated=_scalar_to_str(data.get("lastUpdated")),
        )

    def extract_frontmatter(
        self, content: str, path: str = "<memory>"
    ) -> Tuple[Optional[FrontmatterRecord], int]:
        """Extract validated frontmatter without raising.

        Args:
            content: Full markdown content
            path: Source path, for diagnostics

        Returns:
            Tuple of (FrontmatterRecord or None, body offset)
        """
        data, offset = self.split_frontmatter(content)
        if data is None:
            logger.warning("frontmatter_missing", path=path)
            return None, offset
        try:
            return self.validate_frontmatter(data, path), offset
        except MissingRequiredFieldsError as e:
            logger.warning(
                "frontmatter_required_fields_missing",
                path=path,
                missing_fields=e.missing_fields,
            )
            return None, offset

    def parse_text(self, content: str, path: Path) -> MarkdownDocument:
        """Parse markdown text that was already read from disk.

        Args:
            content: Full markdown content
            path: Path the content came from

        Returns:
            MarkdownDocument

        Raises:
            MissingFrontmatterError: If there is no parseable header block
            MissingRequiredFieldsError: If required fields are missing
        """
        data, offset = self.split_frontmatter(content)
        if data is None:
            raise MissingFrontmatterError(str(path))

        record = self.validate_frontmatter(data, str(path))

        logger.debug(
            "markdown_parsed",
            path=str(path),
            doc_id=record.id,
            body_offset=offset,
            content_length=len(content),
        )

        return MarkdownDocument(
            path=path,
            content=content,
            frontmatter=record,
            body_offset=offset,
        )

    def parse_file(self, file_path: Path) -> MarkdownDocument:
        """Read and parse a markdown file.

        Args:
            file_path: Path to the markdown file

        Returns:
            MarkdownDocument with parsed frontmatter

        Raises:
            FileNotFoundError: If file doesn't exist
            UnicodeDecodeError: If file encoding is invalid
            SkippableDocumentError: If the frontmatter is unusable
        """
        if not file_path.exists():
            raise FileNotFoundError(f"Markdown file not found: {file_path}")

        try:
            content = file_path.read_text(encoding="utf-8-sig")
        except UnicodeDecodeError as e:
            logger.error("markdown_encoding_error", path=str(file_path), error=str(e))
            raise

        return self.parse_text(content, file_path)
