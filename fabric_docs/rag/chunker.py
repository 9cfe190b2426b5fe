"""Section-based chunking for the RAG pipeline.

Documents mark chunk boundaries with paired HTML comments:

    <!-- BEGIN-SECTION: Usage -->
    ...
    <!-- END-SECTION: Usage -->

Pairs are regular, never nested, and matched by name. Free text outside any
pair is folded into a neighbouring section instead of being dropped.
"""
import re
from typing import List, Optional
from dataclasses import dataclass
import structlog

logger = structlog.get_logger()

DEFAULT_SECTION_NAME = "default content"
SECTION_SEPARATOR = "\n\n"


@dataclass
class Section:
    """A contiguous named span of a document body."""

    name: str
    text: str
    char_start: int
    char_end: int
    index: int = 0
    heading: Optional[str] = None
    embed_text: Optional[str] = None


class SectionChunker:
    """Splits a document body on BEGIN-SECTION/END-SECTION marker pairs."""

    # The END marker must repeat the BEGIN name (back-reference)
    SECTION_PATTERN = re.compile(
        r"<!--\s*BEGIN-SECTION:[ \t]*(?P<name>[^\r\n]+?)\s*-->"
        r"(?P<body>.*?)"
        r"<!--\s*END-SECTION:[ \t]*(?P=name)\s*-->",
        re.DOTALL,
    )

    # Exactly two hashes: "### Foo" does not match
    HEADING_PATTERN = re.compile(r"^##[ \t]+(\S.*?)\s*$", re.MULTILINE)
    TRAILING_PARENTHETICAL = re.compile(r"\s*\([^()]*\)\s*$")

    def split(self, body: str) -> List[Section]:
        """Split body text into ordered sections.

        Args:
            body: Document body (text after the frontmatter), trimmed

        Returns:
            Sections in order of appearance; empty when nothing remains
        """
        body = body.strip()
        if not body:
            return []

        sections: List[Section] = []
        cursor = 0

        for match in self.SECTION_PATTERN.finditer(body):
            text = match.group("body").strip()
            preceding = body[cursor : match.start()].strip()
            if preceding:
                text = _join(preceding, text)

            sections.append(
                Section(
                    name=match.group("name").strip(),
                    text=text,
                    char_start=match.start(),
                    char_end=match.end(),
                )
            )
            cursor = match.end()

        if not sections:
            logger.debug("no_section_markers_found", body_length=len(body))
            return [
                Section(
                    name=DEFAULT_SECTION_NAME,
                    text=body,
                    char_start=0,
                    char_end=len(body),
                )
            ]

        trailing = body[cursor:].strip()
        if trailing:
            sections[-1].text = _join(sections[-1].text, trailing)

        kept = [section for section in sections if section.text]
        if len(kept) < len(sections):
            logger.debug("empty_sections_dropped", dropped=len(sections) - len(kept))

        for index, section in enumerate(kept):
            section.index = index

        return kept

    def find_heading(self, text: str) -> Optional[str]:
        """Return the first level-2 heading title in text, if any.

        A trailing parenthetical annotation is stripped: "## Props (v2)" gives
        "Props".
        """
        match = self.HEADING_PATTERN.search(text)
        if not match:
            return None
        title = self.TRAILING_PARENTHETICAL.sub("", match.group(1)).strip()
        return title or None

    def enrich(self, section: Section) -> Section:
        """Fill in heading and embed_text for a section.

        The heading falls back to the marker name. embed_text is only ever
        embedded; section.text stays the display text.
        """
        section.heading = self.find_heading(section.text) or section.name
        section.embed_text = _join(section.heading, section.text)
        return section

    def chunk_document(self, body: str) -> List[Section]:
        """Split and enrich a document body.

        Args:
            body: Document body, trimmed

        Returns:
            Enriched sections in source order
        """
        sections = [self.enrich(section) for section in self.split(body)]

        logger.debug(
            "document_sectioned",
            section_count=len(sections),
            names=[s.name for s in sections],
        )

        return sections


def _join(first: str, second: str) -> str:
    """Join two text parts with a blank line, skipping empty parts."""
    return SECTION_SEPARATOR.join(part for part in (first, second) if part)


# Singleton instance for convenience
_chunker_instance = None


def get_chunker() -> SectionChunker:
    """Get a singleton section chunker instance.

    Returns:
        SectionChunker instance
    """
    global _chunker_instance
    if _chunker_instance is None:
        _chunker_instance = SectionChunker()
    return _chunker_instance


# Convenience function
def chunk_document(body: str) -> List[Section]:
    """Split and enrich a body using the default chunker (convenience function).

    Args:
        body: Document body

    Returns:
        List of enriched Section objects
    """
    return get_chunker().chunk_document(body)
