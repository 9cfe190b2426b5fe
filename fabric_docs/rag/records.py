"""Chunk records: the unit stored in the vector index."""
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from fabric_docs.rag.chunker import Section
from fabric_docs.rag.md_parser import FrontmatterRecord

FALLBACK_SECTION_SLUG = "content"

_SLUG_INVALID = re.compile(r"[^a-z0-9-]+")


@dataclass
class ChunkRecord:
    """One section ready for upsert: id, vector, display text and metadata."""

    id: str
    vector: List[float]
    text: str
    metadata: Dict[str, Any] = field(default_factory=dict)


def sanitize_section_name(name: str) -> str:
    """Turn a section name into an id-safe slug.

    "Props & Events" -> "props-events". Empty results fall back to "content".
    """
    slug = _SLUG_INVALID.sub("-", name.lower()).strip("-")
    return slug or FALLBACK_SECTION_SLUG


def make_chunk_id(doc_id: str, section_name: str) -> str:
    """Deterministic chunk id, stable across re-indexing runs."""
    return f"{doc_id}-section-{sanitize_section_name(section_name)}"


def build_metadata(
    frontmatter: FrontmatterRecord,
    section: Section,
    file_path: str,
    chunk_id: str,
) -> Dict[str, Any]:
    """Metadata stored alongside the vector.

    last_updated is left out entirely when the source omits it.
    """
    metadata: Dict[str, Any] = {
        "doc_id": frontmatter.id,
        "title": frontmatter.title,
        "area": frontmatter.area,
        "tags": list(frontmatter.tags),
        "file_path": file_path,
        "chunk_id": chunk_id,
        "section": section.heading or section.name,
        "section_name": section.name,
        "text_content": section.text,
    }
    if frontmatter.last_updated is not None:
        metadata["last_updated"] = frontmatter.last_updated
    return metadata


def build_chunk_record(
    frontmatter: FrontmatterRecord,
    section: Section,
    file_path: str,
    vector: List[float],
) -> Optional[ChunkRecord]:
    """Assemble a ChunkRecord for an enriched section.

    Args:
        frontmatter: Validated document frontmatter
        section: Section after enrichment (heading and embed_text set)
        file_path: Source path relative to the docs root
        vector: Embedding of section.embed_text

    Returns:
        ChunkRecord, or None when the section has nothing to embed
    """
    if not (section.embed_text or "").strip():
        return None

    chunk_id = make_chunk_id(frontmatter.id, section.name)
    return ChunkRecord(
        id=chunk_id,
        vector=list(vector),
        text=section.text,
        metadata=build_metadata(frontmatter, section, file_path, chunk_id),
    )
