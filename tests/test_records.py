"""Tests for chunk record building."""
from fabric_docs.rag.chunker import Section
from fabric_docs.rag.md_parser import FrontmatterRecord
from fabric_docs.rag.records import build_chunk_record, make_chunk_id, sanitize_section_name


def enriched(name="Usage", text="Body", heading=None) -> Section:
    heading = heading or name
    return Section(
        name=name,
        text=text,
        char_start=0,
        char_end=len(text),
        heading=heading,
        embed_text=f"{heading}\n\n{text}",
    )


FRONTMATTER = FrontmatterRecord(id="btn", title="Button", area="components", tags=["a", "b"])


class TestSanitize:
    def test_lowercases_and_hyphenates(self):
        assert sanitize_section_name("Props & Events") == "props-events"

    def test_trims_hyphens(self):
        assert sanitize_section_name("  --Usage!! ") == "usage"

    def test_keeps_existing_hyphens_and_digits(self):
        assert sanitize_section_name("step-2") == "step-2"

    def test_empty_falls_back(self):
        assert sanitize_section_name("!!!") == "content"
        assert sanitize_section_name("") == "content"

    def test_default_section_name(self):
        assert make_chunk_id("btn", "default content") == "btn-section-default-content"


class TestBuildChunkRecord:
    def test_metadata_fields(self):
        record = build_chunk_record(
            FRONTMATTER, enriched(heading="How to use"), "components/button.md", [0.1, 0.2]
        )

        assert record.id == "btn-section-usage"
        assert record.text == "Body"
        assert record.vector == [0.1, 0.2]
        assert record.metadata == {
            "doc_id": "btn",
            "title": "Button",
            "area": "components",
            "tags": ["a", "b"],
            "file_path": "components/button.md",
            "chunk_id": "btn-section-usage",
            "section": "How to use",
            "section_name": "Usage",
            "text_content": "Body",
        }

    def test_last_updated_absent_not_empty(self):
        record = build_chunk_record(FRONTMATTER, enriched(), "b.md", [1.0])

        assert "last_updated" not in record.metadata

    def test_last_updated_present(self):
        frontmatter = FrontmatterRecord(
            id="btn", title="Button", area="components", last_updated="2024-01-05"
        )

        record = build_chunk_record(frontmatter, enriched(), "b.md", [1.0])

        assert record.metadata["last_updated"] == "2024-01-05"

    def test_empty_embed_text_skipped(self):
        section = enriched()
        section.embed_text = "   "

        assert build_chunk_record(FRONTMATTER, section, "b.md", [1.0]) is None

    def test_stable_ids(self):
        first = build_chunk_record(FRONTMATTER, enriched(), "b.md", [1.0])
        second = build_chunk_record(FRONTMATTER, enriched(), "b.md", [1.0])

        assert first.id == second.id
