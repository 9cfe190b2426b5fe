"""Tests for startup configuration checks."""
from pathlib import Path

import pytest

from fabric_docs import config
from fabric_docs.errors import ConfigurationError


@pytest.fixture
def data_dir(tmp_path: Path, monkeypatch) -> Path:
    monkeypatch.setattr(config, "DATA_DIR", tmp_path)
    monkeypatch.setattr(config, "VECTOR_INDEX_PATH", tmp_path / "vectors.index")
    monkeypatch.setattr(config, "METADATA_PATH", tmp_path / "metadata.json")
    return tmp_path


def test_indexing_requires_docs_dir(tmp_path: Path):
    with pytest.raises(ConfigurationError) as exc_info:
        config.validate_config(for_indexing=True, docs_path=tmp_path / "missing")

    assert "Docs directory not found" in exc_info.value.message


def test_indexing_ok(tmp_path: Path):
    config.validate_config(for_indexing=True, docs_path=tmp_path)


def test_serving_requires_index(data_dir: Path):
    with pytest.raises(ConfigurationError, match="Run scripts/reindex.py first"):
        config.validate_config()


def test_serving_ok(data_dir: Path):
    (data_dir / "vectors.index").write_bytes(b"")
    (data_dir / "metadata.json").write_text("{}")

    config.validate_config()


def test_all_problems_reported(tmp_path: Path, monkeypatch):
    monkeypatch.setattr(config, "EMBEDDING_MODEL", " ")
    monkeypatch.setattr(config, "UPSERT_BATCH_SIZE", 0)
    monkeypatch.setattr(config, "LOG_LEVEL", "LOUD")

    with pytest.raises(ConfigurationError) as exc_info:
        config.validate_config(for_indexing=True, docs_path=tmp_path)

    problems = exc_info.value.context["problems"]
    assert len(problems) == 3
    assert "EMBEDDING_MODEL is not set" in problems
    assert any(p.startswith("UPSERT_BATCH_SIZE") for p in problems)
    assert any(p.startswith("LOG_LEVEL") for p in problems)
