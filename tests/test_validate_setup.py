"""Tests for the index section of scripts/validate_setup.py."""
import importlib.util
from pathlib import Path
from types import SimpleNamespace

import pytest

from tests.conftest import DIMENSION

SCRIPT = Path(__file__).parent.parent / "scripts" / "validate_setup.py"


@pytest.fixture(scope="module")
def validate_setup():
    spec = importlib.util.spec_from_file_location("validate_setup", SCRIPT)
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module


def index_config(index_dir: Path) -> SimpleNamespace:
    return SimpleNamespace(
        VECTOR_INDEX_PATH=index_dir / "vectors.index",
        METADATA_PATH=index_dir / "metadata.json",
        DB_PATH=index_dir / "chunks.sqlite",
    )


async def test_consistent_index_passes(validate_setup, store):
    await store.save_index()
    errors, warnings = [], []

    validate_setup.check_index(index_config(store.index_dir), DIMENSION, errors, warnings)

    assert errors == []
    assert warnings == []


async def test_missing_metadata_is_reported(validate_setup, store):
    await store.save_index()
    store.metadata_path.unlink()
    errors = []

    validate_setup.check_index(index_config(store.index_dir), DIMENSION, errors, [])

    assert errors == ["Index metadata missing"]


async def test_corrupt_metadata_is_reported(validate_setup, store):
    await store.save_index()
    store.metadata_path.write_text("{not json", encoding="utf-8")
    errors = []

    validate_setup.check_index(index_config(store.index_dir), DIMENSION, errors, [])

    assert errors == ["Index metadata unreadable"]


async def test_dimension_mismatch_is_reported(validate_setup, store):
    await store.save_index()
    errors = []

    validate_setup.check_index(index_config(store.index_dir), DIMENSION + 1, errors, [])

    assert errors == ["Dimension mismatch"]


def test_no_index_is_a_warning(validate_setup, tmp_path: Path):
    errors, warnings = [], []

    validate_setup.check_index(index_config(tmp_path), None, errors, warnings)

    assert errors == []
    assert warnings == ["Index not built"]
