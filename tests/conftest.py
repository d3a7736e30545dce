"""Shared test fixtures."""

from datetime import datetime

import pytest

from core.engine import SearchEngine
from models.schemas import SearchableItem


@pytest.fixture
def index_dir(tmp_path):
    return tmp_path / "search_index"


@pytest.fixture
def engine(index_dir):
    """A fresh engine over an empty index, closed after the test."""
    with SearchEngine(index_dir) as search_engine:
        yield search_engine


@pytest.fixture
def make_item():
    """Factory for searchable items with sensible defaults."""

    def _make(item_id, **overrides):
        values = {
            "id": item_id,
            "ocr_text": "",
            "memo": "",
            "tags": [],
            "created_at": datetime(2024, 1, 15, 12, 0, 0),
            "updated_at": datetime(2024, 1, 15, 12, 0, 0),
        }
        values.update(overrides)
        return SearchableItem(**values)

    return _make
