"""Test schema and request/response models."""

from datetime import datetime, timedelta, timezone

import pytest
from whoosh import fields

from core.errors import QuerySyntaxError
from models.schemas import (
    SearchableItem,
    SearchQuery,
    SearchResult,
    item_schema,
    schema_signature,
    to_index_datetime,
)


class TestItemSchema:
    """Test the fixed index schema."""

    def test_field_set_is_closed(self):
        assert set(item_schema.names()) == {
            "id", "ocr_text", "memo", "tags", "location_name", "group_title",
            "created_at", "updated_at", "image_path",
        }

    def test_id_and_image_path_are_not_tokenized(self):
        assert isinstance(item_schema["id"], fields.ID)
        assert item_schema["id"].unique
        assert isinstance(item_schema["image_path"], fields.STORED)

    def test_text_fields_store_positions(self):
        for name in ("ocr_text", "memo", "tags", "location_name", "group_title"):
            field = item_schema[name]
            assert isinstance(field, fields.TEXT)
            assert field.stored
            assert field.format.supports("positions")

    def test_signature_detects_different_schema(self):
        other = fields.Schema(id=fields.ID(stored=True), body=fields.TEXT)
        assert schema_signature(other) != schema_signature(item_schema)
        assert schema_signature(item_schema) == schema_signature(item_schema)


class TestToIndexDatetime:
    """Test timestamp normalisation."""

    def test_naive_datetime_is_kept(self):
        value = datetime(2024, 1, 15, 12, 0)
        assert to_index_datetime(value) == value

    def test_aware_datetime_is_converted_to_utc(self):
        value = datetime(2024, 1, 15, 21, 0, tzinfo=timezone(timedelta(hours=9)))
        assert to_index_datetime(value) == datetime(2024, 1, 15, 12, 0)

    def test_iso_string_with_z_suffix(self):
        assert to_index_datetime("2024-01-15T12:00:00.000Z") == datetime(2024, 1, 15, 12, 0)

    def test_invalid_string_raises(self):
        with pytest.raises(ValueError):
            to_index_datetime("yesterday")


class TestSearchableItem:
    """Test SearchableItem parsing and document conversion."""

    def test_from_dict_accepts_camel_case(self):
        item = SearchableItem.from_dict({
            "id": "a",
            "ocrText": "invoice total 42",
            "memo": "paid",
            "tags": ["receipt", "food"],
            "locationName": "Tokyo",
            "groupTitle": None,
            "imagePath": "/img/a.jpg",
            "createdAt": "2024-01-15T12:00:00Z",
            "updatedAt": "2024-01-16T12:00:00Z",
        })

        assert item.ocr_text == "invoice total 42"
        assert item.location_name == "Tokyo"
        assert item.image_path == "/img/a.jpg"
        assert item.created_at == datetime(2024, 1, 15, 12, 0)
        assert item.updated_at == datetime(2024, 1, 16, 12, 0)

    def test_from_dict_requires_id(self):
        with pytest.raises(ValueError):
            SearchableItem.from_dict({"ocr_text": "no id"})

    def test_single_string_tag_is_one_tag(self):
        item = SearchableItem.from_dict({"id": "a", "tags": "receipt"})

        assert item.tags == ["receipt"]
        assert item.to_document()["tags"] == "receipt"

    @pytest.mark.parametrize("data", [
        {"id": "a", "ocrText": 123},
        {"id": "a", "memo": ["note"]},
        {"id": "a", "tags": ["ok", None]},
        {"id": "a", "tags": {"name": "receipt"}},
        {"id": "a", "locationName": 5},
    ])
    def test_from_dict_rejects_wrong_value_types(self, data):
        with pytest.raises(ValueError):
            SearchableItem.from_dict(data)

    def test_from_dict_requires_an_object(self):
        with pytest.raises(ValueError):
            SearchableItem.from_dict(["a", "invoice"])

    def test_document_fills_missing_optionals_with_empty_string(self, make_item):
        document = make_item("a", tags=["receipt", "food"]).to_document()

        assert document["tags"] == "receipt food"
        assert document["location_name"] == ""
        assert document["group_title"] == ""
        assert document["image_path"] == ""


class TestSearchQuery:
    """Test SearchQuery validation."""

    def test_defaults(self):
        params = SearchQuery(query="invoice")
        assert params.limit == 20
        assert params.fields is None
        assert params.tags is None

    def test_from_dict_parses_dates(self):
        params = SearchQuery.from_dict({
            "query": "x",
            "dateFrom": "2024-01-01T00:00:00Z",
            "dateTo": "2024-01-31T00:00:00+00:00",
            "limit": 5,
        })
        assert params.date_from == datetime(2024, 1, 1)
        assert params.date_to == datetime(2024, 1, 31)
        assert params.limit == 5

    @pytest.mark.parametrize("limit", [0, -1, "ten"])
    def test_invalid_limit_raises(self, limit):
        with pytest.raises(QuerySyntaxError):
            SearchQuery(query="x", limit=limit)

    def test_invalid_date_raises_query_error(self):
        with pytest.raises(QuerySyntaxError):
            SearchQuery.from_dict({"query": "x", "dateFrom": "not a date"})

    def test_missing_query_raises(self):
        with pytest.raises(QuerySyntaxError):
            SearchQuery.from_dict({"tags": ["receipt"]})

    def test_single_string_fields_and_tags_are_wrapped(self):
        params = SearchQuery(query="x", fields="memo", tags="receipt")
        assert params.fields == ["memo"]
        assert params.tags == ["receipt"]

    @pytest.mark.parametrize("data", [
        {"query": 5},
        {"query": "x", "tags": ["ok", 1]},
        {"query": "x", "fields": {"memo": True}},
    ])
    def test_from_dict_rejects_wrong_value_types(self, data):
        with pytest.raises(QuerySyntaxError):
            SearchQuery.from_dict(data)

    def test_from_dict_requires_an_object(self):
        with pytest.raises(QuerySyntaxError):
            SearchQuery.from_dict("invoice")


def test_search_result_to_dict():
    result = SearchResult(id="a", score=1.5, highlights=["memo: hi"], matched_fields=["memo"])
    assert result.to_dict() == {
        "id": "a",
        "score": 1.5,
        "highlights": ["memo: hi"],
        "matched_fields": ["memo"],
    }
