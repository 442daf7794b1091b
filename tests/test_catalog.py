"""Tests for catalog loading and the catalog query surface."""

import json

import pytest

from specscope_mcp.catalog import CatalogFormatError, SpecCatalog, load_catalog_file, parse_catalog_payload


PRODUCTS = [
    {
        "id": "pump-a",
        "title": "Industrial Pump A",
        "specifications": {"performance": {"max_pressure": {"value": "150", "unit": "PSI"}}},
    },
    {
        "id": "pump-b",
        "title": "Industrial Pump B",
        "specifications": {
            "performance": {"max_pressure": {"value": "200", "unit": "PSI"}},
            "materials": {"housing": {"value": "Stainless Steel"}},
        },
    },
    {"id": 3, "title": "Hose Clamp", "specifications": {"dimensions": {"diameter": {"range": "10-16", "unit": "mm"}}}},
]


@pytest.fixture
def catalog():
    return SpecCatalog(parse_catalog_payload(PRODUCTS))


class TestParseCatalogPayload:
    """Tests for parse_catalog_payload and load_catalog_file."""

    def test_list_payload(self):
        assert [r.id for r in parse_catalog_payload(PRODUCTS)] == ["pump-a", "pump-b", 3]

    def test_products_object(self):
        assert len(parse_catalog_payload({"products": PRODUCTS})) == 3

    def test_skips_entries_without_id(self):
        records = parse_catalog_payload([{"title": "x"}, None, {"id": "", "title": "y"}, PRODUCTS[0]])
        assert [r.id for r in records] == ["pump-a"]

    @pytest.mark.parametrize("payload", [None, "products", {"items": []}, {"products": {}}])
    def test_bad_shape(self, payload):
        with pytest.raises(CatalogFormatError):
            parse_catalog_payload(payload)

    def test_load_file(self, tmp_path):
        path = tmp_path / "catalog.json"
        path.write_text(json.dumps({"products": PRODUCTS}), encoding="utf-8")
        assert len(load_catalog_file(path)) == 3

    def test_load_file_invalid_json(self, tmp_path):
        path = tmp_path / "catalog.json"
        path.write_text("{oops", encoding="utf-8")
        with pytest.raises(CatalogFormatError):
            load_catalog_file(path)


class TestSpecCatalog:
    """Tests for SpecCatalog queries."""

    def test_get_by_string_id(self, catalog):
        assert catalog.get("3").title == "Hose Clamp"
        assert catalog.get(3).title == "Hose Clamp"
        assert catalog.get("missing") is None

    def test_search_range(self, catalog):
        result = catalog.search(ranges=[{"key": "performance.max_pressure", "min": 175, "max": 250}])
        assert [r["id"] for r in result["results"]] == ["pump-b"]
        assert result["total"] == 1
        assert result["filters_active"] is True
        assert "rejected_ranges" not in result

    def test_search_reports_rejected_ranges(self, catalog):
        bad = [{"key": "performance.max_pressure", "min": 300, "max": 100}, {"min": 1, "max": 2}]
        result = catalog.search(ranges=bad)
        assert result["rejected_ranges"] == bad
        assert result["filters_active"] is False
        assert result["total"] == 3

    def test_search_repeated_key_last_wins(self, catalog):
        first = {"key": "performance.max_pressure", "min": 100, "max": 160}
        second = {"key": "performance.max_pressure", "min": 175, "max": 250}
        result = catalog.search(ranges=[first, second])
        assert [r["id"] for r in result["results"]] == ["pump-b"]
        assert result["rejected_ranges"] == [first]

    def test_search_invalid_repeat_keeps_earlier(self, catalog):
        valid = {"key": "performance.max_pressure", "min": 175, "max": 250}
        invalid = {"key": "performance.max_pressure", "min": 250, "max": 175}
        result = catalog.search(ranges=[valid, invalid])
        assert [r["id"] for r in result["results"]] == ["pump-b"]
        assert result["rejected_ranges"] == [invalid]

    def test_search_does_not_share_filters(self, catalog):
        catalog.search(query="stainless")
        assert catalog.search()["total"] == 3

    def test_search_pagination(self, catalog):
        result = catalog.search(limit=2, offset=1)
        assert [r["id"] for r in result["results"]] == ["pump-b", 3]
        assert result["page_info"] == {"limit": 2, "offset": 1, "returned": 2}

    def test_search_query_too_long(self, catalog):
        assert "error" in catalog.search(query="x" * 201)

    def test_search_result_shape(self, catalog):
        result = catalog.search(query="steel", categories=["materials"])["results"][0]
        assert result["id"] == "pump-b"
        assert result["matched_keys"] == ["materials.housing", "materials"]
        assert "materials.housing" in result["highlighted"]
        assert result["specifications"]["materials"]["housing"]["value"] == "Stainless Steel"

    def test_filter_options(self, catalog):
        options = catalog.filter_options()
        assert options["categories"] == ["dimensions", "materials", "performance"]
        assert options["numeric_specs"]["dimensions.diameter"] == {"min": 10, "max": 16, "unit": "mm"}
        assert options["numeric_specs"]["performance.max_pressure"]["max"] == 200

    def test_compare(self, catalog):
        data = catalog.compare(["pump-b", "pump-a", "nope"])
        assert data["product_ids"] == ["pump-b", "pump-a"]
        assert data["not_added"] == ["nope"]
        pressure = next(row for row in data["rows"] if row["key"] == "performance.max_pressure")
        assert pressure["different"] is True
        housing = next(row for row in data["rows"] if row["key"] == "materials.housing")
        assert housing["cells"][1] == {"product_id": "pump-a", "missing": True}

    def test_compare_nothing(self, catalog):
        data = catalog.compare([])
        assert data["empty"] is True
        assert data["product_ids"] == []
