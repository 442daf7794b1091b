"""Tests for the product comparison engine."""

import pytest

from specscope_mcp.comparison import (
    EMPTY_COMPARISON_MESSAGE,
    ProductComparison,
    decode_compare_param,
    deserialize_comparison,
    encode_compare_param,
    format_spec_name,
    serialize_comparison,
)
from specscope_mcp.models import RawRecord


def _product(product_id, **specs):
    return {"id": product_id, "title": f"Product {product_id}", "specifications": specs}


@pytest.fixture
def comparison():
    return ProductComparison()


def _held_ids(comparison):
    return [p.id for p in comparison.get_products()]


class TestAddRemove:
    """Tests for capacity, uniqueness and removal."""

    def test_capacity_scenario(self, comparison):
        for i in range(1, 5):
            assert comparison.add_product(_product(i)) is True
        assert comparison.add_product(_product(5)) is False
        assert _held_ids(comparison) == [1, 2, 3, 4]
        assert comparison.count == 4

        assert comparison.remove_product(1) is True
        assert comparison.add_product(_product(5)) is True
        assert _held_ids(comparison) == [2, 3, 4, 5]

    def test_duplicate_rejected(self, comparison):
        assert comparison.add_product(_product("a")) is True
        assert comparison.add_product(_product("a")) is False
        assert comparison.count == 1

    @pytest.mark.parametrize("product", [None, {}, {"title": "No id"}, {"id": ""}, "pump", 42])
    def test_invalid_rejected(self, comparison, product):
        assert comparison.add_product(product) is False
        assert comparison.count == 0

    def test_accepts_raw_record(self, comparison):
        record = RawRecord.from_dict(_product(7))
        assert comparison.add_product(record) is True
        assert comparison.get_products()[0] is record

    def test_remove_missing(self, comparison):
        comparison.add_product(_product(1))
        assert comparison.remove_product(99) is False
        assert comparison.count == 1

    def test_clear(self, comparison):
        comparison.add_product(_product(1))
        comparison.clear()
        assert comparison.count == 0

    def test_get_products_is_copy(self, comparison):
        comparison.add_product(_product(1))
        comparison.get_products().clear()
        assert comparison.count == 1

    def test_custom_capacity(self):
        small = ProductComparison(max_products=2)
        assert small.add_product(_product(1)) and small.add_product(_product(2))
        assert small.add_product(_product(3)) is False


class TestSpecificationKeys:
    """Tests for get_all_specification_keys and is_different_value."""

    def test_union_sorted_and_present_only(self, comparison):
        comparison.add_product(_product(1, performance={"rpm": {"value": "1800"}}, dimensions={"width": {"value": " "}}))
        comparison.add_product(_product(2, dimensions={"length": {"min": "1", "max": "2"}}, materials={"seal": {"range": "a-b"}}))
        assert comparison.get_all_specification_keys() == [
            "dimensions.length", "materials.seal", "performance.rpm",
        ]

    def test_equal_values_not_different(self, comparison):
        comparison.add_product(_product(1, performance={"rpm": {"value": "1800"}}))
        comparison.add_product(_product(2, performance={"rpm": {"value": "1800"}}))
        assert comparison.is_different_value("performance.rpm") is False

    def test_differing_values(self, comparison):
        comparison.add_product(_product(1, performance={"rpm": {"value": "1800"}}))
        comparison.add_product(_product(2, performance={"rpm": {"value": "3600"}}))
        assert comparison.is_different_value("performance.rpm") is True

    def test_missing_values_excluded(self, comparison):
        comparison.add_product(_product(1, performance={"rpm": {"value": "1800"}}))
        comparison.add_product(_product(2))
        comparison.add_product(_product(3, performance={"rpm": {"value": ""}}))
        assert comparison.is_different_value("performance.rpm") is False

    def test_zero_is_a_value(self, comparison):
        comparison.add_product(_product(1, electrical={"leakage": {"value": "0"}}))
        comparison.add_product(_product(2, electrical={"leakage": {"value": "0.1"}}))
        assert comparison.is_different_value("electrical.leakage") is True


class TestRenderComparisonData:
    """Tests for render_comparison_data."""

    def test_empty_state(self, comparison):
        matrix = comparison.render_comparison_data()
        assert matrix.empty is True
        assert matrix.rows == []
        assert matrix.to_dict() == {
            "empty": True, "products": [], "rows": [], "message": EMPTY_COMPARISON_MESSAGE,
        }

    def test_rows_and_cells(self, comparison):
        comparison.add_product(_product(
            1,
            performance={"max_pressure": {"value": "150", "unit": "PSI", "tolerance": "±2%"}},
            dimensions={"weight": {"value": "20", "unit": "kg"}},
        ))
        comparison.add_product(_product(2, performance={"max_pressure": {"value": "200", "unit": "PSI"}}))

        data = comparison.render_comparison_data().to_dict()
        assert data["empty"] is False
        assert data["products"] == [{"id": 1, "title": "Product 1"}, {"id": 2, "title": "Product 2"}]
        assert [row["key"] for row in data["rows"]] == ["dimensions.weight", "performance.max_pressure"]

        weight, pressure = data["rows"]
        assert weight["label"] == "Weight"
        assert weight["different"] is False
        assert weight["cells"][1] == {"product_id": 2, "missing": True}

        assert pressure["label"] == "Max Pressure"
        assert pressure["category"] == "performance"
        assert pressure["spec"] == "max_pressure"
        assert pressure["different"] is True
        assert pressure["cells"][0] == {
            "product_id": 1, "missing": False, "value": "150", "unit": "PSI",
            "tolerance": "±2%", "range": "", "description": "",
        }

    def test_dotted_category(self, comparison):
        comparison.add_product(_product(1, **{"v1.2": {"rating": {"value": "10"}}}))
        comparison.add_product(_product(2, **{"v1.2": {"rating": {"value": "20"}}}))

        assert comparison.get_all_specification_keys() == ["v1.2.rating"]
        assert comparison.is_different_value("v1.2.rating") is True
        row = comparison.render_comparison_data().rows[0]
        assert (row.category, row.spec, row.label) == ("v1.2", "rating", "Rating")
        assert [cell.missing for cell in row.cells] == [False, False]
        assert [cell.value for cell in row.cells] == ["10", "20"]
        assert row.different is True

    def test_range_only_cell(self, comparison):
        comparison.add_product(_product(1, environment={"temp": {"range": "-20-60", "unit": "°C"}}))
        cell = comparison.render_comparison_data().rows[0].cells[0]
        assert cell.missing is False
        assert cell.value == "-20-60"
        assert cell.range == "-20-60"


class TestPersistenceHelpers:
    """Tests for id serialization and URL parameter helpers."""

    CATALOG = [_product(i) for i in range(1, 7)]

    def test_round_trip(self):
        original = deserialize_comparison(["3", "1", "5"], self.CATALOG)
        assert _held_ids(original) == [3, 1, 5]
        restored = deserialize_comparison(serialize_comparison(original), self.CATALOG)
        assert _held_ids(restored) == _held_ids(original)

    def test_unknown_ids_and_capacity(self):
        comparison = deserialize_comparison(["9", "1", "1", "2", "3", "4", "5"], self.CATALOG)
        assert serialize_comparison(comparison) == ["1", "2", "3", "4"]

    def test_compare_param(self):
        assert encode_compare_param(["1", "2", "3"]) == "1,2,3"
        assert decode_compare_param("1, 2,,3 ,") == ["1", "2", "3"]
        assert decode_compare_param(None) == []
        assert decode_compare_param("") == []


class TestFormatSpecName:
    @pytest.mark.parametrize("name,expected", [
        ("max_pressure", "Max Pressure"),
        ("flow-rate", "Flow Rate"),
        ("length", "Length"),
        ("inner__diameter", "Inner Diameter"),
        ("rpm", "Rpm"),
    ])
    def test_format(self, name: str, expected: str):
        assert format_spec_name(name) == expected
