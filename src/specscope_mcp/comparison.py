"""Side-by-side product comparison.

Holds up to MAX_COMPARISON_PRODUCTS records (unique by id) and computes a
comparison matrix: one row per "category.spec" key present in any held
product, one cell per product, and a flag telling whether the present
values differ.
"""

import logging
import re
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any

from .config import MAX_COMPARISON_PRODUCTS
from .models import RawRecord, SpecificationValue, full_key
from .normalize import iter_specifications

logger = logging.getLogger(__name__)

EMPTY_COMPARISON_MESSAGE = "No products selected for comparison."

_WORD_SEPARATOR = re.compile(r"[_\-\s]+")

_KeyedSpec = tuple[str, str, SpecificationValue]


def _differs(key: str, present: list[dict[str, _KeyedSpec]]) -> bool:
    values = {specs[key][2].display_value() for specs in present if key in specs}
    return len(values) > 1


def format_spec_name(spec_name: str) -> str:
    """Format a spec key for display: 'max_pressure' -> 'Max Pressure'"""
    words = [w for w in _WORD_SEPARATOR.split(spec_name) if w]
    return " ".join(w[0].upper() + w[1:] for w in words)


@dataclass
class ComparisonCell:
    """One product's entry in a comparison row."""

    product_id: Any
    missing: bool
    value: str = ""
    unit: str = ""
    tolerance: str = ""
    range: str = ""
    description: str = ""

    @classmethod
    def from_spec(cls, product_id: Any, spec: SpecificationValue | None) -> "ComparisonCell":
        if spec is None or not spec.is_present():
            return cls(product_id=product_id, missing=True)
        return cls(
            product_id=product_id,
            missing=False,
            value=spec.display_value(),
            unit=spec.unit or "",
            tolerance=spec.tolerance or "",
            range=spec.range or "",
            description=spec.description or "",
        )

    def to_dict(self) -> dict[str, Any]:
        if self.missing:
            return {"product_id": self.product_id, "missing": True}
        return {
            "product_id": self.product_id,
            "missing": False,
            "value": self.value,
            "unit": self.unit,
            "tolerance": self.tolerance,
            "range": self.range,
            "description": self.description,
        }


@dataclass
class ComparisonRow:
    key: str
    category: str
    spec: str
    label: str
    different: bool
    cells: list[ComparisonCell]

    def to_dict(self) -> dict[str, Any]:
        return {
            "key": self.key,
            "category": self.category,
            "spec": self.spec,
            "label": self.label,
            "different": self.different,
            "cells": [cell.to_dict() for cell in self.cells],
        }


@dataclass
class ComparisonMatrix:
    """Comparison data for a rendering layer. empty=True means nothing is held."""

    empty: bool
    products: list[dict[str, Any]] = field(default_factory=list)
    rows: list[ComparisonRow] = field(default_factory=list)
    message: str = ""

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "empty": self.empty,
            "products": self.products,
            "rows": [row.to_dict() for row in self.rows],
        }
        if self.message:
            data["message"] = self.message
        return data


class ProductComparison:
    """Bounded, ordered, id-unique set of products under comparison."""

    def __init__(self, max_products: int = MAX_COMPARISON_PRODUCTS):
        self.max_products = max_products
        self._products: list[RawRecord] = []

    @property
    def count(self) -> int:
        return len(self._products)

    def get_products(self) -> list[RawRecord]:
        return list(self._products)

    def add_product(self, product: RawRecord | Mapping[str, Any] | None) -> bool:
        """Append a product. Returns False without changes if it is invalid,
        already held, or the set is full."""
        if product is None:
            logger.warning("Rejected comparison product: no product given")
            return False
        if not isinstance(product, RawRecord):
            if not isinstance(product, Mapping):
                logger.warning(f"Rejected comparison product of type {type(product).__name__}")
                return False
            product = RawRecord.from_dict(product)
        if product.id is None or product.id == "":
            logger.warning("Rejected comparison product without id")
            return False
        if len(self._products) >= self.max_products:
            logger.warning(f"Rejected product {product.id}: comparison limit of {self.max_products} reached")
            return False
        if any(p.id == product.id for p in self._products):
            logger.warning(f"Rejected product {product.id}: already in comparison")
            return False
        self._products.append(product)
        return True

    def remove_product(self, product_id: Any) -> bool:
        before = len(self._products)
        self._products = [p for p in self._products if p.id != product_id]
        return len(self._products) < before

    def clear(self) -> None:
        self._products = []

    def _present_specs(self) -> list[dict[str, _KeyedSpec]]:
        """Per held product, full key -> (category, spec key, value) for present values.

        Keys come from the spec tree, so category names containing dots resolve.
        """
        return [
            {
                full_key(category, spec_key): (category, spec_key, spec)
                for category, spec_key, spec in iter_specifications(product)
                if spec.is_present()
            }
            for product in self._products
        ]

    def get_all_specification_keys(self) -> list[str]:
        """Sorted union of full keys with a present value in at least one product."""
        keys = set()
        for specs in self._present_specs():
            keys.update(specs)
        return sorted(keys)

    def is_different_value(self, key: str) -> bool:
        """True if at least two distinct values occur among products that have the key.

        Products without a present value are left out rather than counted as different.
        """
        return _differs(key, self._present_specs())

    def render_comparison_data(self) -> ComparisonMatrix:
        if not self._products:
            return ComparisonMatrix(empty=True, message=EMPTY_COMPARISON_MESSAGE)

        present = self._present_specs()
        rows = []
        for key in self.get_all_specification_keys():
            category, spec_key, _ = next(specs[key] for specs in present if key in specs)
            cells = [
                ComparisonCell.from_spec(product.id, specs[key][2] if key in specs else None)
                for product, specs in zip(self._products, present)
            ]
            rows.append(ComparisonRow(
                key=key,
                category=category,
                spec=spec_key,
                label=format_spec_name(spec_key),
                different=_differs(key, present),
                cells=cells,
            ))

        products = [{"id": p.id, "title": p.title} for p in self._products]
        return ComparisonMatrix(empty=False, products=products, rows=rows)


# =============================================================================
# PERSISTENCE HELPERS
# =============================================================================
# Storage and URL handling live outside this module; these only convert
# between a comparison and a list of id strings.


def serialize_comparison(comparison: ProductComparison) -> list[str]:
    """Held product ids as strings, in order."""
    return [str(p.id) for p in comparison.get_products()]


def deserialize_comparison(
    product_ids: Iterable[str],
    catalog: Iterable[RawRecord | Mapping[str, Any]],
    max_products: int = MAX_COMPARISON_PRODUCTS,
) -> ProductComparison:
    """Rebuild a comparison by adding catalog products in the given id order.

    Unknown ids are skipped. Capacity and uniqueness are enforced by add_product().
    """
    by_id: dict[str, RawRecord | Mapping[str, Any]] = {}
    for product in catalog:
        product_id = product.id if isinstance(product, RawRecord) else product.get("id")
        if product_id is not None:
            by_id.setdefault(str(product_id), product)

    comparison = ProductComparison(max_products=max_products)
    for product_id in product_ids:
        product = by_id.get(str(product_id))
        if product is None:
            logger.warning(f"Product {product_id} not found in catalog, skipping")
            continue
        comparison.add_product(product)
    return comparison


def encode_compare_param(product_ids: Iterable[str]) -> str:
    """Comma-joined ids for a 'compare' query parameter."""
    return ",".join(str(product_id) for product_id in product_ids)


def decode_compare_param(value: str | None) -> list[str]:
    if not value:
        return []
    return [part.strip() for part in value.split(",") if part.strip()]
