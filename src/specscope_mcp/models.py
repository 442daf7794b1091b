"""Data model for catalog records, specification values and search state."""

import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

logger = logging.getLogger(__name__)

# Optional text fields of a specification leaf, in the order they are read
_SPEC_TEXT_FIELDS = ("unit", "tolerance", "range", "min", "max", "description", "display_name")


def full_key(category: str, spec: str) -> str:
    """Canonical "category.spec" identifier used for numeric indexing and comparison."""
    return f"{category}.{spec}"


def _as_text(value: Any) -> str | None:
    """Coerce a scalar field to text. Numbers become strings, containers are dropped."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, str):
        return value
    if isinstance(value, (int, float)):
        return str(value)
    return None


def _filled(value: str | None) -> bool:
    return bool(value and value.strip())


@dataclass
class SpecificationValue:
    """One specification leaf.

    A leaf may carry a plain value ("150"), a range string ("10-50"), an
    explicit min/max pair, or a combination. Precedence between those forms
    is resolved once in parsers.numeric_projection.
    """

    value: str = ""
    unit: str | None = None
    tolerance: str | None = None
    range: str | None = None
    min: str | None = None
    max: str | None = None
    description: str | None = None
    display_name: str | None = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "SpecificationValue":
        if not isinstance(data, Mapping):
            raise ValueError(f"Specification value must be a mapping, got {type(data).__name__}")
        kwargs = {name: _as_text(data.get(name)) for name in _SPEC_TEXT_FIELDS}
        return cls(value=_as_text(data.get("value")) or "", **kwargs)

    def is_present(self) -> bool:
        """True if the leaf holds a usable value.

        Present means a non-blank value, or both min and max, or a range string.
        The string "0" counts as present.
        """
        if _filled(self.value):
            return True
        if _filled(self.min) and _filled(self.max):
            return True
        return _filled(self.range)

    def display_value(self) -> str:
        """Value shown in comparisons: value, else range, else "min-max"."""
        if _filled(self.value):
            return self.value.strip()
        if _filled(self.range):
            return self.range.strip()
        if _filled(self.min) and _filled(self.max):
            return f"{self.min.strip()}-{self.max.strip()}"
        return ""

    def to_dict(self) -> dict[str, str]:
        data = {"value": self.value}
        for name in _SPEC_TEXT_FIELDS:
            text = getattr(self, name)
            if text is not None:
                data[name] = text
        return data


@dataclass
class CategoryDefinition:
    """Presentation metadata for a category. Ignored by search and comparison."""

    name: str
    order: int = 1
    collapsible: bool = True
    description: str = ""

    @classmethod
    def from_dict(cls, key: str, data: Any) -> "CategoryDefinition":
        if not isinstance(data, Mapping):
            return cls(name=key)
        try:
            order = max(1, int(data.get("order") or 1))
        except (TypeError, ValueError):
            order = 1
        return cls(
            name=_as_text(data.get("name")) or key,
            order=order,
            collapsible=bool(data.get("collapsible", True)),
            description=_as_text(data.get("description")) or "",
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "order": self.order,
            "collapsible": self.collapsible,
            "description": self.description,
        }


CategoryMap = dict[str, dict[str, SpecificationValue]]


def parse_category_map(raw: Any, record_id: Any = None) -> tuple[CategoryMap, dict[str, CategoryDefinition]]:
    """Parse raw specification data into a CategoryMap and category definitions.

    Accepts either the CategoryMap itself or the metafield wrapper
    {"specifications": {...}, "categories": {...}}. A category that is not a
    mapping yields an empty map for the whole record; a leaf that is not a
    mapping is skipped on its own.
    """
    if raw is None:
        return {}, {}
    if not isinstance(raw, Mapping):
        logger.warning(f"Record {record_id}: specifications is {type(raw).__name__}, not a mapping")
        return {}, {}

    definitions: dict[str, CategoryDefinition] = {}
    category_data = raw
    if isinstance(raw.get("specifications"), Mapping):
        category_data = raw["specifications"]
        raw_definitions = raw.get("categories")
        if isinstance(raw_definitions, Mapping):
            definitions = {
                str(key): CategoryDefinition.from_dict(str(key), value)
                for key, value in raw_definitions.items()
            }

    specs: CategoryMap = {}
    for category, entries in category_data.items():
        if not isinstance(entries, Mapping):
            logger.warning(f"Record {record_id}: category '{category}' is not a mapping, ignoring specifications")
            return {}, definitions
        parsed: dict[str, SpecificationValue] = {}
        for spec_key, spec_value in entries.items():
            try:
                parsed[str(spec_key)] = SpecificationValue.from_dict(spec_value)
            except ValueError as e:
                logger.warning(f"Record {record_id}: {category}.{spec_key}: {e}, skipping")
        specs[str(category)] = parsed
    return specs, definitions


@dataclass
class RawRecord:
    """A catalog item as supplied by the catalog source. Never mutated by the engines."""

    id: Any
    title: str = ""
    specifications: CategoryMap = field(default_factory=dict)
    categories: dict[str, CategoryDefinition] = field(default_factory=dict)
    handle: str = ""

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "RawRecord":
        """Build a record from raw catalog data.

        Malformed specifications are logged and treated as no specifications.

        Raises:
            ValueError: If data is not a mapping
        """
        if not isinstance(data, Mapping):
            raise ValueError(f"Record must be a mapping, got {type(data).__name__}")
        record_id = data.get("id")
        specs, definitions = parse_category_map(data.get("specifications"), record_id)
        return cls(
            id=record_id,
            title=_as_text(data.get("title")) or "",
            specifications=specs,
            categories=definitions,
            handle=_as_text(data.get("handle")) or "",
        )

    def get_spec(self, key: str) -> SpecificationValue | None:
        """Look up a spec by full key. Category names may contain dots."""
        for category, entries in self.specifications.items():
            prefix = f"{category}."
            if key.startswith(prefix) and key[len(prefix):] in entries:
                return entries[key[len(prefix):]]
        return None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "id": self.id,
            "title": self.title,
            "specifications": {
                category: {spec: value.to_dict() for spec, value in entries.items()}
                for category, entries in self.specifications.items()
            },
        }
        if self.categories:
            data["categories"] = {key: d.to_dict() for key, d in self.categories.items()}
        if self.handle:
            data["handle"] = self.handle
        return data


@dataclass(frozen=True)
class NumericSpec:
    """Numeric projection of a specification leaf."""

    value: float
    unit: str
    min: float
    max: float

    def to_dict(self) -> dict[str, Any]:
        return {"value": self.value, "unit": self.unit, "min": self.min, "max": self.max}


@dataclass(frozen=True)
class RangeFilter:
    min: float
    max: float


@dataclass
class NormalizedRecord:
    """Search-ready projection of a RawRecord. Rebuilt, never updated, on re-initialize."""

    id: Any
    title: str
    specifications: CategoryMap
    searchable_text: str
    numeric_specs: dict[str, NumericSpec]
    source: RawRecord


@dataclass
class SearchFilters:
    """Filter state owned by one search engine instance."""

    text: str = ""
    ranges: dict[str, RangeFilter] = field(default_factory=dict)
    categories: list[str] = field(default_factory=list)

    @property
    def is_active(self) -> bool:
        return bool(self.text or self.ranges or self.categories)

    def to_dict(self) -> dict[str, Any]:
        return {
            "text": self.text,
            "ranges": {key: {"min": r.min, "max": r.max} for key, r in self.ranges.items()},
            "categories": list(self.categories),
        }


@dataclass
class SearchResult:
    record: NormalizedRecord
    score: float
    matched_keys: list[str]
    highlighted: dict[str, dict[str, str]]

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.record.id,
            "title": self.record.title,
            "score": round(self.score, 4),
            "matched_keys": list(self.matched_keys),
            "highlighted": self.highlighted,
            "specifications": self.record.source.to_dict()["specifications"],
        }
