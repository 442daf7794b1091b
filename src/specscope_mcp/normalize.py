"""Normalization of raw catalog records into search-ready records."""

import logging
from collections.abc import Iterable, Iterator, Mapping
from typing import Any

from .models import NormalizedRecord, NumericSpec, RawRecord, SpecificationValue, full_key
from .parsers import numeric_projection

logger = logging.getLogger(__name__)


def iter_specifications(record: RawRecord) -> Iterator[tuple[str, str, SpecificationValue]]:
    """Yield (category, spec_key, value) in the record's natural order."""
    for category, entries in record.specifications.items():
        for spec_key, value in entries.items():
            yield category, spec_key, value


def build_searchable_text(record: RawRecord) -> str:
    """Lowercase blob of title, then display name, key, value and description per spec."""
    parts = [record.title]
    for _, spec_key, spec in iter_specifications(record):
        if spec.display_name:
            parts.append(spec.display_name)
        parts.append(spec_key)
        if spec.value:
            parts.append(spec.value)
        if spec.description:
            parts.append(spec.description)
    return " ".join(parts).lower()


def build_numeric_specs(record: RawRecord) -> dict[str, NumericSpec]:
    numeric: dict[str, NumericSpec] = {}
    for category, spec_key, spec in iter_specifications(record):
        projection = numeric_projection(spec)
        if projection is not None:
            numeric[full_key(category, spec_key)] = projection
    return numeric


def normalize_record(record: RawRecord | Mapping[str, Any]) -> NormalizedRecord:
    """Normalize one record. Raw mappings are parsed first (malformed specs become empty)."""
    if not isinstance(record, RawRecord):
        record = RawRecord.from_dict(record)
    return NormalizedRecord(
        id=record.id,
        title=record.title,
        specifications=record.specifications,
        searchable_text=build_searchable_text(record),
        numeric_specs=build_numeric_specs(record),
        source=record,
    )


def normalize_records(records: Iterable[RawRecord | Mapping[str, Any]]) -> list[NormalizedRecord]:
    """Normalize records, preserving order and count."""
    return [normalize_record(record) for record in records]
