"""Bulk import/export of specification datasets (JSON and CSV).

JSON is the primary format and keeps the full structure. CSV is flat and
lossy: only the columns in SPEC_CSV_HEADER survive a round trip.
"""

import csv
import io
import json
import logging
from collections.abc import Mapping
from typing import Any, Literal

from .models import CategoryDefinition, CategoryMap, RawRecord, SpecificationValue, parse_category_map

logger = logging.getLogger(__name__)

SPEC_CSV_HEADER = [
    "Type", "Category", "Category_Name", "Category_Order", "Spec_Key", "Display_Name",
    "Value", "Unit", "Tolerance", "Range", "Min", "Max", "Description",
]

_FORMULA_PREFIXES = ("=", "-", "+", "@", "\t", "\r")


class BulkImportError(ValueError):
    """Imported data could not be recognised or parsed."""


def _sanitize_csv_field(value: str | None) -> str:
    """Prefix free-text fields starting with formula characters with a single quote."""
    if value and value[0] in _FORMULA_PREFIXES:
        return "'" + value
    return value or ""


def _sanitize_csv_value(value: str | None) -> str:
    """Like _sanitize_csv_field, but a negative number such as "-20" stays as is."""
    if value and value[0] == "-":
        try:
            float(value)
        except ValueError:
            return "'" + value
        return value
    return _sanitize_csv_field(value)


def _unsanitize_csv_field(value: str) -> str:
    if len(value) > 1 and value[0] == "'" and value[1] in _FORMULA_PREFIXES:
        return value[1:]
    return value


def _dataset(specifications: CategoryMap, categories: Mapping[str, CategoryDefinition]) -> dict[str, Any]:
    return {
        "specifications": {
            category: {key: spec.to_dict() for key, spec in entries.items()}
            for category, entries in specifications.items()
        },
        "categories": {key: definition.to_dict() for key, definition in categories.items()},
    }


def export_json(record: RawRecord) -> str:
    """Specification dataset of one record as pretty-printed JSON."""
    return json.dumps(_dataset(record.specifications, record.categories), indent=2, ensure_ascii=False)


def specifications_to_csv(
    specifications: CategoryMap,
    categories: Mapping[str, CategoryDefinition] | None = None,
) -> str:
    """Flatten a CategoryMap into CSV: category definition rows, then one row per spec."""
    output = io.StringIO(newline="")
    writer = csv.writer(output, quoting=csv.QUOTE_MINIMAL, lineterminator="\n")
    writer.writerow(SPEC_CSV_HEADER)

    for key, definition in (categories or {}).items():
        writer.writerow([
            "category", key, _sanitize_csv_field(definition.name), definition.order,
            "", "", "", "", "", "", "", "", _sanitize_csv_field(definition.description),
        ])

    for category, entries in specifications.items():
        for spec_key, spec in entries.items():
            writer.writerow([
                "specification", category, "", "", spec_key,
                _sanitize_csv_field(spec.display_name),
                _sanitize_csv_value(spec.value),
                _sanitize_csv_value(spec.unit),
                _sanitize_csv_value(spec.tolerance),
                _sanitize_csv_value(spec.range),
                _sanitize_csv_value(spec.min),
                _sanitize_csv_value(spec.max),
                _sanitize_csv_field(spec.description),
            ])

    return output.getvalue()


def export_csv(record: RawRecord) -> str:
    return specifications_to_csv(record.specifications, record.categories)


def parse_specifications_csv(text: str) -> tuple[CategoryMap, dict[str, CategoryDefinition]]:
    """Parse CSV produced by specifications_to_csv back into a CategoryMap.

    Raises:
        BulkImportError: If the header lacks the Spec_Key column
    """
    reader = csv.DictReader(io.StringIO(text))
    if not reader.fieldnames or "Spec_Key" not in reader.fieldnames:
        raise BulkImportError("CSV format not recognized. Must contain a Spec_Key column.")

    specifications: CategoryMap = {}
    categories: dict[str, CategoryDefinition] = {}

    for row in reader:
        row = {k: (v or "") for k, v in row.items() if k}
        row_type = row.get("Type", "")
        category = row.get("Category", "")
        if row_type == "category":
            try:
                order = int(row.get("Category_Order") or 1)
            except ValueError:
                order = 1
            categories[category] = CategoryDefinition(
                name=_unsanitize_csv_field(row.get("Category_Name", "")) or category,
                order=max(1, order),
                collapsible=True,
                description=_unsanitize_csv_field(row.get("Description", "")),
            )
        elif row_type == "specification":
            spec = SpecificationValue(
                value=_unsanitize_csv_field(row.get("Value", "")),
                unit=_unsanitize_csv_field(row.get("Unit", "")) or None,
                tolerance=_unsanitize_csv_field(row.get("Tolerance", "")) or None,
                range=_unsanitize_csv_field(row.get("Range", "")) or None,
                min=_unsanitize_csv_field(row.get("Min", "")) or None,
                max=_unsanitize_csv_field(row.get("Max", "")) or None,
                description=_unsanitize_csv_field(row.get("Description", "")) or None,
                display_name=_unsanitize_csv_field(row.get("Display_Name", "")) or None,
            )
            specifications.setdefault(category, {})[row.get("Spec_Key", "")] = spec
        elif row_type:
            logger.warning(f"Skipping CSV row with unknown type '{row_type}'")

    return specifications, categories


def detect_format(filename: str | None = None, content: str = "") -> Literal["json", "csv"]:
    """Detect the format from the file extension, falling back to the content."""
    if filename:
        lowered = filename.lower()
        if lowered.endswith(".json"):
            return "json"
        if lowered.endswith(".csv"):
            return "csv"
    stripped = content.lstrip()
    if stripped.startswith(("{", "[")):
        return "json"
    if stripped.startswith("Type,"):
        return "csv"
    raise BulkImportError("Unsupported file format. Use JSON or CSV.")


def import_data(
    content: str,
    format: Literal["json", "csv"] | None = None,
    filename: str | None = None,
) -> tuple[CategoryMap, dict[str, CategoryDefinition]]:
    """Import a specification dataset.

    Raises:
        BulkImportError: On unknown format, invalid JSON or invalid structure
    """
    fmt = format or detect_format(filename, content)
    if fmt == "csv":
        return parse_specifications_csv(content)
    if fmt != "json":
        raise BulkImportError(f"Unsupported format: {fmt}")

    try:
        data = json.loads(content)
    except json.JSONDecodeError as e:
        raise BulkImportError(f"Invalid JSON: {e}") from e

    errors = validate_specifications(data)
    if errors:
        raise BulkImportError("; ".join(errors))
    return parse_category_map(data)


def validate_specifications(data: Any) -> list[str]:
    """Check a raw specification dataset. Returns error messages, empty if valid."""
    errors: list[str] = []

    if not isinstance(data, Mapping) or not isinstance(data.get("specifications"), Mapping):
        errors.append('Specifications must contain a "specifications" object')
        return errors

    categories = data.get("categories") or {}
    if not isinstance(categories, Mapping):
        errors.append('"categories" must be an object')
        categories = {}
    for key, category in categories.items():
        if not isinstance(category, Mapping) or not category.get("name"):
            errors.append(f'Category "{key}" missing required "name" field')
        order = category.get("order") if isinstance(category, Mapping) else None
        if isinstance(order, bool) or not isinstance(order, int) or order < 1:
            errors.append(f'Category "{key}" missing or invalid "order" field')

    for category_key, entries in data["specifications"].items():
        if not isinstance(entries, Mapping):
            errors.append(f'Specifications for category "{category_key}" must be an object')
            continue
        for spec_key, raw_spec in entries.items():
            try:
                spec = SpecificationValue.from_dict(raw_spec)
            except ValueError:
                errors.append(f'Specification "{category_key}.{spec_key}" must be an object')
                continue
            if not spec.is_present():
                errors.append(f'Specification "{category_key}.{spec_key}" has no value, range or min/max')

    return errors
