"""Catalog loading and the query surface used by the server tools."""

import json
import logging
from collections.abc import Iterable, Mapping
from pathlib import Path
from typing import Any, Literal

from .comparison import deserialize_comparison, serialize_comparison
from .config import DEFAULT_PAGE_SIZE, FUZZY_THRESHOLD, MAX_PAGE_SIZE, MAX_QUERY_LENGTH
from .models import NormalizedRecord, RawRecord
from .normalize import normalize_records
from .search import SpecificationSearchEngine

logger = logging.getLogger(__name__)


class CatalogFormatError(ValueError):
    """Catalog payload is neither a record list nor an object with a "products" list."""


def parse_catalog_payload(payload: Any) -> list[RawRecord]:
    """Turn decoded catalog JSON into records, skipping entries without an id.

    Raises:
        CatalogFormatError: If the payload shape is not recognised
    """
    if isinstance(payload, Mapping):
        payload = payload.get("products")
    if not isinstance(payload, list):
        raise CatalogFormatError('Catalog must be a list of products or an object with a "products" list')

    records = []
    for index, item in enumerate(payload):
        if not isinstance(item, Mapping) or item.get("id") in (None, ""):
            logger.warning(f"Skipping catalog entry {index}: missing id")
            continue
        records.append(RawRecord.from_dict(item))
    return records


def load_catalog_file(path: str | Path) -> list[RawRecord]:
    """Load a catalog from a JSON file.

    Raises:
        OSError: If the file cannot be read
        CatalogFormatError: If the file is not valid catalog JSON
    """
    text = Path(path).read_text(encoding="utf-8")
    try:
        payload = json.loads(text)
    except json.JSONDecodeError as e:
        raise CatalogFormatError(f"Invalid catalog JSON in {path}: {e}") from e
    records = parse_catalog_payload(payload)
    logger.info(f"Loaded {len(records)} catalog records from {path}")
    return records


class SpecCatalog:
    """Resident catalog with a shared normalized index.

    Each query gets its own SpecificationSearchEngine and ProductComparison built
    over the shared index, so no filter or comparison state is shared between callers.
    """

    def __init__(self, records: Iterable[RawRecord] = (), fuzzy_threshold: float = FUZZY_THRESHOLD):
        self.fuzzy_threshold = fuzzy_threshold
        self._records: list[RawRecord] = []
        self._by_id: dict[str, RawRecord] = {}
        self._index: list[NormalizedRecord] = []
        self.load(records)

    def load(self, records: Iterable[RawRecord]) -> None:
        """Replace the catalog contents and rebuild the index."""
        self._records = list(records)
        self._by_id = {}
        for record in self._records:
            self._by_id.setdefault(str(record.id), record)
        self._index = normalize_records(self._records)

    @property
    def records(self) -> list[RawRecord]:
        return list(self._records)

    def __len__(self) -> int:
        return len(self._records)

    def get(self, product_id: Any) -> RawRecord | None:
        return self._by_id.get(str(product_id))

    def new_engine(self) -> SpecificationSearchEngine:
        return SpecificationSearchEngine(fuzzy_threshold=self.fuzzy_threshold).initialize(self._index)

    def search(
        self,
        query: str | None = None,
        ranges: list[dict[str, Any]] | None = None,
        categories: list[str] | None = None,
        sort_by: Literal["relevance", "title"] = "relevance",
        limit: int = DEFAULT_PAGE_SIZE,
        offset: int = 0,
    ) -> dict[str, Any]:
        """Run a search and return a result page.

        Args:
            query: Fuzzy text query
            ranges: Range filters as [{"key": "performance.max_pressure", "min": 175, "max": 250}]
            categories: Required categories
            sort_by: "relevance" or "title"
            limit: Page size (capped at MAX_PAGE_SIZE)
            offset: Results to skip

        Returns:
            Results with pagination info, the applied filters and any rejected range
            filters (invalid, or replaced by a later range on the same key)
        """
        if query and len(query) > MAX_QUERY_LENGTH:
            return {"error": f"Query too long (max {MAX_QUERY_LENGTH} characters)", "results": [], "total": 0}

        engine = self.new_engine().set_text_search(query)
        rejected = []
        applied_entries: dict[str, dict[str, Any]] = {}
        for entry in ranges or []:
            key = entry.get("key") if isinstance(entry, Mapping) else None
            if not key:
                rejected.append(entry)
                continue
            low, high = entry.get("min"), entry.get("max")
            engine.add_range_filter(key, low, high)
            applied = engine.filters.ranges.get(key)
            if applied is None or (applied.min, applied.max) != (low, high):
                rejected.append(entry)
                continue
            # Last valid range per key wins
            if key in applied_entries:
                rejected.append(applied_entries[key])
            applied_entries[key] = entry
        for category in categories or []:
            engine.add_category_filter(category)

        results = engine.search(sort_by=sort_by)
        limit = max(1, min(limit, MAX_PAGE_SIZE))
        offset = max(0, offset)
        page = results[offset:offset + limit]

        response: dict[str, Any] = {
            "results": [result.to_dict() for result in page],
            "total": len(results),
            "page_info": {"limit": limit, "offset": offset, "returned": len(page)},
            "filters_applied": engine.filters.to_dict(),
            "filters_active": engine.filters.is_active,
        }
        if rejected:
            response["rejected_ranges"] = rejected
        return response

    def filter_options(self) -> dict[str, Any]:
        """Categories and numeric keys (with their overall ranges) available for filtering."""
        engine = self.new_engine()
        return {
            "categories": engine.get_available_categories(),
            "numeric_specs": {
                key: engine.get_specification_range(key)
                for key in engine.get_numeric_specification_keys()
            },
        }

    def compare(self, product_ids: list[str]) -> dict[str, Any]:
        """Comparison matrix for the given ids, in order. Unknown and over-capacity
        ids are reported as not added."""
        comparison = deserialize_comparison(product_ids, self._records)
        added = serialize_comparison(comparison)
        not_added = [str(pid) for pid in product_ids if str(pid) not in added]
        data = comparison.render_comparison_data().to_dict()
        data["product_ids"] = added
        if not_added:
            data["not_added"] = not_added
        return data
