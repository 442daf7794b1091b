"""Search engine for specification search with fuzzy text, range and category filters."""

import logging
import math
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any, Literal

from ..config import DEFAULT_RELEVANCE, FUZZY_THRESHOLD, HIGHLIGHT_CLASS
from ..matching import fuzzy_match, overlap_score, ranges_overlap
from ..models import (
    NormalizedRecord,
    RangeFilter,
    RawRecord,
    SearchFilters,
    SearchResult,
    full_key,
)
from ..normalize import iter_specifications, normalize_record
from .highlight import highlight_matches

logger = logging.getLogger(__name__)


@dataclass
class _Score:
    relevance: float
    matched_keys: list[str] = field(default_factory=list)


def _is_bound(value: Any) -> bool:
    return (
        isinstance(value, (int, float))
        and not isinstance(value, bool)
        and math.isfinite(value)
    )


class SpecificationSearchEngine:
    """Fuzzy text + numeric range + category search over catalog records.

    All criteria combine with AND semantics. Results are ordered by relevance,
    ties keep the order records were given to initialize().

    An engine instance belongs to a single caller. initialize() replaces the
    whole index; callers must not run search() concurrently with it.
    """

    def __init__(
        self,
        fuzzy_threshold: float = FUZZY_THRESHOLD,
        highlight_class: str = HIGHLIGHT_CLASS,
    ):
        self.fuzzy_threshold = fuzzy_threshold
        self.highlight_class = highlight_class
        self._records: list[NormalizedRecord] = []
        self._filters = SearchFilters()

    @property
    def records(self) -> list[NormalizedRecord]:
        return list(self._records)

    @property
    def filters(self) -> SearchFilters:
        return self._filters

    def initialize(
        self,
        records: Iterable[RawRecord | NormalizedRecord | Mapping[str, Any]] | None,
    ) -> "SpecificationSearchEngine":
        """Build a fresh index from records.

        Entries that are not records or have no id are dropped. Records with
        malformed specifications are kept with no specifications. Already
        normalized records are reused as-is.
        """
        if records is None:
            logger.warning("initialize() called without records, index is empty")
            self._records = []
            return self

        index: list[NormalizedRecord] = []
        for record in records:
            if isinstance(record, NormalizedRecord):
                index.append(record)
                continue
            if isinstance(record, RawRecord):
                record_id = record.id
            elif isinstance(record, Mapping):
                record_id = record.get("id")
            else:
                logger.warning(f"Skipping invalid record of type {type(record).__name__}")
                continue
            if record_id is None or record_id == "":
                logger.warning("Skipping record without id")
                continue
            index.append(normalize_record(record))

        self._records = index
        logger.debug(f"Indexed {len(index)} records")
        return self

    # -- filters --------------------------------------------------------------

    def set_text_search(self, query: str | None) -> "SpecificationSearchEngine":
        self._filters.text = query.strip() if query else ""
        return self

    def add_range_filter(self, key: str, min_value: float | None, max_value: float | None) -> "SpecificationSearchEngine":
        """Add or replace a range filter. Missing bounds or min > max are ignored."""
        if not _is_bound(min_value) or not _is_bound(max_value) or min_value > max_value:
            return self
        self._filters.ranges[key] = RangeFilter(min=float(min_value), max=float(max_value))
        return self

    def remove_range_filter(self, key: str) -> "SpecificationSearchEngine":
        self._filters.ranges.pop(key, None)
        return self

    def add_category_filter(self, category: str) -> "SpecificationSearchEngine":
        if category and category not in self._filters.categories:
            self._filters.categories.append(category)
        return self

    def remove_category_filter(self, category: str) -> "SpecificationSearchEngine":
        if category in self._filters.categories:
            self._filters.categories.remove(category)
        return self

    def clear_filters(self) -> "SpecificationSearchEngine":
        self._filters = SearchFilters()
        return self

    # -- search ---------------------------------------------------------------

    def search(self, sort_by: Literal["relevance", "title"] = "relevance") -> list[SearchResult]:
        """Run the current filters against the index.

        Args:
            sort_by: "relevance" (highest first) or "title" (case-insensitive A-Z).
                Both sorts are stable, so ties keep index order.

        Returns:
            Ranked results. An empty list means nothing matched.
        """
        query = self._filters.text
        results: list[SearchResult] = []

        for record in self._records:
            score = self._score_record(record)
            if score is None:
                continue
            results.append(SearchResult(
                record=record,
                score=score.relevance,
                matched_keys=score.matched_keys,
                highlighted=highlight_matches(record, query, self.highlight_class),
            ))

        if sort_by == "title":
            results.sort(key=lambda r: r.record.title.casefold())
        else:
            results.sort(key=lambda r: r.score, reverse=True)
        return results

    def _score_record(self, record: NormalizedRecord) -> _Score | None:
        """Score one record, or None if any active criterion rejects it."""
        filters = self._filters
        total = 0.0
        match_count = 0
        matched: list[str] = []

        if filters.text:
            text_score = fuzzy_match(filters.text, record.searchable_text, self.fuzzy_threshold)
            if text_score < self.fuzzy_threshold:
                return None
            total += text_score
            match_count += 1
            matched.extend(self._find_specification_matches(record, filters.text))

        for key, filter_range in filters.ranges.items():
            spec = record.numeric_specs.get(key)
            if spec is None or not ranges_overlap(spec, filter_range):
                return None
            total += overlap_score(spec, filter_range)
            match_count += 1
            matched.append(key)

        for category in filters.categories:
            if category not in record.specifications:
                return None
            match_count += 1
            matched.append(category)

        if match_count == 0:
            return _Score(relevance=DEFAULT_RELEVANCE)

        return _Score(relevance=total / match_count, matched_keys=list(dict.fromkeys(matched)))

    def _find_specification_matches(self, record: NormalizedRecord, query: str) -> list[str]:
        """Full keys of specs whose name, value or description fuzzy-match the query."""
        keys = []
        for category, spec_key, spec in iter_specifications(record.source):
            spec_text = " ".join([
                spec.display_name or spec_key,
                spec.value or "",
                spec.description or "",
            ]).lower()
            if fuzzy_match(query, spec_text, self.fuzzy_threshold) >= self.fuzzy_threshold:
                keys.append(full_key(category, spec_key))
        return keys

    # -- filter discovery -----------------------------------------------------

    def get_numeric_specification_keys(self) -> list[str]:
        """Sorted full keys that have a numeric projection in any record."""
        keys = set()
        for record in self._records:
            keys.update(record.numeric_specs)
        return sorted(keys)

    def get_available_categories(self) -> list[str]:
        categories = set()
        for record in self._records:
            categories.update(record.specifications)
        return sorted(categories)

    def get_specification_range(self, key: str) -> dict[str, Any] | None:
        """Overall {min, max, unit} for a numeric key across the index, or None."""
        low = math.inf
        high = -math.inf
        unit = ""
        found = False
        for record in self._records:
            spec = record.numeric_specs.get(key)
            if spec is None:
                continue
            low = min(low, spec.min)
            high = max(high, spec.max)
            unit = spec.unit
            found = True
        return {"min": low, "max": high, "unit": unit} if found else None
