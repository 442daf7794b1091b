"""Highlighting of text query matches inside specification fields."""

import logging
import re

from ..config import HIGHLIGHT_CLASS
from ..models import NormalizedRecord, full_key
from ..normalize import iter_specifications

logger = logging.getLogger(__name__)

# Field name for each highlightable text, in display order
HIGHLIGHT_FIELDS = ("display_name", "value", "description")


def escape_regex(value: str) -> str:
    """Escape regex metacharacters so user input matches literally."""
    return re.escape(value)


def add_highlight_tags(text: str, query: str, highlight_class: str = HIGHLIGHT_CLASS) -> str:
    """Wrap every case-insensitive occurrence of query in a <mark> tag.

    Raises:
        re.error: If the pattern cannot be compiled
    """
    if not text or not query:
        return text
    pattern = re.compile(f"({escape_regex(query)})", re.IGNORECASE)
    return pattern.sub(lambda m: f'<mark class="{highlight_class}">{m.group(1)}</mark>', text)


def highlight_matches(
    record: NormalizedRecord,
    query: str,
    highlight_class: str = HIGHLIGHT_CLASS,
) -> dict[str, dict[str, str]]:
    """Highlight the query in every spec field that contains it.

    Returns:
        Mapping of full key -> {field name: highlighted text}. The display_name
        field falls back to the spec key. Fields whose pattern fails to compile
        are skipped.
    """
    if not query:
        return {}

    query_lower = query.lower()
    highlighted: dict[str, dict[str, str]] = {}

    for category, spec_key, spec in iter_specifications(record.source):
        key = full_key(category, spec_key)
        texts = (spec.display_name or spec_key, spec.value or "", spec.description or "")
        for field_name, text in zip(HIGHLIGHT_FIELDS, texts):
            if not text or query_lower not in text.lower():
                continue
            try:
                marked = add_highlight_tags(text, query, highlight_class)
            except re.error as e:
                logger.warning(f"Skipping highlight for {key}.{field_name}: {e}")
                continue
            highlighted.setdefault(key, {})[field_name] = marked

    return highlighted
