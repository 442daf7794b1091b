"""Search package for specification queries.

This package provides the search engine and the highlighter used to mark
text query matches in specification fields.
"""

from .engine import SpecificationSearchEngine
from .highlight import HIGHLIGHT_FIELDS, add_highlight_tags, escape_regex, highlight_matches

__all__ = [
    "SpecificationSearchEngine",
    "HIGHLIGHT_FIELDS",
    "add_highlight_tags",
    "escape_regex",
    "highlight_matches",
]
