"""Configuration for SpecScope MCP server."""

import os

# Server settings
HTTP_PORT = int(os.getenv("HTTP_PORT", "8080"))
RATE_LIMIT_REQUESTS = int(os.getenv("RATE_LIMIT_REQUESTS", "100"))

# Catalog sources (resolved before the search engine is initialized)
CATALOG_PATH = os.getenv("SPEC_CATALOG_PATH", "")
CATALOG_URL = os.getenv("SPEC_CATALOG_URL", "")
CATALOG_CACHE_TTL = int(os.getenv("SPEC_CATALOG_TTL", "600"))  # Refetch a remote catalog after 10 minutes
CATALOG_CACHE_MAX_SIZE = 32  # Max cached catalog payloads

# Request settings
REQUEST_TIMEOUT = 10.0

# Search settings
FUZZY_THRESHOLD = float(os.getenv("SPEC_FUZZY_THRESHOLD", "0.6"))  # Min similarity for text matches
HIGHLIGHT_CLASS = os.getenv("SPEC_HIGHLIGHT_CLASS", "spec-search-highlight")
DEFAULT_RELEVANCE = 0.5  # Score given to every record when no filter is active
MAX_QUERY_LENGTH = 200  # Bounds the per-record edit distance work
DEFAULT_PAGE_SIZE = 20
MAX_PAGE_SIZE = 100

# Comparison settings
MAX_COMPARISON_PRODUCTS = 4
