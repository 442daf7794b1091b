"""SpecScope MCP Server - search and compare catalog item specifications."""

import json
import logging
import time
from contextlib import asynccontextmanager
from typing import Any, Literal

from fastmcp import FastMCP
from mcp.types import ToolAnnotations
from starlette.middleware import Middleware
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import JSONResponse
from starlette.routing import Route

from . import __version__
from .bulk import export_csv, export_json
from .catalog import CatalogFormatError, SpecCatalog, load_catalog_file
from .client import CatalogClient, CatalogFetchError
from .comparison import decode_compare_param
from .config import (
    CATALOG_PATH,
    CATALOG_URL,
    DEFAULT_PAGE_SIZE,
    HTTP_PORT,
    MAX_COMPARISON_PRODUCTS,
    RATE_LIMIT_REQUESTS,
)

logger = logging.getLogger(__name__)

# Global state
_catalog = SpecCatalog()
_catalog_client: CatalogClient | None = None
_remote_records: list | None = None  # Records the index was last built from, when remote


async def _refresh_remote_catalog() -> None:
    """Rebuild the index if the remote catalog was refetched since the last build.

    Within CATALOG_CACHE_TTL the client returns the cached list itself, so the
    index is only rebuilt after an actual refetch.
    """
    global _remote_records
    if CATALOG_PATH or not CATALOG_URL or _catalog_client is None:
        return
    try:
        records = await _catalog_client.fetch_catalog(CATALOG_URL)
    except CatalogFetchError as e:
        logger.warning(f"Failed to fetch catalog from {CATALOG_URL}: {e}")
        return
    if records is not _remote_records:
        _catalog.load(records)
        _remote_records = records
        logger.info(f"Catalog index rebuilt: {len(_catalog)} products")


async def _load_catalog() -> None:
    """Resolve the configured catalog source. The index is built only after loading completes."""
    if CATALOG_PATH:
        try:
            _catalog.load(load_catalog_file(CATALOG_PATH))
        except (OSError, CatalogFormatError) as e:
            logger.warning(f"Failed to load catalog from {CATALOG_PATH}: {e}")
    elif CATALOG_URL and _catalog_client:
        await _refresh_remote_catalog()
    else:
        logger.warning("No catalog source configured (set SPEC_CATALOG_PATH or SPEC_CATALOG_URL)")
    logger.info(f"Catalog ready: {len(_catalog)} products")


@asynccontextmanager
async def lifespan(app):
    """Load the catalog on startup and close the HTTP client on shutdown."""
    global _catalog_client
    _catalog_client = CatalogClient()
    await _load_catalog()

    yield

    if _catalog_client:
        await _catalog_client.close()


# Create MCP server
mcp = FastMCP(
    name="specscope",
    instructions="Search catalog items by technical specifications and compare up to 4 items side by side. Use list_spec_filters to discover filterable categories and numeric specs, search_specifications to find items, and compare_products to build a comparison matrix.",
    lifespan=lifespan,
)


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Per-IP rate limiting over a sliding 60 second window."""

    MAX_TRACKED_IPS = 10_000

    def __init__(self, app, requests_per_minute: int = RATE_LIMIT_REQUESTS):
        super().__init__(app)
        self.requests_per_minute = requests_per_minute
        self.request_counts: dict[str, list[float]] = {}

    def _get_client_ip(self, request) -> str:
        """Rightmost X-Forwarded-For entry (set by our proxy), else the peer address."""
        forwarded = request.headers.get("x-forwarded-for")
        if forwarded:
            ips = [ip.strip() for ip in forwarded.split(",") if ip.strip()]
            return ips[-1] if ips else "unknown"
        return request.client.host if request.client else "unknown"

    def _check_rate_limit(self, client_ip: str) -> bool:
        now = time.time()
        window_start = now - 60

        if len(self.request_counts) >= self.MAX_TRACKED_IPS:
            self.request_counts = {
                ip: stamps for ip, stamps in self.request_counts.items()
                if stamps and stamps[-1] > window_start
            }
            if len(self.request_counts) >= self.MAX_TRACKED_IPS:
                return True

        recent = [t for t in self.request_counts.get(client_ip, []) if t > window_start]
        if len(recent) >= self.requests_per_minute:
            self.request_counts[client_ip] = recent
            return True
        recent.append(now)
        self.request_counts[client_ip] = recent
        return False

    async def dispatch(self, request, call_next):
        if request.url.path == "/health":
            return await call_next(request)

        if self._check_rate_limit(self._get_client_ip(request)):
            return JSONResponse(
                status_code=429,
                content={"error": "Rate limit exceeded", "retry_after": 60},
                headers={"Retry-After": "60"},
            )
        return await call_next(request)


def _parse_list_param(value: list[Any] | str | None) -> list[Any] | None:
    """Accept list parameters sent either as arrays or as JSON-encoded strings."""
    if value is None or isinstance(value, list):
        return value
    try:
        parsed = json.loads(value)
    except json.JSONDecodeError:
        logger.debug(f"Failed to parse list parameter as JSON: {value[:100]!r}")
        return [value]
    return parsed if isinstance(parsed, list) else [parsed]


# Tools

_READ_ONLY = dict(readOnlyHint=True, destructiveHint=False, idempotentHint=True, openWorldHint=False)


@mcp.tool(annotations=ToolAnnotations(title="Search Specifications", **_READ_ONLY))
async def search_specifications(
    query: str | None = None,
    ranges: list[dict[str, Any]] | str | None = None,
    categories: list[str] | str | None = None,
    sort_by: Literal["relevance", "title"] = "relevance",
    limit: int = DEFAULT_PAGE_SIZE,
    offset: int = 0,
) -> dict:
    """Search catalog items by specification text, numeric ranges and categories.

    All filters combine with AND. With no filters every item is returned with
    score 0.5.

    Args:
        query: Fuzzy text matched against titles, spec names, values and descriptions
               (e.g., "stainless", "pressure")
        ranges: Numeric range filters, e.g. [{"key": "performance.max_pressure", "min": 175, "max": 250}].
                Keys are "category.spec" as listed by list_spec_filters. Invalid ranges
                (missing bound or min > max) are ignored and reported in rejected_ranges.
                For repeated keys the last valid range applies; earlier ones are
                reported in rejected_ranges.
        categories: Categories an item must have (e.g., ["dimensions", "materials"])
        sort_by: "relevance" (highest score first) or "title"
        limit: Results per page (default 20, max 100)
        offset: Results to skip

    Returns:
        results (id, title, score, matched_keys, highlighted, specifications), total,
        page_info, filters_applied, filters_active.
    """
    await _refresh_remote_catalog()
    parsed_ranges = _parse_list_param(ranges) or []
    parsed_categories = _parse_list_param(categories) or []
    return _catalog.search(
        query=query,
        ranges=[r for r in parsed_ranges if isinstance(r, dict)],
        categories=[str(c) for c in parsed_categories],
        sort_by=sort_by,
        limit=limit,
        offset=offset,
    )


@mcp.tool(annotations=ToolAnnotations(title="List Specification Filters", **_READ_ONLY))
async def list_spec_filters() -> dict:
    """List categories and numeric specifications available for filtering.

    Returns:
        categories: sorted category keys
        numeric_specs: "category.spec" -> {min, max, unit} across the catalog
    """
    await _refresh_remote_catalog()
    return _catalog.filter_options()


@mcp.tool(annotations=ToolAnnotations(title="Get Product", **_READ_ONLY))
async def get_product(product_id: str) -> dict:
    """Get one catalog item with all of its specifications."""
    await _refresh_remote_catalog()
    record = _catalog.get(product_id)
    if record is None:
        return {"error": f"Product {product_id} not found"}
    return record.to_dict()


@mcp.tool(annotations=ToolAnnotations(title="Compare Products", **_READ_ONLY))
async def compare_products(product_ids: list[str] | str) -> dict:
    """Compare up to 4 catalog items side by side.

    Args:
        product_ids: Item ids in display order, as a list or a comma-separated
                     string (the value of a "compare" URL parameter)

    Returns:
        products, rows (key, label, different, cells with value/unit or missing=True),
        product_ids actually compared, and not_added for unknown or over-limit ids.
        When nothing could be added, empty=True with a message.
    """
    await _refresh_remote_catalog()
    if isinstance(product_ids, str) and not product_ids.lstrip().startswith("["):
        ids = decode_compare_param(product_ids)
    else:
        ids = [str(pid) for pid in (_parse_list_param(product_ids) or [])]
    if len(ids) > MAX_COMPARISON_PRODUCTS:
        logger.info(f"compare_products called with {len(ids)} ids, only {MAX_COMPARISON_PRODUCTS} are compared")
    return _catalog.compare(ids)


@mcp.tool(annotations=ToolAnnotations(title="Export Specifications", **_READ_ONLY))
async def export_specifications(product_id: str, format: Literal["json", "csv"] = "json") -> dict:
    """Export one item's specification dataset as JSON or CSV.

    CSV is flat: Type,Category,Category_Name,Category_Order,Spec_Key,Display_Name,
    Value,Unit,Tolerance,Range,Min,Max,Description.
    """
    await _refresh_remote_catalog()
    record = _catalog.get(product_id)
    if record is None:
        return {"error": f"Product {product_id} not found"}
    content = export_csv(record) if format == "csv" else export_json(record)
    return {"product_id": str(record.id), "format": format, "content": content}


@mcp.tool(annotations=ToolAnnotations(title="Server Version", **_READ_ONLY))
async def get_version() -> dict:
    """Get server version and health status."""
    return {
        "service": "specscope-mcp",
        "version": __version__,
        "status": "healthy",
        "products": len(_catalog),
    }


# Health check endpoint
async def health(request):
    return JSONResponse({
        "status": "healthy",
        "service": "specscope-mcp",
        "version": __version__,
    })


def create_app():
    """Create the ASGI application."""
    middleware = [
        Middleware(RateLimitMiddleware, requests_per_minute=RATE_LIMIT_REQUESTS),
    ]
    app = mcp.http_app(
        path="/mcp",
        middleware=middleware,
        transport="streamable-http",
        stateless_http=True,
    )
    app.routes.append(Route("/health", health))
    return app


app = create_app()


class _HealthFilterLog(logging.Filter):
    """Suppress /health access log lines from container healthchecks."""

    def filter(self, record: logging.LogRecord) -> bool:
        return "/health" not in record.getMessage()


def main():
    """Run the server."""
    import uvicorn

    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    logging.getLogger("uvicorn.access").addFilter(_HealthFilterLog())

    uvicorn.run(
        "specscope_mcp.server:app",
        host="0.0.0.0",
        port=HTTP_PORT,
        lifespan="on",
    )


if __name__ == "__main__":
    main()
