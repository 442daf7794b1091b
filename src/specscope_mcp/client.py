"""Async client for fetching catalog data over HTTP."""

from __future__ import annotations

import json
import logging
from typing import Any

import httpx

from .cache import CatalogCache
from .catalog import parse_catalog_payload
from .config import CATALOG_CACHE_MAX_SIZE, CATALOG_CACHE_TTL, REQUEST_TIMEOUT
from .models import RawRecord

logger = logging.getLogger(__name__)


class CatalogFetchError(Exception):
    """The catalog could not be fetched or decoded."""


class CatalogClient:
    """Fetches catalog JSON and turns it into RawRecords.

    Fetching completes before any search engine is initialized with the result.
    """

    def __init__(self, timeout: float = REQUEST_TIMEOUT):
        self._timeout = timeout
        self._client: httpx.AsyncClient | None = None
        self._cache = CatalogCache(ttl=CATALOG_CACHE_TTL, max_size=CATALOG_CACHE_MAX_SIZE)

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self._timeout, follow_redirects=True)
        return self._client

    async def _get_json(self, url: str) -> Any:
        try:
            response = await self._get_client().get(url, headers={"Accept": "application/json"})
        except httpx.HTTPError as e:
            raise CatalogFetchError(f"Catalog request failed: {type(e).__name__}") from e
        if response.status_code >= 400:
            raise CatalogFetchError(f"Catalog source returned HTTP {response.status_code}")
        try:
            return response.json()
        except (json.JSONDecodeError, ValueError) as e:
            raise CatalogFetchError("Catalog source returned invalid JSON") from e

    async def fetch_catalog(self, url: str, use_cache: bool = True) -> list[RawRecord]:
        """Fetch and parse a catalog.

        Accepts a JSON list of records or an object with a "products" list.
        A fresh cached result is returned as the same list object, so callers
        can tell a refetch apart by identity. If a refetch fails and an older
        result exists, that result is returned instead.

        Raises:
            CatalogFetchError: On network errors, HTTP errors, or bad payloads
                with nothing previously fetched from url
        """
        if use_cache:
            cached = self._cache.get(url)
            if cached is not None:
                return cached

        try:
            payload = await self._get_json(url)
            try:
                records = parse_catalog_payload(payload)
            except ValueError as e:
                raise CatalogFetchError(str(e)) from e
        except CatalogFetchError as e:
            stale = self._cache.get_stale(url)
            if stale is None:
                raise
            logger.warning(f"Catalog refetch from {url} failed ({e}), keeping {len(stale)} earlier records")
            return stale

        logger.info(f"Fetched {len(records)} catalog records from {url}")
        self._cache.set(url, records)
        return records

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None
