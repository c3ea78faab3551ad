"""
MRMS Proxy Service

Request orchestration for the two proxied operations:
- export: sanitized image export, cached as raw bytes
- times: service metadata normalized to an ISO-8601 time list

Upstream fetches go through a shared httpx.AsyncClient. The response
cache lock is never held across network I/O, so two concurrent misses
for the same key may both fetch; the last write wins.
"""

import json
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Optional

import httpx

from .config import ProxyConfig
from .errors import ConfigurationError, ParseError, TransportError, UpstreamError
from .memory_store import ResponseCache
from .query_sanitizer import QueryInput, build_export_url
from .time_normalizer import format_iso, normalize_times

logger = logging.getLogger(__name__)

DEFAULT_CONTENT_TYPE = "image/png"
TIMES_KEY_PREFIX = "times:"


def _copy_record(record: Dict[str, Any]) -> Dict[str, Any]:
    return {**record, "times": list(record["times"])}


@dataclass(frozen=True)
class CachedImage:
    """Image payload as stored in the response cache."""
    content: bytes
    content_type: str


@dataclass(frozen=True)
class ExportResult:
    """Outcome of a successful export request."""
    content: bytes
    content_type: str
    cache_hit: bool


class MrmsProxy:
    """
    Caching proxy in front of a single upstream export service.

    The cache and HTTP client are injectable so tests can use a fake
    clock and a mock transport.
    """

    def __init__(
        self,
        config: ProxyConfig,
        cache: Optional[ResponseCache] = None,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        self.config = config
        self.cache = cache or ResponseCache(
            max_entries=config.cache_max_entries,
            default_ttl=config.cache_ttl_seconds,
        )
        self._owns_client = http_client is None
        self.http_client = http_client or httpx.AsyncClient(
            timeout=config.upstream_timeout_seconds,
            follow_redirects=True,
        )

    async def aclose(self) -> None:
        """Close the HTTP client if this proxy created it."""
        if self._owns_client:
            await self.http_client.aclose()

    # ============================================
    # Export
    # ============================================

    async def fetch_export(self, query: QueryInput) -> ExportResult:
        """
        Return the image for a client export query.

        Raises:
            ConfigurationError: export base URL is not configured
            UpstreamError: upstream answered with a non-success status
            TransportError: upstream could not be reached
        """
        if not self.config.export_base:
            raise ConfigurationError("Upstream export base not configured")

        url = build_export_url(self.config.export_base, query)

        cached = self.cache.get(url)
        if cached is not None:
            logger.debug(f"[MrmsProxy] Cache hit: {url[:80]}...")
            return ExportResult(cached.content, cached.content_type, cache_hit=True)

        logger.info(f"[MrmsProxy] Fetching export: {url[:80]}...")
        try:
            async with self.http_client.stream("GET", url) as response:
                if not response.is_success:
                    body = await self._read_error_body(response)
                    logger.error(f"[MrmsProxy] Export upstream error {response.status_code}: {url[:60]}...")
                    raise UpstreamError("Upstream failed", response.status_code, body)
                content = await response.aread()
                content_type = response.headers.get("content-type") or DEFAULT_CONTENT_TYPE
        except httpx.HTTPError as e:
            logger.error(f"[MrmsProxy] Export fetch error: {e}")
            raise TransportError(f"Failed to reach upstream: {e}") from e

        self.cache.set(url, CachedImage(content, content_type))
        logger.info(f"[MrmsProxy] Proxied export ({len(content)} bytes)")
        return ExportResult(content, content_type, cache_hit=False)

    # ============================================
    # Times
    # ============================================

    async def fetch_times(self) -> Dict[str, Any]:
        """
        Return the normalized time list record.

        Returns:
            {"source": url, "fetchedAt": iso, "times": [iso, ...]}
        """
        source = self.config.metadata_url
        if not source:
            raise ConfigurationError("Upstream metadata URL not configured")

        cache_key = f"{TIMES_KEY_PREFIX}{source}"
        cached = self.cache.get(cache_key)
        if cached is not None:
            logger.debug(f"[MrmsProxy] Times cache hit: {source[:80]}")
            return _copy_record(cached)

        logger.info(f"[MrmsProxy] Fetching metadata: {source[:80]}")
        try:
            async with self.http_client.stream("GET", source) as response:
                if not response.is_success:
                    body = await self._read_error_body(response)
                    logger.error(f"[MrmsProxy] Metadata upstream error {response.status_code}")
                    raise UpstreamError("Failed to reach image server", response.status_code, body)
                raw = await response.aread()
        except httpx.HTTPError as e:
            logger.error(f"[MrmsProxy] Metadata fetch error: {e}")
            raise TransportError(f"Failed to reach upstream: {e}") from e

        fetched_at = datetime.now(timezone.utc)
        try:
            document = self._parse_metadata(raw)
        except ParseError as e:
            logger.warning(f"[MrmsProxy] {e}, falling back to current time")
            document = {}

        record = {
            "source": source,
            "fetchedAt": format_iso(fetched_at),
            "times": normalize_times(document, now=fetched_at),
        }
        self.cache.set(cache_key, _copy_record(record), ttl=self.config.times_ttl_seconds)
        return record

    # ============================================
    # Helpers
    # ============================================

    @staticmethod
    def _parse_metadata(raw: bytes) -> Any:
        try:
            return json.loads(raw)
        except ValueError as e:
            raise ParseError(f"Malformed metadata document: {e}") from e

    @staticmethod
    async def _read_error_body(response: httpx.Response) -> str:
        """Best-effort read of an upstream error body; failures yield ''."""
        try:
            await response.aread()
            return response.text
        except Exception as e:
            logger.debug(f"[MrmsProxy] Could not read upstream error body: {e}")
            return ""
