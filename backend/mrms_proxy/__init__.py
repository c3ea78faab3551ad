"""
MRMS Proxy Module

Caching reverse-proxy for a remote ArcGIS image export service.

Features:
- Allow-listed, canonical upstream export URLs
- In-memory response cache with TTL expiry and LRU eviction
- Time-step metadata normalized to ISO-8601
"""

from .config import ProxyConfig
from .errors import (
    MrmsProxyError,
    ConfigurationError,
    UpstreamError,
    TransportError,
    ParseError,
)
from .memory_store import ResponseCache, CacheEntry
from .proxy_service import MrmsProxy, ExportResult, CachedImage
from .query_sanitizer import build_export_url, sanitize_export_params
from .routes_fastapi import create_router
from .time_normalizer import normalize_times

__all__ = [
    "ProxyConfig",
    "MrmsProxyError",
    "ConfigurationError",
    "UpstreamError",
    "TransportError",
    "ParseError",
    "ResponseCache",
    "CacheEntry",
    "MrmsProxy",
    "ExportResult",
    "CachedImage",
    "build_export_url",
    "sanitize_export_params",
    "create_router",
    "normalize_times",
]
