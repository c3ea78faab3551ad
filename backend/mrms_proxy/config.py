"""
MRMS Proxy Configuration

Reads process environment into an explicit, immutable config object
that is handed to the proxy at construction time.
"""

import os
import logging
from dataclasses import dataclass
from typing import Optional

logger = logging.getLogger(__name__)

DEFAULT_PORT = 8787
DEFAULT_CACHE_MAX_ENTRIES = 500
DEFAULT_CACHE_TTL_MS = 2 * 60 * 1000
DEFAULT_TIMES_TTL_MS = 30 * 1000
DEFAULT_UPSTREAM_TIMEOUT_SECONDS = 30.0

# Browser cache hint, independent of the in-process cache TTL
CLIENT_CACHE_CONTROL = "public, max-age=60"

EXPORT_PATH = "/MapServer/export"
METADATA_PATH = "/ImageServer?f=json"


def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = int(raw)
    except ValueError:
        logger.warning(f"[Config] Invalid integer for {name}: {raw!r}, using {default}")
        return default
    if value <= 0:
        logger.warning(f"[Config] {name} must be positive, got {value}, using {default}")
        return default
    return value


def _float_env(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = float(raw)
    except ValueError:
        logger.warning(f"[Config] Invalid number for {name}: {raw!r}, using {default}")
        return default
    if not value > 0:
        logger.warning(f"[Config] {name} must be positive, got {value}, using {default}")
        return default
    return value


@dataclass(frozen=True)
class ProxyConfig:
    """Upstream endpoints and cache sizing."""
    export_base: Optional[str] = None
    metadata_url_override: Optional[str] = None
    port: int = DEFAULT_PORT
    cache_max_entries: int = DEFAULT_CACHE_MAX_ENTRIES
    cache_ttl_ms: int = DEFAULT_CACHE_TTL_MS
    times_ttl_ms: int = DEFAULT_TIMES_TTL_MS
    upstream_timeout_seconds: float = DEFAULT_UPSTREAM_TIMEOUT_SECONDS

    @classmethod
    def from_env(cls) -> "ProxyConfig":
        """Build config from environment variables."""
        config = cls(
            export_base=os.getenv("UPSTREAM_EXPORT_BASE") or None,
            metadata_url_override=os.getenv("UPSTREAM_METADATA_URL") or None,
            port=_int_env("PORT", DEFAULT_PORT),
            cache_max_entries=_int_env("CACHE_MAX_ENTRIES", DEFAULT_CACHE_MAX_ENTRIES),
            cache_ttl_ms=_int_env("CACHE_TTL_MS", DEFAULT_CACHE_TTL_MS),
            times_ttl_ms=_int_env("CACHE_TIMES_TTL_MS", DEFAULT_TIMES_TTL_MS),
            upstream_timeout_seconds=_float_env(
                "UPSTREAM_TIMEOUT_SECONDS", DEFAULT_UPSTREAM_TIMEOUT_SECONDS
            ),
        )
        if not config.export_base:
            logger.warning(
                "[Config] UPSTREAM_EXPORT_BASE not configured - proxy will not work until set"
            )
        return config

    @property
    def cache_ttl_seconds(self) -> float:
        return self.cache_ttl_ms / 1000.0

    @property
    def times_ttl_seconds(self) -> float:
        return self.times_ttl_ms / 1000.0

    @property
    def metadata_url(self) -> Optional[str]:
        """
        Metadata endpoint: explicit override, else derived from the export base.

        Returns None when neither is configured.
        """
        if self.metadata_url_override:
            return self.metadata_url_override
        if self.export_base:
            return self.export_base.replace(EXPORT_PATH, METADATA_PATH)
        return None
