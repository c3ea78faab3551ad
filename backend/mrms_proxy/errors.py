"""
MRMS Proxy Errors

Exception taxonomy raised by the proxy service and mapped to HTTP
responses by the router.
"""

from typing import Optional


class MrmsProxyError(Exception):
    """Base class for all proxy errors."""


class ConfigurationError(MrmsProxyError):
    """A required upstream URL is not configured."""


class UpstreamError(MrmsProxyError):
    """Upstream answered with a non-success status."""

    def __init__(self, message: str, status: int, body: Optional[str] = None):
        super().__init__(message)
        self.status = status
        self.body = body or ""


class TransportError(MrmsProxyError):
    """Upstream could not be reached (network, DNS, timeout)."""


class ParseError(MrmsProxyError):
    """Upstream metadata document could not be decoded."""
