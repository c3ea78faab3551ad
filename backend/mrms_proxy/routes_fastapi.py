"""
MRMS Proxy API Routes

Provides endpoints for:
- Proxying sanitized image exports (cached bytes)
- Listing available time-steps (cached metadata)
- Cache statistics and cleanup
"""

import logging
from typing import List
from fastapi import APIRouter, Request
from fastapi.responses import Response, JSONResponse
from pydantic import BaseModel, Field

from .config import CLIENT_CACHE_CONTROL
from .errors import ConfigurationError, UpstreamError
from .proxy_service import MrmsProxy

logger = logging.getLogger(__name__)


# ============================================
# Response Models
# ============================================

class TimesResponse(BaseModel):
    """Available time-steps, most recent first"""
    source: str = Field(..., description="Metadata URL the times were read from")
    fetchedAt: str = Field(..., description="ISO-8601 instant the metadata was fetched")
    times: List[str] = Field(..., description="ISO-8601 time-steps")


class CacheStats(BaseModel):
    """Response cache statistics"""
    total_entries: int
    live_entries: int
    max_entries: int
    default_ttl_seconds: float
    hits: int
    misses: int
    evictions: int
    hit_rate: float


class CacheStatsResponse(BaseModel):
    success: bool
    stats: CacheStats


def _error_response(error: Exception) -> JSONResponse:
    """Map a proxy failure to the JSON error contract."""
    if isinstance(error, ConfigurationError):
        return JSONResponse(status_code=500, content={"error": str(error)})
    if isinstance(error, UpstreamError):
        return JSONResponse(
            status_code=502,
            content={"error": str(error), "status": error.status, "body": error.body},
        )
    return JSONResponse(status_code=500, content={"error": str(error)})


def create_router(proxy: MrmsProxy, prefix: str = "/api/mrms") -> APIRouter:
    """
    Build the proxy router bound to a proxy instance.

    Args:
        proxy: Configured proxy (owns the cache and HTTP client)
        prefix: Mount point for all endpoints
    """
    router = APIRouter(prefix=prefix, tags=["MRMS Proxy"])

    @router.get("/export")
    async def export_image(request: Request):
        """
        Proxy an image export.

        Only bbox, size, time, bboxSR, imageSR, format, layers, layerDefs
        and dpi are forwarded; the output is always a transparent png32.

        Example:
            GET /api/mrms/export?bbox=-100,30,-90,40&size=256,256
        """
        try:
            # Raw query string so repeated keys resolve first-wins
            result = await proxy.fetch_export(request.url.query)
        except ConfigurationError as e:
            logger.error(f"[MrmsProxy] Export unavailable: {e}")
            return _error_response(e)
        except UpstreamError as e:
            return _error_response(e)
        except Exception as e:
            logger.exception(f"[MrmsProxy] Export error: {e}")
            return _error_response(e)

        return Response(
            content=result.content,
            media_type=result.content_type,
            headers={
                "X-Cache": "HIT" if result.cache_hit else "MISS",
                "Cache-Control": CLIENT_CACHE_CONTROL,
            },
        )

    @router.get("/times", response_model=TimesResponse)
    async def list_times():
        """
        List available time-steps, most recent first.

        Returns:
            {"source": ..., "fetchedAt": ..., "times": [...]}
        """
        try:
            record = await proxy.fetch_times()
        except ConfigurationError as e:
            logger.error(f"[MrmsProxy] Times unavailable: {e}")
            return _error_response(e)
        except UpstreamError as e:
            return _error_response(e)
        except Exception as e:
            logger.exception(f"[MrmsProxy] Times error: {e}")
            return _error_response(e)

        return TimesResponse(**record)

    @router.get("/stats", response_model=CacheStatsResponse)
    async def get_cache_stats():
        """Get response cache statistics."""
        return CacheStatsResponse(success=True, stats=CacheStats(**proxy.cache.stats()))

    @router.post("/cleanup")
    async def cleanup_cache():
        """
        Remove expired cache entries.

        Expired entries are never served, this only frees memory early.
        """
        removed = proxy.cache.cleanup_expired()
        return JSONResponse(content={
            "success": True,
            "removed_entries": removed,
            "current_stats": proxy.cache.stats(),
        })

    return router
