"""
Image CDN API Routes

Provides endpoints for:
- Uploading an image and getting a cached rendition URL
- Serving cached renditions
- Cache statistics, manual cleanup and health
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, File, HTTPException, Query, Request, UploadFile
from fastapi.responses import JSONResponse, Response
from pydantic import BaseModel, Field

from .config import OUTPUT_CONTENT_TYPE
from .errors import NotFound
from .intake import stage_upload
from .models import TransformSpec

logger = logging.getLogger(__name__)


# ============================================
# Dependencies
# ============================================

def get_server(request: Request):
    """The CDNServer context attached by create_app()."""
    return request.app.state.cdn


async def enforce_rate_limit(request: Request, server=Depends(get_server)):
    """Reject clients that exceeded their request budget."""
    client_key = request.client.host if request.client else "unknown"
    if not await server.rate_limiter.hit(client_key):
        logger.warning(f"[ImageCDN] Rate limit exceeded for {client_key}")
        raise HTTPException(
            status_code=429,
            detail="Too many requests, please try again later.",
            headers={"Retry-After": str(server.rate_limiter.retry_after(client_key))},
        )


# ============================================
# Response Models
# ============================================

class UploadResponse(BaseModel):
    """Response model for a successful upload"""
    success: bool = True
    url: str = Field(..., description="Path of the cached rendition, e.g. /cdn/<key>")
    key: str = Field(..., description="Cache key (filename)")
    cache: str = Field(..., description="HIT if the rendition already existed, else MISS")


class CleanupResponse(BaseModel):
    """Response model for a manual sweep"""
    success: bool
    scanned: int
    deleted: int
    failed: int
    duration_ms: int


# ============================================
# Router
# ============================================

router = APIRouter(tags=["Image CDN"], dependencies=[Depends(enforce_rate_limit)])


# ============================================
# Endpoints
# ============================================

@router.post("/upload", response_model=UploadResponse)
async def upload_image(
    file: Optional[UploadFile] = File(None),
    width: Optional[str] = Query(None, description="Target width in pixels (1-5000)"),
    height: Optional[str] = Query(None, description="Target height in pixels (1-5000)"),
    quality: Optional[str] = Query(None, description="JPEG quality (1-100, default 80)"),
    server=Depends(get_server),
):
    """
    Upload an image and get a URL to its transformed, cached rendition.

    This endpoint:
    1. Validates and stages the upload
    2. Normalizes width/height/quality (invalid values fall back to auto/80)
    3. Returns the existing rendition if cached, otherwise renders and caches it

    Example:
        POST /upload?width=50&quality=90  (multipart field "file")
    """
    spec = TransformSpec.from_params(
        width, height, quality, default_quality=server.config.default_quality
    )

    # ValidationFailure propagates to the app's error handler (400)
    asset = await stage_upload(file, server.config)

    result = await server.orchestrator.process(asset, spec)
    if not result.success:
        return JSONResponse(
            status_code=500,
            content={"error": "Failed to process the image."},
        )

    cache_status = "HIT" if result.cache_hit else "MISS"
    return JSONResponse(
        content=UploadResponse(url=result.url, key=result.key, cache=cache_status).model_dump(),
        headers={"X-Cache": cache_status},
    )


@router.get("/cdn/{file_name:path}")
async def get_cached_image(file_name: str, server=Depends(get_server)):
    """
    Serve a cached rendition.

    403 if the name escapes the cache root, 404 if the entry is absent
    (never cached, or already evicted).
    """
    # AccessDenied / NotFound propagate to the app's error handler (403 / 404)
    server.guard.resolve(file_name)

    data = await server.store.read(file_name)
    if data is None:
        raise NotFound("File not found.")

    return Response(
        content=data,
        media_type=OUTPUT_CONTENT_TYPE,
        headers={"Cache-Control": "public, max-age=86400"},
    )


@router.get("/api/cdn/stats")
async def get_cache_stats(server=Depends(get_server)):
    """
    Get cache statistics.

    Returns information about:
    - Total cached entries and size
    - Retention and sweep configuration
    - Last sweep result
    """
    stats = await server.store.stats()
    last = server.sweeper.last_report
    return JSONResponse(content={
        "success": True,
        "stats": {
            **stats,
            "retention_days": server.config.retention_seconds / 86400,
            "sweep_interval_hours": server.config.sweep_interval_seconds / 3600,
            "last_sweep": last.to_dict() if last else None,
        },
    })


@router.post("/api/cdn/cleanup", response_model=CleanupResponse)
async def cleanup_cache(server=Depends(get_server)):
    """
    Run an eviction sweep now.

    This is done automatically on the sweep interval,
    but can be triggered manually if needed.
    """
    report = await server.sweeper.run_once()
    return CleanupResponse(success=True, **report.to_dict())


@router.get("/api/cdn/health")
async def health_check(server=Depends(get_server)):
    """Health check endpoint."""
    return JSONResponse(content={
        "status": "healthy",
        "service": "image-cdn",
        "sweeper_running": server.sweeper.running,
        "cache_stats": await server.store.stats(),
    })
