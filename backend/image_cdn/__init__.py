"""
Image CDN Module

Upload an image with optional width/height/quality and get back a URL to a
cached JPEG rendition.

Features:
- Deterministic, content-addressed cache keys
- Flat file cache with atomic writes
- Path-traversal guard on cache reads
- Background eviction of entries older than the retention window
"""

from .app import CDNServer, create_app
from .cache_store import ImageCacheStore
from .config import CDNConfig
from .keys import derive_cache_key
from .models import StagedAsset, TransformResult, TransformSpec
from .orchestrator import TransformOrchestrator
from .path_guard import PathGuard
from .sweeper import EvictionSweeper

__all__ = [
    "CDNConfig",
    "CDNServer",
    "create_app",
    "derive_cache_key",
    "EvictionSweeper",
    "ImageCacheStore",
    "PathGuard",
    "StagedAsset",
    "TransformOrchestrator",
    "TransformResult",
    "TransformSpec",
]
