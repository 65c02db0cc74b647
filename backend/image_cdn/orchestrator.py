"""
Transform Orchestrator

Miss path between an uploaded image and a cache entry:
1. Derive the cache key from (asset identity, spec)
2. Cache hit -> return the key, no transform work
3. Cache miss -> transform in a worker thread, write to the store
4. Always delete the staged upload, whatever happened

Concurrent misses for the same key may both transform and write; the bytes
are identical so the duplicate work is harmless.
"""

import asyncio
import logging
from pathlib import Path
from typing import Callable, Optional, Tuple

from .cache_store import ImageCacheStore
from .errors import ImageCDNError, ProcessingFailure
from .intake import discard_staged
from .keys import derive_cache_key
from .models import StagedAsset, TransformResult, TransformSpec
from .transformer import transform_image

logger = logging.getLogger(__name__)

TransformFunc = Callable[[Path, TransformSpec], bytes]


class TransformOrchestrator:
    """
    Turns staged uploads into cached renditions.

    Usage:
        orchestrator = TransformOrchestrator(store)
        result = await orchestrator.process(asset, spec)
        if result.success:
            print(result.url)
    """

    def __init__(
        self,
        store: ImageCacheStore,
        transform: Optional[TransformFunc] = None,
        url_prefix: str = "/cdn",
    ):
        self.store = store
        self.transform = transform or transform_image
        self.url_prefix = url_prefix.rstrip("/")

    def url_for(self, key: str) -> str:
        return f"{self.url_prefix}/{key}"

    async def process(self, asset: StagedAsset, spec: TransformSpec) -> TransformResult:
        """
        Produce (or find) the cached rendition for ``asset`` under ``spec``.

        The staged asset is deleted on every exit path, including
        cancellation.

        Returns:
            TransformResult with the key/url on success, or the failure kind
            and message on ProcessingFailure/StorageFailure.
        """
        try:
            key, cache_hit = await self._ensure_cached(asset, spec)
        except ImageCDNError as e:
            logger.error(f"[Orchestrator] {e.kind.value} failure for {asset.filename}: {e.message}")
            return TransformResult.failed(e.kind, e.message)
        finally:
            await asyncio.shield(discard_staged(asset))

        return TransformResult.ok(key=key, url=self.url_for(key), cache_hit=cache_hit)

    async def _ensure_cached(self, asset: StagedAsset, spec: TransformSpec) -> Tuple[str, bool]:
        key = derive_cache_key(asset.identity, spec)

        if await self.store.exists(key):
            logger.info(f"[Orchestrator] Serving from cache: {key}")
            return key, True

        logger.info(f"[Orchestrator] Cache miss, processing {asset.filename} -> {key}")
        try:
            rendered = await asyncio.to_thread(self.transform, asset.path, spec)
        except OSError as e:
            # Staged file missing or unreadable
            raise ProcessingFailure(f"Failed to read staged upload: {e}") from e

        await self.store.write(key, rendered)
        logger.info(f"[Orchestrator] Cached {key} ({len(rendered)} bytes)")
        return key, False
