"""
Image CDN Application

Builds the FastAPI app around one explicit CDNServer context. The context
owns the config, path guard, cache store, orchestrator, sweeper and rate
limiter; the app lifespan starts and stops the sweeper.

Run with:
    uvicorn image_cdn.app:create_app --factory
"""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, PlainTextResponse

from .cache_store import ImageCacheStore
from .config import CDNConfig
from .errors import AccessDenied, ImageCDNError, NotFound
from .orchestrator import TransformOrchestrator
from .path_guard import PathGuard
from .rate_limiter import SlidingWindowRateLimiter
from .routes_fastapi import router
from .sweeper import EvictionSweeper

logger = logging.getLogger(__name__)

ALLOWED_METHODS = {"GET", "POST"}

SECURITY_HEADERS = {
    "Content-Security-Policy": (
        "default-src 'self'; script-src 'self'; style-src 'self'; "
        "img-src 'self' data:; connect-src 'self'; font-src 'self'; object-src 'none'"
    ),
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "SAMEORIGIN",
    "Referrer-Policy": "no-referrer",
}


class CDNServer:
    """Everything a request handler needs, constructed once per app."""

    def __init__(self, config: CDNConfig):
        config.ensure_directories()
        self.config = config
        self.guard = PathGuard(config.cache_dir)
        self.store = ImageCacheStore(config.cache_dir, self.guard)
        self.orchestrator = TransformOrchestrator(self.store)
        self.sweeper = EvictionSweeper(
            self.store,
            retention_seconds=config.retention_seconds,
            interval_seconds=config.sweep_interval_seconds,
        )
        self.rate_limiter = SlidingWindowRateLimiter(
            max_requests=config.rate_limit_max,
            window_seconds=config.rate_limit_window_seconds,
        )

    async def start(self) -> None:
        self.sweeper.start()
        logger.info(
            f"[ImageCDN] Ready (uploads: {self.config.upload_dir}, cache: {self.config.cache_dir})"
        )

    async def stop(self) -> None:
        await self.sweeper.stop()


async def handle_cdn_error(request: Request, exc: ImageCDNError):
    """Map CDN errors to responses: plain text for a missing entry, JSON otherwise."""
    if isinstance(exc, NotFound):
        return PlainTextResponse(status_code=exc.status_code, content=exc.message)
    if isinstance(exc, AccessDenied):
        client = request.client.host if request.client else "unknown"
        logger.warning(f"[ImageCDN] Denied {request.url.path} from {client}")
    return JSONResponse(status_code=exc.status_code, content={"error": exc.message})


def create_app(config: Optional[CDNConfig] = None) -> FastAPI:
    """
    Create the image CDN app.

    Args:
        config: Runtime configuration, defaults to CDNConfig.from_env()
    """
    server = CDNServer(config or CDNConfig.from_env())

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        await server.start()
        try:
            yield
        finally:
            await server.stop()

    app = FastAPI(title="Image CDN", lifespan=lifespan)
    app.state.cdn = server

    @app.middleware("http")
    async def restrict_methods_and_secure(request: Request, call_next):
        if request.method not in ALLOWED_METHODS:
            response = JSONResponse(status_code=405, content={"error": "Method Not Allowed"})
        else:
            response = await call_next(request)
        for name, value in SECURITY_HEADERS.items():
            response.headers.setdefault(name, value)
        return response

    app.add_exception_handler(ImageCDNError, handle_cdn_error)
    app.include_router(router)
    return app
