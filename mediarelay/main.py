"""
Media Relay - FastAPI application entry point.

Resolves Instagram posts, reels, stories, highlights, recent posts and
profiles, plus TikTok, X/Twitter, Facebook, Pinterest and other links via
Cobalt-compatible extraction services.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .config import get_settings
from .core.monitor import FailureMonitor
from .core.ratelimit import RateLimiter
from .core.stats import StatsCache, StatsStore
from .resolver import Resolver
from .routes.api import router

# Configure logging
logging.basicConfig(
    level=logging.DEBUG if get_settings().debug else logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan: startup and shutdown events."""
    logger.info("Media Relay starting up...")

    settings = get_settings()
    logger.info(f"Debug mode: {settings.debug}")
    logger.info(f"Cookie directory: {settings.cookie_dir}")

    monitor = FailureMonitor(webhook_url=settings.alert_webhook_url)
    resolver = Resolver.from_settings(settings, monitor=monitor)
    if not resolver.credentials.has_cookies():
        logger.warning("No Instagram cookies configured - stories, highlights and posts will fail")
    logger.info(f"Cobalt instances: {len(resolver.cobalt)}")

    stats = StatsCache(StatsStore(settings.stats_store_url))
    await stats.warm()

    app.state.monitor = monitor
    app.state.resolver = resolver
    app.state.stats = stats
    app.state.rate_limiter = RateLimiter(settings.rate_limit_requests, settings.rate_limit_window)

    yield

    logger.info("Media Relay shutting down...")
    await resolver.close()


app = FastAPI(
    title="Media Relay",
    description=(
        "Resolves Instagram links, usernames and commands, plus TikTok, X/Twitter, "
        "Facebook and Pinterest links, into direct media URLs with automatic "
        "fallback between upstream methods."
    ),
    version="1.0.0",
    lifespan=lifespan,
)

# CORS: use CORS_ORIGINS env (comma-separated) for explicit origins; empty = "*" without credentials (safe default)
_origins = [o.strip() for o in get_settings().cors_origins.split(",") if o.strip()]
app.add_middleware(
    CORSMiddleware,
    allow_origins=_origins if _origins else ["*"],
    allow_credentials=bool(_origins),
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include API routes
app.include_router(router, prefix="/api")


@app.get("/", tags=["root"])
async def root():
    return {
        "name": "Media Relay",
        "version": "1.0.0",
        "docs": "/docs",
        "endpoints": {
            "resolve": "/api/resolve",
            "deliver": "/api/deliver",
            "download": "/api/download",
            "stats": "/api/stats",
            "health": "/api/health",
        },
    }


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "mediarelay.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
    )
