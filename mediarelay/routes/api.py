"""
API route definitions for the Media Relay.
"""

import logging
from urllib.parse import unquote, urlparse

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import Response

from ..config import get_cobalt_instances, get_settings
from ..core.download import materialize
from ..core.errors import (
    EMPTY_RESULT_KINDS,
    USER_CORRECTABLE_KINDS,
    RelayError,
)
from ..core.monitor import FailureMonitor
from ..core.ratelimit import RateLimiter
from ..core.stats import StatsCache
from ..delivery import build_plan
from ..models.enums import ErrorKind
from ..models.request import ResolveRequest
from ..models.response import DeliveryPlan, ErrorResponse, MediaResult
from ..resolver import Resolver
from ..utils.helpers import sanitize_filename

logger = logging.getLogger(__name__)

router = APIRouter()

# Allowed hostnames for the download proxy (avoids SSRF). Configured Cobalt
# instances are added at request time since tunnel URLs live on them.
_DOWNLOAD_ALLOWED_HOSTS = (
    "cdninstagram.com",
    "fbcdn.net",
    "tiktokcdn.com",
    "tiktokcdn-us.com",
    "tiktokv.com",
    "twimg.com",
    "pinimg.com",
    "redd.it",
    "redditmedia.com",
    "googlevideo.com",
    "vimeocdn.com",
    "sndcdn.com",
    "sc-cdn.net",
)


# === Dependencies ===


def get_resolver(request: Request) -> Resolver:
    return request.app.state.resolver


def get_stats(request: Request) -> StatsCache:
    return request.app.state.stats


def get_rate_limiter(request: Request) -> RateLimiter:
    return request.app.state.rate_limiter


def get_monitor(request: Request) -> FailureMonitor:
    return request.app.state.monitor


def _client_identity(request: Request) -> str:
    forwarded = request.headers.get("x-forwarded-for", "")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else "unknown"


# === Error mapping ===


def status_for(error: RelayError) -> int:
    """HTTP status for a pipeline error. ALL_METHODS_FAILED maps by its root cause."""
    kind = error.root_kind if error.kind == ErrorKind.ALL_METHODS_FAILED else error.kind
    if kind in USER_CORRECTABLE_KINDS:
        return 400
    if kind in EMPTY_RESULT_KINDS:
        return 404
    if kind == ErrorKind.UNAUTHORIZED:
        return 401
    if kind == ErrorKind.CREDENTIALS_MISSING:
        return 503
    if kind == ErrorKind.PAYLOAD_TOO_LARGE:
        return 413
    return 502


def _error(status_code: int, message: str, error_code: str) -> HTTPException:
    return HTTPException(
        status_code=status_code,
        detail={"success": False, "error": message, "error_code": error_code},
    )


# === Routes ===


_RESOLVE_RESPONSES = {
    400: {"model": ErrorResponse, "description": "Unrecognized input"},
    401: {"model": ErrorResponse, "description": "Upstream rejected the session"},
    404: {"model": ErrorResponse, "description": "Nothing to return"},
    429: {"model": ErrorResponse, "description": "Rate limited"},
    502: {"model": ErrorResponse, "description": "Upstream failure"},
    503: {"model": ErrorResponse, "description": "Credentials not configured"},
}


async def _resolve_input(
    body: ResolveRequest,
    request: Request,
    resolver: Resolver,
    stats: StatsCache,
    limiter: RateLimiter,
) -> MediaResult:
    """Rate limit, resolve and count one request; pipeline errors become HTTP errors."""
    identity = _client_identity(request)
    if not limiter.allow(identity):
        wait = limiter.retry_after(identity)
        raise _error(429, f"Too many requests. Try again in {wait:.0f}s.", "rate_limited")

    try:
        result = await resolver.resolve(body.input)
    except RelayError as e:
        logger.info("Resolve failed for %r: [%s] %s", body.input[:100], e.error_code, e)
        raise _error(status_for(e), str(e), e.error_code)
    except Exception as e:
        logger.exception("Unexpected error during resolution: %s", e)
        # Do not leak exception details in production
        message = (
            str(e) if get_settings().debug else "An internal error occurred. Please try again later."
        )
        raise _error(500, message, "internal_error")

    stats.record(identity, body.input.strip())
    return result


@router.post(
    "/resolve",
    response_model=MediaResult,
    responses=_RESOLVE_RESPONSES,
    summary="Resolve a link, @username or command into media URLs",
    description=(
        "Accepts an Instagram post/reel/story URL, a bare @username, a "
        "`/story|/highlights|/posts|/pfp|/profile <username>` command or a "
        "TikTok/X/Facebook/Pinterest/... URL and returns direct media URLs."
    ),
)
async def resolve_media(
    body: ResolveRequest,
    request: Request,
    resolver: Resolver = Depends(get_resolver),
    stats: StatsCache = Depends(get_stats),
    limiter: RateLimiter = Depends(get_rate_limiter),
):
    return await _resolve_input(body, request, resolver, stats, limiter)


@router.post(
    "/deliver",
    response_model=DeliveryPlan,
    responses=_RESOLVE_RESPONSES,
    summary="Resolve an input and lay it out for delivery",
    description=(
        "Same input as /resolve. Returns an HTML caption and the media split "
        "into groups of at most 10. Transient items carry a relay download URL "
        "to be used instead of their expiring tunnel URL."
    ),
)
async def deliver_media(
    body: ResolveRequest,
    request: Request,
    resolver: Resolver = Depends(get_resolver),
    stats: StatsCache = Depends(get_stats),
    limiter: RateLimiter = Depends(get_rate_limiter),
):
    result = await _resolve_input(body, request, resolver, stats, limiter)
    return build_plan(result, str(request.url_for("download_media")))


def _download_host_allowed(host: str) -> bool:
    allowed = list(_DOWNLOAD_ALLOWED_HOSTS)
    allowed.extend(urlparse(i).hostname or "" for i in get_cobalt_instances())
    return any(h and (host == h or host.endswith("." + h)) for h in allowed)


@router.get(
    "/download",
    summary="Download a media URL through the relay",
    description=(
        "Downloads the media into memory (capped at MAX_UPLOAD_BYTES) and returns "
        "it. Needed for tunnel URLs, which expire quickly. Only CDN hosts and "
        "configured extraction services are permitted."
    ),
)
async def download_media(
    url: str,
    filename: str = "",
    resolver: Resolver = Depends(get_resolver),
):
    decoded = unquote(url.strip())
    parsed = urlparse(decoded)
    if parsed.scheme not in ("http", "https") or not parsed.hostname:
        raise _error(400, "Invalid url parameter", "invalid_url")
    if not _download_host_allowed(parsed.hostname.lower()):
        raise _error(400, "URL host not allowed for download (SSRF protection)", "host_not_allowed")

    try:
        content = await materialize(decoded, get_settings().max_upload_bytes, http=resolver.http)
    except RelayError as e:
        raise _error(status_for(e), str(e), e.error_code)

    headers = {"Cache-Control": "no-store"}
    if filename:
        headers["Content-Disposition"] = f'attachment; filename="{sanitize_filename(filename)}"'
    return Response(content=content, media_type="application/octet-stream", headers=headers)


@router.get("/stats", summary="Usage statistics")
async def get_usage_stats(
    stats: StatsCache = Depends(get_stats),
    monitor: FailureMonitor = Depends(get_monitor),
):
    return {**stats.summary(), "failures": monitor.counts()}


@router.get(
    "/health",
    summary="Health check",
    description="Check the health of the relay including credential and extraction-service status.",
)
async def health_check(resolver: Resolver = Depends(get_resolver)):
    return {
        "status": "healthy",
        "cookies": resolver.credentials.cookie_count,
        "cobalt_instances": len(resolver.cobalt),
    }
