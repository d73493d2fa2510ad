"""
Bounded in-memory download of media for re-upload.

Tunnel URLs returned by extraction services expire quickly and cannot be
handed to a delivery channel that fetches lazily, so the bytes are pulled
through the relay first. The transfer is capped at ``max_bytes`` whether or
not the server answers the size probe.
"""

import logging
from typing import Callable

import httpx

from ..config import get_settings
from ..models.enums import ErrorKind
from .errors import RelayError
from .http_client import HTTPClient

logger = logging.getLogger(__name__)

# (percent or None when the size is unknown, bytes loaded, bytes total or None)
ProgressCallback = Callable[[int | None, int, int | None], None]

PROGRESS_STEP_PERCENT = 10
PROGRESS_STEP_BYTES = 1024 * 1024


def _content_length(response: httpx.Response) -> int | None:
    value = response.headers.get("content-length")
    if value is None:
        return None
    try:
        return int(value)
    except ValueError:
        return None


class _ProgressReporter:
    """Coalesces per-chunk progress into 10% steps (1 MiB steps when size is unknown)."""

    def __init__(self, callback: ProgressCallback | None, total: int | None):
        self._callback = callback
        self._total = total if total and total > 0 else None
        self._last_percent = 0
        self._last_bytes = 0

    def update(self, loaded: int):
        if self._callback is None:
            return
        if self._total:
            percent = min(100, loaded * 100 // self._total)
            if percent - self._last_percent < PROGRESS_STEP_PERCENT and percent < 100:
                return
            if percent == self._last_percent:
                return
            self._last_percent = percent
            self._emit(percent, loaded)
        elif loaded - self._last_bytes >= PROGRESS_STEP_BYTES:
            self._last_bytes = loaded
            self._emit(None, loaded)

    def _emit(self, percent: int | None, loaded: int):
        try:
            self._callback(percent, loaded, self._total)
        except Exception as e:
            logger.warning("Progress callback raised: %s", e)


async def probe_size(http: HTTPClient, url: str, headers: dict[str, str] | None = None) -> int | None:
    """Best-effort HEAD request. Any failure means 'unknown'."""
    try:
        response = await http.head(url, headers=headers)
    except httpx.HTTPError as e:
        logger.debug("Size probe failed for %s: %s", url, e)
        return None
    if not response.is_success:
        return None
    return _content_length(response)


async def materialize(
    url: str,
    max_bytes: int | None = None,
    on_progress: ProgressCallback | None = None,
    *,
    http: HTTPClient,
    headers: dict[str, str] | None = None,
    timeout: float | None = None,
) -> bytes:
    """
    Download *url* into memory, refusing anything larger than *max_bytes*.

    Raises:
        RelayError(PAYLOAD_TOO_LARGE): the probe reports a size above the cap.
        RelayError(DOWNLOAD_FAILED): non-2xx, transport error, or the cap is
            exceeded during transfer.
    """
    settings = get_settings()
    max_bytes = max_bytes or settings.max_upload_bytes
    timeout = timeout or settings.download_timeout

    size = await probe_size(http, url, headers)
    if size is not None and size > max_bytes:
        raise RelayError(
            f"Media is {size} bytes, above the {max_bytes} byte limit",
            ErrorKind.PAYLOAD_TOO_LARGE,
        )

    buffer = bytearray()
    try:
        async with http.stream("GET", url, headers=headers, timeout=timeout) as response:
            if not response.is_success:
                raise RelayError(
                    f"Download failed with HTTP {response.status_code}",
                    ErrorKind.DOWNLOAD_FAILED,
                    status_code=response.status_code,
                )
            total = _content_length(response) or size
            progress = _ProgressReporter(on_progress, total)
            async for chunk in response.aiter_bytes():
                buffer.extend(chunk)
                if len(buffer) > max_bytes:
                    raise RelayError(
                        f"Download exceeded the {max_bytes} byte limit",
                        ErrorKind.DOWNLOAD_FAILED,
                    )
                progress.update(len(buffer))
    except httpx.HTTPError as e:
        raise RelayError(f"Download failed: {e}", ErrorKind.DOWNLOAD_FAILED) from e

    logger.info("Materialized %d bytes from %s", len(buffer), url)
    return bytes(buffer)
