"""
Delivery helpers used by the HTTP wrapper.

- Caption previews are truncated and HTML-escaped here; MediaResult keeps
  the full caption.
- Media groups are sent in chunks of at most 10 items.
- Transient (tunnel) items never leave the relay as raw URLs. They are
  pointed at the relay download endpoint, which materializes them.
"""

import logging
from typing import Iterator, Sequence
from urllib.parse import urlencode

from .models.response import UNKNOWN_AUTHOR, DeliveryItem, DeliveryPlan, MediaItem, MediaResult
from .utils.helpers import escape_html, truncate

logger = logging.getLogger(__name__)

CAPTION_PREVIEW_LENGTH = 50
MEDIA_GROUP_SIZE = 10


def caption_preview(caption: str, length: int = CAPTION_PREVIEW_LENGTH) -> str:
    """Single-line, HTML-safe preview of *caption*."""
    if not caption:
        return ""
    return escape_html(truncate(caption, length).replace("\n", " "))


def format_caption(result: MediaResult) -> str:
    """Message caption for a delivered result (HTML parse mode)."""
    if result.author_handle and result.author_handle != UNKNOWN_AUTHOR:
        author = f"@{escape_html(result.author_handle)}"
    else:
        author = "Unknown"
    preview = caption_preview(result.caption) or "No caption"
    return f"👤 <b>Author</b>: {author}\n📝 <b>Caption</b>: {preview}"


def chunk_items(items: Sequence[MediaItem], size: int = MEDIA_GROUP_SIZE) -> Iterator[list[MediaItem]]:
    if size < 1:
        raise ValueError("size must be >= 1")
    for start in range(0, len(items), size):
        yield list(items[start : start + size])


def relay_download_url(item: MediaItem, download_endpoint: str) -> str:
    params = {"url": item.url}
    if item.filename:
        params["filename"] = item.filename
    return f"{download_endpoint}?{urlencode(params)}"


def build_plan(result: MediaResult, download_endpoint: str) -> DeliveryPlan:
    """
    Lay out *result* for delivery.

    *download_endpoint* is the absolute URL of the relay download route;
    transient items get a ``download_url`` on it so clients fetch the bytes
    through the relay rather than from the expiring tunnel.
    """
    groups = []
    for chunk in chunk_items(result.items):
        group = []
        for item in chunk:
            download_url = None
            if item.is_transient:
                download_url = relay_download_url(item, download_endpoint)
            group.append(DeliveryItem(item=item, download_url=download_url))
        groups.append(group)

    buffered = sum(1 for g in groups for d in g if d.download_url)
    if buffered:
        logger.info("Routing %d transient item(s) through the relay download", buffered)
    return DeliveryPlan(
        caption=format_caption(result), groups=groups, source_label=result.source_label
    )
