"""
General utility functions used across adapters and normalizers.
Ported from yt-dlp's utils.py style helpers.
"""

import html
import json
import re
from typing import Any


def traverse_obj(obj: Any, *paths: Any, default: Any = None) -> Any:
    """
    Traverse nested dicts/lists safely.
    Ported from yt-dlp's traverse_obj utility.

    Usage:
        traverse_obj(data, 'key1', 'key2', 'key3')
        traverse_obj(data, ('key1', 'key2'), ('alt_key1', 'alt_key2'))
    """
    for path in paths:
        if isinstance(path, (list, tuple)):
            result = obj
            for key in path:
                if result is None:
                    break
                if isinstance(result, dict):
                    result = result.get(key)
                elif isinstance(result, (list, tuple)):
                    try:
                        result = result[key]
                    except (IndexError, TypeError):
                        result = None
                else:
                    result = None
            if result is not None:
                return result
        else:
            if isinstance(obj, dict) and path in obj:
                return obj[path]
    return default


def int_or_none(v: Any, scale: int = 1) -> int | None:
    """Convert value to int or return None."""
    if v is None:
        return None
    try:
        return int(v) // scale
    except (ValueError, TypeError):
        return None


def str_or_none(v: Any) -> str | None:
    """Convert value to string or return None."""
    if v is None:
        return None
    result = str(v).strip()
    return result if result else None


def url_or_none(v: Any) -> str | None:
    """Validate and return URL or None."""
    if not v or not isinstance(v, str):
        return None
    v = v.strip()
    if v.startswith(("http://", "https://")):
        return v
    if v.startswith("//"):
        return f"https:{v}"
    return None


_COUNT_SUFFIXES = {"K": 1_000, "M": 1_000_000, "B": 1_000_000_000}


def parse_count(value: str | None) -> int:
    """
    Parse abbreviated counts as shown on profile pages.

    "1,234" -> 1234, "12.5K" -> 12500, "3M" -> 3000000, "1.2B" -> 1200000000.
    Unparseable input yields 0.
    """
    if not value:
        return 0
    text = value.strip().replace(",", "").upper()
    multiplier = 1
    if text and text[-1] in _COUNT_SUFFIXES:
        multiplier = _COUNT_SUFFIXES[text[-1]]
        text = text[:-1]
    try:
        return round(float(text) * multiplier)
    except ValueError:
        return 0


def extract_json_ld(html_text: str) -> dict | None:
    """Return the first JSON-LD object embedded in the page, if any."""
    for match in re.finditer(
        r'<script\s+type="application/ld\+json"[^>]*>(.*?)</script>',
        html_text,
        re.DOTALL | re.IGNORECASE,
    ):
        try:
            data = json.loads(match.group(1))
        except json.JSONDecodeError:
            continue
        if isinstance(data, list):
            data = next((d for d in data if isinstance(d, dict)), None)
        if isinstance(data, dict):
            return data
    return None


def search_meta(html_text: str, prop: str) -> str | None:
    """Read an Open Graph style ``<meta property=... content=...>`` value."""
    prop = re.escape(prop)
    for pattern in (
        rf'<meta\s+property="{prop}"\s+content="([^"]*)"',
        rf'<meta\s+content="([^"]*)"\s+property="{prop}"',
    ):
        match = re.search(pattern, html_text, re.IGNORECASE)
        if match:
            return html.unescape(match.group(1))
    return None


def escape_html(text: str) -> str:
    """Escape the characters that break Telegram/HTML formatted captions."""
    return html.escape(text, quote=False)


def truncate(text: str, length: int, suffix: str = "...") -> str:
    """Cut *text* to *length* characters, appending *suffix* when shortened."""
    if len(text) <= length:
        return text
    return text[:length] + suffix


def sanitize_filename(filename: str) -> str:
    """Remove or replace characters that are invalid in filenames."""
    # Replace problematic characters
    filename = re.sub(r'[<>:"/\\|?*]', "_", filename)
    # Remove control characters
    filename = re.sub(r"[\x00-\x1f\x7f]", "", filename)
    # Trim whitespace and dots
    filename = filename.strip(". ")
    return filename or "download"
