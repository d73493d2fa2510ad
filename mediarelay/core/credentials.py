"""
Credential and identity pool for upstream Instagram calls.

Holds session cookie strings (one per account) and user-agent strings split
by client class. The pool is built once at startup and never mutated:
rotation is a random-uniform pick per request, with no affinity.

Cookie sources:
- ``INSTAGRAM_COOKIES``: one or more ``name=value; ...`` strings separated
  by ``;;;``.
- ``<cookie_dir>/instagram.txt``: a Netscape/Mozilla cookie file. Malformed
  files fall back to a line-by-line parse and never crash startup.
"""

import logging
import random
import re
from http.cookiejar import MozillaCookieJar
from pathlib import Path
from typing import Sequence

import httpx

from ..config import get_cookie_dir
from ..models.enums import ClientClass, ErrorKind
from .errors import RelayError

logger = logging.getLogger(__name__)

COOKIE_SEPARATOR = ";;;"
MISSING_CSRF_TOKEN = "missing-token"
INSTAGRAM_ROOT = "https://www.instagram.com/"

MOBILE_USER_AGENTS = (
    # Android - Instagram app
    "Instagram 219.0.0.12.117 Android (31/12; 320dpi; 720x1280; samsung; SM-G960F; "
    "starlte; samsungexynos9810; en_US; 340910260)",
    "Instagram 250.0.0.21.109 Android (30/11; 420dpi; 1080x2340; Xiaomi; Mi 10; "
    "umi; qcom; en_US; 400534612)",
    "Instagram 236.0.0.20.109 Android (32/12; 440dpi; 1080x2400; Google; Pixel 6; "
    "oriole; google; en_US; 378629382)",
    # iOS - Instagram app
    "Instagram 275.0.0.16.92 (iPhone14,5; iOS 16_5; en_US; en; scale=3.00; "
    "1170x2532; 444218278)",
    "Instagram 268.0.0.18.75 (iPhone12,1; iOS 16_1; en_US; en; scale=2.00; "
    "828x1792; 436380008)",
)

BROWSER_USER_AGENTS = (
    (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) "
        "AppleWebKit/537.36 (KHTML, like Gecko) "
        "Chrome/131.0.0.0 Safari/537.36"
    ),
    (
        "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) "
        "AppleWebKit/537.36 (KHTML, like Gecko) "
        "Chrome/131.0.0.0 Safari/537.36"
    ),
    (
        "Mozilla/5.0 (X11; Linux x86_64) "
        "AppleWebKit/537.36 (KHTML, like Gecko) "
        "Chrome/131.0.0.0 Safari/537.36"
    ),
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64; rv:133.0) Gecko/20100101 Firefox/133.0",
    (
        "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/605.1.15 "
        "(KHTML, like Gecko) Version/17.1 Safari/605.1.15"
    ),
)

_CSRF_RE = re.compile(r"(?:^|;\s*)csrftoken=([^;]+)")


def split_cookie_pool(raw: str) -> list[str]:
    """Split a ``;;;``-separated cookie setting into individual cookie strings."""
    return [c.strip() for c in (raw or "").split(COOKIE_SEPARATOR) if c.strip()]


def cookie_value(cookie: str, name: str) -> str | None:
    """Return the value of *name* inside a ``Cookie`` header string."""
    for part in cookie.split(";"):
        key, sep, value = part.strip().partition("=")
        if sep and key.strip() == name:
            return value.strip()
    return None


def load_cookie_file(path: Path) -> str:
    """
    Load a Netscape cookie file and return it as a Cookie header string.

    Returns an empty string when the file is missing or yields no cookies.
    """
    if not path.exists():
        return ""

    cookies: dict[str, str] = {}
    try:
        jar = MozillaCookieJar(str(path))
        jar.load(ignore_discard=True, ignore_expires=True)
        for cookie in jar:
            cookies[cookie.name] = cookie.value or ""
    except Exception as e:
        logger.warning(
            "MozillaCookieJar failed for %s, trying manual parse: %s", path, e
        )
        cookies = _parse_cookie_lines(path)

    if not cookies:
        logger.error("No cookies could be parsed from %s", path)
        return ""

    logger.info("Loaded %d Instagram cookies from %s", len(cookies), path)
    return "; ".join(f"{k}={v}" for k, v in cookies.items())


def _parse_cookie_lines(path: Path) -> dict[str, str]:
    """Tab-separated Netscape lines or plain ``key=value`` lines."""
    try:
        raw = path.read_text(encoding="utf-8", errors="replace")
    except OSError as e:
        logger.error("Cannot read cookie file %s: %s", path, e)
        return {}

    cookies: dict[str, str] = {}
    for line in raw.splitlines():
        line = line.strip()
        if not line or line.startswith("#"):
            continue
        parts = line.split("\t")
        if len(parts) >= 7:
            name, value = parts[5].strip(), parts[6].strip()
        elif "=" in line:
            name, _, value = line.partition("=")
            name, value = name.strip(), value.strip()
        else:
            continue
        if name:
            cookies[name] = value
    return cookies


class CredentialPool:
    """
    Immutable pool of cookies and user agents.

    Absence of cookies is not an error here; adapters that need an
    authenticated session call ``require_cookie()`` before any request.
    """

    def __init__(
        self,
        cookies: Sequence[str] = (),
        mobile_user_agents: Sequence[str] = MOBILE_USER_AGENTS,
        browser_user_agents: Sequence[str] = BROWSER_USER_AGENTS,
        rng: random.Random | None = None,
    ):
        self._cookies = tuple(c.strip() for c in cookies if c and c.strip())
        self._user_agents = {
            ClientClass.MOBILE: tuple(mobile_user_agents) or MOBILE_USER_AGENTS,
            ClientClass.BROWSER: tuple(browser_user_agents) or BROWSER_USER_AGENTS,
        }
        self._rng = rng or random.Random()

    @classmethod
    def from_settings(cls, settings, cookie_dir: Path | None = None) -> "CredentialPool":
        cookies = split_cookie_pool(settings.instagram_cookies)
        directory = cookie_dir or get_cookie_dir(settings)
        file_cookie = load_cookie_file(directory / "instagram.txt")
        if file_cookie:
            cookies.append(file_cookie)
        logger.info("Credential pool initialised with %d cookie set(s)", len(cookies))
        return cls(cookies)

    @property
    def cookie_count(self) -> int:
        return len(self._cookies)

    def has_cookies(self) -> bool:
        return bool(self._cookies)

    def pick_cookie(self) -> str:
        if not self._cookies:
            return ""
        if len(self._cookies) == 1:
            return self._cookies[0]
        return self._rng.choice(self._cookies)

    def require_cookie(self) -> str:
        cookie = self.pick_cookie()
        if not cookie:
            raise RelayError(
                "Instagram cookies are required for this request. "
                "Set INSTAGRAM_COOKIES or add cookies/instagram.txt",
                ErrorKind.CREDENTIALS_MISSING,
            )
        return cookie

    def pick_user_agent(self, client_class: ClientClass = ClientClass.BROWSER) -> str:
        return self._rng.choice(self._user_agents[client_class])


async def obtain_csrf_token(http, cookie: str = "") -> str:
    """
    Return a CSRF token for GraphQL POSTs.

    Order: ``csrftoken`` inside *cookie*; then one unauthenticated GET of the
    Instagram root harvesting ``csrftoken`` from Set-Cookie; then the
    ``missing-token`` sentinel (upstream rejects it through the normal
    error path).
    """
    if cookie:
        match = _CSRF_RE.search(cookie)
        if match:
            return match.group(1).strip()

    try:
        response = await http.get(INSTAGRAM_ROOT)
    except httpx.HTTPError as e:
        logger.warning("CSRF bootstrap request failed: %s", e)
        return MISSING_CSRF_TOKEN

    token = response.cookies.get("csrftoken")
    if not token:
        for header in response.headers.get_list("set-cookie"):
            if header.startswith("csrftoken="):
                token = header.split(";", 1)[0].removeprefix("csrftoken=")
                break
    if not token:
        logger.warning("No csrftoken in Instagram root response; using sentinel")
    return token or MISSING_CSRF_TOKEN
