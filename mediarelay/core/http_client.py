"""
Async HTTP client wrapper with browser impersonation and cookie support.

The client does not retry on its own: upstream calls are wrapped by
``core.retry.execute`` at the call site so that each adapter owns its
retry policy and the failure monitor sees every exhausted call exactly once.

Timeouts:
- Metadata calls use ``request_timeout`` (default 15 s).
- Streamed media transfers pass ``timeout=download_timeout`` (default 120 s).
"""

import logging
from contextlib import asynccontextmanager
from http.cookiejar import CookieJar, DefaultCookiePolicy
from typing import Any, AsyncIterator

import httpx

from ..config import get_settings

logger = logging.getLogger(__name__)

# Transport-level failures worth retrying.
NETWORK_ERRORS = (
    httpx.TimeoutException,  # base for all timeout variants
    httpx.ConnectError,
    httpx.ReadError,
    httpx.WriteError,
    httpx.RemoteProtocolError,
    httpx.CloseError,
)

_BROWSER_HEADERS = {
    "Accept": (
        "text/html,application/xhtml+xml,application/xml;"
        "q=0.9,image/avif,image/webp,*/*;q=0.8"
    ),
    "Accept-Language": "en-US,en;q=0.9",
    "Accept-Encoding": "gzip, deflate, br",
    "Connection": "keep-alive",
}


class HTTPClient:
    """
    Async HTTP client with configurable headers and timeouts.
    Wraps httpx.AsyncClient; a single instance is shared by all adapters
    of a resolver so connections are pooled across requests.
    """

    def __init__(
        self,
        timeout: int | None = None,
        headers: dict[str, str] | None = None,
        follow_redirects: bool = True,
        impersonate_browser: bool = True,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        settings = get_settings()
        self._timeout = timeout or settings.request_timeout
        self._follow_redirects = follow_redirects
        self._transport = transport

        default_headers: dict[str, str] = dict(_BROWSER_HEADERS) if impersonate_browser else {}
        if headers:
            default_headers.update(headers)

        self._default_headers = default_headers
        self._client: httpx.AsyncClient | None = None

    # ------------------------------------------------------------------
    # Client lifecycle
    # ------------------------------------------------------------------

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(
                    self._timeout,
                    connect=10.0,
                    read=self._timeout,
                    write=10.0,
                    pool=10.0,
                ),
                follow_redirects=self._follow_redirects,
                headers=self._default_headers,
                # Sessions are chosen per request; never persist upstream Set-Cookie.
                cookies=CookieJar(policy=DefaultCookiePolicy(allowed_domains=[])),
                http2=True,
                transport=self._transport,
                limits=httpx.Limits(
                    max_connections=50,
                    max_keepalive_connections=10,
                    keepalive_expiry=30.0,
                ),
            )
        return self._client

    async def close(self):
        if self._client and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    # ------------------------------------------------------------------
    # Requests
    # ------------------------------------------------------------------

    async def request(
        self,
        method: str,
        url: str,
        *,
        headers: dict[str, str] | None = None,
        params: dict[str, Any] | None = None,
        data: Any = None,
        json: Any = None,
        follow_redirects: bool | None = None,
        timeout: float | None = None,
    ) -> httpx.Response:
        """Make a single HTTP request. Non-2xx responses are returned, not raised."""
        client = await self._get_client()
        kwargs: dict[str, Any] = {}
        if timeout is not None:
            kwargs["timeout"] = timeout
        logger.debug("%s %s", method, url)
        return await client.request(
            method,
            url,
            headers=headers,
            params=params,
            data=data,
            json=json,
            follow_redirects=(
                follow_redirects if follow_redirects is not None else self._follow_redirects
            ),
            **kwargs,
        )

    async def get(self, url: str, **kwargs) -> httpx.Response:
        return await self.request("GET", url, **kwargs)

    async def post(self, url: str, **kwargs) -> httpx.Response:
        return await self.request("POST", url, **kwargs)

    async def head(self, url: str, **kwargs) -> httpx.Response:
        return await self.request("HEAD", url, **kwargs)

    @asynccontextmanager
    async def stream(
        self,
        method: str,
        url: str,
        *,
        headers: dict[str, str] | None = None,
        timeout: float | None = None,
    ) -> AsyncIterator[httpx.Response]:
        """Stream a response body (used for bounded media transfers)."""
        client = await self._get_client()
        kwargs: dict[str, Any] = {}
        if timeout is not None:
            kwargs["timeout"] = timeout
        async with client.stream(
            method, url, headers=headers, follow_redirects=True, **kwargs
        ) as response:
            yield response

    async def resolve_redirect(self, url: str, headers: dict[str, str] | None = None) -> str:
        """Follow redirects with a GET and return the final URL."""
        response = await self.get(url, headers=headers, follow_redirects=True)
        return str(response.url)

    # ------------------------------------------------------------------
    # Context manager
    # ------------------------------------------------------------------

    async def __aenter__(self):
        return self

    async def __aexit__(self, *args):
        await self.close()
