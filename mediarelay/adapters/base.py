"""
Base adapter class that all upstream adapters inherit from.

An adapter turns a ResourceReference into a RawPayload by talking to exactly
one upstream surface. Adapters never normalize; that is the normalizer's job.

Every upstream request goes through ``_send``, which runs the call under the
retry executor and maps HTTP failures onto ErrorKinds:
- 401/403 -> UNAUTHORIZED (not retried)
- 404 -> the caller's ``not_found_kind`` (not retried)
- 429/5xx -> UPSTREAM_FAILURE (retried)
- other non-2xx -> UPSTREAM_FAILURE (not retried)
- transport errors -> UPSTREAM_FAILURE (retried)
"""

import asyncio
import json
import logging
from abc import ABC, abstractmethod
from typing import Any

import httpx

from ..core import retry
from ..core.credentials import CredentialPool
from ..core.errors import RelayError
from ..core.http_client import NETWORK_ERRORS, HTTPClient
from ..core.monitor import FailureCallback
from ..models.enums import ErrorKind, SourceKind
from ..models.resource import ResourceReference
from ..models.response import RawPayload

logger = logging.getLogger(__name__)

# Instagram web App ID
IG_APP_ID = "936619743392459"


class BaseAdapter(ABC):
    """
    Abstract base class for upstream adapters.

    Subclasses must implement:
    - name: label used in logs and as the result's source label
    - source: the SourceKind the normalizer dispatches on
    - fetch(): the upstream call(s) for one reference

    The HTTP client is shared and owned by the caller; adapters never close it.
    """

    name: str
    source: SourceKind

    def __init__(
        self,
        http: HTTPClient,
        credentials: CredentialPool,
        *,
        retry_policy: retry.RetryPolicy | None = None,
        monitor: FailureCallback | None = None,
        sleep: retry.SleepFn = asyncio.sleep,
    ):
        self.http = http
        self.credentials = credentials
        self.retry_policy = retry_policy or retry.RetryPolicy()
        self.monitor = monitor
        self._sleep = sleep

    @abstractmethod
    async def fetch(self, ref: ResourceReference) -> RawPayload:
        """Fetch the raw upstream payload for *ref*."""
        ...

    def _payload(self, data: Any, **context) -> RawPayload:
        return RawPayload(source=self.source, data=data, context=context)

    def _unsupported(self, ref: ResourceReference) -> RelayError:
        return RelayError(
            f"{self.name} cannot handle {ref.kind.value} references",
            ErrorKind.UNRECOGNIZED_INPUT,
        )

    async def _send(
        self,
        method: str,
        url: str,
        *,
        headers: dict[str, str] | None = None,
        params: dict[str, Any] | None = None,
        data: Any = None,
        json_body: Any = None,
        not_found_kind: ErrorKind = ErrorKind.MEDIA_NOT_FOUND,
    ) -> httpx.Response:
        """Send one request under the retry policy; returns only 2xx responses."""

        async def attempt() -> httpx.Response:
            try:
                response = await self.http.request(
                    method, url, headers=headers, params=params, data=data, json=json_body
                )
            except NETWORK_ERRORS as e:
                raise RelayError(
                    f"{self.name}: network error: {e or type(e).__name__}",
                    ErrorKind.UPSTREAM_FAILURE,
                    retryable=True,
                ) from e
            except httpx.HTTPError as e:
                raise RelayError(
                    f"{self.name}: request failed: {e}", ErrorKind.UPSTREAM_FAILURE
                ) from e

            if not response.is_success:
                raise self._status_error(response, not_found_kind)
            return response

        return await retry.execute(
            attempt,
            self.retry_policy,
            monitor=self.monitor,
            sleep=self._sleep,
            operation_name=f"{self.name} {method} {url}",
        )

    def _status_error(self, response: httpx.Response, not_found_kind: ErrorKind) -> RelayError:
        status = response.status_code
        if status in (401, 403):
            return RelayError(
                f"{self.name}: upstream returned {status}; session cookies may be invalid",
                ErrorKind.UNAUTHORIZED,
                status_code=status,
            )
        if status == 404:
            return RelayError(
                f"{self.name}: upstream returned 404", not_found_kind, status_code=status
            )
        return RelayError(
            f"{self.name}: upstream returned HTTP {status}",
            ErrorKind.UPSTREAM_FAILURE,
            status_code=status,
            retryable=status == 429 or status >= 500,
        )

    def _json(self, response: httpx.Response) -> Any:
        try:
            return response.json()
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise RelayError(
                f"{self.name}: response is not valid JSON",
                ErrorKind.MALFORMED_UPSTREAM_RESPONSE,
            ) from e
