"""
Fallback orchestrator: the top-level ``resolve(text) -> MediaResult`` entry point.

Flow:
1. Share links are followed to their canonical URL (failure is non-fatal).
2. The input is classified into a ResourceReference.
3. An ordered candidate list is built for the reference kind.
4. Candidates run in order; the first one producing a result wins and later
   candidates are never invoked.
5. With a single candidate its error propagates unchanged; with several the
   last error is wrapped in ALL_METHODS_FAILED.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Callable

from .adapters import (
    BaseAdapter,
    CobaltAdapter,
    InstagramGraphQLAdapter,
    InstagramMobileAdapter,
    InstagramProfileAPIAdapter,
    InstagramProfileHTMLAdapter,
)
from .config import Settings, get_cobalt_instances, get_settings
from .core import retry
from .core.credentials import CredentialPool
from .core.errors import ALERT_KINDS, RelayError, alert_name
from .core.http_client import HTTPClient
from .core.locator import classify, resolve_share_link
from .core.monitor import FailureCallback, FailureReport, safe_report
from .core.normalizer import normalize
from .models.enums import ErrorKind
from .models.resource import (
    ExternalPlatformUrl,
    Highlights,
    PostOrReel,
    Profile,
    RecentPosts,
    ResourceReference,
    Story,
    StoryOfUser,
)
from .models.response import MediaResult, RawPayload

logger = logging.getLogger(__name__)


@dataclass
class Candidate:
    """One (adapter, normalizer) pair tried by the orchestrator."""

    name: str
    adapter: BaseAdapter
    normalize: Callable[[RawPayload], MediaResult] = field(default=normalize)

    async def run(self, ref: ResourceReference) -> MediaResult:
        payload = await self.adapter.fetch(ref)
        return self.normalize(payload)


class Resolver:
    """
    Builds adapters once and resolves inputs against them.

    The HTTP client is shared by every adapter. When the resolver creates it,
    ``close()`` releases it.
    """

    def __init__(
        self,
        credentials: CredentialPool,
        *,
        http: HTTPClient | None = None,
        monitor: FailureCallback | None = None,
        retry_policy: retry.RetryPolicy | None = None,
        cobalt_instances: list[str] | None = None,
        cobalt_api_key: str = "",
        cobalt_download_mode: str = "auto",
        cobalt_video_quality: str = "1080",
        sleep: retry.SleepFn = asyncio.sleep,
    ):
        self.credentials = credentials
        self.monitor = monitor
        self._owns_http = http is None
        self.http = http or HTTPClient()

        common = dict(retry_policy=retry_policy, monitor=monitor, sleep=sleep)
        self.graphql = InstagramGraphQLAdapter(self.http, credentials, **common)
        self.mobile = InstagramMobileAdapter(self.http, credentials, **common)
        self.profile_api = InstagramProfileAPIAdapter(self.http, credentials, **common)
        self.profile_html = InstagramProfileHTMLAdapter(self.http, credentials, **common)
        self.cobalt = [
            CobaltAdapter(
                url,
                self.http,
                credentials,
                api_key=cobalt_api_key,
                download_mode=cobalt_download_mode,
                video_quality=cobalt_video_quality,
                **common,
            )
            for url in (cobalt_instances or [])
        ]

    @classmethod
    def from_settings(
        cls,
        settings: Settings | None = None,
        *,
        credentials: CredentialPool | None = None,
        monitor: FailureCallback | None = None,
    ) -> "Resolver":
        settings = settings or get_settings()
        return cls(
            credentials or CredentialPool.from_settings(settings),
            monitor=monitor,
            retry_policy=retry.RetryPolicy(
                max_attempts=settings.max_retries,
                base_delay_ms=settings.retry_base_delay_ms,
            ),
            cobalt_instances=get_cobalt_instances(),
            cobalt_api_key=settings.cobalt_api_key,
            cobalt_download_mode=settings.cobalt_download_mode,
            cobalt_video_quality=settings.cobalt_video_quality,
        )

    async def close(self):
        if self._owns_http:
            await self.http.close()

    def candidates_for(self, ref: ResourceReference) -> list[Candidate]:
        if isinstance(ref, PostOrReel):
            adapters = [self.graphql]
        elif isinstance(ref, (Story, StoryOfUser, Highlights, RecentPosts)):
            adapters = [self.mobile]
        elif isinstance(ref, Profile):
            adapters = [self.profile_api, self.profile_html]
        elif isinstance(ref, ExternalPlatformUrl):
            adapters = list(self.cobalt)
        else:
            adapters = []
        return [Candidate(a.name, a) for a in adapters]

    async def resolve(self, text: str) -> MediaResult:
        """Resolve raw user input into a MediaResult."""
        text = await resolve_share_link(self.http, text, self.credentials.pick_cookie())
        ref = classify(text)
        logger.info("Classified input as %s", ref.kind.value)
        return await self.resolve_reference(ref)

    async def resolve_reference(self, ref: ResourceReference) -> MediaResult:
        candidates = self.candidates_for(ref)
        if not candidates:
            raise RelayError(
                f"No extraction method is configured for {ref.kind.value}",
                ErrorKind.UPSTREAM_FAILURE,
            )

        last_error: RelayError | None = None
        for index, candidate in enumerate(candidates, start=1):
            try:
                result = await candidate.run(ref)
            except RelayError as e:
                last_error = e
                logger.warning(
                    "Method %d/%d (%s) failed: [%s] %s",
                    index,
                    len(candidates),
                    candidate.name,
                    e.error_code,
                    e,
                )
                self._alert(e)
                continue
            except Exception as e:
                logger.exception("Unexpected error in %s: %s", candidate.name, e)
                last_error = RelayError(
                    f"{candidate.name} failed unexpectedly: {e}", ErrorKind.UPSTREAM_FAILURE
                )
                continue

            if result.items:
                logger.info(
                    "Resolved %s via %s (%d item(s))",
                    ref.kind.value,
                    candidate.name,
                    len(result.items),
                )
                return result

        if last_error is None:
            raise RelayError(
                f"No media found for {ref.kind.value}", ErrorKind.MEDIA_NOT_FOUND
            )
        if len(candidates) == 1:
            raise last_error

        error = RelayError(
            f"All {len(candidates)} methods failed. Last error: {last_error}",
            ErrorKind.ALL_METHODS_FAILED,
            status_code=last_error.status_code,
            last_error=last_error,
        )
        self._alert(error)
        raise error

    def _alert(self, error: RelayError):
        if error.kind in ALERT_KINDS:
            safe_report(self.monitor, FailureReport(kind=alert_name(error.kind), message=str(error)))
