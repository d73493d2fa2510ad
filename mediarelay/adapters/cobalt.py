"""
Cobalt-compatible extraction service adapter.

One adapter instance talks to one service instance. The orchestrator holds
one adapter per configured instance and tries them in the configured order.

Request: ``POST <instance>`` with ``{"url", "downloadMode", "videoQuality"}``.
Accepted response statuses:
- redirect / stream: a direct URL
- tunnel: a short-lived proxied URL that must be downloaded before delivery
- picker: several items, each typed photo / video / gif
Any other status (including ``error``) fails this instance.
"""

import logging
from urllib.parse import urlparse

from ..core.errors import RelayError
from ..models.enums import ErrorKind, SourceKind
from ..models.resource import ExternalPlatformUrl, ResourceReference
from ..models.response import RawPayload
from ..utils.helpers import traverse_obj
from .base import BaseAdapter

logger = logging.getLogger(__name__)

ACCEPTED_STATUSES = frozenset({"redirect", "tunnel", "stream", "picker"})


class CobaltAdapter(BaseAdapter):
    source = SourceKind.COBALT

    def __init__(
        self,
        instance_url: str,
        *args,
        api_key: str = "",
        download_mode: str = "auto",
        video_quality: str = "1080",
        **kwargs,
    ):
        super().__init__(*args, **kwargs)
        self.instance_url = instance_url
        self.api_key = api_key
        self.download_mode = download_mode
        self.video_quality = video_quality
        self.name = f"cobalt:{urlparse(instance_url).netloc or instance_url}"

    async def fetch(self, ref: ResourceReference) -> RawPayload:
        if not isinstance(ref, ExternalPlatformUrl):
            raise self._unsupported(ref)

        headers = {"Accept": "application/json", "Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Api-Key {self.api_key}"

        request_body = {
            "url": ref.url,
            "downloadMode": self.download_mode,
            "videoQuality": self.video_quality,
        }
        response = await self._send(
            "POST", self.instance_url, headers=headers, json_body=request_body
        )
        body = self._json(response)
        status = body.get("status") if isinstance(body, dict) else None

        if status not in ACCEPTED_STATUSES:
            code = traverse_obj(body, ("error", "code")) or status or "unknown"
            logger.warning("%s refused %s: %s", self.name, ref.url, code)
            raise RelayError(
                f"{self.name} could not process the link ({code})",
                ErrorKind.UPSTREAM_FAILURE,
            )

        return self._payload(
            body, instance=self.name, platform=ref.platform.value, url=ref.url
        )
