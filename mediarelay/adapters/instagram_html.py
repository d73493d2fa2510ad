"""
Instagram public profile page adapter.

Fetches ``instagram.com/<username>/`` without a session. Used only after the
profile API has failed; parsing of the page lives in the normalizer.
"""

from ..models.enums import ClientClass, ErrorKind, SourceKind
from ..models.resource import Profile, ResourceReference
from ..models.response import RawPayload
from .base import BaseAdapter

PROFILE_PAGE_URL = "https://www.instagram.com/{username}/"


class InstagramProfileHTMLAdapter(BaseAdapter):
    name = "instagram_profile_html"
    source = SourceKind.PROFILE_HTML

    async def fetch(self, ref: ResourceReference) -> RawPayload:
        if not isinstance(ref, Profile):
            raise self._unsupported(ref)

        headers = {
            "User-Agent": self.credentials.pick_user_agent(ClientClass.BROWSER),
            "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,image/webp,*/*;q=0.8",
            "Accept-Language": "en-US,en;q=0.5",
        }
        response = await self._send(
            "GET",
            PROFILE_PAGE_URL.format(username=ref.username),
            headers=headers,
            not_found_kind=ErrorKind.USER_NOT_FOUND,
        )
        return self._payload(
            response.text, username=ref.username, picture_only=ref.picture_only
        )
