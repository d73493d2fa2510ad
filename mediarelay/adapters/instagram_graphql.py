"""
Instagram GraphQL post adapter.

Posts, reels and IGTV items are fetched with one POST to the web GraphQL
endpoint using a persisted query document. Works without a session for
public posts; the cookie is attached when one is configured.
"""

import json
import logging

from ..core.credentials import obtain_csrf_token
from ..core.errors import RelayError
from ..models.enums import ClientClass, ErrorKind, SourceKind
from ..models.resource import PostOrReel, ResourceReference
from ..models.response import RawPayload
from ..utils.helpers import traverse_obj
from .base import IG_APP_ID, BaseAdapter

logger = logging.getLogger(__name__)

GRAPHQL_URL = "https://www.instagram.com/graphql/query"
GRAPHQL_DOC_ID = "9510064595728286"


class InstagramGraphQLAdapter(BaseAdapter):
    name = "instagram_graphql"
    source = SourceKind.GRAPHQL_POST

    async def fetch(self, ref: ResourceReference) -> RawPayload:
        if not isinstance(ref, PostOrReel):
            raise self._unsupported(ref)

        cookie = self.credentials.pick_cookie()
        token = await obtain_csrf_token(self.http, cookie)

        headers = {
            "Content-Type": "application/x-www-form-urlencoded",
            "X-CSRFToken": token,
            "X-IG-App-ID": IG_APP_ID,
            "User-Agent": self.credentials.pick_user_agent(ClientClass.BROWSER),
        }
        if cookie:
            headers["Cookie"] = cookie

        form = {
            "variables": json.dumps(
                {
                    "shortcode": ref.shortcode,
                    "fetch_tagged_user_count": None,
                    "hoisted_comment_id": None,
                    "hoisted_reply_id": None,
                }
            ),
            "doc_id": GRAPHQL_DOC_ID,
        }

        response = await self._send("POST", GRAPHQL_URL, headers=headers, data=form)
        body = self._json(response)

        node = traverse_obj(body, ("data", "xdt_shortcode_media"))
        if not isinstance(node, dict):
            logger.warning("GraphQL response without media node for %s: %.300s", ref.shortcode, body)
            raise RelayError(
                "Only posts and reels are supported. Check that the link is valid "
                "and the account is not private.",
                ErrorKind.MEDIA_NOT_FOUND,
            )
        return self._payload(node, shortcode=ref.shortcode)
