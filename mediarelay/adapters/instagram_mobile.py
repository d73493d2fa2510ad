"""
Instagram mobile API adapters (i.instagram.com).

Stories, highlights and user feeds are only served to an authenticated
session, so credentials are checked before any request is made. Every
username-keyed lookup first resolves the numeric user id through the web
profile endpoint.
"""

import logging
from typing import Any

from ..core.errors import RelayError
from ..models.enums import ClientClass, ErrorKind, SourceKind
from ..models.resource import (
    Highlights,
    Profile,
    RecentPosts,
    ResourceReference,
    Story,
    StoryOfUser,
)
from ..models.response import RawPayload
from ..utils.helpers import str_or_none, traverse_obj
from .base import IG_APP_ID, BaseAdapter

logger = logging.getLogger(__name__)

MOBILE_API = "https://i.instagram.com/api/v1"
WEB_PROFILE_INFO_URL = "https://www.instagram.com/api/v1/users/web_profile_info/"


class InstagramMobileAdapter(BaseAdapter):
    """Story, stories-of-user, highlights and recent-posts lookups."""

    name = "instagram_mobile"
    source = SourceKind.MOBILE_STORY

    async def fetch(self, ref: ResourceReference) -> RawPayload:
        if not isinstance(ref, (Story, StoryOfUser, Highlights, RecentPosts)):
            raise self._unsupported(ref)

        cookie = self.credentials.require_cookie()

        if isinstance(ref, Story):
            return await self._story(ref.story_id, cookie)

        user_id = await self.lookup_user_id(ref.username, cookie)
        if isinstance(ref, StoryOfUser):
            return await self._user_stories(ref.username, user_id, cookie)
        if isinstance(ref, Highlights):
            return await self._highlights(ref.username, user_id, cookie)
        return await self._recent_posts(ref.username, user_id, ref.limit, cookie)

    # === Requests ===

    def _mobile_headers(self, cookie: str) -> dict[str, str]:
        return {
            "User-Agent": self.credentials.pick_user_agent(ClientClass.MOBILE),
            "X-IG-App-ID": IG_APP_ID,
            "Cookie": cookie,
        }

    async def web_profile_info(self, username: str, cookie: str = "") -> dict[str, Any]:
        """Return ``data.user`` from the web profile endpoint."""
        headers = {
            "User-Agent": self.credentials.pick_user_agent(ClientClass.BROWSER),
            "X-IG-App-ID": IG_APP_ID,
        }
        if cookie:
            headers["Cookie"] = cookie

        response = await self._send(
            "GET",
            WEB_PROFILE_INFO_URL,
            headers=headers,
            params={"username": username},
            not_found_kind=ErrorKind.USER_NOT_FOUND,
        )
        user = traverse_obj(self._json(response), ("data", "user"))
        if not isinstance(user, dict):
            raise RelayError(
                f'Instagram user "{username}" was not found or the profile is restricted',
                ErrorKind.USER_NOT_FOUND,
            )
        return user

    async def lookup_user_id(self, username: str, cookie: str) -> str:
        user = await self.web_profile_info(username, cookie)
        user_id = str_or_none(user.get("id"))
        if not user_id:
            raise RelayError(
                f'Instagram user "{username}" was not found or the profile is restricted',
                ErrorKind.USER_NOT_FOUND,
            )
        logger.debug("Resolved @%s to user id %s", username, user_id)
        return user_id

    async def _story(self, story_id: str, cookie: str) -> RawPayload:
        response = await self._send(
            "GET", f"{MOBILE_API}/media/{story_id}/info/", headers=self._mobile_headers(cookie)
        )
        body = self._json(response)
        if not traverse_obj(body, ("items", 0)):
            raise RelayError(
                "Story expired or the account is private", ErrorKind.MEDIA_NOT_FOUND
            )
        return RawPayload(
            source=SourceKind.MOBILE_STORY, data=body, context={"story_id": story_id}
        )

    async def _user_stories(self, username: str, user_id: str, cookie: str) -> RawPayload:
        response = await self._send(
            "GET",
            f"{MOBILE_API}/feed/reels_media/",
            headers=self._mobile_headers(cookie),
            params={"reel_ids": user_id},
        )
        reel = traverse_obj(self._json(response), ("reels", user_id))
        if not isinstance(reel, dict) or not reel.get("items"):
            raise RelayError(
                f"No active stories found for @{username}", ErrorKind.NO_ACTIVE_STORIES
            )
        return RawPayload(
            source=SourceKind.MOBILE_USER_STORIES, data=reel, context={"username": username}
        )

    async def _highlights(self, username: str, user_id: str, cookie: str) -> RawPayload:
        headers = self._mobile_headers(cookie)
        response = await self._send(
            "GET", f"{MOBILE_API}/highlights/{user_id}/highlights_tray/", headers=headers
        )
        tray = traverse_obj(self._json(response), "tray") or []
        reel_ids = [str(h["id"]) for h in tray if isinstance(h, dict) and h.get("id")]
        if not reel_ids:
            raise RelayError(f"No highlights found for @{username}", ErrorKind.NO_HIGHLIGHTS)

        response = await self._send(
            "POST",
            f"{MOBILE_API}/feed/reels_media/",
            headers={**headers, "Content-Type": "application/x-www-form-urlencoded"},
            data={"user_ids": reel_ids},
        )
        reels = traverse_obj(self._json(response), "reels") or {}
        if not reels:
            raise RelayError(
                f"Could not fetch highlight media for @{username}", ErrorKind.NO_HIGHLIGHTS
            )
        return RawPayload(
            source=SourceKind.MOBILE_HIGHLIGHTS,
            data={"reels": reels, "order": reel_ids},
            context={"username": username},
        )

    async def _recent_posts(
        self, username: str, user_id: str, limit: int, cookie: str
    ) -> RawPayload:
        response = await self._send(
            "GET", f"{MOBILE_API}/feed/user/{user_id}/", headers=self._mobile_headers(cookie)
        )
        body = self._json(response)
        if not traverse_obj(body, "items"):
            raise RelayError(f"No posts found for @{username}", ErrorKind.NO_POSTS)
        return RawPayload(
            source=SourceKind.MOBILE_POSTS,
            data=body,
            context={"username": username, "limit": limit},
        )


class InstagramProfileAPIAdapter(InstagramMobileAdapter):
    """Profile details from the web profile endpoint (authenticated)."""

    name = "instagram_profile_api"
    source = SourceKind.PROFILE_API

    async def fetch(self, ref: ResourceReference) -> RawPayload:
        if not isinstance(ref, Profile):
            raise self._unsupported(ref)
        cookie = self.credentials.require_cookie()
        user = await self.web_profile_info(ref.username, cookie)
        return self._payload(user, username=ref.username, picture_only=ref.picture_only)
