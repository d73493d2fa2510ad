"""Tests for input classification and share-link canonicalization."""

import asyncio

import httpx
import pytest

from mediarelay.core.errors import RelayError
from mediarelay.core.http_client import HTTPClient
from mediarelay.core.locator import (
    classify,
    is_share_link,
    match_external_platform,
    resolve_share_link,
)
from mediarelay.models.enums import ErrorKind, ExternalPlatform
from mediarelay.models.resource import (
    ExternalPlatformUrl,
    Highlights,
    PostOrReel,
    Profile,
    RecentPosts,
    Story,
    StoryOfUser,
)


def _kind_of(text):
    with pytest.raises(RelayError) as exc_info:
        classify(text)
    return exc_info.value.kind


# ── Instagram posts ──────────────────────────────────────────────────
class TestPostLinks:
    @pytest.mark.parametrize(
        "url",
        [
            "https://www.instagram.com/p/ABC123/",
            "https://www.instagram.com/p/ABC123",
            "https://www.instagram.com/p/ABC123/?igsh=xyz",
            "https://www.instagram.com/p/ABC123?utm_source=ig_web_copy_link",
            "https://www.instagram.com/p/ABC123/#comments",
            "instagram.com/p/ABC123/",
        ],
    )
    def test_shortcode_ignores_query_and_trailing_slash(self, url):
        assert classify(url) == PostOrReel(shortcode="ABC123")

    @pytest.mark.parametrize("tag", ["p", "reel", "reels", "tv"])
    def test_all_post_tags(self, tag):
        ref = classify(f"https://www.instagram.com/{tag}/Cx_9-ab/")
        assert isinstance(ref, PostOrReel)
        assert ref.shortcode == "Cx_9-ab"

    def test_user_prefixed_post_path(self):
        ref = classify("https://www.instagram.com/natgeo/reel/DEF456/")
        assert ref == PostOrReel(shortcode="DEF456")

    def test_tag_without_shortcode(self):
        assert _kind_of("https://www.instagram.com/reel/") == ErrorKind.SHORTCODE_PARSE_ERROR


# ── Stories ──────────────────────────────────────────────────────────
class TestStoryLinks:
    def test_story_id_extracted(self):
        ref = classify("https://www.instagram.com/stories/natgeo/3312345678901234567/")
        assert ref == Story(story_id="3312345678901234567")

    def test_story_with_query(self):
        ref = classify("https://instagram.com/stories/someone/123456?utm_source=ig_story_item_share")
        assert ref == Story(story_id="123456")

    def test_story_without_id(self):
        assert _kind_of("https://www.instagram.com/stories/natgeo/") == ErrorKind.INVALID_STORY_LINK

    def test_story_with_non_numeric_id(self):
        assert _kind_of("https://www.instagram.com/stories/natgeo/highlight/") == ErrorKind.INVALID_STORY_LINK


# ── Commands ─────────────────────────────────────────────────────────
class TestCommands:
    def test_story_command(self):
        assert classify("/story cristiano") == StoryOfUser(username="cristiano")

    def test_at_sign_is_stripped(self):
        assert classify("/highlights @natgeo") == Highlights(username="natgeo")

    def test_posts_default_limit(self):
        assert classify("/posts nasa") == RecentPosts(username="nasa", limit=5)

    def test_posts_explicit_limit(self):
        assert classify("/posts nasa 12") == RecentPosts(username="nasa", limit=12)

    def test_posts_limit_is_clamped(self):
        assert classify("/posts nasa 500").limit == 20

    def test_pfp_is_picture_only(self):
        assert classify("/pfp nasa") == Profile(username="nasa", picture_only=True)

    def test_profile_is_full(self):
        assert classify("/profile nasa") == Profile(username="nasa", picture_only=False)

    def test_bot_suffix_ignored(self):
        assert classify("/story@relay_bot cristiano") == StoryOfUser(username="cristiano")

    @pytest.mark.parametrize("text", ["/story", "/story   ", "/pfp @"])
    def test_missing_username(self, text):
        assert _kind_of(text) == ErrorKind.MISSING_USERNAME

    def test_invalid_username(self):
        assert _kind_of("/story not/a/user") == ErrorKind.UNRECOGNIZED_INPUT

    def test_unknown_command(self):
        assert _kind_of("/start") == ErrorKind.UNRECOGNIZED_INPUT


# ── Bare usernames and fallthrough ───────────────────────────────────
class TestOtherInputs:
    def test_bare_username_is_story_of_user(self):
        assert classify("@cristiano") == StoryOfUser(username="cristiano")

    @pytest.mark.parametrize(
        "text",
        [
            "",
            "   ",
            "hello there",
            "https://example.com/page",
            "check this [link] instagram.com/p/ABC123/",
            "https://[instagram.com/p/ABC123/",
        ],
    )
    def test_unrecognized(self, text):
        assert _kind_of(text) == ErrorKind.UNRECOGNIZED_INPUT

    def test_classification_is_deterministic(self):
        text = "https://www.instagram.com/reel/XYZ/"
        assert classify(text) == classify(text)


# ── External platforms ───────────────────────────────────────────────
class TestExternalPlatforms:
    @pytest.mark.parametrize(
        ("url", "platform"),
        [
            ("https://www.tiktok.com/@user/video/7212345678901234567", ExternalPlatform.TIKTOK),
            ("https://vm.tiktok.com/ZMabc123/", ExternalPlatform.TIKTOK),
            ("https://x.com/user/status/1234567890", ExternalPlatform.TWITTER),
            ("https://twitter.com/user/status/1234567890", ExternalPlatform.TWITTER),
            ("https://www.facebook.com/watch/?v=123", ExternalPlatform.FACEBOOK),
            ("https://fb.watch/abc/", ExternalPlatform.FACEBOOK),
            ("https://www.pinterest.com/pin/123/", ExternalPlatform.PINTEREST),
            ("https://pin.it/abc", ExternalPlatform.PINTEREST),
        ],
    )
    def test_external_domains(self, url, platform):
        ref = classify(url)
        assert isinstance(ref, ExternalPlatformUrl)
        assert ref.platform == platform
        assert ref.url == url

    def test_external_wins_over_post_path(self):
        # A /p/ segment on a Pinterest URL must not be read as an Instagram post.
        ref = classify("https://www.pinterest.com/p/ABC/")
        assert isinstance(ref, ExternalPlatformUrl)

    def test_lookalike_domain_rejected(self):
        assert match_external_platform("https://nottiktok.com/video/1") is None


# ── Share links ──────────────────────────────────────────────────────
class TestShareLinks:
    def test_is_share_link(self):
        assert is_share_link("https://www.instagram.com/share/reel/BAabc/")
        assert not is_share_link("https://www.instagram.com/reel/ABC/")
        assert not is_share_link("/story share")
        # External platforms go to the extraction service untouched.
        assert not is_share_link("https://www.facebook.com/share/v/abc/")

    def test_redirect_followed_with_cookie(self):
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            if request.url.path.startswith("/share/"):
                return httpx.Response(
                    302, headers={"Location": "https://www.instagram.com/reel/XYZ789/"}
                )
            return httpx.Response(200, text="ok")

        async def run():
            async with HTTPClient(transport=httpx.MockTransport(handler)) as http:
                return await resolve_share_link(
                    http, "https://www.instagram.com/share/reel/BAabc/", "sessionid=1"
                )

        resolved = asyncio.run(run())
        assert resolved == "https://www.instagram.com/reel/XYZ789/"
        assert seen[0].headers["Cookie"] == "sessionid=1"
        assert classify(resolved) == PostOrReel(shortcode="XYZ789")

    def test_redirect_failure_returns_original(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("boom", request=request)

        async def run():
            async with HTTPClient(transport=httpx.MockTransport(handler)) as http:
                return await resolve_share_link(http, "https://www.instagram.com/share/p/abc/")

        assert asyncio.run(run()) == "https://www.instagram.com/share/p/abc/"

    def test_non_share_input_makes_no_request(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise AssertionError("no request expected")

        async def run():
            async with HTTPClient(transport=httpx.MockTransport(handler)) as http:
                return await resolve_share_link(http, "/story nasa")

        assert asyncio.run(run()) == "/story nasa"
