"""
Response normalizer: RawPayload -> MediaResult.

One parser per SourceKind. Parsers index required fields directly; a
missing field on an otherwise successful payload surfaces as
MALFORMED_UPSTREAM_RESPONSE, which is distinct from "nothing there".
"""

import logging
import re
from typing import Any, Callable
from urllib.parse import urlparse

from pydantic import ValidationError

from ..models.enums import ErrorKind, MediaType, SourceKind
from ..models.response import UNKNOWN_AUTHOR, MediaItem, MediaResult, ProfileInfo, RawPayload
from ..utils.helpers import (
    extract_json_ld,
    int_or_none,
    parse_count,
    search_meta,
    str_or_none,
    traverse_obj,
    url_or_none,
)
from .errors import RelayError

logger = logging.getLogger(__name__)

SIDECAR_TYPENAMES = ("XDTGraphSidecar", "GraphSidecar")

# Mobile API media_type values
MOBILE_IMAGE = 1
MOBILE_VIDEO = 2

_IMAGE_EXTENSIONS = ("jpg", "jpeg", "png", "webp", "heic", "avif")


def normalize(payload: RawPayload) -> MediaResult:
    """Turn an adapter payload into a MediaResult with at least one item."""
    parser = _PARSERS.get(payload.source)
    if parser is None:
        raise RelayError(
            f"No normalizer for source {payload.source.value}",
            ErrorKind.MALFORMED_UPSTREAM_RESPONSE,
        )
    try:
        return parser(payload.data, payload.context)
    except RelayError:
        raise
    except (KeyError, IndexError, TypeError, AttributeError, ValueError, ValidationError) as e:
        logger.warning("Malformed %s payload: %r", payload.source.value, e)
        raise RelayError(
            f"Unexpected {payload.source.value} response shape: {e!r}",
            ErrorKind.MALFORMED_UPSTREAM_RESPONSE,
        ) from e


# === GraphQL ===


def _graphql_item(node: dict) -> MediaItem:
    dimensions = node.get("dimensions") or {}
    if node.get("is_video"):
        return MediaItem(
            type=MediaType.VIDEO,
            url=node["video_url"],
            thumbnail_url=node["display_url"],
            width=int_or_none(dimensions.get("width")),
            height=int_or_none(dimensions.get("height")),
        )
    return MediaItem(
        type=MediaType.IMAGE,
        url=node["display_url"],
        width=int_or_none(dimensions.get("width")),
        height=int_or_none(dimensions.get("height")),
    )


def _graphql_post(node: dict, context: dict) -> MediaResult:
    if node.get("__typename") in SIDECAR_TYPENAMES:
        children = [edge["node"] for edge in node["edge_sidecar_to_children"]["edges"]]
    else:
        children = [node]

    items = [_graphql_item(child) for child in children]
    if not items:
        raise RelayError("Post contains no media", ErrorKind.MEDIA_NOT_FOUND)

    owner = node.get("owner") or {}
    caption = traverse_obj(node, ("edge_media_to_caption", "edges", 0, "node", "text"))
    return MediaResult(
        items=items,
        author_handle=owner.get("username") or UNKNOWN_AUTHOR,
        author_display_name=owner.get("full_name") or owner.get("username") or UNKNOWN_AUTHOR,
        caption=caption or "",
        source_label="instagram_graphql",
    )


# === Mobile API ===


def _best_video_url(versions: list[dict]) -> dict:
    return max(versions, key=lambda v: (v.get("width") or 0) * (v.get("height") or 0))


def mobile_items(item: dict) -> list[MediaItem]:
    """Expand one mobile-API media item (carousels into their children)."""
    if item.get("carousel_media"):
        return [m for child in item["carousel_media"] for m in mobile_items(child)]

    media_type = item.get("media_type")
    candidates = item["image_versions2"]["candidates"]
    if media_type == MOBILE_VIDEO or (media_type != MOBILE_IMAGE and item.get("video_versions")):
        best = _best_video_url(item["video_versions"])
        return [
            MediaItem(
                type=MediaType.VIDEO,
                url=best["url"],
                thumbnail_url=candidates[0]["url"],
                width=int_or_none(best.get("width")),
                height=int_or_none(best.get("height")),
            )
        ]
    if media_type == MOBILE_IMAGE:
        image = candidates[0]
        return [
            MediaItem(
                type=MediaType.IMAGE,
                url=image["url"],
                width=int_or_none(image.get("width")),
                height=int_or_none(image.get("height")),
            )
        ]
    logger.debug("Skipping mobile item with media_type=%s", media_type)
    return []


def _author(user: dict | None, fallback: str | None = None) -> tuple[str, str]:
    user = user or {}
    handle = user.get("username") or fallback or UNKNOWN_AUTHOR
    return handle, user.get("full_name") or handle


def _mobile_story(body: dict, context: dict) -> MediaResult:
    item = body["items"][0]
    items = mobile_items(item)
    if not items:
        raise RelayError("Story contains no media", ErrorKind.MEDIA_NOT_FOUND)
    handle, display = _author(item.get("user"))
    return MediaResult(
        items=items,
        author_handle=handle,
        author_display_name=display,
        caption=traverse_obj(item, ("caption", "text")) or "",
        source_label="instagram_mobile_story",
    )


def _mobile_user_stories(reel: dict, context: dict) -> MediaResult:
    items = [m for item in reel["items"] for m in mobile_items(item)]
    username = context.get("username")
    if not items:
        raise RelayError(f"No active stories found for @{username}", ErrorKind.NO_ACTIVE_STORIES)
    handle, display = _author(reel.get("user"), username)
    return MediaResult(
        items=items,
        author_handle=handle,
        author_display_name=display,
        source_label="instagram_mobile_stories",
    )


def _mobile_highlights(data: dict, context: dict) -> MediaResult:
    reels = data["reels"]
    order = data.get("order") or list(reels)
    items: list[MediaItem] = []
    owner = None
    for reel_id in order:
        reel = reels.get(reel_id)
        if not reel:
            continue
        owner = owner or reel.get("user")
        for item in reel.get("items") or []:
            items.extend(mobile_items(item))

    username = context.get("username")
    if not items:
        raise RelayError(
            f"Highlights of @{username} contain no media or are inaccessible",
            ErrorKind.NO_HIGHLIGHTS,
        )
    handle, display = _author(owner, username)
    return MediaResult(
        items=items,
        author_handle=handle,
        author_display_name=display,
        source_label="instagram_mobile_highlights",
    )


def _mobile_posts(body: dict, context: dict) -> MediaResult:
    limit = context.get("limit") or 5
    posts = body["items"][:limit]
    items = [m for post in posts for m in mobile_items(post)]
    username = context.get("username")
    if not items:
        raise RelayError(f"No posts found for @{username}", ErrorKind.NO_POSTS)
    handle, display = _author(posts[0].get("user"), username)
    return MediaResult(
        items=items,
        author_handle=handle,
        author_display_name=display,
        source_label="instagram_mobile_posts",
    )


# === Profiles ===


def _profile_result(profile: ProfileInfo, picture_only: bool, source_label: str) -> MediaResult:
    return MediaResult(
        items=[MediaItem(type=MediaType.IMAGE, url=profile.profile_pic_url)],
        author_handle=profile.username,
        author_display_name=profile.full_name or profile.username,
        source_label=source_label,
        profile=None if picture_only else profile,
    )


def _profile_api(user: dict, context: dict) -> MediaResult:
    picture = url_or_none(user.get("profile_pic_url_hd")) or url_or_none(user.get("profile_pic_url"))
    if not picture:
        raise RelayError("Profile response has no picture URL", ErrorKind.MALFORMED_UPSTREAM_RESPONSE)

    profile = ProfileInfo(
        username=user.get("username") or context["username"],
        full_name=str_or_none(user.get("full_name")),
        biography=user.get("biography") or "",
        profile_pic_url=picture,
        is_private=bool(user.get("is_private")),
        is_verified=bool(user.get("is_verified")),
        followers=traverse_obj(user, ("edge_followed_by", "count")) or 0,
        following=traverse_obj(user, ("edge_follow", "count")) or 0,
        posts_count=traverse_obj(user, ("edge_owner_to_timeline_media", "count")) or 0,
        external_url=str_or_none(user.get("external_url")),
        category=str_or_none(user.get("category_name")),
    )
    return _profile_result(profile, context.get("picture_only", False), "instagram_profile_api")


_FOLLOWERS_RE = re.compile(r"([\d,.]+[KMB]?)\s*Followers", re.I)
_FOLLOWING_RE = re.compile(r"([\d,.]+[KMB]?)\s*Following", re.I)
_POSTS_RE = re.compile(r"([\d,.]+[KMB]?)\s*Posts", re.I)
_TITLE_RE = re.compile(r"^(.+?)\s*\(@?([\w.]+)\)")
_COUNTS_PREFIX_RE = re.compile(
    r"^[\d,.\sKMB]+Followers,[\d,.\sKMB]+Following,[\d,.\sKMB]+Posts\s*(?:[-–]\s*)?", re.I
)


def _count(pattern: re.Pattern, text: str) -> int:
    match = pattern.search(text)
    return parse_count(match.group(1)) if match else 0


def parse_profile_html(html_text: str, username: str) -> ProfileInfo:
    """
    Extract profile details from a public profile page.

    Open Graph tags first ("123 Followers, 45 Following, 6 Posts - See
    Instagram photos..."), then JSON-LD. Raises PROFILE_PARSE_ERROR when
    neither yields a picture URL.
    """
    description = search_meta(html_text, "og:description")
    title = search_meta(html_text, "og:title")
    image = url_or_none(search_meta(html_text, "og:image"))

    if description and title and image:
        name_match = _TITLE_RE.match(title)
        biography = _COUNTS_PREFIX_RE.sub("", description.split(" - See Instagram")[0]).strip()
        return ProfileInfo(
            username=name_match.group(2) if name_match else username,
            full_name=name_match.group(1).strip() if name_match else username,
            biography=biography,
            profile_pic_url=image,
            is_private="private" in description.lower(),
            is_verified="✓" in title or '"is_verified":true' in html_text,
            followers=_count(_FOLLOWERS_RE, description),
            following=_count(_FOLLOWING_RE, description),
            posts_count=_count(_POSTS_RE, description),
        )

    ld = extract_json_ld(html_text)
    if ld and (ld.get("name") or ld.get("alternateName")):
        picture = ld.get("image")
        if isinstance(picture, dict):
            picture = picture.get("url")
        picture = url_or_none(picture)
        if picture:
            followers = 0
            for stat in traverse_obj(ld, ("mainEntityofPage", "interactionStatistic")) or []:
                if "Follow" in str(stat.get("interactionType", "")):
                    followers = int_or_none(stat.get("userInteractionCount")) or 0
                    break
            return ProfileInfo(
                username=(ld.get("alternateName") or "").lstrip("@") or username,
                full_name=ld.get("name") or username,
                biography=ld.get("description") or "",
                profile_pic_url=picture,
                followers=followers,
                external_url=url_or_none(ld.get("url")),
            )

    raise RelayError(
        f"Could not parse profile data for @{username} from HTML",
        ErrorKind.PROFILE_PARSE_ERROR,
    )


def _profile_html(html_text: str, context: dict) -> MediaResult:
    profile = parse_profile_html(html_text, context["username"])
    return _profile_result(profile, context.get("picture_only", False), "instagram_profile_html")


# === Cobalt ===


def _type_from_filename(filename: str | None, url: str) -> MediaType:
    name = (filename or urlparse(url).path).lower()
    ext = name.rsplit(".", 1)[-1] if "." in name else ""
    if ext in _IMAGE_EXTENSIONS:
        return MediaType.IMAGE
    return MediaType.VIDEO


def _cobalt(body: dict, context: dict) -> MediaResult:
    status = body["status"]
    label = context.get("instance") or "cobalt"

    if status in ("redirect", "tunnel", "stream"):
        url = body["url"]
        filename = str_or_none(body.get("filename"))
        items = [
            MediaItem(
                type=_type_from_filename(filename, url),
                url=url,
                filename=filename,
                is_transient=status == "tunnel",
            )
        ]
    elif status == "picker":
        items = []
        for entry in body["picker"]:
            if entry.get("type") == "photo":
                items.append(MediaItem(type=MediaType.IMAGE, url=entry["url"]))
            elif entry.get("type") in ("video", "gif"):
                items.append(
                    MediaItem(
                        type=MediaType.VIDEO,
                        url=entry["url"],
                        thumbnail_url=url_or_none(entry.get("thumb")),
                    )
                )
        if not items:
            raise RelayError("Extraction service returned no media", ErrorKind.MEDIA_NOT_FOUND)
    else:
        raise RelayError(
            f"{label} returned unsupported status {status!r}", ErrorKind.UPSTREAM_FAILURE
        )

    return MediaResult(items=items, source_label=label)


_PARSERS: dict[SourceKind, Callable[[Any, dict], MediaResult]] = {
    SourceKind.GRAPHQL_POST: _graphql_post,
    SourceKind.MOBILE_STORY: _mobile_story,
    SourceKind.MOBILE_USER_STORIES: _mobile_user_stories,
    SourceKind.MOBILE_HIGHLIGHTS: _mobile_highlights,
    SourceKind.MOBILE_POSTS: _mobile_posts,
    SourceKind.PROFILE_API: _profile_api,
    SourceKind.PROFILE_HTML: _profile_html,
    SourceKind.COBALT: _cobalt,
}
