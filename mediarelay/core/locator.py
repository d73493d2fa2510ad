"""
Resource locator: turns raw user input into a typed ResourceReference.

All string sniffing lives here. Classification is a pure function of the
input; the only network step, share-link canonicalization, is a separate
coroutine run before ``classify``.

Rules, in priority order:
1. External platform domain (TikTok, X/Twitter, Facebook, Pinterest, ...).
2. ``/stories/<user>/<id>`` story links.
3. ``/p/``, ``/reel/``, ``/reels/``, ``/tv/`` post links.
4. ``/story``, ``/highlights``, ``/posts``, ``/pfp``, ``/profile`` commands.
5. Bare ``@username`` (stories of that user).
6. Anything else is unrecognized.
"""

import logging
import re
from urllib.parse import urlparse

import httpx

from ..models.enums import ErrorKind, ExternalPlatform
from ..models.resource import (
    ExternalPlatformUrl,
    Highlights,
    PostOrReel,
    Profile,
    RecentPosts,
    ResourceReference,
    Story,
    StoryOfUser,
)
from .errors import RelayError

logger = logging.getLogger(__name__)

# Domain -> platform. Subdomains (www., m., vm., ...) match their parent.
EXTERNAL_DOMAINS: dict[str, ExternalPlatform] = {
    "tiktok.com": ExternalPlatform.TIKTOK,
    "twitter.com": ExternalPlatform.TWITTER,
    "x.com": ExternalPlatform.TWITTER,
    "vxtwitter.com": ExternalPlatform.TWITTER,
    "fxtwitter.com": ExternalPlatform.TWITTER,
    "fixvx.com": ExternalPlatform.TWITTER,
    "facebook.com": ExternalPlatform.FACEBOOK,
    "fb.watch": ExternalPlatform.FACEBOOK,
    "pinterest.com": ExternalPlatform.PINTEREST,
    "pin.it": ExternalPlatform.PINTEREST,
    "youtube.com": ExternalPlatform.YOUTUBE,
    "youtu.be": ExternalPlatform.YOUTUBE,
    "reddit.com": ExternalPlatform.REDDIT,
    "redd.it": ExternalPlatform.REDDIT,
    "snapchat.com": ExternalPlatform.SNAPCHAT,
    "soundcloud.com": ExternalPlatform.SOUNDCLOUD,
    "vimeo.com": ExternalPlatform.VIMEO,
}

POST_TAGS = ("p", "reel", "reels", "tv")

_STORY_ID_RE = re.compile(r"/stories/[^/?#]+/(\d+)")
_USERNAME_RE = re.compile(r"^[A-Za-z0-9._]{1,30}$")
_BARE_USERNAME_RE = re.compile(r"^@([A-Za-z0-9._]{1,30})$")

DEFAULT_POSTS_LIMIT = 5
MAX_POSTS_LIMIT = 20

# Command token -> builder(username, extra_args)
_COMMANDS = {
    "/story": lambda user, _args: StoryOfUser(username=user),
    "/highlights": lambda user, _args: Highlights(username=user),
    "/posts": lambda user, args: RecentPosts(username=user, limit=_posts_limit(args)),
    "/pfp": lambda user, _args: Profile(username=user, picture_only=True),
    "/profile": lambda user, _args: Profile(username=user),
}


def _as_url(text: str):
    return urlparse(text if "://" in text else f"https://{text}")


def _hostname(text: str) -> str:
    try:
        return (_as_url(text).hostname or "").lower()
    except ValueError:
        return ""


def match_external_platform(text: str) -> ExternalPlatform | None:
    """Return the external platform for a URL on the allow-list."""
    if not text or " " in text.strip() or text.startswith(("/", "@")):
        return None
    host = _hostname(text.strip())
    for domain, platform in EXTERNAL_DOMAINS.items():
        if host == domain or host.endswith("." + domain):
            return platform
    return None


def extract_shortcode(text: str) -> str | None:
    """
    Return the segment following the first p/reel/reels/tv path segment.

    Returns None when no post tag is present; raises ShortcodeParseError when
    the tag is present without a following segment.
    """
    try:
        segments = _as_url(text.strip()).path.split("/")
    except ValueError:
        # e.g. "Invalid IPv6 URL" for text containing brackets
        return None
    for idx, segment in enumerate(segments):
        if segment in POST_TAGS and idx > 0:
            shortcode = segments[idx + 1] if idx + 1 < len(segments) else ""
            if not shortcode:
                raise RelayError(
                    f"Failed to obtain shortcode from {text!r}",
                    ErrorKind.SHORTCODE_PARSE_ERROR,
                )
            return shortcode
    return None


def extract_story_id(text: str) -> str:
    match = _STORY_ID_RE.search(text)
    if not match:
        raise RelayError(
            f"Invalid story link: {text!r}",
            ErrorKind.INVALID_STORY_LINK,
        )
    return match.group(1)


def _posts_limit(args: list[str]) -> int:
    if args and args[0].isdigit():
        return max(1, min(int(args[0]), MAX_POSTS_LIMIT))
    return DEFAULT_POSTS_LIMIT


def _parse_command(text: str) -> ResourceReference | None:
    tokens = text.split()
    # "/story@my_bot cristiano" is how Telegram addresses commands in groups.
    command = tokens[0].split("@", 1)[0].lower()
    builder = _COMMANDS.get(command)
    if builder is None:
        return None

    username = tokens[1].lstrip("@") if len(tokens) > 1 else ""
    if not username:
        raise RelayError(
            f"Please provide a username, e.g. `{command} cristiano`",
            ErrorKind.MISSING_USERNAME,
        )
    if not _USERNAME_RE.match(username):
        raise RelayError(
            f"Not a valid Instagram username: {username!r}",
            ErrorKind.UNRECOGNIZED_INPUT,
        )
    return builder(username, tokens[2:])


def classify(text: str) -> ResourceReference:
    """Classify *text* into exactly one ResourceReference variant."""
    text = (text or "").strip()
    if not text:
        raise RelayError("Empty input", ErrorKind.UNRECOGNIZED_INPUT)

    platform = match_external_platform(text)
    if platform is not None:
        return ExternalPlatformUrl(platform=platform, url=text)

    if "/stories/" in text:
        return Story(story_id=extract_story_id(text))

    if not text.startswith(("/", "@")):
        shortcode = extract_shortcode(text)
        if shortcode is not None:
            return PostOrReel(shortcode=shortcode)

    if text.startswith("/"):
        reference = _parse_command(text)
        if reference is not None:
            return reference

    bare = _BARE_USERNAME_RE.match(text)
    if bare:
        return StoryOfUser(username=bare.group(1))

    raise RelayError(f"Unrecognized input: {text[:100]!r}", ErrorKind.UNRECOGNIZED_INPUT)


def is_share_link(text: str) -> bool:
    """Share links hide the canonical post URL behind a redirect."""
    text = (text or "").strip()
    if not text.startswith(("http://", "https://")) or "share" not in text:
        return False
    return match_external_platform(text) is None


async def resolve_share_link(http, text: str, cookie: str = "") -> str:
    """
    Follow a share link to its canonical URL.

    Redirect failures are not fatal: the original text is returned unchanged.
    """
    if not is_share_link(text):
        return text
    headers = {"Cookie": cookie} if cookie else None
    try:
        resolved = await http.resolve_redirect(text.strip(), headers=headers)
    except httpx.HTTPError as e:
        logger.warning("Share link redirect failed for %s: %s", text, e)
        return text
    logger.info("Resolved share link %s -> %s", text, resolved)
    return resolved
