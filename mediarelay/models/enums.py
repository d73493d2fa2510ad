from enum import Enum


class ExternalPlatform(str, Enum):
    TIKTOK = "tiktok"
    TWITTER = "twitter"
    FACEBOOK = "facebook"
    PINTEREST = "pinterest"
    YOUTUBE = "youtube"
    REDDIT = "reddit"
    SNAPCHAT = "snapchat"
    SOUNDCLOUD = "soundcloud"
    VIMEO = "vimeo"


class ResourceKind(str, Enum):
    POST_OR_REEL = "post_or_reel"
    STORY = "story"
    STORY_OF_USER = "story_of_user"
    HIGHLIGHTS = "highlights"
    RECENT_POSTS = "recent_posts"
    PROFILE = "profile"
    EXTERNAL = "external"


class MediaType(str, Enum):
    IMAGE = "image"
    VIDEO = "video"


class ClientClass(str, Enum):
    MOBILE = "mobile"
    BROWSER = "browser"


class SourceKind(str, Enum):
    GRAPHQL_POST = "graphql_post"
    MOBILE_STORY = "mobile_story"
    MOBILE_USER_STORIES = "mobile_user_stories"
    MOBILE_HIGHLIGHTS = "mobile_highlights"
    MOBILE_POSTS = "mobile_posts"
    PROFILE_API = "profile_api"
    PROFILE_HTML = "profile_html"
    COBALT = "cobalt"


class ErrorKind(str, Enum):
    UNRECOGNIZED_INPUT = "unrecognized_input"
    MISSING_USERNAME = "missing_username"
    SHORTCODE_PARSE_ERROR = "shortcode_parse_error"
    INVALID_STORY_LINK = "invalid_story_link"
    CREDENTIALS_MISSING = "credentials_missing"
    USER_NOT_FOUND = "user_not_found"
    MEDIA_NOT_FOUND = "media_not_found"
    NO_ACTIVE_STORIES = "no_active_stories"
    NO_HIGHLIGHTS = "no_highlights"
    NO_POSTS = "no_posts"
    UNAUTHORIZED = "unauthorized"
    PAYLOAD_TOO_LARGE = "payload_too_large"
    DOWNLOAD_FAILED = "download_failed"
    MALFORMED_UPSTREAM_RESPONSE = "malformed_upstream_response"
    ALL_METHODS_FAILED = "all_methods_failed"
    PROFILE_PARSE_ERROR = "profile_parse_error"
    UPSTREAM_FAILURE = "upstream_failure"
