from .enums import ClientClass, ErrorKind, ExternalPlatform, MediaType, ResourceKind, SourceKind
from .request import ResolveRequest
from .resource import (
    ExternalPlatformUrl,
    Highlights,
    PostOrReel,
    Profile,
    RecentPosts,
    ResourceReference,
    Story,
    StoryOfUser,
)
from .response import (
    DeliveryItem,
    DeliveryPlan,
    ErrorResponse,
    MediaItem,
    MediaResult,
    ProfileInfo,
    RawPayload,
)

__all__ = [
    "ClientClass",
    "DeliveryItem",
    "DeliveryPlan",
    "ErrorKind",
    "ErrorResponse",
    "ExternalPlatform",
    "ExternalPlatformUrl",
    "Highlights",
    "MediaItem",
    "MediaResult",
    "MediaType",
    "PostOrReel",
    "Profile",
    "ProfileInfo",
    "RawPayload",
    "RecentPosts",
    "ResolveRequest",
    "ResourceKind",
    "ResourceReference",
    "SourceKind",
    "Story",
    "StoryOfUser",
]
