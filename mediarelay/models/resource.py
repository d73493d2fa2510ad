"""
Typed references produced by the resource locator.

Each variant carries only what the matching adapter needs. The union is
discriminated by ``kind`` so it round-trips through JSON unchanged.
"""

from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field

from .enums import ExternalPlatform, ResourceKind


class _Reference(BaseModel):
    model_config = ConfigDict(frozen=True)


class PostOrReel(_Reference):
    kind: Literal[ResourceKind.POST_OR_REEL] = ResourceKind.POST_OR_REEL
    shortcode: str = Field(..., min_length=1)


class Story(_Reference):
    kind: Literal[ResourceKind.STORY] = ResourceKind.STORY
    story_id: str = Field(..., pattern=r"^\d+$")


class StoryOfUser(_Reference):
    kind: Literal[ResourceKind.STORY_OF_USER] = ResourceKind.STORY_OF_USER
    username: str = Field(..., min_length=1)


class Highlights(_Reference):
    kind: Literal[ResourceKind.HIGHLIGHTS] = ResourceKind.HIGHLIGHTS
    username: str = Field(..., min_length=1)


class RecentPosts(_Reference):
    kind: Literal[ResourceKind.RECENT_POSTS] = ResourceKind.RECENT_POSTS
    username: str = Field(..., min_length=1)
    limit: int = Field(5, ge=1, le=20)


class Profile(_Reference):
    kind: Literal[ResourceKind.PROFILE] = ResourceKind.PROFILE
    username: str = Field(..., min_length=1)
    picture_only: bool = False


class ExternalPlatformUrl(_Reference):
    kind: Literal[ResourceKind.EXTERNAL] = ResourceKind.EXTERNAL
    platform: ExternalPlatform
    url: str = Field(..., min_length=1)


ResourceReference = Annotated[
    Union[
        PostOrReel,
        Story,
        StoryOfUser,
        Highlights,
        RecentPosts,
        Profile,
        ExternalPlatformUrl,
    ],
    Field(discriminator="kind"),
]
