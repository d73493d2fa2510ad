from typing import Any

from pydantic import BaseModel, Field, model_validator

from .enums import MediaType, SourceKind

# Used when the upstream payload carries no owner data.
UNKNOWN_AUTHOR = "unknown"


class MediaItem(BaseModel):
    """A single deliverable image or video."""

    type: MediaType = Field(..., description="image or video")
    url: str = Field(..., min_length=1, description="Direct (or tunnel) media URL")
    thumbnail_url: str | None = Field(None, description="Display image for videos")
    width: int | None = Field(None, description="Width in pixels")
    height: int | None = Field(None, description="Height in pixels")
    is_transient: bool = Field(
        False,
        description="Tunnel/expiring URL that must be downloaded before delivery",
    )
    filename: str | None = Field(None, description="Suggested filename")

    @model_validator(mode="after")
    def _thumbnail_only_for_video(self) -> "MediaItem":
        if self.thumbnail_url and self.type != MediaType.VIDEO:
            raise ValueError("thumbnail_url is only allowed on video items")
        return self


class ProfileInfo(BaseModel):
    """Public profile details returned by profile lookups."""

    username: str
    full_name: str | None = None
    biography: str = ""
    profile_pic_url: str
    is_private: bool = False
    is_verified: bool = False
    followers: int = 0
    following: int = 0
    posts_count: int = 0
    external_url: str | None = None
    category: str | None = None


class MediaResult(BaseModel):
    """Normalized output of every resolution path."""

    items: list[MediaItem] = Field(..., min_length=1)
    author_handle: str = UNKNOWN_AUTHOR
    author_display_name: str = UNKNOWN_AUTHOR
    caption: str = Field("", description="Full, unescaped caption text")
    source_label: str = Field(..., description="Which upstream method produced this")
    profile: ProfileInfo | None = None


class DeliveryItem(BaseModel):
    """One media item as handed to a delivery channel."""

    item: MediaItem
    download_url: str | None = Field(
        None, description="Relay download URL; set for transient items instead of the raw URL"
    )


class DeliveryPlan(BaseModel):
    """A MediaResult laid out for delivery: caption plus media groups of at most 10."""

    caption: str = Field(..., description="HTML caption (author and truncated preview)")
    groups: list[list[DeliveryItem]]
    source_label: str


class RawPayload(BaseModel):
    """Raw platform response handed from an adapter to the normalizer."""

    source: SourceKind
    data: Any = None
    context: dict[str, Any] = Field(default_factory=dict)


class ErrorResponse(BaseModel):
    """Error response model."""

    success: bool = Field(False)
    error: str = Field(..., description="Error message")
    error_code: str | None = Field(None, description="Machine-readable error code")
