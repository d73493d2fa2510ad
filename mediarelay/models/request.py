from pydantic import BaseModel, Field


class ResolveRequest(BaseModel):
    """Request model for the /resolve endpoint."""

    input: str = Field(
        ...,
        min_length=1,
        max_length=2048,
        description="Post/reel/story URL, @username, '<command> <username>' or external URL",
        examples=[
            "https://www.instagram.com/reel/ABC123/",
            "/story cristiano",
            "https://vm.tiktok.com/xyz",
        ],
    )
